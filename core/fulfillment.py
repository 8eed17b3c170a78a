"""
Order fulfillment for Resellers Hub.

Creates orders, drives them through the Transaction state machine,
confirms payments and delivers the goods:
- Data bundles go to the provider through the dispatcher
- Result checkers are allocated from stock
- Agent activations approve the storefront
- Wallet top-ups credit the buyer's wallet

Payment confirmation is keyed by the order reference, so a webhook and a
browser verify racing each other deliver the order exactly once.
"""

import logging
import re
from collections import OrderedDict
from decimal import Decimal

from django.db import transaction as db_transaction
from django.db.models import F
from django.utils import timezone

from .exceptions import InvalidTransition, NotFound, OrderError, PaystackError, ProviderError
from .pricing import checkout_total, commission_cascade, price_for_user, quantize, storefront_price

logger = logging.getLogger('core.transactions')

MAX_RECIPIENTS = 100
MAX_CHECKER_QUANTITY = 50
BULK_LINE_PATTERN = re.compile(r'^\s*([+\d][\d\s-]*?)\s*[,;\s]\s*(\d+(?:\.\d+)?)\s*(?:GB)?\s*$', re.IGNORECASE)


# =============================================================================
# STATE MACHINE
# =============================================================================

def transition(order, target, note='', **fields):
    """
    Move an order to `target` under a row lock.

    Moving to the current status is a no-op. Any edge the state machine
    does not allow raises InvalidTransition. Extra keyword arguments are
    written to the order in the same save.

    Returns:
        bool: True if the status changed
    """
    from .models import Transaction, TransactionEvent

    with db_transaction.atomic():
        locked = Transaction.objects.select_for_update().get(pk=order.pk)
        current = locked.status

        if current == target:
            changed = False
        else:
            if not locked.can_transition(target):
                raise InvalidTransition(locked.reference, current, target)
            if target == Transaction.Status.REFUNDED and not locked.payment_captured:
                raise InvalidTransition(locked.reference, current, target)

            locked.status = target
            delivery_status = Transaction.DELIVERY_FOR_STATUS.get(target)
            if delivery_status:
                locked.delivery_status = delivery_status
            if target == Transaction.Status.DELIVERED:
                locked.completed_at = timezone.now()
            for name, value in fields.items():
                setattr(locked, name, value)
            locked.save()

            TransactionEvent.objects.create(
                transaction=locked,
                from_status=current,
                to_status=target,
                note=note,
            )
            changed = True

    if changed:
        logger.info(f"Transaction {locked.reference}: {current} -> {target}" + (f" ({note})" if note else ''))
    order.refresh_from_db()
    return changed


# =============================================================================
# ORDER CREATION
# =============================================================================

def _resolve_agent(agent_slug):
    from .models import Agent

    if not agent_slug:
        return None
    agent = Agent.objects.approved().select_related('user').filter(storefront_slug=agent_slug).first()
    if agent is None:
        raise NotFound('Storefront not found')
    return agent


def _resolve_bundle(bundle_id):
    from .models import DataBundle

    try:
        return DataBundle.objects.get(pk=bundle_id, is_active=True)
    except (DataBundle.DoesNotExist, ValueError, TypeError) as e:
        raise NotFound('Data bundle not found') from e


def _unit_price(bundle, agent, buyer):
    if agent is not None:
        return storefront_price(agent, bundle)
    return price_for_user(bundle, buyer)


def _bundle_lines(bundle, recipients, agent, buyer):
    """
    Validate recipients and price each line.

    `recipients` is a list of dicts with a `phone` and an optional
    `bundle_id`; lines without a bundle use the order bundle.
    """
    from .networks import normalize_phone, validate_phone_network

    if not recipients:
        raise OrderError('At least one recipient phone number is required')
    if len(recipients) > MAX_RECIPIENTS:
        raise OrderError(f'A single order can have at most {MAX_RECIPIENTS} recipients')

    bundles = {bundle.pk: bundle}
    lines = []
    for item in recipients:
        phone = item.get('phone', '') if isinstance(item, dict) else str(item)
        line_bundle = bundle
        bundle_id = item.get('bundle_id') if isinstance(item, dict) else None
        if bundle_id and str(bundle_id) != str(bundle.pk):
            if bundle_id not in bundles:
                bundles[bundle_id] = _resolve_bundle(bundle_id)
            line_bundle = bundles[bundle_id]

        ok, error = validate_phone_network(phone, line_bundle.network)
        if not ok:
            raise OrderError(error, phone=phone)

        lines.append({
            'phone': normalize_phone(phone),
            'bundle_id': line_bundle.pk,
            'bundle_name': line_bundle.name,
            'data_amount': line_bundle.data_amount,
            'network': line_bundle.network,
            'price': str(_unit_price(line_bundle, agent, buyer)),
        })
    return lines


def create_order(product_type, buyer=None, agent_slug=None, customer_phone='', customer_email='',
                 bundle_id=None, recipients=None, checker_type='', checker_year=None, quantity=1,
                 payment_method='paystack', reference=None):
    """
    Create an order in `initiated`.

    Prices are always computed here; amounts sent by the client are
    ignored.

    Args:
        product_type: 'data_bundle' or 'result_checker'
        buyer: Logged in user placing the order (optional for guests)
        agent_slug: Storefront the order is placed through
        customer_phone / customer_email: Contact for the order
        bundle_id: DataBundle for data orders
        recipients: [{'phone', 'bundle_id'?}] for bulk data orders
        checker_type / checker_year / quantity: Result checker orders
        payment_method: 'paystack' or 'wallet'
        reference: Pre-generated reference (defaults to a new one)

    Returns:
        Transaction
    """
    from .models import ResultChecker, Transaction
    from .networks import is_valid_phone, normalize_phone
    from .services import generate_order_reference, generate_wallet_reference

    agent = _resolve_agent(agent_slug)
    customer_email = (customer_email or (buyer.email if buyer is not None else '')).strip().lower()

    if payment_method == Transaction.PaymentMethod.PAYSTACK and not customer_email:
        raise OrderError('An email address is required for online payment')
    if reference is None:
        reference = (
            generate_wallet_reference() if payment_method == Transaction.PaymentMethod.WALLET
            else generate_order_reference()
        )

    order = Transaction(
        reference=reference,
        product_type=product_type,
        agent=agent,
        buyer=buyer,
        customer_email=customer_email,
        payment_method=payment_method,
    )

    if product_type == Transaction.ProductType.DATA_BUNDLE:
        bundle = _resolve_bundle(bundle_id)
        if not recipients:
            recipients = [{'phone': customer_phone}]
        lines = _bundle_lines(bundle, recipients, agent, buyer)
        subtotal = sum((Decimal(line['price']) for line in lines), Decimal('0'))

        order.bundle = bundle
        order.network = bundle.network
        order.product_name = bundle.name if len(lines) == 1 else f"{bundle.name} (bulk x{len(lines)})"
        order.phone_numbers = lines
        order.is_bulk_order = len(lines) > 1
        order.quantity = len(lines)
        order.customer_phone = normalize_phone(customer_phone) if customer_phone else lines[0]['phone']

    elif product_type == Transaction.ProductType.RESULT_CHECKER:
        if checker_type not in ResultChecker.CheckerType.values:
            raise OrderError('Invalid result checker type')
        try:
            checker_year = int(checker_year)
            quantity = int(quantity or 1)
        except (TypeError, ValueError) as e:
            raise OrderError('Invalid result checker year or quantity') from e
        if not 1 <= quantity <= MAX_CHECKER_QUANTITY:
            raise OrderError(f'Quantity must be between 1 and {MAX_CHECKER_QUANTITY}')
        if not is_valid_phone(customer_phone):
            raise OrderError('A valid customer phone number is required')

        stock = ResultChecker.objects.available(checker_type, checker_year)
        first = stock.first()
        if first is None or stock.count() < quantity:
            raise OrderError(f'Not enough {checker_type.upper()} {checker_year} result checkers in stock')

        subtotal = quantize(first.base_price * quantity)
        order.checker_type = checker_type
        order.checker_year = checker_year
        order.quantity = quantity
        order.product_name = f"{checker_type.upper()} {checker_year} Result Checker" + (f" x{quantity}" if quantity > 1 else '')
        order.customer_phone = normalize_phone(customer_phone)

    else:
        raise OrderError('Invalid product type')

    totals = checkout_total(subtotal)
    order.amount = totals['total']
    order.tax = totals['tax']
    order.save()

    logger.info(
        f"Order created: ref={order.reference}, type={product_type}, amount={order.amount}, "
        f"method={payment_method}, agent={agent.storefront_slug if agent else '-'}"
    )
    return order


def create_wallet_topup(user, amount):
    """Create a wallet top-up order for `amount` GHS."""
    from django.conf import settings
    from .models import Transaction
    from .services import generate_wallet_reference

    try:
        amount = quantize(amount)
    except (ArithmeticError, ValueError, TypeError) as e:
        raise OrderError('Invalid amount') from e
    if amount < Decimal(str(settings.WALLET_TOPUP_MIN_AMOUNT)):
        raise OrderError(f'Minimum top-up is GHS {settings.WALLET_TOPUP_MIN_AMOUNT:.2f}')

    order = Transaction.objects.create(
        reference=generate_wallet_reference(),
        product_type=Transaction.ProductType.WALLET_TOPUP,
        product_name='Wallet Top-up',
        amount=amount,
        buyer=user,
        customer_email=user.email,
        customer_phone=user.phone,
    )
    logger.info(f"Wallet top-up created: ref={order.reference}, user={user.email}, amount={amount}")
    return order


def create_activation_order(agent):
    """Order for an agent's storefront activation fee."""
    from .models import Transaction
    from .services import generate_order_reference

    if agent.is_approved:
        raise OrderError('This storefront is already active', http_status=409)

    user = agent.user
    order = Transaction.objects.create(
        reference=generate_order_reference(),
        product_type=Transaction.ProductType.AGENT_ACTIVATION,
        product_name=f"Agent Activation ({agent.storefront_slug})",
        amount=quantize(agent.activation_fee),
        agent=agent,
        buyer=user,
        customer_email=user.email,
        customer_phone=user.phone,
    )
    logger.info(f"Activation order created: ref={order.reference}, agent={agent.storefront_slug}")
    return order


def start_payment(order, callback_url=None):
    """
    Initialize a Paystack checkout and move the order to awaiting_payment.

    Returns:
        PaymentInitialization
    """
    from .models import Transaction
    from .paystack import get_paystack_service

    try:
        init = get_paystack_service().initialize_payment(
            email=order.customer_email,
            amount=order.amount,
            reference=order.reference,
            callback_url=callback_url,
            metadata={
                'order_reference': order.reference,
                'product_type': order.product_type,
                'customer_phone': order.customer_phone,
            },
        )
    except PaystackError as e:
        transition(order, Transaction.Status.FAILED, note='Payment initialization failed',
                   failure_reason=e.message, payment_status=Transaction.PaymentStatus.FAILED)
        raise

    transition(order, Transaction.Status.AWAITING_PAYMENT, note='Paystack checkout started')
    return init


# =============================================================================
# PAYMENT CONFIRMATION
# =============================================================================

def get_order(reference):
    from .models import Transaction

    order = Transaction.objects.select_related('bundle', 'agent', 'buyer').filter(reference=reference).first()
    if order is None:
        raise NotFound('Transaction not found')
    return order


def confirm_payment(reference, paid_amount=None, payment_reference=''):
    """
    Record a captured payment and fulfill the order.

    Safe to call any number of times for the same reference: only the
    first call moves the order to paid and fulfills it.

    Returns:
        Transaction
    """
    from .models import Transaction

    order = get_order(reference)
    underpaid = False
    late_payment = False

    with db_transaction.atomic():
        locked = Transaction.objects.select_for_update().get(pk=order.pk)
        # Refunded and delivered orders were paid for even when payment_status has moved on
        if locked.payment_captured or locked.status in (Transaction.Status.REFUNDED, Transaction.Status.DELIVERED):
            logger.info(f"Payment already settled for {reference} ({locked.status}), skipping")
            order.refresh_from_db()
            return order

        if paid_amount is not None and quantize(paid_amount) < locked.amount:
            underpaid = True
            transition(locked, Transaction.Status.FAILED, note='Underpayment',
                       failure_reason=f'Paid {quantize(paid_amount)} but order total is {locked.amount}',
                       payment_status=Transaction.PaymentStatus.FAILED)
        elif locked.status == Transaction.Status.FAILED:
            # Payment arrived for an order that already failed
            late_payment = True
            locked.payment_status = Transaction.PaymentStatus.PAID
            locked.payment_reference = payment_reference or reference
            locked.save(update_fields=['payment_status', 'payment_reference', 'updated_at'])
        else:
            transition(locked, Transaction.Status.PAID, note='Payment confirmed',
                       payment_status=Transaction.PaymentStatus.PAID,
                       payment_reference=payment_reference or reference)

    order.refresh_from_db()
    if underpaid:
        logger.warning(f"Underpayment on {reference}: paid={paid_amount}, amount={order.amount}")
        raise OrderError('Amount paid is less than the order amount')
    if late_payment:
        refund(order, 'Payment received after the order failed')
        return order

    logger.info(f"Payment confirmed: ref={reference}, amount={order.amount}")
    fulfill(order)
    order.refresh_from_db()
    return order


def verify_and_confirm(reference):
    """Check a reference with Paystack and confirm it if the charge succeeded."""
    from .models import Transaction
    from .paystack import get_paystack_service

    order = get_order(reference)
    if order.payment_captured:
        return order

    verification = get_paystack_service().verify_payment(reference)
    if verification.is_successful:
        return confirm_payment(reference, paid_amount=verification.amount, payment_reference=verification.reference)

    if verification.status in ('failed', 'abandoned', 'reversed'):
        if order.status in (Transaction.Status.INITIATED, Transaction.Status.AWAITING_PAYMENT):
            transition(order, Transaction.Status.FAILED, note=f'Paystack status {verification.status}',
                       failure_reason=f'Payment {verification.status}',
                       payment_status=Transaction.PaymentStatus.FAILED)
    return order


# =============================================================================
# FULFILLMENT
# =============================================================================

def fulfill(order):
    """
    Deliver a paid order according to its product type.

    Orders not in `paid` are left alone.
    """
    from .ledger import credit_wallet
    from .models import LedgerEntry, Transaction
    from .services import activate_agent, get_bool_setting

    if order.status != Transaction.Status.PAID:
        return order

    if order.product_type == Transaction.ProductType.DATA_BUNDLE:
        if not get_bool_setting('data_bundle_auto_processing', True):
            logger.info(f"Auto processing disabled, {order.reference} waits for manual dispatch")
            return order
        from .dispatcher import dispatch_transaction
        try:
            return dispatch_transaction(order)
        except ProviderError as e:
            # Payment is already taken; the order waits in paid for an admin dispatch
            logger.error(f"Dispatch deferred for {order.reference}, order stays {order.status}: {e}")
            return order

    if order.product_type == Transaction.ProductType.RESULT_CHECKER:
        return allocate_result_checkers(order)

    if order.product_type == Transaction.ProductType.AGENT_ACTIVATION:
        activate_agent(order.agent)
        mark_delivered(order, note='Agent activated')
        return order

    if order.product_type == Transaction.ProductType.WALLET_TOPUP:
        credit_wallet(
            order.buyer, order.amount - order.tax, LedgerEntry.EntryType.TOPUP,
            f'topup:{order.reference}', transaction=order,
            description=f'Wallet top-up {order.reference}',
        )
        mark_delivered(order, note='Wallet credited')
        return order

    raise OrderError(f'Unknown product type {order.product_type}')


def allocate_result_checkers(order):
    """Assign the oldest unsold vouchers to a paid checker order."""
    from .models import ResultChecker

    with db_transaction.atomic():
        vouchers = list(
            ResultChecker.objects.select_for_update()
            .available(order.checker_type, order.checker_year)
            .order_by('created_at', 'id')[:order.quantity]
        )
        if len(vouchers) < order.quantity:
            enough = False
        else:
            enough = True
            now = timezone.now()
            for voucher in vouchers:
                voucher.is_sold = True
                voucher.sold_at = now
                voucher.sold_to_phone = order.customer_phone
                voucher.transaction = order
                voucher.save(update_fields=['is_sold', 'sold_at', 'sold_to_phone', 'transaction'])

    if not enough:
        logger.error(f"Result checker stock ran out for {order.reference}")
        mark_failed(order, 'Result checkers out of stock')
        return order

    mark_delivered(
        order,
        note=f'{len(vouchers)} voucher(s) allocated',
        delivered_pin=', '.join(v.pin for v in vouchers)[:50],
        delivered_serial=', '.join(v.serial_number for v in vouchers)[:50],
    )
    return order


def mark_delivered(order, note='', **fields):
    """Move an order to delivered and book its profit split once."""
    from .models import Transaction

    changed = transition(order, Transaction.Status.DELIVERED, note=note, **fields)
    if changed:
        post_commissions(order)
        _announce(order)
    return changed


def mark_failed(order, reason, refund_amount=None):
    """
    Move an order to failed and refund it when the payment was captured.

    `refund_amount` limits the refund for partially delivered orders.
    """
    from .models import Transaction

    changed = transition(order, Transaction.Status.FAILED, note=reason, failure_reason=reason)
    if changed:
        logger.warning(f"Order failed: ref={order.reference}, reason={reason}")
        if order.payment_captured:
            refund(order, reason, amount=refund_amount)
        _announce(order)
    return changed


def _announce(order):
    from .notification_service import notify_order_update
    from .webhooks import send_order_status_update

    notify_order_update(order)
    send_order_status_update(order)


# =============================================================================
# COMMISSIONS
# =============================================================================

def post_commissions(order):
    """
    Post the commission cascade for a delivered order and record the
    platform's share on the order.
    """
    from .ledger import credit_profit
    from .models import Agent, DataBundle, LedgerEntry, Transaction
    from .notification_service import notify_commission

    revenue = order.amount - order.tax

    if order.product_type == Transaction.ProductType.RESULT_CHECKER:
        cost = sum((v.cost_price for v in order.vouchers.all()), Decimal('0'))
        order.profit = quantize(revenue - cost)
        order.save(update_fields=['profit', 'updated_at'])
        return []

    if order.product_type != Transaction.ProductType.DATA_BUNDLE or order.agent_id is None:
        if order.product_type in (Transaction.ProductType.DATA_BUNDLE, Transaction.ProductType.AGENT_ACTIVATION):
            order.profit = revenue
            order.save(update_fields=['profit', 'updated_at'])
        return []

    seller = Agent.objects.select_related('user', 'parent').get(pk=order.agent_id)
    bundles = {b.pk: b for b in DataBundle.objects.filter(pk__in={line['bundle_id'] for line in order.phone_numbers})}

    totals = OrderedDict()
    for line in order.phone_numbers:
        bundle = bundles.get(line['bundle_id'])
        if bundle is None:
            continue
        for commission in commission_cascade(seller, bundle, Decimal(line['price'])):
            agent, amount = totals.get(commission.agent.pk, (commission.agent, Decimal('0')))
            totals[commission.agent.pk] = (agent, amount + commission.amount)

    paid_out = Decimal('0')
    for agent_id, (agent, amount) in totals.items():
        if amount <= 0:
            continue
        credit_profit(
            agent, amount, LedgerEntry.EntryType.COMMISSION,
            f'commission:{order.reference}:{agent_id}',
            transaction=order,
            description=f'Commission on {order.reference}',
        )
        paid_out += amount
        notify_commission(agent, amount, order)

    Agent.objects.filter(pk=seller.pk).update(total_sales=F('total_sales') + order.amount)

    seller_share = totals.get(seller.pk, (seller, Decimal('0')))[1]
    order.agent_profit = seller_share
    order.profit = quantize(revenue - paid_out)
    order.save(update_fields=['agent_profit', 'profit', 'updated_at'])

    logger.info(f"Commissions posted: ref={order.reference}, seller={seller_share}, total={paid_out}, platform={order.profit}")
    return list(totals.values())


# =============================================================================
# WALLET PURCHASES AND REFUNDS
# =============================================================================

def pay_with_wallet(user, **order_kwargs):
    """
    Buy with wallet funds: create, debit, mark paid, then fulfill.

    Raises:
        InsufficientFunds: the order is not created when the wallet is short
    """
    from .ledger import debit_wallet
    from .models import LedgerEntry, Transaction

    order_kwargs['payment_method'] = Transaction.PaymentMethod.WALLET
    with db_transaction.atomic():
        order = create_order(buyer=user, **order_kwargs)
        debit_wallet(
            user, order.amount, LedgerEntry.EntryType.PURCHASE, f'purchase:{order.reference}',
            transaction=order, description=f'Purchase {order.product_name}',
        )
        transition(order, Transaction.Status.PAID, note='Paid from wallet',
                   payment_status=Transaction.PaymentStatus.PAID, payment_reference=order.reference)

    fulfill(order)
    order.refresh_from_db()
    return order


def refund(order, reason, amount=None):
    """
    Return a captured payment (or `amount` of it) to the buyer's wallet.

    Orders placed without an account are marked refunded and left for a
    manual refund through Paystack.
    """
    from .ledger import credit_wallet
    from .models import LedgerEntry, Transaction

    if order.status == Transaction.Status.REFUNDED:
        return order
    if not order.payment_captured:
        raise InvalidTransition(order.reference, order.status, Transaction.Status.REFUNDED)

    amount = quantize(order.amount if amount is None else min(Decimal(str(amount)), order.amount))

    with db_transaction.atomic():
        if order.buyer_id:
            credit_wallet(
                order.buyer, amount, LedgerEntry.EntryType.REFUND, f'refund:{order.reference}',
                transaction=order, description=f'Refund {order.reference}: {reason}',
            )
        else:
            logger.warning(f"Manual refund required: ref={order.reference}, amount={amount}, email={order.customer_email}")

        if order.status == Transaction.Status.DISPATCHING:
            transition(order, Transaction.Status.FAILED, note=reason, failure_reason=reason)
        transition(order, Transaction.Status.REFUNDED, note=reason,
                   payment_status=Transaction.PaymentStatus.REFUNDED,
                   failure_reason=order.failure_reason or reason)

    logger.info(f"Order refunded: ref={order.reference}, amount={amount}, to_wallet={bool(order.buyer_id)}")
    return order


# =============================================================================
# ADMIN AND TRACKING
# =============================================================================

def update_delivery_status(order, delivery_status, actor=None, request=None):
    """Admin override of an order's delivery outcome."""
    from .models import Transaction
    from .services import record_audit

    previous = order.delivery_status
    if delivery_status == Transaction.DeliveryStatus.DELIVERED:
        if order.status == Transaction.Status.PAID:
            transition(order, Transaction.Status.DISPATCHING, note='Manual delivery')
        mark_delivered(order, note='Marked delivered by admin')
    elif delivery_status == Transaction.DeliveryStatus.FAILED:
        mark_failed(order, 'Marked failed by admin')
    elif delivery_status == Transaction.DeliveryStatus.PROCESSING:
        transition(order, Transaction.Status.DISPATCHING, note='Marked processing by admin')
    else:
        raise OrderError('Invalid delivery status')

    record_audit(actor, 'update_delivery_status', 'transaction', order.pk,
                 {'delivery_status': previous}, {'delivery_status': order.delivery_status}, request)
    return order


def track_order(reference=None, phone=None, limit=10):
    """
    Look orders up by reference or by customer phone.

    Returns:
        list of Transaction
    """
    from .models import Transaction
    from .networks import normalize_phone

    if reference:
        return [get_order(reference.strip())]
    if phone:
        return list(
            Transaction.objects.sales()
            .filter(customer_phone=normalize_phone(phone))
            .select_related('bundle')
            .order_by('-created_at')[:limit]
        )
    raise OrderError('Provide a transaction reference or phone number')


def parse_bulk_upload(text, network=None):
    """
    Parse "phone GB" lines for a bulk data order.

    When `network` is given each line is matched to that network's
    bundle of the same size.

    Returns:
        (items, errors): items are {'phone', 'gb', 'data_amount'[, 'bundle_id', 'bundle_name']}
    """
    from .models import DataBundle
    from .networks import is_valid_phone, normalize_phone, parse_data_amount_mb, validate_phone_network

    bundles = {}
    if network:
        for bundle in DataBundle.objects.filter(network=network, is_active=True):
            mb = parse_data_amount_mb(bundle.data_amount)
            if mb:
                bundles.setdefault(mb, bundle)

    items = []
    errors = []
    for number, raw in enumerate((text or '').splitlines(), start=1):
        line = raw.strip()
        if not line:
            continue
        match = BULK_LINE_PATTERN.match(line)
        if not match:
            errors.append(f'Line {number}: expected "phone GB", got "{line}"')
            continue

        phone = normalize_phone(match.group(1))
        gb = Decimal(match.group(2))
        if not is_valid_phone(phone):
            errors.append(f'Line {number}: invalid phone number {match.group(1).strip()}')
            continue
        if not Decimal('1') <= gb <= Decimal('100'):
            errors.append(f'Line {number}: data amount must be between 1 and 100 GB')
            continue

        gb_text = f'{gb.normalize():f}'
        item = {'phone': phone, 'gb': gb_text, 'data_amount': f'{gb_text}GB'}
        if network:
            ok, error = validate_phone_network(phone, network)
            if not ok:
                errors.append(f'Line {number}: {error}')
                continue
            bundle = bundles.get(int(gb * 1024))
            if bundle is None:
                errors.append(f'Line {number}: no {gb_text}GB bundle available')
                continue
            item['bundle_id'] = bundle.pk
            item['bundle_name'] = bundle.name
        items.append(item)

    return items, errors
