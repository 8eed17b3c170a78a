"""
Pricing for Resellers Hub.

Handles:
- Role tier prices (admin -> master -> super dealer -> dealer -> agent)
- Storefront selling prices (custom price or markup)
- The commission cascade up an agent's upline
- Paystack processing tax
"""

import logging
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP

from django.conf import settings

from .exceptions import OrderError

logger = logging.getLogger('core.transactions')

CENT = Decimal('0.01')
MAX_UPLINE_DEPTH = 10


def quantize(amount):
    return Decimal(str(amount)).quantize(CENT, rounding=ROUND_HALF_UP)


# =============================================================================
# TIER PRICES
# =============================================================================

def role_base_price(bundle, role):
    """
    Buying price of `bundle` for a role.

    A RoleBasePrice override wins, then the bundle's tier field, then the
    public base price.
    """
    from .models import RoleBasePrice

    override = RoleBasePrice.objects.filter(bundle=bundle, role=role).values_list('base_price', flat=True).first()
    if override is not None:
        return quantize(override)

    tier = bundle.tier_price(role)
    if tier is not None:
        return quantize(tier)
    return quantize(bundle.base_price)


def price_for_user(bundle, user=None):
    """Price shown in the catalog: resellers and admins see their tier, everyone else the base price."""
    if user is not None and user.is_authenticated and (user.is_reseller or user.role == 'admin'):
        return role_base_price(bundle, user.role)
    return quantize(bundle.base_price)


# =============================================================================
# STOREFRONT PRICES
# =============================================================================

def storefront_price(agent, bundle):
    """
    Selling price of `bundle` on an agent's storefront.

    1. The agent's custom price
    2. The agent's tier price plus markup percentage
    3. The public base price
    """
    from .models import CustomPricing

    custom = CustomPricing.objects.filter(agent=agent, bundle=bundle).values_list('selling_price', flat=True).first()
    if custom is not None:
        return quantize(custom)

    markup = agent.custom_pricing_markup or Decimal('0')
    if markup > 0:
        tier = role_base_price(bundle, agent.user.role)
        return quantize(tier * (Decimal('1') + markup / Decimal('100')))

    return quantize(bundle.base_price)


def set_custom_price(agent, bundle, price):
    """
    Set or clear an agent's selling price for a bundle.

    An empty price removes the override. A price below the agent's own
    tier price is refused.

    Returns:
        CustomPricing or None when the override was removed
    """
    from .models import CustomPricing

    if price in (None, ''):
        CustomPricing.objects.filter(agent=agent, bundle=bundle).delete()
        logger.info(f"Custom price cleared: agent={agent.storefront_slug}, bundle={bundle.pk}")
        return None

    try:
        price = quantize(price)
    except (ArithmeticError, ValueError) as e:
        raise OrderError(f'Invalid price: {price}') from e

    floor = role_base_price(bundle, agent.user.role)
    if price < floor:
        raise OrderError(
            f'Selling price for {bundle.name} cannot be below your base price of GHS {floor}',
            base_price=f'{floor}',
        )

    pricing, _ = CustomPricing.objects.update_or_create(
        agent=agent,
        bundle=bundle,
        defaults={'selling_price': price},
    )
    logger.info(f"Custom price set: agent={agent.storefront_slug}, bundle={bundle.pk}, price={price}")
    return pricing


# =============================================================================
# COMMISSION CASCADE
# =============================================================================

@dataclass
class Commission:
    agent: object
    amount: Decimal
    level: int


def walk_upline(agent, max_depth=MAX_UPLINE_DEPTH):
    """Yield (upline_agent, level) from the direct parent upward, stopping on cycles."""
    seen = {agent.pk}
    current = agent.parent
    level = 1
    while current is not None and level <= max_depth:
        if current.pk in seen:
            logger.warning(f"Upline cycle detected at agent {current.pk} while walking from {agent.pk}")
            break
        seen.add(current.pk)
        yield current, level
        current = current.parent
        level += 1


def commission_cascade(agent, bundle, selling_price, quantity=1):
    """
    Split the margin of a storefront sale between the seller and its upline.

    The seller earns selling price minus its own tier price. Each approved
    upline earns the difference between the last paid tier price and its
    own; unapproved uplines are skipped and their share flows up.

    Returns:
        list[Commission] with amounts already multiplied by quantity
    """
    selling_price = quantize(selling_price)
    commissions = []

    last_price = role_base_price(bundle, agent.user.role)
    seller_margin = selling_price - last_price
    if seller_margin > 0:
        commissions.append(Commission(agent=agent, amount=quantize(seller_margin * quantity), level=0))

    for upline, level in walk_upline(agent):
        if not upline.is_approved or not upline.user.is_reseller:
            continue
        upline_price = role_base_price(bundle, upline.user.role)
        differential = last_price - upline_price
        if differential > 0:
            commissions.append(Commission(agent=upline, amount=quantize(differential * quantity), level=level))
        last_price = min(last_price, upline_price)

    return commissions


# =============================================================================
# TAX
# =============================================================================

def calculate_tax(subtotal):
    return quantize(Decimal(str(subtotal)) * settings.PAYSTACK_TAX_RATE)


def calculate_total_with_tax(subtotal):
    subtotal = quantize(subtotal)
    tax = calculate_tax(subtotal)
    return {'subtotal': subtotal, 'tax': tax, 'total': subtotal + tax}


def checkout_total(subtotal):
    """Amount to charge at checkout; tax is added only when CHECKOUT_APPLY_TAX is on."""
    if settings.CHECKOUT_APPLY_TAX:
        return calculate_total_with_tax(subtotal)
    subtotal = quantize(subtotal)
    return {'subtotal': subtotal, 'tax': Decimal('0.00'), 'total': subtotal}
