"""
Dict representations of models for JSON responses.
"""


def money(value):
    return f'{value:.2f}' if value is not None else None


def user_to_dict(user):
    return {
        'id': user.pk,
        'email': user.email,
        'name': user.name,
        'phone': user.phone,
        'role': user.role,
        'wallet_balance': money(user.wallet_balance),
        'is_active': user.is_active,
        'date_joined': user.date_joined,
    }


def agent_to_dict(agent, public=False):
    data = {
        'id': agent.pk,
        'storefront_slug': agent.storefront_slug,
        'business_name': agent.business_name,
        'business_description': agent.business_description,
        'whatsapp_support_link': agent.whatsapp_support_link,
        'whatsapp_channel_link': agent.whatsapp_channel_link,
    }
    if not public:
        data.update({
            'user_id': agent.user_id,
            'email': agent.user.email,
            'name': agent.user.name,
            'role': agent.user.role,
            'parent_id': agent.parent_id,
            'custom_pricing_markup': money(agent.custom_pricing_markup),
            'balance': money(agent.balance),
            'total_sales': money(agent.total_sales),
            'total_profit': money(agent.total_profit),
            'is_approved': agent.is_approved,
            'payment_pending': agent.payment_pending,
            'activation_fee': money(agent.activation_fee),
            'created_at': agent.created_at,
        })
    return data


def bundle_to_dict(bundle, price=None, include_tiers=False):
    data = {
        'id': bundle.pk,
        'name': bundle.name,
        'network': bundle.network,
        'data_amount': bundle.data_amount,
        'validity': bundle.validity,
        'price': money(price if price is not None else bundle.base_price),
        'is_active': bundle.is_active,
    }
    if include_tiers:
        data.update({
            'api_code': bundle.api_code,
            'base_price': money(bundle.base_price),
            'agent_price': money(bundle.agent_price),
            'dealer_price': money(bundle.dealer_price),
            'super_dealer_price': money(bundle.super_dealer_price),
            'master_price': money(bundle.master_price),
            'admin_price': money(bundle.admin_price),
        })
    return data


def transaction_to_dict(order, include_secrets=False):
    data = {
        'id': order.pk,
        'reference': order.reference,
        'product_type': order.product_type,
        'product_name': order.product_name,
        'network': order.network,
        'quantity': order.quantity,
        'amount': money(order.amount),
        'tax': money(order.tax),
        'customer_phone': order.customer_phone,
        'customer_email': order.customer_email,
        'phone_numbers': order.phone_numbers,
        'is_bulk_order': order.is_bulk_order,
        'payment_method': order.payment_method,
        'payment_status': order.payment_status,
        'status': order.status,
        'delivery_status': order.delivery_status,
        'failure_reason': order.failure_reason,
        'agent_profit': money(order.agent_profit),
        'created_at': order.created_at,
        'completed_at': order.completed_at,
    }
    if include_secrets:
        data['delivered_pin'] = order.delivered_pin
        data['delivered_serial'] = order.delivered_serial
    return data


def admin_transaction_to_dict(order):
    data = transaction_to_dict(order, include_secrets=True)
    data.update({
        'profit': money(order.profit),
        'agent_id': order.agent_id,
        'buyer_id': order.buyer_id,
        'payment_reference': order.payment_reference,
        'api_response': order.api_response,
    })
    return data


def withdrawal_to_dict(withdrawal):
    return {
        'id': withdrawal.pk,
        'agent_id': withdrawal.agent_id,
        'amount': money(withdrawal.amount),
        'status': withdrawal.status,
        'payment_method': withdrawal.payment_method,
        'bank_name': withdrawal.bank_name,
        'account_number': withdrawal.account_number,
        'account_name': withdrawal.account_name,
        'transfer_reference': withdrawal.transfer_reference,
        'admin_note': withdrawal.admin_note,
        'rejection_reason': withdrawal.rejection_reason,
        'approved_at': withdrawal.approved_at,
        'paid_at': withdrawal.paid_at,
        'created_at': withdrawal.created_at,
    }


def message_to_dict(message):
    return {
        'id': message.pk,
        'chat_id': message.chat_id,
        'sender_id': message.sender_id,
        'sender_type': message.sender_type,
        'message': message.message,
        'is_read': message.is_read,
        'created_at': message.created_at,
    }


def chat_to_dict(chat, messages=None):
    data = {
        'id': chat.pk,
        'user_id': chat.user_id,
        'user_email': chat.user.email,
        'user_name': chat.user.name,
        'status': chat.status,
        'assigned_to': chat.assigned_to_id,
        'last_message_at': chat.last_message_at,
        'created_at': chat.created_at,
        'closed_at': chat.closed_at,
    }
    for counter in ('unread_user_messages', 'unread_admin_messages'):
        if hasattr(chat, counter):
            data[counter] = getattr(chat, counter)
    if messages is not None:
        data['messages'] = [message_to_dict(m) for m in messages]
    return data


def announcement_to_dict(announcement):
    return {
        'id': announcement.pk,
        'title': announcement.title,
        'message': announcement.message,
        'is_active': announcement.is_active,
        'created_at': announcement.created_at,
    }


def api_key_to_dict(api_key):
    return {
        'id': api_key.pk,
        'name': api_key.name,
        'key_prefix': api_key.key_prefix,
        'permissions': api_key.permissions,
        'is_active': api_key.is_active,
        'last_used': api_key.last_used,
        'created_at': api_key.created_at,
    }


def notification_to_dict(notification):
    return {
        'id': notification.pk,
        'kind': notification.kind,
        'title': notification.title,
        'body': notification.body,
        'link': notification.link,
        'reference': notification.transaction.reference if notification.transaction_id else None,
        'is_read': notification.is_read,
        'created_at': notification.created_at,
    }


def preference_to_dict(prefs):
    from .models import Notification

    return {
        'push_enabled': prefs.push_enabled,
        'email_enabled': prefs.email_enabled,
        'muted_kinds': prefs.muted_kinds,
        'mutable_kinds': [k for k in Notification.Kind.values if k not in Notification.ALWAYS_ON],
    }
