"""
API keys for Resellers Hub.

Keys look like `sk_{base36 ms timestamp}_{64 hex}`. Only the SHA-256 hash
and an 8 character prefix are stored.
"""

import hashlib
import hmac
import logging
import re
import secrets
import time
from datetime import timedelta

from django.conf import settings
from django.utils import timezone

from .exceptions import ApiKeyError, OrderError, ResellerError

logger = logging.getLogger('core.auth')

SECRET_KEY_PATTERN = re.compile(r'^sk_[a-z0-9]+_[a-f0-9]{64}$')
PUBLIC_KEY_PATTERN = re.compile(r'^pk_[a-f0-9]{32}$')
PREFIX_LENGTH = 8
DEFAULT_PERMISSIONS = {'orders': True, 'balance': True}


def generate_api_key():
    from .services import to_base36
    return f"sk_{to_base36(int(time.time() * 1000))}_{secrets.token_hex(32)}"


def generate_public_key():
    return f"pk_{secrets.token_hex(16)}"


def hash_api_key(key):
    return hashlib.sha256(key.encode('utf-8')).hexdigest()


def verify_api_key(key, key_hash):
    """Constant-time check of a plain key against a stored hash."""
    return hmac.compare_digest(hash_api_key(key), key_hash)


def is_valid_api_key_format(key):
    return bool(key) and bool(SECRET_KEY_PATTERN.match(key) or PUBLIC_KEY_PATTERN.match(key))


def mask_api_key(key):
    if not key or len(key) < 12:
        return '****'
    return f"{key[:8]}****{key[-4:]}"


def has_permissions(api_key, required):
    """True when every permission in `required` is granted on the key."""
    granted = api_key.permissions or {}
    return all(granted.get(permission) is True for permission in required)


def create_api_key(user, name, permissions=None):
    """
    Create a key for `user`, limited to API_KEY_HOURLY_LIMIT per hour.

    Returns:
        (ApiKey, plain_key): the plain key is never retrievable again
    """
    from .models import ApiKey

    name = (name or '').strip()
    if not name:
        raise OrderError('API key name is required')

    recent = ApiKey.objects.filter(user=user, created_at__gte=timezone.now() - timedelta(hours=1)).count()
    if recent >= settings.API_KEY_HOURLY_LIMIT:
        logger.warning(f"API key rate limit hit: user={user.email}")
        raise ResellerError('Too many API keys created in the last hour, try again later', http_status=429)

    if permissions is None:
        permissions = dict(DEFAULT_PERMISSIONS)
    elif not isinstance(permissions, dict):
        raise OrderError('Permissions must be an object')

    plain = generate_api_key()
    api_key = ApiKey.objects.create(
        user=user,
        name=name[:100],
        key_prefix=plain[:PREFIX_LENGTH],
        key_hash=hash_api_key(plain),
        permissions={key: bool(value) for key, value in permissions.items()},
    )
    logger.info(f"API key created: user={user.email}, key={mask_api_key(plain)}")
    return api_key, plain


def authenticate_api_key(plain, required=()):
    """
    Resolve an `X-API-Key` header value to its active ApiKey.

    Raises:
        ApiKeyError: unknown, inactive or malformed key
        PermissionDenied: key lacks a required permission
    """
    from .exceptions import PermissionDenied
    from .models import ApiKey

    if not is_valid_api_key_format(plain or ''):
        raise ApiKeyError('Invalid API key')

    api_key = (
        ApiKey.objects.select_related('user')
        .filter(key_hash=hash_api_key(plain), is_active=True, user__is_active=True)
        .first()
    )
    if api_key is None or not verify_api_key(plain, api_key.key_hash):
        logger.warning(f"API key rejected: key={mask_api_key(plain)}")
        raise ApiKeyError('Invalid API key')

    if not has_permissions(api_key, required):
        raise PermissionDenied('API key lacks the required permission', required=list(required))

    api_key.last_used = timezone.now()
    api_key.save(update_fields=['last_used'])
    return api_key
