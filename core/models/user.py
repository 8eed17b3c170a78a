"""
Accounts. Email is the login; `role` places the account in the reseller
hierarchy (admin > master > super_dealer > dealer > agent > user > guest).
"""

from decimal import Decimal

from django.contrib.auth.models import AbstractBaseUser, PermissionsMixin
from django.core.validators import RegexValidator
from django.db import models
from django.utils import timezone

from ..managers import UserManager

phone_validator = RegexValidator(
    regex=r'^0[0-9]{9}$',
    message='Phone number must be 10 digits in local format, e.g. 0241234567'
)


class User(AbstractBaseUser, PermissionsMixin):
    """
    A platform account.

    `wallet_balance` caches the user's wallet ledger; only core.ledger
    writes it.
    """

    class Role(models.TextChoices):
        ADMIN = 'admin', 'Admin'
        MASTER = 'master', 'Master'
        SUPER_DEALER = 'super_dealer', 'Super Dealer'
        DEALER = 'dealer', 'Dealer'
        AGENT = 'agent', 'Agent'
        USER = 'user', 'User'
        GUEST = 'guest', 'Guest'

    # Roles that may own a storefront, highest tier first
    RESELLER_ROLES = (Role.MASTER, Role.SUPER_DEALER, Role.DEALER, Role.AGENT)

    email = models.EmailField('email address', unique=True)
    name = models.CharField('name', max_length=150, blank=True)
    phone = models.CharField(
        'phone number',
        max_length=10,
        blank=True,
        validators=[phone_validator]
    )
    role = models.CharField(
        'role',
        max_length=20,
        choices=Role.choices,
        default=Role.USER,
        db_index=True
    )
    wallet_balance = models.DecimalField(
        'wallet balance (GHS)',
        max_digits=12,
        decimal_places=2,
        default=Decimal('0.00')
    )

    is_staff = models.BooleanField('Django admin access', default=False)
    is_active = models.BooleanField('active', default=True)
    date_joined = models.DateTimeField('joined', default=timezone.now)

    objects = UserManager()

    USERNAME_FIELD = 'email'
    EMAIL_FIELD = 'email'
    REQUIRED_FIELDS = []

    class Meta:
        ordering = ['-date_joined']

    def __str__(self):
        return self.email

    @property
    def display_name(self):
        return self.name or self.email.split('@')[0]

    @property
    def is_admin(self):
        return self.role == self.Role.ADMIN or self.is_superuser

    @property
    def is_reseller(self):
        return self.role in self.RESELLER_ROLES

    def get_full_name(self):
        return self.display_name

    def get_short_name(self):
        return self.display_name
