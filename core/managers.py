"""
Managers and querysets for Resellers Hub models.
"""

from decimal import Decimal

from django.contrib.auth.models import BaseUserManager
from django.db import models
from django.db.models import Count, Max, Q, Sum
from django.db.models.functions import Coalesce
from django.utils import timezone

ZERO = Decimal('0')


class UserManager(BaseUserManager):
    """Email-keyed accounts. Superusers are always in the admin role."""

    use_in_migrations = True

    def create_user(self, email, password=None, **extra_fields):
        if not email:
            raise ValueError('An email address is required')
        user = self.model(email=self.normalize_email(email).lower(), **extra_fields)
        user.set_password(password)
        user.save(using=self._db)
        return user

    def create_superuser(self, email, password=None, **extra_fields):
        extra_fields.update(is_staff=True, is_superuser=True, is_active=True, role='admin')
        return self.create_user(email, password, **extra_fields)

    def admins(self):
        return self.filter(Q(role='admin') | Q(is_superuser=True), is_active=True)


class TransactionQuerySet(models.QuerySet):

    OPEN_STATUSES = ('initiated', 'awaiting_payment', 'paid', 'dispatching')
    NON_SALE_TYPES = ('wallet_topup', 'agent_activation')

    def for_agent(self, agent):
        return self.filter(agent=agent)

    def for_buyer(self, user):
        """Orders placed by a user, by account or by email."""
        return self.filter(Q(buyer=user) | Q(customer_email__iexact=user.email))

    def delivered(self):
        return self.filter(status='delivered')

    def pending(self):
        return self.filter(status__in=self.OPEN_STATUSES)

    def sales(self):
        """Product sales; wallet top-ups and storefront activations are excluded."""
        return self.exclude(product_type__in=self.NON_SALE_TYPES)

    def stuck_awaiting_payment(self, older_than):
        return self.filter(status='awaiting_payment', created_at__lt=older_than)

    def today(self):
        return self.filter(created_at__date=timezone.localdate())

    def calculate_totals(self):
        """Sums of amount, platform profit and reseller profit, plus the row count."""
        return self.aggregate(
            total_amount=Coalesce(Sum('amount'), ZERO),
            total_profit=Coalesce(Sum('profit'), ZERO),
            total_agent_profit=Coalesce(Sum('agent_profit'), ZERO),
            count=Count('id'),
        )

    def top_customers(self, limit=10):
        """Delivered spend grouped by customer phone, biggest first."""
        return (
            self.delivered().sales()
            .values('customer_phone')
            .annotate(
                total_purchases=Count('id'),
                total_spent=Coalesce(Sum('amount'), ZERO),
                last_purchase=Max('created_at'),
            )
            .order_by('-total_spent', '-total_purchases')[:limit]
        )


class AgentQuerySet(models.QuerySet):

    def approved(self):
        """Live storefronts."""
        return self.filter(is_approved=True, user__is_active=True)

    def awaiting_activation(self):
        return self.filter(payment_pending=True)


class ResultCheckerQuerySet(models.QuerySet):

    def available(self, checker_type=None, year=None):
        qs = self.filter(is_sold=False)
        if checker_type:
            qs = qs.filter(type=checker_type)
        if year:
            qs = qs.filter(year=year)
        return qs

    def summary(self):
        """Stock per (type, year): total, available and sold."""
        return (
            self.values('type', 'year')
            .annotate(
                total=Count('id'),
                available=Count('id', filter=Q(is_sold=False)),
                sold=Count('id', filter=Q(is_sold=True)),
            )
            .order_by('type', '-year')
        )


TransactionManager = models.Manager.from_queryset(TransactionQuerySet)
AgentManager = models.Manager.from_queryset(AgentQuerySet)
ResultCheckerManager = models.Manager.from_queryset(ResultCheckerQuerySet)
