"""
django-allauth hooks.

Sessions created through allauth (email signup and Google) land on the
same role dashboards as the JSON login, and signups close in break mode.
"""

import logging

from allauth.account.adapter import DefaultAccountAdapter
from allauth.socialaccount.adapter import DefaultSocialAccountAdapter

from .networks import is_valid_phone, normalize_phone
from .services import get_bool_setting

logger = logging.getLogger('core.auth')


def dashboard_path_for(user):
    """Client route of the dashboard a user lands on after login."""
    if user.is_admin:
        return '/admin/dashboard'
    if user.is_reseller:
        return '/agent/dashboard'
    return '/user/dashboard'


class ResellerAccountAdapter(DefaultAccountAdapter):

    def get_login_redirect_url(self, request):
        return dashboard_path_for(request.user)

    def get_signup_redirect_url(self, request):
        return dashboard_path_for(request.user)

    def is_open_for_signup(self, request):
        return not get_bool_setting('break_mode_enabled', False)

    def send_mail(self, template_prefix, email, context):
        context.setdefault('site_name', 'Resellers Hub')
        context.setdefault('support_email', 'support@resellershubprogh.com')
        super().send_mail(template_prefix, email, context)

    def save_user(self, request, user, form, commit=True):
        """Copy the optional name and phone fields of the signup form."""
        user = super().save_user(request, user, form, commit=False)
        data = getattr(form, 'cleaned_data', {})

        user.name = (data.get('name') or user.name or '').strip()
        phone = data.get('phone') or ''
        if phone and is_valid_phone(phone):
            user.phone = normalize_phone(phone)

        if commit:
            user.save()
        return user


class ResellerSocialAccountAdapter(DefaultSocialAccountAdapter):
    """Google sign-in."""

    def pre_social_login(self, request, sociallogin):
        """Link a first Google login to the account holding the same verified email."""
        if sociallogin.is_existing:
            return

        extra = sociallogin.account.extra_data
        email = (extra.get('email') or '').lower()
        if not email or not extra.get('email_verified', False):
            return

        from .models import User

        user = User.objects.filter(email__iexact=email, is_active=True).first()
        if user is not None:
            sociallogin.connect(request, user)
            logger.info(f"Google account linked: email={email}")

    def populate_user(self, request, sociallogin, data):
        user = super().populate_user(request, sociallogin, data)
        user.name = sociallogin.account.extra_data.get('name', '') or user.name
        return user

    def get_login_redirect_url(self, request):
        return dashboard_path_for(request.user)
