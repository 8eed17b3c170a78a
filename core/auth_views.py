"""
Authentication views for Resellers Hub.

Handles:
- Registration (email/password)
- Login / logout (Django session)
- Current user profile
"""

import logging

from django.contrib.auth import authenticate, login, logout
from django.http import JsonResponse
from django.utils.decorators import method_decorator
from django.views.decorators.csrf import ensure_csrf_cookie

from .adapters import dashboard_path_for
from .mixins import ApiLoginRequiredMixin, ApiView
from .serializers import agent_to_dict, user_to_dict
from .services import register_user

logger = logging.getLogger('core.auth')

SESSION_BACKEND = 'django.contrib.auth.backends.ModelBackend'


class RegisterView(ApiView):
    """
    Create an account and log it in.

    POST {email, password, name, phone?}
    """

    def post(self, request):
        data = self.json_body()
        if not (data.get('name') or '').strip():
            return JsonResponse({'error': 'Name is required'}, status=400)

        user = register_user(
            email=data.get('email'),
            password=data.get('password'),
            name=data.get('name'),
            phone=data.get('phone', ''),
        )
        login(request, user, backend=SESSION_BACKEND)
        return JsonResponse({'user': user_to_dict(user), 'redirect': dashboard_path_for(user)}, status=201)


class LoginView(ApiView):
    """
    POST {email, password}
    """

    def post(self, request):
        data = self.json_body()
        email = (data.get('email') or '').strip().lower()
        password = data.get('password') or ''
        if not email or not password:
            return JsonResponse({'error': 'Email and password are required'}, status=400)

        user = authenticate(request, email=email, password=password)
        if user is None:
            logger.warning(f"Failed login: email={email}, ip={request.META.get('REMOTE_ADDR')}")
            return JsonResponse({'error': 'Invalid email or password'}, status=401)

        login(request, user, backend=SESSION_BACKEND)
        logger.info(f"User logged in: email={email}")
        return JsonResponse({'user': user_to_dict(user), 'redirect': dashboard_path_for(user)})


class LogoutView(ApiView):

    def post(self, request):
        if request.user.is_authenticated:
            logger.info(f"User logged out: email={request.user.email}")
        logout(request)
        return JsonResponse({'success': True})


@method_decorator(ensure_csrf_cookie, name='dispatch')
class MeView(ApiLoginRequiredMixin, ApiView):
    """Current user, with their storefront when they have one."""

    def get(self, request):
        from .models import Agent

        agent = Agent.objects.select_related('user').filter(user=request.user).first()
        return JsonResponse({
            'user': user_to_dict(request.user),
            'agent': agent_to_dict(agent) if agent else None,
        })
