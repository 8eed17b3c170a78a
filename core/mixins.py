"""
View mixins for the JSON API.

Handles:
- Turning domain errors into JSON error responses
- Session login, admin and agent checks answered with JSON 401/403
- API key authentication for integrators
"""

import json
import logging

from django.http import JsonResponse
from django.views import View

from .exceptions import ApiKeyError, OrderError, PermissionDenied, ResellerError

logger = logging.getLogger('core')


def parse_json(request):
    """Decode a JSON request body; an empty body is an empty dict."""
    if not request.body:
        return {}
    try:
        data = json.loads(request.body)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise OrderError('Invalid JSON') from e
    if not isinstance(data, dict):
        raise OrderError('Expected a JSON object')
    return data


class ApiView(View):
    """
    Base view for /api/ endpoints.

    Domain errors become {"error": ...} with their HTTP status; anything
    unexpected is logged and answered with a 500.
    """

    def dispatch(self, request, *args, **kwargs):
        try:
            return super().dispatch(request, *args, **kwargs)
        except ResellerError as e:
            return JsonResponse(e.as_dict(), status=e.status_code)
        except Exception:
            logger.exception(f"Unhandled error on {request.method} {request.path}")
            return JsonResponse({'error': 'Internal server error'}, status=500)

    def json_body(self):
        return parse_json(self.request)


class ApiLoginRequiredMixin:
    """Like LoginRequiredMixin, but answers anonymous requests with JSON 401."""

    def dispatch(self, request, *args, **kwargs):
        if not request.user.is_authenticated:
            return JsonResponse({'error': 'Authentication required'}, status=401)
        return super().dispatch(request, *args, **kwargs)


class AdminRequiredMixin(ApiLoginRequiredMixin):

    def dispatch(self, request, *args, **kwargs):
        if request.user.is_authenticated and not request.user.is_admin:
            return JsonResponse({'error': 'Admin access required'}, status=403)
        return super().dispatch(request, *args, **kwargs)


class AgentRequiredMixin(ApiLoginRequiredMixin):
    """Requires an agent profile; sets self.agent."""

    require_approved = True

    def dispatch(self, request, *args, **kwargs):
        if request.user.is_authenticated:
            from .models import Agent

            self.agent = Agent.objects.select_related('user').filter(user=request.user).first()
            if self.agent is None:
                return JsonResponse({'error': 'Agent profile not found'}, status=404)
            if self.require_approved and not self.agent.is_approved:
                return JsonResponse({'error': 'Your storefront is not active yet'}, status=403)
        return super().dispatch(request, *args, **kwargs)


class ApiKeyRequiredMixin:
    """
    Authenticates integrators by the X-API-Key header.

    Sets self.api_key and self.api_user. `required_permissions` lists the
    permissions the key must carry.
    """

    required_permissions = ()

    def dispatch(self, request, *args, **kwargs):
        from .api_keys import authenticate_api_key

        try:
            self.api_key = authenticate_api_key(
                request.headers.get('X-API-Key', ''),
                required=self.required_permissions,
            )
        except (ApiKeyError, PermissionDenied) as e:
            return JsonResponse(e.as_dict(), status=e.status_code)
        self.api_user = self.api_key.user
        return super().dispatch(request, *args, **kwargs)
