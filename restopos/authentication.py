from rest_framework.authentication import BaseAuthentication
from rest_framework.exceptions import AuthenticationFailed
from django.conf import settings


class APIKeyAuthentication(BaseAuthentication):
    """
    Shared API key authentication for POS terminals and the kitchen display,
    sent in the X-API-Key header
    """

    def authenticate(self, request):
        api_key = request.META.get('HTTP_X_API_KEY')

        if not api_key:
            return None

        if api_key != settings.API_KEY:
            raise AuthenticationFailed('Invalid API key')

        # Terminals are not individual staff accounts, so there is no user
        return (None, api_key)

    def authenticate_header(self, request):
        return 'X-API-Key'


def staff_user(request):
    """Return the logged-in staff user behind a request, or None."""
    user = getattr(request, 'user', None)
    if user is not None and getattr(user, 'is_authenticated', False):
        return user
    return None
