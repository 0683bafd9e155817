from rest_framework.permissions import BasePermission


class APIKeyPermission(BasePermission):
    """
    Allow requests that carried a valid API key, or came from a logged-in
    staff session
    """

    def has_permission(self, request, view):
        # APIKeyAuthentication returns (None, api_key) on success, so
        # request.auth is the key string
        if getattr(request, 'auth', None) is not None:
            return True
        user = getattr(request, 'user', None)
        return bool(user is not None and user.is_authenticated and user.is_staff)
