"""Base error type for the order, stock and payment services.

Services raise subclasses of ServiceError; the REST layer turns them into
responses of the form {"error": message, "code": code, ...context}.
"""

import logging

from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class ServiceError(Exception):
    status_code = 400
    code = 'invalid'
    default_message = 'Request could not be processed'

    def __init__(self, message=None, **context):
        self.message = message or self.default_message
        self.context = context
        super().__init__(self.message)

    def as_dict(self):
        data = {'error': self.message, 'code': self.code}
        data.update({key: _plain(value) for key, value in self.context.items()})
        return data


def _plain(value):
    # Decimals are rendered as strings, matching the serializers
    if isinstance(value, (list, tuple, set)):
        return [_plain(v) for v in value]
    if hasattr(value, 'as_tuple'):
        return str(value)
    return value


def api_exception_handler(exc, context):
    """DRF exception handler that also understands ServiceError."""
    if isinstance(exc, ServiceError):
        view = context.get('view')
        logger.warning(
            "%s rejected by %s: %s",
            exc.__class__.__name__,
            view.__class__.__name__ if view else 'unknown view',
            exc.message,
        )
        return Response(exc.as_dict(), status=exc.status_code)
    return exception_handler(exc, context)
