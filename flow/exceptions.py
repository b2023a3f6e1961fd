import logging

from rest_framework.response import Response
from rest_framework.views import exception_handler as drf_exception_handler

from flow.errors import FlowError

logger = logging.getLogger(__name__)


def api_exception_handler(exc, context):
    """Render every failure as ``{"ok": false, "error": {...}}``."""
    if isinstance(exc, FlowError):
        return Response({'ok': False, 'error': exc.as_dict()}, status=exc.status_code)
    resp = drf_exception_handler(exc, context)
    if resp is None:
        logger.exception('unhandled error in %s', getattr(context.get('view'), '__name__', context.get('view')))
        return Response({'ok': False, 'error': {'code': 'server_error', 'message': 'internal error'}}, status=500)
    # normalize response
    if isinstance(resp.data, dict):
        detail = resp.data.get('detail') or resp.data
    else:
        detail = resp.data
    code = getattr(exc, 'default_code', 'api_error')
    return Response({'ok': False, 'error': {'code': code, 'message': detail}}, status=resp.status_code)
