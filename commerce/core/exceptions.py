"""DRF exception handler rendering every failure as an error envelope"""
import logging

from rest_framework.response import Response

from .errors import wrap_error

logger = logging.getLogger(__name__)


def api_exception_handler(exc, context):
    error = wrap_error(exc)
    view = context.get('view')
    view_name = view.__class__.__name__ if view else 'unknown'

    if not error.is_operational:
        logger.exception(f"Unhandled error in {view_name}: {exc}", exc_info=exc)
        body = {'code': error.code, 'message': 'An unexpected error occurred', 'timestamp': error.timestamp.isoformat()}
    else:
        if error.http_status >= 500:
            logger.error(f"{view_name} failed: {error}")
        else:
            logger.info(f"{view_name} rejected request: {error}")
        body = error.to_dict()

    response = Response({'success': False, 'error': body}, status=error.http_status)
    retry_after = getattr(exc, 'wait', None)
    if retry_after:
        response['Retry-After'] = str(int(retry_after))
    return response
