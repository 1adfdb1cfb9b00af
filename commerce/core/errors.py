"""
Application error type and error codes shared by every app.

Services raise AppError; the DRF exception handler in core.exceptions
turns it into a JSON error body with the mapped HTTP status.
"""
import logging

from django.core.exceptions import ObjectDoesNotExist, ValidationError as DjangoValidationError
from django.db import IntegrityError
from django.http import Http404
from django.utils import timezone
from rest_framework import exceptions as drf_exceptions

logger = logging.getLogger(__name__)


class ErrorCode:
    # Generic
    VALIDATION_ERROR = 'VALIDATION_ERROR'
    NOT_FOUND = 'NOT_FOUND'
    AUTH_REQUIRED = 'AUTH_REQUIRED'
    AUTH_FORBIDDEN = 'AUTH_FORBIDDEN'
    AUTH_INSUFFICIENT_ROLE = 'AUTH_INSUFFICIENT_ROLE'
    CONFLICT = 'CONFLICT'
    ALREADY_EXISTS = 'ALREADY_EXISTS'
    RATE_LIMIT_EXCEEDED = 'RATE_LIMIT_EXCEEDED'
    INTERNAL_ERROR = 'INTERNAL_ERROR'

    # Orders
    ORDER_NOT_FOUND = 'ORDER_NOT_FOUND'
    ORDER_INVALID_TRANSITION = 'ORDER_INVALID_TRANSITION'
    ORDER_CANNOT_CANCEL = 'ORDER_CANNOT_CANCEL'
    PAYMENT_INVALID_AMOUNT = 'PAYMENT_INVALID_AMOUNT'
    PAYMENT_EXCEEDS_OUTSTANDING = 'PAYMENT_EXCEEDS_OUTSTANDING'
    CHECKOUT_EMPTY_CART = 'CHECKOUT_EMPTY_CART'
    CHECKOUT_PRODUCT_UNAVAILABLE = 'CHECKOUT_PRODUCT_UNAVAILABLE'

    # Inventory
    INVENTORY_NOT_FOUND = 'INVENTORY_NOT_FOUND'
    INVENTORY_INSUFFICIENT_STOCK = 'INVENTORY_INSUFFICIENT_STOCK'
    INVENTORY_INVALID_TRANSITION = 'INVENTORY_INVALID_TRANSITION'
    INVENTORY_DOCUMENT_ALREADY_POSTED = 'INVENTORY_DOCUMENT_ALREADY_POSTED'
    INVENTORY_DOCUMENT_VOID_NOT_ALLOWED = 'INVENTORY_DOCUMENT_VOID_NOT_ALLOWED'

    # Storefront
    COUPON_INVALID = 'COUPON_INVALID'
    REVIEW_DUPLICATE = 'REVIEW_DUPLICATE'
    UPLOAD_INVALID_FILE = 'UPLOAD_INVALID_FILE'
    UPLOAD_FILE_TOO_LARGE = 'UPLOAD_FILE_TOO_LARGE'


ERROR_HTTP_STATUS = {
    ErrorCode.VALIDATION_ERROR: 400,
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.AUTH_REQUIRED: 401,
    ErrorCode.AUTH_FORBIDDEN: 403,
    ErrorCode.AUTH_INSUFFICIENT_ROLE: 403,
    ErrorCode.CONFLICT: 409,
    ErrorCode.ALREADY_EXISTS: 409,
    ErrorCode.RATE_LIMIT_EXCEEDED: 429,
    ErrorCode.INTERNAL_ERROR: 500,
    ErrorCode.ORDER_NOT_FOUND: 404,
    ErrorCode.ORDER_INVALID_TRANSITION: 409,
    ErrorCode.ORDER_CANNOT_CANCEL: 409,
    ErrorCode.PAYMENT_INVALID_AMOUNT: 400,
    ErrorCode.PAYMENT_EXCEEDS_OUTSTANDING: 409,
    ErrorCode.CHECKOUT_EMPTY_CART: 400,
    ErrorCode.CHECKOUT_PRODUCT_UNAVAILABLE: 409,
    ErrorCode.INVENTORY_NOT_FOUND: 404,
    ErrorCode.INVENTORY_INSUFFICIENT_STOCK: 409,
    ErrorCode.INVENTORY_INVALID_TRANSITION: 409,
    ErrorCode.INVENTORY_DOCUMENT_ALREADY_POSTED: 409,
    ErrorCode.INVENTORY_DOCUMENT_VOID_NOT_ALLOWED: 409,
    ErrorCode.COUPON_INVALID: 400,
    ErrorCode.REVIEW_DUPLICATE: 409,
    ErrorCode.UPLOAD_INVALID_FILE: 400,
    ErrorCode.UPLOAD_FILE_TOO_LARGE: 400,
}


class AppError(Exception):
    """Operational error with a stable code, an HTTP status and optional details"""

    def __init__(self, code, message, details=None, is_operational=True):
        super().__init__(message)
        self.code = code
        self.message = message
        self.http_status = ERROR_HTTP_STATUS.get(code, 500)
        self.details = details
        self.is_operational = is_operational
        self.timestamp = timezone.now()

    def __str__(self):
        return f"{self.code}: {self.message}"

    def to_dict(self):
        data = {
            'code': self.code,
            'message': self.message,
            'timestamp': self.timestamp.isoformat(),
        }
        if self.details is not None:
            data['details'] = self.details
        return data

    @classmethod
    def validation(cls, message, fields=None):
        """fields: iterable of (field, message) pairs or a {field: message} dict"""
        details = None
        if fields:
            items = fields.items() if isinstance(fields, dict) else fields
            details = [{'field': field, 'constraint': constraint} for field, constraint in items]
        return cls(ErrorCode.VALIDATION_ERROR, message, details)

    @classmethod
    def not_found(cls, resource, id=None, code=ErrorCode.NOT_FOUND):
        message = f"{resource} with ID {id} not found" if id is not None else f"{resource} not found"
        return cls(code, message, [{'resource': resource, 'id': str(id) if id is not None else None}])

    @classmethod
    def auth_required(cls, message='Authentication required'):
        return cls(ErrorCode.AUTH_REQUIRED, message)

    @classmethod
    def forbidden(cls, message='Access denied'):
        return cls(ErrorCode.AUTH_FORBIDDEN, message)

    @classmethod
    def insufficient_role(cls, required_role):
        return cls(
            ErrorCode.AUTH_INSUFFICIENT_ROLE,
            f"Insufficient permissions. Required role: {required_role}",
            [{'required_role': required_role}],
        )

    @classmethod
    def conflict(cls, message, details=None):
        return cls(ErrorCode.CONFLICT, message, details)

    @classmethod
    def already_exists(cls, resource, field, value):
        return cls(
            ErrorCode.ALREADY_EXISTS,
            f"{resource} with {field} '{value}' already exists",
            [{'field': field, 'value': value}],
        )

    @classmethod
    def rate_limit_exceeded(cls, retry_after=None):
        details = [{'retry_after': retry_after}] if retry_after else None
        return cls(ErrorCode.RATE_LIMIT_EXCEEDED, 'Too many requests. Please try again later.', details)

    @classmethod
    def internal(cls, message='An unexpected error occurred'):
        return cls(ErrorCode.INTERNAL_ERROR, message, is_operational=False)


def _flatten_drf_detail(detail, prefix=''):
    """Turn a nested DRF error dict/list into [{'field', 'constraint'}] rows"""
    rows = []
    if isinstance(detail, dict):
        for key, value in detail.items():
            field = f"{prefix}.{key}" if prefix else str(key)
            rows.extend(_flatten_drf_detail(value, field))
    elif isinstance(detail, list):
        for index, value in enumerate(detail):
            if isinstance(value, (dict, list)):
                rows.extend(_flatten_drf_detail(value, f"{prefix}.{index}" if prefix else str(index)))
            else:
                rows.append({'field': prefix or 'non_field_errors', 'constraint': str(value)})
    else:
        rows.append({'field': prefix or 'non_field_errors', 'constraint': str(detail)})
    return rows


def wrap_error(exc):
    """Convert any exception into an AppError"""
    if isinstance(exc, AppError):
        return exc

    if isinstance(exc, drf_exceptions.ValidationError):
        return AppError(ErrorCode.VALIDATION_ERROR, 'Validation failed', _flatten_drf_detail(exc.detail))

    if isinstance(exc, DjangoValidationError):
        if hasattr(exc, 'message_dict'):
            detail = exc.message_dict
        else:
            detail = exc.messages
        return AppError(ErrorCode.VALIDATION_ERROR, 'Validation failed', _flatten_drf_detail(detail))

    if isinstance(exc, (Http404, ObjectDoesNotExist, drf_exceptions.NotFound)):
        return AppError(ErrorCode.NOT_FOUND, 'Record not found')

    if isinstance(exc, IntegrityError):
        return AppError(ErrorCode.ALREADY_EXISTS, 'Record violates a uniqueness or reference constraint')

    if isinstance(exc, drf_exceptions.NotAuthenticated):
        return AppError.auth_required()

    if isinstance(exc, drf_exceptions.AuthenticationFailed):
        return AppError(ErrorCode.AUTH_REQUIRED, str(exc.detail))

    if isinstance(exc, drf_exceptions.PermissionDenied):
        return AppError.forbidden(str(exc.detail))

    if isinstance(exc, drf_exceptions.Throttled):
        return AppError.rate_limit_exceeded(int(exc.wait) if exc.wait else None)

    if isinstance(exc, drf_exceptions.APIException):
        # MethodNotAllowed, ParseError, UnsupportedMediaType and friends
        error = AppError(ErrorCode.VALIDATION_ERROR, str(exc.detail))
        error.http_status = exc.status_code
        return error

    return AppError(ErrorCode.INTERNAL_ERROR, str(exc) or exc.__class__.__name__, is_operational=False)
