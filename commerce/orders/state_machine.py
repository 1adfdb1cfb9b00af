"""
Order workflow: allowed transitions, derived statuses and the stock action
each transition triggers.
"""
from commerce.core.i18n import label_for

ORDER_STATUSES = (
    'DRAFT', 'PENDING_CONFIRMATION', 'CONFIRMED', 'PACKING', 'SHIPPED',
    'DELIVERED', 'RETURN_REQUESTED', 'RETURNED', 'CANCELED', 'FAILED',
)
PAYMENT_STATES = ('UNPAID', 'PARTIAL', 'PAID', 'REFUNDED')
FULFILLMENT_STATUSES = ('UNFULFILLED', 'PACKING', 'SHIPPED', 'DELIVERED', 'RETURNED')
ACCOUNTING_STATUSES = ('PENDING_PAYMENT', 'PARTIALLY_PAID', 'PAID', 'COMPLETED', 'CANCELLED')

ORDER_STATUS_FLOW = {
    'DRAFT': ('PENDING_CONFIRMATION', 'CANCELED'),
    'PENDING_CONFIRMATION': ('CONFIRMED', 'CANCELED', 'FAILED'),
    'CONFIRMED': ('PACKING', 'CANCELED', 'FAILED'),
    'PACKING': ('SHIPPED', 'CANCELED', 'FAILED'),
    'SHIPPED': ('DELIVERED', 'RETURN_REQUESTED'),
    'DELIVERED': ('RETURN_REQUESTED',),
    'RETURN_REQUESTED': ('RETURNED', 'DELIVERED'),
    'RETURNED': (),
    'CANCELED': (),
    'FAILED': (),
}

FINAL_STATUSES = ('DELIVERED', 'RETURNED', 'CANCELED', 'FAILED')

ORDER_STATUS_LABELS = {
    'DRAFT': {'en': 'Draft', 'vi': 'Nháp'},
    'PENDING_CONFIRMATION': {'en': 'Pending', 'vi': 'Chờ xác nhận'},
    'CONFIRMED': {'en': 'Confirmed', 'vi': 'Đã xác nhận'},
    'PACKING': {'en': 'Packing', 'vi': 'Đang đóng gói'},
    'SHIPPED': {'en': 'Shipped', 'vi': 'Đã gửi'},
    'DELIVERED': {'en': 'Delivered', 'vi': 'Đã giao'},
    'RETURN_REQUESTED': {'en': 'Return Requested', 'vi': 'Yêu cầu trả hàng'},
    'RETURNED': {'en': 'Returned', 'vi': 'Đã trả hàng'},
    'CANCELED': {'en': 'Canceled', 'vi': 'Đã hủy'},
    'FAILED': {'en': 'Failed', 'vi': 'Thất bại'},
}

ACCOUNTING_STATUS_LABELS = {
    'PENDING_PAYMENT': {'en': 'Pending Payment', 'vi': 'Chờ thanh toán'},
    'PARTIALLY_PAID': {'en': 'Partially Paid', 'vi': 'Thanh toán một phần'},
    'PAID': {'en': 'Paid', 'vi': 'Đã thanh toán'},
    'COMPLETED': {'en': 'Completed', 'vi': 'Hoàn tất'},
    'CANCELLED': {'en': 'Cancelled', 'vi': 'Đã hủy'},
}

_FULFILLMENT_BY_STATUS = {
    'PACKING': 'PACKING',
    'SHIPPED': 'SHIPPED',
    'DELIVERED': 'DELIVERED',
    'RETURN_REQUESTED': 'DELIVERED',
    'RETURNED': 'RETURNED',
}

_LEGACY_STATUS = {
    'PENDING_CONFIRMATION': 'PENDING',
    'PACKING': 'PROCESSING',
    'DELIVERED': 'COMPLETED',
    'CANCELED': 'CANCELLED',
}


def is_allowed_transition(from_status, to_status):
    if from_status == to_status:
        return True
    return to_status in ORDER_STATUS_FLOW.get(from_status, ())


def allowed_next(status):
    return list(ORDER_STATUS_FLOW.get(status, ()))


def can_modify(status):
    return status not in FINAL_STATUSES


def can_cancel(status):
    return 'CANCELED' in ORDER_STATUS_FLOW.get(status, ())


def fulfillment_for_status(status):
    return _FULFILLMENT_BY_STATUS.get(status, 'UNFULFILLED')


def legacy_status_for(status):
    return _LEGACY_STATUS.get(status, status)


def stock_action_for_transition(from_status, to_status):
    """RESERVE on confirm, DEDUCT on ship, RELEASE on cancel of reserved stock, RESTOCK on return"""
    if from_status == to_status:
        return None
    if to_status == 'CONFIRMED':
        return 'RESERVE'
    if to_status == 'SHIPPED':
        return 'DEDUCT'
    if to_status in ('CANCELED', 'FAILED') and from_status in ('CONFIRMED', 'PACKING'):
        return 'RELEASE'
    if to_status == 'RETURNED' and from_status in ('SHIPPED', 'DELIVERED', 'RETURN_REQUESTED'):
        return 'RESTOCK'
    return None


def order_status_label(status, locale='vi'):
    return label_for(ORDER_STATUS_LABELS, status, locale)


def accounting_status_label(status, locale='vi'):
    return label_for(ACCOUNTING_STATUS_LABELS, status, locale)
