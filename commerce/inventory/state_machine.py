"""
Stock document lifecycle and movement rules.

Pure functions only; the ledger writes live in services.py.
"""
from commerce.core.i18n import label_for

DOCUMENT_TYPES = ('GRN', 'ISSUE', 'ADJUSTMENT', 'TRANSFER', 'RESERVE', 'RELEASE', 'DEDUCT', 'RESTOCK')
DOCUMENT_STATUSES = ('DRAFT', 'POSTED', 'VOID')
REFERENCE_TYPES = ('ORDER', 'PO', 'MANUAL')
ORDER_STOCK_ACTIONS = ('RESERVE', 'DEDUCT', 'RELEASE', 'RESTOCK')

DOCUMENT_TYPE_LABELS = {
    'GRN': {'en': 'Goods Receipt', 'vi': 'Nhập kho'},
    'ISSUE': {'en': 'Goods Issue', 'vi': 'Xuất kho'},
    'ADJUSTMENT': {'en': 'Adjustment', 'vi': 'Điều chỉnh'},
    'TRANSFER': {'en': 'Transfer', 'vi': 'Chuyển kho'},
    'RESERVE': {'en': 'Reserve', 'vi': 'Giữ hàng'},
    'RELEASE': {'en': 'Release', 'vi': 'Hủy giữ'},
    'DEDUCT': {'en': 'Deduct', 'vi': 'Trừ kho'},
    'RESTOCK': {'en': 'Restock', 'vi': 'Hoàn kho'},
}

DOCUMENT_STATUS_LABELS = {
    'DRAFT': {'en': 'Draft', 'vi': 'Nháp'},
    'POSTED': {'en': 'Posted', 'vi': 'Đã duyệt'},
    'VOID': {'en': 'Void', 'vi': 'Đã hủy'},
}

DOCUMENT_STATUS_FLOW = {
    'DRAFT': ('POSTED', 'VOID'),
    'POSTED': ('VOID',),
    'VOID': (),
}

# Code prefixes must not collide: RESERVE/RESTOCK and RELEASE share their first letters
DOCUMENT_CODE_PREFIXES = {
    'GRN': 'GRN',
    'ISSUE': 'ISS',
    'ADJUSTMENT': 'ADJ',
    'TRANSFER': 'TRA',
    'RESERVE': 'RSV',
    'RELEASE': 'REL',
    'DEDUCT': 'DED',
    'RESTOCK': 'RST',
}

# Types whose lines must carry a strictly positive quantity
POSITIVE_QTY_TYPES = ('GRN', 'ISSUE', 'TRANSFER', 'RESERVE', 'RELEASE', 'DEDUCT', 'RESTOCK')


def is_allowed_transition(from_status, to_status):
    if from_status == to_status:
        return True
    return to_status in DOCUMENT_STATUS_FLOW.get(from_status, ())


def allowed_next(status):
    return list(DOCUMENT_STATUS_FLOW.get(status, ()))


def can_post(status):
    return status == 'DRAFT'


def can_void(status):
    return status in ('DRAFT', 'POSTED')


def get_movement_direction(doc_type):
    if doc_type in ('GRN', 'RESTOCK', 'RELEASE'):
        return 'IN'
    if doc_type in ('ISSUE', 'DEDUCT', 'RESERVE'):
        return 'OUT'
    if doc_type == 'TRANSFER':
        return 'TRANSFER'
    return 'ADJUST'


def get_quantity_sign(doc_type):
    """Sign applied to on-hand quantity for a positive line qty"""
    if doc_type in ('GRN', 'RESTOCK'):
        return 1
    if doc_type in ('ISSUE', 'DEDUCT'):
        return -1
    return 0


def get_reserved_change(doc_type):
    """Sign applied to reserved quantity for a positive line qty"""
    if doc_type == 'RESERVE':
        return 1
    if doc_type in ('RELEASE', 'DEDUCT'):
        return -1
    return 0


def get_reverse_type(doc_type):
    if doc_type in ('GRN', 'RESTOCK'):
        return 'ISSUE'
    if doc_type in ('ISSUE', 'DEDUCT'):
        return 'RESTOCK'
    if doc_type == 'RESERVE':
        return 'RELEASE'
    if doc_type == 'RELEASE':
        return 'RESERVE'
    return 'ADJUSTMENT'


def document_type_label(doc_type, locale='vi'):
    return label_for(DOCUMENT_TYPE_LABELS, doc_type, locale)


def document_status_label(status, locale='vi'):
    return label_for(DOCUMENT_STATUS_LABELS, status, locale)
