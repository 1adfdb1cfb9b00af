"""
Coupon evaluation and redemption.

evaluate_coupon is read-only; checkout calls redeem_coupon inside its own
transaction once the order row exists.
"""
import logging
from decimal import Decimal

from django.db.models import F
from django.utils import timezone

from commerce.catalog.models import Product
from commerce.core.errors import AppError, ErrorCode
from commerce.core.money import round_money, to_decimal
from .models import Coupon, CouponUsage

logger = logging.getLogger(__name__)

REASON_MESSAGES = {
    'not_found': 'Coupon code does not exist',
    'inactive': 'Coupon is no longer active',
    'not_started': 'Coupon is not valid yet',
    'expired': 'Coupon has expired',
    'usage_limit_reached': 'Coupon usage limit has been reached',
    'user_limit_reached': 'You have already used this coupon the maximum number of times',
    'min_order_not_met': 'Order subtotal is below the coupon minimum',
    'min_quantity_not_met': 'Order quantity is below the coupon minimum',
    'login_required': 'Please sign in to use this coupon',
    'not_eligible_customer': 'Coupon is not available for your account',
    'not_first_order': 'Coupon is only valid for the first order',
    'not_applicable': 'Coupon does not apply to any item in the cart',
}


def coupon_error(reason, **extra):
    details = {'reason': reason}
    details.update(extra)
    return AppError(ErrorCode.COUPON_INVALID, REASON_MESSAGES[reason], details)


def _item_value(item, key, default=None):
    return item.get(key, default) if isinstance(item, dict) else getattr(item, key, default)


def _line_amount(item):
    return to_decimal(_item_value(item, 'price')) * to_decimal(_item_value(item, 'quantity'))


def _eligible_items(coupon, items):
    if coupon.target_type == 'SPECIFIC_PRODUCTS':
        product_ids = set(coupon.products.values_list('id', flat=True))
        return [item for item in items if _item_value(item, 'product_id') in product_ids]

    if coupon.target_type == 'SPECIFIC_CATEGORIES':
        category_ids = set(coupon.categories.values_list('id', flat=True))
        missing = [_item_value(item, 'product_id') for item in items if _item_value(item, 'category_id') is None]
        product_categories = dict(
            Product.objects.filter(id__in=missing).values_list('id', 'category_id')
        ) if missing else {}
        eligible = []
        for item in items:
            category_id = _item_value(item, 'category_id')
            if category_id is None:
                category_id = product_categories.get(_item_value(item, 'product_id'))
            if category_id in category_ids:
                eligible.append(item)
        return eligible

    return list(items)


def _check_customer_target(coupon, user):
    if coupon.target_type not in ('SPECIFIC_CUSTOMERS', 'FIRST_ORDER'):
        return
    if user is None or not user.is_authenticated:
        raise coupon_error('login_required')
    if coupon.target_type == 'SPECIFIC_CUSTOMERS':
        if not coupon.customers.filter(pk=user.pk).exists():
            raise coupon_error('not_eligible_customer')
    else:
        from commerce.orders.models import Order
        if Order.objects.filter(user=user).exclude(order_status='CANCELED').exists():
            raise coupon_error('not_first_order')


def calculate_discount(coupon, eligible_subtotal, currency='VND'):
    """Discount for an eligible subtotal, rounded to the currency minor unit"""
    if coupon.discount_type == 'PERCENTAGE':
        amount = eligible_subtotal * coupon.discount_value / Decimal('100')
        if coupon.max_discount is not None and amount > coupon.max_discount:
            amount = coupon.max_discount
    elif coupon.discount_type == 'FIXED_AMOUNT':
        amount = min(coupon.discount_value, eligible_subtotal)
    else:
        amount = Decimal('0')
    return round_money(max(amount, Decimal('0')), currency)


def evaluate_coupon(code, items, subtotal, user=None, now=None, currency='VND'):
    """
    Validate a coupon against a cart and compute its discount.

    items: dicts (or objects) with product_id, quantity, price and optionally category_id.
    Raises AppError(COUPON_INVALID) with details.reason on the first failed check.
    """
    now = now or timezone.now()
    subtotal = to_decimal(subtotal)
    normalized = (code or '').strip().upper()

    coupon = Coupon.objects.filter(code=normalized).first() if normalized else None
    if coupon is None:
        raise coupon_error('not_found')
    if coupon.status != 'ACTIVE':
        raise coupon_error('inactive')
    if coupon.starts_at and coupon.starts_at > now:
        raise coupon_error('not_started')
    if coupon.expires_at and coupon.expires_at <= now:
        raise coupon_error('expired')
    if coupon.usage_limit is not None and coupon.used_count >= coupon.usage_limit:
        raise coupon_error('usage_limit_reached')
    if user is not None and user.is_authenticated:
        user_usage = CouponUsage.objects.filter(coupon=coupon, user=user).count()
        if user_usage >= coupon.usage_per_user:
            raise coupon_error('user_limit_reached')
    if coupon.min_order_amount is not None and subtotal < coupon.min_order_amount:
        raise coupon_error('min_order_not_met', min_order_amount=str(coupon.min_order_amount))
    total_quantity = sum(to_decimal(_item_value(item, 'quantity')) for item in items)
    if coupon.min_quantity and total_quantity < coupon.min_quantity:
        raise coupon_error('min_quantity_not_met', min_quantity=coupon.min_quantity)

    _check_customer_target(coupon, user)

    eligible_subtotal = subtotal
    if coupon.target_type in ('SPECIFIC_PRODUCTS', 'SPECIFIC_CATEGORIES'):
        eligible_subtotal = sum((_line_amount(item) for item in _eligible_items(coupon, items)), Decimal('0'))
        if eligible_subtotal <= 0:
            raise coupon_error('not_applicable')

    discount_amount = calculate_discount(coupon, eligible_subtotal, currency)
    return {
        'coupon': coupon,
        'coupon_id': coupon.id,
        'code': coupon.code,
        'name': coupon.name,
        'discount_type': coupon.discount_type,
        'discount_value': coupon.discount_value,
        'discount_amount': discount_amount,
        'eligible_subtotal': eligible_subtotal,
        'free_shipping': coupon.discount_type == 'FREE_SHIPPING',
    }


def redeem_coupon(coupon, user, order, amount):
    """Count one use of the coupon and record who used it on which order"""
    Coupon.objects.filter(pk=coupon.pk).update(used_count=F('used_count') + 1)
    usage = CouponUsage.objects.create(
        coupon=coupon,
        user=user if user is not None and user.is_authenticated else None,
        order=order,
        discount_amount=amount,
    )
    logger.info(f"Coupon {coupon.code} redeemed on order {getattr(order, 'code', None)} for {amount}")
    return usage
