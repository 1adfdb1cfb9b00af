"""
Order services: checkout, status workflow, payments and financial state.

Status changes trigger stock actions on the default warehouse once the
status transaction commits; a failed stock action is logged and leaves the
status change in place.
"""
import logging
from datetime import timedelta
from decimal import Decimal

from django.conf import settings
from django.db import IntegrityError, transaction
from django.db.models import F, Sum
from django.utils import timezone

from commerce.catalog.models import Product
from commerce.core.cache_utils import invalidate_reports_cache
from commerce.core.errors import AppError, ErrorCode
from commerce.core.money import round_money, to_decimal
from commerce.core.utils import create_audit_log
from commerce.inventory.services import execute_order_stock_action
from commerce.parties.models import CustomerProfile
from commerce.pricing.services import evaluate_coupon, redeem_coupon
from .models import Order, OrderCounter, OrderItem, OrderStatusHistory, Payment
from .state_machine import (
    ORDER_STATUSES, is_allowed_transition, allowed_next, fulfillment_for_status, stock_action_for_transition,
)

logger = logging.getLogger(__name__)

STATUS_TIMESTAMPS = {
    'CONFIRMED': 'confirmed_at',
    'SHIPPED': 'shipped_at',
    'DELIVERED': 'delivered_at',
    'CANCELED': 'canceled_at',
}


def allocate_order_code(now=None):
    """Next {PREFIX}-{year}-{seq:06d}; the year counter row is locked until the caller commits"""
    now = now or timezone.now()
    prefix = getattr(settings, 'ORDER_CODE_PREFIX', 'CE')
    with transaction.atomic():
        counter, _ = OrderCounter.objects.select_for_update().get_or_create(year=now.year)
        seq = counter.last_seq + 1
        code = f"{prefix}-{now.year}-{seq:06d}"
        while Order.objects.filter(code=code).exists():
            seq += 1
            code = f"{prefix}-{now.year}-{seq:06d}"
        counter.last_seq = seq
        counter.save(update_fields=['last_seq'])
    return code


def _resolve_buyer_info(buyer_info, user):
    if buyer_info and buyer_info.get('customer_type'):
        return buyer_info
    if user is not None:
        profile = CustomerProfile.objects.filter(user=user).first()
        if profile:
            return {
                'customer_type': profile.customer_type,
                'company_name': profile.company_name,
                'tax_id': profile.tax_id,
                'company_email': profile.company_email,
            }
    return {'customer_type': 'PERSONAL'}


def _address_snapshot(data, overrides, with_contact_defaults):
    overrides = overrides or {}
    snapshot = {
        'recipient_name': data.get('name', ''),
        'recipient_email': data.get('email', ''),
        'recipient_phone': data.get('phone', ''),
        'address_line1': data.get('address', '') if with_contact_defaults else '',
        'city': data.get('city', '') if with_contact_defaults else '',
        'country': 'Vietnam',
    }
    snapshot.update({key: value for key, value in overrides.items() if value not in (None, '')})
    return snapshot


def _build_items(items, currency):
    """Validate products and price every line; returns (rows, subtotal)"""
    product_ids = [item['product_id'] for item in items]
    products = Product.objects.in_bulk(product_ids)
    rows = []
    subtotal = Decimal('0')
    for item in items:
        product = products.get(item['product_id'])
        if product is None or not product.is_active:
            raise AppError(
                ErrorCode.CHECKOUT_PRODUCT_UNAVAILABLE,
                f"Product {item['product_id']} is not available",
                {'product_id': item['product_id']},
            )
        quantity = to_decimal(item['quantity'])
        if quantity <= 0:
            raise AppError.validation('Quantity must be greater than 0', {'quantity': 'min_value'})
        if product.price is not None:
            unit_price = product.price
        else:
            unit_price = to_decimal(item.get('price'), default=None)
            if unit_price is None or unit_price < 0:
                raise AppError.validation('Price must be zero or greater', {'price': 'min_value'})
        line_total = round_money(unit_price * quantity, currency)
        subtotal += line_total
        rows.append({
            'product': product,
            'sku': product.sku,
            'name': product.name_en or product.name_vi,
            'unit_price': unit_price,
            'quantity': quantity,
            'line_total': line_total,
        })
    return rows, subtotal


def _find_by_idempotency_key(idempotency_key):
    if not idempotency_key:
        return None
    return Order.objects.filter(idempotency_key=idempotency_key).first()


def checkout(data, user=None, idempotency_key=None, request=None):
    """
    Create an order from a validated checkout payload.

    Returns (order, created). Re-sending the same idempotency key returns the
    original order with created=False.
    """
    existing = _find_by_idempotency_key(idempotency_key)
    if existing:
        logger.info(f"Checkout replay for idempotency key, returning order {existing.code}")
        return existing, False

    items = data.get('items') or []
    if not items:
        raise AppError(ErrorCode.CHECKOUT_EMPTY_CART, 'Cart is empty')

    user = user if user is not None and user.is_authenticated else None
    currency = data.get('currency') or 'VND'
    buyer = _resolve_buyer_info(data.get('buyer_info'), user)
    is_business = buyer.get('customer_type') == 'BUSINESS'
    shipping_snapshot = _address_snapshot(data, data.get('shipping'), True)
    billing_snapshot = _address_snapshot(data, data.get('billing'), False) if data.get('billing') else None

    try:
        with transaction.atomic():
            rows, subtotal = _build_items(items, currency)
            shipping_fee = round_money(data.get('shipping_fee') or 0, currency)
            if shipping_fee < 0:
                raise AppError.validation('Shipping fee must be zero or greater', {'shipping_fee': 'min_value'})

            coupon_result = None
            discount = Decimal('0')
            coupon_code = (data.get('coupon_code') or '').strip().upper()
            if coupon_code:
                cart = [
                    {
                        'product_id': row['product'].id,
                        'category_id': row['product'].category_id,
                        'quantity': row['quantity'],
                        'price': row['unit_price'],
                    }
                    for row in rows
                ]
                coupon_result = evaluate_coupon(coupon_code, cart, subtotal, user=user, currency=currency)
                discount = min(coupon_result['discount_amount'], subtotal)
                if coupon_result['free_shipping']:
                    shipping_fee = Decimal('0')

            total = round_money(subtotal - discount + shipping_fee, currency)
            now = timezone.now()
            terms_days = getattr(settings, 'BUSINESS_PAYMENT_TERMS_DAYS', 30)

            order = Order.objects.create(
                code=allocate_order_code(now),
                user=user,
                idempotency_key=idempotency_key or None,
                customer_kind='BUSINESS' if is_business else 'INDIVIDUAL',
                buyer_type='BUSINESS' if is_business else 'PERSONAL',
                customer_name=data['name'],
                email=data['email'],
                phone=data['phone'],
                company_name=buyer.get('company_name') or '',
                tax_id=buyer.get('tax_id') or '',
                shipping_address=shipping_snapshot,
                billing_address=billing_snapshot,
                order_status='PENDING_CONFIRMATION',
                payment_state='UNPAID',
                fulfillment_status='UNFULFILLED',
                accounting_status='PENDING_PAYMENT',
                currency=currency,
                subtotal=subtotal,
                discount_total=discount,
                shipping_fee=shipping_fee,
                total=total,
                paid_amount=Decimal('0'),
                outstanding_amount=total,
                coupon_code=coupon_result['code'] if coupon_result else '',
                payment_method=data.get('payment_method') or 'COD',
                due_date=now + timedelta(days=terms_days) if is_business else None,
                note=data.get('notes') or '',
            )
            OrderItem.objects.bulk_create([OrderItem(order=order, **row) for row in rows])
            OrderStatusHistory.objects.create(
                order=order,
                from_status=None,
                to_status='PENDING_CONFIRMATION',
                note_internal='Order created from checkout',
            )

            if coupon_result:
                redeem_coupon(coupon_result['coupon'], user, order, discount)

            if user is not None:
                points = int(total // Decimal(getattr(settings, 'LOYALTY_POINT_VALUE', 10000)))
                if points > 0:
                    profile = CustomerProfile.for_user(user)
                    CustomerProfile.objects.filter(pk=profile.pk).update(loyalty_points=F('loyalty_points') + points)

            create_audit_log(
                request=request,
                user=user,
                action='ORDER_CREATED',
                model_name='Order',
                object_id=str(order.id),
                object_name=order.customer_name,
                object_reference=order.code,
                changes={'total': str(total), 'item_count': len(rows), 'coupon': order.coupon_code},
            )
            transaction.on_commit(invalidate_reports_cache)
    except IntegrityError:
        # Concurrent request with the same idempotency key won the insert
        existing = _find_by_idempotency_key(idempotency_key)
        if existing:
            return existing, False
        raise

    logger.info(f"Checkout completed: order {order.code} total={order.total} items={len(rows)}")
    return order, True


def recalculate_order_financials(order, save=True):
    """Derive paid/outstanding, payment state and accounting status from the payments"""
    paid = order.payments.aggregate(total=Sum('amount'))['total'] or Decimal('0')
    outstanding = max(Decimal('0'), order.total - paid)

    if paid > 0 and outstanding == 0:
        payment_state = 'PAID'
    elif paid > 0:
        payment_state = 'PARTIAL'
    else:
        payment_state = 'UNPAID'

    if order.order_status in ('CANCELED', 'FAILED'):
        accounting_status = 'CANCELLED'
    elif payment_state == 'PAID' and order.order_status == 'DELIVERED':
        accounting_status = 'COMPLETED'
    elif payment_state == 'PAID':
        accounting_status = 'PAID'
    elif payment_state == 'PARTIAL':
        accounting_status = 'PARTIALLY_PAID'
    else:
        accounting_status = 'PENDING_PAYMENT'

    order.paid_amount = paid
    order.outstanding_amount = outstanding
    order.payment_state = payment_state
    order.accounting_status = accounting_status
    if save:
        order.save(update_fields=['paid_amount', 'outstanding_amount', 'payment_state', 'accounting_status',
                                  'updated_at'])
    return order


def _lock_order(order_id):
    order = Order.objects.select_for_update().filter(pk=order_id).first()
    if order is None:
        raise AppError.not_found('Order', order_id, code=ErrorCode.ORDER_NOT_FOUND)
    return order


def _run_stock_action(order_id, action, user):
    order = Order.objects.get(pk=order_id)
    try:
        result = execute_order_stock_action(order, action, user=user)
        logger.info(f"Stock {action} for order {order.code}: {result}")
    except Exception as e:
        logger.error(f"Stock {action} failed for order {order.code}: {str(e)}")


def update_status(order_id, new_status, user=None, note_internal='', note_customer='', cancel_reason='',
                  force=False, request=None):
    """Move an order to a new status; stock follows after commit"""
    if new_status not in ORDER_STATUSES:
        raise AppError.validation(f"Unknown order status {new_status}", {'status': 'invalid_choice'})

    with transaction.atomic():
        order = _lock_order(order_id)
        from_status = order.order_status

        if not force and not is_allowed_transition(from_status, new_status):
            raise AppError(
                ErrorCode.ORDER_INVALID_TRANSITION,
                f"Cannot change order status from {from_status} to {new_status}",
                {'from': from_status, 'to': new_status, 'allowed': allowed_next(from_status)},
            )
        if from_status == new_status and not note_internal and not note_customer:
            return order
        if new_status == 'CANCELED' and len((cancel_reason or '').strip()) < 3:
            raise AppError.validation('A cancel reason of at least 3 characters is required',
                                      {'cancel_reason': 'min_length'})

        now = timezone.now()
        update_fields = ['order_status', 'fulfillment_status', 'updated_at']
        order.order_status = new_status
        order.fulfillment_status = fulfillment_for_status(new_status)
        timestamp_field = STATUS_TIMESTAMPS.get(new_status)
        if timestamp_field and from_status != new_status:
            setattr(order, timestamp_field, now)
            update_fields.append(timestamp_field)
        if new_status == 'CANCELED':
            order.cancel_reason = cancel_reason.strip()
            update_fields.append('cancel_reason')
        recalculate_order_financials(order, save=False)
        update_fields += ['paid_amount', 'outstanding_amount', 'payment_state', 'accounting_status']
        order.save(update_fields=update_fields)

        OrderStatusHistory.objects.create(
            order=order,
            from_status=from_status,
            to_status=new_status,
            actor=user if user is not None and user.is_authenticated else None,
            note_internal=note_internal or '',
            note_customer=note_customer or '',
        )
        create_audit_log(
            request=request,
            user=user,
            action='ORDER_STATUS_CHANGED',
            model_name='Order',
            object_id=str(order.id),
            object_name=order.customer_name,
            object_reference=order.code,
            changes={'from': from_status, 'to': new_status, 'forced': force},
        )

        action = stock_action_for_transition(from_status, new_status)
        if action:
            transaction.on_commit(lambda: _run_stock_action(order.id, action, user))
        transaction.on_commit(invalidate_reports_cache)

    logger.info(f"Order {order.code}: {from_status} -> {new_status}")
    return order


def bulk_update_status(ids, new_status, user=None, note='', request=None):
    """Apply one status to many orders; each order succeeds or fails on its own"""
    results = []
    for order_id in ids:
        try:
            update_status(
                order_id, new_status, user=user, note_internal=note,
                cancel_reason=note if new_status == 'CANCELED' else '', request=request,
            )
            results.append({'id': order_id, 'success': True, 'error': None})
        except AppError as e:
            results.append({'id': order_id, 'success': False, 'error': e.message})
    return results


def add_payment(order_id, amount, method, payment_date=None, reference='', note='', user=None, request=None):
    """Record a payment; it may not exceed the outstanding amount"""
    amount = to_decimal(amount)
    if amount <= 0:
        raise AppError(ErrorCode.PAYMENT_INVALID_AMOUNT, 'Payment amount must be greater than 0',
                       {'amount': str(amount)})

    with transaction.atomic():
        order = _lock_order(order_id)
        recalculate_order_financials(order, save=False)
        if amount > order.outstanding_amount:
            raise AppError(
                ErrorCode.PAYMENT_EXCEEDS_OUTSTANDING,
                f"Payment {amount} exceeds outstanding amount {order.outstanding_amount}",
                {'amount': str(amount), 'outstanding': str(order.outstanding_amount)},
            )
        payment = Payment.objects.create(
            order=order,
            amount=amount,
            method=method,
            payment_date=payment_date or timezone.now(),
            reference=reference or '',
            note=note or '',
            created_by=user if user is not None and user.is_authenticated else None,
        )
        recalculate_order_financials(order)
        create_audit_log(
            request=request,
            user=user,
            action='ORDER_PAYMENT_ADDED',
            model_name='Order',
            object_id=str(order.id),
            object_name=order.customer_name,
            object_reference=order.code,
            changes={'amount': str(amount), 'method': method, 'outstanding': str(order.outstanding_amount)},
        )
        transaction.on_commit(invalidate_reports_cache)

    logger.info(f"Payment {amount} ({method}) recorded for order {order.code}")
    return payment, order


def update_shipping(order_id, carrier='', tracking_code='', user=None, request=None):
    carrier = (carrier or '').strip()
    tracking_code = (tracking_code or '').strip()
    if len(carrier) > 100 or len(tracking_code) > 100:
        raise AppError.validation('Carrier and tracking code are limited to 100 characters',
                                  {'carrier': 'max_length', 'tracking_code': 'max_length'})
    with transaction.atomic():
        order = _lock_order(order_id)
        changes = {'carrier': [order.carrier, carrier], 'tracking_code': [order.tracking_code, tracking_code]}
        order.carrier = carrier
        order.tracking_code = tracking_code
        order.save(update_fields=['carrier', 'tracking_code', 'updated_at'])
        create_audit_log(
            request=request,
            user=user,
            action='ORDER_SHIPPING_UPDATED',
            model_name='Order',
            object_id=str(order.id),
            object_reference=order.code,
            changes=changes,
        )
    return order


def add_note(order_id, note_internal='', note_customer='', user=None, request=None):
    """Attach notes as a history row that keeps the current status"""
    if not note_internal and not note_customer:
        raise AppError.validation('A note is required', {'note_internal': 'required'})
    order = Order.objects.filter(pk=order_id).first()
    if order is None:
        raise AppError.not_found('Order', order_id, code=ErrorCode.ORDER_NOT_FOUND)
    entry = OrderStatusHistory.objects.create(
        order=order,
        from_status=order.order_status,
        to_status=order.order_status,
        actor=user if user is not None and user.is_authenticated else None,
        note_internal=note_internal or '',
        note_customer=note_customer or '',
    )
    create_audit_log(
        request=request,
        user=user,
        action='ORDER_NOTE_ADDED',
        model_name='Order',
        object_id=str(order.id),
        object_reference=order.code,
        changes={'internal': bool(note_internal), 'customer': bool(note_customer)},
    )
    return entry


def release_stock(order, user=None):
    """Release any reservation still held for the order"""
    result = execute_order_stock_action(order, 'RELEASE', user=user)
    transaction.on_commit(invalidate_reports_cache)
    return result
