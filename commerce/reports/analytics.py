"""
Report queries.

Every report takes the raw range parameters so cache keys stay stable while
"now" moves; results are cached in the reports namespace and dropped when
orders, payments or stock change.
"""
import logging
from datetime import datetime, time, timedelta
from decimal import Decimal

from django.db.models import Sum, Count, Avg, Min, Max, F, Q, DecimalField, ExpressionWrapper
from django.db.models.functions import TruncDate, Abs
from django.utils import timezone
from django.utils.dateparse import parse_date

from commerce.core.cache_utils import cached_query, reports_cache_ttl, REPORTS_NAMESPACE
from commerce.core.errors import AppError
from commerce.catalog.models import ProductReview
from commerce.content.models import BlogPost, ContactMessage
from commerce.inventory.models import InventoryItem, StockMovement
from commerce.orders.models import Order, OrderItem, Payment
from commerce.pricing.models import CouponUsage

from .planning import load_revenue_targets, parse_month

logger = logging.getLogger(__name__)

RANGES = ('today', '7d', '30d', 'month', 'custom')
DEFAULT_RANGE = '30d'
OPEN_ACCOUNTING_STATUSES = ('PENDING_PAYMENT', 'PARTIALLY_PAID')


def _start_of_day(value):
    return timezone.make_aware(datetime.combine(value, time.min))


def _end_of_day(value):
    return timezone.make_aware(datetime.combine(value, time.max))


def _parse_day(value, field):
    day = parse_date(value) if value else None
    if value and day is None:
        raise AppError.validation(f"{field} must be a YYYY-MM-DD date", {field: 'invalid_date'})
    return day


def parse_date_range(range_name=None, date_from=None, date_to=None, now=None):
    """
    (start, end) datetimes for a report range.

    today: start of today .. now; 7d/30d: start of the day n-1 days ago .. now;
    month: first of the month .. now; custom: from/to dates, end of day inclusive.
    """
    now = now or timezone.now()
    range_name = range_name or DEFAULT_RANGE
    if range_name not in RANGES:
        raise AppError.validation(f"range must be one of {', '.join(RANGES)}", {'range': 'invalid_choice'})

    today = timezone.localtime(now).date()
    if range_name == 'today':
        return _start_of_day(today), now
    if range_name in ('7d', '30d'):
        days = int(range_name[:-1])
        return _start_of_day(today - timedelta(days=days - 1)), now
    if range_name == 'month':
        return _start_of_day(today.replace(day=1)), now

    start_day = _parse_day(date_from, 'from')
    end_day = _parse_day(date_to, 'to')
    if start_day is None:
        raise AppError.validation('from is required for a custom range', {'from': 'required'})
    if end_day is not None and start_day > end_day:
        raise AppError.validation('from must not be after to', {'from': 'after_to'})
    end = _end_of_day(end_day) if end_day else now
    return _start_of_day(start_day), end


def _money(value):
    return float(value or Decimal('0'))


def _days(start, end):
    day = timezone.localtime(start).date()
    last = timezone.localtime(end).date()
    while day <= last:
        yield day
        day += timedelta(days=1)


def _daily_revenue(start, end):
    rows = (
        Payment.objects.filter(payment_date__gte=start, payment_date__lte=end)
        .annotate(day=TruncDate('payment_date'))
        .values('day')
        .annotate(total=Sum('amount'), count=Count('id'))
        .order_by('day')
    )
    by_day = {row['day']: row for row in rows}
    series = []
    for day in _days(start, end):
        row = by_day.get(day)
        series.append({
            'date': day.isoformat(),
            'revenue': _money(row['total']) if row else 0.0,
            'payments': row['count'] if row else 0,
        })
    return series


@cached_query(cache_ttl=reports_cache_ttl, key_prefix=REPORTS_NAMESPACE)
def revenue_dashboard(range_name=None, date_from=None, date_to=None):
    start, end = parse_date_range(range_name, date_from, date_to)
    in_range = Q(created_at__gte=start, created_at__lte=end)

    total_revenue = Payment.objects.filter(
        payment_date__gte=start, payment_date__lte=end
    ).aggregate(total=Sum('amount'))['total']
    outstanding_debt = Order.objects.exclude(accounting_status='CANCELLED').aggregate(
        total=Sum('outstanding_amount')
    )['total']
    completed_orders = Order.objects.filter(in_range, accounting_status='COMPLETED').count()

    paid_orders = Order.objects.filter(in_range, accounting_status__in=['PAID', 'PARTIALLY_PAID']).aggregate(
        total=Sum('total'), count=Count('id')
    )
    aov = (paid_orders['total'] / paid_orders['count']) if paid_orders['count'] else Decimal('0')

    status_breakdown = [
        {'accounting_status': row['accounting_status'], 'count': row['count'], 'total': _money(row['total'])}
        for row in Order.objects.filter(in_range).order_by().values('accounting_status').annotate(
            count=Count('id'), total=Sum('total')
        ).order_by('accounting_status')
    ]

    top_products = [
        {
            'product_id': row['product_id'],
            'sku': row['sku'],
            'name': row['name'],
            'quantity': float(row['quantity'] or 0),
            'revenue': _money(row['revenue']),
        }
        for row in OrderItem.objects.filter(order__created_at__gte=start, order__created_at__lte=end)
        .exclude(order__accounting_status='CANCELLED')
        .order_by()
        .values('product_id', 'sku', 'name')
        .annotate(quantity=Sum('quantity'), revenue=Sum('line_total'))
        .order_by('-revenue')[:10]
    ]

    return {
        'period': {'from': start.isoformat(), 'to': end.isoformat()},
        'summary': {
            'total_revenue': _money(total_revenue),
            'outstanding_debt': _money(outstanding_debt),
            'completed_orders': completed_orders,
            'aov': _money(aov),
        },
        'daily': _daily_revenue(start, end),
        'status_breakdown': status_breakdown,
        'top_products': top_products,
    }


@cached_query(cache_ttl=reports_cache_ttl, key_prefix=REPORTS_NAMESPACE)
def revenue_series(range_name=None, date_from=None, date_to=None):
    start, end = parse_date_range(range_name, date_from, date_to)
    return _daily_revenue(start, end)


@cached_query(cache_ttl=reports_cache_ttl, key_prefix=REPORTS_NAMESPACE)
def receivables(overdue_only=False, due_in_days=None, q=None):
    """Open orders with money still owed, most overdue first"""
    now = timezone.now()
    queryset = Order.objects.filter(outstanding_amount__gt=0, accounting_status__in=OPEN_ACCOUNTING_STATUSES)
    if overdue_only:
        queryset = queryset.filter(due_date__lt=now)
    if due_in_days is not None:
        queryset = queryset.filter(due_date__lte=now + timedelta(days=due_in_days))
    if q:
        queryset = queryset.filter(
            Q(company_name__icontains=q) | Q(customer_name__icontains=q) | Q(code__icontains=q)
        )

    rows = []
    total_outstanding = Decimal('0')
    overdue_amount = Decimal('0')
    for order in queryset.order_by(F('due_date').asc(nulls_last=True), 'created_at'):
        days_overdue = (now - order.due_date).days if order.due_date and order.due_date < now else 0
        total_outstanding += order.outstanding_amount
        if order.due_date and order.due_date < now:
            overdue_amount += order.outstanding_amount
        rows.append({
            'id': order.id,
            'code': order.code,
            'customer_name': order.customer_name,
            'company_name': order.company_name,
            'email': order.email,
            'phone': order.phone,
            'total': _money(order.total),
            'paid_amount': _money(order.paid_amount),
            'outstanding_amount': _money(order.outstanding_amount),
            'accounting_status': order.accounting_status,
            'due_date': order.due_date.isoformat() if order.due_date else None,
            'days_overdue': days_overdue,
        })

    return {
        'results': rows,
        'count': len(rows),
        'total_outstanding': _money(total_outstanding),
        'overdue_amount': _money(overdue_amount),
    }


def _low_stock_queryset():
    """0 < available <= reorder point; empty bins count as out of stock instead"""
    return InventoryItem.objects.filter(
        available_qty__gt=0, reorder_point_qty__gt=0, available_qty__lte=F('reorder_point_qty')
    )


@cached_query(cache_ttl=reports_cache_ttl, key_prefix=REPORTS_NAMESPACE)
def inventory_analytics(range_name=None, date_from=None, date_to=None):
    start, end = parse_date_range(range_name, date_from, date_to)

    stock_value = InventoryItem.objects.aggregate(
        total=Sum(ExpressionWrapper(
            F('on_hand_qty') * F('product__cost_price'),
            output_field=DecimalField(max_digits=20, decimal_places=2),
        ))
    )['total']

    low_stock = [
        {
            'product_id': item.product_id,
            'sku': item.product.sku,
            'name': item.product.name_en,
            'warehouse': item.warehouse.code,
            'available_qty': float(item.available_qty),
            'reorder_point_qty': float(item.reorder_point_qty),
            'reorder_qty': float(item.reorder_qty),
        }
        for item in _low_stock_queryset().select_related('product', 'warehouse').order_by('available_qty')[:50]
    ]

    movements = StockMovement.objects.filter(created_at__gte=start, created_at__lte=end)
    movements_by_type = [
        {
            'movement_type': row['movement_type'],
            'count': row['count'],
            'on_hand_change': float(row['on_hand_change'] or 0),
            'reserved_change': float(row['reserved_change'] or 0),
        }
        for row in movements.order_by().values('movement_type').annotate(
            count=Count('id'),
            on_hand_change=Sum('qty_change_on_hand'),
            reserved_change=Sum('qty_change_reserved'),
        ).order_by('movement_type')
    ]
    top_moved = [
        {
            'product_id': row['product_id'],
            'sku': row['product__sku'],
            'name': row['product__name_en'],
            'moved_qty': float(row['moved'] or 0),
            'movements': row['count'],
        }
        for row in movements.order_by().values('product_id', 'product__sku', 'product__name_en').annotate(
            moved=Sum(Abs('qty_change_on_hand')), count=Count('id')
        ).order_by('-moved')[:10]
    ]

    return {
        'period': {'from': start.isoformat(), 'to': end.isoformat()},
        'stock_value': _money(stock_value),
        'low_stock_count': _low_stock_queryset().count(),
        'low_stock': low_stock,
        'movements_by_type': movements_by_type,
        'top_moved_products': top_moved,
    }


@cached_query(cache_ttl=reports_cache_ttl, key_prefix=REPORTS_NAMESPACE)
def customer_analytics(range_name=None, date_from=None, date_to=None):
    start, end = parse_date_range(range_name, date_from, date_to)
    orders_in_range = Order.objects.filter(created_at__gte=start, created_at__lte=end).exclude(
        order_status__in=['CANCELED', 'FAILED']
    )

    top_customers = [
        {
            'email': row['email'],
            'customer_name': row['customer_name'],
            'company_name': row['company_name'],
            'orders': row['orders'],
            'paid_revenue': _money(row['paid']),
        }
        for row in orders_in_range.order_by().values('email').annotate(
            customer_name=Max('customer_name'),
            company_name=Max('company_name'),
            orders=Count('id'),
            paid=Sum('paid_amount'),
        ).order_by('-paid')[:10]
    ]

    emails = orders_in_range.order_by().values_list('email', flat=True).distinct()
    first_orders = Order.objects.filter(email__in=emails).order_by().values('email').annotate(first=Min('created_at'))
    new_customers = sum(1 for row in first_orders if row['first'] >= start)
    total_customers = len(first_orders)

    return {
        'period': {'from': start.isoformat(), 'to': end.isoformat()},
        'top_customers': top_customers,
        'new_customers': new_customers,
        'returning_customers': total_customers - new_customers,
    }


@cached_query(cache_ttl=60, key_prefix=REPORTS_NAMESPACE)
def dashboard_summary():
    """Headline numbers for the admin home page"""
    start, now = parse_date_range('today')
    revenue_today = Payment.objects.filter(payment_date__gte=start, payment_date__lte=now).aggregate(
        total=Sum('amount')
    )['total']
    return {
        'orders_today': Order.objects.filter(created_at__gte=start).count(),
        'revenue_today': _money(revenue_today),
        'pending_orders': Order.objects.filter(order_status='PENDING_CONFIRMATION').count(),
        'low_stock_count': _low_stock_queryset().count(),
        'unread_contacts': ContactMessage.objects.filter(status='NEW').count(),
    }


PLAN_HISTORY_MONTHS = 6


def _month_bounds(first_day):
    next_month = (first_day + timedelta(days=32)).replace(day=1)
    return _start_of_day(first_day), _end_of_day(next_month - timedelta(days=1))


def _plan_row(month, target, actual):
    percent = min(Decimal('100'), actual / target * 100) if target > 0 else Decimal('0')
    return {
        'month': month,
        'target': _money(target),
        'actual': _money(actual),
        'remaining': _money(max(Decimal('0'), target - actual)),
        'percent': round(float(percent), 1),
    }


@cached_query(cache_ttl=reports_cache_ttl, key_prefix=REPORTS_NAMESPACE)
def revenue_plan(month=None):
    """
    Monthly target against payments received.

    `current` is the requested month (default: this month); `months` holds it
    and the five months before, oldest first. Percent is capped at 100.
    """
    first_day = parse_month(month)
    targets = load_revenue_targets()

    months = [first_day]
    while len(months) < PLAN_HISTORY_MONTHS:
        months.append((months[-1] - timedelta(days=1)).replace(day=1))

    rows = []
    for day in reversed(months):
        start, end = _month_bounds(day)
        actual = Payment.objects.filter(payment_date__gte=start, payment_date__lte=end).aggregate(
            total=Sum('amount')
        )['total'] or Decimal('0')
        key = f"{day:%Y-%m}"
        rows.append(_plan_row(key, targets.get(key, Decimal('0')), actual))

    return {'current': rows[-1], 'months': rows}


def _rate(part, whole):
    return round(part / whole * 100, 1) if whole else 0.0


@cached_query(cache_ttl=reports_cache_ttl, key_prefix=REPORTS_NAMESPACE)
def marketing_analytics(range_name=None, date_from=None, date_to=None):
    """Coupon redemption, review sentiment, contact response rate and blog reach"""
    start, end = parse_date_range(range_name, date_from, date_to)

    usages = CouponUsage.objects.filter(created_at__gte=start, created_at__lte=end)
    coupons = []
    for row in usages.order_by().values(
        'coupon_id', 'coupon__code', 'coupon__name', 'coupon__discount_type', 'coupon__status'
    ).annotate(
        usage_count=Count('id'),
        total_discount=Sum('discount_amount'),
        total_revenue=Sum('order__total'),
    ).order_by('-usage_count', 'coupon__code')[:10]:
        discount = row['total_discount'] or Decimal('0')
        revenue = row['total_revenue'] or Decimal('0')
        coupons.append({
            'coupon_id': row['coupon_id'],
            'code': row['coupon__code'],
            'name': row['coupon__name'],
            'discount_type': row['coupon__discount_type'],
            'status': row['coupon__status'],
            'usage_count': row['usage_count'],
            'total_discount': _money(discount),
            'total_revenue': _money(revenue),
            'avg_order_value': _money(revenue / row['usage_count']),
            'roi': round(float((revenue - discount) / discount * 100), 1) if discount > 0 else 0.0,
        })
    coupon_totals = usages.aggregate(
        count=Count('id'), discount=Sum('discount_amount'), revenue=Sum('order__total')
    )

    reviews = ProductReview.objects.filter(created_at__gte=start, created_at__lte=end)
    approved = reviews.filter(status='APPROVED').aggregate(
        count=Count('id'),
        average=Avg('overall_rating'),
        verified=Count('id', filter=Q(is_verified_purchase=True)),
    )

    contacts = ContactMessage.objects.filter(created_at__gte=start, created_at__lte=end).aggregate(
        total=Count('id'), replied=Count('id', filter=Q(status='REPLIED'))
    )

    published = BlogPost.objects.filter(status='PUBLISHED')
    blog_totals = published.aggregate(count=Count('id'), views=Sum('view_count'))
    top_posts = [
        {
            'id': post.id,
            'slug': post.slug,
            'title_en': post.title_en,
            'title_vi': post.title_vi,
            'view_count': post.view_count,
            'published_at': post.published_at.isoformat() if post.published_at else None,
        }
        for post in published.order_by('-view_count', '-published_at')[:5]
    ]

    return {
        'period': {'from': start.isoformat(), 'to': end.isoformat()},
        'coupons': {
            'top': coupons,
            'total_usages': coupon_totals['count'],
            'total_discount': _money(coupon_totals['discount']),
            'total_revenue': _money(coupon_totals['revenue']),
        },
        'reviews': {
            'approved': approved['count'],
            'pending': reviews.filter(status='PENDING').count(),
            'average_rating': round(approved['average'] or 0, 1),
            'verified': approved['verified'],
            'verified_rate': _rate(approved['verified'], approved['count']),
        },
        'contacts': {
            'total': contacts['total'],
            'replied': contacts['replied'],
            'response_rate': _rate(contacts['replied'], contacts['total']),
        },
        'blog': {
            'published_posts': blog_totals['count'],
            'total_views': blog_totals['views'] or 0,
            'top_posts': top_posts,
        },
    }
