"""Product review workflow: submission, votes, reports, moderation and stats"""
import logging

from django.conf import settings
from django.db import transaction, IntegrityError
from django.db.models import Avg, Count, F, Q
from django.utils import timezone

from commerce.core.errors import AppError, ErrorCode
from commerce.orders.models import Order
from .models import Product, ProductReview, ReviewVote, ReviewReport

logger = logging.getLogger(__name__)

REVIEW_SORTS = {
    'newest': ['-created_at', '-id'],
    'helpful': ['-helpful_count', '-created_at'],
    'rating_high': ['-overall_rating', '-created_at'],
    'rating_low': ['overall_rating', '-created_at'],
}


def approved_reviews(product_id, sort_by='newest', rating=None, verified=False):
    queryset = ProductReview.objects.select_related('user').filter(product_id=product_id, status='APPROVED')
    if rating:
        queryset = queryset.filter(overall_rating=rating)
    if verified:
        queryset = queryset.filter(is_verified_purchase=True)
    return queryset.order_by(*REVIEW_SORTS.get(sort_by, REVIEW_SORTS['newest']))


def has_delivered_purchase(user, product):
    return Order.objects.filter(user=user, order_status='DELIVERED', items__product=product).exists()


def create_review(user, product_id, data):
    """Submit a review; it stays PENDING until moderated"""
    product = Product.objects.filter(pk=product_id, is_active=True).first()
    if product is None:
        raise AppError.not_found('Product', product_id)

    if ProductReview.objects.filter(product=product, user=user).exists():
        raise AppError(ErrorCode.REVIEW_DUPLICATE, 'You have already reviewed this product')

    order = None
    order_id = data.pop('order', None)
    if order_id:
        order = Order.objects.filter(pk=order_id, user=user).first()

    try:
        with transaction.atomic():
            review = ProductReview.objects.create(
                product=product,
                user=user,
                order=order,
                is_verified_purchase=has_delivered_purchase(user, product),
                status='PENDING',
                **data,
            )
    except IntegrityError:
        raise AppError(ErrorCode.REVIEW_DUPLICATE, 'You have already reviewed this product')

    logger.info(f"Review {review.id} submitted for product {product.sku} by user {user.id}")
    return review


def vote_review(user, review_id, is_helpful):
    """Record or replace the user's vote, then recount both totals from the vote rows"""
    review = ProductReview.objects.filter(pk=review_id, status='APPROVED').first()
    if review is None:
        raise AppError.not_found('Review', review_id)
    if review.user_id == user.id:
        raise AppError.forbidden('You cannot vote on your own review')

    with transaction.atomic():
        ReviewVote.objects.update_or_create(review=review, user=user, defaults={'is_helpful': is_helpful})
        counts = review.votes.aggregate(
            helpful=Count('id', filter=Q(is_helpful=True)),
            not_helpful=Count('id', filter=Q(is_helpful=False)),
        )
        review.helpful_count = counts['helpful']
        review.not_helpful_count = counts['not_helpful']
        review.save(update_fields=['helpful_count', 'not_helpful_count', 'updated_at'])
    return review


def report_review(user, review_id, reason, details=''):
    """One report per user; enough reports flag the review for moderation"""
    review = ProductReview.objects.filter(pk=review_id).first()
    if review is None:
        raise AppError.not_found('Review', review_id)

    with transaction.atomic():
        report, created = ReviewReport.objects.get_or_create(
            review=review, user=user, defaults={'reason': reason, 'details': details or ''}
        )
        if not created:
            raise AppError.already_exists('Report', 'review', review.id)
        ProductReview.objects.filter(pk=review.pk).update(report_count=F('report_count') + 1)
        review.refresh_from_db(fields=['report_count', 'status'])

        threshold = getattr(settings, 'REVIEW_FLAG_THRESHOLD', 5)
        if review.report_count >= threshold and review.status != 'FLAGGED':
            review.status = 'FLAGGED'
            review.save(update_fields=['status', 'updated_at'])
            logger.warning(f"Review {review.id} flagged after {review.report_count} reports")
    return report


def review_stats(product_id):
    approved = ProductReview.objects.filter(product_id=product_id, status='APPROVED')
    summary = approved.aggregate(total=Count('id'), average=Avg('overall_rating'))
    distribution = {str(star): 0 for star in range(1, 6)}
    for row in approved.order_by().values('overall_rating').annotate(count=Count('id')):
        distribution[str(row['overall_rating'])] = row['count']
    average = summary['average']
    return {
        'total_reviews': summary['total'],
        'average_rating': round(float(average), 1) if average is not None else 0,
        'distribution': distribution,
        'verified_count': approved.filter(is_verified_purchase=True).count(),
    }


def moderate_review(review, status, seller_response=None):
    if status not in ('APPROVED', 'REJECTED', 'PENDING'):
        raise AppError.validation('Invalid moderation status', {'status': status})
    review.status = status
    fields = ['status', 'updated_at']
    if seller_response is not None:
        review.seller_response = seller_response
        review.responded_at = timezone.now() if seller_response else None
        fields += ['seller_response', 'responded_at']
    review.save(update_fields=fields)
    return review
