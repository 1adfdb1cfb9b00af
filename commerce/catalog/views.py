import logging

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes, throttle_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated, AllowAny
from django.db.models import Count, Q, Prefetch
from django.shortcuts import get_object_or_404

from commerce.core.csv_export import csv_response
from commerce.core.i18n import get_request_locale
from commerce.core.pagination import paginate
from commerce.core.permissions import HasPermission, IsStaffRole, get_user_role, is_admin_role, user_has_permission
from commerce.core.throttling import ApiGeneralRateThrottle, SearchRateThrottle
from commerce.core.utils import create_audit_log
from .filters import ProductFilter, apply_product_sort
from .models import Category, Industry, Product, ProductReview, ReviewVote
from .serializers import (
    CategorySerializer, IndustrySerializer, ProductListSerializer, ProductDetailSerializer,
    ProductWriteSerializer, ReviewSerializer, ReviewCreateSerializer, ReviewVoteSerializer,
    ReviewReportSerializer, ReviewModerationSerializer,
)
from . import reviews as review_service

logger = logging.getLogger(__name__)


def _is_staff(request):
    return is_admin_role(get_user_role(request.user))


# Categories (product groups)
@api_view(['GET', 'POST'])
@permission_classes([AllowAny])
def category_list_create(request):
    """List active categories or create a new one (staff)"""
    locale = get_request_locale(request)
    if request.method == 'GET':
        categories = Category.objects.all()
        if not _is_staff(request):
            categories = categories.filter(is_active=True)
        serializer = CategorySerializer(categories, many=True, context={'locale': locale})
        return Response(serializer.data)
    else:
        if not _is_staff(request):
            return Response({'error': 'Only staff can create categories'}, status=status.HTTP_403_FORBIDDEN)
        serializer = CategorySerializer(data=request.data, context={'locale': locale})
        if serializer.is_valid():
            serializer.save()
            return Response(serializer.data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, IsStaffRole])
def category_detail(request, pk):
    """Retrieve, update or delete a category"""
    category = get_object_or_404(Category, pk=pk)

    if request.method == 'GET':
        return Response(CategorySerializer(category).data)
    elif request.method == 'PATCH':
        serializer = CategorySerializer(category, data=request.data, partial=True)
        if serializer.is_valid():
            serializer.save()
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        category.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)


# Industries
@api_view(['GET'])
@permission_classes([AllowAny])
def industry_list(request):
    industries = Industry.objects.filter(is_active=True).annotate(
        product_count=Count('products', filter=Q(products__is_active=True))
    )
    serializer = IndustrySerializer(industries, many=True, context={'locale': get_request_locale(request)})
    return Response(serializer.data)


@api_view(['GET'])
@permission_classes([AllowAny])
def industry_detail(request, slug):
    """Industry page with its active products"""
    locale = get_request_locale(request)
    industry = get_object_or_404(Industry, slug=slug, is_active=True)
    products = industry.products.filter(is_active=True).select_related('category').order_by('name_en')
    data = IndustrySerializer(industry, context={'locale': locale}).data
    data['products'] = ProductListSerializer(products, many=True, context={'locale': locale}).data
    return Response(data)


# Products
@api_view(['GET', 'POST'])
@permission_classes([AllowAny])
@throttle_classes([ApiGeneralRateThrottle])
def product_list_create(request):
    """List products (filters: q, category, industry, min_price, max_price, in_stock, featured; sort) or create one"""
    locale = get_request_locale(request)
    if request.method == 'GET':
        queryset = Product.objects.select_related('category')
        if not _is_staff(request):
            queryset = queryset.filter(is_active=True)

        filterset = ProductFilter(request.query_params, queryset=queryset)
        if not filterset.is_valid():
            return Response(filterset.errors, status=status.HTTP_400_BAD_REQUEST)
        queryset = apply_product_sort(filterset.qs, request.query_params.get('sort'))
        return paginate(request, queryset, ProductListSerializer, page_size=24, context={'locale': locale})
    else:  # POST
        if not user_has_permission(request.user, 'products:create'):
            return Response({'error': 'You do not have permission to create products'}, status=status.HTTP_403_FORBIDDEN)
        serializer = ProductWriteSerializer(data=request.data)
        if serializer.is_valid():
            product = serializer.save()
            create_audit_log(
                request=request,
                action='create',
                model_name='Product',
                object_id=str(product.id),
                object_name=product.name_en,
                object_reference=product.sku,
                changes={'sku': product.sku, 'price': str(product.price) if product.price is not None else None},
            )
            return Response(ProductWriteSerializer(product).data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET'])
@permission_classes([AllowAny])
def product_by_slug(request, slug):
    """Public product page data with rating summary"""
    locale = get_request_locale(request)
    product = get_object_or_404(
        Product.objects.select_related('category').prefetch_related('industries'),
        slug=slug, is_active=True,
    )
    data = ProductDetailSerializer(product, context={'locale': locale}).data
    data['rating'] = review_service.review_stats(product.id)
    return Response(data)


@api_view(['GET', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, HasPermission('products:update')])
def product_detail(request, pk):
    """Admin product retrieve/update/delete"""
    product = get_object_or_404(Product, pk=pk)

    if request.method == 'GET':
        return Response(ProductWriteSerializer(product).data)
    elif request.method == 'PATCH':
        old_price = product.price
        serializer = ProductWriteSerializer(product, data=request.data, partial=True)
        if serializer.is_valid():
            product = serializer.save()
            changes = {field: str(value) for field, value in serializer.validated_data.items()
                       if field not in ('industries', 'specs', 'images')}
            if product.price != old_price:
                changes['price'] = {'old': str(old_price), 'new': str(product.price)}
            create_audit_log(
                request=request,
                action='update',
                model_name='Product',
                object_id=str(product.id),
                object_name=product.name_en,
                object_reference=product.sku,
                changes=changes,
            )
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        if not user_has_permission(request.user, 'products:delete'):
            return Response({'error': 'Only admins can delete products'}, status=status.HTTP_403_FORBIDDEN)
        if product.order_items.exists() or product.stock_document_lines.exists():
            # Keep order and ledger history intact; hide the product instead
            product.is_active = False
            product.save(update_fields=['is_active', 'updated_at'])
            return Response({'detail': 'Product has order or stock history and was deactivated instead of deleted'})
        create_audit_log(
            request=request,
            action='delete',
            model_name='Product',
            object_id=str(product.id),
            object_name=product.name_en,
            object_reference=product.sku,
        )
        product.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['GET'])
@permission_classes([IsAuthenticated, HasPermission('products:export')])
def product_export(request):
    """CSV export of the product list with the same filters"""
    filterset = ProductFilter(request.query_params, queryset=Product.objects.select_related('category'))
    queryset = apply_product_sort(filterset.qs, request.query_params.get('sort'))
    rows = (
        [
            p.sku, p.name_en, p.name_vi, p.category.slug if p.category else '',
            p.price, p.cost_price, p.currency, p.unit, p.stock_quantity,
            'yes' if p.is_active else 'no',
        ]
        for p in queryset.iterator()
    )
    return csv_response(
        'products.csv',
        ['SKU', 'Name (EN)', 'Name (VI)', 'Category', 'Price', 'Cost', 'Currency', 'Unit', 'Stock', 'Active'],
        rows,
    )


@api_view(['GET'])
@permission_classes([AllowAny])
@throttle_classes([SearchRateThrottle])
def global_search(request):
    """Quick search across products, categories and industries"""
    search = (request.query_params.get('q') or '').strip()
    if len(search) < 2:
        return Response({'products': [], 'categories': [], 'industries': []})
    locale = get_request_locale(request)
    context = {'locale': locale}

    products = Product.objects.filter(is_active=True).filter(
        Q(sku__icontains=search) | Q(name_en__icontains=search) | Q(name_vi__icontains=search)
    ).select_related('category')[:10]
    categories = Category.objects.filter(is_active=True).filter(
        Q(name_en__icontains=search) | Q(name_vi__icontains=search)
    )[:5]
    industries = Industry.objects.filter(is_active=True).filter(
        Q(name_en__icontains=search) | Q(name_vi__icontains=search)
    )[:5]
    return Response({
        'products': ProductListSerializer(products, many=True, context=context).data,
        'categories': CategorySerializer(categories, many=True, context=context).data,
        'industries': IndustrySerializer(industries, many=True, context=context).data,
    })


# Reviews
@api_view(['GET', 'POST'])
@permission_classes([AllowAny])
def review_list_create(request):
    """
    GET: approved reviews of ?product= (sort_by: newest|helpful|rating_high|rating_low, rating, verified)
    POST: submit a review (authenticated)
    """
    if request.method == 'GET':
        product_id = request.query_params.get('product')
        if not product_id or not str(product_id).isdigit():
            return Response({'error': 'product query parameter is required'}, status=status.HTTP_400_BAD_REQUEST)
        rating = request.query_params.get('rating')
        if rating and (not rating.isdigit() or not 1 <= int(rating) <= 5):
            return Response({'error': 'rating must be between 1 and 5'}, status=status.HTTP_400_BAD_REQUEST)
        verified = (request.query_params.get('verified') or '').lower() in ('1', 'true', 'yes')
        queryset = review_service.approved_reviews(
            int(product_id),
            sort_by=request.query_params.get('sort_by', 'newest'),
            rating=int(rating) if rating else None,
            verified=verified,
        ).prefetch_related(Prefetch('votes', queryset=ReviewVote.objects.only('id', 'review_id', 'user_id', 'is_helpful')))
        return paginate(request, queryset, ReviewSerializer, page_size=10, max_page_size=50)
    else:  # POST
        if not request.user.is_authenticated:
            return Response({'error': 'Authentication required'}, status=status.HTTP_401_UNAUTHORIZED)
        serializer = ReviewCreateSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        data = dict(serializer.validated_data)
        product_id = data.pop('product')
        review = review_service.create_review(request.user, product_id, data)
        return Response(ReviewSerializer(review, context={'request': request}).data, status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([AllowAny])
def review_stats(request):
    product_id = request.query_params.get('product')
    if not product_id or not str(product_id).isdigit():
        return Response({'error': 'product query parameter is required'}, status=status.HTTP_400_BAD_REQUEST)
    return Response(review_service.review_stats(int(product_id)))


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def review_vote(request, pk):
    serializer = ReviewVoteSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    review = review_service.vote_review(request.user, pk, serializer.validated_data['is_helpful'])
    return Response({
        'helpful_count': review.helpful_count,
        'not_helpful_count': review.not_helpful_count,
    })


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def review_report(request, pk):
    serializer = ReviewReportSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    review_service.report_review(
        request.user, pk,
        serializer.validated_data['reason'],
        serializer.validated_data.get('details', ''),
    )
    return Response({'detail': 'Report submitted'}, status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsStaffRole])
def admin_review_list(request):
    """All reviews for moderation, filtered by ?status= and ?product="""
    queryset = ProductReview.objects.select_related('user', 'product').all()
    review_status = request.query_params.get('status')
    product_id = request.query_params.get('product')
    if review_status:
        queryset = queryset.filter(status=review_status.upper())
    if product_id:
        queryset = queryset.filter(product_id=product_id)
    return paginate(request, queryset.order_by('-created_at'), ReviewSerializer)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsStaffRole])
def admin_review_moderate(request, pk):
    review = get_object_or_404(ProductReview, pk=pk)
    serializer = ReviewModerationSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    old_status = review.status
    review = review_service.moderate_review(
        review,
        serializer.validated_data['status'],
        serializer.validated_data.get('seller_response'),
    )
    create_audit_log(
        request=request,
        action='REVIEW_MODERATED',
        model_name='ProductReview',
        object_id=str(review.id),
        object_reference=review.product.sku,
        changes={'status': {'old': old_status, 'new': review.status}},
    )
    return Response(ReviewSerializer(review, context={'request': request}).data)
