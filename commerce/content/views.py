import logging

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes, throttle_classes
from rest_framework.response import Response
from rest_framework.permissions import AllowAny, IsAuthenticated
from django.db.models import Q, F, Count
from django.shortcuts import get_object_or_404

from commerce.core.i18n import get_request_locale
from commerce.core.pagination import paginate
from commerce.core.permissions import HasPermission, user_has_permission
from commerce.core.throttling import ApiGeneralRateThrottle, ContactRateThrottle
from .models import BlogCategory, BlogPost, Service, ContactMessage
from .serializers import (
    BlogCategorySerializer, BlogPostListSerializer, BlogPostDetailSerializer, BlogPostAdminSerializer,
    BlogPostRevisionSerializer, ScheduleSerializer, BlogBulkActionSerializer, ServiceSerializer,
    ServiceDetailSerializer, ContactMessageSerializer, ContactMessageAdminSerializer,
)
from . import services

logger = logging.getLogger(__name__)

POST_STATUSES = ('DRAFT', 'REVIEW', 'SCHEDULED', 'PUBLISHED', 'ARCHIVED')


# Public blog
@api_view(['GET'])
@permission_classes([AllowAny])
@throttle_classes([ApiGeneralRateThrottle])
def post_list(request):
    """Published posts (filters: category slug, q, featured)"""
    queryset = BlogPost.objects.filter(status='PUBLISHED').select_related('category', 'author')
    category = request.query_params.get('category')
    if category:
        queryset = queryset.filter(category__slug=category)
    search = request.query_params.get('q')
    if search:
        queryset = queryset.filter(
            Q(title_en__icontains=search) | Q(title_vi__icontains=search) |
            Q(excerpt_en__icontains=search) | Q(excerpt_vi__icontains=search)
        )
    if request.query_params.get('featured') in ('1', 'true'):
        queryset = queryset.filter(is_featured=True)
    return paginate(request, queryset.order_by('-published_at', '-id'), BlogPostListSerializer, page_size=12,
                    context={'locale': get_request_locale(request)})


@api_view(['GET'])
@permission_classes([AllowAny])
def post_by_slug(request, slug):
    """A published post; every read counts as a view"""
    post = get_object_or_404(BlogPost.objects.select_related('category', 'author'), slug=slug, status='PUBLISHED')
    BlogPost.objects.filter(pk=post.pk).update(view_count=F('view_count') + 1)
    post.view_count += 1
    return Response(BlogPostDetailSerializer(post, context={'locale': get_request_locale(request)}).data)


@api_view(['GET'])
@permission_classes([AllowAny])
def blog_category_list(request):
    queryset = BlogCategory.objects.annotate(post_count=Count('posts', filter=Q(posts__status='PUBLISHED')))
    serializer = BlogCategorySerializer(queryset, many=True, context={'locale': get_request_locale(request)})
    return Response(serializer.data)


# Services
@api_view(['GET'])
@permission_classes([AllowAny])
def service_list(request):
    queryset = Service.objects.filter(is_active=True)
    serializer = ServiceSerializer(queryset, many=True, context={'locale': get_request_locale(request)})
    return Response(serializer.data)


@api_view(['GET'])
@permission_classes([AllowAny])
def service_detail(request, slug):
    service = get_object_or_404(Service, slug=slug, is_active=True)
    return Response(ServiceDetailSerializer(service, context={'locale': get_request_locale(request)}).data)


# Contact
@api_view(['POST'])
@permission_classes([AllowAny])
@throttle_classes([ContactRateThrottle])
def contact_submit(request):
    serializer = ContactMessageSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    message = serializer.save(locale=serializer.validated_data.get('locale') or get_request_locale(request))
    logger.info(f"Contact message {message.id} received from {message.email}")
    return Response({'id': message.id, 'status': message.status}, status=status.HTTP_201_CREATED)


# Admin blog
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, HasPermission('blog:list')])
def admin_post_list_create(request):
    """All posts with status counts (filters: status, q, category) or create a draft"""
    if request.method == 'GET':
        queryset = BlogPost.objects.select_related('author', 'category').annotate(revision_count=Count('revisions'))
        post_status = request.query_params.get('status')
        if post_status:
            queryset = queryset.filter(status=post_status.upper())
        search = request.query_params.get('q')
        if search:
            queryset = queryset.filter(
                Q(title_en__icontains=search) | Q(title_vi__icontains=search) | Q(slug__icontains=search)
            )
        category = request.query_params.get('category')
        if category:
            queryset = queryset.filter(category_id=category)
        counts = dict(BlogPost.objects.order_by().values_list('status').annotate(total=Count('id')))
        return paginate(
            request, queryset.order_by('-updated_at', '-id'), BlogPostAdminSerializer,
            extra={'status_counts': {key: counts.get(key, 0) for key in POST_STATUSES}},
        )

    else:  # POST
        if not user_has_permission(request.user, 'blog:create'):
            return Response({'error': 'Missing permission: blog:create'}, status=status.HTTP_403_FORBIDDEN)
        serializer = BlogPostAdminSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        post = services.create_post(serializer.validated_data, user=request.user, request=request)
        return Response(BlogPostAdminSerializer(post).data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, HasPermission('blog:read')])
def admin_post_detail(request, pk):
    post = get_object_or_404(BlogPost.objects.select_related('author', 'category'), pk=pk)

    if request.method == 'GET':
        return Response(BlogPostAdminSerializer(post).data)

    elif request.method == 'PATCH':
        if not user_has_permission(request.user, 'blog:update'):
            return Response({'error': 'Missing permission: blog:update'}, status=status.HTTP_403_FORBIDDEN)
        serializer = BlogPostAdminSerializer(post, data=request.data, partial=True)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        post = services.update_post(post, serializer.validated_data, user=request.user, request=request)
        return Response(BlogPostAdminSerializer(post).data)

    else:  # DELETE
        if not user_has_permission(request.user, 'blog:delete'):
            return Response({'error': 'Missing permission: blog:delete'}, status=status.HTTP_403_FORBIDDEN)
        services.bulk_action([post.id], 'delete', user=request.user, request=request)
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['POST'])
@permission_classes([IsAuthenticated, HasPermission('blog:update')])
def admin_post_publish(request, pk):
    post = get_object_or_404(BlogPost, pk=pk)
    post = services.publish_post(post, user=request.user, request=request)
    return Response(BlogPostAdminSerializer(post).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated, HasPermission('blog:update')])
def admin_post_schedule(request, pk):
    post = get_object_or_404(BlogPost, pk=pk)
    serializer = ScheduleSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    post = services.schedule_post(post, serializer.validated_data['scheduled_at'])
    return Response(BlogPostAdminSerializer(post).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated, HasPermission('blog:update')])
def admin_post_archive(request, pk):
    post = get_object_or_404(BlogPost, pk=pk)
    post = services.archive_post(post)
    return Response(BlogPostAdminSerializer(post).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated, HasPermission('blog:update')])
def admin_post_bulk(request):
    """Bulk publish, unpublish, archive or delete (delete needs blog:delete)"""
    serializer = BlogBulkActionSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    data = serializer.validated_data
    if data['action'] == 'delete' and not user_has_permission(request.user, 'blog:delete'):
        return Response({'error': 'Missing permission: blog:delete'}, status=status.HTTP_403_FORBIDDEN)
    result = services.bulk_action(data['ids'], data['action'], user=request.user, request=request)
    return Response(result)


@api_view(['GET'])
@permission_classes([IsAuthenticated, HasPermission('blog:read')])
def admin_post_revisions(request, pk):
    post = get_object_or_404(BlogPost, pk=pk)
    return paginate(request, post.revisions.select_related('editor'), BlogPostRevisionSerializer)


# Admin contacts
@api_view(['GET'])
@permission_classes([IsAuthenticated, HasPermission('contacts:list')])
def admin_contact_list(request):
    """Contact messages (filters: status, q) with the unread count"""
    queryset = ContactMessage.objects.all()
    contact_status = request.query_params.get('status')
    if contact_status:
        queryset = queryset.filter(status=contact_status.upper())
    search = request.query_params.get('q')
    if search:
        queryset = queryset.filter(
            Q(name__icontains=search) | Q(email__icontains=search) |
            Q(company__icontains=search) | Q(subject__icontains=search)
        )
    return paginate(request, queryset.order_by('-created_at'), ContactMessageAdminSerializer,
                    extra={'unread': ContactMessage.objects.filter(status='NEW').count()})


@api_view(['GET', 'PATCH'])
@permission_classes([IsAuthenticated, HasPermission('contacts:read')])
def admin_contact_detail(request, pk):
    """Opening a NEW message marks it READ; PATCH updates status and admin note"""
    message = get_object_or_404(ContactMessage, pk=pk)

    if request.method == 'GET':
        if message.status == 'NEW':
            message.status = 'READ'
            message.save(update_fields=['status', 'updated_at'])
        return Response(ContactMessageAdminSerializer(message).data)

    else:  # PATCH
        if not user_has_permission(request.user, 'contacts:update'):
            return Response({'error': 'Missing permission: contacts:update'}, status=status.HTTP_403_FORBIDDEN)
        serializer = ContactMessageAdminSerializer(message, data=request.data, partial=True)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        serializer.save()
        return Response(serializer.data)
