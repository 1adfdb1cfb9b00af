import logging

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes, throttle_classes, parser_classes
from rest_framework.parsers import MultiPartParser, FormParser
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated, AllowAny
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView
from rest_framework_simplejwt.serializers import TokenObtainPairSerializer, TokenRefreshSerializer
from rest_framework_simplejwt.exceptions import InvalidToken, TokenError, AuthenticationFailed
from django.contrib.auth import get_user_model
from django.core.exceptions import ObjectDoesNotExist
from django.core.files.storage import default_storage
from django.db.models import Q
from django.shortcuts import get_object_or_404

from .models import Setting, AuditLog, MediaFile
from .pagination import paginate
from .permissions import IsAdminRole, HasPermission
from .serializers import (
    UserSerializer, UserCreateSerializer, UserProfileUpdateSerializer, UserAdminUpdateSerializer,
    MeSerializer, SettingSerializer, AuditLogSerializer, MediaFileSerializer,
)
from .throttling import LoginRateThrottle, RegisterRateThrottle
from .uploads import validate_upload, generate_unique_file_name, upload_folder, category_for_mime
from .utils import create_audit_log

User = get_user_model()
logger = logging.getLogger(__name__)


class CustomTokenObtainPairSerializer(TokenObtainPairSerializer):
    def validate(self, attrs):
        data = super().validate(attrs)
        if not self.user.is_active:
            raise AuthenticationFailed('User account is disabled.')
        data['user'] = UserSerializer(self.user).data
        return data

    @classmethod
    def get_token(cls, user):
        token = super().get_token(user)
        token['username'] = user.username
        token['role'] = user.effective_role
        return token


class CustomTokenObtainPairView(TokenObtainPairView):
    serializer_class = CustomTokenObtainPairSerializer
    throttle_classes = [LoginRateThrottle]


class CustomTokenRefreshSerializer(TokenRefreshSerializer):
    """Token refresh that reports deleted users as an invalid token"""
    def validate(self, attrs):
        try:
            return super().validate(attrs)
        except (InvalidToken, TokenError):
            raise InvalidToken('Token is invalid or expired.')
        except ObjectDoesNotExist:
            raise InvalidToken('Token is invalid. User no longer exists.')


class CustomTokenRefreshView(TokenRefreshView):
    serializer_class = CustomTokenRefreshSerializer


@api_view(['POST'])
@permission_classes([AllowAny])
@throttle_classes([RegisterRateThrottle])
def register(request):
    """User registration endpoint"""
    serializer = UserCreateSerializer(data=request.data)
    if serializer.is_valid():
        user = serializer.save()
        token = CustomTokenObtainPairSerializer.get_token(user)
        create_audit_log(
            request=request,
            user=user,
            action='USER_REGISTERED',
            model_name='User',
            object_id=str(user.id),
            object_name=user.username,
            changes={'email': user.email},
        )
        logger.info(f"User registered: {user.username}")
        return Response({
            'user': UserSerializer(user).data,
            'access': str(token.access_token),
            'refresh': str(token),
        }, status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PATCH'])
@permission_classes([IsAuthenticated])
def user_me(request):
    """Get or update the current user"""
    if request.method == 'GET':
        return Response(MeSerializer(request.user).data)
    else:  # PATCH
        serializer = UserProfileUpdateSerializer(request.user, data=request.data, partial=True)
        if serializer.is_valid():
            serializer.save()
            return Response(MeSerializer(request.user).data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


# User administration
@api_view(['GET'])
@permission_classes([IsAuthenticated, HasPermission('users:list')])
def user_list(request):
    """List users, filtered by ?q= and ?role="""
    queryset = User.objects.all().order_by('-date_joined')
    search = request.query_params.get('q')
    role = request.query_params.get('role')
    if search:
        queryset = queryset.filter(
            Q(username__icontains=search) | Q(email__icontains=search) |
            Q(first_name__icontains=search) | Q(last_name__icontains=search)
        )
    if role:
        queryset = queryset.filter(role=role.upper())
    return paginate(request, queryset, UserSerializer)


@api_view(['GET', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, IsAdminRole])
def user_detail(request, pk):
    """Retrieve, update (role/activation) or delete a user"""
    user = get_object_or_404(User, pk=pk)

    if request.method == 'GET':
        return Response(UserSerializer(user).data)
    elif request.method == 'PATCH':
        old_role = user.role
        serializer = UserAdminUpdateSerializer(user, data=request.data, partial=True)
        if serializer.is_valid():
            serializer.save()
            if user.role != old_role:
                create_audit_log(
                    request=request,
                    action='USER_ROLE_CHANGED',
                    model_name='User',
                    object_id=str(user.id),
                    object_name=user.username,
                    changes={'role': {'old': old_role, 'new': user.role}},
                )
            return Response(UserSerializer(user).data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        if user.pk == request.user.pk:
            return Response({'error': 'You cannot delete your own account'}, status=status.HTTP_400_BAD_REQUEST)
        user.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)


# Setting views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, HasPermission('settings:read')])
def setting_list_create(request):
    """List all settings or create a new one"""
    if request.method == 'GET':
        settings_qs = Setting.objects.all().order_by('key')
        return Response(SettingSerializer(settings_qs, many=True).data)
    else:  # POST
        if not IsAdminRole().has_permission(request, None):
            return Response({'error': 'Only admins can create settings'}, status=status.HTTP_403_FORBIDDEN)
        serializer = SettingSerializer(data=request.data)
        if serializer.is_valid():
            serializer.save()
            return Response(serializer.data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, IsAdminRole])
def setting_detail(request, pk):
    setting = get_object_or_404(Setting, pk=pk)
    if request.method == 'GET':
        return Response(SettingSerializer(setting).data)
    elif request.method == 'PATCH':
        serializer = SettingSerializer(setting, data=request.data, partial=True)
        if serializer.is_valid():
            serializer.save()
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        setting.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminRole])
def audit_log_list(request):
    """List audit logs with filters: action, model_name, object_reference, user"""
    queryset = AuditLog.objects.select_related('user').all()
    for param in ('action', 'model_name', 'object_reference', 'object_id'):
        value = request.query_params.get(param)
        if value:
            queryset = queryset.filter(**{param: value})
    user_id = request.query_params.get('user')
    if user_id:
        queryset = queryset.filter(user_id=user_id)
    return paginate(request, queryset, AuditLogSerializer, page_size=50)


# Media library
@api_view(['GET'])
@permission_classes([IsAuthenticated, HasPermission('media:list')])
def media_list(request):
    """List uploaded media, filtered by ?q=, ?folder= and ?mime_type= prefix"""
    queryset = MediaFile.objects.all()
    search = request.query_params.get('q')
    folder = request.query_params.get('folder')
    mime_type = request.query_params.get('mime_type')
    if search:
        queryset = queryset.filter(Q(original_name__icontains=search) | Q(alt_text__icontains=search))
    if folder:
        queryset = queryset.filter(folder=folder)
    if mime_type:
        queryset = queryset.filter(mime_type__startswith=mime_type)
    return paginate(request, queryset, MediaFileSerializer, page_size=30)


@api_view(['POST'])
@permission_classes([IsAuthenticated, HasPermission('media:create')])
@parser_classes([MultiPartParser, FormParser])
def media_upload(request):
    """Validate and store an uploaded file"""
    uploaded = request.FILES.get('file')
    if not uploaded:
        return Response({'error': 'No file provided'}, status=status.HTTP_400_BAD_REQUEST)

    category = request.data.get('category') or category_for_mime(uploaded.content_type) or 'images'
    validated = validate_upload(uploaded, category=category)

    folder = upload_folder(category)
    file_name = generate_unique_file_name(validated.name)
    stored_path = default_storage.save(f"{folder}/{file_name}", uploaded)

    media = MediaFile.objects.create(
        file=stored_path,
        original_name=validated.name,
        file_name=file_name,
        mime_type=validated.mime_type,
        size=validated.size,
        category=category,
        folder=folder,
        width=validated.width,
        height=validated.height,
        alt_text=request.data.get('alt_text', '')[:255],
        uploaded_by=request.user,
    )
    create_audit_log(
        request=request,
        action='MEDIA_UPLOADED',
        model_name='MediaFile',
        object_id=str(media.id),
        object_name=media.original_name,
        changes={'path': stored_path, 'size': media.size, 'mime_type': media.mime_type},
    )
    return Response(MediaFileSerializer(media, context={'request': request}).data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, HasPermission('media:read')])
def media_detail(request, pk):
    media = get_object_or_404(MediaFile, pk=pk)
    if request.method == 'GET':
        return Response(MediaFileSerializer(media, context={'request': request}).data)
    elif request.method == 'PATCH':
        serializer = MediaFileSerializer(media, data=request.data, partial=True, context={'request': request})
        if serializer.is_valid():
            serializer.save()
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        if not IsAdminRole().has_permission(request, None):
            return Response({'error': 'Only admins can delete media'}, status=status.HTTP_403_FORBIDDEN)
        media.file.delete(save=False)
        media.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)
