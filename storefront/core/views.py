import logging
import os
import uuid

from django.conf import settings
from django.core.files.storage import default_storage
from django.db import connection
from django.utils import timezone
from rest_framework import status
from rest_framework.decorators import api_view, parser_classes, permission_classes
from rest_framework.parsers import FormParser, MultiPartParser
from rest_framework.permissions import AllowAny
from rest_framework.response import Response

from . import services
from .models import AuditLog
from .permissions import IsAdminRole, IsAuthenticatedUser, require_authenticated
from .serializers import (
    AddressSerializer, AuditLogSerializer, AuthPayloadSerializer,
    ImageUploadSerializer, LoginSerializer, ProfileUpdateSerializer, RegisterSerializer,
    UserSerializer,
)
from .utils import validated_data

logger = logging.getLogger(__name__)


def _auth_payload(user, token):
    return AuthPayloadSerializer({'token': token, 'user': user}).data


@api_view(['POST'])
@permission_classes([AllowAny])
def register(request):
    """User registration endpoint"""
    data = validated_data(RegisterSerializer(data=request.data))
    user, token = services.register_user(data['email'], data['password'], data['name'])
    return Response(_auth_payload(user, token), status=status.HTTP_201_CREATED)


@api_view(['POST'])
@permission_classes([AllowAny])
def login(request):
    """Exchange email/password for a bearer credential"""
    data = validated_data(LoginSerializer(data=request.data))
    user, token = services.authenticate_user(data['email'], data['password'])
    return Response(_auth_payload(user, token))


@api_view(['GET', 'PATCH'])
@permission_classes([AllowAny])
def user_me(request):
    """Current user (null when anonymous), or update the profile"""
    if request.method == 'GET':
        if not request.user.is_authenticated:
            return Response(None)
        return Response(UserSerializer(request.user).data)

    require_authenticated(request.user)
    data = validated_data(ProfileUpdateSerializer(data=request.data))
    user = services.update_profile(request.user, name=data.get('name'), phone=data.get('phone'))
    return Response(UserSerializer(user).data)


@api_view(['POST'])
@permission_classes([IsAuthenticatedUser])
def address_create(request):
    """Append an address to the current user's address book"""
    data = validated_data(AddressSerializer(data=request.data))
    user = services.add_address(request.user, data)
    return Response(UserSerializer(user).data, status=status.HTTP_201_CREATED)


@api_view(['PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticatedUser])
def address_detail(request, index):
    """Update or delete the address at a list position"""
    if request.method == 'DELETE':
        user = services.delete_address(request.user, index)
        return Response(UserSerializer(user).data)

    data = validated_data(AddressSerializer(data=request.data, partial=True))
    user = services.update_address(request.user, index, data)
    return Response(UserSerializer(user).data)


@api_view(['POST'])
@permission_classes([IsAuthenticatedUser])
@parser_classes([MultiPartParser, FormParser])
def upload_image(request):
    """Store a single image and return its public URL"""
    data = validated_data(ImageUploadSerializer(data=request.data))
    image = data['image']
    extension = os.path.splitext(image.name)[1].lower()
    filename = f"{int(timezone.now().timestamp() * 1000)}-{uuid.uuid4().hex[:9]}{extension}"
    stored_name = default_storage.save(filename, image)
    url = request.build_absolute_uri(f"{settings.MEDIA_URL}{stored_name}")
    logger.info(f"Stored upload {stored_name} for user {request.user.pk}")
    return Response({'url': url}, status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([AllowAny])
def health(request):
    """Liveness probe that also touches the database"""
    try:
        connection.ensure_connection()
        database = 'ok'
    except Exception as e:
        logger.error(f"Health check database failure: {e}")
        database = 'unavailable'
    return Response({
        'status': 'ok' if database == 'ok' else 'degraded',
        'database': database,
        'timestamp': timezone.now().isoformat(),
    })


@api_view(['GET'])
@permission_classes([IsAdminRole])
def audit_log_list(request):
    """List audit logs with filtering"""
    queryset = AuditLog.objects.select_related('user')

    action_filter = request.query_params.get('action', None)
    if action_filter:
        queryset = queryset.filter(action=action_filter)

    model_filter = request.query_params.get('model', None)
    if model_filter:
        queryset = queryset.filter(model_name=model_filter)

    reference = request.query_params.get('reference', None)
    if reference:
        queryset = queryset.filter(object_reference=reference)

    queryset = queryset.order_by('-created_at')[:200]
    serializer = AuditLogSerializer(queryset, many=True)
    return Response(serializer.data)
