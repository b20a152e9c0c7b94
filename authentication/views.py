import logging

from django.db import DatabaseError, connection
from django.utils import timezone
from drf_yasg import openapi
from drf_yasg.utils import swagger_auto_schema
from rest_framework import generics, permissions, status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework_simplejwt.tokens import RefreshToken
from rest_framework_simplejwt.views import TokenObtainPairView

from .models import CustomUser, Role
from .permissions import AVAILABLE_PERMISSIONS, IsAdmin
from .serializers import LoginSerializer, RoleSerializer, UserRoleAssignmentSerializer, UserSerializer

logger = logging.getLogger(__name__)


# =============== AUTHENTICATION VIEWS ===============

class CustomTokenObtainPairView(TokenObtainPairView):
    """
    JWT login with email and password. The response carries the user profile,
    role names and the permission strings granted by those roles.
    """
    serializer_class = LoginSerializer

    @swagger_auto_schema(
        request_body=LoginSerializer,
        responses={
            200: openapi.Schema(
                type=openapi.TYPE_OBJECT,
                properties={
                    'refresh': openapi.Schema(type=openapi.TYPE_STRING, description='JWT refresh token'),
                    'access': openapi.Schema(type=openapi.TYPE_STRING, description='JWT access token'),
                    'user': openapi.Schema(type=openapi.TYPE_OBJECT, description='User information'),
                    'roles': openapi.Schema(type=openapi.TYPE_ARRAY, items=openapi.Items(type=openapi.TYPE_STRING)),
                    'permissions': openapi.Schema(type=openapi.TYPE_ARRAY, items=openapi.Items(type=openapi.TYPE_STRING)),
                }
            ),
            400: 'Invalid credentials',
        }
    )
    def post(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user = serializer.validated_data['user']

        # Update last login
        user.last_login_at = timezone.now()
        user.save(update_fields=['last_login_at'])

        roles = list(user.roles.filter(is_active=True).values_list('name', flat=True))
        permission_list = user.get_role_permissions()

        refresh = RefreshToken.for_user(user)
        refresh['roles'] = roles

        logger.info(f"User logged in: {user.email} ({', '.join(roles) or 'no roles'})")
        return Response({
            'refresh': str(refresh),
            'access': str(refresh.access_token),
            'user': UserSerializer(user).data,
            'roles': roles,
            'permissions': permission_list,
        }, status=status.HTTP_200_OK)


class MyProfileView(generics.RetrieveUpdateAPIView):
    """
    Get and update current user's profile information.
    """
    serializer_class = UserSerializer
    permission_classes = [permissions.IsAuthenticated]

    def get_object(self):
        return self.request.user

    def perform_update(self, serializer):
        # Email and activity are managed by administrators
        serializer.validated_data.pop('email', None)
        serializer.validated_data.pop('is_active', None)
        serializer.save()


# =============== ROLES ===============

class RoleListCreateView(generics.ListCreateAPIView):
    queryset = Role.objects.all()
    serializer_class = RoleSerializer
    permission_classes = [permissions.IsAuthenticated, IsAdmin]


class RoleDetailView(generics.RetrieveUpdateAPIView):
    queryset = Role.objects.all()
    serializer_class = RoleSerializer
    permission_classes = [permissions.IsAuthenticated, IsAdmin]

    def perform_update(self, serializer):
        role = serializer.save()
        logger.info(f"Role {role.name} updated by {self.request.user}: {role.permissions}")


@api_view(['GET'])
@permission_classes([permissions.IsAuthenticated, IsAdmin])
def available_permissions(request):
    """Every permission string a role can carry"""
    return Response({'permissions': AVAILABLE_PERMISSIONS})


# =============== USERS ===============

class UserListCreateView(generics.ListCreateAPIView):
    queryset = CustomUser.objects.prefetch_related('roles').order_by('email')
    serializer_class = UserSerializer
    permission_classes = [permissions.IsAuthenticated, IsAdmin]


@swagger_auto_schema(method='put', request_body=UserRoleAssignmentSerializer, responses={200: UserSerializer})
@api_view(['PUT'])
@permission_classes([permissions.IsAuthenticated, IsAdmin])
def assign_user_roles(request, user_id):
    """Replace the roles of a user"""
    user = generics.get_object_or_404(CustomUser, pk=user_id)
    serializer = UserRoleAssignmentSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    user.roles.set(serializer.validated_data['roles'])
    logger.info(f"Roles of {user.email} set to {[r.name for r in serializer.validated_data['roles']]} by {request.user}")
    return Response(UserSerializer(user).data)


# =============== SYSTEM ===============

@api_view(['GET'])
@permission_classes([permissions.AllowAny])
def health_check(request):
    try:
        with connection.cursor() as cursor:
            cursor.execute("SELECT 1")
    except DatabaseError as e:
        logger.error(f"Health check failed: {e}")
        return Response({
            'status': 'unhealthy',
            'timestamp': timezone.now().isoformat(),
            'database': 'disconnected',
            'error': str(e)
        }, status=status.HTTP_503_SERVICE_UNAVAILABLE)

    return Response({
        'status': 'healthy',
        'timestamp': timezone.now().isoformat(),
        'database': 'connected',
        'version': '1.0.0'
    })
