from django.urls import path
from rest_framework_simplejwt.views import TokenRefreshView

from . import views

urlpatterns = [
    # =============== AUTHENTICATION ===============
    path('auth/login/', views.CustomTokenObtainPairView.as_view(), name='token_obtain_pair'),
    path('auth/refresh/', TokenRefreshView.as_view(), name='token_refresh'),

    # =============== USER PROFILE ===============
    path('profile/', views.MyProfileView.as_view(), name='my_profile'),

    # =============== ROLES & USERS ===============
    path('roles/', views.RoleListCreateView.as_view(), name='role_list_create'),
    path('roles/<uuid:pk>/', views.RoleDetailView.as_view(), name='role_detail'),
    path('users/', views.UserListCreateView.as_view(), name='user_list_create'),
    path('users/<uuid:user_id>/roles/', views.assign_user_roles, name='user_roles'),

    # =============== PERMISSIONS ===============
    path('permissions/', views.available_permissions, name='permission_list'),

    # =============== SYSTEM ===============
    path('health/', views.health_check, name='health_check'),
]
