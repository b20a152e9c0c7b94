from django.db import models
from django.contrib.auth.models import AbstractUser, BaseUserManager
from django.core.validators import RegexValidator
import uuid


class CustomUserManager(BaseUserManager):
    def create_user(self, email, password=None, **extra_fields):
        if not email:
            raise ValueError('The Email field must be set')
        email = self.normalize_email(email)
        user = self.model(email=email, **extra_fields)
        user.set_password(password)
        user.save(using=self._db)
        return user

    def create_superuser(self, email, password=None, **extra_fields):
        extra_fields.setdefault('is_staff', True)
        extra_fields.setdefault('is_superuser', True)

        if extra_fields.get('is_staff') is not True:
            raise ValueError('Superuser must have is_staff=True.')
        if extra_fields.get('is_superuser') is not True:
            raise ValueError('Superuser must have is_superuser=True.')

        return self.create_user(email, password, **extra_fields)


class TimeStampedModel(models.Model):
    """Base model with created_at and updated_at fields"""
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True


# =============== ROLE MANAGEMENT ===============

class Role(TimeStampedModel):
    """Named bundle of permission strings assigned to staff"""
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=50, unique=True)
    display_name = models.CharField(max_length=100)
    description = models.TextField(blank=True)
    permissions = models.JSONField(default=list)  # List of permission strings
    is_active = models.BooleanField(default=True)

    class Meta:
        db_table = 'roles'
        ordering = ['name']

    def __str__(self):
        return self.display_name or self.name

    def has_permission(self, permission):
        return 'all' in self.permissions or permission in self.permissions

    def give_permission(self, permission):
        if permission not in self.permissions:
            self.permissions = list(self.permissions) + [permission]
            self.save(update_fields=['permissions', 'updated_at'])

    def revoke_permission(self, permission):
        if permission in self.permissions:
            self.permissions = [p for p in self.permissions if p != permission]
            self.save(update_fields=['permissions', 'updated_at'])


# =============== USER MANAGEMENT ===============

class CustomUser(AbstractUser):
    """Staff account, logs in with email"""
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    phone_regex = RegexValidator(regex=r'^\+?1?\d{9,15}$')
    phone = models.CharField(validators=[phone_regex], max_length=17, blank=True)
    email = models.EmailField(unique=True)
    roles = models.ManyToManyField(Role, blank=True, related_name='users')
    last_login_at = models.DateTimeField(null=True, blank=True)

    # Remove username requirement
    username = None
    USERNAME_FIELD = 'email'
    REQUIRED_FIELDS = ['first_name', 'last_name']
    objects = CustomUserManager()

    class Meta:
        db_table = 'users'

    def __str__(self):
        return self.email

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}".strip()

    def _active_roles(self):
        return self.roles.filter(is_active=True)

    def has_role(self, role_name):
        return self._active_roles().filter(name=role_name).exists()

    def has_any_role(self, role_names):
        return self._active_roles().filter(name__in=list(role_names)).exists()

    def assign_role(self, role):
        if isinstance(role, str):
            role = Role.objects.get(name=role)
        self.roles.add(role)

    def remove_role(self, role):
        if isinstance(role, str):
            role = Role.objects.get(name=role)
        self.roles.remove(role)

    def get_role_permissions(self):
        """Union of the permission strings of every active role"""
        permissions = set()
        for role in self._active_roles():
            permissions.update(role.permissions)
        return sorted(permissions)

    def has_role_permission(self, permission):
        if self.is_superuser:
            return True
        return any(role.has_permission(permission) for role in self._active_roles())
