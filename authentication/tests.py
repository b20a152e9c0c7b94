from io import StringIO

from django.core.management import call_command
from django.test import RequestFactory, TestCase
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APITestCase

from .models import CustomUser, Role
from .permissions import DEFAULT_ROLES, CanCancelOrders, Permissions, Roles, can_view_sales


def seed_roles():
    call_command('seed_roles', stdout=StringIO())


def make_user(email, *role_names, password='kitchen-pass-123', **extra):
    user = CustomUser.objects.create_user(
        email=email, password=password, first_name='Test', last_name='User', **extra,
    )
    for name in role_names:
        user.assign_role(name)
    return user


class RolePermissionTests(TestCase):

    @classmethod
    def setUpTestData(cls):
        seed_roles()

    def test_seed_roles_is_idempotent(self):
        seed_roles()
        self.assertEqual(Role.objects.count(), len(DEFAULT_ROLES))
        cashier = Role.objects.get(name=Roles.CASHIER)
        self.assertIn(Permissions.CREATE_ORDERS, cashier.permissions)

    def test_role_permissions_are_sorted_union(self):
        user = make_user('multi@kash.test', Roles.CASHIER, Roles.KITCHEN_STAFF)
        permissions = user.get_role_permissions()
        self.assertEqual(permissions, sorted(permissions))
        self.assertEqual(len(permissions), len(set(permissions)))
        self.assertIn(Permissions.PROCESS_PAYMENTS, permissions)
        self.assertIn(Permissions.MARK_ITEMS_READY, permissions)

    def test_inactive_role_grants_nothing(self):
        user = make_user('kitchen@kash.test', Roles.KITCHEN_STAFF)
        Role.objects.filter(name=Roles.KITCHEN_STAFF).update(is_active=False)
        self.assertFalse(user.has_role(Roles.KITCHEN_STAFF))
        self.assertFalse(user.has_role_permission(Permissions.MARK_ITEMS_READY))
        self.assertEqual(user.get_role_permissions(), [])

    def test_all_permission_and_superuser(self):
        role = Role.objects.create(name='owner', display_name='Owner', permissions=['all'])
        owner = make_user('owner@kash.test')
        owner.assign_role(role)
        self.assertTrue(owner.has_role_permission(Permissions.SYSTEM_SETTINGS))

        root = CustomUser.objects.create_superuser(email='root@kash.test', password='x')
        self.assertTrue(root.has_role_permission(Permissions.CANCEL_ORDERS))
        self.assertTrue(can_view_sales(root))

    def test_cashier_cannot_cancel_or_view_sales(self):
        cashier = make_user('cashier@kash.test', Roles.CASHIER)
        self.assertFalse(cashier.has_role_permission(Permissions.CANCEL_ORDERS))
        self.assertFalse(can_view_sales(cashier))

    def test_cancel_permission_class(self):
        request = RequestFactory().post('/')
        request.user = make_user('cashier@kash.test', Roles.CASHIER)
        self.assertFalse(CanCancelOrders().has_permission(request, None))

        request.user = make_user('manager@kash.test', Roles.MANAGER)
        self.assertTrue(CanCancelOrders().has_permission(request, None))

    def test_give_and_revoke_permission(self):
        role = Role.objects.get(name=Roles.CASHIER)
        role.give_permission(Permissions.CANCEL_ORDERS)
        role.refresh_from_db()
        self.assertTrue(role.has_permission(Permissions.CANCEL_ORDERS))

        role.revoke_permission(Permissions.CANCEL_ORDERS)
        role.refresh_from_db()
        self.assertFalse(role.has_permission(Permissions.CANCEL_ORDERS))


class AuthenticationAPITests(APITestCase):

    @classmethod
    def setUpTestData(cls):
        seed_roles()
        cls.admin = make_user('admin@kash.test', Roles.ADMIN)
        cls.cashier = make_user('cashier@kash.test', Roles.CASHIER)

    def test_login_returns_tokens_roles_and_permissions(self):
        response = self.client.post(
            reverse('token_obtain_pair'),
            {'email': 'cashier@kash.test', 'password': 'kitchen-pass-123'},
            format='json',
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('access', response.data)
        self.assertIn('refresh', response.data)
        self.assertEqual(response.data['roles'], [Roles.CASHIER])
        self.assertIn(Permissions.CREATE_ORDERS, response.data['permissions'])

        self.cashier.refresh_from_db()
        self.assertIsNotNone(self.cashier.last_login_at)

    def test_login_with_wrong_password(self):
        response = self.client.post(
            reverse('token_obtain_pair'),
            {'email': 'cashier@kash.test', 'password': 'wrong'},
            format='json',
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertTrue(response.data['error'])
        self.assertEqual(response.data['message'], 'Validation error')

    def test_role_management_is_admin_only(self):
        self.client.force_authenticate(self.cashier)
        response = self.client.get(reverse('role_list_create'))
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(response.data['status_code'], 403)

    def test_unauthenticated_requests_are_rejected(self):
        response = self.client.get(reverse('my_profile'))
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_create_role_rejects_unknown_permission(self):
        self.client.force_authenticate(self.admin)
        response = self.client.post(reverse('role_list_create'), {
            'name': 'shift_lead',
            'display_name': 'Shift Lead',
            'permissions': [Permissions.CREATE_ORDERS, 'fly_to_the_moon'],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('permissions', response.data['details'])

    def test_create_role_deduplicates_permissions(self):
        self.client.force_authenticate(self.admin)
        response = self.client.post(reverse('role_list_create'), {
            'name': 'shift_lead',
            'display_name': 'Shift Lead',
            'permissions': [Permissions.VIEW_MENU, Permissions.CREATE_ORDERS, Permissions.VIEW_MENU],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['permissions'], [Permissions.CREATE_ORDERS, Permissions.VIEW_MENU])

    def test_assign_user_roles(self):
        self.client.force_authenticate(self.admin)
        response = self.client.put(
            reverse('user_roles', args=[self.cashier.pk]),
            {'roles': [Roles.MANAGER]},
            format='json',
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['roles'], [Roles.MANAGER])
        self.assertFalse(self.cashier.has_role(Roles.CASHIER))

    def test_profile_update_keeps_email(self):
        self.client.force_authenticate(self.cashier)
        response = self.client.patch(reverse('my_profile'), {
            'first_name': 'Wanjiru',
            'email': 'changed@kash.test',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.cashier.refresh_from_db()
        self.assertEqual(self.cashier.first_name, 'Wanjiru')
        self.assertEqual(self.cashier.email, 'cashier@kash.test')

    def test_health_check(self):
        response = self.client.get(reverse('health_check'))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['database'], 'connected')
