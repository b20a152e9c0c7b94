from rest_framework import permissions


class HasAnyRole(permissions.BasePermission):
    """
    Permission granted when the user holds one of ``allowed_roles``.
    Superusers always pass.
    """
    allowed_roles = ()
    message = 'You do not have the role required for this action.'

    def has_permission(self, request, view):
        user = request.user
        if not user or not user.is_authenticated:
            return False
        if user.is_superuser:
            return True
        return user.has_any_role(self.allowed_roles)


class HasPermission(permissions.BasePermission):
    """
    Permission to check a specific permission string carried by the user's roles
    """
    required_permission = None
    message = 'You do not have permission to perform this action.'

    def has_permission(self, request, view):
        user = request.user
        if not user or not user.is_authenticated:
            return False
        return user.has_role_permission(self.required_permission)


def roles_required(*role_names):
    """Build a HasAnyRole permission class for the given role names"""
    return type(
        'HasAnyRole_' + '_'.join(role_names),
        (HasAnyRole,),
        {'allowed_roles': tuple(role_names)},
    )


def require_permission(permission_name):
    """Build a HasPermission permission class for one permission string"""
    return type(
        'HasPermission_' + permission_name,
        (HasPermission,),
        {'required_permission': permission_name},
    )


# Role names
class Roles:
    ADMIN = 'admin'
    MANAGER = 'manager'
    CASHIER = 'cashier'
    KITCHEN_STAFF = 'kitchen_staff'


# Route gates
IsAdmin = roles_required(Roles.ADMIN)
IsAdminOrManager = roles_required(Roles.ADMIN, Roles.MANAGER)
IsPOSStaff = roles_required(Roles.ADMIN, Roles.MANAGER, Roles.CASHIER)
IsKitchenStaff = roles_required(Roles.ADMIN, Roles.MANAGER, Roles.KITCHEN_STAFF)
IsOrderStaff = roles_required(Roles.ADMIN, Roles.MANAGER, Roles.CASHIER, Roles.KITCHEN_STAFF)

SALES_ROLES = (Roles.ADMIN, Roles.MANAGER)


def can_view_sales(user):
    return user.is_superuser or user.has_any_role(SALES_ROLES)


# Permission constants
class Permissions:
    # User Management
    MANAGE_USERS = 'manage_users'
    MANAGE_ROLES = 'manage_roles'

    # Catalogue
    MANAGE_MENU = 'manage_menu'
    VIEW_MENU = 'view_menu'
    MANAGE_INVENTORY = 'manage_inventory'

    # Reports
    VIEW_REPORTS = 'view_reports'
    VIEW_DAILY_SALES = 'view_daily_sales'
    EXPORT_REPORTS = 'export_reports'

    # Cash & Settings
    MANAGE_CASH_SESSIONS = 'manage_cash_sessions'
    SYSTEM_SETTINGS = 'system_settings'

    # Sales
    CREATE_ORDERS = 'create_orders'
    UPDATE_ORDER_STATUS = 'update_order_status'
    CANCEL_ORDERS = 'cancel_orders'
    PROCESS_REFUNDS = 'process_refunds'
    PROCESS_PAYMENTS = 'process_payments'
    VIEW_OWN_ORDERS = 'view_own_orders'
    UPDATE_CUSTOMER_INFO = 'update_customer_info'

    # Kitchen
    VIEW_KITCHEN_ORDERS = 'view_kitchen_orders'
    MARK_ITEMS_READY = 'mark_items_ready'
    VIEW_PREPARATION_QUEUE = 'view_preparation_queue'


AVAILABLE_PERMISSIONS = [
    Permissions.MANAGE_USERS, Permissions.MANAGE_ROLES,
    Permissions.MANAGE_MENU, Permissions.MANAGE_INVENTORY,
    Permissions.VIEW_REPORTS, Permissions.MANAGE_CASH_SESSIONS,
    Permissions.SYSTEM_SETTINGS, Permissions.CREATE_ORDERS,
    Permissions.UPDATE_ORDER_STATUS, Permissions.CANCEL_ORDERS,
    Permissions.PROCESS_REFUNDS, Permissions.VIEW_KITCHEN_ORDERS,
    Permissions.MARK_ITEMS_READY, Permissions.VIEW_PREPARATION_QUEUE,
    Permissions.VIEW_MENU, Permissions.PROCESS_PAYMENTS,
    Permissions.VIEW_OWN_ORDERS, Permissions.UPDATE_CUSTOMER_INFO,
    Permissions.EXPORT_REPORTS, Permissions.VIEW_DAILY_SALES,
]

# Default roles with their permissions
DEFAULT_ROLES = {
    Roles.ADMIN: {
        'display_name': 'Administrator',
        'description': 'Full system access',
        'permissions': [
            Permissions.MANAGE_USERS, Permissions.MANAGE_ROLES,
            Permissions.MANAGE_MENU, Permissions.MANAGE_INVENTORY,
            Permissions.VIEW_REPORTS, Permissions.MANAGE_CASH_SESSIONS,
            Permissions.SYSTEM_SETTINGS, Permissions.CREATE_ORDERS,
            Permissions.UPDATE_ORDER_STATUS, Permissions.CANCEL_ORDERS,
            Permissions.PROCESS_REFUNDS,
        ],
    },
    Roles.MANAGER: {
        'display_name': 'Manager',
        'description': 'Manages menu, stock and daily operations',
        'permissions': [
            Permissions.MANAGE_MENU, Permissions.MANAGE_INVENTORY,
            Permissions.VIEW_REPORTS, Permissions.MANAGE_CASH_SESSIONS,
            Permissions.CREATE_ORDERS, Permissions.UPDATE_ORDER_STATUS,
            Permissions.CANCEL_ORDERS, Permissions.PROCESS_REFUNDS,
            Permissions.VIEW_DAILY_SALES, Permissions.EXPORT_REPORTS,
        ],
    },
    Roles.CASHIER: {
        'display_name': 'Cashier',
        'description': 'Takes orders and payments at the counter',
        'permissions': [
            Permissions.CREATE_ORDERS, Permissions.UPDATE_ORDER_STATUS,
            Permissions.VIEW_MENU, Permissions.PROCESS_PAYMENTS,
            Permissions.VIEW_OWN_ORDERS, Permissions.UPDATE_CUSTOMER_INFO,
        ],
    },
    Roles.KITCHEN_STAFF: {
        'display_name': 'Kitchen Staff',
        'description': 'Prepares orders and marks them ready',
        'permissions': [
            Permissions.VIEW_KITCHEN_ORDERS, Permissions.UPDATE_ORDER_STATUS,
            Permissions.MARK_ITEMS_READY, Permissions.VIEW_PREPARATION_QUEUE,
        ],
    },
}

# Action gates
CanCancelOrders = require_permission(Permissions.CANCEL_ORDERS)
