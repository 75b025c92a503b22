"""
Permission Constants and Definitions

WHY: Centralized permission definitions keep routes, CLI and services in
agreement. All permission codes and role mappings are defined here.

DESIGN PRINCIPLES:
- Permissions are granular (one action per permission)
- Categories group related permissions for client display
- super_admin has every permission
"""

# =============================================================================
# PERMISSION CATEGORIES
# =============================================================================

class PermissionCategory:
    """Permission categories for organization."""
    SYSTEM = "SYSTEM"
    CATALOG = "CATALOG"
    STOCK = "STOCK"
    TRANSFERS = "TRANSFERS"
    SALES = "SALES"


# =============================================================================
# PERMISSION DEFINITIONS
# =============================================================================

# Each permission is defined as: (code, name, description, category)
PERMISSION_DEFINITIONS = [
    # SYSTEM PERMISSIONS
    (
        "MANAGE_BRANCHES",
        "Manage Branches",
        "Create and update branches and their staff",
        PermissionCategory.SYSTEM
    ),

    # CATALOG PERMISSIONS
    (
        "MANAGE_CATEGORIES",
        "Manage Categories",
        "Create product categories",
        PermissionCategory.CATALOG
    ),
    (
        "MANAGE_PRODUCTS",
        "Manage Products",
        "Create, update and deactivate products",
        PermissionCategory.CATALOG
    ),

    # STOCK PERMISSIONS
    (
        "VIEW_STOCK",
        "View Stock",
        "View branch stock levels and stock movements",
        PermissionCategory.STOCK
    ),
    (
        "ADJUST_STOCK",
        "Adjust Stock",
        "Record manual stock adjustments and minimum stock levels",
        PermissionCategory.STOCK
    ),

    # TRANSFER PERMISSIONS
    (
        "VIEW_TRANSFERS",
        "View Transfers",
        "View transfer documents",
        PermissionCategory.TRANSFERS
    ),
    (
        "CREATE_TRANSFER",
        "Create Transfer",
        "Create, draft and submit stock transfers",
        PermissionCategory.TRANSFERS
    ),
    (
        "APPROVE_TRANSFER",
        "Approve Transfer",
        "Approve pending transfers",
        PermissionCategory.TRANSFERS
    ),
    (
        "REJECT_TRANSFER",
        "Reject Transfer",
        "Reject pending transfers",
        PermissionCategory.TRANSFERS
    ),
    (
        "SEND_TRANSFER",
        "Send Transfer",
        "Ship approved transfers (stock leaves the source branch)",
        PermissionCategory.TRANSFERS
    ),
    (
        "RECEIVE_TRANSFER",
        "Receive Transfer",
        "Receive sent transfers (stock enters the destination branch)",
        PermissionCategory.TRANSFERS
    ),
    (
        "DELETE_TRANSFER",
        "Delete Transfer",
        "Delete draft or pending transfers",
        PermissionCategory.TRANSFERS
    ),

    # SALES PERMISSIONS
    (
        "VIEW_SALES",
        "View Sales",
        "View sales and invoices",
        PermissionCategory.SALES
    ),
    (
        "CREATE_SALE",
        "Create Sale",
        "Record point-of-sale transactions",
        PermissionCategory.SALES
    ),
    (
        "CANCEL_SALE",
        "Cancel Sale",
        "Cancel a sale and return its items to stock",
        PermissionCategory.SALES
    ),
]


# =============================================================================
# DEFAULT ROLE PERMISSIONS
# =============================================================================

DEFAULT_ROLE_PERMISSIONS = {
    "super_admin": [
        # Super admin gets ALL permissions
        code for code, _name, _description, _category in PERMISSION_DEFINITIONS
    ],

    "branch_admin": [
        # Branch admin: runs a branch, approves and moves stock
        "MANAGE_PRODUCTS",
        "VIEW_STOCK",
        "ADJUST_STOCK",
        "VIEW_TRANSFERS",
        "CREATE_TRANSFER",
        "APPROVE_TRANSFER",
        "REJECT_TRANSFER",
        "SEND_TRANSFER",
        "RECEIVE_TRANSFER",
        "DELETE_TRANSFER",
        "VIEW_SALES",
        "CREATE_SALE",
        "CANCEL_SALE",
    ],

    "cashier": [
        # Cashier: point of sale only
        "VIEW_STOCK",
        "VIEW_SALES",
        "CREATE_SALE",
    ],
}

ROLES = tuple(DEFAULT_ROLE_PERMISSIONS)


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def get_all_permission_codes():
    """Get list of all permission codes."""
    return [code for code, _, _, _ in PERMISSION_DEFINITIONS]


def get_permissions_by_category(category):
    """Get all permissions in a specific category."""
    return [p for p in PERMISSION_DEFINITIONS if p[3] == category]


def validate_permission_code(code):
    """Check if a permission code is valid."""
    return code in get_all_permission_codes()
