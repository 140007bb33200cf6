"""
Permission constants for the back-office API.

Permissions are granted to roles as ``permission`` role claims and resolved
per user by the authorization data provider (app.core.authorization).
"""

from enum import Enum


class Permission(str, Enum):
    """
    Type-safe permission constants.

    The value is the role claim value stored in role_claims.
    """

    # Todo lists
    TODO_LISTS_CREATE = "todo.lists.create"
    TODO_LISTS_LIST = "todo.lists.list"
    TODO_LISTS_VIEW = "todo.lists.view"
    TODO_LISTS_UPDATE = "todo.lists.update"
    TODO_LISTS_DELETE = "todo.lists.delete"

    # Todo items
    TODO_ITEMS_CREATE = "todo.items.create"
    TODO_ITEMS_VIEW = "todo.items.view"
    TODO_ITEMS_UPDATE = "todo.items.update"
    TODO_ITEMS_TRACK = "todo.items.track"  # Mark items as done
    TODO_ITEMS_DELETE = "todo.items.delete"

    @property
    def description(self) -> str:
        return _DESCRIPTIONS.get(self, self.value)


_DESCRIPTIONS: dict[Permission, str] = {
    Permission.TODO_LISTS_CREATE: "Create todo lists",
    Permission.TODO_LISTS_LIST: "Browse todo lists",
    Permission.TODO_LISTS_VIEW: "View a todo list",
    Permission.TODO_LISTS_UPDATE: "Edit todo lists",
    Permission.TODO_LISTS_DELETE: "Delete todo lists and their items",
    Permission.TODO_ITEMS_CREATE: "Create todo items",
    Permission.TODO_ITEMS_VIEW: "View a todo item",
    Permission.TODO_ITEMS_UPDATE: "Edit todo items",
    Permission.TODO_ITEMS_TRACK: "Complete todo items",
    Permission.TODO_ITEMS_DELETE: "Delete todo items",
}


def permission_name(permission: str | Permission) -> str:
    """Claim value for a permission given as enum or plain string."""
    return permission.value if isinstance(permission, Permission) else permission
