"""
SQLModel table models.

Importing this package registers every table on ``SQLModel.metadata``;
``create_tables()`` relies on it.
"""

from app.models.refresh_token import RefreshTokens
from app.models.role import RoleClaims, Roles, UserRoles
from app.models.todo import Colour, PriorityLevel, TodoItems, TodoLists
from app.models.user import Users

__all__ = [
    # Identity
    "Users",
    "Roles",
    "UserRoles",
    "RoleClaims",
    "RefreshTokens",
    # Todo
    "TodoLists",
    "TodoItems",
    "Colour",
    "PriorityLevel",
]
