"""
SQLModel-based role models

- Roles: named permission groups, some flagged as system roles
- UserRoles: junction table linking users to roles
- RoleClaims: claims (permission/policy) granted by a role
"""

from sqlalchemy import ForeignKeyConstraint, Index
from sqlmodel import Field, SQLModel

from app.models.base import AuditFields

# ===== Roles =====


class RoleBase(SQLModel):
    name: str = Field(max_length=256)
    description: str | None = Field(default=None, max_length=500)
    is_system_role: bool = Field(default=False)


class Roles(RoleBase, AuditFields, table=True):
    """
    Database table for roles.

    Users holding a system role receive a single active refresh token.
    """

    __tablename__ = "roles"

    __table_args__ = (Index("idx_roles_name", "name", unique=True),)

    id: int | None = Field(default=None, primary_key=True)

    # Note: Relationships are intentionally omitted.
    # Foreign keys are sufficient for queries.


# ===== UserRoles =====


class UserRoles(SQLModel, table=True):
    """Junction table: users <-> roles."""

    __tablename__ = "user_roles"

    __table_args__ = (
        ForeignKeyConstraint(
            ["user_id"],
            ["users.id"],
            ondelete="CASCADE",
            name="fk_user_roles_user_id",
        ),
        ForeignKeyConstraint(
            ["role_id"],
            ["roles.id"],
            ondelete="CASCADE",
            name="fk_user_roles_role_id",
        ),
        Index("idx_user_roles_role_id", "role_id"),
    )

    user_id: int = Field(primary_key=True)
    role_id: int = Field(primary_key=True)


# ===== RoleClaims =====


class RoleClaims(SQLModel, table=True):
    """A claim (type/value pair) granted to every member of a role."""

    __tablename__ = "role_claims"

    __table_args__ = (
        ForeignKeyConstraint(
            ["role_id"],
            ["roles.id"],
            ondelete="CASCADE",
            name="fk_role_claims_role_id",
        ),
        Index("idx_role_claims_role_id", "role_id"),
    )

    id: int | None = Field(default=None, primary_key=True)
    role_id: int
    claim_type: str = Field(max_length=64)
    claim_value: str = Field(max_length=256)
