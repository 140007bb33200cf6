"""
Permission sync: ensure the administrator role holds every Permission.

Makes the Permission enum the single source of truth for what the built-in
administrator role can do. On startup it:
- Creates the administrator system role if missing
- Inserts a permission claim for every enum member the role lacks
- Warns about permission claims in DB that no longer exist in code
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import CustomClaim
from app.core.logging import get_logger
from app.core.permissions import Permission
from app.models.role import RoleClaims, Roles

logger = get_logger(__name__)

ADMIN_ROLE_NAME = "Administrator"


async def sync_permissions(db: AsyncSession) -> None:
    """
    Ensure the administrator role carries a claim for every Permission.

    Idempotent - safe to run on every startup. Commits its changes.

    Args:
        db: Database session
    """
    result = await db.execute(select(Roles).where(Roles.name == ADMIN_ROLE_NAME))  # type: ignore[arg-type]
    role = result.scalar_one_or_none()
    if role is None:
        role = Roles(
            name=ADMIN_ROLE_NAME,
            description="Built-in administrator role",
            is_system_role=True,
            created_by="system",
        )
        db.add(role)
        await db.flush()
        logger.info("admin_role_created", role_id=role.id)

    enum_values = {p.value for p in Permission}

    result = await db.execute(
        select(RoleClaims.claim_value).where(  # type: ignore[call-overload]
            RoleClaims.role_id == role.id,
            RoleClaims.claim_type == CustomClaim.PERMISSION,
        )
    )
    db_values = {row[0] for row in result.fetchall()}

    missing = enum_values - db_values
    for perm in Permission:
        if perm.value in missing:
            db.add(
                RoleClaims(
                    role_id=role.id,  # type: ignore[arg-type]
                    claim_type=CustomClaim.PERMISSION,
                    claim_value=perm.value,
                )
            )
            logger.info("permission_seeded", permission=perm.value, description=perm.description)

    for value in db_values - enum_values:
        logger.warning(
            "orphan_permission",
            permission=value,
            hint="Permission claim exists in DB but not in code",
        )

    await db.commit()
    logger.info("permissions_synced", total=len(enum_values), added=len(missing))
