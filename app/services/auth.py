"""
Password login.

Runs in one Unit of Work transaction: failed attempts are committed (so the
lockout counter survives), everything else that fails is rolled back.
"""

from sqlalchemy import func, select

from app.config import settings
from app.core.errors import Error
from app.core.logging import get_logger
from app.core.security import verify_password
from app.core.unit_of_work import UnitOfWork
from app.models.user import Users
from app.services.token_management import (
    USER_NOT_FOUND,
    AuthTokens,
    TokenManagementService,
    is_system_user,
)

logger = get_logger(__name__)


class AuthErrors:
    USER_NOT_FOUND = USER_NOT_FOUND
    INVALID_CREDENTIALS = Error.validation("Auth.InvalidCredentials", "Invalid email or password.")
    LOCKED_OUT = Error.validation("Auth.LockedOut", "Account is locked out.")
    EMAIL_NOT_CONFIRMED = Error.validation(
        "Auth.EmailNotConfirmed", "Email address has not been confirmed."
    )


async def get_user_by_email(uow: UnitOfWork, email: str) -> Users | None:
    result = await uow.session.execute(
        select(Users).where(func.lower(Users.email) == email.strip().lower())
    )
    return result.scalar_one_or_none()


async def login_with_password(
    uow: UnitOfWork,
    tokens: TokenManagementService,
    email: str,
    password: str,
    remember_me: bool,
    ip_address: str,
) -> AuthTokens | list[Error]:
    """
    Authenticate by email and password and issue tokens.

    Returns:
        AuthTokens, or one of User.UserNotFound, Auth.LockedOut,
        Auth.EmailNotConfirmed, Auth.InvalidCredentials
    """
    await uow.begin_transaction()
    try:
        user = await get_user_by_email(uow, email)
        if user is None:
            await uow.rollback_transaction()
            logger.info("login_failed", reason="user_not_found")
            return [AuthErrors.USER_NOT_FOUND]

        user_id = user.id

        if user.is_locked_out():
            await uow.rollback_transaction()
            logger.warning("login_failed", reason="locked_out", user_id=user_id)
            return [AuthErrors.LOCKED_OUT]

        if settings.REQUIRE_CONFIRMED_EMAIL and not user.email_confirmed:
            await uow.rollback_transaction()
            logger.info("login_failed", reason="email_not_confirmed", user_id=user_id)
            return [AuthErrors.EMAIL_NOT_CONFIRMED]

        if not verify_password(password, user.password_hash):
            locked = user.record_failed_access(
                settings.LOCKOUT_MAX_FAILED_ATTEMPTS, settings.LOCKOUT_MINUTES
            )
            await uow.save_changes()
            await uow.commit_transaction()
            logger.warning(
                "login_failed",
                reason="invalid_password",
                user_id=user_id,
                locked_out=locked,
            )
            return [AuthErrors.LOCKED_OUT if locked else AuthErrors.INVALID_CREDENTIALS]

        user.reset_access_failed()
        user.record_sign_in(ip_address)
        await uow.save_changes()

        system_user = await is_system_user(uow, user_id)
        issued = await tokens.authenticate(user, ip_address, system_user, remember_me)
        if isinstance(issued, list):
            await uow.rollback_transaction()
            return issued

        await uow.commit_transaction()
        logger.info("login_succeeded", user_id=user_id)
        return issued
    except Exception:
        if uow.has_active_transaction:
            await uow.rollback_transaction()
        raise
