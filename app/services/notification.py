"""
Notification dispatch.

A thin, synchronous dispatcher: the request is checked (use case, receivers,
send method), receivers are matched against stored user contacts, the
template is rendered and the message is handed to the email or SMS sender
exactly once. Invalid input short-circuits before any I/O; send failures are
returned as errors, never raised.
"""

import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Protocol

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import Error
from app.core.logging import get_logger
from app.models.base import utc_now
from app.models.user import Users

logger = get_logger(__name__)

EMAIL_SENDER_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
SMS_SENDER_PATTERN = re.compile(r"^\+?[1-9]\d{7,14}$")
SMS_MAX_LENGTH = 160


class SendMethod(str, Enum):
    NONE = "none"
    EMAIL = "email"
    SMS = "sms"
    PUSH = "push"
    WHATSAPP = "whatsapp"


class NotificationPriority(str, Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"


class NotificationFormat(str, Enum):
    DEFAULT = "default"
    HTML = "html"


class NotificationUseCase(str, Enum):
    NONE = "none"
    # System
    SYSTEM_ACTIVE_EMAIL = "system_active_email"
    SYSTEM_ACTIVE_PHONE = "system_active_phone"
    SYSTEM_RESET_PASSWORD = "system_reset_password"
    SYSTEM_ORDER_CONFIRMATION = "system_order_confirmation"
    SYSTEM_ORDER_SHIPPED = "system_order_shipped"
    SYSTEM_ORDER_FAILED = "system_order_failed"
    SYSTEM_ACCOUNT_UPDATE = "system_account_update"
    SYSTEM_PROMOTION_EMAIL = "system_promotion_email"
    # User
    USER_WELCOME_EMAIL = "user_welcome_email"
    USER_PROFILE_UPDATE_EMAIL = "user_profile_update_email"
    USER_PASSWORD_CHANGE_NOTIFICATION = "user_password_change_notification"
    # Payment
    PAYMENT_SUCCESS_EMAIL = "payment_success_email"
    PAYMENT_FAILURE_EMAIL = "payment_failure_email"
    PAYMENT_REFUND_NOTIFICATION = "payment_refund_notification"
    # Marketing
    MARKETING_NEWSLETTER = "marketing_newsletter"
    MARKETING_DISCOUNT_OFFER = "marketing_discount_offer"
    MARKETING_SURVEY = "marketing_survey"
    # Store
    NEW_COLLECTION_LAUNCH = "new_collection_launch"
    FLASH_SALE_NOTIFICATION = "flash_sale_notification"
    BACK_IN_STOCK_NOTIFICATION = "back_in_stock_notification"
    LOYALTY_REWARD_EARNED = "loyalty_reward_earned"
    ABANDONED_CART_REMINDER = "abandoned_cart_reminder"
    WISHLIST_ITEM_ON_SALE = "wishlist_item_on_sale"


class NotificationParameter(str, Enum):
    """Template placeholders; ``{SystemName}`` in a template maps to SYSTEM_NAME."""

    SYSTEM_NAME = "SystemName"
    SUPPORT_EMAIL = "SupportEmail"
    SUPPORT_PHONE = "SupportPhone"
    CUSTOMER_SUPPORT_LINK = "CustomerSupportLink"
    USER_NAME = "UserName"
    USER_EMAIL = "UserEmail"
    USER_FULL_NAME = "UserFullName"
    USER_FIRST_NAME = "UserFirstName"
    USER_LAST_NAME = "UserLastName"
    USER_PROFILE_URL = "UserProfileUrl"
    OTP_CODE = "OtpCode"
    ORDER_ID = "OrderId"
    ORDER_DATE = "OrderDate"
    ORDER_TOTAL = "OrderTotal"
    ORDER_STATUS = "OrderStatus"
    ORDER_TRACKING_NUMBER = "OrderTrackingNumber"
    ORDER_TRACKING_URL = "OrderTrackingUrl"
    ORDER_ITEMS = "OrderItems"
    PAYMENT_STATUS = "PaymentStatus"
    PAYMENT_AMOUNT = "PaymentAmount"
    PAYMENT_METHOD = "PaymentMethod"
    ACTIVE_URL = "ActiveUrl"
    RESET_PASSWORD_URL = "ResetPasswordUrl"
    UNSUBSCRIBE_URL = "UnsubscribeUrl"
    SURVEY_URL = "SurveyUrl"
    SITE_URL = "SiteUrl"
    CREATED_AT = "CreatedDateTimeOffset"
    EXPIRES_AT = "ExpiryDateTimeOffset"
    DELIVERY_DATE = "DeliveryDate"
    PROMO_CODE = "PromoCode"
    PROMO_DISCOUNT = "PromoDiscount"
    PROMO_URL = "PromoUrl"
    COLLECTION_NAME = "CollectionName"
    COLLECTION_URL = "CollectionUrl"
    LOYALTY_POINTS = "LoyaltyPoints"
    LOYALTY_REWARD_URL = "LoyaltyRewardUrl"


@dataclass(frozen=True)
class NotificationTemplate:
    name: str
    content: str
    html_content: str | None = None
    send_method: SendMethod = SendMethod.EMAIL
    template_format: NotificationFormat = NotificationFormat.DEFAULT


TEMPLATES: dict[NotificationUseCase, NotificationTemplate] = {
    NotificationUseCase.SYSTEM_ACTIVE_EMAIL: NotificationTemplate(
        name="Activate your {SystemName} account",
        content="Hi {UserName}, activate your account here: {ActiveUrl}",
        html_content=(
            "<p>Hi {UserName},</p>"
            '<p><a href="{ActiveUrl}">Activate your account</a></p>'
        ),
        template_format=NotificationFormat.HTML,
    ),
    NotificationUseCase.SYSTEM_ACTIVE_PHONE: NotificationTemplate(
        name="Verify your phone number",
        content="Your {SystemName} verification code is {OtpCode}",
        send_method=SendMethod.SMS,
    ),
    NotificationUseCase.SYSTEM_RESET_PASSWORD: NotificationTemplate(
        name="Reset your password",
        content="Hi {UserName}, reset your password here: {ResetPasswordUrl}",
        html_content=(
            "<p>Hi {UserName},</p>"
            '<p><a href="{ResetPasswordUrl}">Reset your password</a></p>'
        ),
        template_format=NotificationFormat.HTML,
    ),
    NotificationUseCase.SYSTEM_ORDER_CONFIRMATION: NotificationTemplate(
        name="Order {OrderId} confirmed",
        content="Thanks {UserFirstName}! Order {OrderId} ({OrderTotal}) was placed on {OrderDate}.",
    ),
    NotificationUseCase.SYSTEM_ORDER_SHIPPED: NotificationTemplate(
        name="Order {OrderId} shipped",
        content="Order {OrderId} is on its way. Track it: {OrderTrackingUrl}",
    ),
    NotificationUseCase.ABANDONED_CART_REMINDER: NotificationTemplate(
        name="You left something behind",
        content="Hi {UserFirstName}, your cart is waiting for you at {SiteUrl}",
    ),
}


def render(text: str | None, values: dict[NotificationParameter, str | None]) -> str | None:
    """Replace ``{Param}`` placeholders; missing values become empty strings."""
    if text is None:
        return None
    for parameter, value in values.items():
        text = text.replace(f"{{{parameter.value}}}", value or "")
    return text


def _clean_receivers(receivers: list[str]) -> list[str]:
    """Non-blank receivers, de-duplicated, first occurrence wins."""
    seen: list[str] = []
    for receiver in receivers:
        if receiver and receiver.strip() and receiver not in seen:
            seen.append(receiver)
    return seen


class NotificationErrors:
    MISSING_USE_CASE = Error.validation(
        "Notification.UseCase.Missing", "Notification use case must be specified."
    )
    MISSING_RECEIVER = Error.validation(
        "Notification.Receivers.Missing", "At least one valid receiver is required."
    )
    EMPTY_CREATED_BY = Error.validation(
        "Notification.CreatedBy.Missing", "CreatedBy cannot be empty or whitespace."
    )
    MISSING_EMAIL_TITLE = Error.validation(
        "Notification.Email.Title.Missing", "Title is required for Email notifications."
    )
    MISSING_EMAIL_CONTENT = Error.validation(
        "Notification.Email.Content.Missing",
        "At least one of Content or HtmlContent is required for Email notifications.",
    )
    INVALID_EMAIL_SENDER = Error.validation(
        "Notification.Email.Sender.Invalid", "Sender must be a valid email address."
    )
    MISSING_SMS_CONTENT = Error.validation(
        "Notification.SMS.Content.Missing", "Content is required for SMS notifications."
    )
    SMS_CONTENT_TOO_LONG = Error.validation(
        "Notification.SMS.Content.TooLong",
        "SMS content exceeds 160 characters and may be truncated.",
    )
    INVALID_SMS_SENDER = Error.validation(
        "Notification.SMS.Sender.Invalid", "Sender must be a valid phone number."
    )
    EMAIL_UNAVAILABLE = Error.unexpected(
        "Notification.EmailUnavailable",
        "Email sending is currently unavailable or disabled.",
    )
    SMS_UNAVAILABLE = Error.unexpected(
        "Notification.SmsUnavailable", "SMS sending is currently unavailable or disabled."
    )


class NotificationServiceErrors:
    INVALID_USE_CASE = Error.validation(
        "NotificationService.InvalidUseCase", "Use case must be specified."
    )
    EMPTY_RECEIVERS = Error.validation(
        "NotificationService.EmptyReceivers", "At least one valid receiver required."
    )
    NOT_SUPPORTED_SEND_METHOD = Error.validation(
        "NotificationService.NotSupportedSendMethod",
        "The specified send method type is not supported.",
    )
    CONTACT_NOT_FOUND = Error.not_found(
        "NotificationService.ContactNotFound", "No valid contacts found."
    )


@dataclass(kw_only=True)
class EmailNotificationData:
    use_case: NotificationUseCase
    receivers: list[str]
    title: str
    content: str | None = None
    html_content: str | None = None
    sender: str | None = None
    attachments: list[str] = field(default_factory=list)
    created_by: str = "System"
    priority: NotificationPriority = NotificationPriority.NORMAL
    language: str = "en-US"


@dataclass(kw_only=True)
class SmsNotificationData:
    use_case: NotificationUseCase
    receivers: list[str]
    content: str
    sender_number: str | None = None
    created_by: str = "System"
    priority: NotificationPriority = NotificationPriority.NORMAL
    language: str = "en-US"


@dataclass(kw_only=True)
class NotificationData:
    """
    A generic notification request.

    ``for_use_case`` pre-fills title, bodies and send method from the use
    case template; callers then add receivers and parameter values.
    """

    use_case: NotificationUseCase = NotificationUseCase.NONE
    send_method: SendMethod = SendMethod.EMAIL
    template_format: NotificationFormat = NotificationFormat.DEFAULT
    values: dict[NotificationParameter, str | None] = field(default_factory=dict)
    receivers: list[str] = field(default_factory=list)
    title: str | None = None
    content: str | None = None
    html_content: str | None = None
    created_by: str = "System"
    created_at: datetime | None = None
    attachments: list[str] = field(default_factory=list)
    priority: NotificationPriority = NotificationPriority.NORMAL
    language: str = "en-US"
    sender: str | None = None

    @classmethod
    def for_use_case(cls, use_case: NotificationUseCase, **overrides) -> "NotificationData":
        template = TEMPLATES.get(use_case)
        data = cls(use_case=use_case)
        if template is not None:
            data.send_method = template.send_method
            data.template_format = template.template_format
            data.title = template.name
            data.content = template.content
            data.html_content = template.html_content
        for name, value in overrides.items():
            setattr(data, name, value)
        return data

    def add_param(self, parameter: NotificationParameter, value: str | None) -> "NotificationData":
        self.values[parameter] = value
        return self

    def with_receivers(self, receivers: list[str]) -> "NotificationData":
        self.receivers = _clean_receivers([*self.receivers, *receivers])
        return self

    def validate(self) -> list[Error]:
        """Every failed rule, in field order; empty when valid."""
        errors: list[Error] = []

        if self.use_case == NotificationUseCase.NONE:
            errors.append(NotificationErrors.MISSING_USE_CASE)

        if not _clean_receivers(self.receivers):
            errors.append(NotificationErrors.MISSING_RECEIVER)

        if not self.created_by or not self.created_by.strip():
            errors.append(NotificationErrors.EMPTY_CREATED_BY)

        sender = (self.sender or "").strip()
        if self.send_method == SendMethod.EMAIL:
            if not self.title or not self.title.strip():
                errors.append(NotificationErrors.MISSING_EMAIL_TITLE)
            if not (self.content or "").strip() and not (self.html_content or "").strip():
                errors.append(NotificationErrors.MISSING_EMAIL_CONTENT)
            if sender and not EMAIL_SENDER_PATTERN.match(sender):
                errors.append(NotificationErrors.INVALID_EMAIL_SENDER)
        elif self.send_method == SendMethod.SMS:
            if not (self.content or "").strip():
                errors.append(NotificationErrors.MISSING_SMS_CONTENT)
            elif len(self.content or "") > SMS_MAX_LENGTH:
                errors.append(NotificationErrors.SMS_CONTENT_TOO_LONG)
            if sender and not SMS_SENDER_PATTERN.match(sender):
                errors.append(NotificationErrors.INVALID_SMS_SENDER)

        return errors

    def rendered(self) -> "NotificationData":
        """Copy with placeholders substituted in title, content and HTML body."""
        return NotificationData(
            use_case=self.use_case,
            send_method=self.send_method,
            template_format=self.template_format,
            values=dict(self.values),
            receivers=_clean_receivers(self.receivers),
            title=render(self.title, self.values),
            content=render(self.content, self.values),
            html_content=render(self.html_content, self.values),
            created_by=self.created_by,
            created_at=self.created_at or utc_now(),
            attachments=list(dict.fromkeys(a for a in self.attachments if a and a.strip())),
            priority=self.priority,
            language=self.language,
            sender=self.sender,
        )

    def to_email(self) -> EmailNotificationData:
        return EmailNotificationData(
            use_case=self.use_case,
            receivers=_clean_receivers(self.receivers),
            title=self.title or self.use_case.value,
            content=self.content,
            html_content=self.html_content or None,
            sender=self.sender,
            attachments=list(self.attachments),
            created_by=self.created_by,
            priority=self.priority,
            language=self.language,
        )

    def to_sms(self) -> SmsNotificationData:
        return SmsNotificationData(
            use_case=self.use_case,
            receivers=_clean_receivers(self.receivers),
            content=self.content or "",
            sender_number=self.sender,
            created_by=self.created_by,
            priority=self.priority,
            language=self.language,
        )


class EmailSender(Protocol):
    async def send_email_notification(self, data: EmailNotificationData) -> list[Error] | None: ...


class SmsSender(Protocol):
    async def send_sms_notification(self, data: SmsNotificationData) -> list[Error] | None: ...


class NotificationService:
    """Validates, resolves contacts and hands off to one sender."""

    def __init__(
        self,
        db: AsyncSession,
        email_sender: EmailSender | None = None,
        sms_sender: SmsSender | None = None,
    ):
        """Senders default to the ones selected by SMTP_ENABLE and SMS_ENABLE."""
        self.db = db
        self.email_sender = email_sender if email_sender is not None else get_email_sender()
        self.sms_sender = sms_sender if sms_sender is not None else get_sms_sender()

    async def add_notification(self, data: NotificationData) -> list[Error] | None:
        """
        Send one notification.

        Returns:
            None on success, otherwise the errors of the first failing stage:
            request checks, contact resolution, data validation, then send.
        """
        if data.use_case == NotificationUseCase.NONE:
            return [NotificationServiceErrors.INVALID_USE_CASE]

        if not _clean_receivers(data.receivers):
            return [NotificationServiceErrors.EMPTY_RECEIVERS]

        if data.send_method not in (SendMethod.EMAIL, SendMethod.SMS):
            return [NotificationServiceErrors.NOT_SUPPORTED_SEND_METHOD]

        contacts = await self.resolve_contacts(data.receivers, data.send_method)
        if not contacts:
            logger.info(
                "notification_contacts_not_found",
                use_case=data.use_case.value,
                send_method=data.send_method.value,
            )
            return [NotificationServiceErrors.CONTACT_NOT_FOUND]

        data.receivers = contacts
        rendered = data.rendered()

        errors = rendered.validate()
        if errors:
            return errors

        logger.info(
            "notification_dispatching",
            use_case=rendered.use_case.value,
            send_method=rendered.send_method.value,
            receivers=len(contacts),
            priority=rendered.priority.value,
        )
        if rendered.send_method == SendMethod.EMAIL:
            return await self.email_sender.send_email_notification(rendered.to_email())
        return await self.sms_sender.send_sms_notification(rendered.to_sms())

    async def resolve_contacts(self, receivers: list[str], send_method: SendMethod) -> list[str]:
        """Stored contacts matching the requested ones, compared case-insensitively."""
        wanted = {r.strip().lower() for r in receivers if r and r.strip()}
        if send_method == SendMethod.EMAIL:
            column = Users.email
        elif send_method == SendMethod.SMS:
            column = Users.phone_number
        else:
            return []

        result = await self.db.execute(
            select(column)  # type: ignore[call-overload]
            .where(column.is_not(None), func.lower(column).in_(wanted))  # type: ignore[union-attr]
            .distinct()
        )
        return [value for value in result.scalars().all() if value and value.strip()]


def get_email_sender() -> EmailSender:
    # Imported here: the sender modules import the data classes above
    from app.config import settings
    from app.services.email import EmailSenderService, EmptyEmailSenderService

    return EmailSenderService() if settings.SMTP_ENABLE else EmptyEmailSenderService()


def get_sms_sender() -> SmsSender:
    from app.config import settings
    from app.services.sms import EmptySmsSenderService, SmsSenderService

    return SmsSenderService() if settings.SMS_ENABLE else EmptySmsSenderService()
