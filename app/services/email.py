"""Email notification sender over SMTP."""

import asyncio
import mimetypes
import os
import re
from email.message import EmailMessage

import aiosmtplib
from aiosmtplib.errors import (
    SMTPAuthenticationError,
    SMTPConnectError,
    SMTPConnectTimeoutError,
    SMTPException,
    SMTPReadTimeoutError,
)

from app.config import settings
from app.core.errors import Error
from app.core.logging import get_logger
from app.services.notification import EmailNotificationData, NotificationErrors

logger = get_logger(__name__)

EMAIL_ADDRESS_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
MAX_RETRIES = 3


class EmailErrors:
    @staticmethod
    def invalid_email(email: str) -> Error:
        return Error.validation("EmailNotification.InvalidEmail", f"Invalid email address: {email}")

    @staticmethod
    def missing_attachments(paths: list[str]) -> Error:
        return Error.validation(
            "EmailNotification.InvalidAttachments",
            f"The following attachments were not found: {', '.join(paths)}",
        )

    @staticmethod
    def attachment_too_large(path: str, max_mb: int) -> Error:
        return Error.validation(
            "EmailNotification.AttachmentSize",
            f"Attachment {path} exceeds the maximum size of {max_mb}MB.",
        )

    @staticmethod
    def send_failed(reason: str) -> Error:
        return Error.unexpected("EmailNotification.SendFailed", f"Failed to send email: {reason}")


class EmailSenderService:
    """Sends email notifications with aiosmtplib."""

    def _check(self, data: EmailNotificationData) -> list[Error]:
        for receiver in data.receivers:
            if not EMAIL_ADDRESS_PATTERN.match(receiver):
                return [EmailErrors.invalid_email(receiver)]

        missing = [path for path in data.attachments if not os.path.isfile(path)]
        if missing:
            return [EmailErrors.missing_attachments(missing)]

        max_bytes = settings.SMTP_MAX_ATTACHMENT_SIZE * 1024 * 1024
        for path in data.attachments:
            if os.path.getsize(path) > max_bytes:
                return [EmailErrors.attachment_too_large(path, settings.SMTP_MAX_ATTACHMENT_SIZE)]
        return []

    def build_message(self, data: EmailNotificationData) -> EmailMessage:
        message = EmailMessage()
        sender = data.sender or settings.SMTP_FROM_EMAIL
        message["From"] = f"{settings.SMTP_FROM_NAME} <{sender}>"
        message["To"] = ", ".join(data.receivers)
        message["Subject"] = data.title
        message.set_content(data.content or "")

        if data.html_content:
            message.add_alternative(data.html_content, subtype="html")

        for path in data.attachments:
            content_type, _ = mimetypes.guess_type(path)
            maintype, subtype = (content_type or "application/octet-stream").split("/", 1)
            with open(path, "rb") as f:
                message.add_attachment(
                    f.read(),
                    maintype=maintype,
                    subtype=subtype,
                    filename=os.path.basename(path),
                )
        return message

    async def send_email_notification(self, data: EmailNotificationData) -> list[Error] | None:
        """
        Send one email to all receivers.

        Connection failures are retried with exponential backoff because no
        data reached the server. Anything after that (read timeout, auth,
        other SMTP errors) fails immediately so a message is never delivered
        twice.

        Returns:
            None on success, otherwise a single-error list
        """
        errors = self._check(data)
        if errors:
            return errors

        message = self.build_message(data)
        logger.info(
            "email_notification_sending",
            use_case=data.use_case.value,
            priority=data.priority.value,
            language=data.language,
            receivers=data.receivers,
        )

        for attempt in range(MAX_RETRIES):
            try:
                await aiosmtplib.send(
                    message,
                    hostname=settings.SMTP_HOST,
                    port=settings.SMTP_PORT,
                    username=settings.SMTP_USER or None,
                    password=settings.SMTP_PASSWORD or None,
                    use_tls=settings.SMTP_TLS,
                    start_tls=settings.SMTP_STARTTLS,
                    timeout=30,
                )
                logger.info(
                    "email_sent_success",
                    to=data.receivers,
                    subject=data.title,
                    attempt=attempt + 1,
                )
                return None

            except SMTPReadTimeoutError as e:
                # Message may already be queued on the server
                logger.error(
                    "email_send_timeout_after_data",
                    to=data.receivers,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                return [EmailErrors.send_failed(str(e))]

            except SMTPAuthenticationError as e:
                logger.error("email_auth_failed", to=data.receivers, error=str(e))
                return [EmailErrors.send_failed(str(e))]

            except (SMTPConnectError, SMTPConnectTimeoutError) as e:
                logger.warning(
                    "email_connection_failed",
                    to=data.receivers,
                    attempt=attempt + 1,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                if attempt < MAX_RETRIES - 1:
                    # 1s, 2s
                    await asyncio.sleep(2**attempt)
                else:
                    logger.error("email_connection_failed_all_retries", to=data.receivers)
                    return [EmailErrors.send_failed(str(e))]

            except SMTPException as e:
                logger.error(
                    "email_smtp_error",
                    to=data.receivers,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                return [EmailErrors.send_failed(str(e))]

            except Exception as e:
                logger.error(
                    "email_send_unexpected_error",
                    to=data.receivers,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                return [EmailErrors.send_failed(str(e))]

        return [EmailErrors.send_failed("retries exhausted")]


class EmptyEmailSenderService:
    """Used when SMTP is disabled: nothing is sent."""

    async def send_email_notification(self, data: EmailNotificationData) -> list[Error] | None:
        logger.warning(
            "email_sender_unavailable",
            use_case=data.use_case.value,
            receivers=data.receivers,
        )
        return [NotificationErrors.EMAIL_UNAVAILABLE]
