"""SMS notification sender backed by the Sinch REST API."""

import re

import httpx

from app.config import settings
from app.core.errors import Error
from app.core.logging import get_logger
from app.services.notification import NotificationErrors, SmsNotificationData

logger = get_logger(__name__)

PHONE_NUMBER_PATTERN = re.compile(r"^\+?\d{10,15}$")
SINCH_AUTH_URL = "https://auth.sinch.com/oauth2/token"
SINCH_BATCHES_URL = "https://zt.{region}.sms.api.sinch.com/xms/v1/{project_id}/batches"


class SmsErrors:
    @staticmethod
    def invalid_phone_number(phone_number: str) -> Error:
        return Error.validation(
            "SmsNotification.InvalidPhoneNumber", f"Invalid phone number: {phone_number}"
        )

    @staticmethod
    def failed(reason: str) -> Error:
        return Error.failure("SmsNotification.Failed", f"Failed to send SMS: {reason}")


class SmsSenderService:
    """
    Sends one SMS batch per notification.

    An OAuth access token is fetched with the key id/secret pair (client
    credentials grant) before each batch; a single attempt is made.
    """

    def __init__(self, client: httpx.AsyncClient | None = None):
        self._client = client

    async def _access_token(self, client: httpx.AsyncClient) -> str:
        response = await client.post(
            SINCH_AUTH_URL,
            data={"grant_type": "client_credentials"},
            auth=(settings.SMS_SINCH_KEY_ID or "", settings.SMS_SINCH_KEY_SECRET or ""),
        )
        response.raise_for_status()
        return response.json()["access_token"]

    async def _send_batch(self, client: httpx.AsyncClient, data: SmsNotificationData) -> str | None:
        token = await self._access_token(client)
        sender = (
            data.sender_number or settings.SMS_SINCH_SENDER or settings.SMS_DEFAULT_SENDER_NUMBER
        )
        response = await client.post(
            SINCH_BATCHES_URL.format(
                region=settings.SMS_SINCH_REGION, project_id=settings.SMS_SINCH_PROJECT_ID
            ),
            json={"from": sender, "to": data.receivers, "body": data.content},
            headers={"Authorization": f"Bearer {token}"},
        )
        response.raise_for_status()
        return response.json().get("id")

    async def send_sms_notification(self, data: SmsNotificationData) -> list[Error] | None:
        for receiver in data.receivers:
            if not receiver or not PHONE_NUMBER_PATTERN.match(receiver):
                return [SmsErrors.invalid_phone_number(receiver)]

        logger.info(
            "sms_notification_sending",
            use_case=data.use_case.value,
            receivers=data.receivers,
        )
        try:
            if self._client is not None:
                batch_id = await self._send_batch(self._client, data)
            else:
                async with httpx.AsyncClient(timeout=settings.SMS_TIMEOUT_SECONDS) as client:
                    batch_id = await self._send_batch(client, data)
        except (httpx.HTTPError, KeyError, ValueError) as e:
            logger.error("sms_send_failed", error=str(e), error_type=type(e).__name__)
            return [SmsErrors.failed(str(e))]

        logger.info("sms_batch_sent", batch_id=batch_id)
        return None


class EmptySmsSenderService:
    """Used when SMS is disabled: nothing is sent."""

    async def send_sms_notification(self, data: SmsNotificationData) -> list[Error] | None:
        logger.warning(
            "sms_sender_unavailable",
            use_case=data.use_case.value,
            receivers=data.receivers,
        )
        return [NotificationErrors.SMS_UNAVAILABLE]
