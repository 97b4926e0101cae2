"""
AWS End User Messaging SMS client wrapper.

Uses boto3 pinpoint-sms-voice-v2 API to send notification texts.
"""

from functools import lru_cache
from typing import Any

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from django.conf import settings

from apps.core.logging import get_logger
from apps.notifications.exceptions import ChannelError

logger = get_logger(__name__)


@lru_cache(maxsize=1)
def get_sms_client() -> Any:
    """
    Get AWS SMS client (pinpoint-sms-voice-v2).

    Credentials are loaded from environment or IAM role when running on AWS.
    """
    return boto3.client(
        "pinpoint-sms-voice-v2",
        region_name=settings.AWS_SMS_REGION,
    )


def send_sms(phone_number: str, message: str) -> str | None:
    """
    Send a transactional SMS.

    Args:
        phone_number: E.164 format phone number (e.g., +14155551234)
        message: The message body to send

    Returns:
        The AWS message id

    Raises:
        ChannelError: If SMS is not configured or sending fails
    """
    if not settings.AWS_SMS_ORIGINATION_IDENTITY:
        raise ChannelError("sms", "SMS service not configured")

    client = get_sms_client()

    try:
        response = client.send_text_message(
            DestinationPhoneNumber=phone_number,
            OriginationIdentity=settings.AWS_SMS_ORIGINATION_IDENTITY,
            MessageBody=message,
            MessageType="TRANSACTIONAL",
        )
    except ClientError as e:
        error_code = e.response.get("Error", {}).get("Code", "Unknown")
        error_message = e.response.get("Error", {}).get("Message", str(e))
        logger.error("aws_sms_client_error", error_code=error_code, error=error_message)
        raise ChannelError("sms", f"Failed to send SMS: {error_message}") from e
    except BotoCoreError as e:
        logger.error("aws_sms_botocore_error", error=str(e))
        raise ChannelError("sms", f"SMS service error: {e}") from e

    message_id = response.get("MessageId")
    # Log only last 4 digits for privacy
    logger.info("sms_sent", phone_suffix=phone_number[-4:], message_id=message_id)
    return message_id
