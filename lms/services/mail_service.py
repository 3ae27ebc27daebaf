import asyncio
import logging

from lms import config
from lms.kafka import kafka_manager

logger = logging.getLogger("mail_service")


async def send_mail(to: str, subject: str, body: str):
    """Queue an email job; delivery happens in the email consumer process."""
    if not config.MAIL_QUEUE_ENABLED:
        logger.info(f"Mail queue disabled, dropping email to {to}: {subject}")
        return
    job = {"to": to, "subject": subject, "body": body}
    # kafka-python blocks on flush
    await asyncio.to_thread(kafka_manager.send_event, config.EMAIL_TOPIC, job)
    logger.info(f"Queued email to {to}: {subject}")


async def send_otp_email(email: str, code: str):
    await send_mail(
        email,
        "Your Verification Code",
        f"Your verification code is: {code}\nThis code will expire in {config.OTP_EXPIRE_MINUTES} minutes.",
    )
