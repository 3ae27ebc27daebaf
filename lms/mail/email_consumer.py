import json
import logging
import smtplib
from email.message import EmailMessage

from kafka import KafkaConsumer

from lms.config import (
    EMAIL_TOPIC, KAFKA_BROKER_URL, SMTP_EMAIL, SMTP_HOST, SMTP_PASSWORD, SMTP_PORT, setup_logging,
)

logger = logging.getLogger("email_consumer")


def send_email(to_email: str, subject: str, body: str):
    if not SMTP_EMAIL or not SMTP_PASSWORD:
        raise RuntimeError("Email configuration is not set")

    msg = EmailMessage()
    msg["Subject"] = subject
    msg["From"] = SMTP_EMAIL
    msg["To"] = to_email
    msg.set_content(body)

    with smtplib.SMTP_SSL(SMTP_HOST, SMTP_PORT) as smtp:
        smtp.login(SMTP_EMAIL, SMTP_PASSWORD)
        smtp.send_message(msg)


def process_job(job: dict):
    to, subject, body = job.get("to"), job.get("subject"), job.get("body")
    if not to or not subject or not body:
        raise ValueError("Missing required email fields")
    send_email(to, subject, body)
    logger.info(f"Email sent successfully to {to}")


def start_consumer():
    consumer = KafkaConsumer(
        EMAIL_TOPIC,
        bootstrap_servers=KAFKA_BROKER_URL,
        auto_offset_reset="earliest",
        enable_auto_commit=True,
        group_id="email-consumer-group",
        value_deserializer=lambda m: json.loads(m.decode("utf-8")),
    )

    logger.info(f"Listening for email jobs on '{EMAIL_TOPIC}'")

    for message in consumer:
        try:
            process_job(message.value)
        except (ValueError, RuntimeError, smtplib.SMTPException, OSError) as e:
            logger.error(f"Failed to send email (offset {message.offset}): {e}")


if __name__ == "__main__":
    setup_logging()
    start_consumer()
