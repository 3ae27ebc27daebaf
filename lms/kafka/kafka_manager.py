import json

from kafka import KafkaProducer

from lms.config import KAFKA_BROKER_URL

_producer = None


def get_producer() -> KafkaProducer:
    # created on first use so importing the app never dials the broker
    global _producer
    if _producer is None:
        _producer = KafkaProducer(
            bootstrap_servers=KAFKA_BROKER_URL,
            value_serializer=lambda v: json.dumps(v).encode("utf-8"),
        )
    return _producer


def send_event(topic: str, event: dict):
    """Отправка события в Kafka."""
    producer = get_producer()
    producer.send(topic, value=event)
    producer.flush()
