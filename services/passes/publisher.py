# ============================================================
# publisher.py — Émission d'événements RabbitMQ
# ------------------------------------------------------------
# Publie les changements de cycle de vie des passes sur
# l'échange "events" (fanout) : PassCreated, PassUpdated,
# PassRevoked, PassExpired.
# Best-effort : si le broker est injoignable, on journalise et
# on continue, l'écriture en base est déjà faite.
# ============================================================
import json

import pika
from pika.exceptions import AMQPError

import settings
from logger import get_logger, log_error, log_info

logger = get_logger("publisher")


def publish_event(event_type: str, payload: dict) -> bool:
    if not settings.EVENTS_ENABLED:
        return False
    try:
        conn = pika.BlockingConnection(pika.ConnectionParameters(host=settings.RABBITMQ_HOST))
        try:
            ch = conn.channel()
            # durable=True pour survivre aux redémarrages RabbitMQ
            ch.exchange_declare(exchange="events", exchange_type="fanout", durable=True)
            message = {"type": event_type, "payload": payload}
            ch.basic_publish(exchange="events", routing_key="", body=json.dumps(message, default=str))
        finally:
            conn.close()
    except (AMQPError, OSError) as e:
        log_error(logger, "publish failed", type=event_type, error=e)
        return False
    log_info(logger, "event published", type=event_type, payload=payload)
    return True
