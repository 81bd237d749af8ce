"""Asynchronous tasks of the core module."""

import structlog
from celery import shared_task
from django.conf import settings

from modules.core.models import OutboxEvent
from shared.infrastructure.bus import event_bus

logger = structlog.get_logger(__name__)


@shared_task(name="core.publish_outbox_events")
def publish_outbox_events(batch_size: int | None = None) -> dict:
    """Publish pending outbox rows to the in-process event bus.

    Rows whose ``event_type`` has no subscribed class are marked failed so
    they stay visible instead of being retried silently forever.
    """
    published = 0
    failed = 0
    batch_size = batch_size or settings.OUTBOX_BATCH_SIZE
    rows = list(OutboxEvent.objects.publishable(settings.OUTBOX_MAX_RETRIES)[:batch_size])

    for row in rows:
        log = logger.bind(outbox_id=str(row.id), event_type=row.event_type)
        event_class = event_bus.resolve(row.event_type)
        if event_class is None:
            log.warning("outbox.unknown_event_type")
            row.mark_as_failed(f"No handler registered for {row.event_type}.")
            failed += 1
            continue
        try:
            event_bus.publish(event_class.from_payload(row.payload))
        except Exception as exc:  # noqa: BLE001 - recorded on the row for retry
            log.exception("outbox.publish_failed")
            row.mark_as_failed(str(exc))
            failed += 1
            continue
        row.mark_as_published()
        published += 1

    logger.info("outbox.batch_processed", published=published, failed=failed)
    return {"published": published, "failed": failed}
