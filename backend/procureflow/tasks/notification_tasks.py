"""ProcureFlow: notification delivery Celery task."""
import logging
from datetime import datetime, timezone

import httpx

from procureflow.config import get_settings
from procureflow.worker import celery_app

logger = logging.getLogger(__name__)


@celery_app.task(bind=True, max_retries=3)
def deliver_notification(self, kind: str, recipient_id: str, payload: dict) -> None:
    """
    POST the notification to the configured webhook with exponential backoff.
    Without a webhook URL the notification is only logged.
    """
    url = get_settings().NOTIFICATION_WEBHOOK_URL
    if not url:
        logger.info("Notification %s for %s (no webhook configured): %s", kind, recipient_id, payload)
        return
    body = {
        "kind": kind,
        "recipient_id": recipient_id,
        "payload": payload,
        "sent_at": datetime.now(tz=timezone.utc).isoformat(),
    }
    try:
        with httpx.Client(timeout=10.0) as client:
            response = client.post(url, json=body, headers={"X-ProcureFlow-Notification": kind})
            response.raise_for_status()
    except (httpx.RequestError, httpx.HTTPStatusError) as exc:
        # Exponential backoff: 2^retry_count * 5 seconds (5s, 10s, 20s)
        delay = (2 ** self.request.retries) * 5
        logger.warning("Notification %s for %s failed, retrying in %ss: %s", kind, recipient_id, delay, exc)
        raise self.retry(exc=exc, countdown=delay)
    logger.info("Notification %s delivered to %s", kind, recipient_id)
