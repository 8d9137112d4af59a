"""
Celery tasks for connection recovery.

This module provides async tasks for:
- Running a manual retry out of band
- Periodically retrying failed connections (celery-beat)

Usage:
    from marketplace.tasks import retry_connection

    retry_connection.delay(str(connection.id))
"""

from __future__ import annotations

import logging

from celery import shared_task

from marketplace.conf import MarketplaceConfig
from marketplace.models import Connection
from marketplace.services import ConnectionLifecycleManager
from marketplace.state_machines import RETRYABLE_STATUSES

logger = logging.getLogger(__name__)

AUTO_RETRY_BATCH_SIZE = 50


@shared_task(acks_late=True)
def retry_connection(connection_id: str) -> dict:
    """
    Retry one connection without an acting user.

    Returns:
        Dict with success flag, resulting status and error details
    """
    manager = ConnectionLifecycleManager.from_settings()
    result = manager.retry(connection_id)

    if result.success:
        logger.info("Connection retry succeeded", extra={"connection_id": connection_id})
        return {"success": True, "status": result.data.status}

    logger.warning(
        "Connection retry failed",
        extra={"connection_id": connection_id, "error_code": result.error_code},
    )
    return {
        "success": False,
        "status": result.data.status if result.data else None,
        "error": result.error,
        "error_code": result.error_code,
    }


@shared_task
def auto_retry_failed_connections() -> dict:
    """
    Periodic task retrying FAILED / PENDING_SETUP connections.

    Each retry consumes one of the connection's manual retries, so the
    sweep stops touching a connection once its budget is spent. Does
    nothing while the auto_retry_failed_connections flag is off.

    Returns:
        Dict with counts of queued connections
    """
    config = MarketplaceConfig.from_settings()
    if not config.features.auto_retry_failed_connections:
        logger.info("Auto retry disabled, skipping sweep")
        return {"queued_count": 0, "skipped": True}

    connection_ids = list(
        Connection.objects.filter(
            status__in=RETRYABLE_STATUSES,
            retry_count__lt=config.max_retries,
        )
        .order_by("updated_at")
        .values_list("id", flat=True)[:AUTO_RETRY_BATCH_SIZE]
    )

    queued_count = 0
    for connection_id in connection_ids:
        retry_connection.delay(str(connection_id))
        queued_count += 1

    logger.info(
        f"Queued {queued_count} connections for retry",
        extra={"queued_count": queued_count},
    )
    return {"queued_count": queued_count, "skipped": False}
