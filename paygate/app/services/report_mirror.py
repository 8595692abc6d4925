"""
Report Mirror.

Drains the report outbox into the MongoDB `transaction_reports` collection.
Events are published in creation order; a failure stops the batch so a later
event for the same ledger entry can never overtake an earlier one.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from paygate.app.core.config import settings
from paygate.app.db.session import session_scope
from paygate.app.documents.transaction_report import TransactionReport
from paygate.app.models.report_outbox import ReportOutbox

logger = logging.getLogger("paygate.report_mirror")

PublisherFunc = Callable[[Dict[str, Any]], Awaitable[None]]


def report_fields(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Map an outbox payload onto TransactionReport fields."""
    fields = {key: value for key, value in payload.items() if key not in ("id", "created_at")}
    fields["ledger_entry_id"] = payload["id"]
    fields["ledger_created_at"] = payload.get("created_at")
    fields["mirrored_at"] = datetime.now(timezone.utc)
    return fields


async def upsert_transaction_report(event: Dict[str, Any]) -> None:
    """Insert or refresh the report document of one ledger entry."""
    fields = report_fields(event["payload"])
    existing = await TransactionReport.find_one(
        TransactionReport.ledger_entry_id == fields["ledger_entry_id"]
    )
    if existing is None:
        await TransactionReport(**fields).insert()
        return

    updated = TransactionReport(**fields)
    updated.id = existing.id
    await updated.replace()


class ReportMirrorPublisher:
    """
    Publishes outbox events to the document store.

    Args:
        publisher_func: Coroutine receiving one event dict
        session_factory: Session factory for the relational store
        batch_size: Events handled per batch
        poll_interval_seconds: Sleep between empty polls
    """

    def __init__(
        self,
        publisher_func: Optional[PublisherFunc] = None,
        session_factory: Optional[async_sessionmaker] = None,
        batch_size: int = 100,
        poll_interval_seconds: float = 2.0,
    ):
        self.publisher_func = publisher_func or upsert_transaction_report
        self.session_factory = session_factory
        self.batch_size = batch_size
        self.poll_interval_seconds = poll_interval_seconds
        self._running = False

    async def _fetch_unpublished(self, db: AsyncSession) -> List[ReportOutbox]:
        result = await db.execute(
            select(ReportOutbox)
            .where(ReportOutbox.published == False)
            .order_by(ReportOutbox.created_at, ReportOutbox.id)
            .limit(self.batch_size)
        )
        return list(result.scalars().all())

    async def process_batch(self) -> int:
        """
        Publish one batch of unpublished events.

        Returns:
            Number of events published
        """
        published = 0
        async with session_scope(self.session_factory) as db:
            events = await self._fetch_unpublished(db)
            if not events:
                return 0

            for event in events:
                event.attempts += 1
                try:
                    await self.publisher_func({
                        "id": event.id,
                        "event_type": event.event_type,
                        "aggregate_id": event.aggregate_id,
                        "payload": event.payload,
                    })
                except Exception as exc:
                    event.last_error = str(exc)
                    logger.error(
                        "Report mirror publish failed",
                        extra={"event_id": event.id, "event_type": event.event_type,
                               "attempts": event.attempts, "error": str(exc)},
                    )
                    break

                event.published = True
                event.published_at = datetime.now(timezone.utc)
                event.last_error = None
                published += 1

            await db.commit()

        logger.info(
            "Report mirror batch processed",
            extra={"fetched": len(events), "published": published},
        )
        return published

    async def flush(self) -> int:
        """Publish until the outbox is empty or a publish fails."""
        total = 0
        while True:
            count = await self.process_batch()
            total += count
            if count < self.batch_size:
                return total

    async def run_forever(self) -> None:
        self._running = True
        logger.info(
            "Report mirror started",
            extra={"batch_size": self.batch_size, "poll_interval": self.poll_interval_seconds},
        )
        while self._running:
            try:
                count = await self.process_batch()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Report mirror batch failed")
                count = 0
            if count < self.batch_size:
                await asyncio.sleep(self.poll_interval_seconds)

    def stop(self) -> None:
        self._running = False


_publisher: Optional[ReportMirrorPublisher] = None


def get_report_mirror() -> ReportMirrorPublisher:
    """
    FastAPI dependency returning the process-wide mirror publisher.

    Raises:
        HTTPException 503 when the mirror is disabled in configuration.
    """
    global _publisher
    if not settings.report_mirror_enabled:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Report mirror is disabled")
    if _publisher is None:
        _publisher = ReportMirrorPublisher(
            batch_size=settings.report_mirror_batch_size,
            poll_interval_seconds=settings.report_mirror_poll_seconds,
        )
    return _publisher
