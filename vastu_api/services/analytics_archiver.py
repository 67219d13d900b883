"""
Analytics Archiver — Firebase RTDB → SQL.

Moves every event under the hosted ``page_analytics`` node into the
``page_analytics_archive`` table, then prunes the archived push ids from
Firebase to keep RTDB storage small. Hosted keys are deleted only after the
SQL commit succeeds. There is no retry: a failed read, write or prune is
logged and the next scheduled run picks the events up again.

``summarize`` derives the dashboard numbers from the archive.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from sqlalchemy import distinct, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from vastu_api.models.site_analytics import PageAnalyticsArchive
from vastu_api.schemas import AnalyticsSummary, ArchiveResult, EventType

logger = logging.getLogger("analytics.archiver")


def _to_row(key: str, event: dict) -> Optional[PageAnalyticsArchive]:
    """Map a hosted event onto an archive row; None if it is malformed."""
    session_id = event.get("session_id")
    event_type = event.get("event_type")
    if not session_id or event_type not in {e.value for e in EventType}:
        return None
    time_on_page = event.get("time_on_page")
    return PageAnalyticsArchive(
        source_key=key,
        session_id=str(session_id),
        event_type=event_type,
        page_url=event.get("page_url") or "",
        referrer=event.get("referrer"),
        user_agent=event.get("user_agent") or "",
        time_on_page=int(time_on_page) if isinstance(time_on_page, (int, float)) else None,
    )


# ─────────────────────────────────────────────────────────────────────
# core
# ─────────────────────────────────────────────────────────────────────

async def archive_page_analytics(table: str | None = None, session_factory=None) -> ArchiveResult:
    """
    Archive and prune the hosted analytics node.

    Parameters
    ----------
    table : str, optional
        Hosted node to drain. Defaults to ``settings.analytics_table``.
    session_factory : async_sessionmaker, optional
        Defaults to the application's session factory.
    """
    from vastu_api.services.firebase import delete_record, get_records, is_initialized

    if not is_initialized():
        logger.warning("⚠️  Firebase not initialised — skipping archive")
        return ArchiveResult()

    if table is None:
        from vastu_api.config import settings
        table = settings.analytics_table
    if session_factory is None:
        from vastu_api.database import async_session_factory
        session_factory = async_session_factory

    loop = asyncio.get_event_loop()
    try:
        snapshot = await loop.run_in_executor(None, get_records, table)
    except Exception as e:
        logger.error("❌ Read of /%s failed: %s", table, e)
        return ArchiveResult()

    if not snapshot:
        logger.info("📦 Nothing to archive in /%s", table)
        return ArchiveResult()

    archived = 0
    prunable: list[str] = []

    try:
        async with session_factory() as session:
            existing = set(
                (
                    await session.execute(
                        select(PageAnalyticsArchive.source_key).where(
                            PageAnalyticsArchive.source_key.in_(list(snapshot))
                        )
                    )
                ).scalars()
            )
            for key, event in snapshot.items():
                if key in existing:
                    prunable.append(key)  # archived by an earlier run, prune only
                    continue
                row = _to_row(key, event) if isinstance(event, dict) else None
                if row is None:
                    logger.warning("⏭️  Skipping malformed event %s", key)
                    continue
                session.add(row)
                prunable.append(key)
                archived += 1
            await session.commit()
    except Exception as e:
        logger.error("❌ Archive write for /%s failed: %s", table, e)
        return ArchiveResult()

    pruned = 0
    for key in prunable:
        if await loop.run_in_executor(None, delete_record, table, key):
            pruned += 1

    logger.info("📦 Archive complete — %d events archived, %d pruned from /%s", archived, pruned, table)
    return ArchiveResult(archived=archived, pruned=pruned)


# ─────────────────────────────────────────────────────────────────────
# reporting
# ─────────────────────────────────────────────────────────────────────

def _pct(part: int, whole: int) -> float:
    return round(part / whole * 100, 1) if whole else 0.0


async def summarize(session: AsyncSession) -> AnalyticsSummary:
    counts = dict(
        (
            await session.execute(
                select(PageAnalyticsArchive.event_type, func.count()).group_by(
                    PageAnalyticsArchive.event_type
                )
            )
        ).all()
    )

    async def _sessions_with(event_type: str | None = None) -> int:
        stmt = select(func.count(distinct(PageAnalyticsArchive.session_id)))
        if event_type:
            stmt = stmt.where(PageAnalyticsArchive.event_type == event_type)
        return (await session.execute(stmt)).scalar_one()

    avg_time = (
        await session.execute(
            select(func.avg(PageAnalyticsArchive.time_on_page)).where(
                PageAnalyticsArchive.event_type.in_([EventType.BOUNCE.value, EventType.EXIT.value])
            )
        )
    ).scalar_one()

    bounces = counts.get(EventType.BOUNCE.value, 0)
    exits = counts.get(EventType.EXIT.value, 0)
    viewing_sessions = await _sessions_with(EventType.PAGE_VIEW.value)
    submitting_sessions = await _sessions_with(EventType.FORM_SUBMIT.value)

    return AnalyticsSummary(
        page_views=counts.get(EventType.PAGE_VIEW.value, 0),
        bounces=bounces,
        exits=exits,
        form_submits=counts.get(EventType.FORM_SUBMIT.value, 0),
        sessions=await _sessions_with(),
        bounce_rate=_pct(bounces, bounces + exits),
        conversion_rate=_pct(submitting_sessions, viewing_sessions),
        avg_time_on_page=round(float(avg_time or 0.0), 1),
    )
