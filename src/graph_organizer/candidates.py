"""Incremental candidate selection for clustering runs."""

from __future__ import annotations

from datetime import datetime, timedelta

from structlog import get_logger

from graph_organizer.schema import EventNode
from graph_organizer.time_service import TimeService

logger = get_logger()


def select_candidates(
    events: list[EventNode],
    force_recluster: bool = False,
    window_days: int = 30,
    now: datetime | None = None,
) -> list[EventNode]:
    """
    Pick the events worth (re)clustering this run.

    With force_recluster every event that has an embedding is returned.
    Otherwise only the active working set is: events with an embedding that
    are unclustered, or were modified or accessed within the last
    window_days. Old untouched events are never pulled back in, even if a
    new neighbour shows up.

    Args:
        events: The full event population
        force_recluster: Re-partition everything instead of the working set
        window_days: Recency cutoff in days
        now: Reference time (defaults to the current time)

    Returns:
        Candidates in input order; an empty list means nothing to do
    """
    embedded = [e for e in events if e.has_embedding]
    if force_recluster:
        logger.info("Selecting all embedded events", total=len(events), candidates=len(embedded))
        return embedded

    cutoff = (now or TimeService.now()) - timedelta(days=window_days)
    candidates = [
        e
        for e in embedded
        if e.cluster_id is None
        or e.last_modified > cutoff
        or (e.last_accessed is not None and e.last_accessed > cutoff)
    ]

    logger.info(
        "Selected incremental candidates",
        total=len(events),
        embedded=len(embedded),
        candidates=len(candidates),
        cutoff=cutoff.isoformat(),
    )
    return candidates


def select_in_range(events: list[EventNode], start: datetime, end: datetime) -> list[EventNode]:
    """Events with an embedding whose occurrence time lies strictly inside (start, end)."""
    return [e for e in events if e.has_embedding and start < e.occurrence_time < end]
