"""Anchor-based greedy clustering of events."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime, timedelta

from structlog import get_logger

from graph_organizer.schema import ClusteringParameters, EventNode
from graph_organizer.similarity import cosine_similarity

logger = get_logger()


class EventGroup:
    """A group of events formed around one anchor event."""

    def __init__(self, members: list[EventNode], anchor_index: int):
        self.members = members
        self.anchor_index = anchor_index

    @property
    def anchor(self) -> EventNode:
        return self.members[0]

    @property
    def size(self) -> int:
        return len(self.members)

    @property
    def member_ids(self) -> list[str]:
        return [m.id for m in self.members]

    def __repr__(self) -> str:
        return f"EventGroup(anchor_index={self.anchor_index}, members={self.member_ids})"


def time_span(events: list[EventNode]) -> tuple[datetime, datetime]:
    """Earliest and latest occurrence time of the events."""
    times = [e.occurrence_time for e in events]
    return min(times), max(times)


def within_temporal_window(times: Iterable[datetime], window_days: int) -> bool:
    """
    Check that the given moments all lie within window_days of each other.

    The span is compared as an exact duration, so 30 days and one hour is
    outside a 30 day window even though it rounds down to 30 whole days.
    """
    times = list(times)
    if len(times) < 2:
        return True
    return max(times) - min(times) <= timedelta(days=window_days)


def cluster_events(
    candidates: list[EventNode],
    parameters: ClusteringParameters | None = None,
) -> list[EventGroup]:
    """
    Partition candidates into groups around anchors.

    Single pass in input order. Each unassigned candidate becomes an anchor;
    later unassigned candidates join its group when their similarity to the
    anchor reaches the threshold and the group still fits in the temporal
    window. Scanning stops once the group is full. Groups smaller than the
    minimum size are dropped; their anchor stays consumed (noise for this
    run) while the other members go back into the pool.

    Members are only compared with the anchor, so two members of one group
    may be dissimilar to each other.

    Args:
        candidates: Events with embeddings, in the order they should be scanned
        parameters: Threshold, window and size bounds

    Returns:
        Groups in anchor order, each with at least min_cluster_size members

    Raises:
        DimensionMismatch: If two compared embeddings differ in length
    """
    params = parameters or ClusteringParameters()
    groups: list[EventGroup] = []
    assigned: set[int] = set()
    discarded = 0

    for i, anchor in enumerate(candidates):
        if i in assigned:
            continue
        assigned.add(i)

        members = [anchor]
        member_indices = [i]
        earliest = latest = anchor.occurrence_time

        for j in range(i + 1, len(candidates)):
            if len(members) >= params.max_cluster_size:
                break
            if j in assigned:
                continue

            candidate = candidates[j]
            similarity = cosine_similarity(anchor.embedding, candidate.embedding)
            if similarity < params.similarity_threshold:
                continue

            occurred = candidate.occurrence_time
            if not within_temporal_window([earliest, latest, occurred], params.temporal_window_days):
                continue

            members.append(candidate)
            member_indices.append(j)
            earliest, latest = min(earliest, occurred), max(latest, occurred)

        if len(members) >= params.min_cluster_size:
            assigned.update(member_indices)
            groups.append(EventGroup(members, anchor_index=i))
        else:
            discarded += 1

    clustered = sum(g.size for g in groups)
    logger.info(
        "Clustering complete",
        candidates=len(candidates),
        groups=len(groups),
        clustered=clustered,
        discarded_anchors=discarded,
        threshold=params.similarity_threshold,
    )
    return groups
