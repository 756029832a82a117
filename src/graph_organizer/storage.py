"""Storage collaborators for events, clusters and run metadata."""

from __future__ import annotations

import json
from collections.abc import Callable
from typing import Any, Protocol

import numpy as np
from sqlalchemy import delete, select, update
from sqlalchemy.exc import SQLAlchemyError
from structlog import get_logger

from graph_organizer.database import get_db
from graph_organizer.errors import PersistenceFailure
from graph_organizer.schema import (
    ClusteringParameters,
    ClusteringRunMetadata,
    ClusteringRunRecord,
    ClusterNode,
    ClusterRecord,
    EventNode,
    EventRecord,
)

logger = get_logger()


class EventStore(Protocol):
    """What the clustering engine needs from persistent storage."""

    async def list_events(self) -> list[EventNode]: ...

    async def update_event(self, event: EventNode) -> None: ...

    async def list_events_by_cluster(self, cluster_id: str) -> list[EventNode]: ...

    async def save_clusters(self, clusters: list[ClusterNode]) -> None: ...

    async def save_run_metadata(self, metadata: ClusteringRunMetadata) -> None: ...

    async def list_clusters(self) -> list[ClusterNode]: ...

    async def remove_clusters(self, cluster_ids: list[str]) -> int: ...

    async def list_run_metadata(self) -> list[ClusteringRunMetadata]: ...


class InMemoryEventStore:
    """Dict-backed store, insertion ordered. Used in tests and for embedding in other processes."""

    def __init__(self, events: list[EventNode] | None = None):
        self.events: dict[str, EventNode] = {}
        self.clusters: dict[str, ClusterNode] = {}
        self.runs: list[ClusteringRunMetadata] = []
        for event in events or []:
            self.events[event.id] = event

    async def list_events(self) -> list[EventNode]:
        return list(self.events.values())

    async def update_event(self, event: EventNode) -> None:
        if event.id not in self.events:
            raise PersistenceFailure(f"Unknown event: {event.id}")
        self.events[event.id] = event

    async def list_events_by_cluster(self, cluster_id: str) -> list[EventNode]:
        return [e for e in self.events.values() if e.cluster_id == cluster_id]

    async def save_clusters(self, clusters: list[ClusterNode]) -> None:
        for cluster in clusters:
            self.clusters[cluster.id] = cluster

    async def save_run_metadata(self, metadata: ClusteringRunMetadata) -> None:
        self.runs.append(metadata)

    async def list_clusters(self) -> list[ClusterNode]:
        return list(self.clusters.values())

    async def remove_clusters(self, cluster_ids: list[str]) -> int:
        removed = set(cluster_ids)
        for cluster_id in removed:
            self.clusters.pop(cluster_id, None)

        cleared = 0
        for event in list(self.events.values()):
            if event.cluster_id in removed:
                self.events[event.id] = event.model_copy(update={"cluster_id": None})
                cleared += 1
        return cleared

    async def list_run_metadata(self) -> list[ClusteringRunMetadata]:
        return sorted(self.runs, key=lambda r: r.run_at, reverse=True)


def _to_list(embedding: Any) -> list[float]:
    """Normalize a stored vector (pgvector array, JSON string or list) to a list."""
    if embedding is None:
        return []
    if isinstance(embedding, str):
        return [float(x) for x in json.loads(embedding)]
    if isinstance(embedding, np.ndarray):
        return embedding.astype(float).tolist()
    return [float(x) for x in embedding]


def _event_from_record(record: EventRecord) -> EventNode:
    return EventNode(
        id=record.id,
        name=record.name,
        type=record.type,
        description=record.description,
        embedding=_to_list(record.embedding),
        start_time=record.start_time,
        last_modified=record.last_modified,
        last_accessed=record.last_accessed,
        cluster_id=record.cluster_id,
    )


def _cluster_from_record(record: ClusterRecord) -> ClusterNode:
    return ClusterNode(
        id=record.id,
        name=record.name,
        description=record.description,
        centroid=_to_list(record.centroid),
        member_count=record.member_count,
        avg_similarity=record.avg_similarity,
        earliest_event_time=record.earliest_event_time,
        latest_event_time=record.latest_event_time,
        member_ids=list(record.member_ids or []),
        created_at=record.created_at,
    )


def _run_from_record(record: ClusteringRunRecord) -> ClusteringRunMetadata:
    return ClusteringRunMetadata(
        run_at=record.run_at,
        total_candidates=record.total_candidates,
        clusters_created=record.clusters_created,
        events_clustered=record.events_clustered,
        events_unclustered=record.events_unclustered,
        algorithm=record.algorithm,
        avg_cluster_size=record.avg_cluster_size,
        avg_similarity=record.avg_similarity,
        parameters=ClusteringParameters(**(record.parameters or {})),
    )


class SqlEventStore:
    """PostgreSQL store on the async SQLAlchemy session factory.

    Every database error is surfaced as PersistenceFailure.
    """

    def __init__(self, session_scope: Callable = get_db):
        self.session_scope = session_scope

    async def list_events(self) -> list[EventNode]:
        try:
            async with self.session_scope() as session:
                # id breaks ties so equal timestamps always scan in the same order
                stmt = select(EventRecord).order_by(EventRecord.last_modified, EventRecord.id)
                result = await session.execute(stmt)
                return [_event_from_record(r) for r in result.scalars().all()]
        except SQLAlchemyError as e:
            raise PersistenceFailure(f"Failed to list events: {e}") from e

    async def update_event(self, event: EventNode) -> None:
        try:
            async with self.session_scope() as session:
                await session.merge(
                    EventRecord(
                        id=event.id,
                        name=event.name,
                        type=event.type,
                        description=event.description,
                        embedding=event.embedding or None,
                        start_time=event.start_time,
                        last_modified=event.last_modified,
                        last_accessed=event.last_accessed,
                        cluster_id=event.cluster_id,
                    )
                )
        except SQLAlchemyError as e:
            raise PersistenceFailure(f"Failed to update event {event.id}: {e}") from e

    async def list_events_by_cluster(self, cluster_id: str) -> list[EventNode]:
        try:
            async with self.session_scope() as session:
                stmt = (
                    select(EventRecord)
                    .where(EventRecord.cluster_id == cluster_id)
                    .order_by(EventRecord.last_modified, EventRecord.id)
                )
                result = await session.execute(stmt)
                return [_event_from_record(r) for r in result.scalars().all()]
        except SQLAlchemyError as e:
            raise PersistenceFailure(f"Failed to list members of {cluster_id}: {e}") from e

    async def save_clusters(self, clusters: list[ClusterNode]) -> None:
        if not clusters:
            return
        try:
            async with self.session_scope() as session:
                session.add_all(
                    [
                        ClusterRecord(
                            id=c.id,
                            name=c.name,
                            type=c.type,
                            description=c.description,
                            centroid=c.centroid or None,
                            member_count=c.member_count,
                            avg_similarity=c.avg_similarity,
                            earliest_event_time=c.earliest_event_time,
                            latest_event_time=c.latest_event_time,
                            member_ids=c.member_ids,
                            created_at=c.created_at,
                        )
                        for c in clusters
                    ]
                )
            logger.info("Clusters saved", count=len(clusters))
        except SQLAlchemyError as e:
            raise PersistenceFailure(f"Failed to save {len(clusters)} clusters: {e}") from e

    async def save_run_metadata(self, metadata: ClusteringRunMetadata) -> None:
        try:
            async with self.session_scope() as session:
                session.add(
                    ClusteringRunRecord(
                        run_at=metadata.run_at,
                        total_candidates=metadata.total_candidates,
                        clusters_created=metadata.clusters_created,
                        events_clustered=metadata.events_clustered,
                        events_unclustered=metadata.events_unclustered,
                        algorithm=metadata.algorithm,
                        avg_cluster_size=metadata.avg_cluster_size,
                        avg_similarity=metadata.avg_similarity,
                        parameters=metadata.parameters.model_dump(),
                    )
                )
        except SQLAlchemyError as e:
            raise PersistenceFailure(f"Failed to save run metadata: {e}") from e

    async def list_clusters(self) -> list[ClusterNode]:
        try:
            async with self.session_scope() as session:
                stmt = select(ClusterRecord).order_by(ClusterRecord.created_at, ClusterRecord.id)
                result = await session.execute(stmt)
                return [_cluster_from_record(r) for r in result.scalars().all()]
        except SQLAlchemyError as e:
            raise PersistenceFailure(f"Failed to list clusters: {e}") from e

    async def remove_clusters(self, cluster_ids: list[str]) -> int:
        if not cluster_ids:
            return 0
        try:
            async with self.session_scope() as session:
                # Clear back-references first so no event points at a missing cluster
                cleared = await session.execute(
                    update(EventRecord)
                    .where(EventRecord.cluster_id.in_(cluster_ids))
                    .values(cluster_id=None)
                )
                await session.execute(delete(ClusterRecord).where(ClusterRecord.id.in_(cluster_ids)))
                return cleared.rowcount or 0
        except SQLAlchemyError as e:
            raise PersistenceFailure(f"Failed to remove clusters: {e}") from e

    async def list_run_metadata(self) -> list[ClusteringRunMetadata]:
        try:
            async with self.session_scope() as session:
                stmt = select(ClusteringRunRecord).order_by(ClusteringRunRecord.run_at.desc())
                result = await session.execute(stmt)
                return [_run_from_record(r) for r in result.scalars().all()]
        except SQLAlchemyError as e:
            raise PersistenceFailure(f"Failed to list run metadata: {e}") from e
