"""Clustering runs against PostgreSQL through SqlEventStore."""

import os
from datetime import UTC, datetime, timedelta

import pytest

from graph_organizer.clustering_service import ClusteringService
from graph_organizer.errors import PersistenceFailure
from graph_organizer.schema import EventNode
from graph_organizer.storage import SqlEventStore

pytestmark = pytest.mark.skipif(
    not os.environ.get("DATABASE_URL"), reason="DATABASE_URL not set"
)

BASE = datetime(2025, 3, 1, 9, 0, tzinfo=UTC)


def event(event_id: str, embedding: list[float], day: int, type: str = "meeting") -> EventNode:
    return EventNode(
        id=event_id,
        name=f"Event {event_id}",
        type=type,
        embedding=embedding,
        start_time=BASE + timedelta(days=day),
        last_modified=BASE,
    )


async def seed(store: SqlEventStore, events: list[EventNode]) -> None:
    for e in events:
        await store.update_event(e)


@pytest.mark.asyncio
async def test_events_round_trip(database):
    store = SqlEventStore()
    await seed(store, [event("a", [1.0, 0.0, 0.0], 0)])

    [stored] = await store.list_events()

    assert stored.id == "a"
    assert stored.embedding == pytest.approx([1.0, 0.0, 0.0])
    assert stored.start_time == BASE
    assert stored.cluster_id is None


@pytest.mark.asyncio
async def test_clustering_run_persists_clusters_and_metadata(database):
    store = SqlEventStore()
    await seed(
        store,
        [
            event("a", [1.0, 0.0, 0.0], 0),
            event("b", [1.0, 0.0, 0.0], 2),
            event("c", [0.0, 0.0, 1.0], 4, type="travel"),
        ],
    )
    service = ClusteringService(store)

    result = await service.organize_graph()

    assert result.success
    assert result.clusters_created == 1
    [cluster] = await service.get_all_clusters()
    assert sorted(cluster.member_ids) == ["a", "b"]
    assert cluster.name == "meeting related events (2)"
    members = await service.get_cluster_members(cluster.id)
    assert sorted(m.id for m in members) == ["a", "b"]
    assert [e.id for e in await service.get_unclustered_events()] == ["c"]

    [run] = await service.get_run_history()
    assert run.total_candidates == 3
    assert run.events_clustered == 2
    assert run.parameters == service.parameters


@pytest.mark.asyncio
async def test_force_recluster_replaces_superseded_cluster(database):
    store = SqlEventStore()
    await seed(store, [event("a", [1.0, 0.0, 0.0], 0), event("b", [1.0, 0.0, 0.0], 1)])
    service = ClusteringService(store)
    await service.organize_graph()
    [first] = await service.get_all_clusters()

    await service.organize_graph(force_recluster=True)

    [second] = await service.get_all_clusters()
    assert second.id != first.id
    assert await service.get_cluster_members(first.id) == []
    assert len(await service.get_run_history()) == 2


@pytest.mark.asyncio
async def test_clear_all_clusters(database):
    store = SqlEventStore()
    await seed(store, [event("a", [1.0, 0.0, 0.0], 0), event("b", [1.0, 0.0, 0.0], 1)])
    service = ClusteringService(store)
    await service.organize_graph()

    result = await service.clear_all_clusters()

    assert result["success"]
    assert result["clusters_removed"] == 1
    assert result["events_cleared"] == 2
    assert await service.get_all_clusters() == []
    assert len(await service.get_unclustered_events()) == 2
    assert len(await service.get_run_history()) == 1


@pytest.mark.asyncio
async def test_database_errors_become_persistence_failures(database):
    store = SqlEventStore()

    with pytest.raises(PersistenceFailure):
        # Name is NOT NULL
        await store.update_event(event("a", [1.0], 0).model_copy(update={"name": None}))


@pytest.mark.asyncio
async def test_events_with_equal_timestamps_list_in_id_order(database):
    store = SqlEventStore()
    await seed(store, [event(name, [1.0, 0.0, 0.0], 0) for name in ("c", "a", "b")])

    assert [e.id for e in await store.list_events()] == ["a", "b", "c"]
