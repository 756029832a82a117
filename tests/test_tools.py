"""Tests for the MCP tool functions, called directly with an in-memory service."""

import importlib

import pytest
from factories import FakeTextGenerator, make_event

from graph_organizer.clustering_service import ClusteringService
from graph_organizer.storage import InMemoryEventStore
from graph_organizer.tools import (
    clear_clusters,
    cluster_date_range,
    clustering_quality,
    get_cluster,
    list_clusters,
    organize_graph,
    reassign_outliers,
    unclustered_events,
)

TOOL_MODULES = [
    "organize_graph",
    "list_clusters",
    "get_cluster",
    "unclustered_events",
    "clustering_quality",
    "clear_clusters",
    "cluster_date_range",
    "reassign_outliers",
]


@pytest.fixture
def service(monkeypatch):
    events = [
        make_event("m1", [1.0, 0.0], name="Standup Monday", day=0),
        make_event("m2", [1.0, 0.0], name="Standup Tuesday", day=1),
        make_event("x1", [0.0, 1.0], name="Dentist", type="health", day=2),
    ]
    service = ClusteringService(InMemoryEventStore(events), FakeTextGenerator("Standups"))
    for name in TOOL_MODULES:
        module = importlib.import_module(f"graph_organizer.tools.{name}")
        monkeypatch.setattr(module, "get_clustering_service", lambda: service)
    return service


@pytest.mark.asyncio
async def test_organize_graph_tool(service):
    output = await organize_graph(None)

    assert "Clustering complete" in output
    assert "created 1 cluster covering 2 events" in output
    assert "Starting semantic clustering..." in output


@pytest.mark.asyncio
async def test_list_and_get_cluster_tools(service):
    await service.organize_graph()
    [cluster] = await service.get_all_clusters()

    listing = await list_clusters(None)
    assert "Standups" in listing
    assert cluster.id in listing

    detail = await get_cluster(None, cluster.id)
    assert "Standup Monday" in detail
    assert "Standup Tuesday" in detail
    assert "Dentist" not in detail


@pytest.mark.asyncio
async def test_get_cluster_unknown_id(service):
    output = await get_cluster(None, "cluster_missing")

    assert "Cluster cluster_missing not found." in output


@pytest.mark.asyncio
async def test_list_clusters_empty(service):
    assert "No clusters yet" in await list_clusters(None)


@pytest.mark.asyncio
async def test_unclustered_events_tool(service):
    await service.organize_graph()

    output = await unclustered_events(None)

    assert "1 unclustered event:" in output
    assert "Dentist" in output


@pytest.mark.asyncio
async def test_quality_and_clear_tools(service):
    await service.organize_graph()

    quality = await clustering_quality(None)
    assert "Clustering quality over 1 cluster:" in quality
    assert "Last run" in quality

    cleared = await clear_clusters(None)
    assert "Removed 1 cluster and cleared 2 event assignments." in cleared
    assert "No clusters to measure." in await clustering_quality(None)


@pytest.mark.asyncio
async def test_cluster_date_range_tool_merges_into_existing_cluster(service):
    await service.organize_graph()
    service.store.events["m3"] = make_event("m3", [1.0, 0.0], name="Standup Thursday", day=3)

    output = await cluster_date_range(None, "2025-04-24", "2025-04-25")

    assert "Merged 1 event into existing clusters." in output
    [cluster] = await service.get_all_clusters()
    assert cluster.member_ids == ["m1", "m2", "m3"]


@pytest.mark.asyncio
async def test_cluster_date_range_tool_rejects_bad_dates(service):
    output = await cluster_date_range(None, "not a date", "2025-04-25")

    assert output.startswith("Could not read the date range")


@pytest.mark.asyncio
async def test_reassign_outliers_tool(service):
    await service.organize_graph()

    output = await reassign_outliers(None)

    assert "No outliers found." in output
