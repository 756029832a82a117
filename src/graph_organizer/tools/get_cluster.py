"""Show one cluster with its member events."""

from fastmcp import Context

from graph_organizer.clustering_service import get_clustering_service
from graph_organizer.templates import render_output
from graph_organizer.time_service import TimeService


async def get_cluster(ctx: Context, cluster_id: str) -> str:
    """
    Retrieve a cluster and the events that currently belong to it.

    Args:
        ctx: MCP context
        cluster_id: The cluster id from list_clusters output

    Returns:
        Cluster summary followed by its events in chronological order
    """
    service = get_clustering_service()
    clusters = await service.get_all_clusters()
    cluster = next((c for c in clusters if c.id == cluster_id), None)
    if cluster is None:
        return render_output("get_cluster", cluster=None, cluster_id=cluster_id)

    members = await service.get_cluster_members(cluster_id)
    members.sort(key=lambda e: e.occurrence_time)

    return render_output(
        "get_cluster",
        cluster=cluster,
        cluster_id=cluster_id,
        members=members,
        time_span=TimeService.format_age_difference(
            cluster.earliest_event_time, cluster.latest_event_time
        ),
    )
