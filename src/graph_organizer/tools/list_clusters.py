"""List all clusters."""

from fastmcp import Context

from graph_organizer.clustering_service import get_clustering_service
from graph_organizer.templates import render_output


async def list_clusters(ctx: Context, limit: int = 50) -> str:
    """
    List clusters, most recent events first.

    Args:
        ctx: MCP context
        limit: Maximum number of clusters to show

    Returns:
        Cluster names, descriptions and time spans
    """
    clusters = await get_clustering_service().get_all_clusters()
    clusters.sort(key=lambda c: c.latest_event_time, reverse=True)
    return render_output("list_clusters", clusters=clusters[:limit])
