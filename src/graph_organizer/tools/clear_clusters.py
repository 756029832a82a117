"""Remove every cluster."""

from fastmcp import Context

from graph_organizer.clustering_service import get_clustering_service
from graph_organizer.templates import render_output


async def clear_clusters(ctx: Context) -> str:
    """
    Delete all clusters and clear every event's cluster assignment.

    Use before a fresh full re-cluster. Run history is kept.

    Args:
        ctx: MCP context

    Returns:
        How many clusters and assignments were removed
    """
    result = await get_clustering_service().clear_all_clusters()
    return render_output("clear_clusters", result=result)
