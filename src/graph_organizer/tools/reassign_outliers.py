"""Move cluster members that no longer fit their cluster."""

from fastmcp import Context

from graph_organizer.clustering_service import get_clustering_service
from graph_organizer.templates import render_output


async def reassign_outliers(ctx: Context) -> str:
    """
    Find members that drifted away from their cluster and move them.

    Each outlier joins the closest other cluster if it matches well enough,
    otherwise it becomes unclustered. Affected clusters are rebuilt.

    Args:
        ctx: MCP context

    Returns:
        How many outliers were found, moved and unclustered
    """
    result = await get_clustering_service().reassign_outliers()
    return render_output("reassign_outliers", result=result)
