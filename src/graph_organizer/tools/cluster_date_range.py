"""Cluster the events of one period."""

from fastmcp import Context
from structlog import get_logger

from graph_organizer.clustering_service import get_clustering_service
from graph_organizer.templates import render_output
from graph_organizer.time_service import TimeService

logger = get_logger()


async def cluster_date_range(ctx: Context, start: str, end: str) -> str:
    """
    Cluster the events that happened strictly between start and end.

    Events first join an existing cluster they closely match; the rest are
    grouped into new clusters.

    Args:
        ctx: MCP context
        start: ISO date or datetime, e.g. "2025-07-01"
        end: ISO date or datetime, e.g. "2025-07-31T23:59"

    Returns:
        Summary of the run with counts and timing
    """
    try:
        start_dt = TimeService.parse(start)
        end_dt = TimeService.parse(end)
    except ValueError as e:
        return f"Could not read the date range: {e}"

    progress: list[str] = []

    def on_progress(message: str) -> None:
        progress.append(message)
        logger.debug("cluster_date_range progress", message=message)

    result = await get_clustering_service().cluster_by_date_range(
        start_dt, end_dt, on_progress=on_progress
    )
    return render_output("organize_graph", result=result, progress=progress)
