"""Run incremental semantic clustering over the event graph."""

from fastmcp import Context
from structlog import get_logger

from graph_organizer.clustering_service import get_clustering_service
from graph_organizer.templates import render_output

logger = get_logger()


async def organize_graph(ctx: Context, force_recluster: bool = False) -> str:
    """
    Group related events into named clusters.

    Only new, unclustered, or recently touched events are considered unless
    force_recluster is set, in which case every event with an embedding is
    re-partitioned.

    Args:
        ctx: MCP context
        force_recluster: Re-cluster the whole graph instead of the working set

    Returns:
        Summary of the run with counts and timing
    """
    progress: list[str] = []

    def on_progress(message: str) -> None:
        progress.append(message)
        logger.debug("organize_graph progress", message=message)

    result = await get_clustering_service().organize_graph(
        force_recluster=force_recluster, on_progress=on_progress
    )
    return render_output("organize_graph", result=result, progress=progress)
