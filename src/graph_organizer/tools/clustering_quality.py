"""Report clustering quality metrics."""

from fastmcp import Context

from graph_organizer.clustering_service import get_clustering_service
from graph_organizer.templates import render_output


async def clustering_quality(ctx: Context) -> str:
    """
    Measure the current clusters: tightness, separation and outliers.

    Args:
        ctx: MCP context

    Returns:
        Quality metrics and a note about the last clustering run
    """
    service = get_clustering_service()
    metrics = await service.get_clustering_quality_metrics()
    history = await service.get_run_history()
    return render_output(
        "clustering_quality",
        metrics=metrics,
        last_run=history[0] if history else None,
    )
