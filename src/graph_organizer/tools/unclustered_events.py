"""List events that belong to no cluster."""

from fastmcp import Context

from graph_organizer.clustering_service import get_clustering_service
from graph_organizer.templates import render_output


async def unclustered_events(ctx: Context, limit: int = 50) -> str:
    """
    Show embedded events that no cluster has claimed yet.

    Args:
        ctx: MCP context
        limit: Maximum number of events to show

    Returns:
        The newest unclustered events
    """
    events = await get_clustering_service().get_unclustered_events()
    events.sort(key=lambda e: e.occurrence_time, reverse=True)
    return render_output("unclustered_events", events=events[:limit], total=len(events))
