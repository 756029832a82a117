"""Graph Organizer MCP Server."""

from contextlib import asynccontextmanager

from fastmcp import FastMCP
from structlog import get_logger

from graph_organizer.tools import (
    clear_clusters,
    cluster_date_range,
    clustering_quality,
    get_cluster,
    health_check,
    list_clusters,
    organize_graph,
    reassign_outliers,
    unclustered_events,
)

logger = get_logger()

# Global initialization flag
_initialized = False


async def initialize_services():
    """Initialize the database once at startup."""
    global _initialized
    if _initialized:
        return

    logger.info("Initializing Graph Organizer services...")

    from graph_organizer.database import init_db

    await init_db()

    _initialized = True
    logger.info("Graph Organizer services initialized!")


@asynccontextmanager
async def lifespan(app):
    """Manage MCP connection lifecycle."""
    await initialize_services()

    logger.debug("MCP connection established")

    yield

    logger.debug("MCP connection closed")


# Create the MCP server
mcp = FastMCP(
    name="Graph Organizer",
    instructions="""
    Organizes a knowledge graph of events into named clusters of related events.

    Clustering Tools:
    - organize_graph() to cluster new and recently touched events
    - cluster_date_range() to cluster one period, joining existing clusters first
    - reassign_outliers() to move members that drifted away from their cluster
    - clear_clusters() to remove every cluster before a fresh start

    Browsing Tools:
    - list_clusters() to see all clusters
    - get_cluster() to see the events in one cluster
    - unclustered_events() to see events no cluster has claimed
    - clustering_quality() to check how tight and well separated clusters are
    """,
    lifespan=lifespan,
)

# Register tools
mcp.tool(health_check)
mcp.tool(organize_graph)
mcp.tool(cluster_date_range)
mcp.tool(reassign_outliers)
mcp.tool(list_clusters)
mcp.tool(get_cluster)
mcp.tool(unclustered_events)
mcp.tool(clustering_quality)
mcp.tool(clear_clusters)


def main():
    """Run the server over streamable HTTP."""
    from graph_organizer.settings import get_settings

    settings = get_settings()
    mcp.run(transport="http", host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
