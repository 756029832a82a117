"""Graph Organizer MCP Tools."""

from .clear_clusters import clear_clusters
from .cluster_date_range import cluster_date_range
from .clustering_quality import clustering_quality
from .get_cluster import get_cluster
from .health_check import health_check
from .list_clusters import list_clusters
from .organize_graph import organize_graph
from .reassign_outliers import reassign_outliers
from .unclustered_events import unclustered_events

__all__ = [
    "clear_clusters",
    "cluster_date_range",
    "clustering_quality",
    "get_cluster",
    "health_check",
    "list_clusters",
    "organize_graph",
    "reassign_outliers",
    "unclustered_events",
]
