"""Graph Organizer - incremental semantic clustering for event knowledge graphs."""

__version__ = "0.1.0"
