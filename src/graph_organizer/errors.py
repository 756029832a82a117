"""Exceptions raised by the clustering engine."""


class GraphOrganizerError(Exception):
    """Base class for all graph organizer errors."""


class DimensionMismatch(GraphOrganizerError):
    """Embeddings of different lengths were compared or averaged."""

    def __init__(self, expected: int, actual: int):
        self.expected = expected
        self.actual = actual
        super().__init__(f"Embedding dimension mismatch: expected {expected}, got {actual}")


class ExternalServiceFailure(GraphOrganizerError):
    """The text generation collaborator failed, timed out, or returned nothing."""


class PersistenceFailure(GraphOrganizerError):
    """The storage collaborator is unreachable or rejected a write."""


class InvalidParameters(GraphOrganizerError):
    """Clustering parameters are out of range."""
