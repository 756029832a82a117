"""Schema for events, clusters and clustering runs.

Pydantic models are the value records the engine passes around. They are
frozen: a change is a copy written back through the store. The SQLAlchemy
tables below mirror them for the PostgreSQL store.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Literal
from uuid import uuid4

from pgvector.sqlalchemy import Vector
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from sqlalchemy import ARRAY, Column, DateTime, Float, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.dialects.postgresql import UUID as PGUUID
from sqlalchemy.orm import declarative_base

from graph_organizer.errors import InvalidParameters
from graph_organizer.time_service import TimeService

ALGORITHM_NAME = "anchor-greedy-cosine"


class EventNode(BaseModel):
    """A knowledge-graph event that can be grouped into a cluster."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    type: str = "event"
    description: str | None = None
    embedding: list[float] = Field(default_factory=list)
    start_time: datetime | None = Field(None, description="When the event happened, if known")
    last_modified: datetime
    last_accessed: datetime | None = None
    cluster_id: str | None = None

    @field_validator("start_time", "last_modified", "last_accessed")
    @classmethod
    def normalize_time(cls, value: datetime | None) -> datetime | None:
        # Naive timestamps are UTC, as stored by the database
        return TimeService.parse(value) if value is not None else None

    @property
    def occurrence_time(self) -> datetime:
        """When the event happened, falling back to when it was last modified."""
        return self.start_time or self.last_modified

    @property
    def has_embedding(self) -> bool:
        return len(self.embedding) > 0


class ClusterNode(BaseModel):
    """A named group of related events produced by one clustering run."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    type: Literal["cluster"] = "cluster"
    description: str
    centroid: list[float] = Field(default_factory=list)
    member_count: int
    avg_similarity: float = Field(..., description="Mean pairwise cosine similarity of members")
    earliest_event_time: datetime
    latest_event_time: datetime
    member_ids: list[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @field_validator("earliest_event_time", "latest_event_time")
    @classmethod
    def normalize_time(cls, value: datetime) -> datetime:
        return TimeService.parse(value)


class ClusteringParameters(BaseModel):
    """Knobs of the anchor clustering pass, validated on construction."""

    model_config = ConfigDict(frozen=True)

    similarity_threshold: float = 0.85
    temporal_window_days: int = 30
    min_cluster_size: int = 2
    max_cluster_size: int = 20

    @model_validator(mode="after")
    def check_ranges(self) -> ClusteringParameters:
        # InvalidParameters is not a ValueError, so pydantic lets it through unwrapped
        if not 0.0 < self.similarity_threshold <= 1.0:
            raise InvalidParameters(
                f"similarity_threshold must be in (0, 1], got {self.similarity_threshold}"
            )
        if self.temporal_window_days <= 0:
            raise InvalidParameters(
                f"temporal_window_days must be positive, got {self.temporal_window_days}"
            )
        if self.min_cluster_size <= 0:
            raise InvalidParameters(
                f"min_cluster_size must be positive, got {self.min_cluster_size}"
            )
        if self.max_cluster_size < self.min_cluster_size:
            raise InvalidParameters(
                f"max_cluster_size ({self.max_cluster_size}) is smaller than "
                f"min_cluster_size ({self.min_cluster_size})"
            )
        return self


class ClusteringRunMetadata(BaseModel):
    """Audit record written at the end of every clustering run."""

    model_config = ConfigDict(frozen=True)

    run_at: datetime
    total_candidates: int
    clusters_created: int
    events_clustered: int
    events_unclustered: int
    algorithm: str = ALGORITHM_NAME
    avg_cluster_size: float
    avg_similarity: float
    parameters: ClusteringParameters


class RunResult(BaseModel):
    """Outcome of a clustering run, as returned to callers."""

    success: bool
    message: str | None = None
    clusters_created: int = 0
    events_processed: int = 0
    events_clustered: int = 0
    events_merged: int = 0
    avg_cluster_size: float = 0.0
    avg_similarity: float = 0.0
    duration_seconds: float = 0.0
    error: str | None = None

    @classmethod
    def failure(cls, error: str) -> RunResult:
        return cls(success=False, error=error)


class ClusteringQualityMetrics(BaseModel):
    """Health indicators over all persisted clusters."""

    total_clusters: int = 0
    avg_intra_similarity: float = 0.0
    avg_cluster_size: float = 0.0
    outlier_ratio: float = 0.0
    avg_inter_distance: float = 0.0
    quality_score: float = 0.0


Base = declarative_base()


class EventRecord(Base):
    """Event rows. Written by upstream extraction, only cluster_id is written here."""

    __tablename__ = "events"

    id = Column(String, primary_key=True)
    name = Column(Text, nullable=False)
    type = Column(String, nullable=False, default="event")
    description = Column(Text, nullable=True)

    embedding = Column(Vector())

    start_time = Column(DateTime(timezone=True), nullable=True)
    last_modified = Column(DateTime(timezone=True), nullable=False)
    last_accessed = Column(DateTime(timezone=True), nullable=True)

    # Weak back-reference to clusters.id, no foreign key on purpose
    cluster_id = Column(String, nullable=True, index=True)


class ClusterRecord(Base):
    """Cluster rows, one per qualifying group per run."""

    __tablename__ = "clusters"

    id = Column(String, primary_key=True)
    name = Column(Text, nullable=False)
    type = Column(String, nullable=False, default="cluster")
    description = Column(Text, nullable=False)
    centroid = Column(Vector())
    member_count = Column(Integer, nullable=False)
    avg_similarity = Column(Float, nullable=False)
    earliest_event_time = Column(DateTime(timezone=True), nullable=False)
    latest_event_time = Column(DateTime(timezone=True), nullable=False)
    member_ids = Column(ARRAY(String), nullable=False, default=[])
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC))


class ClusteringRunRecord(Base):
    """Append-only log of clustering runs."""

    __tablename__ = "clustering_runs"

    id = Column(PGUUID(as_uuid=True), primary_key=True, default=uuid4)
    run_at = Column(DateTime(timezone=True), nullable=False, index=True)
    total_candidates = Column(Integer, nullable=False)
    clusters_created = Column(Integer, nullable=False)
    events_clustered = Column(Integer, nullable=False)
    events_unclustered = Column(Integer, nullable=False)
    algorithm = Column(String, nullable=False)
    avg_cluster_size = Column(Float, nullable=False)
    avg_similarity = Column(Float, nullable=False)
    parameters = Column(JSONB, nullable=False, default={})
