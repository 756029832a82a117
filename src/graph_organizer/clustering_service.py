"""Clustering service: runs incremental semantic clustering over the event graph."""

from __future__ import annotations

import time
from collections.abc import Callable
from datetime import datetime
from typing import Any

import numpy as np
from structlog import get_logger

from graph_organizer.candidates import select_candidates, select_in_range
from graph_organizer.clustering import EventGroup, cluster_events, within_temporal_window
from graph_organizer.schema import (
    ClusteringParameters,
    ClusteringQualityMetrics,
    ClusteringRunMetadata,
    ClusterNode,
    EventNode,
    RunResult,
)
from graph_organizer.similarity import cosine_similarity
from graph_organizer.storage import EventStore
from graph_organizer.summarizer import ClusterSummarizer, TextGenerator
from graph_organizer.time_service import TimeService

logger = get_logger()

ProgressCallback = Callable[[str], None]

PURITY_THRESHOLD = 0.72
MERGE_SIMILARITY_THRESHOLD = 0.86
INTER_DISTANCE_SAMPLE = 20
INTER_DISTANCE_NEIGHBOURS = 4


def calculate_quality_score(avg_intra_sim: float, avg_inter_distance: float, outlier_ratio: float) -> float:
    """Weighted blend of tightness, separation and purity, clamped to [0, 1]."""
    score = avg_intra_sim * 0.4 + avg_inter_distance * 0.4 + (1.0 - outlier_ratio) * 0.2
    return float(np.clip(score, 0.0, 1.0))


class ClusteringService:
    """Groups related events into clusters and keeps membership up to date.

    Callers must not run two clustering passes against the same store at
    once; a run reads and then writes cluster assignments without isolation.
    """

    def __init__(
        self,
        store: EventStore,
        text_generator: TextGenerator | None = None,
        parameters: ClusteringParameters | None = None,
        title_concurrency: int = 1,
        purity_threshold: float = PURITY_THRESHOLD,
        merge_threshold: float = MERGE_SIMILARITY_THRESHOLD,
    ):
        self.store = store
        self.parameters = parameters or ClusteringParameters()
        self.summarizer = ClusterSummarizer(text_generator, title_concurrency=title_concurrency)
        self.purity_threshold = purity_threshold
        self.merge_threshold = merge_threshold

    async def organize_graph(
        self,
        force_recluster: bool = False,
        on_progress: ProgressCallback | None = None,
    ) -> RunResult:
        """
        Cluster new and recently touched events.

        Args:
            force_recluster: Re-partition every embedded event, not just the working set
            on_progress: Receives a short status line at each stage

        Returns:
            RunResult; failures are reported with success=False instead of raised
        """
        notify = on_progress or (lambda message: None)
        start_time = time.perf_counter()
        try:
            notify("Starting semantic clustering...")
            events = await self.store.list_events()
            candidates = select_candidates(
                events,
                force_recluster=force_recluster,
                window_days=self.parameters.temporal_window_days,
                now=TimeService.now(),
            )
            notify(f"Found {len(candidates)} candidate events")
            return await self._run(candidates, notify, start_time)
        except Exception as e:
            logger.error("clustering_run_failed", error=str(e), error_type=type(e).__name__)
            return RunResult.failure(str(e))

    async def cluster_by_date_range(
        self,
        start: datetime,
        end: datetime,
        on_progress: ProgressCallback | None = None,
    ) -> RunResult:
        """
        Cluster only the events that happened between start and end.

        Events in the range first join an existing cluster whose centroid
        they match at the merge threshold; the rest are clustered afresh.
        """
        notify = on_progress or (lambda message: None)
        start_time = time.perf_counter()
        try:
            notify("Starting date range clustering...")
            events = await self.store.list_events()
            candidates = select_in_range(events, start, end)
            notify(f"Found {len(candidates)} events in range")
            return await self._run(candidates, notify, start_time, merge_first=True)
        except Exception as e:
            logger.error(
                "date_range_clustering_failed",
                start=start.isoformat(),
                end=end.isoformat(),
                error=str(e),
            )
            return RunResult.failure(str(e))

    async def _run(
        self,
        candidates: list[EventNode],
        notify: ProgressCallback,
        start_time: float,
        merge_first: bool = False,
    ) -> RunResult:
        if not candidates:
            return RunResult(success=True, message="No events need clustering")

        pool = candidates
        merged: list[EventNode] = []
        superseded: set[str] = set()
        if merge_first:
            notify("Merging into existing clusters...")
            merged, pool, superseded = await self._merge_into_existing(candidates)
            notify(f"Merged {len(merged)} events into existing clusters")

        notify("Clustering...")
        groups = [
            g for g in cluster_events(pool, self.parameters)
            if g.size >= self.parameters.min_cluster_size
        ]
        notify(f"Formed {len(groups)} clusters")

        clusters = await self.summarizer.summarize_groups(groups, on_progress=notify)

        # Clusters go in before members point at them
        if clusters:
            await self.store.save_clusters(clusters)
        superseded |= await self._assign_members(groups, clusters)
        await self._supersede(superseded)

        grouped = sum(c.member_count for c in clusters)
        events_clustered = grouped + len(merged)
        avg_size = grouped / len(clusters) if clusters else 0.0
        avg_similarity = (
            sum(c.avg_similarity for c in clusters) / len(clusters) if clusters else 0.0
        )

        await self.store.save_run_metadata(
            ClusteringRunMetadata(
                run_at=TimeService.now(),
                total_candidates=len(candidates),
                clusters_created=len(clusters),
                events_clustered=events_clustered,
                events_unclustered=len(candidates) - events_clustered,
                avg_cluster_size=avg_size,
                avg_similarity=avg_similarity,
                parameters=self.parameters,
            )
        )

        duration = time.perf_counter() - start_time
        notify(f"Clustering finished in {duration:.1f} seconds")
        logger.info(
            "clustering_run_complete",
            candidates=len(candidates),
            clusters_created=len(clusters),
            events_clustered=events_clustered,
            events_merged=len(merged),
            duration_seconds=duration,
        )
        return RunResult(
            success=True,
            message="Clustering complete",
            clusters_created=len(clusters),
            events_processed=len(candidates),
            events_clustered=events_clustered,
            events_merged=len(merged),
            avg_cluster_size=avg_size,
            avg_similarity=avg_similarity,
            duration_seconds=duration,
        )

    async def _assign_members(self, groups: list[EventGroup], clusters: list[ClusterNode]) -> set[str]:
        """Point every member at its new cluster; return the ids they pointed at before."""
        previous: set[str] = set()
        for group, cluster in zip(groups, clusters, strict=True):
            for member in group.members:
                if member.cluster_id is not None:
                    previous.add(member.cluster_id)
                await self.store.update_event(member.model_copy(update={"cluster_id": cluster.id}))
        return previous

    async def _supersede(self, cluster_ids: set[str]) -> list[ClusterNode]:
        """
        Replace clusters whose membership changed.

        Members still pointing at an old cluster are re-summarized into a new
        one when there are enough of them. Every old cluster is then removed,
        which also clears the back-references of members too few to keep.
        """
        rebuilt = []
        for cluster_id in sorted(cluster_ids):
            members = await self.store.list_events_by_cluster(cluster_id)
            if len(members) < self.parameters.min_cluster_size:
                continue
            members.sort(key=lambda e: (e.occurrence_time, e.id))
            cluster = await self.summarizer.summarize(EventGroup(members, anchor_index=0))
            await self.store.save_clusters([cluster])
            for member in members:
                await self.store.update_event(member.model_copy(update={"cluster_id": cluster.id}))
            rebuilt.append(cluster)

        if cluster_ids:
            await self.store.remove_clusters(sorted(cluster_ids))
            logger.info(
                "Superseded clusters",
                removed=len(cluster_ids),
                rebuilt=len(rebuilt),
            )
        return rebuilt

    def _find_home(
        self,
        event: EventNode,
        clusters: list[ClusterNode],
        spans: dict[str, tuple[int, datetime, datetime]],
        exclude: str | None = None,
    ) -> ClusterNode | None:
        """Most similar cluster that reaches the merge threshold and still has room for the event."""
        best, best_similarity = None, self.merge_threshold
        for cluster in clusters:
            if cluster.id == exclude or not cluster.centroid:
                continue
            similarity = cosine_similarity(event.embedding, cluster.centroid)
            if similarity < best_similarity or (best is not None and similarity == best_similarity):
                continue
            if cluster.id != event.cluster_id:
                count, earliest, latest = spans[cluster.id]
                if count >= self.parameters.max_cluster_size:
                    continue
                if not within_temporal_window(
                    [earliest, latest, event.occurrence_time], self.parameters.temporal_window_days
                ):
                    continue
            best, best_similarity = cluster, similarity
        return best

    async def _move(
        self,
        event: EventNode,
        cluster: ClusterNode,
        spans: dict[str, tuple[int, datetime, datetime]],
    ) -> None:
        count, earliest, latest = spans[cluster.id]
        occurred = event.occurrence_time
        spans[cluster.id] = (count + 1, min(earliest, occurred), max(latest, occurred))
        await self.store.update_event(event.model_copy(update={"cluster_id": cluster.id}))

    async def _merge_into_existing(
        self, candidates: list[EventNode]
    ) -> tuple[list[EventNode], list[EventNode], set[str]]:
        """
        Attach candidates to the existing clusters they match best.

        Returns the merged events, the events left for fresh clustering, and
        the ids of clusters whose membership changed.
        """
        clusters = await self.store.list_clusters()
        spans = {c.id: (c.member_count, c.earliest_event_time, c.latest_event_time) for c in clusters}

        merged: list[EventNode] = []
        remaining: list[EventNode] = []
        changed: set[str] = set()
        for event in candidates:
            home = self._find_home(event, clusters, spans)
            if home is None:
                remaining.append(event)
                continue
            merged.append(event)
            if home.id == event.cluster_id:
                continue
            if event.cluster_id is not None:
                changed.add(event.cluster_id)
            changed.add(home.id)
            await self._move(event, home, spans)
        return merged, remaining, changed

    async def reassign_outliers(self, on_progress: ProgressCallback | None = None) -> dict[str, Any]:
        """
        Move members that drifted away from their cluster centroid.

        A member is an outlier when its similarity to its cluster centroid
        falls below the purity threshold. It moves to the best other cluster
        that reaches the merge threshold and has room, or becomes
        unclustered. Clusters whose membership changed are superseded.
        """
        notify = on_progress or (lambda message: None)
        try:
            notify("Detecting outliers...")
            clusters = await self.store.list_clusters()
            spans = {
                c.id: (c.member_count, c.earliest_event_time, c.latest_event_time) for c in clusters
            }

            detected = 0
            reassigned = 0
            changed: set[str] = set()
            for cluster in clusters:
                if not cluster.centroid:
                    continue
                for member in await self.store.list_events_by_cluster(cluster.id):
                    if not member.has_embedding:
                        continue
                    if cosine_similarity(member.embedding, cluster.centroid) >= self.purity_threshold:
                        continue
                    detected += 1
                    changed.add(cluster.id)
                    home = self._find_home(member, clusters, spans, exclude=cluster.id)
                    if home is None:
                        await self.store.update_event(member.model_copy(update={"cluster_id": None}))
                        continue
                    changed.add(home.id)
                    await self._move(member, home, spans)
                    reassigned += 1

            rebuilt = await self._supersede(changed)

            notify(f"Found {detected} outliers, reassigned {reassigned}")
            logger.info(
                "Outliers reassigned",
                outliers=detected,
                reassigned=reassigned,
                clusters_rebuilt=len(rebuilt),
            )
            return {
                "success": True,
                "message": "Outlier reassignment complete",
                "outliers_detected": detected,
                "reassigned": reassigned,
                "unclustered": detected - reassigned,
                "clusters_rebuilt": len(rebuilt),
            }
        except Exception as e:
            logger.error("reassign_outliers_failed", error=str(e))
            return {"success": False, "error": str(e)}

    async def get_all_clusters(self) -> list[ClusterNode]:
        """All persisted clusters."""
        return await self.store.list_clusters()

    async def get_cluster_members(self, cluster_id: str) -> list[EventNode]:
        """Events currently assigned to the cluster."""
        return await self.store.list_events_by_cluster(cluster_id)

    async def get_unclustered_events(self) -> list[EventNode]:
        """Events with an embedding that belong to no cluster."""
        events = await self.store.list_events()
        return [e for e in events if e.has_embedding and e.cluster_id is None]

    async def get_run_history(self) -> list[ClusteringRunMetadata]:
        """Persisted run metadata, newest first."""
        return await self.store.list_run_metadata()

    async def clear_all_clusters(self, on_progress: ProgressCallback | None = None) -> dict[str, Any]:
        """
        Remove every cluster and clear every event's cluster assignment.

        Run metadata is an audit log and is kept.
        """
        notify = on_progress or (lambda message: None)
        try:
            notify("Clearing all clusters...")
            clusters = await self.store.list_clusters()
            cleared = await self.store.remove_clusters([c.id for c in clusters])

            # Events can still point at clusters that no longer exist
            for event in await self.store.list_events():
                if event.cluster_id is not None:
                    await self.store.update_event(event.model_copy(update={"cluster_id": None}))
                    cleared += 1

            notify(f"Removed {len(clusters)} clusters, cleared {cleared} events")
            logger.info("Clusters cleared", clusters_removed=len(clusters), events_cleared=cleared)
            return {
                "success": True,
                "message": "All clusters cleared",
                "clusters_removed": len(clusters),
                "events_cleared": cleared,
            }
        except Exception as e:
            logger.error("clear_clusters_failed", error=str(e))
            return {"success": False, "error": str(e)}

    async def get_clustering_quality_metrics(self) -> ClusteringQualityMetrics:
        """
        Measure how tight, pure and well separated the current clusters are.

        Outliers are members whose similarity to their cluster centroid falls
        below the purity threshold. Inter-cluster distance is sampled over the
        first clusters, each compared with its next few neighbours.
        """
        clusters = await self.store.list_clusters()
        if not clusters:
            return ClusteringQualityMetrics()

        avg_intra = sum(c.avg_similarity for c in clusters) / len(clusters)
        avg_size = sum(c.member_count for c in clusters) / len(clusters)

        total_members = 0
        outliers = 0
        for cluster in clusters:
            if not cluster.centroid:
                continue
            for member in await self.store.list_events_by_cluster(cluster.id):
                if not member.has_embedding:
                    continue
                total_members += 1
                if cosine_similarity(member.embedding, cluster.centroid) < self.purity_threshold:
                    outliers += 1
        outlier_ratio = outliers / total_members if total_members else 0.0

        distances = []
        sample = clusters[:INTER_DISTANCE_SAMPLE]
        for i in range(len(sample) - 1):
            for j in range(i + 1, min(len(sample), i + 1 + INTER_DISTANCE_NEIGHBOURS)):
                if not sample[i].centroid or not sample[j].centroid:
                    continue
                distances.append(1.0 - cosine_similarity(sample[i].centroid, sample[j].centroid))
        avg_inter = sum(distances) / len(distances) if distances else 0.0

        return ClusteringQualityMetrics(
            total_clusters=len(clusters),
            avg_intra_similarity=avg_intra,
            avg_cluster_size=avg_size,
            outlier_ratio=outlier_ratio,
            avg_inter_distance=avg_inter,
            quality_score=calculate_quality_score(avg_intra, avg_inter, outlier_ratio),
        )


# Global instance
_clustering_service = None


def get_clustering_service() -> ClusteringService:
    """Get the clustering service wired to the database and naming helper."""
    global _clustering_service
    if _clustering_service is None:
        from graph_organizer.naming_helper import get_naming_helper
        from graph_organizer.settings import get_settings
        from graph_organizer.storage import SqlEventStore

        settings = get_settings()
        _clustering_service = ClusteringService(
            store=SqlEventStore(),
            text_generator=get_naming_helper(),
            parameters=ClusteringParameters(
                similarity_threshold=settings.similarity_threshold,
                temporal_window_days=settings.temporal_window_days,
                min_cluster_size=settings.min_cluster_size,
                max_cluster_size=settings.max_cluster_size,
            ),
            title_concurrency=settings.title_concurrency,
            purity_threshold=settings.purity_threshold,
            merge_threshold=settings.merge_similarity_threshold,
        )
    return _clustering_service
