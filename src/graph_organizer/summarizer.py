"""Turn event groups into named cluster records."""

from __future__ import annotations

import asyncio
import re
import time
import uuid
from collections import Counter
from collections.abc import Callable
from typing import Protocol

import numpy as np
from structlog import get_logger

from graph_organizer.clustering import EventGroup, time_span
from graph_organizer.prompts import render_prompt
from graph_organizer.schema import ClusterNode, EventNode
from graph_organizer.similarity import average_pairwise_similarity, stack_embeddings

logger = get_logger()

MAX_TITLE_LENGTH = 20
PROMPT_NAME_LIMIT = 10
PROMPT_SNIPPET_LIMIT = 5
SNIPPET_LENGTH = 50

_LEADING_MARKERS = re.compile(r"^[\s•\-\*]+")
_QUOTES = re.compile(r"[\"'“”‘’]")


class TextGenerator(Protocol):
    """Anything that can answer a prompt with free text."""

    async def generate(self, prompt: str) -> str: ...


def calculate_centroid(embeddings: list[list[float]]) -> list[float]:
    """Element-wise mean of the embeddings.

    Raises:
        DimensionMismatch: If the embeddings differ in length
    """
    if not embeddings:
        return []
    return np.mean(stack_embeddings(embeddings), axis=0).tolist()


def most_common_type(members: list[EventNode]) -> str:
    return Counter(m.type for m in members).most_common(1)[0][0]


def fallback_title(members: list[EventNode]) -> str:
    """Deterministic title used when no generated title is available."""
    return f"{most_common_type(members)} related events ({len(members)})"


def describe_members(members: list[EventNode]) -> str:
    """Summarize the member types, e.g. 'Contains 5 related events: meeting(3), call(2)'."""
    top_types = Counter(m.type for m in members).most_common(3)
    types_summary = ", ".join(f"{type_}({count})" for type_, count in top_types)
    return f"Contains {len(members)} related events: {types_summary}"


def clean_title(raw: str) -> str:
    """Strip list markers and quotes from a model reply and bound its length."""
    title = _QUOTES.sub("", _LEADING_MARKERS.sub("", raw.strip())).strip()
    # Models sometimes add an explanation after the title
    title = title.splitlines()[0].strip() if title else ""
    if len(title) > MAX_TITLE_LENGTH:
        title = title[:MAX_TITLE_LENGTH] + "..."
    return title


def build_title_prompt(members: list[EventNode]) -> str:
    """Render the naming prompt from the first few members."""
    snippets = []
    for event in members[:PROMPT_SNIPPET_LIMIT]:
        if not event.description:
            continue
        content = f"{event.name}: {event.description}"
        if len(content) > SNIPPET_LENGTH:
            content = content[:SNIPPET_LENGTH] + "..."
        snippets.append(content)

    return render_prompt(
        "cluster_title.j2",
        names=[e.name for e in members[:PROMPT_NAME_LIMIT]],
        snippets=snippets,
    )


def generate_cluster_id() -> str:
    """Time-derived unique cluster id."""
    return f"cluster_{int(time.time() * 1000)}_{uuid.uuid4().hex[:8]}"


class ClusterSummarizer:
    """Builds ClusterNode records, naming each cluster with a text generator."""

    def __init__(self, text_generator: TextGenerator | None = None, title_concurrency: int = 1):
        self.text_generator = text_generator
        self.title_concurrency = max(1, title_concurrency)

    async def generate_title(self, members: list[EventNode]) -> str:
        """
        Ask the text generator for a title, falling back on any failure.

        Never raises: a failed title only degrades this one cluster.
        """
        if self.text_generator is None:
            return fallback_title(members)

        try:
            raw = await self.text_generator.generate(build_title_prompt(members))
            title = clean_title(raw or "")
            if not title:
                logger.warning("Empty cluster title, using fallback", member_count=len(members))
                return fallback_title(members)
            return title
        except Exception as e:
            logger.warning(
                "cluster_title_failed",
                member_count=len(members),
                error=str(e),
                error_type=type(e).__name__,
            )
            return fallback_title(members)

    async def summarize(self, group: EventGroup) -> ClusterNode:
        """Compute the statistics of a group and name it."""
        members = group.members
        embeddings = [m.embedding for m in members]

        centroid = calculate_centroid(embeddings)
        avg_similarity = average_pairwise_similarity(embeddings)
        earliest, latest = time_span(members)
        title = await self.generate_title(members)

        return ClusterNode(
            id=generate_cluster_id(),
            name=title,
            description=describe_members(members),
            centroid=centroid,
            member_count=len(members),
            avg_similarity=avg_similarity,
            earliest_event_time=earliest,
            latest_event_time=latest,
            member_ids=[m.id for m in members],
        )

    async def summarize_groups(
        self,
        groups: list[EventGroup],
        on_progress: Callable[[str], None] | None = None,
    ) -> list[ClusterNode]:
        """
        Summarize every group, keeping group order.

        Titles are requested one group at a time unless title_concurrency
        allows more in flight.
        """
        if self.title_concurrency == 1:
            clusters = []
            for index, group in enumerate(groups, 1):
                if on_progress:
                    on_progress(f"Summarizing cluster {index}/{len(groups)}...")
                clusters.append(await self.summarize(group))
            return clusters

        semaphore = asyncio.Semaphore(self.title_concurrency)

        async def bounded(index: int, group: EventGroup) -> ClusterNode:
            async with semaphore:
                if on_progress:
                    on_progress(f"Summarizing cluster {index}/{len(groups)}...")
                return await self.summarize(group)

        return list(
            await asyncio.gather(*(bounded(i, g) for i, g in enumerate(groups, 1)))
        )
