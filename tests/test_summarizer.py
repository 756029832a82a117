"""Tests for cluster summaries and titles."""

import pytest
from factories import FailingTextGenerator, FakeTextGenerator, make_event

from graph_organizer.clustering import EventGroup
from graph_organizer.errors import DimensionMismatch
from graph_organizer.summarizer import (
    ClusterSummarizer,
    build_title_prompt,
    calculate_centroid,
    clean_title,
    describe_members,
    fallback_title,
)


def group_of(*events):
    return EventGroup(list(events), anchor_index=0)


def test_centroid_is_elementwise_mean():
    centroid = calculate_centroid([[1.0, 2.0, 3.0], [3.0, 2.0, 1.0], [2.0, 5.0, 2.0]])
    assert centroid == pytest.approx([2.0, 3.0, 2.0])


def test_centroid_rejects_mixed_dimensions():
    with pytest.raises(DimensionMismatch):
        calculate_centroid([[1.0, 2.0], [1.0, 2.0, 3.0]])


def test_description_lists_top_three_types():
    members = [
        make_event("1", [1.0], type="meeting"),
        make_event("2", [1.0], type="call"),
        make_event("3", [1.0], type="meeting"),
        make_event("4", [1.0], type="email"),
        make_event("5", [1.0], type="call"),
        make_event("6", [1.0], type="meeting"),
        make_event("7", [1.0], type="note"),
    ]

    assert describe_members(members) == (
        "Contains 7 related events: meeting(3), call(2), email(1)"
    )


def test_fallback_title_uses_most_common_type():
    members = [
        make_event("1", [1.0], type="meal"),
        make_event("2", [1.0], type="trip"),
        make_event("3", [1.0], type="meal"),
    ]
    assert fallback_title(members) == "meal related events (3)"


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("Team syncs", "Team syncs"),
        ('  • "Hotpot dinners"  ', "Hotpot dinners"),
        ("- 'Gym'", "Gym"),
        ("Paper drafts\nThese events are all about writing.", "Paper drafts"),
        ("A very long title that keeps going", "A very long title th..."),
        ("   ", ""),
    ],
)
def test_clean_title(raw, expected):
    assert clean_title(raw) == expected


def test_prompt_lists_at_most_ten_names():
    members = [make_event(str(i), [1.0], name=f"Standup {i}") for i in range(14)]

    prompt = build_title_prompt(members)

    assert "Standup 9" in prompt
    assert "Standup 10" not in prompt


def test_prompt_includes_short_details():
    members = [
        make_event("1", [1.0], name="Hotpot", description="Dinner at the hotpot place " * 5),
        make_event("2", [1.0], name="Ramen"),
    ]

    prompt = build_title_prompt(members)

    assert "Hotpot: Dinner at the hotpot place" in prompt
    assert "..." in prompt


@pytest.mark.asyncio
async def test_summarize_builds_cluster_node():
    generator = FakeTextGenerator("Weekly syncs")
    members = (
        make_event("a", [1.0, 0.0], day=3),
        make_event("b", [0.0, 1.0], day=1),
        make_event("c", [1.0, 1.0], day=7),
    )

    cluster = await ClusterSummarizer(generator).summarize(group_of(*members))

    assert cluster.name == "Weekly syncs"
    assert cluster.type == "cluster"
    assert cluster.id.startswith("cluster_")
    assert cluster.member_ids == ["a", "b", "c"]
    assert cluster.member_count == 3
    assert cluster.centroid == pytest.approx([2 / 3, 2 / 3])
    assert cluster.earliest_event_time == members[1].occurrence_time
    assert cluster.latest_event_time == members[2].occurrence_time
    assert cluster.description == "Contains 3 related events: meeting(3)"
    assert 0.0 <= cluster.avg_similarity <= 1.0
    assert len(generator.prompts) == 1


@pytest.mark.asyncio
async def test_failed_title_falls_back():
    generator = FailingTextGenerator()
    members = [make_event(str(i), [1.0, 0.0], type="meeting") for i in range(3)]

    cluster = await ClusterSummarizer(generator).summarize(group_of(*members))

    assert cluster.name == "meeting related events (3)"
    assert generator.calls == 1


@pytest.mark.asyncio
async def test_empty_title_falls_back():
    members = [make_event(str(i), [1.0], type="trip") for i in range(2)]

    cluster = await ClusterSummarizer(FakeTextGenerator('""')).summarize(group_of(*members))

    assert cluster.name == "trip related events (2)"


@pytest.mark.asyncio
async def test_no_generator_uses_fallback():
    members = [make_event(str(i), [1.0], type="call") for i in range(4)]

    cluster = await ClusterSummarizer(None).summarize(group_of(*members))

    assert cluster.name == "call related events (4)"


@pytest.mark.asyncio
async def test_cluster_ids_are_unique():
    summarizer = ClusterSummarizer(None)
    members = [make_event(str(i), [1.0]) for i in range(2)]

    ids = {(await summarizer.summarize(group_of(*members))).id for _ in range(20)}

    assert len(ids) == 20


@pytest.mark.asyncio
@pytest.mark.parametrize("concurrency", [1, 3])
async def test_summarize_groups_keeps_order(concurrency):
    groups = [
        group_of(*[make_event(f"{g}-{i}", [1.0], type=f"type{g}") for i in range(2)])
        for g in range(5)
    ]
    progress = []

    clusters = await ClusterSummarizer(None, title_concurrency=concurrency).summarize_groups(
        groups, on_progress=progress.append
    )

    assert [c.member_ids[0] for c in clusters] == [f"{g}-0" for g in range(5)]
    assert len(progress) == 5
