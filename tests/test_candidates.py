"""Tests for incremental candidate selection."""

from datetime import timedelta

from factories import LONG_AGO, NOW, make_event

from graph_organizer.candidates import select_candidates, select_in_range


def test_force_recluster_takes_every_embedded_event():
    events = [
        make_event("a", [1.0, 0.0], cluster_id="cluster_old"),
        make_event("b", [0.0, 1.0]),
        make_event("c", []),
    ]

    candidates = select_candidates(events, force_recluster=True, window_days=30, now=NOW)

    assert [e.id for e in candidates] == ["a", "b"]


def test_incremental_selection_criteria():
    events = [
        make_event("unclustered", [1.0, 0.0]),
        make_event("stale", [1.0, 0.0], cluster_id="cluster_old"),
        make_event(
            "recently_modified",
            [1.0, 0.0],
            cluster_id="cluster_old",
            last_modified=NOW - timedelta(days=2),
        ),
        make_event(
            "recently_accessed",
            [1.0, 0.0],
            cluster_id="cluster_old",
            last_accessed=NOW - timedelta(days=10),
        ),
        make_event(
            "accessed_long_ago",
            [1.0, 0.0],
            cluster_id="cluster_old",
            last_accessed=NOW - timedelta(days=31),
        ),
        make_event("no_embedding", []),
    ]

    candidates = select_candidates(events, force_recluster=False, window_days=30, now=NOW)

    assert [e.id for e in candidates] == ["unclustered", "recently_modified", "recently_accessed"]


def test_empty_embedding_never_selected():
    events = [make_event("x", [], last_modified=NOW)]
    assert select_candidates(events, force_recluster=False, now=NOW) == []
    assert select_candidates(events, force_recluster=True, now=NOW) == []


def test_nothing_to_do_is_an_empty_list():
    assert select_candidates([], now=NOW) == []


def test_window_controls_the_cutoff():
    event = make_event(
        "a", [1.0], cluster_id="cluster_old", last_modified=NOW - timedelta(days=10)
    )
    assert select_candidates([event], window_days=30, now=NOW) == [event]
    assert select_candidates([event], window_days=5, now=NOW) == []


def test_select_in_range_is_exclusive():
    events = [
        make_event("before", [1.0], day=0),
        make_event("inside", [1.0], day=5),
        make_event("edge", [1.0], day=10),
        make_event("no_embedding", [], day=5),
    ]

    selected = select_in_range(events, LONG_AGO, LONG_AGO + timedelta(days=10))

    assert [e.id for e in selected] == ["inside"]
