"""
Tests for ConflictReportBuilder

Pure computation over snapshots: no session involved.
"""

from golf_scheduler.services.conflict_report_builder import ConflictReportBuilder
from tests.factories import make_schedule, snapshot, week_snapshot

builder = ConflictReportBuilder()


def _players(count=8):
    return [snapshot(i, handedness="left" if i % 2 else "right") for i in range(1, count + 1)]


def test_clean_schedule_has_no_conflicts_or_suggestions():
    players = _players()
    schedule = make_schedule([players[:4]], [players[4:]])
    week = week_snapshot({p.id: "available" for p in players})

    report = builder.compute(schedule, week, players)

    assert report.is_valid
    assert report.conflicts == []
    assert report.suggestions == []
    assert report.summary.total_players == 8
    assert report.summary.affected_time_slots == []


def test_unavailable_and_missing_data_conflicts():
    players = _players()
    schedule = make_schedule([players[:4]], [players[4:]])
    statuses = {p.id: "available" for p in players[:6]}
    statuses[7] = "unavailable"
    week = week_snapshot(statuses)

    report = builder.compute(schedule, week, players)

    assert not report.is_valid
    assert [(c.player_id, c.conflict_type) for c in report.conflicts] == [(7, "unavailable"), (8, "no_data")]
    assert report.conflicts[0].time_slot == "afternoon"
    assert report.summary.total_conflicts == 2
    assert report.summary.affected_time_slots == ["afternoon"]
    assert report.summary.affected_player_ids == [7, 8]
    assert [s.kind for s in report.suggestions] == ["remove_player", "update_availability", "regenerate"]
    assert report.suggestions[0].player_ids == [7]
    assert report.suggestions[1].player_ids == [8]


def test_conflicts_ordered_by_slot_then_position():
    players = _players()
    schedule = make_schedule([players[:2], players[2:4]], [players[4:]])
    statuses = {p.id: "available" for p in players}
    statuses.update({5: "unavailable", 4: "unavailable", 1: "unavailable"})
    week = week_snapshot(statuses)

    report = builder.compute(schedule, week, players)

    assert [c.player_id for c in report.conflicts] == [1, 4, 5]


def test_many_conflicts_call_for_manual_review():
    players = _players()
    schedule = make_schedule([players[:4]], [players[4:]])
    week = week_snapshot({p.id: "available" if p.id > 4 else "unavailable" for p in players})

    report = builder.compute(schedule, week, players)

    kinds = [(s.kind, s.severity) for s in report.suggestions]
    assert kinds == [("remove_player", "high"), ("manual_review", "high"), ("regenerate", "medium")]


def test_rule_violations_without_conflicts_suggest_review():
    players = _players()
    schedule = make_schedule([players[:4] + [players[0]]], [players[4:]])
    week = week_snapshot({p.id: "available" for p in players})

    report = builder.compute(schedule, week, players)

    assert report.conflicts == []
    assert [(s.kind, s.severity) for s in report.suggestions] == [("manual_review", "medium")]


def test_report_is_deterministic():
    players = _players()
    schedule = make_schedule([players[:4]], [players[4:]])
    week = week_snapshot({1: "unavailable", 2: "available", 3: "available", 5: "available"})

    assert builder.compute(schedule, week, players) == builder.compute(schedule, week, players)


def test_locked_week_is_reported_as_error():
    players = _players()
    schedule = make_schedule([players[:4]], [players[4:]])
    week = week_snapshot({p.id: "available" for p in players})

    report = builder.compute(schedule, week, players, regeneration_in_progress=True)

    assert not report.is_valid
    assert report.summary.error_count == 1
