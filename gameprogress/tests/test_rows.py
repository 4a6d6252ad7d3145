"""Tests for gameprogress.sync.rows — strict row parsing and conversion."""

from datetime import datetime, timedelta, timezone

import pytest

from gameprogress.errors import InvalidRowError
from gameprogress.schemas import CanonicalRecord
from gameprogress.sync.rows import (
    parse_row,
    partition_rows,
    record_to_fields,
    row_to_record,
    split_best,
)

PLAYER = "player-test-1"
MODULE = "bingo-gmp"


class TestParseRow:
    """Valid and invalid row classification."""

    def test_valid_row(self, make_row) -> None:
        row = parse_row({**make_row(), "id": "r1"}, PLAYER, MODULE)
        assert row.id == "r1"
        assert row.score == 100

    def test_extra_columns_ignored(self, make_row) -> None:
        row = parse_row({**make_row(), "id": "r1", "legacy": "x"}, PLAYER, MODULE)
        assert row.id == "r1"

    def test_naive_timestamp_assumed_utc(self, make_row) -> None:
        raw = {**make_row(updated_at=datetime(2026, 1, 1, 12, 0)), "id": "r1"}
        assert parse_row(raw, PLAYER, MODULE).updated_at.tzinfo is not None

    @pytest.mark.parametrize(
        "patch",
        [
            {"score": 0, "time": 0},
            {"score": "100"},
            {"score": True},
            {"time": None},
            {"progress": None},
            {"progress": "cells"},
            {"is_completed": "yes"},
            {"player_id": "someone-else"},
            {"module_id": "gmp-sort"},
            {"score_history": [100, 90], "time_history": [60]},
            {"score": -5},
            {"time_history": [-1]},
        ],
    )
    def test_invalid_rows(self, make_row, patch) -> None:
        raw = {**make_row(), "id": "r1", **patch}
        with pytest.raises(InvalidRowError):
            parse_row(raw, PLAYER, MODULE)

    def test_missing_progress_invalid(self, make_row) -> None:
        raw = {**make_row(), "id": "r1"}
        del raw["progress"]
        with pytest.raises(InvalidRowError):
            parse_row(raw, PLAYER, MODULE)

    def test_non_mapping_invalid(self) -> None:
        with pytest.raises(InvalidRowError):
            parse_row(["r1", 100], PLAYER, MODULE)

    def test_zero_score_with_time_is_valid(self, make_row) -> None:
        raw = {**make_row(score=0, time=15, score_history=[], time_history=[]), "id": "r1"}
        assert parse_row(raw, PLAYER, MODULE).time == 15


class TestPartitionRows:
    """Splitting raw rows into valid rows and deletable invalid ids."""

    def test_partition(self, make_row) -> None:
        raws = [
            {**make_row(), "id": "good"},
            {**make_row(score=0, time=0), "id": "empty"},
            {"id": "broken"},
            {"no": "id"},
            "garbage",
        ]
        valid, invalid_ids = partition_rows(raws, PLAYER, MODULE)
        assert [row.id for row in valid] == ["good"]
        assert invalid_ids == ["empty", "broken"]


class TestSplitBest:
    """Choosing the row to keep."""

    def test_highest_score_wins(self, make_row) -> None:
        rows = [
            parse_row({**make_row(score=100), "id": "low"}, PLAYER, MODULE),
            parse_row({**make_row(score=300, score_history=[300], time_history=[60]), "id": "high"}, PLAYER, MODULE),
        ]
        keep, rest = split_best(rows)
        assert keep.id == "high"
        assert [row.id for row in rest] == ["low"]

    def test_tie_goes_to_latest_update(self, make_row) -> None:
        old = datetime.now(timezone.utc) - timedelta(hours=1)
        rows = [
            parse_row({**make_row(updated_at=old), "id": "old"}, PLAYER, MODULE),
            parse_row({**make_row(), "id": "new"}, PLAYER, MODULE),
        ]
        keep, _ = split_best(rows)
        assert keep.id == "new"

    def test_empty(self) -> None:
        assert split_best([]) == (None, [])


class TestConversion:
    """Row <-> record mapping."""

    def test_row_to_record(self, make_row) -> None:
        row = parse_row(
            {**make_row(score=900, time=40, score_history=[900, 800], time_history=[40, 50]), "id": "r1"},
            PLAYER, MODULE,
        )
        record = row_to_record(row)
        assert record.id == "r1"
        assert record.current_score == 900
        assert record.score_history == [900, 800]
        assert record.completed is True
        assert record.progress_snapshot == {"cells_selected": [24]}

    def test_out_of_order_history_reranked(self, make_row) -> None:
        row = parse_row(
            {**make_row(score=100, time=9, score_history=[100, 300, 300], time_history=[9, 8, 7]), "id": "r1"},
            PLAYER, MODULE,
        )
        record = row_to_record(row)
        assert record.score_history == [300, 100]
        assert record.time_history == [8, 9]
        assert (record.current_score, record.current_time) == (300, 8)

    def test_empty_history_uses_score_columns(self, make_row) -> None:
        row = parse_row(
            {**make_row(score=30, time=70, score_history=[], time_history=[], is_completed=False), "id": "r1"},
            PLAYER, MODULE,
        )
        record = row_to_record(row)
        assert (record.current_score, record.current_time) == (30, 70)

    def test_record_to_fields(self) -> None:
        record = CanonicalRecord(
            id="r1", player_id=PLAYER, module_id=MODULE, current_score=50, current_time=20,
            score_history=[50], time_history=[20], completed=True, progress_snapshot={"a": 1},
        )
        assert record_to_fields(record) == {
            "player_id": PLAYER,
            "module_id": MODULE,
            "score": 50,
            "time": 20,
            "score_history": [50],
            "time_history": [20],
            "progress": {"a": 1},
            "is_completed": True,
        }
