"""
Tests for RankService.
"""
import pytest

from habit_tracker.services.rank_service import (
    RankService, RankTable, STANDARD_RANK_TABLE, EXTENDED_RANK_TABLE
)
from habit_tracker.exceptions import ValidationException


class TestClassify:
    """Tests for classify against the standard table"""

    def test_zero_points_is_bronze(self):
        rank = RankService.classify(0)

        assert rank.name == "BRONZE"
        assert rank.next_name == "SILVER"
        assert rank.xp_to_next == 500

    def test_just_below_gold(self):
        rank = RankService.classify(999)

        assert rank.name == "SILVER"
        assert rank.xp_to_next == 1

    def test_threshold_is_inclusive(self):
        rank = RankService.classify(1000)

        assert rank.name == "GOLD"
        assert rank.threshold == 1000
        assert rank.next_threshold == 1500
        assert rank.xp_to_next == 500

    @pytest.mark.parametrize("points,name", [
        (499, "BRONZE"),
        (500, "SILVER"),
        (1499, "GOLD"),
        (1500, "CRYSTAL"),
        (2000, "MASTER"),
        (2999, "CHAMPION"),
    ])
    def test_tier_boundaries(self, points, name):
        assert RankService.classify(points).name == name

    def test_top_tier_has_no_next(self):
        rank = RankService.classify(12000)

        assert rank.name == "LEGEND"
        assert rank.next_name is None
        assert rank.next_threshold is None
        assert rank.xp_to_next is None

    def test_color_token_reported(self):
        assert RankService.classify(0).color == "#cd7f32"


class TestRankTables:
    """Tests for injectable tables"""

    def test_extended_table_moves_gold(self):
        assert RankService.classify(1000, EXTENDED_RANK_TABLE).name == "SILVER"
        assert RankService.classify(1500, EXTENDED_RANK_TABLE).name == "GOLD"

    def test_custom_table(self):
        table = RankTable([("ROOKIE", "#fff", 0), ("PRO", "#000", 100)])

        rank = RankService.classify(150, table)

        assert rank.name == "PRO"
        assert rank.xp_to_next is None

    def test_rejects_unordered_thresholds(self):
        with pytest.raises(ValidationException):
            RankTable([("A", "#fff", 0), ("B", "#fff", 200), ("C", "#fff", 200)])

    def test_rejects_table_not_starting_at_zero(self):
        with pytest.raises(ValidationException):
            RankTable([("A", "#fff", 10)])

    def test_rejects_empty_table(self):
        with pytest.raises(ValidationException):
            RankTable([])

    def test_table_length(self):
        assert len(STANDARD_RANK_TABLE) == 7
        assert len(RankTable([("ONLY", "#fff", 0)])) == 1

    def test_get_table_by_setting(self):
        assert RankService.get_table("extended") is EXTENDED_RANK_TABLE
        assert RankService.get_table("standard") is STANDARD_RANK_TABLE
        assert RankService.get_table(None) is STANDARD_RANK_TABLE


class TestTotalPoints:
    def test_sums_all_habits(self, make_record):
        habits = [make_record(habit_id="a", points=300), make_record(habit_id="b", points=750)]

        assert RankService.total_points(habits) == 1050
        assert RankService.classify(RankService.total_points(habits)).name == "GOLD"
