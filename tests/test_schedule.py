"""Tests for utils/schedule.py: active configuration selection and windows."""
import copy
import sys
from datetime import date, datetime, timedelta, timezone
from pathlib import Path
from types import SimpleNamespace

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from utils.schedule import (
    STATUS_ACTIVE,
    STATUS_DEFAULT,
    STATUS_EXPIRED,
    STATUS_INVALID,
    STATUS_SCHEDULED,
    configuration_status,
    find_overlaps,
    is_active,
    parse_timestamp,
    select_active_configuration,
    validate_window,
)

UTC = timezone.utc


def cfg(config_id, start=None, end=None, is_default=False):
    return SimpleNamespace(id=config_id, start_date=start, end_date=end,
                           is_default=is_default)


DEFAULT = cfg("default", is_default=True)


def at(text):
    return parse_timestamp(text)


class TestParseTimestamp:
    def test_date_only_is_midnight_utc(self):
        assert parse_timestamp("2025-01-15") == datetime(2025, 1, 15, tzinfo=UTC)

    def test_trailing_z(self):
        assert parse_timestamp("2025-01-15T10:30:00Z") == datetime(2025, 1, 15, 10, 30, tzinfo=UTC)

    def test_offset_converted_to_utc(self):
        assert parse_timestamp("2025-01-15T10:30:00+02:00") == datetime(2025, 1, 15, 8, 30, tzinfo=UTC)

    def test_datetime_local_value(self):
        assert parse_timestamp("2025-01-15T10:30") == datetime(2025, 1, 15, 10, 30, tzinfo=UTC)

    def test_naive_datetime_treated_as_utc(self):
        assert parse_timestamp(datetime(2025, 1, 15, 9)) == datetime(2025, 1, 15, 9, tzinfo=UTC)

    def test_date_object(self):
        assert parse_timestamp(date(2025, 1, 15)) == datetime(2025, 1, 15, tzinfo=UTC)

    @pytest.mark.parametrize("value", [None, "", "   ", "not a date", "2025-13-45", 12345, [],
                                       "9999-12-31T23:59:00-05:00", "0001-01-01T00:00:00+05:00"])
    def test_unparseable_returns_none(self, value):
        assert parse_timestamp(value) is None


class TestSelectActiveConfiguration:
    def test_single_window_contains_now(self):
        a = cfg("A", "2025-01-01", "2025-01-31")
        assert select_active_configuration(at("2025-01-15"), DEFAULT, [a]) is a

    def test_after_window_falls_back_to_default(self):
        a = cfg("A", "2025-01-01", "2025-01-31")
        assert select_active_configuration(at("2025-02-01"), DEFAULT, [a]) is DEFAULT

    def test_before_window_falls_back_to_default(self):
        a = cfg("A", "2025-01-10", "2025-01-31")
        assert select_active_configuration(at("2025-01-09"), DEFAULT, [a]) is DEFAULT

    def test_empty_list_returns_default(self):
        assert select_active_configuration(at("2025-01-15"), DEFAULT, []) is DEFAULT

    def test_overlap_first_in_list_wins(self):
        a = cfg("A", "2025-01-01", "2025-01-31")
        b = cfg("B", "2025-01-10", "2025-01-20")
        assert select_active_configuration(at("2025-01-15"), DEFAULT, [a, b]).id == "A"
        assert select_active_configuration(at("2025-01-15"), DEFAULT, [b, a]).id == "B"

    def test_only_matching_window_selected_among_many(self):
        configs = [cfg("A", "2025-01-01", "2025-01-05"),
                   cfg("B", "2025-01-10", "2025-01-20"),
                   cfg("C", "2025-02-01", "2025-02-28")]
        assert select_active_configuration(at("2025-01-12"), DEFAULT, configs).id == "B"

    def test_start_boundary_inclusive(self):
        a = cfg("A", "2025-01-01T00:00:00Z", "2025-01-31T00:00:00Z")
        assert select_active_configuration(at("2025-01-01T00:00:00Z"), DEFAULT, [a]) is a

    def test_end_boundary_inclusive(self):
        a = cfg("A", "2025-01-01T00:00:00Z", "2025-01-31T00:00:00Z")
        assert select_active_configuration(at("2025-01-31T00:00:00Z"), DEFAULT, [a]) is a

    def test_one_second_past_end_is_default(self):
        a = cfg("A", "2025-01-01T00:00:00Z", "2025-01-31T00:00:00Z")
        now = at("2025-01-31T00:00:00Z") + timedelta(seconds=1)
        assert select_active_configuration(now, DEFAULT, [a]) is DEFAULT

    def test_idempotent_and_stable(self):
        configs = [cfg("A", "2025-01-01", "2025-01-31"), cfg("B", "2025-01-10", "2025-01-20")]
        now = at("2025-01-15")
        results = {select_active_configuration(now, DEFAULT, configs).id for _ in range(5)}
        assert results == {"A"}

    def test_does_not_mutate_input(self):
        configs = [cfg("B", "2025-01-10", "2025-01-20"), cfg("A", "2025-01-01", "2025-01-31")]
        before = copy.deepcopy(configs)
        select_active_configuration(at("2025-01-15"), DEFAULT, configs)
        assert configs == before

    def test_malformed_window_is_skipped_not_raised(self):
        broken = cfg("X", "garbage", "2025-01-31")
        missing = cfg("Y", None, None)
        good = cfg("A", "2025-01-01", "2025-01-31")
        result = select_active_configuration(at("2025-01-15"), DEFAULT, [broken, missing, good])
        assert result is good

    def test_all_malformed_returns_default(self):
        configs = [cfg("X", "garbage", "junk"), cfg("Y", 42, None)]
        assert select_active_configuration(at("2025-01-15"), DEFAULT, configs) is DEFAULT

    def test_accepts_dicts_without_attributes_as_non_matching(self):
        assert select_active_configuration(at("2025-01-15"), DEFAULT, [{"id": "A"}]) is DEFAULT

    def test_timezone_aware_comparison(self):
        # 23:30 on the 31st in UTC-05:00 is already Feb 1st in UTC
        a = cfg("A", "2025-01-01T00:00:00Z", "2025-01-31T23:59:59Z")
        now = datetime(2025, 1, 31, 23, 30, tzinfo=timezone(timedelta(hours=-5)))
        assert select_active_configuration(now, DEFAULT, [a]) is DEFAULT


class TestIsActive:
    def test_inside(self):
        assert is_active(cfg("A", "2025-01-01", "2025-01-31"), at("2025-01-02"))

    def test_unparseable_now(self):
        assert not is_active(cfg("A", "2025-01-01", "2025-01-31"), "later")


class TestConfigurationStatus:
    def test_default(self):
        assert configuration_status(DEFAULT, at("2025-01-15")) == STATUS_DEFAULT

    def test_scheduled(self):
        assert configuration_status(cfg("A", "2025-02-01", "2025-02-10"), at("2025-01-15")) == STATUS_SCHEDULED

    def test_active(self):
        assert configuration_status(cfg("A", "2025-01-01", "2025-01-31"), at("2025-01-15")) == STATUS_ACTIVE

    def test_expired(self):
        assert configuration_status(cfg("A", "2024-12-01", "2024-12-31"), at("2025-01-15")) == STATUS_EXPIRED

    def test_invalid(self):
        assert configuration_status(cfg("A", "soon", None), at("2025-01-15")) == STATUS_INVALID

    def test_transitions_follow_the_clock(self):
        a = cfg("A", "2025-01-10", "2025-01-20")
        labels = [configuration_status(a, at(d)) for d in ("2025-01-09", "2025-01-10", "2025-01-20", "2025-01-21")]
        assert labels == [STATUS_SCHEDULED, STATUS_ACTIVE, STATUS_ACTIVE, STATUS_EXPIRED]


class TestValidateWindow:
    NOW = datetime(2025, 1, 15, 12, tzinfo=UTC)

    def test_valid_window_returns_parsed_bounds(self):
        start, end = validate_window("2025-01-20", "2025-01-25", self.NOW)
        assert start < end

    def test_end_before_start(self):
        with pytest.raises(ValueError, match="after start"):
            validate_window("2025-01-25", "2025-01-20", self.NOW)

    def test_equal_bounds_rejected(self):
        with pytest.raises(ValueError, match="after start"):
            validate_window("2025-01-25T10:00", "2025-01-25T10:00", self.NOW)

    def test_end_in_past_rejected(self):
        with pytest.raises(ValueError, match="future"):
            validate_window("2025-01-01", "2025-01-10", self.NOW)

    def test_end_in_past_allowed_when_not_required(self):
        validate_window("2025-01-01", "2025-01-10", self.NOW, require_future_end=False)

    def test_start_may_be_in_past(self):
        validate_window("2025-01-01", "2025-01-31", self.NOW)

    def test_unparseable(self):
        with pytest.raises(ValueError, match="required"):
            validate_window("tomorrow", "2025-01-31", self.NOW)


class TestFindOverlaps:
    def test_reports_intersecting_windows(self):
        scheduled = [cfg("A", "2025-01-01", "2025-01-31"),
                     cfg("B", "2025-03-01", "2025-03-31")]
        assert find_overlaps(None, "2025-01-20", "2025-02-10", scheduled) == ["A"]

    def test_touching_boundaries_overlap(self):
        scheduled = [cfg("A", "2025-01-01", "2025-01-31")]
        assert find_overlaps(None, "2025-01-31", "2025-02-10", scheduled) == ["A"]

    def test_excludes_self(self):
        scheduled = [cfg("A", "2025-01-01", "2025-01-31")]
        assert find_overlaps("A", "2025-01-05", "2025-01-10", scheduled) == []

    def test_skips_malformed(self):
        scheduled = [cfg("A", "bad", "2025-01-31")]
        assert find_overlaps(None, "2025-01-05", "2025-01-10", scheduled) == []
