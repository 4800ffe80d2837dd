"""Tests for the one-hour free-slot finder."""

from datetime import date, datetime, time, timezone

from app.services.slots import find_free_slots

DAY = date(2030, 6, 3)


def _at(hour: int, minute: int = 0) -> datetime:
    return datetime(2030, 6, 3, hour, minute, tzinfo=timezone.utc)


class TestFindFreeSlots:
    def test_empty_day(self) -> None:
        slots = find_free_slots(DAY, time(9), time(12), [])
        assert slots == [_at(9), _at(10), _at(11)]

    def test_assignment_removes_slot(self) -> None:
        slots = find_free_slots(DAY, time(9), time(12), [(_at(10), _at(11))])
        assert slots == [_at(9), _at(11)]

    def test_partial_overlap_removes_both_slots(self) -> None:
        slots = find_free_slots(DAY, time(9), time(13), [(_at(10, 30), _at(11, 30))])
        assert slots == [_at(9), _at(12)]

    def test_long_assignment_blocks_everything(self) -> None:
        assert find_free_slots(DAY, time(9), time(17), [(_at(8), _at(18))]) == []

    def test_inverted_hours_give_no_slots(self) -> None:
        assert find_free_slots(DAY, time(17), time(9), []) == []
        assert find_free_slots(DAY, time(9), time(9), []) == []

    def test_trailing_partial_hour_still_offered(self) -> None:
        slots = find_free_slots(DAY, time(9), time(10, 30), [])
        assert slots == [_at(9), _at(10)]

    def test_chronological_and_restartable(self) -> None:
        busy = [(_at(12), _at(13)), (_at(9), _at(10))]
        first = find_free_slots(DAY, time(8), time(14), busy)
        second = find_free_slots(DAY, time(8), time(14), busy)
        assert first == second == [_at(8), _at(10), _at(11), _at(13)]
