"""Unit tests for the seat availability calculator."""

import pytest

from src.domain.enums import BookingStatus
from src.domain.errors import InternalConsistencyError
from src.domain.seats import BookingSeats, held_seats, remaining_seats


def _bookings(*pairs):
    return [
        BookingSeats(seats_booked=seats, status=status, id=f"b{i}")
        for i, (seats, status) in enumerate(pairs)
    ]


class TestRemainingSeats:
    def test_no_bookings_leaves_full_capacity(self):
        assert remaining_seats(4, []) == 4

    def test_only_open_bookings_hold_seats(self):
        bookings = _bookings(
            (1, BookingStatus.PENDING),
            (2, BookingStatus.CONFIRMED),
            (3, BookingStatus.CANCELLED),
            (3, BookingStatus.COMPLETED),
        )
        assert held_seats(bookings) == 3
        assert remaining_seats(4, bookings) == 1

    def test_exclude_ignores_one_booking(self):
        bookings = _bookings((2, BookingStatus.PENDING), (2, BookingStatus.CONFIRMED))
        assert remaining_seats(4, bookings) == 0
        assert remaining_seats(4, bookings, exclude_id="b0") == 2

    def test_exactly_full_is_zero(self):
        assert remaining_seats(2, _bookings((2, BookingStatus.CONFIRMED))) == 0

    def test_negative_result_is_raised_not_clamped(self):
        bookings = _bookings((3, BookingStatus.CONFIRMED))
        with pytest.raises(InternalConsistencyError):
            remaining_seats(2, bookings)

    def test_accepts_plain_string_statuses(self):
        bookings = [BookingSeats(seats_booked=2, status="PENDING")]
        assert remaining_seats(3, bookings) == 1
