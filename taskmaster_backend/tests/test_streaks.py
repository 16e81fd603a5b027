from datetime import date, datetime, timedelta, timezone

from taskmaster.streaks import Streaks, calculate_streaks


def at(day, hour=12):
    return datetime(day.year, day.month, day.day, hour, 0, 0)


TODAY = date(2024, 1, 10)


class TestStreakScenarios:
    def test_empty_history(self):
        assert calculate_streaks([], today=TODAY) == Streaks(current=0, longest=0)

    def test_single_completion_today(self):
        assert calculate_streaks([at(TODAY)], today=TODAY) == Streaks(current=1, longest=1)

    def test_two_consecutive_days(self):
        stamps = [at(TODAY), at(TODAY - timedelta(days=1))]
        assert calculate_streaks(stamps, today=TODAY) == Streaks(current=2, longest=2)

    def test_gap_right_after_most_recent_day(self):
        # today, then a hole of two days, then a three day run
        stamps = [at(TODAY)] + [at(TODAY - timedelta(days=d)) for d in (3, 4, 5)]
        assert calculate_streaks(stamps, today=TODAY) == Streaks(current=1, longest=3)

    def test_multiple_completions_same_day_count_once(self):
        stamps = [at(TODAY, 9), at(TODAY, 13), at(TODAY, 18)]
        assert calculate_streaks(stamps, today=TODAY) == Streaks(current=1, longest=1)

    def test_gap_of_one_day_breaks_longest(self):
        stamps = [at(date(2024, 1, 3)), at(date(2024, 1, 1))]
        assert calculate_streaks(stamps, today=date(2024, 1, 3)).longest == 1

    def test_worked_example(self):
        stamps = [
            at(date(2024, 1, 4)),
            at(date(2024, 1, 2)),
            at(date(2024, 1, 2), 8),
            at(date(2024, 1, 1)),
        ]
        assert calculate_streaks(stamps, today=date(2024, 1, 4)) == Streaks(current=1, longest=2)
        assert calculate_streaks(stamps, today=date(2024, 1, 5)) == Streaks(current=1, longest=2)
        assert calculate_streaks(stamps, today=date(2024, 1, 6)) == Streaks(current=0, longest=2)


class TestActiveStreakRule:
    def test_run_ending_yesterday_is_still_active(self):
        yesterday = TODAY - timedelta(days=1)
        stamps = [at(yesterday), at(yesterday - timedelta(days=1))]
        assert calculate_streaks(stamps, today=TODAY).current == 2

    def test_run_ending_two_days_ago_is_broken(self):
        old = TODAY - timedelta(days=2)
        result = calculate_streaks([at(old), at(old - timedelta(days=1))], today=TODAY)
        assert result == Streaks(current=0, longest=2)

    def test_input_order_and_none_entries_do_not_matter(self):
        stamps = [None, at(TODAY - timedelta(days=1)), at(TODAY), None]
        assert calculate_streaks(stamps, today=TODAY) == Streaks(current=2, longest=2)

    def test_today_may_be_a_datetime(self):
        assert calculate_streaks([at(TODAY)], today=at(TODAY, 23)).current == 1

    def test_aware_timestamps_are_bucketed_by_local_date(self):
        stamp = at(TODAY).replace(tzinfo=timezone.utc)
        local_day = stamp.astimezone().date()
        assert calculate_streaks([stamp], today=local_day) == Streaks(current=1, longest=1)

    def test_as_dict(self):
        assert Streaks(current=2, longest=5).as_dict() == {"current": 2, "longest": 5}
