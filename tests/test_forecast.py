import sys
import unittest
from datetime import date, datetime, timedelta, timezone
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from backlog_forecast.domain.models import (
    BacklogItem,
    RiskDrivers,
    RiskLevel,
    ShockAction,
    ShockDirective,
    ValidationError,
)
from backlog_forecast.services import forecast as fc
from backlog_forecast.services.business_days import is_business_day

TODAY = date(2025, 12, 30)  # Tuesday
NO_DRIVERS = RiskDrivers()


class ForecastScenarioTests(unittest.TestCase):
    def setUp(self) -> None:
        self.item = BacklogItem(key="KAN-1", due_date="2025-12-31")

    def test_base_simulation_with_zero_drivers(self) -> None:
        result = fc.simulate_forecast(self.item, NO_DRIVERS, TODAY, 0.5)
        self.assertEqual(result.simulated_date, date(2025, 12, 31))
        self.assertEqual(result.risk_days, 0)
        self.assertEqual(result.delay_days, 0)
        self.assertFalse(result.is_sick)
        self.assertFalse(result.is_overdue)
        self.assertEqual(result.risk_level, RiskLevel.LOW)
        self.assertEqual(result.original_date, date(2025, 12, 31))

    def test_complexity_days_skip_weekend(self) -> None:
        result = fc.simulate_forecast(self.item, RiskDrivers(system_complexity=50), TODAY, 0.5)
        self.assertEqual(result.simulated_date, date(2026, 1, 5))
        self.assertEqual(result.risk_days, 3)
        self.assertEqual(result.delay_days, 5)

    def test_certain_absence_adds_three_days(self) -> None:
        result = fc.simulate_forecast(self.item, RiskDrivers(absence_risk=100), TODAY, 0.5)
        self.assertTrue(result.is_sick)
        self.assertEqual(result.risk_days, 3)
        self.assertEqual(result.simulated_date, date(2026, 1, 5))

    def test_shock_hits_affected_assignee(self) -> None:
        item = BacklogItem(key="KAN-1", due_date="2025-12-31", assignee_id="u1")
        shock = ShockDirective(frozenset({"u1"}), ShockAction.SICK_3)
        result = fc.simulate_forecast(item, NO_DRIVERS, TODAY, 0.5, shock=shock)
        self.assertTrue(result.is_shocked)
        self.assertFalse(result.is_sick)
        self.assertEqual(result.risk_days, 3)
        self.assertEqual(result.simulated_date, date(2026, 1, 5))

    def test_shock_ignores_other_and_unassigned_items(self) -> None:
        shock = ShockDirective(frozenset({"u1"}), "sick3")
        other = BacklogItem(key="KAN-2", due_date="2025-12-31", assignee_id="u2")
        unassigned = BacklogItem(key="KAN-3", due_date="2025-12-31")
        for item in (other, unassigned):
            result = fc.simulate_forecast(item, NO_DRIVERS, TODAY, 0.5, shock=shock)
            self.assertFalse(result.is_shocked)
            self.assertEqual(result.risk_days, 0)

    def test_shock_and_absence_are_additive(self) -> None:
        item = BacklogItem(key="KAN-1", due_date="2025-12-31", assignee_id="u1")
        shock = ShockDirective(frozenset({"u1"}))
        result = fc.simulate_forecast(item, RiskDrivers(absence_risk=100), TODAY, 0.5, shock=shock)
        self.assertTrue(result.is_sick)
        self.assertTrue(result.is_shocked)
        self.assertEqual(result.risk_days, 6)
        self.assertEqual(result.risk_level, RiskLevel.MEDIUM)

    def test_item_without_due_date(self) -> None:
        result = fc.simulate_forecast(BacklogItem(key="KAN-9"), NO_DRIVERS, TODAY, 0.5)
        self.assertEqual(result.remaining_days, 0)
        self.assertEqual(result.risk_days, 0)
        self.assertEqual(result.delay_days, 0)
        self.assertIsNone(result.original_date)
        self.assertFalse(result.is_overdue)
        self.assertEqual(result.simulated_date, TODAY)

    def test_item_without_due_date_reports_risk_as_delay(self) -> None:
        result = fc.simulate_forecast(BacklogItem(key="KAN-9"), RiskDrivers(system_complexity=100), TODAY, 0.5)
        self.assertEqual(result.risk_days, 5)
        self.assertEqual(result.delay_days, result.risk_days)
        self.assertEqual(result.simulated_date, date(2026, 1, 6))

    def test_overdue_item_is_anchored_on_today(self) -> None:
        result = fc.simulate_forecast(BacklogItem(key="KAN-5", due_date="2025-12-20"), NO_DRIVERS, TODAY, 0.5)
        self.assertTrue(result.is_overdue)
        self.assertEqual(result.remaining_days, 0)
        self.assertEqual(result.simulated_date, TODAY)
        self.assertEqual(result.delay_days, 10)

    def test_overdue_item_with_friction_walks_from_today(self) -> None:
        item = BacklogItem(key="KAN-5", due_date="2025-12-20")
        result = fc.simulate_forecast(item, RiskDrivers(system_complexity=20), TODAY, 0.5)
        self.assertEqual(result.simulated_date, date(2025, 12, 31))
        self.assertEqual(result.risk_days, 1)

    def test_due_today_has_no_remaining_days(self) -> None:
        baseline = fc.resolve_baseline("2025-12-30", TODAY)
        self.assertEqual(baseline.remaining_days, 0)
        self.assertFalse(baseline.is_overdue)

    def test_risk_levels_from_cognitive_load(self) -> None:
        medium_item = BacklogItem(key="KAN-M", due_date=TODAY + timedelta(days=10))
        high_item = BacklogItem(key="KAN-H", due_date=TODAY + timedelta(days=20))
        drivers = RiskDrivers(cognitive_load=100)
        self.assertEqual(fc.simulate_forecast(medium_item, drivers, TODAY, 0.5).risk_level, RiskLevel.MEDIUM)
        self.assertEqual(fc.simulate_forecast(high_item, drivers, TODAY, 0.5).risk_level, RiskLevel.HIGH)

    def test_classify_risk_boundaries(self) -> None:
        self.assertEqual(fc.classify_risk(0), RiskLevel.LOW)
        self.assertEqual(fc.classify_risk(4), RiskLevel.LOW)
        self.assertEqual(fc.classify_risk(5), RiskLevel.MEDIUM)
        self.assertEqual(fc.classify_risk(14), RiskLevel.MEDIUM)
        self.assertEqual(fc.classify_risk(15), RiskLevel.HIGH)

    def test_fractional_velocity_rounds_up(self) -> None:
        item = BacklogItem(key="KAN-7", due_date=date(2026, 1, 9))  # 10 days away
        result = fc.simulate_forecast(item, RiskDrivers(cognitive_load=7), TODAY, 0.5)
        self.assertAlmostEqual(result.simulated_duration_days, 10.7)
        self.assertEqual(result.risk_days, 1)

    def test_float_noise_does_not_add_a_day(self) -> None:
        item = BacklogItem(key="KAN-8", due_date=TODAY + timedelta(days=100))
        result = fc.simulate_forecast(item, RiskDrivers(cognitive_load=29), TODAY, 0.5)
        self.assertEqual(result.risk_days, 29)

    def test_to_dict_renders_iso_dates(self) -> None:
        payload = fc.simulate_forecast(self.item, NO_DRIVERS, TODAY, 0.5).to_dict()
        self.assertEqual(payload["simulated_date"], "2025-12-31")
        self.assertEqual(payload["original_date"], "2025-12-31")
        self.assertEqual(payload["risk_level"], "Low")


class ForecastPropertyTests(unittest.TestCase):
    def test_deterministic_for_identical_inputs(self) -> None:
        item = BacklogItem(key="KAN-1", due_date="2026-02-10", assignee_id="u1")
        drivers = RiskDrivers(cognitive_load=35, system_complexity=60, absence_risk=40)
        shock = ShockDirective(frozenset({"u1"}))
        first = fc.simulate_forecast(item, drivers, TODAY, 0.37, shock=shock)
        second = fc.simulate_forecast(item, drivers, TODAY, 0.37, shock=shock)
        self.assertEqual(first, second)

    def test_duration_never_decreases_with_cognitive_load(self) -> None:
        previous = None
        for load in range(0, 101, 5):
            breakdown = fc.aggregate_duration(12, RiskDrivers(cognitive_load=load), 0.5)
            if previous is not None:
                self.assertGreaterEqual(breakdown.total_days, previous)
            previous = breakdown.total_days

    def test_risk_days_non_negative_and_business_day_result(self) -> None:
        monday = date(2026, 3, 2)
        for weekday_offset in range(5):
            today = monday + timedelta(days=weekday_offset)
            for due_offset in (-7, -1, 0, 1, 3, 6, 20):
                item = BacklogItem(key="KAN-P", due_date=today + timedelta(days=due_offset))
                for value in (0, 33, 66, 100):
                    drivers = RiskDrivers(cognitive_load=value, system_complexity=value, absence_risk=value)
                    for sample in (0.0, 0.5, 0.99):
                        result = fc.simulate_forecast(item, drivers, today, sample)
                        self.assertGreaterEqual(result.risk_days, 0)
                        self.assertGreaterEqual(result.delay_days, 0)
                        self.assertGreaterEqual(result.simulated_date, today)
                        self.assertTrue(is_business_day(result.simulated_date))

    def test_zero_duration_keeps_today_even_on_weekend(self) -> None:
        saturday = date(2026, 1, 3)
        result = fc.simulate_forecast(BacklogItem(key="KAN-1"), NO_DRIVERS, saturday, 0.5)
        self.assertEqual(result.simulated_date, saturday)

    def test_absence_threshold_is_strict(self) -> None:
        self.assertFalse(fc.aggregate_duration(0, RiskDrivers(absence_risk=50), 0.5).is_sick)
        self.assertTrue(fc.aggregate_duration(0, RiskDrivers(absence_risk=50), 0.49).is_sick)
        self.assertFalse(fc.aggregate_duration(0, RiskDrivers(absence_risk=0), 0.0).is_sick)
        self.assertTrue(fc.aggregate_duration(0, RiskDrivers(absence_risk=1), 0.0).is_sick)


class BaselineTests(unittest.TestCase):
    def test_datetime_due_date_is_normalized_to_utc(self) -> None:
        baseline = fc.resolve_baseline("2025-12-31T23:30:00-05:00", TODAY)
        self.assertEqual(baseline.due_date, date(2026, 1, 1))
        self.assertEqual(baseline.remaining_days, 2)

    def test_zulu_suffix_and_datetime_objects(self) -> None:
        self.assertEqual(fc.parse_due_date("2025-12-31T10:00:00Z"), date(2025, 12, 31))
        aware = datetime(2025, 12, 31, 1, 0, tzinfo=timezone(timedelta(hours=3)))
        self.assertEqual(fc.parse_due_date(aware), date(2025, 12, 30))
        self.assertEqual(fc.parse_due_date(datetime(2025, 12, 31, 18, 0)), date(2025, 12, 31))

    def test_today_datetime_is_normalized_to_utc(self) -> None:
        late_evening = datetime(2025, 12, 30, 23, 0, tzinfo=timezone(timedelta(hours=-5)))
        self.assertEqual(fc.normalize_today(late_evening), date(2025, 12, 31))

    def test_utc_today_ignores_host_offset(self) -> None:
        east_evening = datetime(2026, 10, 20, 9, 30, tzinfo=timezone(timedelta(hours=14)))
        self.assertEqual(fc.utc_today(east_evening), date(2026, 10, 19))
        self.assertEqual(fc.utc_today(), datetime.now(timezone.utc).date())

    def test_empty_due_date_means_unconstrained(self) -> None:
        self.assertIsNone(fc.parse_due_date(None))
        self.assertIsNone(fc.parse_due_date("  "))


class ValidationTests(unittest.TestCase):
    def test_malformed_due_dates_raise(self) -> None:
        for value in ("2025-13-45", "not a date", "31/12/2025", 20251231):
            with self.subTest(value=value):
                with self.assertRaises(ValidationError):
                    fc.resolve_baseline(value, TODAY)

    def test_malformed_due_date_raises_from_engine(self) -> None:
        with self.assertRaises(ValidationError):
            fc.simulate_forecast(BacklogItem(key="KAN-1", due_date="soon"), NO_DRIVERS, TODAY, 0.5)

    def test_drivers_out_of_range_raise(self) -> None:
        for kwargs in (
            {"cognitive_load": 101},
            {"system_complexity": -1},
            {"absence_risk": float("nan")},
            {"cognitive_load": "50"},
            {"absence_risk": True},
        ):
            with self.subTest(kwargs=kwargs):
                with self.assertRaises(ValidationError):
                    RiskDrivers(**kwargs)

    def test_driver_bounds_are_inclusive(self) -> None:
        drivers = RiskDrivers(cognitive_load=0, system_complexity=100, absence_risk=100)
        self.assertEqual(drivers.system_complexity, 100.0)

    def test_sample_out_of_range_raises(self) -> None:
        for sample in (-0.1, 1.0, 1.5, float("nan"), "0.5", None):
            with self.subTest(sample=sample):
                with self.assertRaises(ValidationError):
                    fc.aggregate_duration(1, NO_DRIVERS, sample)

    def test_invalid_today_raises(self) -> None:
        with self.assertRaises(ValidationError):
            fc.resolve_baseline(None, "2025-12-30")

    def test_item_and_shock_validation(self) -> None:
        with self.assertRaises(ValidationError):
            BacklogItem(key="  ")
        with self.assertRaises(ValidationError):
            ShockDirective(frozenset({"u1"}), "vacation")

    def test_shock_rejects_bare_string_ids(self) -> None:
        with self.assertRaises(ValidationError):
            ShockDirective("u1")

    def test_validation_error_is_a_value_error(self) -> None:
        self.assertTrue(issubclass(ValidationError, ValueError))


if __name__ == "__main__":
    unittest.main()
