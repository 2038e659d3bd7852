"""
Unit tests for the Tide Service
"""
import json
import re
import threading
from datetime import date, datetime

import pytest

from tests.config import GOLDEN_FIXTURE
from tidechart.constituents import REFERENCE_CALIBRATION, CalibrationTable
from tidechart.tide_service import TideService


@pytest.fixture
def service():
    """Create a tide service instance for testing."""
    return TideService()


class TestTideServiceInitialization:
    """Tests for service initialization."""

    def test_service_initializes(self, service):
        """Service should default to the reference station."""
        assert service.calibration is REFERENCE_CALIBRATION
        assert service.station == "Koper"

    def test_custom_calibration(self):
        table = CalibrationTable(station="Elsewhere", constituents=REFERENCE_CALIBRATION.constituents)
        assert TideService(calibration=table).station == "Elsewhere"


class TestModelCache:
    """Tests for the per-year model cache."""

    def test_model_is_reused_within_year(self, service):
        assert service.get_model(2024) is service.get_model(2024)

    def test_days_in_same_year_share_model(self, service):
        a = service.predict_day(datetime(2024, 1, 5))
        b = service.predict_day(datetime(2024, 11, 30))
        assert a.model is b.model

    def test_years_get_separate_models(self, service):
        assert service.get_model(2024) is not service.get_model(2025)
        assert service.get_model(2025).year == 2025

    def test_concurrent_requests_build_one_model(self, service):
        """Threads asking for the same year should all get the same instance."""
        results = []

        def worker():
            results.append(service.get_model(2031))

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(results) == 8
        assert all(m is results[0] for m in results)

    def test_out_of_range_year(self, service):
        with pytest.raises(ValueError, match="outside the supported range"):
            service.get_model(1500)


class TestPredictDay:
    """Tests for daily predictions."""

    def test_accepts_date(self, service):
        tide = service.predict_day(date(2024, 6, 21))
        assert len(tide.samples) == 1441

    def test_rejects_strings(self, service):
        with pytest.raises(TypeError):
            service.predict_day("2024-06-21")

    def test_dst_offset_passed_through(self, service):
        tide = service.predict_day(datetime(2024, 6, 21), dst_offset=1.0)
        assert tide.dst_offset == 1.0


class TestDayChart:
    """Tests for the chart dictionary."""

    def test_chart_structure(self, service):
        chart = service.get_day_chart(datetime(2024, 6, 21, 10, 30))
        assert chart['date'] == '2024-06-21'
        assert chart['station'] == 'Koper'
        assert chart['dst_offset'] == 0.0
        assert set(chart['current']) == {'hour', 'time', 'height_cm'}
        for event in chart['extrema']:
            assert set(event) == {'type', 'hour', 'time', 'height_cm', 'label'}
            assert event['type'] in ('high', 'low')

    def test_full_resolution_by_default(self, service):
        chart = service.get_day_chart(datetime(2024, 6, 21))
        assert len(chart['samples']) == 1441

    @pytest.mark.parametrize("interval,count", [(15, 97), (30, 49), (60, 25)])
    def test_interval_count(self, service, interval, count):
        """Thinned curves include both midnights."""
        chart = service.get_day_chart(datetime(2024, 6, 21), interval_minutes=interval)
        assert len(chart['samples']) == count
        assert chart['samples'][0]['hour'] == 0.0
        assert chart['samples'][-1]['hour'] == 24.0

    def test_invalid_interval_raises_error(self, service):
        with pytest.raises(ValueError, match="interval_minutes must be 1, 15, 30, or 60"):
            service.get_day_chart(datetime(2024, 6, 21), interval_minutes=45)

    def test_extrema_independent_of_interval(self, service):
        """Extrema always come from the minute-resolution curve."""
        fine = service.get_day_chart(datetime(2024, 6, 21), interval_minutes=1)
        coarse = service.get_day_chart(datetime(2024, 6, 21), interval_minutes=60)
        assert fine['extrema'] == coarse['extrema']

    def test_times_are_hhmm(self, service):
        chart = service.get_day_chart(datetime(2024, 6, 21, 10, 30))
        pattern = re.compile(r'^\d{2}:\d{2}$')
        assert chart['current']['time'] == '10:30'
        assert all(pattern.match(e['time']) for e in chart['extrema'])

    @pytest.mark.parametrize("moment,expected", [
        (datetime(2024, 6, 21, 23, 59, 45), '23:59'),
        (datetime(2024, 6, 21, 10, 30, 59), '10:30'),
        (datetime(2024, 6, 21, 0, 0, 0), '00:00'),
    ])
    def test_current_time_stays_on_requested_minute(self, service, moment, expected):
        """Seconds are dropped, so a late request never reads as the next midnight."""
        chart = service.get_day_chart(moment)
        assert chart['current']['time'] == expected
        assert chart['date'] == '2024-06-21'
        assert chart['current']['hour'] < 24

    def test_matches_golden_extrema(self, service):
        with open(GOLDEN_FIXTURE, encoding='utf-8') as fh:
            golden = json.load(fh)
        chart = service.get_day_chart(datetime(2024, 6, 21, 10, 30))
        assert [e['label'] for e in chart['extrema']] == [e['label'] for e in golden['extrema']]
        assert [e['type'] for e in chart['extrema']] == [e['type'] for e in golden['extrema']]

    def test_heights_rounded(self, service):
        chart = service.get_day_chart(datetime(2024, 6, 21), interval_minutes=60)
        for sample in chart['samples']:
            assert sample['height_cm'] == round(sample['height_cm'], 2)


class TestConstituentTable:
    """Tests for the constituent table."""

    def test_table_rows(self, service):
        table = service.get_constituent_table(2024)
        assert [row['constituent'] for row in table] == ['M2', 'S2', 'N2', 'K2', 'K1', 'O1', 'P1']

    def test_row_values(self, service):
        row = service.get_constituent_table(2024)[0]
        model = service.get_model(2024)
        assert row['amplitude_cm'] == 25.1
        assert row['nodal_factor'] == float(model.nodal_factors[0])
        assert row['comp_amplitude_cm'] == pytest.approx(row['nodal_factor'] * 25.1)
        assert row['comp_phase_rad'] == pytest.approx(row['equilibrium_argument_rad'] - 4.842)

    def test_solar_rows_unity(self, service):
        rows = {row['constituent']: row for row in service.get_constituent_table(2024)}
        assert rows['S2']['nodal_factor'] == 1.0
        assert rows['P1']['nodal_factor'] == 1.0
        assert rows['S2']['equilibrium_argument_rad'] == 0.0
