"""Unit tests for SWPC payload parsing.

Pure function tests - fast, no mocks needed.
"""

import pytest
from datetime import datetime, timedelta, timezone

from spaceweather.core.parsing import (
    PayloadError,
    classify_severity,
    extract_scales,
    parse_alert_feed,
    parse_alert_notice,
    parse_kp_forecast,
    parse_solar_wind,
    parse_time_tag,
    parse_validity,
)
from spaceweather.core.sample import AlertSeverity, SourceKind


FETCHED_AT = datetime(2024, 5, 10, 17, 5, 0, tzinfo=timezone.utc)

K05_WARNING = """Space Weather Message Code: WARK05
Serial Number: 2001
Issue Time: 2024 May 10 1700 UTC

WARNING: Geomagnetic K-index of 5 expected
Valid From: 2024 May 10 1700 UTC
Valid To: 2024 May 10 2359 UTC
Warning Condition: Onset
NOAA Scale: G1 - Minor
"""

K08_ALERT = """Space Weather Message Code: ALTK08
Serial Number: 100
Issue Time: 2024 May 10 2004 UTC

ALERT: Geomagnetic K-index of 8, Threshold Reached: 2024 May 10 2001 UTC
Synoptic Period: 1800-2100 UTC
NOAA Scale: G4 - Severe
"""

G4_WATCH = """Space Weather Message Code: WATA50
Serial Number: 200
Issue Time: 2024 May 10 1200 UTC

WATCH: Geomagnetic Storm Category G4 Predicted
Highest Storm Level Predicted by Day:
May 10:  G4 (Severe)   May 11:  G4 (Severe)   May 12:  G3 (Strong)
"""

SUMMARY = """Space Weather Message Code: SUMX01
Serial Number: 300
Issue Time: 2024 May 10 0300 UTC

SUMMARY: X-ray Event exceeded X1
NOAA Scale: R3 - Strong
"""


class TestParseTimeTag:
    """Tests for parse_time_tag()."""

    def test_parses_space_separated_with_millis(self):
        """Parses the rtsw time tag format."""
        result = parse_time_tag("2024-05-10 17:00:00.000")
        assert result == datetime(2024, 5, 10, 17, 0, 0, tzinfo=timezone.utc)

    def test_parses_iso_with_z(self):
        """Parses 'T' separator with trailing Z."""
        result = parse_time_tag("2024-05-10T17:00:00Z")
        assert result == datetime(2024, 5, 10, 17, 0, 0, tzinfo=timezone.utc)

    def test_result_is_utc_aware(self):
        """Result carries UTC tzinfo."""
        assert parse_time_tag("2024-05-10 17:00").tzinfo == timezone.utc

    def test_rejects_garbage(self):
        """Unrecognized strings raise PayloadError."""
        with pytest.raises(PayloadError):
            parse_time_tag("yesterday")

    def test_rejects_non_string(self):
        """Non-string values raise PayloadError."""
        with pytest.raises(PayloadError):
            parse_time_tag(1715360400)


class TestParseSolarWind:
    """Tests for parse_solar_wind()."""

    def test_object_arrays_use_newest_active_row(self):
        """Picks the newest active magnetometer reading."""
        mag = [
            {"time_tag": "2024-05-10 17:00:00", "bz_gsm": -5.0, "active": True},
            {"time_tag": "2024-05-10 17:01:00", "bz_gsm": -12.3, "active": True},
            {"time_tag": "2024-05-10 17:02:00", "bz_gsm": 3.0, "active": False},
        ]
        plasma = [{"time_tag": "2024-05-10 17:01:00", "proton_speed": 650.0}]

        sample = parse_solar_wind(mag, plasma, FETCHED_AT)

        assert sample.source_kind == SourceKind.REALTIME_SOLAR_WIND
        assert sample.bz_nt == -12.3
        assert sample.speed_kms == 650.0
        assert sample.observed_at == datetime(2024, 5, 10, 17, 1, 0, tzinfo=timezone.utc)
        assert sample.fetched_at == FETCHED_AT

    def test_header_row_arrays_with_string_numbers(self):
        """Arrays of arrays use the first row as header."""
        mag = [["time_tag", "bz_gsm"], ["2024-05-10 17:00:00.000", "-7.5"]]
        plasma = [["time_tag", "speed"], ["2024-05-10 17:00:00.000", "480"]]

        sample = parse_solar_wind(mag, plasma, FETCHED_AT)

        assert sample.bz_nt == -7.5
        assert sample.speed_kms == 480.0

    def test_missing_speed_leaves_none(self):
        """A usable Bz alone still yields a sample."""
        mag = [{"time_tag": "2024-05-10 17:00:00", "bz_gsm": -2.0}]

        sample = parse_solar_wind(mag, [], FETCHED_AT)

        assert sample.bz_nt == -2.0
        assert sample.speed_kms is None

    def test_skips_null_values(self):
        """Rows with null readings are ignored."""
        mag = [
            {"time_tag": "2024-05-10 17:00:00", "bz_gsm": -4.0},
            {"time_tag": "2024-05-10 17:01:00", "bz_gsm": None},
        ]

        sample = parse_solar_wind(mag, [], FETCHED_AT)

        assert sample.bz_nt == -4.0

    def test_no_usable_values_raises(self):
        """Empty payloads raise PayloadError."""
        with pytest.raises(PayloadError):
            parse_solar_wind([], [], FETCHED_AT)

    def test_non_array_raises(self):
        """An object where an array is expected raises PayloadError."""
        with pytest.raises(PayloadError):
            parse_solar_wind({"error": "maintenance"}, [], FETCHED_AT)


class TestParseKpForecast:
    """Tests for parse_kp_forecast()."""

    @pytest.fixture
    def forecast_payload(self):
        return [
            ["time_tag", "kp", "observed", "noaa_scale"],
            ["2024-05-10 00:00:00", "3.33", "observed", None],
            ["2024-05-10 12:00:00", "5.67", "estimated", "G1"],
            ["2024-05-10 15:00:00", "8.00", "predicted", "G4"],
            ["2024-05-11 21:00:00", "4.00", "predicted", None],
        ]

    def test_max_over_next_24_hours(self, forecast_payload):
        """Uses the largest Kp among blocks overlapping the next 24h."""
        fetched_at = datetime(2024, 5, 10, 13, 0, tzinfo=timezone.utc)

        sample = parse_kp_forecast(forecast_payload, fetched_at)

        assert sample.source_kind == SourceKind.KP_FORECAST
        assert sample.kp_max == 8.0

    def test_observed_at_is_latest_past_block(self, forecast_payload):
        """observed_at is the newest block that has started."""
        fetched_at = datetime(2024, 5, 10, 13, 0, tzinfo=timezone.utc)

        sample = parse_kp_forecast(forecast_payload, fetched_at)

        assert sample.observed_at == datetime(2024, 5, 10, 12, 0, tzinfo=timezone.utc)

    def test_excludes_blocks_beyond_horizon(self, forecast_payload):
        """Blocks past the horizon do not count."""
        fetched_at = datetime(2024, 5, 10, 13, 0, tzinfo=timezone.utc)

        sample = parse_kp_forecast(forecast_payload, fetched_at, horizon=timedelta(hours=1))

        # The 15:00 block (Kp 8) starts after 14:00
        assert sample.kp_max == pytest.approx(5.67)

    def test_stale_table_falls_back_to_newest_row(self, forecast_payload):
        """If nothing overlaps the window, the newest row is used."""
        fetched_at = datetime(2024, 5, 20, 0, 0, tzinfo=timezone.utc)

        sample = parse_kp_forecast(forecast_payload, fetched_at)

        assert sample.kp_max == 4.0

    def test_clamps_to_scale(self):
        """Kp is clamped to 0-9."""
        payload = [
            ["time_tag", "kp"],
            ["2024-05-10 12:00:00", "12"],
        ]
        fetched_at = datetime(2024, 5, 10, 13, 0, tzinfo=timezone.utc)

        assert parse_kp_forecast(payload, fetched_at).kp_max == 9.0

    def test_object_rows_supported(self):
        """Arrays of objects work like header-row arrays."""
        payload = [{"time_tag": "2024-05-10T12:00:00", "kp": 2.33}]
        fetched_at = datetime(2024, 5, 10, 13, 0, tzinfo=timezone.utc)

        assert parse_kp_forecast(payload, fetched_at).kp_max == pytest.approx(2.33)

    def test_no_rows_raises(self):
        """A header with no data rows raises PayloadError."""
        with pytest.raises(PayloadError):
            parse_kp_forecast([["time_tag", "kp"]], FETCHED_AT)

    def test_missing_kp_column_raises(self):
        """A renamed column leaves no parseable rows."""
        payload = [["time_tag", "kp_index"], ["2024-05-10 12:00:00", "3"]]
        with pytest.raises(PayloadError):
            parse_kp_forecast(payload, FETCHED_AT)


class TestExtractScales:
    """Tests for extract_scales()."""

    def test_extracts_highest_of_each_scale(self):
        assert extract_scales("NOAA Scale: G2 - Moderate, R3 and S1; G3 possible") == (3, 3, 1)

    def test_no_scales(self):
        assert extract_scales("Geomagnetic K-index of 4 expected") == (0, 0, 0)

    def test_ignores_message_codes(self):
        """Codes like WARK05 are not scale levels."""
        assert extract_scales("Space Weather Message Code: WARK05") == (0, 0, 0)


class TestClassifySeverity:
    """Tests for classify_severity()."""

    def test_warning(self):
        assert classify_severity(K05_WARNING) == AlertSeverity.WARNING

    def test_alert_with_g4_is_extreme(self):
        assert classify_severity(K08_ALERT) == AlertSeverity.EXTREME

    def test_watch_stays_watch_even_for_g4(self):
        """Watches are predictions, not extreme conditions."""
        assert classify_severity(G4_WATCH) == AlertSeverity.WATCH

    def test_summary_is_none(self):
        assert classify_severity(SUMMARY) == AlertSeverity.NONE

    def test_cancellation_is_none(self):
        message = "Space Weather Message Code: WARK05\n\nCANCEL WARNING: Geomagnetic K-index of 5 expected\n"
        assert classify_severity(message) == AlertSeverity.NONE

    def test_extended_warning(self):
        message = "EXTENDED WARNING: Geomagnetic K-index of 4 expected\nExtended to: 2024 May 11 0600 UTC\n"
        assert classify_severity(message) == AlertSeverity.WARNING

    def test_unrecognized_is_none(self):
        assert classify_severity("Nothing to see here") == AlertSeverity.NONE


class TestParseValidity:
    """Tests for parse_validity()."""

    def test_valid_to(self):
        assert parse_validity(K05_WARNING) == datetime(2024, 5, 10, 23, 59, tzinfo=timezone.utc)

    def test_now_valid_until(self):
        message = "EXTENDED WARNING: ...\nNow Valid Until: 2024 May 11 0600 UTC\n"
        assert parse_validity(message) == datetime(2024, 5, 11, 6, 0, tzinfo=timezone.utc)

    def test_missing(self):
        assert parse_validity(K08_ALERT) is None


class TestParseAlertFeed:
    """Tests for parse_alert_feed() and parse_alert_notice()."""

    def test_parses_notices_newest_first(self):
        payload = [
            {"product_id": "A50F", "issue_datetime": "2024-05-10 12:00:00.000", "message": G4_WATCH},
            {"product_id": "K05W", "issue_datetime": "2024-05-10 17:00:00.000", "message": K05_WARNING},
        ]

        sample = parse_alert_feed(payload, FETCHED_AT)

        assert sample.source_kind == SourceKind.ALERT_FEED
        assert [n.product_id for n in sample.notices] == ["K05W", "A50F"]
        assert sample.observed_at == datetime(2024, 5, 10, 17, 0, tzinfo=timezone.utc)

    def test_notice_fields(self):
        notice = parse_alert_notice({
            "product_id": "K05W",
            "issue_datetime": "2024-05-10 17:00:00.000",
            "message": K05_WARNING,
        })

        assert notice.severity == AlertSeverity.WARNING
        assert notice.valid_until == datetime(2024, 5, 10, 23, 59, tzinfo=timezone.utc)
        assert notice.g_scale == 1

    def test_skips_entries_without_message(self):
        payload = [
            {"product_id": "X", "issue_datetime": "2024-05-10 17:00:00.000"},
            {"product_id": "K05W", "issue_datetime": "2024-05-10 17:00:00.000", "message": K05_WARNING},
        ]

        assert len(parse_alert_feed(payload, FETCHED_AT).notices) == 1

    def test_empty_feed_is_valid(self):
        """An empty array means no active notices."""
        sample = parse_alert_feed([], FETCHED_AT)

        assert sample.notices == ()
        assert sample.observed_at == FETCHED_AT

    def test_object_payload_raises(self):
        with pytest.raises(PayloadError):
            parse_alert_feed({"alerts": []}, FETCHED_AT)

    def test_array_of_non_objects_raises(self):
        with pytest.raises(PayloadError):
            parse_alert_feed([1, 2, 3], FETCHED_AT)
