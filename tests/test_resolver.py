"""Tests for resolver.py module.

Tests query parsing, device and connection classification,
and auto-optimization precedence.
"""

import pytest

from cdn_optimize.models import EffectiveTransform, TransformRequest
from cdn_optimize.resolver import (
    apply_auto_optimization,
    detect_connection,
    detect_device,
    parse_float,
    parse_int,
    parse_request,
    resolve,
)

IPHONE_UA = (
    "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) "
    "AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.0 Mobile/15E148 Safari/604.1"
)
IPAD_UA = (
    "Mozilla/5.0 (iPad; CPU OS 16_6 like Mac OS X) "
    "AppleWebKit/605.1.15 (KHTML, like Gecko) Version/16.6 Mobile/15E148 Safari/604.1"
)
ANDROID_TABLET_UA = (
    "Mozilla/5.0 (Linux; Android 13; SM-X700) "
    "AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0 Safari/537.36"
)
DESKTOP_UA = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0 Safari/537.36"
)
MODERN_ACCEPT = "image/avif,image/webp,image/apng,*/*;q=0.8"


class TestParseNumbers:
    """Tests for parse_int and parse_float."""

    def test_parses_plain_integer(self):
        assert parse_int("80") == 80

    def test_uses_leading_digits(self):
        """Should read the leading integer like a lenient query parser."""
        assert parse_int(" 75px") == 75
        assert parse_int("12.9") == 12

    def test_rejects_non_numeric(self):
        assert parse_int("abc") is None
        assert parse_int("") is None
        assert parse_int(None) is None

    def test_parses_float(self):
        assert parse_float("1.45") == 1.45
        assert parse_float("10") == 10.0
        assert parse_float(".5") == 0.5
        assert parse_float("fast") is None


class TestParseRequest:
    """Tests for parse_request function."""

    def test_defaults(self):
        """Should fill in original format and quality 80."""
        request = parse_request({}, "u1/img1")

        assert request == TransformRequest(storage_key="u1/img1")
        assert request.format == "original"
        assert request.quality == 80
        assert request.width is None
        assert request.height is None
        assert not request.return_original
        assert not request.auto_optimize

    def test_keeps_out_of_range_quality(self):
        """Should not clamp quality at parse time."""
        assert parse_request({"quality": "150"}).quality == 150
        assert parse_request({"quality": "0"}).quality == 0

    def test_malformed_quality_uses_default(self):
        assert parse_request({"quality": "high"}).quality == 80

    def test_normalizes_jpg_alias(self):
        assert parse_request({"format": "jpg"}).format == "jpeg"

    def test_keeps_unrecognized_format(self):
        """Unknown formats are kept so the executor can fall back to the source format."""
        assert parse_request({"format": "avif"}).format == "avif"

    def test_empty_format_means_original(self):
        assert parse_request({"format": ""}).format == "original"

    def test_parses_dimensions(self):
        request = parse_request({"width": "500", "height": "250"})

        assert request.width == 500
        assert request.height == 250

    @pytest.mark.parametrize("value", ["0", "-10", "wide", ""])
    def test_invalid_dimensions_are_absent(self, value):
        request = parse_request({"width": value, "height": value})

        assert request.width is None
        assert request.height is None

    def test_boolean_flags_need_exact_true(self):
        assert parse_request({"original": "true"}).return_original
        assert parse_request({"autoOptimize": "true"}).auto_optimize
        assert not parse_request({"original": "1"}).return_original
        assert not parse_request({"autoOptimize": "TRUE"}).auto_optimize


class TestDetectDevice:
    """Tests for detect_device function."""

    def test_iphone_is_mobile(self):
        assert detect_device(IPHONE_UA) == "mobile"

    def test_desktop_browser_is_desktop(self):
        assert detect_device(DESKTOP_UA) == "desktop"

    def test_empty_user_agent_is_desktop(self):
        assert detect_device("") == "desktop"

    def test_ipad_is_mobile(self):
        """Mobile check wins over the tablet pattern."""
        assert detect_device(IPAD_UA) == "mobile"

    def test_android_tablet_is_mobile(self):
        assert detect_device(ANDROID_TABLET_UA) == "mobile"

    def test_case_insensitive(self):
        assert detect_device("some-blackberry-browser") == "mobile"
        assert detect_device("Opera Mini/8.0") == "mobile"


class TestDetectConnection:
    """Tests for detect_connection function."""

    def test_save_data_is_slow(self):
        """Save-Data beats every other signal."""
        headers = {"Save-Data": "on", "ECT": "4g", "Downlink": "50"}
        assert detect_connection(headers) == "slow"

    def test_save_data_must_be_on(self):
        headers = {"save-data": "off", "ect": "4g"}
        assert detect_connection(headers) == "fast"

    @pytest.mark.parametrize("ect,expected", [
        ("slow-2g", "slow"),
        ("2g", "slow"),
        ("3g", "moderate"),
        ("4g", "fast"),
    ])
    def test_effective_connection_type(self, ect, expected):
        assert detect_connection({"ect": ect, "downlink": "100"}) == expected

    def test_long_effective_connection_type_header(self):
        assert detect_connection({"Effective-Connection-Type": "2g"}) == "slow"

    def test_unknown_ect_falls_through(self):
        """Unrecognized ECT values defer to the next signal."""
        assert detect_connection({"ect": "5g", "downlink": "2"}) == "moderate"

    @pytest.mark.parametrize("downlink,expected", [
        ("0.5", "slow"),
        ("1.49", "slow"),
        ("1.5", "moderate"),
        ("3.9", "moderate"),
        ("4", "fast"),
        ("25", "fast"),
    ])
    def test_downlink(self, downlink, expected):
        assert detect_connection({"downlink": downlink, "rtt": "1000"}) == expected

    def test_malformed_downlink_is_ignored(self):
        assert detect_connection({"downlink": "n/a", "rtt": "400"}) == "slow"

    @pytest.mark.parametrize("rtt,expected", [
        ("301", "slow"),
        ("300", "moderate"),
        ("151", "moderate"),
        ("150", "fast"),
        ("50", "fast"),
    ])
    def test_rtt(self, rtt, expected):
        assert detect_connection({"rtt": rtt}) == expected

    @pytest.mark.parametrize("connection_type,expected", [
        ("cellular", "slow"),
        ("Bluetooth", "slow"),
        ("wimax", "slow"),
        ("LTE", "moderate"),
        ("4g", "moderate"),
        ("WiFi", "fast"),
        ("ethernet", "fast"),
    ])
    def test_connection_type(self, connection_type, expected):
        assert detect_connection({"connection-type": connection_type}) == expected

    def test_unknown_connection_type_falls_through(self):
        headers = {
            "connection-type": "satellite",
            "accept": MODERN_ACCEPT,
            "user-agent": DESKTOP_UA,
        }
        assert detect_connection(headers) == "fast"

    def test_no_modern_format_support_is_moderate(self):
        headers = {"accept": "image/png,image/*", "user-agent": DESKTOP_UA}
        assert detect_connection(headers) == "moderate"

    def test_missing_accept_is_moderate(self):
        assert detect_connection({"user-agent": DESKTOP_UA}) == "moderate"

    def test_avif_only_counts_as_modern(self):
        headers = {"accept": "image/avif,*/*", "user-agent": DESKTOP_UA}
        assert detect_connection(headers) == "fast"

    def test_mobile_fallback_is_moderate(self):
        headers = {"accept": MODERN_ACCEPT, "user-agent": IPHONE_UA}
        assert detect_connection(headers) == "moderate"

    def test_default_is_fast(self):
        headers = {"accept": MODERN_ACCEPT, "user-agent": DESKTOP_UA}
        assert detect_connection(headers) == "fast"


class TestApplyAutoOptimization:
    """Tests for apply_auto_optimization function."""

    def test_mobile_fast(self):
        result = apply_auto_optimization(TransformRequest(), "mobile", "fast")

        assert result.quality == 50
        assert result.format == "webp"
        assert result.width == 800
        assert result.height is None

    def test_tablet_fast(self):
        result = apply_auto_optimization(TransformRequest(), "tablet", "fast")

        assert result.quality == 75
        assert result.format == "webp"
        assert result.width == 1200

    def test_desktop_fast_leaves_width_unconstrained(self):
        result = apply_auto_optimization(TransformRequest(), "desktop", "fast")

        assert result.quality == 90
        assert result.format == "webp"
        assert result.width is None
        assert result.height is None

    def test_requested_width_beats_device_default(self):
        request = TransformRequest(width=400)
        result = apply_auto_optimization(request, "mobile", "fast")

        assert result.width == 400

    def test_device_profile_replaces_requested_quality(self):
        request = TransformRequest(quality=20, format="png")
        result = apply_auto_optimization(request, "desktop", "fast")

        assert result.quality == 90
        assert result.format == "webp"

    def test_slow_forces_jpeg_and_caps(self):
        request = TransformRequest(width=2000, height=1500)
        result = apply_auto_optimization(request, "desktop", "slow")

        assert result.format == "jpeg"
        assert result.quality == 50
        assert result.width == 600
        assert result.height == 600

    def test_slow_does_not_invent_height(self):
        result = apply_auto_optimization(TransformRequest(), "mobile", "slow")

        assert result.width == 600
        assert result.height is None

    def test_moderate_caps_quality_and_dimensions(self):
        request = TransformRequest(width=2000, height=700)
        result = apply_auto_optimization(request, "desktop", "moderate")

        assert result.quality == 70
        assert result.format == "webp"
        assert result.width == 1000
        assert result.height == 700

    def test_moderate_keeps_lower_quality(self):
        result = apply_auto_optimization(TransformRequest(), "mobile", "moderate")

        assert result.quality == 50
        assert result.width == 800

    def test_carries_original_flag_and_classes(self):
        request = TransformRequest(return_original=True)
        result = apply_auto_optimization(request, "mobile", "moderate")

        assert result.original
        assert result.device == "mobile"
        assert result.connection == "moderate"


class TestResolve:
    """Tests for resolve function."""

    def test_without_auto_optimize_uses_request(self):
        query = {"format": "png", "quality": "60", "width": "300"}
        headers = {"User-Agent": IPHONE_UA, "ECT": "slow-2g"}

        result = resolve(query, headers)

        assert result.format == "png"
        assert result.quality == 60
        assert result.width == 300
        assert result.height is None
        # Classes are still reported for diagnostics
        assert result.device == "mobile"
        assert result.connection == "slow"

    def test_mobile_on_slow_2g_gets_jpeg(self):
        """Connection override beats the device's webp default."""
        query = {"autoOptimize": "true"}
        headers = {"user-agent": IPHONE_UA, "effective-connection-type": "slow-2g"}

        result = resolve(query, headers)

        assert result.format == "jpeg"
        assert result.quality == 50
        assert result.width == 600

    def test_slow_never_raises_quality(self):
        query = {"autoOptimize": "true", "quality": "95"}
        headers = {"user-agent": DESKTOP_UA, "save-data": "on"}

        assert resolve(query, headers).quality == 50

    def test_desktop_fast_auto(self):
        query = {"autoOptimize": "true"}
        headers = {"user-agent": DESKTOP_UA, "accept": MODERN_ACCEPT}

        result = resolve(query, headers)

        assert result == EffectiveTransform(
            format="webp",
            quality=90,
            device="desktop",
            connection="fast",
        )

    def test_original_flag(self):
        result = resolve({"original": "true", "format": "webp"}, {})

        assert result.original
        assert result.format == "webp"

    def test_idempotent(self):
        query = {"autoOptimize": "true", "width": "1400", "quality": "85"}
        headers = {"user-agent": ANDROID_TABLET_UA, "downlink": "2.5", "accept": MODERN_ACCEPT}

        assert resolve(query, headers) == resolve(query, headers)
