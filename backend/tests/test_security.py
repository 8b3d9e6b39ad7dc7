import statistics
import sys
import time
from pathlib import Path

BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

from config import settings  # noqa: E402
from utils import security  # noqa: E402
from utils.security import (  # noqa: E402
    constant_time_compare,
    extract_bearer_token,
    safe_error_message,
    verify_admin_password,
    verify_cron_secret,
)


def test_constant_time_compare_equal_and_unequal():
    assert constant_time_compare("hunter2", "hunter2") is True
    assert constant_time_compare("hunter2", "hunter3") is False
    assert constant_time_compare("", "") is True


def test_constant_time_compare_length_mismatch_is_false():
    assert constant_time_compare("short", "shorter") is False
    assert constant_time_compare(b"abc", b"ab") is False


def test_constant_time_compare_accepts_str_and_bytes():
    assert constant_time_compare("päss", "päss".encode("utf-8")) is True
    assert constant_time_compare(bytearray(b"xyz"), b"xyz") is True


def test_constant_time_compare_timing_does_not_track_mismatch_position():
    secret = "s" * 4096
    early = "x" + "s" * 4095
    late = "s" * 4095 + "x"

    def _median_runtime(candidate: str) -> float:
        samples = []
        for _ in range(40):
            started = time.perf_counter()
            for _ in range(20):
                constant_time_compare(secret, candidate)
            samples.append(time.perf_counter() - started)
        return statistics.median(samples)

    early_time = _median_runtime(early)
    late_time = _median_runtime(late)

    # A short-circuiting compare would make the early mismatch many times faster.
    ratio = max(early_time, late_time) / min(early_time, late_time)
    assert ratio < 3.0


def test_verify_helpers_fail_closed_without_expected_secret():
    assert verify_admin_password("", "") is False
    assert verify_admin_password("anything", "") is False
    assert verify_cron_secret("", "") is False
    assert verify_cron_secret("token", "token") is True


def test_extract_bearer_token():
    assert extract_bearer_token("Bearer abc123") == "abc123"
    assert extract_bearer_token("bearer   abc123 ") == "abc123"
    assert extract_bearer_token(None) == ""
    assert extract_bearer_token("") == ""


def test_safe_error_message_hides_details_in_production(monkeypatch):
    monkeypatch.setattr(settings, "ENVIRONMENT", "production")
    assert safe_error_message(RuntimeError("db path /var/secret")) == security.GENERIC_ERROR_MESSAGE

    monkeypatch.setattr(settings, "ENVIRONMENT", "development")
    assert safe_error_message(RuntimeError("db path /var/secret")) == "db path /var/secret"
    assert safe_error_message(KeyError()) == "KeyError"


def test_whitespace_only_secret_counts_as_unset(monkeypatch):
    assert verify_admin_password("   ", "   ") is False
    assert verify_admin_password(b" \t", b" \t") is False
    assert verify_cron_secret("  ", "  ") is False

    monkeypatch.setattr(settings, "ADMIN_PASSWORD", "   ")
    assert "ADMIN_PASSWORD" in settings.missing_required_secrets()
