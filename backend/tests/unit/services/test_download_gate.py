"""
Unit Tests for scheduled booklet downloads
"""
from datetime import datetime, timedelta, timezone

import pytest

from app.core.exceptions import BookletNotGeneratedError, DownloadNotAvailableError, GraduationNotFoundError
from app.services.download_gate import DEFAULT_DOWNLOAD_MESSAGE, booklet_filename, check_download

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


def _graduation(**config):
    return {
        "schoolName": "Lincoln High",
        "graduationYear": "2025",
        "generatedBookletUrl": "http://assets.test/assets/graduation-booklets/g.pdf?v=1",
        "config": config,
    }


def test_filename():
    assert booklet_filename(_graduation()) == "Lincoln High-2025-Booklet.pdf"


def test_missing_graduation():
    with pytest.raises(GraduationNotFoundError):
        check_download("g1", None, now=NOW)


def test_not_generated():
    graduation = _graduation()
    graduation["generatedBookletUrl"] = None
    with pytest.raises(BookletNotGeneratedError):
        check_download("g1", graduation, now=NOW)


def test_unscheduled_download_is_allowed():
    result = check_download("g1", _graduation(), now=NOW)
    assert result["success"] is True
    assert result["downloadUrl"].endswith("g.pdf?v=1")
    assert result["filename"] == "Lincoln High-2025-Booklet.pdf"


def test_scheduled_in_future_is_blocked():
    available = NOW + timedelta(hours=2)
    graduation = _graduation(
        enableDownloadScheduling=True,
        downloadableAfterDate=available,
        downloadMessage="Available after the ceremony",
    )

    with pytest.raises(DownloadNotAvailableError) as exc_info:
        check_download("g1", graduation, now=NOW)

    error = exc_info.value
    assert error.status_code == 403
    assert error.message == "Available after the ceremony"
    assert error.details == {
        "availableAt": "2025-06-01T14:00:00Z",
        "remainingMilliseconds": 2 * 60 * 60 * 1000,
    }


def test_default_message_and_iso_string_date():
    graduation = _graduation(enableDownloadScheduling=True, downloadableAfterDate="2025-06-02T00:00:00Z")
    with pytest.raises(DownloadNotAvailableError) as exc_info:
        check_download("g1", graduation, now=NOW)
    assert exc_info.value.message == DEFAULT_DOWNLOAD_MESSAGE


@pytest.mark.parametrize("available", [NOW, NOW - timedelta(days=1), None])
def test_scheduled_date_reached_or_missing(available):
    graduation = _graduation(enableDownloadScheduling=True, downloadableAfterDate=available)
    assert check_download("g1", graduation, now=NOW)["success"] is True


def test_schedule_ignored_when_disabled():
    graduation = _graduation(enableDownloadScheduling=False, downloadableAfterDate=NOW + timedelta(days=9))
    assert check_download("g1", graduation, now=NOW)["success"] is True
