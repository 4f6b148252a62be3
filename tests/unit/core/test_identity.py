"""Unit tests for commit identities."""

from datetime import datetime, timedelta, timezone

import pytest

from gitobj.core.identity import default_signature, format_offset


class TestFormatOffset:
    """Test UTC offset formatting."""

    @pytest.mark.parametrize(
        "seconds, expected",
        [
            (0, "+0000"),
            (3600, "+0100"),
            (-5 * 3600 - 30 * 60, "-0530"),
            (13 * 3600 + 45 * 60, "+1345"),
        ],
    )
    def test_format_offset(self, seconds: int, expected: str) -> None:
        assert format_offset(seconds) == expected


class TestDefaultSignature:
    """Test building signatures from arguments and environment."""

    def test_explicit_values(self) -> None:
        when = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone(timedelta(hours=2)))
        signature = default_signature("Ada", "ada@example.com", when)
        assert signature.name == "Ada"
        assert signature.email == "ada@example.com"
        assert signature.timestamp == int(when.timestamp())
        assert signature.offset == "+0200"

    def test_naive_datetime_is_utc(self) -> None:
        signature = default_signature("a", "b", datetime(1970, 1, 1, 0, 1))
        assert signature.timestamp == 60
        assert signature.offset == "+0000"

    def test_environment_fallback(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("GIT_AUTHOR_NAME", "Env Name")
        monkeypatch.setenv("GIT_AUTHOR_EMAIL", "env@example.com")
        signature = default_signature()
        assert signature.name == "Env Name"
        assert signature.email == "env@example.com"

    def test_user_fallback(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("GIT_AUTHOR_NAME", raising=False)
        monkeypatch.delenv("GIT_AUTHOR_EMAIL", raising=False)
        monkeypatch.setenv("USER", "tester")
        signature = default_signature()
        assert signature.name == "tester"
        assert signature.email.startswith("tester@")

    def test_current_time(self) -> None:
        before = int(datetime.now(timezone.utc).timestamp())
        signature = default_signature("a", "b")
        after = int(datetime.now(timezone.utc).timestamp())
        assert before <= signature.timestamp <= after
