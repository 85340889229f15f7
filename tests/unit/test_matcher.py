"""Unit tests for the placeholder/remote message matcher."""

from __future__ import annotations

from datetime import datetime, timedelta

import pytest

from email_client_core.models import Message, SyncState
from email_client_core.reconcile.matcher import matches
from support import NOW_MS, ago, iso


def pending(created: datetime, **overrides) -> Message:
    fields = {
        "id": "local-sent-1",
        "subject": "Report",
        "from_name": "Me",
        "from_addr": "a@x.com",
        "date": iso(created),
        "is_read": True,
        "is_local_pending": True,
        "sync_state": SyncState.SMTP_ACCEPTED,
    }
    fields.update(overrides)
    return Message(**fields)


def remote(date: datetime, /, **overrides) -> Message:
    fields = {
        "id": "srv-1",
        "subject": "Report",
        "from_name": "Me",
        "from_addr": "a@x.com",
        "date": iso(date),
    }
    fields.update(overrides)
    return Message(**fields)


class TestFreshnessGuard:
    """A placeholder younger than 12 seconds never matches."""

    @pytest.mark.parametrize("age_seconds", [0, 5, 11.9])
    def test_fresh_placeholder_never_matches(self, age_seconds: float) -> None:
        created = ago(seconds=age_seconds)
        local = pending(created, preview_text="Hello team")
        twin = remote(created, preview_text="Hello team")

        assert matches(local, twin, now_ms=NOW_MS) is False

    def test_guard_lifts_after_twelve_seconds(self) -> None:
        created = ago(seconds=12)
        assert matches(pending(created), remote(created), now_ms=NOW_MS) is True


class TestExactIdShortCircuit:
    """Equal Message-IDs match regardless of every other field."""

    def test_ids_match_despite_different_content(self) -> None:
        created = ago(seconds=1)
        local = pending(created, smtp_message_id="<ABC@Mail.Example.com>", subject="One")
        other = remote(
            ago(days=30),
            message_id="abc@mail.example.com",
            subject="Completely different",
            from_addr="z@z.com",
            preview_text="nothing alike",
        )

        assert matches(local, other, now_ms=NOW_MS) is True

    def test_different_ids_fall_through_to_content(self) -> None:
        created = ago(seconds=20)
        local = pending(created, smtp_message_id="<a@x>")
        other = remote(created + timedelta(minutes=1), message_id="<b@x>")

        assert matches(local, other, now_ms=NOW_MS) is True


class TestSubjectWindow:
    """Subject matches are bounded to two hours."""

    def test_one_hour_later_matches(self) -> None:
        created = ago(seconds=20)
        assert matches(pending(created), remote(created + timedelta(hours=1)), now_ms=NOW_MS) is True

    def test_three_hours_later_does_not_match(self) -> None:
        created = ago(seconds=20)
        assert matches(pending(created), remote(created + timedelta(hours=3)), now_ms=NOW_MS) is False

    def test_subject_match_ignores_sender_rewrite(self) -> None:
        created = ago(seconds=20)
        rewritten = remote(created + timedelta(seconds=30), from_addr="Me Myself <other@x.com>")
        assert matches(pending(created), rewritten, now_ms=NOW_MS) is True

    def test_remote_materially_older_is_rejected(self) -> None:
        created = ago(hours=1)
        assert matches(pending(created), remote(created - timedelta(minutes=5)), now_ms=NOW_MS) is False

    def test_small_clock_skew_is_tolerated(self) -> None:
        created = ago(hours=1)
        assert matches(pending(created), remote(created - timedelta(minutes=1)), now_ms=NOW_MS) is True


class TestPreviewFallback:
    """Preview matches require agreeing senders when both are known."""

    def test_preview_match_rejected_for_different_sender(self) -> None:
        created = ago(seconds=20)
        local = pending(created, subject="", preview_text="Hello team")
        other = remote(created + timedelta(minutes=1), subject="", preview_text="Hello, team!", from_addr="b@y.com")

        assert matches(local, other, now_ms=NOW_MS) is False

    def test_preview_match_accepted_for_same_sender(self) -> None:
        created = ago(seconds=20)
        local = pending(created, subject="", preview_text="Hello team")
        other = remote(created + timedelta(minutes=1), subject="", preview_text="Hello, team!")

        assert matches(local, other, now_ms=NOW_MS) is True

    def test_preview_match_with_unknown_remote_sender(self) -> None:
        created = ago(seconds=20)
        local = pending(created, subject="", preview_text="Hello team")
        other = remote(created + timedelta(minutes=1), subject="", preview_text="Hello team", from_addr="")

        assert matches(local, other, now_ms=NOW_MS) is True


class TestStrictFallback:
    """Without subject or preview, sender and attachments must agree within 24 hours."""

    def test_twenty_hours_later_matches(self) -> None:
        created = ago(hours=10)
        local = pending(created, subject="", preview_text=None)
        other = remote(created + timedelta(hours=20), subject="", preview_text=None)

        assert matches(local, other, now_ms=NOW_MS) is True

    def test_twenty_five_hours_later_does_not_match(self) -> None:
        created = ago(hours=10)
        local = pending(created, subject="", preview_text=None)
        other = remote(created + timedelta(hours=25), subject="", preview_text=None)

        assert matches(local, other, now_ms=NOW_MS) is False

    def test_attachment_mismatch_rejected(self) -> None:
        created = ago(hours=10)
        local = pending(created, subject="", has_attachments=True)
        other = remote(created + timedelta(hours=1), subject="", has_attachments=False)

        assert matches(local, other, now_ms=NOW_MS) is False

    def test_unknown_sender_rejected(self) -> None:
        created = ago(hours=10)
        local = pending(created, subject="")
        other = remote(created + timedelta(hours=1), subject="", from_addr="")

        assert matches(local, other, now_ms=NOW_MS) is False

    def test_no_subject_placeholder_uses_strict_path(self) -> None:
        created = ago(hours=10)
        local = pending(created, subject="")
        other = remote(created + timedelta(hours=1), subject="(no subject)", from_addr="x@other.com")

        assert matches(local, other, now_ms=NOW_MS) is False


class TestUnparsableDates:
    """Missing timestamps degrade to content-only matching."""

    def test_subject_match_without_dates(self) -> None:
        local = pending(ago(seconds=1), date="garbage")
        assert matches(local, remote(ago(days=10)), now_ms=NOW_MS) is True

    def test_no_content_signal_without_dates(self) -> None:
        local = pending(ago(seconds=1), date="", subject="")
        assert matches(local, remote(ago(days=10), subject="", date="??"), now_ms=NOW_MS) is False


class TestSyncedComparison:
    """Comparisons between two synced messages skip the placeholder rules."""

    def synced(self, date: datetime, **overrides) -> Message:
        return pending(date, is_local_pending=False, sync_state=None, **overrides)

    def test_within_thirty_minutes_matches(self) -> None:
        base = ago(days=3)
        other = remote(base + timedelta(minutes=20), from_addr="someone@else.com")
        assert matches(self.synced(base), other, now_ms=NOW_MS) is True

    def test_within_a_day_requires_same_sender(self) -> None:
        base = ago(days=3)
        assert matches(self.synced(base), remote(base + timedelta(hours=5)), now_ms=NOW_MS) is True
        assert (
            matches(self.synced(base), remote(base + timedelta(hours=5), from_addr="b@y.com"), now_ms=NOW_MS)
            is False
        )

    def test_beyond_a_day_never_matches(self) -> None:
        base = ago(days=3)
        assert matches(self.synced(base), remote(base + timedelta(hours=30)), now_ms=NOW_MS) is False

    def test_requires_text_signal(self) -> None:
        base = ago(days=3)
        assert matches(self.synced(base), remote(base, subject="Other"), now_ms=NOW_MS) is False

    def test_fresh_synced_message_is_not_guarded(self) -> None:
        base = ago(seconds=1)
        assert matches(self.synced(base), remote(base), now_ms=NOW_MS) is True
