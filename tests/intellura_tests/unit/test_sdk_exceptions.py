"""
Tests for the error taxonomy and Outcome.
"""

import pytest

from intellura_sdk.exceptions import (
    AlreadyClaimedError,
    EngagementPendingError,
    ErrorCategory,
    ErrorKind,
    IntelluraError,
    NetworkError,
    Outcome,
    RateLimitError,
    RequestTimeoutError,
    SupersededError,
    UserRejectedError,
)


class TestErrorKind:
    """Tests for ErrorKind."""

    def test_silent_kinds(self):
        assert {kind for kind in ErrorKind if kind.silent} == {ErrorKind.USER_REJECTED, ErrorKind.SUPERSEDED}

    def test_conflict_kinds(self):
        assert {kind for kind in ErrorKind if kind.is_conflict} == {
            ErrorKind.ALREADY_LINKED,
            ErrorKind.ALREADY_CLAIMED,
            ErrorKind.ALREADY_REFERRED,
        }

    def test_labels_are_unique(self):
        labels = [kind.label for kind in ErrorKind]
        assert len(labels) == len(set(labels))

    def test_category(self):
        assert ErrorKind.NETWORK.category is ErrorCategory.RETRYABLE
        assert ErrorKind.UNAUTHENTICATED.category is ErrorCategory.AUTH


class TestIntelluraError:
    """Tests for the exception hierarchy."""

    def test_str_includes_status(self):
        assert str(IntelluraError("boom", status_code=500)) == "[500] boom"
        assert str(IntelluraError("boom")) == "boom"

    def test_details_default(self):
        assert IntelluraError("x").details == {}

    def test_timeout_is_network_error(self):
        error = RequestTimeoutError("slow")

        assert isinstance(error, NetworkError)
        assert error.kind is ErrorKind.NETWORK

    def test_rate_limit_keeps_retry_after(self):
        assert RateLimitError("slow down", retry_after=3).retry_after == 3

    def test_engagement_pending_remaining(self):
        assert EngagementPendingError("wait", remaining=4.5).remaining == 4.5


class TestOutcome:
    """Tests for Outcome."""

    def test_success(self):
        outcome = Outcome.success(3, message="done")

        assert outcome.ok
        assert outcome.error is None
        assert not outcome.silent

    def test_failure_carries_kind_and_message(self):
        outcome = Outcome.failure(AlreadyClaimedError("Already claimed."), value="q1")

        assert not outcome.ok
        assert outcome.error is ErrorKind.ALREADY_CLAIMED
        assert outcome.message == "Already claimed."
        assert outcome.value == "q1"

    def test_empty_message_becomes_none(self):
        assert Outcome.failure(NetworkError()).message is None

    @pytest.mark.parametrize("exc", [UserRejectedError("no"), SupersededError("stale")])
    def test_silent(self, exc):
        assert Outcome.failure(exc).silent
