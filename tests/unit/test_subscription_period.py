"""Billing period chaining and gateway status classification."""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import pytest

from mentora.subscriptions.period import PaymentOutcome, classify_transaction_status, extend

NOW = datetime(2026, 10, 19, 9, 0, tzinfo=timezone.utc)


@dataclass
class FakeSubscription:
    status: str
    current_period_end: datetime | None


class TestExtend:
    def test_no_subscription_starts_now(self):
        period = extend(NOW, None)
        assert period.start == NOW
        assert period.end == NOW + timedelta(days=30)

    def test_active_unexpired_chains(self):
        """10 days left + a new payment = 40 days of coverage from now."""
        existing = FakeSubscription("active", NOW + timedelta(days=10))
        period = extend(NOW, existing)
        assert period.start == existing.current_period_end
        assert period.end == NOW + timedelta(days=40)

    def test_expired_restarts(self):
        existing = FakeSubscription("active", NOW - timedelta(seconds=1))
        period = extend(NOW, existing)
        assert period.start == NOW

    def test_end_equal_to_now_restarts(self):
        period = extend(NOW, FakeSubscription("active", NOW))
        assert period.start == NOW

    @pytest.mark.parametrize("status", ["pending", "expired", "cancelled", "deny", "expire"])
    def test_inactive_status_restarts(self, status):
        period = extend(NOW, FakeSubscription(status, NOW + timedelta(days=10)))
        assert period.start == NOW
        assert period.end == NOW + timedelta(days=30)

    def test_missing_end_restarts(self):
        period = extend(NOW, FakeSubscription("active", None))
        assert period.start == NOW

    def test_custom_duration(self):
        assert extend(NOW, None, duration_days=7).end == NOW + timedelta(days=7)

    @pytest.mark.parametrize("days", [0, -1])
    def test_non_positive_duration_rejected(self, days):
        with pytest.raises(ValueError):
            extend(NOW, None, duration_days=days)


class TestClassify:
    @pytest.mark.parametrize("status", ["settlement", "capture", "SETTLEMENT"])
    def test_success(self, status):
        assert classify_transaction_status(status) is PaymentOutcome.SUCCESS

    def test_capture_accepted_by_fraud_screen(self):
        assert classify_transaction_status("capture", "accept") is PaymentOutcome.SUCCESS

    def test_capture_challenged_is_pending(self):
        assert classify_transaction_status("capture", "challenge") is PaymentOutcome.PENDING

    def test_capture_denied_by_fraud_is_failure(self):
        assert classify_transaction_status("capture", "deny") is PaymentOutcome.FAILURE

    @pytest.mark.parametrize("status", ["pending", "authorize", None, ""])
    def test_pending(self, status):
        assert classify_transaction_status(status) is PaymentOutcome.PENDING

    @pytest.mark.parametrize("status", ["deny", "cancel", "expire", "failure", "refund", "chargeback"])
    def test_failure(self, status):
        assert classify_transaction_status(status) is PaymentOutcome.FAILURE

    def test_unknown(self):
        assert classify_transaction_status("something_new") is PaymentOutcome.UNKNOWN
