from datetime import date, datetime, timezone
from types import SimpleNamespace

import pytest

from bookkeeping.status import (
    PaymentDetailsError,
    StatusTransitionError,
    get_status_description,
    get_valid_events,
    get_valid_transitions,
    is_deletable,
    is_editable,
    is_invoice_overdue,
    is_terminal_status,
    is_valid_transition,
    prepare_event_change,
    prepare_status_change,
    validate_payment_details,
)

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def test_transitions():
    assert is_valid_transition("draft", "pending")
    assert is_valid_transition("pending", "overdue")
    assert is_valid_transition("overdue", "paid")
    assert is_valid_transition("paid", "refunded")
    assert not is_valid_transition("draft", "paid")
    assert not is_valid_transition("cancelled", "draft")
    assert not is_valid_transition("nope", "draft")
    assert get_valid_transitions("pending") == ["paid", "overdue", "cancelled"]
    assert get_valid_transitions("refunded") == []


def test_terminal_and_editable():
    assert is_terminal_status("cancelled")
    assert is_terminal_status("refunded")
    assert not is_terminal_status("paid")
    assert is_editable("draft") and is_deletable("draft")
    assert not is_editable("pending")
    assert not is_deletable("paid")


def test_status_description_falls_back_to_english():
    assert get_status_description("paid", "tr") == "Ödendi - Ödeme alındı"
    assert get_status_description("paid", "de") == "Paid - Payment received"
    assert get_status_description("mystery") == "mystery"


def test_send_stamps_sent_at():
    change = prepare_status_change("draft", "pending", now=NOW)
    assert change.previous_status == "draft"
    assert change.new_status == "pending"
    assert change.sent_at == NOW
    assert change.paid_at is None


def test_mark_paid_without_details_uses_now():
    change = prepare_status_change("pending", "paid", now=NOW)
    assert change.paid_at == NOW
    assert change.payment_method is None


def test_mark_paid_with_details():
    change = prepare_status_change(
        "overdue",
        "paid",
        {
            "payment_date": "2026-02-27T09:30:00Z",
            "payment_method": "bank_transfer",
            "payment_reference": "BACS-991",
            "payment_amount": 12000,
            "notes": "Paid late",
        },
        now=NOW,
    )
    assert change.paid_at == datetime(2026, 2, 27, 9, 30, tzinfo=timezone.utc)
    assert change.payment_method == "bank_transfer"
    assert change.payment_reference == "BACS-991"
    assert change.payment_amount == 12000
    assert change.payment_notes == "Paid late"


def test_cancel_and_refund_timestamps():
    assert prepare_status_change("pending", "cancelled", now=NOW).cancelled_at == NOW
    assert prepare_status_change("paid", "refunded", now=NOW).refunded_at == NOW


def test_invalid_transition_lists_alternatives():
    with pytest.raises(StatusTransitionError) as exc:
        prepare_status_change("draft", "paid")
    assert "Valid transitions: pending, cancelled" in str(exc.value)

    with pytest.raises(StatusTransitionError) as exc:
        prepare_status_change("refunded", "paid")
    assert "No transitions available" in str(exc.value)


def test_bad_payment_details():
    with pytest.raises(PaymentDetailsError) as exc:
        prepare_status_change(
            "pending",
            "paid",
            {"payment_method": "bitcoin", "payment_amount": -5, "payment_date": "yesterday"},
        )
    assert set(exc.value.errors) == {"payment_method", "payment_amount", "payment_date"}


def test_validate_payment_details_limits():
    assert validate_payment_details({}) == {}
    errors = validate_payment_details({"payment_reference": "x" * 101, "notes": 5})
    assert set(errors) == {"payment_reference", "notes"}


def test_events():
    assert get_valid_events("pending") == ["mark_paid", "mark_overdue", "cancel"]
    assert prepare_event_change("draft", "send", now=NOW).new_status == "pending"
    with pytest.raises(StatusTransitionError):
        prepare_event_change("draft", "refund")
    with pytest.raises(StatusTransitionError):
        prepare_event_change("draft", "explode")


def test_is_invoice_overdue():
    today = date(2026, 3, 10)
    late = SimpleNamespace(status="pending", due_date=date(2026, 3, 9))
    on_time = SimpleNamespace(status="pending", due_date=date(2026, 3, 10))
    paid = SimpleNamespace(status="paid", due_date=date(2026, 1, 1))
    assert is_invoice_overdue(late, today)
    assert not is_invoice_overdue(on_time, today)
    assert not is_invoice_overdue(paid, today)
