"""Invoice lifecycle.

    draft -> pending | cancelled
    pending -> paid | overdue | cancelled
    overdue -> paid | cancelled
    paid -> refunded

cancelled and refunded are terminal.
"""
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Mapping, Optional

INVOICE_STATUSES = ("draft", "pending", "paid", "overdue", "cancelled", "refunded")

STATUS_TRANSITIONS = {
    "draft": ("pending", "cancelled"),
    "pending": ("paid", "overdue", "cancelled"),
    "paid": ("refunded",),
    "overdue": ("paid", "cancelled"),
    "cancelled": (),
    "refunded": (),
}

EVENT_TO_STATUS = {
    "send": "pending",
    "mark_paid": "paid",
    "mark_overdue": "overdue",
    "cancel": "cancelled",
    "refund": "refunded",
}

EVENT_VALID_FROM = {
    "send": ("draft",),
    "mark_paid": ("pending", "overdue"),
    "mark_overdue": ("pending",),
    "cancel": ("draft", "pending", "overdue"),
    "refund": ("paid",),
}

PAYMENT_METHODS = ("cash", "bank_transfer", "card", "cheque", "other")

STATUS_DESCRIPTIONS = {
    "draft": {"en": "Draft - Invoice is being prepared", "tr": "Taslak - Fatura hazırlanıyor"},
    "pending": {"en": "Pending - Awaiting payment", "tr": "Beklemede - Ödeme bekleniyor"},
    "paid": {"en": "Paid - Payment received", "tr": "Ödendi - Ödeme alındı"},
    "overdue": {
        "en": "Overdue - Payment is past due date",
        "tr": "Gecikmiş - Ödeme vadesi geçmiş",
    },
    "cancelled": {
        "en": "Cancelled - Invoice has been cancelled",
        "tr": "İptal Edildi - Fatura iptal edildi",
    },
    "refunded": {
        "en": "Refunded - Payment has been refunded",
        "tr": "İade Edildi - Ödeme iade edildi",
    },
}


class StatusTransitionError(ValueError):
    pass


class PaymentDetailsError(ValueError):
    def __init__(self, errors: Dict[str, str]):
        super().__init__("Invalid payment details")
        self.errors = errors


@dataclass(frozen=True)
class StatusChange:
    previous_status: str
    new_status: str
    updated_at: datetime
    paid_at: Optional[datetime] = None
    payment_method: Optional[str] = None
    payment_reference: Optional[str] = None
    payment_amount: Optional[int] = None
    payment_notes: Optional[str] = None
    sent_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    refunded_at: Optional[datetime] = None


def is_valid_transition(current_status: str, target_status: str) -> bool:
    if current_status not in INVOICE_STATUSES or target_status not in INVOICE_STATUSES:
        return False
    return target_status in STATUS_TRANSITIONS[current_status]


def get_valid_transitions(current_status: str) -> List[str]:
    return list(STATUS_TRANSITIONS.get(current_status, ()))


def is_valid_event(current_status: str, event: str) -> bool:
    return current_status in EVENT_VALID_FROM.get(event, ())


def get_target_status_for_event(event: str) -> Optional[str]:
    return EVENT_TO_STATUS.get(event)


def get_valid_events(current_status: str) -> List[str]:
    return [event for event, sources in EVENT_VALID_FROM.items() if current_status in sources]


def is_terminal_status(status: str) -> bool:
    return not STATUS_TRANSITIONS.get(status)


def is_editable(status: str) -> bool:
    return status == "draft"


def is_deletable(status: str) -> bool:
    return status == "draft"


def get_status_description(status: str, lang: str = "en") -> str:
    descriptions = STATUS_DESCRIPTIONS.get(status)
    if not descriptions:
        return status
    return descriptions.get(lang, descriptions["en"])


def parse_timestamp(value: str) -> datetime:
    # fromisoformat only learned the trailing "Z" in 3.11
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    return datetime.fromisoformat(value)


def validate_payment_details(payment_details: Mapping[str, Any]) -> Dict[str, str]:
    errors: Dict[str, str] = {}

    payment_date = payment_details.get("payment_date")
    if payment_date:
        try:
            if not isinstance(payment_date, str):
                raise TypeError(payment_date)
            parse_timestamp(payment_date)
        except (TypeError, ValueError):
            errors["payment_date"] = "Invalid payment date format (ISO 8601)"

    method = payment_details.get("payment_method")
    if method and method not in PAYMENT_METHODS:
        errors["payment_method"] = (
            f"Invalid payment method. Must be one of: {', '.join(PAYMENT_METHODS)}"
        )

    reference = payment_details.get("payment_reference")
    if reference:
        if not isinstance(reference, str):
            errors["payment_reference"] = "Payment reference must be a string"
        elif len(reference) > 100:
            errors["payment_reference"] = "Payment reference must not exceed 100 characters"

    amount = payment_details.get("payment_amount")
    if amount is not None:
        if not isinstance(amount, int) or isinstance(amount, bool) or amount < 0:
            errors["payment_amount"] = "Payment amount must be a non-negative integer (in pence)"

    notes = payment_details.get("notes")
    if notes:
        if not isinstance(notes, str):
            errors["notes"] = "Notes must be a string"
        elif len(notes) > 1000:
            errors["notes"] = "Notes must not exceed 1000 characters"

    return errors


def prepare_status_change(
    current_status: str,
    target_status: str,
    payment_details: Optional[Mapping[str, Any]] = None,
    now: Optional[datetime] = None,
) -> StatusChange:
    if current_status not in INVOICE_STATUSES:
        raise StatusTransitionError(f"Invalid current status: {current_status}")
    if target_status not in INVOICE_STATUSES:
        raise StatusTransitionError(
            f"Invalid target status: {target_status}. "
            f"Must be one of: {', '.join(INVOICE_STATUSES)}"
        )
    if not is_valid_transition(current_status, target_status):
        valid = get_valid_transitions(current_status)
        hint = (
            f"Valid transitions: {', '.join(valid)}"
            if valid
            else "No transitions available from this status"
        )
        raise StatusTransitionError(
            f"Cannot change status from '{current_status}' to '{target_status}'. {hint}"
        )

    now = now or datetime.now(timezone.utc)
    changes: Dict[str, Any] = {}

    if target_status == "paid":
        changes["paid_at"] = now
        if payment_details:
            errors = validate_payment_details(payment_details)
            if errors:
                raise PaymentDetailsError(errors)
            if payment_details.get("payment_date"):
                changes["paid_at"] = parse_timestamp(payment_details["payment_date"])
            changes["payment_method"] = payment_details.get("payment_method")
            changes["payment_reference"] = payment_details.get("payment_reference")
            changes["payment_amount"] = payment_details.get("payment_amount")
            changes["payment_notes"] = payment_details.get("notes")
    elif target_status == "pending" and current_status == "draft":
        changes["sent_at"] = now
    elif target_status == "cancelled":
        changes["cancelled_at"] = now
    elif target_status == "refunded":
        changes["refunded_at"] = now

    return StatusChange(
        previous_status=current_status,
        new_status=target_status,
        updated_at=now,
        **changes,
    )


def prepare_event_change(
    current_status: str,
    event: str,
    payment_details: Optional[Mapping[str, Any]] = None,
    now: Optional[datetime] = None,
) -> StatusChange:
    target_status = get_target_status_for_event(event)
    if target_status is None:
        raise StatusTransitionError(
            f"Invalid event: {event}. Valid events: {', '.join(EVENT_TO_STATUS)}"
        )
    if not is_valid_event(current_status, event):
        valid = get_valid_events(current_status)
        hint = f"Valid events: {', '.join(valid)}" if valid else "No events available from this status"
        raise StatusTransitionError(
            f"Cannot trigger '{event}' from status '{current_status}'. {hint}"
        )
    return prepare_status_change(current_status, target_status, payment_details, now)


def is_invoice_overdue(invoice: Any, today: Optional[date] = None) -> bool:
    today = today or date.today()
    return invoice.status in ("pending", "overdue") and invoice.due_date < today
