from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Mapping

from .config import SUPPORTED_CURRENCIES
from .services import VALID_VAT_RATE_IDS, is_valid_date, parse_date, parse_decimal_prefix

MAX_ITEMS_PER_INVOICE = 100
MAX_DESCRIPTION_LENGTH = 1000
MAX_NOTES_LENGTH = 2000
# Keeps 100 full lines inside a signed 64-bit pence column.
MAX_QUANTITY = 1_000_000
MAX_UNIT_PRICE = 10_000_000_000
# vat_rate_percent is stored as NUMERIC(5, 2)
MAX_VAT_RATE_DECIMALS = 2


@dataclass(frozen=True)
class ValidationIssue:
    field: str
    message: str
    message_tr: str


@dataclass(frozen=True)
class ValidationResult:
    is_valid: bool
    errors: List[ValidationIssue] = field(default_factory=list)


def _result(errors: List[ValidationIssue]) -> ValidationResult:
    return ValidationResult(is_valid=not errors, errors=errors)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float, Decimal)) and not isinstance(value, bool)


def _is_whole_number(value: Any) -> bool:
    if isinstance(value, float):
        return value.is_integer()
    if isinstance(value, Decimal):
        return value.is_finite() and value == value.to_integral_value()
    return _is_number(value)


def validate_line_item(item: Any, index: int = 0) -> List[ValidationIssue]:
    if not isinstance(item, Mapping):
        item = {}
    prefix = f"items[{index}]"
    errors: List[ValidationIssue] = []

    description = item.get("description")
    if not isinstance(description, str) or not description.strip():
        errors.append(
            ValidationIssue(
                f"{prefix}.description",
                "Item description is required",
                "Öğe açıklaması zorunludur",
            )
        )
    elif len(description) > MAX_DESCRIPTION_LENGTH:
        errors.append(
            ValidationIssue(
                f"{prefix}.description",
                f"Item description must not exceed {MAX_DESCRIPTION_LENGTH} characters",
                f"Öğe açıklaması {MAX_DESCRIPTION_LENGTH} karakteri geçmemelidir",
            )
        )

    quantity = item.get("quantity")
    if quantity is not None and quantity != "":
        parsed_quantity = parse_decimal_prefix(quantity)
        if parsed_quantity is None or parsed_quantity <= 0:
            errors.append(
                ValidationIssue(
                    f"{prefix}.quantity",
                    "Quantity must be a positive number",
                    "Miktar pozitif bir sayı olmalıdır",
                )
            )
        elif parsed_quantity > MAX_QUANTITY:
            errors.append(
                ValidationIssue(
                    f"{prefix}.quantity",
                    f"Quantity must not exceed {MAX_QUANTITY}",
                    f"Miktar {MAX_QUANTITY} değerini geçmemelidir",
                )
            )

    unit_price = item.get("unit_price")
    if unit_price is None:
        errors.append(
            ValidationIssue(
                f"{prefix}.unit_price",
                "Unit price is required",
                "Birim fiyatı zorunludur",
            )
        )
    elif not _is_whole_number(unit_price) or unit_price < 0:
        errors.append(
            ValidationIssue(
                f"{prefix}.unit_price",
                "Unit price must be a non-negative integer (in pence)",
                "Birim fiyatı negatif olmayan bir tam sayı olmalıdır (peni cinsinden)",
            )
        )
    elif unit_price > MAX_UNIT_PRICE:
        errors.append(
            ValidationIssue(
                f"{prefix}.unit_price",
                f"Unit price must not exceed {MAX_UNIT_PRICE} pence",
                f"Birim fiyatı {MAX_UNIT_PRICE} peniyi geçmemelidir",
            )
        )

    vat_rate = item.get("vat_rate")
    if isinstance(vat_rate, str) and vat_rate not in VALID_VAT_RATE_IDS:
        allowed = ", ".join(VALID_VAT_RATE_IDS)
        errors.append(
            ValidationIssue(
                f"{prefix}.vat_rate",
                f"Invalid VAT rate. Must be one of: {allowed}",
                f"Geçersiz KDV oranı. Şunlardan biri olmalıdır: {allowed}",
            )
        )
    elif _is_number(vat_rate):
        percent = parse_decimal_prefix(vat_rate)
        if percent is None or percent < 0 or percent > 100:
            errors.append(
                ValidationIssue(
                    f"{prefix}.vat_rate",
                    "VAT rate must be between 0 and 100",
                    "KDV oranı 0 ile 100 arasında olmalıdır",
                )
            )
        elif -percent.as_tuple().exponent > MAX_VAT_RATE_DECIMALS:
            errors.append(
                ValidationIssue(
                    f"{prefix}.vat_rate",
                    f"VAT rate must have at most {MAX_VAT_RATE_DECIMALS} decimal places",
                    f"KDV oranı en fazla {MAX_VAT_RATE_DECIMALS} ondalık basamak içermelidir",
                )
            )

    return errors


def validate_line_items(items: Any) -> ValidationResult:
    if not isinstance(items, (list, tuple)):
        return _result(
            [ValidationIssue("items", "Items must be an array", "Öğeler bir dizi olmalıdır")]
        )
    if not items:
        return _result(
            [
                ValidationIssue(
                    "items", "At least one item is required", "En az bir öğe gereklidir"
                )
            ]
        )
    if len(items) > MAX_ITEMS_PER_INVOICE:
        return _result(
            [
                ValidationIssue(
                    "items",
                    f"Maximum {MAX_ITEMS_PER_INVOICE} items allowed per invoice",
                    f"Fatura başına en fazla {MAX_ITEMS_PER_INVOICE} öğeye izin verilir",
                )
            ]
        )

    errors: List[ValidationIssue] = []
    for index, item in enumerate(items):
        errors.extend(validate_line_item(item, index))
    return _result(errors)


def validate_invoice_payload(data: Mapping[str, Any]) -> ValidationResult:
    """Invoice-level fields only; line items go through validate_line_items."""
    errors: List[ValidationIssue] = []

    customer_id = data.get("customer_id")
    if customer_id is None or customer_id == "":
        errors.append(
            ValidationIssue("customer_id", "Customer is required", "Müşteri zorunludur")
        )
    elif not isinstance(customer_id, int) or isinstance(customer_id, bool) or customer_id <= 0:
        errors.append(
            ValidationIssue("customer_id", "Invalid customer", "Geçersiz müşteri")
        )

    invoice_date = data.get("invoice_date")
    if not is_valid_date(invoice_date):
        errors.append(
            ValidationIssue(
                "invoice_date",
                "Invoice date must be a valid date (YYYY-MM-DD)",
                "Fatura tarihi geçerli bir tarih olmalıdır (YYYY-AA-GG)",
            )
        )

    due_date = data.get("due_date")
    if due_date:
        if not is_valid_date(due_date):
            errors.append(
                ValidationIssue(
                    "due_date",
                    "Due date must be a valid date (YYYY-MM-DD)",
                    "Vade tarihi geçerli bir tarih olmalıdır (YYYY-AA-GG)",
                )
            )
        elif is_valid_date(invoice_date) and parse_date(due_date) < parse_date(invoice_date):
            errors.append(
                ValidationIssue(
                    "due_date",
                    "Due date cannot be before the invoice date",
                    "Vade tarihi fatura tarihinden önce olamaz",
                )
            )

    tax_point = data.get("tax_point")
    if tax_point and not is_valid_date(tax_point):
        errors.append(
            ValidationIssue(
                "tax_point",
                "Tax point must be a valid date (YYYY-MM-DD)",
                "Vergi noktası geçerli bir tarih olmalıdır (YYYY-AA-GG)",
            )
        )

    currency = data.get("currency")
    if currency and (not isinstance(currency, str) or currency.upper() not in SUPPORTED_CURRENCIES):
        allowed = ", ".join(SUPPORTED_CURRENCIES)
        errors.append(
            ValidationIssue(
                "currency",
                f"Currency must be one of: {allowed}",
                f"Para birimi şunlardan biri olmalıdır: {allowed}",
            )
        )

    notes = data.get("notes")
    if notes is not None and (not isinstance(notes, str) or len(notes) > MAX_NOTES_LENGTH):
        errors.append(
            ValidationIssue(
                "notes",
                f"Notes must be text of at most {MAX_NOTES_LENGTH} characters",
                f"Notlar en fazla {MAX_NOTES_LENGTH} karakterlik metin olmalıdır",
            )
        )

    return _result(errors)


def validate_customer_payload(data: Mapping[str, Any]) -> ValidationResult:
    errors: List[ValidationIssue] = []
    name = data.get("name")
    if not isinstance(name, str) or not name.strip():
        errors.append(
            ValidationIssue("name", "Customer name is required", "Müşteri adı zorunludur")
        )
    elif len(name) > 255:
        errors.append(
            ValidationIssue(
                "name",
                "Customer name must not exceed 255 characters",
                "Müşteri adı 255 karakteri geçmemelidir",
            )
        )

    days = data.get("payment_terms_days")
    if days is not None and days != "":
        if not isinstance(days, int) or isinstance(days, bool):
            errors.append(
                ValidationIssue(
                    "payment_terms_days",
                    "Payment terms must be a whole number of days",
                    "Ödeme vadesi tam gün sayısı olmalıdır",
                )
            )
        elif days < 0:
            errors.append(
                ValidationIssue(
                    "payment_terms_days",
                    "Payment terms must be 0 or more days",
                    "Ödeme vadesi 0 veya daha fazla gün olmalıdır",
                )
            )
    return _result(errors)


def issues_as_details(issues: List[ValidationIssue]) -> List[Dict[str, str]]:
    return [
        {"field": issue.field, "message": issue.message, "message_tr": issue.message_tr}
        for issue in issues
    ]
