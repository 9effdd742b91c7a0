"""Invoice totals with UK VAT.

Money is always integer pence. VAT is worked out per line and rounded at the
line, then summed, which is what HMRC expects on a VAT invoice.

The calculators below accept raw request data and never raise: anything
malformed falls back to a safe default. They are only meant to run on items
that already passed :func:`bookkeeping.validation.validate_line_items`.
"""
import re
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timedelta
from decimal import Context, Decimal, InvalidOperation, ROUND_HALF_UP, localcontext
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

VAT_RATES = MappingProxyType(
    {
        "standard": 20,
        "reduced": 5,
        "zero": 0,
        "exempt": 0,
        "outside-scope": None,
    }
)
VALID_VAT_RATE_IDS = ("standard", "reduced", "zero", "exempt", "outside-scope")
DEFAULT_VAT_RATE_ID = "standard"

VAT_RATE_NAMES = MappingProxyType(
    {
        "standard": {"en": "Standard Rate", "tr": "Standart Oran"},
        "reduced": {"en": "Reduced Rate", "tr": "İndirimli Oran"},
        "zero": {"en": "Zero Rate", "tr": "Sıfır Oran"},
        "exempt": {"en": "Exempt", "tr": "Muaf"},
        "outside-scope": {"en": "Outside the Scope", "tr": "Kapsam Dışı"},
    }
)

CURRENCY_SYMBOLS = MappingProxyType({"GBP": "£", "EUR": "€", "USD": "$"})

# Unvalidated line item straight from a request body.
RawLineItem = Mapping[str, Any]
Percent = Union[int, float, Decimal]

_DATE_PATTERN = re.compile(r"\d{4}-\d{2}-\d{2}")
_DECIMAL_PREFIX = re.compile(r"\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")
_INTEGER_PREFIX = re.compile(r"\s*([+-]?\d+)")

# Anything larger would be infinite as a double.
_MAX_EXPONENT = 308
# Line arithmetic runs here; bounded inputs fit with room to spare.
_ARITHMETIC = Context(prec=1000)


@dataclass(frozen=True)
class CalculatedLineItem:
    description: str
    quantity: str
    unit_price: int
    vat_rate_id: str
    vat_rate_percent: Percent
    net_amount: int
    vat_amount: int
    line_total: int
    sort_order: Optional[int] = None


@dataclass(frozen=True)
class VatBreakdownEntry:
    vat_rate_id: str
    vat_rate_percent: Percent
    net_amount: int
    vat_amount: int


@dataclass(frozen=True)
class InvoiceTotals:
    subtotal: int = 0
    vat_amount: int = 0
    total_amount: int = 0
    calculated_items: List[CalculatedLineItem] = field(default_factory=list)
    vat_breakdown: List[VatBreakdownEntry] = field(default_factory=list)


def money_round(value: Decimal) -> int:
    with localcontext() as ctx:
        # quantize needs a digit of precision for every integer digit
        ctx.prec = max(ctx.prec, value.adjusted() + 2)
        return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float, Decimal)) and not isinstance(value, bool)


def _bounded(value: Decimal) -> Optional[Decimal]:
    if not value.is_finite() or value.adjusted() > _MAX_EXPONENT:
        return None
    return value


def _to_decimal(value: Any) -> Optional[Decimal]:
    if value is None or isinstance(value, bool):
        return None
    try:
        if isinstance(value, (int, Decimal)):
            parsed = Decimal(value)
        else:
            parsed = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    return _bounded(parsed)


def parse_decimal_prefix(value: Any) -> Optional[Decimal]:
    """Read a number the way a lenient float parse does.

    Numbers are taken as they are. Strings contribute their leading decimal
    literal and any trailing text is ignored, so ``"2abc"`` reads as 2 and
    ``"1_000"`` as 1. Returns None when nothing numeric leads the value or
    when it is beyond float range.
    """
    if _is_number(value):
        return _to_decimal(value)
    if not isinstance(value, str):
        return None
    match = _DECIMAL_PREFIX.match(value)
    if not match:
        return None
    return _to_decimal(match.group(1))


def _parse_quantity(value: Any) -> Decimal:
    quantity = parse_decimal_prefix(value)
    if quantity is None or quantity == 0:
        return Decimal(1)
    return quantity


def _parse_unit_price(value: Any) -> int:
    if isinstance(value, str):
        match = _INTEGER_PREFIX.match(value)
        price = _to_decimal(match.group(1)) if match else None
    else:
        price = _to_decimal(value)
    if price is None:
        return 0
    return int(price)


def _format_quantity(quantity: Decimal) -> str:
    return format(quantity.normalize(), "f")


def resolve_vat_rate(vat_rate: Any) -> Tuple[str, Percent]:
    """Return ``(vat_rate_id, vat_rate_percent)`` for a rate id or raw percent.

    A raw percent is mapped back to an id on a best-effort basis: 20, 5 and 0
    get their usual ids and any other figure is reported as ``standard``. A
    raw 0 therefore always comes back as ``zero``, never ``exempt`` or
    ``outside-scope``. A percent that is not a finite number is ignored.
    """
    if isinstance(vat_rate, str) and vat_rate in VAT_RATES:
        percent = VAT_RATES[vat_rate]
        return vat_rate, percent if percent is not None else 0
    if _is_number(vat_rate) and _to_decimal(vat_rate) is not None:
        if vat_rate == 20:
            return "standard", vat_rate
        if vat_rate == 5:
            return "reduced", vat_rate
        if vat_rate == 0:
            return "zero", vat_rate
        return DEFAULT_VAT_RATE_ID, vat_rate
    return DEFAULT_VAT_RATE_ID, VAT_RATES[DEFAULT_VAT_RATE_ID]


def calculate_vat_amount(net_amount: Any, vat_rate_percent: Any) -> int:
    if not _is_number(net_amount) or not _is_number(vat_rate_percent):
        return 0
    rate = _to_decimal(vat_rate_percent)
    if rate is None or rate <= 0:
        return 0
    net = Decimal(str(net_amount)) if isinstance(net_amount, float) else Decimal(net_amount)
    if not net.is_finite():
        return 0
    with localcontext(_ARITHMETIC):
        return money_round(net * rate / Decimal(100))


def calculate_line_item(item: RawLineItem) -> CalculatedLineItem:
    if not isinstance(item, Mapping):
        item = {}

    quantity = _parse_quantity(item.get("quantity"))
    unit_price = _parse_unit_price(item.get("unit_price"))
    vat_rate_id, vat_rate_percent = resolve_vat_rate(item.get("vat_rate"))

    with localcontext(_ARITHMETIC):
        net_amount = money_round(quantity * unit_price)
        quantity_text = _format_quantity(quantity)
    vat_amount = calculate_vat_amount(net_amount, vat_rate_percent)

    description = item.get("description") or ""
    return CalculatedLineItem(
        description=description if isinstance(description, str) else str(description),
        quantity=quantity_text,
        unit_price=unit_price,
        vat_rate_id=vat_rate_id,
        vat_rate_percent=vat_rate_percent,
        net_amount=net_amount,
        vat_amount=vat_amount,
        line_total=net_amount + vat_amount,
        sort_order=item.get("sort_order"),
    )


def build_vat_breakdown(lines: Iterable[Any]) -> List[VatBreakdownEntry]:
    """Group lines by rate, highest percent first.

    Works on anything exposing ``vat_rate_id``, ``vat_rate_percent``,
    ``net_amount`` and ``vat_amount``, so stored invoice items can be
    summarised the same way as freshly calculated ones.
    """
    groups: Dict[Tuple[str, Percent], Dict[str, int]] = {}
    for line in lines:
        key = (line.vat_rate_id, line.vat_rate_percent)
        bucket = groups.setdefault(key, {"net_amount": 0, "vat_amount": 0})
        bucket["net_amount"] += line.net_amount or 0
        bucket["vat_amount"] += line.vat_amount or 0

    breakdown = [
        VatBreakdownEntry(vat_rate_id=rate_id, vat_rate_percent=percent, **amounts)
        for (rate_id, percent), amounts in groups.items()
    ]
    # sorted() is stable, equal percents keep first-seen order
    return sorted(breakdown, key=lambda entry: entry.vat_rate_percent, reverse=True)


def calculate_invoice_totals(items: Any) -> InvoiceTotals:
    if not isinstance(items, (list, tuple)) or not items:
        return InvoiceTotals()

    calculated_items = []
    subtotal = 0
    total_vat = 0
    for index, item in enumerate(items):
        calculated = calculate_line_item(item)
        # an explicit sort_order, even None, is kept as given
        if not (isinstance(item, Mapping) and "sort_order" in item):
            calculated = replace(calculated, sort_order=index)
        calculated_items.append(calculated)
        subtotal += calculated.net_amount
        total_vat += calculated.vat_amount

    return InvoiceTotals(
        subtotal=subtotal,
        vat_amount=total_vat,
        total_amount=subtotal + total_vat,
        calculated_items=calculated_items,
        vat_breakdown=build_vat_breakdown(calculated_items),
    )


def format_amount(amount_in_pence: Union[int, float], currency: str = "GBP") -> str:
    symbol = CURRENCY_SYMBOLS.get(currency, f"{currency} ")
    amount = Decimal(amount_in_pence) / Decimal(100)
    return f"{symbol}{amount:.2f}"


def to_pence(amount: Any) -> int:
    value = parse_decimal_prefix(amount)
    if value is None:
        return 0
    with localcontext(_ARITHMETIC):
        return money_round(value * 100)


def from_pence(pence: Any) -> float:
    if not _is_number(pence):
        return 0
    return pence / 100


def parse_date(value: str) -> date:
    return datetime.strptime(value, "%Y-%m-%d").date()


def is_valid_date(value: Any) -> bool:
    if not isinstance(value, str) or not _DATE_PATTERN.fullmatch(value):
        return False
    try:
        parse_date(value)
    except ValueError:
        return False
    return True


def calculate_due_date(invoice_date: Union[str, date], payment_terms_days: int = 30) -> str:
    if isinstance(invoice_date, date):
        start = invoice_date
    else:
        try:
            start = parse_date(invoice_date)
        except (TypeError, ValueError):
            start = date.today()
    return (start + timedelta(days=payment_terms_days)).isoformat()
