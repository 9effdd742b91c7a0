import logging
from dataclasses import asdict
from datetime import date
from typing import Any, Dict, List, Optional

from fastapi import Body, Depends, FastAPI, Query, status
from fastapi.responses import JSONResponse, RedirectResponse, Response
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload, selectinload

from .config import (
    DEFAULT_CURRENCY,
    DEFAULT_LANGUAGE,
    DEFAULT_PAYMENT_TERMS_DAYS,
    INVOICE_PREFIX,
    LOG_LEVEL,
)
from .database import get_db
from .models import Customer, Invoice, InvoiceItem, InvoiceSequence
from .pdf import build_invoice_pdf_payload, render_invoice_pdf
from .services import (
    VALID_VAT_RATE_IDS,
    VAT_RATE_NAMES,
    VAT_RATES,
    calculate_due_date,
    calculate_invoice_totals,
    parse_date,
)
from .status import (
    INVOICE_STATUSES,
    PaymentDetailsError,
    StatusTransitionError,
    get_valid_transitions,
    is_deletable,
    is_invoice_overdue,
    prepare_status_change,
)
from .validation import (
    issues_as_details,
    validate_customer_payload,
    validate_invoice_payload,
    validate_line_items,
)

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="UK Bookkeeping")

CUSTOMER_TEXT_FIELDS = (
    "email",
    "phone",
    "vat_number",
    "address_line1",
    "address_line2",
    "city",
    "county",
    "postcode",
    "country",
)


def render_error(
    code: str,
    message_en: str,
    message_tr: str,
    status_code: int = status.HTTP_400_BAD_REQUEST,
    details: Optional[List[Dict[str, str]]] = None,
    **extra: Any,
) -> JSONResponse:
    error: Dict[str, Any] = {"code": code, "message": {"en": message_en, "tr": message_tr}}
    if details:
        error["details"] = details
    error.update(extra)
    return JSONResponse({"success": False, "error": error}, status_code=status_code)


def _invoice_not_found() -> JSONResponse:
    return render_error(
        "RES_NOT_FOUND", "Invoice not found", "Fatura bulunamadı", status.HTTP_404_NOT_FOUND
    )


def _customer_not_found() -> JSONResponse:
    return render_error(
        "RES_NOT_FOUND", "Customer not found", "Müşteri bulunamadı", status.HTTP_404_NOT_FOUND
    )


def _clean_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _get_customer(db: Session, customer_id: int) -> Optional[Customer]:
    return db.query(Customer).filter(Customer.id == customer_id).first()


def _get_invoice(db: Session, invoice_id: int) -> Optional[Invoice]:
    return (
        db.query(Invoice)
        .options(selectinload(Invoice.items), joinedload(Invoice.customer))
        .filter(Invoice.id == invoice_id)
        .first()
    )


def _serialize_customer(customer: Customer) -> Dict[str, Any]:
    data = {"id": customer.id, "name": customer.name}
    for field in CUSTOMER_TEXT_FIELDS:
        data[field] = getattr(customer, field)
    data["payment_terms_days"] = customer.payment_terms_days
    return data


def _serialize_item(item: InvoiceItem) -> Dict[str, Any]:
    return {
        "id": item.id,
        "description": item.description,
        "quantity": item.quantity,
        "unit_price": item.unit_price,
        "vat_rate_id": item.vat_rate_id,
        "vat_rate_percent": float(item.vat_rate_percent),
        "net_amount": item.net_amount,
        "vat_amount": item.vat_amount,
        "line_total": item.line_total,
        "sort_order": item.sort_order,
    }


def _serialize_invoice(invoice: Invoice, include_items: bool = False) -> Dict[str, Any]:
    data = {
        "id": invoice.id,
        "invoice_number": invoice.invoice_number,
        "status": invoice.status,
        "issue_date": invoice.issue_date.isoformat(),
        "due_date": invoice.due_date.isoformat(),
        "tax_point": invoice.tax_point.isoformat() if invoice.tax_point else None,
        "customer_id": invoice.customer_id,
        "customer_name": invoice.customer_name,
        "customer_address": invoice.customer_address,
        "customer_email": invoice.customer_email,
        "customer_vat_number": invoice.customer_vat_number,
        "subtotal": invoice.subtotal,
        "vat_amount": invoice.vat_amount,
        "total_amount": invoice.total_amount,
        "currency": invoice.currency,
        "notes": invoice.notes,
        "paid_at": invoice.paid_at.isoformat() if invoice.paid_at else None,
        "is_overdue": is_invoice_overdue(invoice),
    }
    if include_items:
        items = sorted(invoice.items, key=lambda i: (i.sort_order, i.id))
        data["items"] = [_serialize_item(item) for item in items]
    return data


def _next_invoice_number(db: Session, year_full: int) -> str:
    seq = (
        db.query(InvoiceSequence)
        .filter(InvoiceSequence.year_full == year_full)
        .with_for_update()
        .first()
    )
    if not seq:
        seq = InvoiceSequence(year_full=year_full, next_number=1)
        db.add(seq)
        db.flush()
    n = seq.next_number
    seq.next_number = n + 1
    return f"{INVOICE_PREFIX}-{year_full}-{n:04d}"


def _overdue_invoices(db: Session) -> List[Invoice]:
    return (
        db.query(Invoice)
        .filter(Invoice.status == "pending", Invoice.due_date < date.today())
        .order_by(Invoice.due_date.asc())
        .all()
    )


@app.get("/")
def root() -> RedirectResponse:
    return RedirectResponse(url="/api/invoices", status_code=status.HTTP_307_TEMPORARY_REDIRECT)


@app.get("/api/vat-rates")
def list_vat_rates():
    return {
        "success": True,
        "data": [
            {"id": rate_id, "rate": VAT_RATES[rate_id], "name": dict(VAT_RATE_NAMES[rate_id])}
            for rate_id in VALID_VAT_RATE_IDS
        ],
    }


@app.post("/api/customers", status_code=status.HTTP_201_CREATED)
def create_customer(payload: Dict[str, Any] = Body(...), db: Session = Depends(get_db)):
    result = validate_customer_payload(payload)
    if not result.is_valid:
        return render_error(
            "VALIDATION_ERROR",
            "Invalid customer data",
            "Geçersiz müşteri verileri",
            details=issues_as_details(result.errors),
        )

    terms = payload.get("payment_terms_days")
    customer = Customer(
        name=payload["name"].strip(),
        payment_terms_days=terms if terms != "" else None,
        **{field: _clean_text(payload.get(field)) for field in CUSTOMER_TEXT_FIELDS},
    )
    db.add(customer)
    db.commit()
    db.refresh(customer)
    logger.info("Created customer %s (%s)", customer.id, customer.name)
    return {"success": True, "data": _serialize_customer(customer)}


@app.get("/api/customers")
def list_customers(db: Session = Depends(get_db)):
    customers = db.query(Customer).order_by(Customer.name).all()
    return {"success": True, "data": [_serialize_customer(c) for c in customers]}


@app.get("/api/customers/{customer_id}")
def get_customer(customer_id: int, db: Session = Depends(get_db)):
    customer = _get_customer(db, customer_id)
    if not customer:
        return _customer_not_found()
    return {"success": True, "data": _serialize_customer(customer)}


@app.post("/api/invoices/calculate")
def preview_invoice_totals(payload: Dict[str, Any] = Body(...)):
    items = payload.get("items")
    result = validate_line_items(items)
    if not result.is_valid:
        return render_error(
            "VALIDATION_ERROR",
            "Invalid invoice items",
            "Geçersiz fatura kalemleri",
            details=issues_as_details(result.errors),
        )
    return {"success": True, "data": asdict(calculate_invoice_totals(items))}


@app.post("/api/invoices", status_code=status.HTTP_201_CREATED)
def create_invoice(payload: Dict[str, Any] = Body(...), db: Session = Depends(get_db)):
    items = payload.get("items")
    errors = validate_invoice_payload(payload).errors + validate_line_items(items).errors
    if errors:
        return render_error(
            "VALIDATION_ERROR",
            "Failed to create invoice",
            "Fatura oluşturulamadı",
            details=issues_as_details(errors),
        )

    customer = _get_customer(db, payload["customer_id"])
    if not customer:
        return _customer_not_found()

    issue_date = parse_date(payload["invoice_date"])
    if payload.get("due_date"):
        due_date = parse_date(payload["due_date"])
    else:
        terms = customer.payment_terms_days
        if terms is None:
            terms = DEFAULT_PAYMENT_TERMS_DAYS
        due_date = parse_date(calculate_due_date(issue_date, terms))
    tax_point = parse_date(payload["tax_point"]) if payload.get("tax_point") else None
    currency = (payload.get("currency") or DEFAULT_CURRENCY).upper()

    totals = calculate_invoice_totals(items)

    def build_invoice() -> Invoice:
        invoice = Invoice(
            invoice_number=_next_invoice_number(db, issue_date.year),
            status="draft",
            issue_date=issue_date,
            due_date=due_date,
            tax_point=tax_point,
            customer_id=customer.id,
            customer_name=customer.name,
            customer_address=customer.formatted_address(),
            customer_email=customer.email,
            customer_vat_number=customer.vat_number,
            subtotal=totals.subtotal,
            vat_amount=totals.vat_amount,
            total_amount=totals.total_amount,
            currency=currency,
            notes=payload.get("notes") or None,
        )
        for position, calculated in enumerate(totals.calculated_items):
            sort_order = calculated.sort_order
            if not isinstance(sort_order, int) or isinstance(sort_order, bool):
                sort_order = position
            invoice.items.append(
                InvoiceItem(
                    description=calculated.description,
                    quantity=calculated.quantity,
                    unit_price=calculated.unit_price,
                    vat_rate_id=calculated.vat_rate_id,
                    vat_rate_percent=calculated.vat_rate_percent,
                    net_amount=calculated.net_amount,
                    vat_amount=calculated.vat_amount,
                    line_total=calculated.line_total,
                    sort_order=sort_order,
                )
            )
        db.add(invoice)
        return invoice

    for attempt in range(2):
        try:
            invoice = build_invoice()
            db.commit()
            break
        except IntegrityError:
            db.rollback()
            if attempt == 1:
                logger.exception("Could not assign an invoice number for %s", issue_date.year)
                raise
            logger.warning("Invoice number clash for %s, retrying", issue_date.year)

    db.refresh(invoice)
    logger.info(
        "Created invoice %s for customer %s: subtotal=%s vat=%s total=%s",
        invoice.invoice_number,
        customer.id,
        invoice.subtotal,
        invoice.vat_amount,
        invoice.total_amount,
    )
    return {"success": True, "data": _serialize_invoice(invoice, include_items=True)}


@app.get("/api/invoices")
def list_invoices(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    status_filter: Optional[str] = Query(None, alias="status"),
    db: Session = Depends(get_db),
):
    query = db.query(Invoice)
    if status_filter:
        if status_filter not in INVOICE_STATUSES:
            return render_error(
                "VALIDATION_ERROR",
                f"Invalid status. Must be one of: {', '.join(INVOICE_STATUSES)}",
                f"Geçersiz durum. Şunlardan biri olmalıdır: {', '.join(INVOICE_STATUSES)}",
            )
        query = query.filter(Invoice.status == status_filter)

    total = query.count()
    invoices = (
        query.order_by(Invoice.issue_date.desc(), Invoice.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {
        "success": True,
        "data": {
            "invoices": [_serialize_invoice(inv) for inv in invoices],
            "total": total,
            "page": page,
            "limit": limit,
        },
    }


@app.get("/api/invoices/stats")
def invoice_stats(db: Session = Depends(get_db)):
    counts = {name: 0 for name in INVOICE_STATUSES}
    for status_name, count in (
        db.query(Invoice.status, func.count(Invoice.id)).group_by(Invoice.status).all()
    ):
        counts[status_name] = count
    overdue = _overdue_invoices(db)
    return {
        "success": True,
        "data": {
            "status_counts": counts,
            "overdue_count": len(overdue),
            "overdue_total": sum(inv.total_amount for inv in overdue),
        },
    }


@app.get("/api/invoices/overdue")
def list_overdue_invoices(db: Session = Depends(get_db)):
    invoices = _overdue_invoices(db)
    return {"success": True, "data": [_serialize_invoice(inv) for inv in invoices]}


@app.get("/api/invoices/{invoice_id}")
def invoice_detail(invoice_id: int, db: Session = Depends(get_db)):
    invoice = _get_invoice(db, invoice_id)
    if not invoice:
        return _invoice_not_found()
    return {"success": True, "data": _serialize_invoice(invoice, include_items=True)}


@app.patch("/api/invoices/{invoice_id}/status")
def change_invoice_status(
    invoice_id: int, payload: Dict[str, Any] = Body(...), db: Session = Depends(get_db)
):
    target = payload.get("status")
    if target not in INVOICE_STATUSES:
        return render_error(
            "VALIDATION_ERROR",
            f"Invalid status. Must be one of: {', '.join(INVOICE_STATUSES)}",
            f"Geçersiz durum. Şunlardan biri olmalıdır: {', '.join(INVOICE_STATUSES)}",
        )
    payment_details = payload.get("payment_details")
    if payment_details is not None and not isinstance(payment_details, dict):
        return render_error(
            "VALIDATION_ERROR", "Invalid payment details", "Geçersiz ödeme detayları"
        )

    invoice = _get_invoice(db, invoice_id)
    if not invoice:
        return _invoice_not_found()

    try:
        change = prepare_status_change(invoice.status, target, payment_details)
    except PaymentDetailsError as exc:
        return render_error(
            "VALIDATION_ERROR",
            str(exc),
            "Geçersiz ödeme detayları",
            details=[{"field": field, "message": msg} for field, msg in exc.errors.items()],
        )
    except StatusTransitionError as exc:
        valid = get_valid_transitions(invoice.status)
        return render_error(
            "BUS_INVALID_STATUS_TRANSITION",
            str(exc),
            f"Durum '{invoice.status}' durumundan '{target}' durumuna değiştirilemez. "
            f"Geçerli geçişler: {', '.join(valid) or 'yok'}",
            valid_transitions=valid,
        )

    invoice.status = change.new_status
    if change.paid_at:
        invoice.paid_at = change.paid_at
    if change.payment_notes:
        note = f"[Payment received: {change.paid_at.isoformat()}] {change.payment_notes}"
        invoice.notes = f"{invoice.notes}\n{note}" if invoice.notes else note
    db.commit()
    db.refresh(invoice)
    logger.info(
        "Invoice %s status %s -> %s",
        invoice.invoice_number,
        change.previous_status,
        change.new_status,
    )

    data = _serialize_invoice(invoice)
    data["status_change"] = {
        "previous_status": change.previous_status,
        "new_status": change.new_status,
        "changed_at": change.updated_at.isoformat(),
    }
    if change.new_status == "paid" and payment_details:
        data["payment"] = {
            "paid_at": change.paid_at.isoformat(),
            "method": change.payment_method,
            "reference": change.payment_reference,
            "amount": (
                change.payment_amount
                if change.payment_amount is not None
                else invoice.total_amount
            ),
        }
    return {"success": True, "data": data}


@app.delete("/api/invoices/{invoice_id}")
def delete_invoice(invoice_id: int, db: Session = Depends(get_db)):
    invoice = db.query(Invoice).filter(Invoice.id == invoice_id).first()
    if not invoice:
        return _invoice_not_found()
    if not is_deletable(invoice.status):
        return render_error(
            "BUS_INVOICE_NOT_DELETABLE",
            "Only draft invoices can be deleted. Consider cancelling this invoice instead.",
            "Yalnızca taslak faturalar silinebilir. Bu faturayı iptal etmeyi düşünün.",
            status.HTTP_409_CONFLICT,
        )
    number = invoice.invoice_number
    db.delete(invoice)
    db.commit()
    logger.info("Deleted draft invoice %s", number)
    return {
        "success": True,
        "message": {"en": "Invoice deleted successfully", "tr": "Fatura başarıyla silindi"},
    }


@app.get("/api/invoices/{invoice_id}/pdf")
def invoice_pdf(
    invoice_id: int,
    lang: str = Query(DEFAULT_LANGUAGE),
    db: Session = Depends(get_db),
) -> Response:
    invoice = _get_invoice(db, invoice_id)
    if not invoice:
        return _invoice_not_found()

    payload = build_invoice_pdf_payload(invoice, invoice.items, lang)
    pdf_bytes = render_invoice_pdf(payload)
    filename = f"invoice_{invoice.invoice_number}.pdf"
    return Response(
        content=pdf_bytes,
        media_type="application/pdf",
        headers={"Content-Disposition": f'inline; filename="{filename}"'},
    )
