from decimal import Decimal
from io import BytesIO
from typing import Dict, List

from reportlab.lib.pagesizes import A4
from reportlab.pdfgen import canvas

from .config import DEFAULT_LANGUAGE, SUPPORTED_LANGUAGES
from .models import Invoice, InvoiceItem
from .services import VAT_RATE_NAMES, build_vat_breakdown, format_amount
from .status import get_status_description

LABELS = {
    "en": {
        "title": "Invoice",
        "status": "Status",
        "bill_to": "Bill to",
        "vat_number": "VAT No.",
        "issue_date": "Invoice date",
        "due_date": "Due date",
        "tax_point": "Tax point",
        "currency": "Currency",
        "items": "Items",
        "description": "Description",
        "quantity": "Qty",
        "unit_price": "Unit price",
        "vat_rate": "VAT %",
        "vat": "VAT",
        "amount": "Amount",
        "vat_breakdown": "VAT breakdown",
        "net": "Net",
        "subtotal": "Subtotal",
        "total": "Total",
        "notes": "Notes",
    },
    "tr": {
        "title": "Fatura",
        "status": "Durum",
        "bill_to": "Alıcı",
        "vat_number": "KDV No.",
        "issue_date": "Fatura tarihi",
        "due_date": "Vade tarihi",
        "tax_point": "Vergi noktası",
        "currency": "Para birimi",
        "items": "Kalemler",
        "description": "Açıklama",
        "quantity": "Miktar",
        "unit_price": "Birim fiyat",
        "vat_rate": "KDV %",
        "vat": "KDV",
        "amount": "Tutar",
        "vat_breakdown": "KDV dökümü",
        "net": "Net",
        "subtotal": "Ara toplam",
        "total": "Toplam",
        "notes": "Notlar",
    },
}


def _format_percent(value) -> str:
    return f"{Decimal(str(value)).normalize():f}"


def build_invoice_pdf_payload(
    invoice: Invoice, items: List[InvoiceItem], lang: str = DEFAULT_LANGUAGE
) -> Dict:
    if lang not in SUPPORTED_LANGUAGES:
        lang = DEFAULT_LANGUAGE
    sorted_items = sorted(items, key=lambda i: (i.sort_order, i.id))

    if invoice.status != "draft":
        required = {
            "subtotal": invoice.subtotal,
            "vat_amount": invoice.vat_amount,
            "total_amount": invoice.total_amount,
            "customer_name": invoice.customer_name,
        }
        for field, value in required.items():
            if value is None:
                raise ValueError(f"Missing stored value: {field} for invoice {invoice.id}")

    currency = invoice.currency
    return {
        "lang": lang,
        "labels": LABELS[lang],
        "invoice_number": invoice.invoice_number,
        "status": get_status_description(invoice.status, lang),
        "customer_name": invoice.customer_name or "",
        "customer_address": invoice.customer_address or "",
        "customer_vat_number": invoice.customer_vat_number or "",
        "issue_date": invoice.issue_date,
        "due_date": invoice.due_date,
        "tax_point": invoice.tax_point,
        "currency": currency,
        "notes": invoice.notes or "",
        "totals": {
            "subtotal": format_amount(invoice.subtotal or 0, currency),
            "vat": format_amount(invoice.vat_amount or 0, currency),
            "total": format_amount(invoice.total_amount or 0, currency),
        },
        "vat_breakdown": [
            {
                "name": VAT_RATE_NAMES.get(entry.vat_rate_id, {}).get(lang, entry.vat_rate_id),
                "rate": _format_percent(entry.vat_rate_percent),
                "net": format_amount(entry.net_amount, currency),
                "vat": format_amount(entry.vat_amount, currency),
            }
            for entry in build_vat_breakdown(sorted_items)
        ],
        "lines": [
            {
                "index": idx,
                "description": item.description or "",
                "quantity": item.quantity,
                "unit_price": format_amount(item.unit_price, currency),
                "vat_rate": _format_percent(item.vat_rate_percent),
                "vat": format_amount(item.vat_amount, currency),
                "total": format_amount(item.line_total, currency),
            }
            for idx, item in enumerate(sorted_items, start=1)
        ],
    }


def render_invoice_pdf(payload: Dict) -> bytes:
    labels = payload["labels"]
    buffer = BytesIO()
    pdf = canvas.Canvas(buffer, pagesize=A4)
    width, height = A4

    y = height - 40
    pdf.setFont("Helvetica-Bold", 16)
    pdf.drawString(40, y, f"{labels['title']} {payload['invoice_number']}")

    pdf.setFont("Helvetica", 10)
    y -= 18
    pdf.drawString(40, y, f"{labels['status']}: {payload['status']}")
    y -= 14
    pdf.drawString(40, y, f"{labels['bill_to']}: {payload['customer_name']}")
    if payload["customer_address"]:
        y -= 14
        pdf.drawString(40, y, payload["customer_address"][:100])
    if payload["customer_vat_number"]:
        y -= 14
        pdf.drawString(40, y, f"{labels['vat_number']}: {payload['customer_vat_number']}")
    y -= 14
    pdf.drawString(
        40,
        y,
        f"{labels['issue_date']}: {payload['issue_date']}   "
        f"{labels['due_date']}: {payload['due_date']}",
    )
    if payload["tax_point"]:
        y -= 14
        pdf.drawString(40, y, f"{labels['tax_point']}: {payload['tax_point']}")
    y -= 14
    pdf.drawString(40, y, f"{labels['currency']}: {payload['currency']}")

    y -= 22
    pdf.setFont("Helvetica-Bold", 11)
    pdf.drawString(40, y, labels["items"])
    y -= 16
    pdf.setFont("Helvetica", 9)
    headers = [
        "#",
        labels["description"],
        labels["quantity"],
        labels["unit_price"],
        labels["vat_rate"],
        labels["vat"],
        labels["amount"],
    ]
    col_x = [40, 60, 270, 330, 400, 450, 510]
    for hx, text in zip(col_x, headers):
        pdf.drawString(hx, y, text)
    y -= 12

    for item in payload["lines"]:
        if y < 60:
            pdf.showPage()
            y = height - 60
            pdf.setFont("Helvetica", 9)
        pdf.drawString(col_x[0], y, str(item["index"]))
        pdf.drawString(col_x[1], y, item["description"][:45])
        pdf.drawRightString(col_x[2] + 40, y, item["quantity"])
        pdf.drawRightString(col_x[3] + 55, y, item["unit_price"])
        pdf.drawRightString(col_x[4] + 30, y, item["vat_rate"])
        pdf.drawRightString(col_x[5] + 50, y, item["vat"])
        pdf.drawRightString(col_x[6] + 50, y, item["total"])
        y -= 12

    if y < 140:
        pdf.showPage()
        y = height - 60

    y -= 18
    pdf.setFont("Helvetica-Bold", 11)
    pdf.drawString(40, y, labels["vat_breakdown"])
    pdf.setFont("Helvetica", 9)
    for entry in payload["vat_breakdown"]:
        y -= 12
        pdf.drawString(
            40,
            y,
            f"{entry['name']} ({entry['rate']}%)   "
            f"{labels['net']}: {entry['net']}   {labels['vat']}: {entry['vat']}",
        )

    totals = payload["totals"]
    y -= 22
    pdf.setFont("Helvetica-Bold", 11)
    pdf.drawString(40, y, labels["total"])
    pdf.setFont("Helvetica", 10)
    y -= 14
    pdf.drawString(40, y, f"{labels['subtotal']}: {totals['subtotal']}")
    y -= 14
    pdf.drawString(40, y, f"{labels['vat']}: {totals['vat']}")
    y -= 14
    pdf.drawString(40, y, f"{labels['total']}: {totals['total']}")

    if payload["notes"]:
        y -= 22
        pdf.setFont("Helvetica-Bold", 11)
        pdf.drawString(40, y, labels["notes"])
        pdf.setFont("Helvetica", 9)
        for line in payload["notes"].splitlines()[:10]:
            y -= 12
            pdf.drawString(40, y, line[:110])

    pdf.save()
    buffer.seek(0)
    return buffer.getvalue()
