"""HTML assembly for booking service documents (invoices and receipts).

The output is a self-contained HTML page meant for ``PDFGenerationService``;
every interpolated value is escaped so booking notes or customer names can
never inject markup into the document.
"""
from __future__ import annotations

import html
from datetime import datetime
from typing import Any, Dict, Optional


COMPANY_NAME = "PumpPro"
LOGO_PATH = "/favicon.png"
CURRENCY_SYMBOL = "₪"

LABELS = {
    "title": "Service Document",
    "document_date": "Document Date",
    "seller": "Seller",
    "driver": "Driver",
    "contractor": "Contractor",
    "provider_signature": "Provider Signature",
    "customer": "Customer",
    "company": "Company",
    "tax_number": "Tax Number",
    "name": "Name",
    "phone": "Phone",
    "address": "Address",
    "service_info": "Service Information",
    "service_type": "Service Type",
    "booking_number": "Booking Number",
    "service_date": "Service Date",
    "service_time": "Service Time",
    "service_address": "Service Address",
    "notes": "Notes",
    "payment_details": "Payment Details",
    "amount": "Amount",
    "price": "Price",
    "payment_method": "Payment Method",
    "terms_title": "Terms and Conditions",
    "buyer_signature": "Customer's Signature",
}

TERMS = (
    "The service is provided as agreed and scheduled.",
    "Any changes must be communicated in advance.",
    "Invoices are due upon receipt unless otherwise stated.",
    "Disputes must be raised within 7 days.",
    "This document is binding once issued.",
)

_STYLES = """
    @page { size: A4; margin: 8mm; }
    body { font-family: Arial, sans-serif; font-size: 11px; }
    h1 { font-size: 18px; }
    .panel { background: #fff; border: 1px solid #e5e7eb; border-radius: 8px; padding: 10px; margin-bottom: 12px; }
    .panel-title { font-weight: 700; margin-bottom: 6px; }
    .kv { display: grid; grid-template-columns: 1fr 2fr; gap: 6px 12px; }
    .muted { color: #4b5563; }
    .purchase-amount { font-weight: 700; text-align: center; border: 2px solid #34d399; border-radius: 8px; padding: 8px; }
    .header { display: flex; justify-content: space-between; align-items: center; margin-bottom: 12px; background: #1D4ED8; color: #ffffff; border-radius: 8px; padding: 12px; }
    .parties { display: grid; grid-template-columns: 1fr 1fr; gap: 12px; }
    .signatures { display: grid; grid-template-columns: 1fr 1fr; gap: 12px; }
    .sign .line { border-bottom: 2px solid #d1d5db; height: 32px; margin-bottom: 6px; }
"""


def _e(value: Any) -> str:
    return html.escape("" if value is None else str(value))


def _section(data: Dict[str, Any], key: str) -> Dict[str, Any]:
    value = data.get(key)
    return value if isinstance(value, dict) else {}


def _number(value: Any) -> Optional[float]:
    if isinstance(value, bool) or value is None or value == "":
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return None if number != number else number


def format_currency(value: Any) -> str:
    """Format as whole shekels, e.g. ``₪1,250``."""
    amount = _number(value) or 0.0
    sign = "-" if amount < 0 else ""
    return f"{sign}{CURRENCY_SYMBOL}{abs(amount):,.0f}"


def format_date(value: Optional[str]) -> str:
    """Format an ISO date/datetime string as ``dd/mm/yyyy``; ``-`` when unusable."""
    if not value:
        return "-"
    candidate = str(value).strip()
    if candidate.endswith("Z"):
        candidate = candidate[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(candidate)
    except ValueError:
        try:
            parsed = datetime.strptime(candidate[:10], "%Y-%m-%d")
        except ValueError:
            return "-"
    return parsed.strftime("%d/%m/%Y")


def infer_seller_type(booking: Optional[Dict[str, Any]]) -> Optional[str]:
    booking = booking or {}
    if booking.get("driver_id"):
        return "driver"
    if booking.get("contractor_id"):
        return "contractor"
    return None


def calculate_price(data: Dict[str, Any]) -> float:
    """Price shown on the document.

    Invoice total wins, then the booking price, then the service's private
    or business price, then a bare ``amount``.
    """
    invoice_total = _number(_section(data, "invoice").get("total_amount"))
    if invoice_total is not None:
        return invoice_total

    booking_price = _number(_section(data, "booking").get("price"))
    if booking_price:
        return booking_price

    service = _section(data, "service")
    service_price = _number(service.get("price_private")) or _number(service.get("price_business"))
    if service_price:
        return service_price

    return _number(data.get("amount")) or 0.0


def format_payment_method(data: Dict[str, Any]) -> str:
    method = data.get("payment_method")
    if not method:
        payment_type = data.get("payment_type")
        method = "credit_card" if payment_type == "visa" else payment_type
    if not method:
        return "-"
    return str(method).replace("_", " ").upper()


def _kv_rows(rows) -> str:
    return "\n".join(
        f'      <div class="muted">{_e(label)}</div><div>{_e(value)}</div>' for label, value in rows
    )


def build_service_document_html(data: Dict[str, Any]) -> str:
    """Assemble the service document HTML from booking/invoice data.

    ``data`` follows the booking screen payload: ``invoice``, ``booking``,
    ``contractor``, ``customer``, ``service`` and ``companyInfo`` sections,
    ``doc_type`` (``invoice`` or ``receipt``) and the payment fields.  Only
    receipts carry the payment details panel.
    """
    data = data or {}
    t = LABELS
    company = _section(data, "companyInfo")
    booking = _section(data, "booking")
    invoice = _section(data, "invoice")
    contractor = _section(data, "contractor")
    customer = _section(data, "customer")
    service = _section(data, "service")

    seller_type = infer_seller_type(booking)
    provider_title = t.get(seller_type or "seller", t["seller"])
    customer_company = customer.get("business_name") or customer.get("name") or data.get("customer_name") or "-"
    service_type = service.get("name") or booking.get("service_type") or "-"

    company_lines = []
    if company.get("address"):
        company_lines.append(f"<div>{_e(company['address'])}</div>")
    if company.get("phone"):
        company_lines.append(f"<div>{_e(company['phone'])}</div>")
    if company.get("tax_id"):
        company_lines.append(f"<div>{_e(t['tax_number'])}: {_e(company['tax_id'])}</div>")

    payment_panel = ""
    if data.get("doc_type") == "receipt":
        payment_panel = f"""
  <div class="panel">
    <div class="panel-title">{_e(t['payment_details'])}</div>
    <div class="kv">
{_kv_rows([(t['amount'], format_currency(invoice.get('total_amount'))), (t['payment_method'], format_payment_method(data))])}
    </div>
  </div>"""

    service_rows = _kv_rows([
        (t["service_type"], service_type),
        (t["booking_number"], booking.get("booking_number") or "-"),
        (t["service_date"], format_date(booking.get("scheduled_date"))),
        (t["service_time"], booking.get("scheduled_time") or "-"),
        (t["service_address"], booking.get("service_address") or "-"),
        (t["notes"], booking.get("notes") or "-"),
    ])
    terms = "\n".join(f"      <li>{_e(term)}</li>" for term in TERMS)

    return f"""<!DOCTYPE html>
<html>
<head>
  <meta charset="UTF-8" />
  <meta name="viewport" content="width=device-width, initial-scale=1.0" />
  <title>{_e(t['title'])}</title>
  <style>{_STYLES}</style>
</head>
<body>
  <div class="header">
    <div style="display:flex;gap:12px;align-items:center;">
      <img src="{_e(company.get('logo_url') or LOGO_PATH)}" alt="Logo" style="width:48px;height:48px;object-fit:contain;background:#ffffff;border-radius:8px;padding:4px;" />
      <div>
        <h1 style="margin:0 0 4px 0;">{_e(company.get('name') or COMPANY_NAME)}</h1>
        {''.join(company_lines)}
      </div>
    </div>
    <div style="text-align:right;">
      <div style="font-weight:700;">{_e(t['title'])}</div>
      <div>{_e(t['document_date'])}</div>
      <div style="font-weight:700;">{_e(format_date(invoice.get('created_at')))}</div>
    </div>
  </div>

  <div class="parties">
    <div class="panel">
      <div class="panel-title">{_e(provider_title)}</div>
      <div><span class="muted">{_e(t['name'])}:</span> {_e(contractor.get('name') or '-')}</div>
      <div><span class="muted">{_e(t['phone'])}:</span> {_e(contractor.get('phone') or '-')}</div>
    </div>
    <div class="panel">
      <div class="panel-title">{_e(t['customer'])}</div>
      <div><span class="muted">{_e(t['company'])}:</span> {_e(customer_company)}</div>
      <div><span class="muted">{_e(t['phone'])}:</span> {_e(customer.get('phone') or '-')}</div>
      <div><span class="muted">{_e(t['address'])}:</span> {_e(customer.get('address') or '-')}</div>
    </div>
  </div>

  <div class="panel">
    <div class="panel-title">{_e(t['service_info'])}</div>
    <div class="kv">
{service_rows}
    </div>
  </div>

  <div class="panel">
    <div class="panel-title">{_e(t['price'])}</div>
    <div class="purchase-amount">{_e(format_currency(calculate_price(data)))}</div>
  </div>
{payment_panel}
  <div class="panel">
    <div class="panel-title">{_e(t['terms_title'])}</div>
    <ul style="margin:0;padding-left:18px;">
{terms}
    </ul>
  </div>

  <div class="signatures">
    <div class="sign">
      <div class="line"></div>
      <div>{_e(t['provider_signature'])}</div>
    </div>
    <div class="sign">
      <div class="line"></div>
      <div>{_e(t['buyer_signature'])}</div>
    </div>
  </div>
</body>
</html>"""


__all__ = [
    "build_service_document_html",
    "calculate_price",
    "format_currency",
    "format_date",
    "format_payment_method",
    "infer_seller_type",
]
