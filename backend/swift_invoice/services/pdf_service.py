"""PDF Service

Renders an invoice to an HTML document and prints it to PDF with WeasyPrint
(A4, fixed margins). Rendering is a pure read of the invoice: nothing on the
input object or in the store is modified.

Layout:
 - header: sender logo + company name (brand fallback), invoice number and dates
 - billed-to / pay-to columns
 - items table (description, qty, rate, amount; two decimals)
 - totals: subtotal, tax line only when tax percentage > 0, grand total with currency code
 - footer: notes / UPI id, and the payment QR image when present

Images (logo, QR) are fetched only from data: and https: URLs. An image that
cannot be loaded fails the render instead of being silently left out.
"""
from __future__ import annotations

from datetime import datetime
from html import escape
from typing import Any, List, Mapping, Optional
import logging

from ..config.settings import get_settings
from ..utils.errors import RenderError
from ..utils.money_format import format_amount

LOGGER = logging.getLogger("pdf_service")

ALLOWED_IMAGE_SCHEMES = ("data:", "https:")

_STYLES = """
body { font-family: 'Inter', 'Helvetica', sans-serif; color: #1a1a1a; margin: 0; line-height: 1.5; }
table { width: 100%; border-collapse: collapse; }
.header td, .details td, .footer td { vertical-align: top; border: none; padding: 0; }
.logo { max-width: 150px; }
.brand { margin: 10px 0 0 0; font-weight: 900; }
.invoice-details { text-align: right; }
.invoice-details h1 { font-size: 32px; margin: 0; font-weight: 800; color: #000; }
.header { margin-bottom: 48px; }
.details { margin-bottom: 40px; }
.section-title { font-size: 12px; text-transform: uppercase; color: #666; letter-spacing: 0.1em; margin-bottom: 8px; }
.detail-item { font-size: 14px; margin: 0; }
.items { margin-bottom: 32px; }
.items th { text-align: left; padding: 12px; border-bottom: 2px solid #000; font-size: 12px; text-transform: uppercase; color: #666; }
.items td { padding: 12px; border-bottom: 1px solid #eee; font-size: 14px; }
.num { text-align: right; }
.center { text-align: center; }
.totals { margin-left: auto; width: 260px; }
.totals td { padding: 8px 0; font-size: 14px; }
.totals .grand-total td { border-top: 2px solid #000; font-weight: 800; font-size: 18px; padding-top: 10px; }
.footer { margin-top: 48px; border-top: 1px solid #eee; }
.footer td { padding-top: 20px; }
.notes { font-size: 12px; color: #666; }
.qr-code { width: 100px; height: 100px; }
"""


def _text(value: Any) -> str:
    return escape(str(value)) if value not in (None, "") else ""


def _attr(value: Any) -> str:
    return escape(str(value), quote=True)


def _format_date(value: Optional[datetime]) -> str:
    if not value:
        return "N/A"
    return value.strftime("%d %b %Y")


def _plain_number(value: float) -> str:
    return f"{value:g}"


def _party_block(title: str, party: Mapping[str, Any], align_right: bool = False) -> str:
    style = ' style="text-align: right;"' if align_right else ''
    return (
        f'<td{style}>'
        f'<div class="section-title">{title}</div>'
        f'<p class="detail-item"><strong>{_text(party.get("name"))}</strong></p>'
        f'<p class="detail-item">{_text(party.get("email"))}</p>'
        f'<p class="detail-item">{_text(party.get("address"))}</p>'
        '</td>'
    )


def _items_rows(items) -> str:
    rows = []
    for item in items or []:
        quantity = item.get("quantity") or 0
        rows.append(
            "<tr>"
            f'<td>{_text(item.get("description"))}</td>'
            f'<td class="center">{_plain_number(float(quantity))}</td>'
            f'<td class="num">{format_amount(item.get("rate"))}</td>'
            f'<td class="num">{format_amount(item.get("amount"))}</td>'
            "</tr>"
        )
    return "".join(rows)


def render_invoice_html(invoice) -> str:  # type: ignore[no-untyped-def]
    """Build the printable HTML document for an invoice.

    Args:
        invoice: ORM invoice instance (or any object exposing the same attributes)
    """
    settings = get_settings()
    sender: Mapping[str, Any] = invoice.sender or {}
    client: Mapping[str, Any] = invoice.client or {}

    logo = sender.get("logo_image")
    logo_html = f'<img src="{_attr(logo)}" class="logo" alt="Company Logo">' if logo else ''
    brand = sender.get("company_name") or settings.BRAND_NAME

    tax_percentage = float(invoice.tax_percentage or 0)
    tax_row = ''
    if tax_percentage > 0:
        tax_label = _text(invoice.tax_name) or "Tax"
        tax_row = (
            f'<tr><td>{tax_label} ({_plain_number(tax_percentage)}%)</td>'
            f'<td class="num">{format_amount(invoice.tax_amount)}</td></tr>'
        )

    upi_html = ''
    if invoice.payment_qr:
        upi_html = f'<p style="margin-top: 10px;"><strong>UPI ID:</strong> {_text(invoice.payment_qr)}</p>'

    qr_image = invoice.qr_code_image or getattr(invoice, "qr_image_url", None)
    qr_html = ''
    if qr_image:
        qr_html = (
            '<td style="text-align: center; width: 140px;">'
            '<div class="section-title">Scan to Pay</div>'
            f'<img src="{_attr(qr_image)}" class="qr-code" alt="Payment QR Code">'
            '</td>'
        )

    notes = _text(invoice.notes) or "Thank you for your business!"

    return f"""<!DOCTYPE html>
<html>
<head>
  <meta charset="utf-8">
  <title>Invoice {_text(invoice.invoice_number)}</title>
  <style>{_STYLES}</style>
</head>
<body>
  <table class="header"><tr>
    <td>
      {logo_html}
      <h2 class="brand">{_text(brand)}</h2>
    </td>
    <td class="invoice-details">
      <h1>INVOICE</h1>
      <p class="detail-item">#{_text(invoice.invoice_number)}</p>
      <p class="detail-item">Date: {_format_date(invoice.issue_date)}</p>
      <p class="detail-item">Due: {_format_date(invoice.due_date)}</p>
    </td>
  </tr></table>

  <table class="details"><tr>
    {_party_block("Billed To", client)}
    {_party_block("Pay To", sender, align_right=True)}
  </tr></table>

  <table class="items">
    <thead>
      <tr>
        <th>Description</th>
        <th class="center">Qty</th>
        <th class="num">Rate</th>
        <th class="num">Amount</th>
      </tr>
    </thead>
    <tbody>{_items_rows(invoice.items)}</tbody>
  </table>

  <table class="totals">
    <tr><td>Subtotal</td><td class="num">{format_amount(invoice.subtotal)}</td></tr>
    {tax_row}
    <tr class="grand-total"><td>Grand Total</td><td class="num">{_text(invoice.currency)} {format_amount(invoice.total_amount)}</td></tr>
  </table>

  <table class="footer"><tr>
    <td class="notes">
      <div class="section-title">Notes / Terms</div>
      <p>{notes}</p>
      {upi_html}
    </td>
    {qr_html}
  </tr></table>
</body>
</html>"""


def _page_stylesheet() -> str:
    settings = get_settings()
    return f"@page {{ size: {settings.PDF_PAGE_SIZE}; margin: {settings.PDF_MARGIN}; }}"


def _restricted_fetcher(default_fetcher, failures: List[str]):
    """Wrap WeasyPrint's fetcher: refuse other schemes and record every failed URL."""

    def fetch(url: str, *args, **kwargs):
        if not url.lower().startswith(ALLOWED_IMAGE_SCHEMES):
            failures.append(url)
            raise ValueError(f"Refusing to fetch resource: {url[:80]}")
        try:
            return default_fetcher(url, *args, **kwargs)
        except Exception:
            failures.append(url)
            raise

    return fetch


def generate_invoice_pdf(invoice) -> bytes:  # type: ignore[no-untyped-def]
    """Render an invoice to PDF bytes.

    Raises:
        RenderError: when the HTML cannot be built or WeasyPrint fails
            (missing system libraries, unreadable image reference, ...).
    """
    inv_num = getattr(invoice, "invoice_number", "UNKNOWN")
    try:
        from weasyprint import CSS, HTML, default_url_fetcher

        html = render_invoice_html(invoice)
        failures: List[str] = []
        document = HTML(string=html, url_fetcher=_restricted_fetcher(default_url_fetcher, failures))
        pdf = document.write_pdf(stylesheets=[CSS(string=_page_stylesheet())])
        # WeasyPrint only warns about images it could not load
        if failures:
            raise ValueError(f"Could not load image: {failures[0][:80]}")
        return pdf
    except Exception as exc:
        LOGGER.error("Failed to render PDF for invoice %s: %s", inv_num, exc)
        raise RenderError(f"PDF generation failed: {exc}") from exc


__all__ = ["render_invoice_html", "generate_invoice_pdf"]
