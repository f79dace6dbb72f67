"""
Receipt PDF renderer using fpdf2.

Renders a bilingual (French/English) standardized invoice from
ReceiptDetails only. The PDF creation date is pinned to the receipt issue
date so the same details always produce the same bytes.
"""
from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP

from fpdf import FPDF

from core.logging_config import get_logger
from domain.receipt.entity import ReceiptDetails
from shared.codes.payment_codes import DEFAULT_PAYMENT_METHOD_LABEL, PAYMENT_METHOD_LABELS


logger = get_logger(__name__)


def format_currency(amount: Decimal, currency: str) -> str:
    if currency == "XOF":
        whole = int(amount.quantize(Decimal(1), rounding=ROUND_HALF_UP))
        return f"{whole:,}".replace(",", " ") + " FCFA"
    if currency == "USD":
        return f"${amount:.2f}"
    return f"{amount:.2f} {currency}"


def _text(value: object) -> str:
    # Core PDF fonts only cover latin-1
    return str(value).encode("latin-1", "replace").decode("latin-1")


class FpdfReceiptRenderer:
    media_type = "application/pdf"

    # A4 geometry, millimetres
    PAGE_WIDTH = 210
    MARGIN = 18

    PRIMARY_COLOR = (0, 102, 179)
    SECONDARY_COLOR = (100, 100, 100)
    TEXT_COLOR = (40, 40, 40)

    def render(self, details: ReceiptDetails) -> bytes:
        pdf = FPDF()
        pdf.set_creation_date(details.issue_date)
        pdf.set_title(_text(f"Facture {details.receipt_number}"))
        pdf.set_author(_text(details.pharmacy.name))
        pdf.set_margins(self.MARGIN, self.MARGIN, self.MARGIN)
        pdf.set_auto_page_break(auto=True, margin=15)
        pdf.add_page()

        self._add_pharmacy(pdf, details)
        self._add_title(pdf)
        self._add_receipt_info(pdf, details)
        if details.customer is not None:
            self._add_customer(pdf, details)
        self._add_line_items(pdf, details)
        self._add_totals(pdf, details)
        self._add_legal(pdf, details)
        self._add_footer(pdf, details)

        # fpdf2's output() returns bytearray
        document = bytes(pdf.output())
        logger.info(
            "receipt_rendered",
            receipt_number=details.receipt_number,
            size=len(document),
        )
        return document

    def _add_pharmacy(self, pdf: FPDF, details: ReceiptDetails) -> None:
        pharmacy = details.pharmacy
        pdf.set_font("Helvetica", "B", 18)
        pdf.set_text_color(*self.PRIMARY_COLOR)
        pdf.cell(0, 10, _text(pharmacy.name), align="C", new_x="LMARGIN", new_y="NEXT")

        pdf.set_font("Helvetica", size=9)
        pdf.set_text_color(*self.SECONDARY_COLOR)
        for line in (
            pharmacy.address,
            f"Tél: {pharmacy.phone} | Email: {pharmacy.email}",
            f"Licence N°: {pharmacy.license_number} | NIF: {pharmacy.tax_id}",
        ):
            pdf.cell(0, 5, _text(line), align="C", new_x="LMARGIN", new_y="NEXT")
        pdf.ln(6)

    def _add_title(self, pdf: FPDF) -> None:
        pdf.set_draw_color(*self.PRIMARY_COLOR)
        pdf.set_line_width(0.5)
        y = pdf.get_y()
        pdf.line(self.MARGIN, y, self.PAGE_WIDTH - self.MARGIN, y)
        pdf.ln(4)

        pdf.set_font("Helvetica", "B", 15)
        pdf.set_text_color(*self.PRIMARY_COLOR)
        pdf.cell(0, 10, _text("FACTURE NORMALISÉE / STANDARDIZED INVOICE"), align="C", new_x="LMARGIN", new_y="NEXT")

        y = pdf.get_y() + 2
        pdf.line(self.MARGIN, y, self.PAGE_WIDTH - self.MARGIN, y)
        pdf.ln(8)

    def _add_receipt_info(self, pdf: FPDF, details: ReceiptDetails) -> None:
        pdf.set_font("Helvetica", size=10)
        pdf.set_text_color(*self.TEXT_COLOR)
        method = PAYMENT_METHOD_LABELS.get(details.gateway, DEFAULT_PAYMENT_METHOD_LABEL)
        issued = details.issue_date
        rows = [
            (f"N° Facture / Invoice No: {details.receipt_number}", "Mode de paiement / Payment method:"),
            (f"Date: {issued.strftime('%d/%m/%Y')}", method),
            (f"Heure / Time: {issued.strftime('%H:%M:%S')} UTC", f"Transaction ID: {details.transaction_id}"),
        ]
        half = (self.PAGE_WIDTH - 2 * self.MARGIN) / 2
        for left, right in rows:
            pdf.cell(half, 6, _text(left))
            pdf.cell(half, 6, _text(right), new_x="LMARGIN", new_y="NEXT")
        pdf.ln(5)

    def _add_customer(self, pdf: FPDF, details: ReceiptDetails) -> None:
        customer = details.customer
        pdf.set_font("Helvetica", "B", 11)
        pdf.cell(0, 7, _text("INFORMATIONS CLIENT / CUSTOMER INFORMATION"), new_x="LMARGIN", new_y="NEXT")
        pdf.set_font("Helvetica", size=10)
        pdf.cell(0, 5, _text(f"Nom / Name: {customer.name}"), new_x="LMARGIN", new_y="NEXT")
        if customer.address:
            pdf.cell(0, 5, _text(f"Adresse / Address: {customer.address}"), new_x="LMARGIN", new_y="NEXT")
        if customer.tax_id:
            pdf.cell(0, 5, _text(f"NIF Client / Customer Tax ID: {customer.tax_id}"), new_x="LMARGIN", new_y="NEXT")
        pdf.ln(4)

    def _add_line_items(self, pdf: FPDF, details: ReceiptDetails) -> None:
        pdf.set_font("Helvetica", "B", 11)
        pdf.cell(0, 7, _text("DÉTAILS DE LA PRESCRIPTION / PRESCRIPTION DETAILS"), new_x="LMARGIN", new_y="NEXT")

        widths = (90, 16, 34, 34)
        pdf.set_font("Helvetica", "B", 9)
        for width, header, align in zip(
            widths,
            ("Médicament / Medication", "Qté", "Prix Unit. / Unit Price", "Total"),
            ("L", "C", "R", "R"),
        ):
            pdf.cell(width, 7, _text(header), border="B", align=align)
        pdf.ln()

        pdf.set_font("Helvetica", size=9)
        for item in details.line_items:
            pdf.cell(widths[0], 6, _text(item.name))
            pdf.cell(widths[1], 6, str(item.quantity), align="C")
            pdf.cell(widths[2], 6, _text(format_currency(item.unit_price, details.currency)), align="R")
            pdf.cell(widths[3], 6, _text(format_currency(item.total_price, details.currency)), align="R",
                     new_x="LMARGIN", new_y="NEXT")
        pdf.ln(3)

    def _add_totals(self, pdf: FPDF, details: ReceiptDetails) -> None:
        label_width, value_width = 70, 34
        offset = self.PAGE_WIDTH - 2 * self.MARGIN - label_width - value_width
        rate = (details.tax_rate * 100).quantize(Decimal(1), rounding=ROUND_HALF_UP)

        def row(label: str, value: str, style: str = "") -> None:
            pdf.set_font("Helvetica", style, 10)
            pdf.cell(offset, 6, "")
            pdf.cell(label_width, 6, _text(label), align="R")
            pdf.cell(value_width, 6, _text(value), align="R", new_x="LMARGIN", new_y="NEXT")

        row("Sous-total HT / Subtotal:", format_currency(details.subtotal_amount, details.currency))
        row(f"TVA {rate}% / VAT:", format_currency(details.tax_amount, details.currency))
        row("TOTAL TTC / TOTAL INCL. TAX:", format_currency(details.total_amount, details.currency), "B")

        if details.converted is not None and details.exchange_rate is not None:
            converted = details.converted
            pdf.ln(2)
            pdf.set_font("Helvetica", size=8)
            pdf.set_text_color(*self.SECONDARY_COLOR)
            pdf.cell(
                0, 5,
                _text(f"Taux de change / Exchange rate: 1 {details.currency} = {details.exchange_rate} {converted.currency}"),
                align="R", new_x="LMARGIN", new_y="NEXT",
            )
            pdf.cell(
                0, 5,
                _text(f"Équivalent {converted.currency}: {format_currency(converted.total, converted.currency)}"
                      f" (HT {format_currency(converted.subtotal, converted.currency)},"
                      f" TVA {format_currency(converted.tax, converted.currency)})"),
                align="R", new_x="LMARGIN", new_y="NEXT",
            )
            pdf.set_text_color(*self.TEXT_COLOR)
        pdf.ln(6)

    def _add_legal(self, pdf: FPDF, details: ReceiptDetails) -> None:
        pdf.set_font("Helvetica", "BU", 8)
        pdf.cell(0, 5, _text("MENTIONS LÉGALES / LEGAL INFORMATION:"), new_x="LMARGIN", new_y="NEXT")
        pdf.set_font("Helvetica", size=7)
        pdf.multi_cell(0, 3.5, _text(details.legal_text_french), align="J", new_x="LMARGIN", new_y="NEXT")
        pdf.ln(2)
        pdf.multi_cell(0, 3.5, _text(details.legal_text_english), align="J", new_x="LMARGIN", new_y="NEXT")

    def _add_footer(self, pdf: FPDF, details: ReceiptDetails) -> None:
        pdf.ln(6)
        pdf.set_font("Helvetica", "B", 8)
        pdf.cell(0, 5, _text("Merci de votre confiance / Thank you for your trust"), align="C",
                 new_x="LMARGIN", new_y="NEXT")
        pdf.set_font("Helvetica", size=7)
        issued = details.issue_date.strftime("%d/%m/%Y %H:%M:%S")
        pdf.cell(0, 4, _text(f"Facture générée électroniquement le {issued} UTC"), align="C",
                 new_x="LMARGIN", new_y="NEXT")
