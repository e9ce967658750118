"""
Service de rendu PDF des factures
Deux modèles: France/UE (fr) et Pérou (pe, factura electrónica)

Le rendu est déterministe: mode `invariant` de reportlab et métadonnées
fixes, des données identiques donnent des octets identiques.
"""

import io
import logging
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.enums import TA_RIGHT, TA_CENTER
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.units import mm
from reportlab.platypus import SimpleDocTemplate, Paragraph, Spacer, Table, TableStyle

from storefront.services.errors import InvoiceRenderError
from storefront.utils.helpers import format_money

logger = logging.getLogger(__name__)

LATE_PAYMENT_NOTICE = (
    "En cas de retard de paiement, des pénalités de retard à hauteur de trois fois le taux "
    "d'intérêt légal en vigueur, ainsi qu'une indemnité forfaitaire fixée par décret seront appliquées."
)
PE_CLOSING_NOTE = "Esta es una representación impresa de la factura electrónica, generada por el sistema."

PAGE_MARGIN = 15 * mm
CONTENT_WIDTH = A4[0] - 2 * PAGE_MARGIN

HEADER_GREY = colors.HexColor('#f2f2f2')


def _p(text, style):
    return Paragraph(escape(str(text)) if text is not None else '', style)


class InvoicePDFRenderer:
    """
    Génère le PDF d'une facture (bytes)

    Usage:
        pdf_bytes = InvoicePDFRenderer().render(invoice_data)
    """

    def __init__(self):
        self.styles = getSampleStyleSheet()
        self._setup_custom_styles()

    def _setup_custom_styles(self):
        """Configure les styles personnalisés"""
        base = self.styles['Normal']

        self.text_style = ParagraphStyle('InvoiceText', parent=base, fontName='Helvetica', fontSize=9, leading=12)
        self.bold_style = ParagraphStyle('InvoiceBold', parent=self.text_style, fontName='Helvetica-Bold')
        self.title_style = ParagraphStyle('InvoiceTitle', parent=self.bold_style, fontSize=14, leading=18)
        self.box_title_style = ParagraphStyle(
            'InvoiceBoxTitle', parent=self.bold_style, fontSize=11, leading=14, alignment=TA_CENTER
        )
        self.number_style = ParagraphStyle('InvoiceNumber', parent=self.text_style, alignment=TA_RIGHT)
        self.header_style = ParagraphStyle('InvoiceHeader', parent=self.bold_style, fontSize=8, alignment=TA_CENTER)
        self.small_style = ParagraphStyle('InvoiceSmall', parent=self.text_style, fontSize=7, leading=9,
                                          textColor=colors.HexColor('#555555'))

    # ==================== HELPERS ====================

    def _money(self, data, amount):
        return format_money(amount, data.totals.currency, data.locale)

    def _box(self, rows, width):
        """Bloc encadré d'une colonne"""
        table = Table([[row] for row in rows], colWidths=[width])
        table.setStyle(TableStyle([
            ('BOX', (0, 0), (-1, -1), 0.5, colors.black),
            ('TOPPADDING', (0, 0), (-1, -1), 1),
            ('BOTTOMPADDING', (0, 0), (-1, -1), 1),
            ('LEFTPADDING', (0, 0), (-1, -1), 6),
            ('RIGHTPADDING', (0, 0), (-1, -1), 6),
        ]))
        return table

    def _grid(self, headers, rows, widths, numeric_columns=()):
        """Tableau quadrillé avec en-tête grisé"""
        table_data = [[_p(h, self.header_style) for h in headers]]
        for row in rows:
            table_data.append([
                _p(cell, self.number_style if idx in numeric_columns else self.text_style)
                for idx, cell in enumerate(row)
            ])

        table = Table(table_data, colWidths=widths, repeatRows=1)
        table.setStyle(TableStyle([
            ('BACKGROUND', (0, 0), (-1, 0), HEADER_GREY),
            ('GRID', (0, 0), (-1, -1), 0.5, colors.black),
            ('VALIGN', (0, 0), (-1, -1), 'MIDDLE'),
            ('TOPPADDING', (0, 0), (-1, -1), 4),
            ('BOTTOMPADDING', (0, 0), (-1, -1), 4),
        ]))
        return table

    def _totals_table(self, rows, width):
        """Bloc des totaux aligné à droite, dernière ligne en gras"""
        data = []
        for idx, (label, value) in enumerate(rows):
            style = self.bold_style if idx == len(rows) - 1 else self.text_style
            data.append([_p(label, style), Paragraph(escape(value), ParagraphStyle(
                f'TotalValue{idx}', parent=style, alignment=TA_RIGHT))])

        table = Table(data, colWidths=[width * 0.6, width * 0.4], hAlign='RIGHT')
        table.setStyle(TableStyle([
            ('GRID', (0, 0), (-1, -1), 0.5, colors.black),
            ('TOPPADDING', (0, 0), (-1, -1), 4),
            ('BOTTOMPADDING', (0, 0), (-1, -1), 4),
        ]))
        return table

    def _two_columns(self, left, right, left_ratio=0.5):
        table = Table([[left, right]], colWidths=[CONTENT_WIDTH * left_ratio, CONTENT_WIDTH * (1 - left_ratio)])
        table.setStyle(TableStyle([
            ('VALIGN', (0, 0), (-1, -1), 'TOP'),
            ('LEFTPADDING', (0, 0), (-1, -1), 0),
            ('RIGHTPADDING', (0, 0), (-1, -1), 4),
        ]))
        return table

    # ==================== MODELE FR ====================

    def _story_fr(self, data):
        seller, buyer, totals = data.seller, data.buyer, data.totals
        story = []

        seller_rows = [_p(seller.name, self.title_style)]
        seller_rows += [_p(line, self.text_style) for line in seller.address_lines]
        if seller.siret:
            seller_rows.append(_p(f"Siret : {seller.siret}", self.text_style))
        if seller.ape:
            seller_rows.append(_p(f"APE : {seller.ape}", self.text_style))
        if seller.phone:
            seller_rows.append(_p(f"Tél : {seller.phone}", self.text_style))
        if seller.email:
            seller_rows.append(_p(f"Mail : {seller.email}", self.text_style))

        meta_rows = [
            _p('FACTURE', self.bold_style),
            _p(f"Émise le : {data.issue_date}", self.text_style),
            _p(f"N° : {data.invoice_number}", self.text_style),
        ]
        if data.order_number:
            meta_rows.append(_p(f"Commande : {data.order_number}", self.text_style))

        buyer_rows = [_p(buyer.name, self.bold_style)]
        if buyer.company:
            buyer_rows.append(_p(buyer.company, self.text_style))
        buyer_rows += [_p(line, self.text_style) for line in buyer.address_lines]
        if buyer.phone:
            buyer_rows.append(_p(f"Tél : {buyer.phone}", self.text_style))
        if buyer.siret:
            buyer_rows.append(_p(f"Siret : {buyer.siret}", self.text_style))

        right_width = CONTENT_WIDTH * 0.45 - 4
        right = [self._box(meta_rows, right_width), Spacer(1, 6), self._box(buyer_rows, right_width)]
        story.append(self._two_columns(seller_rows, right, left_ratio=0.55))
        story.append(Spacer(1, 12))

        rows = []
        for line in data.lines:
            designation = line.description + (f" ({line.code})" if line.code else '')
            rows.append([
                str(line.qty),
                self._money(data, line.unit_price),
                self._money(data, line.discount) if line.discount else '-',
                self._money(data, line.total),
                designation,
            ])
        widths = [w * CONTENT_WIDTH for w in (0.08, 0.14, 0.12, 0.18, 0.48)]
        story.append(self._grid(['QTE', 'PU HT €', 'REMISE', 'PRIX HT €', 'DESIGNATION'], rows, widths,
                                numeric_columns=(0, 1, 2, 3)))
        story.append(Spacer(1, 10))

        story.append(self._totals_table([
            ('TOTAL HT €', self._money(data, totals.subtotal)),
            (totals.tax_label or 'TVA', self._money(data, totals.tax_amount)),
            ('NET A PAYER €', self._money(data, totals.total)),
        ], CONTENT_WIDTH * 0.4))
        story.append(Spacer(1, 14))

        story.append(_p('Conditions de paiement :', self.bold_style))
        story.append(_p(data.payment.terms, self.text_style))
        if buyer.vat_id:
            story.append(Spacer(1, 4))
            story.append(_p(f"N° de TVA intracommunautaire : {buyer.vat_id}", self.text_style))
        for note in data.notes:
            story.append(_p(note, self.text_style))
        story.append(Spacer(1, 6))
        story.append(_p(LATE_PAYMENT_NOTICE, self.small_style))
        return story

    # ==================== MODELE PE ====================

    def _story_pe(self, data):
        seller, buyer, totals, payment = data.seller, data.buyer, data.totals, data.payment
        story = []

        seller_rows = [_p(seller.name, ParagraphStyle('PeSeller', parent=self.bold_style, fontSize=11, leading=14))]
        seller_rows += [_p(line, self.text_style) for line in seller.address_lines]
        if seller.ruc:
            seller_rows.append(_p(f"RUC : {seller.ruc}", self.text_style))
        if seller.email:
            seller_rows.append(_p(seller.email, self.text_style))

        title_rows = [_p('FACTURA ELECTRÓNICA', self.box_title_style)]
        if seller.ruc:
            title_rows.append(_p(f"RUC: {seller.ruc}", ParagraphStyle('PeRuc', parent=self.text_style, alignment=TA_CENTER)))
        title_rows.append(_p(data.serie or '', ParagraphStyle('PeSerie', parent=self.text_style, alignment=TA_CENTER)))
        title_rows.append(_p(data.invoice_number, ParagraphStyle('PeNumber', parent=self.box_title_style, fontSize=12)))

        story.append(self._two_columns(seller_rows, self._box(title_rows, CONTENT_WIDTH * 0.4 - 4), left_ratio=0.6))
        story.append(Spacer(1, 10))

        buyer_rows = [_p('Señor(es)', self.bold_style), _p(buyer.name, self.text_style)]
        if buyer.ruc:
            buyer_rows.append(_p(f"RUC: {buyer.ruc}", self.text_style))
        buyer_rows += [_p(line, self.text_style) for line in buyer.address_lines]

        currency_label = 'SOLES' if totals.currency == 'PEN' else totals.currency
        meta_rows = [_p(f"Fecha de Emisión: {data.issue_date}", self.text_style)]
        if data.due_date:
            meta_rows.append(_p(f"Vencimiento: {data.due_date}", self.text_style))
        meta_rows.append(_p(f"Tipo de Moneda: {currency_label}", self.text_style))
        meta_rows.append(_p(f"Formato de Pago: {payment.terms}", self.text_style))

        story.append(self._two_columns(
            self._box(buyer_rows, CONTENT_WIDTH * 0.5 - 4),
            self._box(meta_rows, CONTENT_WIDTH * 0.5 - 4)
        ))
        story.append(Spacer(1, 10))

        if payment.installments:
            credit_rows = [
                _p('INFORMACIÓN DEL CRÉDITO', self.bold_style),
                _p(f"Monto neto pendiente de pago {self._money(data, totals.total)} - "
                   f"Total de cuotas: {len(payment.installments)}", self.text_style),
            ]
            schedule = [
                [str(idx + 1), self._money(data, inst.amount), inst.due_date]
                for idx, inst in enumerate(payment.installments)
            ]
            widths = [w * (CONTENT_WIDTH - 12) for w in (0.2, 0.4, 0.4)]
            credit_rows.append(self._grid(['Cuota', 'Monto Cuota', 'Fecha Vencimiento'], schedule, widths,
                                          numeric_columns=(1,)))
            story.append(self._box(credit_rows, CONTENT_WIDTH))
            story.append(Spacer(1, 10))

        rows = [
            [f"{line.qty:.2f}", line.unit, line.code or '', line.description, self._money(data, line.unit_price)]
            for line in data.lines
        ]
        widths = [w * CONTENT_WIDTH for w in (0.10, 0.15, 0.15, 0.40, 0.20)]
        story.append(self._grid(['Cantidad', 'Unidad', 'Código', 'Descripción', 'Valor Unitario'], rows, widths,
                                numeric_columns=(0, 4)))
        story.append(Spacer(1, 10))

        story.append(self._totals_table([
            ('Sub Total Ventas :', self._money(data, totals.subtotal)),
            ('Descuentos :', self._money(data, totals.discount or 0)),
            (f"{totals.tax_label} :", self._money(data, totals.tax_amount)),
            ('Importe Total :', self._money(data, totals.total)),
        ], CONTENT_WIDTH * 0.45))
        story.append(Spacer(1, 14))

        for note in data.notes:
            story.append(_p(note, self.text_style))
        story.append(_p(PE_CLOSING_NOTE, ParagraphStyle('PeNote', parent=self.small_style, alignment=TA_CENTER)))
        return story

    # ==================== RENDU ====================

    def render(self, data) -> bytes:
        """
        Génère le PDF de la facture

        Args:
            data: InvoiceData (locale 'fr' ou 'pe')

        Returns:
            bytes: Contenu du PDF
        """
        try:
            buffer = io.BytesIO()
            doc = SimpleDocTemplate(
                buffer,
                pagesize=A4,
                leftMargin=PAGE_MARGIN,
                rightMargin=PAGE_MARGIN,
                topMargin=PAGE_MARGIN,
                bottomMargin=PAGE_MARGIN,
                title=f"Facture {data.invoice_number}",
                author=data.seller.name,
                subject=data.order_number or data.invoice_number,
                creator='Mishki Storefront',
                invariant=1
            )

            story = self._story_pe(data) if data.locale == 'pe' else self._story_fr(data)
            doc.build(story)

            pdf_data = buffer.getvalue()
            buffer.close()
            return pdf_data

        except Exception as e:
            logger.exception(f"Erreur rendu PDF facture {getattr(data, 'invoice_number', '?')}: {e}")
            raise InvoiceRenderError() from e

    def filename(self, data) -> str:
        return f"{data.invoice_number}.pdf"
