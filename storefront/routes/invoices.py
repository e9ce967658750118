"""
Routes Factures
===============

- Liste des factures d'un client pro
- Téléchargement PDF d'une facture (fr ou pe)
- Envoi d'une facture par email (HTML + PDF en pièce jointe)
"""

from flask import Blueprint, request, jsonify, g, Response, current_app
from storefront.models import Region
from storefront.services.errors import EmailConfigurationError, InvoiceRenderError
from storefront.services.invoice_service import InvoiceService, InvoiceData
from storefront.services.pdf_invoice_service import InvoicePDFRenderer
from storefront.services.email_service import InvoiceMailer
from storefront.utils.decorators import auth_required, b2b_required
import logging

invoices_bp = Blueprint('invoices', __name__)
logger = logging.getLogger(__name__)


@invoices_bp.route('/invoices', methods=['GET'])
@b2b_required
def list_invoices():
    """Factures du client pro connecté, avec les mois pour le filtre"""
    result = InvoiceService().list_for_user(g.user.id)
    return jsonify(result)


@invoices_bp.route('/invoices/<order_id>/pdf', methods=['GET'])
@auth_required
def download_invoice(order_id):
    """
    Télécharge la facture PDF d'une commande

    Query params:
        - template: fr | pe (sinon déduit de la commande)
    """
    template = (request.args.get('template') or '').lower() or None
    if template and not Region.is_valid(template):
        return jsonify({'error': 'Modèle de facture inconnu', 'code': 'VALIDATION_ERROR'}), 400

    invoice = InvoiceService().get_invoice_for_order(order_id, user=g.user, locale=template)
    if invoice is None:
        return jsonify({'error': 'Facture non trouvée', 'code': 'NOT_FOUND'}), 404

    renderer = InvoicePDFRenderer()
    try:
        pdf_data = renderer.render(invoice)
    except InvoiceRenderError as e:
        return jsonify(e.to_dict()), e.status_code

    return Response(
        pdf_data,
        mimetype='application/pdf',
        headers={
            'Content-Disposition': f'attachment; filename="{renderer.filename(invoice)}"',
            'Content-Length': len(pdf_data)
        }
    )


@invoices_bp.route('/invoice-email', methods=['POST'])
def send_invoice_email():
    """
    Envoie une facture par email

    Body: {email, invoiceData}
    """
    data = request.get_json(silent=True) or {}
    email = (data.get('email') or '').strip()
    invoice_data = data.get('invoiceData')

    if not email or not invoice_data:
        return jsonify({'error': 'Missing email or invoiceData'}), 400

    try:
        mailer = InvoiceMailer.from_config(current_app.config)
    except EmailConfigurationError as e:
        logger.error(f"invoice-email: {e.message}")
        return jsonify({'error': e.message}), 500

    try:
        invoice = InvoiceData.from_dict(invoice_data)
    except (TypeError, ValueError, KeyError, AttributeError) as e:
        logger.warning(f"invoice-email: invoiceData invalide: {e}")
        return jsonify({'error': 'Invalid invoiceData'}), 400

    result = mailer.send_invoice(email, invoice)
    if not result.get('success'):
        return jsonify({'error': 'Failed to send invoice email'}), 500

    return jsonify({'ok': True})
