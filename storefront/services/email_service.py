"""
Service Email - Envoi des factures
Transport SMTP (smtplib), corps HTML aux couleurs Mishki, PDF en pièce jointe
"""

import logging
import smtplib
from email.mime.application import MIMEApplication
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from html import escape

import requests

from storefront.services.errors import EmailConfigurationError
from storefront.utils.helpers import format_money

logger = logging.getLogger(__name__)

PRIMARY_COLOR = '#235730'
MUTED_COLOR = '#4b5563'
BACKGROUND_COLOR = '#f8fafc'

DEFAULT_FRONTEND_URL = 'https://mishki.com'


def invoice_cta_href(invoice, frontend_url: str = None) -> str:
    """Les clients pro (société renseignée) sont renvoyés vers leur espace"""
    base = (frontend_url or DEFAULT_FRONTEND_URL).rstrip('/')
    company = (invoice.buyer.company or '').strip()
    return f"{base}/pro/accueil" if company else f"{base}/"


def build_invoice_email_html(customer_name: str, order_id: str, total: str, invoice_number: str,
                             cta_href: str = None) -> str:
    """Template HTML simple aux couleurs Mishki"""
    cta = ''
    if cta_href:
        cta = f"""<div style="margin:24px 0;">
                    <a href="{escape(cta_href)}" style="display:inline-block;background:{PRIMARY_COLOR};color:#ffffff;text-decoration:none;padding:12px 20px;border-radius:8px;font-weight:600;">Accéder à mon espace pro</a>
                  </div>"""

    return f"""
  <!doctype html>
  <html lang="fr">
    <body style="margin:0;padding:0;background:{BACKGROUND_COLOR};font-family:Arial,Helvetica,sans-serif;color:{MUTED_COLOR};">
      <table width="100%" cellpadding="0" cellspacing="0" style="background:{BACKGROUND_COLOR};padding:32px 0;">
        <tr>
          <td align="center">
            <table width="640" cellpadding="0" cellspacing="0" style="background:#ffffff;border-radius:12px;overflow:hidden;">
              <tr>
                <td style="background:{PRIMARY_COLOR};color:#ffffff;padding:24px 28px;font-size:20px;font-weight:700;">
                  MISHKI — Facture {escape(invoice_number)}
                </td>
              </tr>
              <tr>
                <td style="padding:24px 28px;">
                  <p style="margin:0 0 12px 0;font-size:14px;">Bonjour {escape(customer_name)},</p>
                  <p style="margin:0 0 16px 0;font-size:14px;line-height:1.5;">
                    Merci pour votre commande <strong>{escape(order_id)}</strong>. Vous trouverez la facture en pièce jointe.<br />
                    Montant total : <strong style="color:{PRIMARY_COLOR};font-size:16px;">{escape(total)}</strong>
                  </p>
                  {cta}
                  <p style="margin:0;font-size:13px;color:{MUTED_COLOR};line-height:1.6;">
                    Si vous avez la moindre question, répondez simplement à cet email.
                  </p>
                </td>
              </tr>
              <tr>
                <td style="padding:16px 28px 24px 28px;font-size:12px;color:{MUTED_COLOR};background:#f4f5f7;">
                  <p style="margin:0 0 6px 0;"><strong>MISHKI LAB</strong> — 5 Rue du Printemps, 88000 Jeuxey, France</p>
                  <p style="margin:0;">facturation@mishki.com</p>
                </td>
              </tr>
            </table>
          </td>
        </tr>
      </table>
    </body>
  </html>
  """


class InvoiceMailer:
    """
    Envoi des factures par SMTP

    Configuration requise:
        - host: Serveur SMTP
        - port: Port SMTP (587 pour TLS, 465 pour SSL)
        - username / password
        - from_email: Expéditeur (défaut: facturation@mishki.com)
    """

    def __init__(self, host: str, username: str, password: str, port: int = 587,
                 from_email: str = 'facturation@mishki.com', renderer=None, frontend_url: str = None):
        if not all([host, username, password]):
            raise EmailConfigurationError()

        self.host = host
        self.port = int(port or 587)
        self.username = username
        self.password = password
        self.from_email = from_email or 'facturation@mishki.com'
        self.use_ssl = self.port == 465
        self.frontend_url = frontend_url or DEFAULT_FRONTEND_URL

        if renderer is None:
            from storefront.services.pdf_invoice_service import InvoicePDFRenderer
            renderer = InvoicePDFRenderer()
        self.renderer = renderer

    @classmethod
    def from_config(cls, config, renderer=None) -> 'InvoiceMailer':
        """
        Raises:
            EmailConfigurationError: si SMTP_HOST, SMTP_USER ou SMTP_PASS manque
        """
        return cls(
            host=config.get('SMTP_HOST'),
            port=config.get('SMTP_PORT', 587),
            username=config.get('SMTP_USER'),
            password=config.get('SMTP_PASS'),
            from_email=config.get('SMTP_FROM'),
            renderer=renderer,
            frontend_url=config.get('FRONTEND_URL')
        )

    def build_message(self, to: str, invoice) -> MIMEMultipart:
        """Message complet: HTML + PDF <numéro>.pdf"""
        number = invoice.invoice_number or invoice.order_number or ''
        subject = f"Votre facture {number}".strip()

        html = build_invoice_email_html(
            customer_name=invoice.buyer.name,
            order_id=invoice.order_number or invoice.invoice_number,
            total=format_money(invoice.totals.total, invoice.totals.currency, 'fr'),
            invoice_number=invoice.invoice_number,
            cta_href=invoice_cta_href(invoice, self.frontend_url),
        )
        pdf_bytes = self.renderer.render(invoice)

        msg = MIMEMultipart('mixed')
        msg['Subject'] = subject
        msg['From'] = self.from_email
        msg['To'] = to
        msg.attach(MIMEText(html, 'html', 'utf-8'))

        attachment = MIMEApplication(pdf_bytes, _subtype='pdf')
        attachment.add_header('Content-Disposition', 'attachment',
                              filename=f"{invoice.invoice_number or 'facture'}.pdf")
        msg.attach(attachment)
        return msg

    def send_invoice(self, to: str, invoice) -> dict:
        """Envoie la facture par SMTP"""
        try:
            msg = self.build_message(to, invoice)

            if self.use_ssl:
                server = smtplib.SMTP_SSL(self.host, self.port)
            else:
                server = smtplib.SMTP(self.host, self.port)
                server.starttls()

            try:
                server.login(self.username, self.password)
                server.sendmail(self.from_email, [to], msg.as_string())
            finally:
                server.quit()

            logger.info(f"Facture {invoice.invoice_number} envoyée à {to}")
            return {
                'success': True,
                'provider': 'smtp',
                'to': to
            }
        except smtplib.SMTPAuthenticationError as e:
            logger.error(f"SMTP auth error: {str(e)}")
            return {
                'success': False,
                'provider': 'smtp',
                'error': 'Authentication failed. Check username/password.',
                'to': to
            }
        except smtplib.SMTPException as e:
            logger.error(f"SMTP error: {str(e)}")
            return {
                'success': False,
                'provider': 'smtp',
                'error': str(e),
                'to': to
            }
        except Exception as e:
            logger.exception(f"Invoice email error: {str(e)}")
            return {
                'success': False,
                'provider': 'smtp',
                'error': str(e),
                'to': to
            }


class InvoiceNotifier:
    """
    Envoi best effort de la facture après commande.
    La commande est déjà confirmée: aucune erreur ne remonte à l'acheteur.

    Si INVOICE_EMAIL_ENDPOINT est configuré, la facture est postée à cet
    endpoint ({email, invoiceData}); sinon elle part directement par SMTP.
    """

    def __init__(self, endpoint: str = None, mailer: InvoiceMailer = None, timeout: int = 15):
        self.endpoint = endpoint
        self.mailer = mailer
        self.timeout = timeout

    @classmethod
    def from_app(cls) -> 'InvoiceNotifier':
        from flask import current_app

        config = current_app.config
        mailer = None
        if not config.get('INVOICE_EMAIL_ENDPOINT'):
            try:
                mailer = InvoiceMailer.from_config(config)
            except EmailConfigurationError:
                logger.debug("SMTP non configuré, envoi des factures désactivé")

        return cls(
            endpoint=config.get('INVOICE_EMAIL_ENDPOINT'),
            mailer=mailer,
            timeout=config.get('INVOICE_EMAIL_TIMEOUT', 15)
        )

    def notify(self, email: str, invoice) -> bool:
        """Envoie la facture; retourne False (et journalise) en cas d'échec"""
        try:
            if self.endpoint:
                response = requests.post(
                    self.endpoint,
                    json={'email': email, 'invoiceData': invoice.to_dict()},
                    timeout=self.timeout
                )
                if response.status_code >= 400:
                    logger.warning(
                        f"invoice-email failed for {invoice.invoice_number}: "
                        f"{response.status_code} {response.text[:200]}"
                    )
                    return False
                return True

            if self.mailer is None:
                logger.warning(f"Facture {invoice.invoice_number} non envoyée: SMTP non configuré")
                return False

            result = self.mailer.send_invoice(email, invoice)
            if not result.get('success'):
                logger.warning(f"invoice-email failed for {invoice.invoice_number}: {result.get('error')}")
            return bool(result.get('success'))

        except Exception as e:
            logger.exception(f"invoice-email failed for {getattr(invoice, 'invoice_number', '?')}: {e}")
            return False
