"""Invoice service: données de facture depuis les commandes.

Handles:
- Mapping commande -> InvoiceData (pur, sans écriture)
- Sérialisation JSON camelCase (format de l'endpoint d'envoi par email)
- Liste des factures d'un client pro (paiements + commandes)

Les données de facture ne sont jamais persistées: elles sont
régénérées à la demande depuis la commande et sa région.
"""
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional, List, Dict, Any

from storefront.utils.helpers import round2, format_date

TAX_LABELS = {'fr': 'TVA 20%', 'pe': 'IGV 18%'}

PAYMENT_TERMS = {
    'paypal': 'Paiement en ligne (PayPal)',
    'card': 'Paiement en ligne (carte)',
}
DEFAULT_PAYMENT_TERMS = 'Paiement en ligne'

PE_SERIE = 'E001'

FRENCH_MONTHS = [
    'janvier', 'février', 'mars', 'avril', 'mai', 'juin',
    'juillet', 'août', 'septembre', 'octobre', 'novembre', 'décembre'
]

DEFAULT_SELLER = {
    'name': 'MISHKI LAB',
    'address_lines': ['5 Rue du Printemps', '88000 Jeuxey', 'France'],
    'siret': '92089652300011',
    'ape': '2042Z',
    'email': 'facturation@mishki.com',
}


def _money(value) -> float:
    return float(round2(value))


def _clean(data: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in data.items() if v is not None}


@dataclass
class InvoiceParty:
    """Vendeur ou acheteur"""
    name: str
    address_lines: List[str] = field(default_factory=list)
    company: Optional[str] = None
    city: Optional[str] = None
    contact: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    ruc: Optional[str] = None
    siret: Optional[str] = None
    ape: Optional[str] = None
    vat_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return _clean({
            'name': self.name,
            'company': self.company,
            'addressLines': list(self.address_lines),
            'city': self.city,
            'contact': self.contact,
            'email': self.email,
            'phone': self.phone,
            'ruc': self.ruc,
            'siret': self.siret,
            'ape': self.ape,
            'vatId': self.vat_id,
        })

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'InvoiceParty':
        data = data or {}
        return cls(
            name=data.get('name') or '',
            address_lines=[str(line) for line in data.get('addressLines') or []],
            company=data.get('company'),
            city=data.get('city'),
            contact=data.get('contact'),
            email=data.get('email'),
            phone=data.get('phone'),
            ruc=data.get('ruc'),
            siret=data.get('siret'),
            ape=data.get('ape'),
            vat_id=data.get('vatId'),
        )


@dataclass
class Installment:
    """Échéance de paiement (crédit)"""
    amount: Decimal
    due_date: str

    def to_dict(self):
        return {'amount': _money(self.amount), 'dueDate': self.due_date}


@dataclass
class InvoicePayment:
    terms: str
    method: Optional[str] = None
    installments: List[Installment] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        data = _clean({'terms': self.terms, 'method': self.method})
        if self.installments:
            data['installments'] = [i.to_dict() for i in self.installments]
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'InvoicePayment':
        data = data or {}
        return cls(
            terms=data.get('terms') or DEFAULT_PAYMENT_TERMS,
            method=data.get('method'),
            installments=[
                Installment(amount=round2(i.get('amount')), due_date=i.get('dueDate') or '')
                for i in data.get('installments') or []
            ],
        )


@dataclass
class InvoiceLine:
    qty: int
    description: str
    unit_price: Decimal
    unit: str = 'pcs'
    code: Optional[str] = None
    discount: Optional[Decimal] = None

    @property
    def total(self) -> Decimal:
        return round2(self.unit_price * self.qty - (self.discount or 0))

    def to_dict(self) -> Dict[str, Any]:
        return _clean({
            'qty': self.qty,
            'unit': self.unit,
            'code': self.code,
            'description': self.description,
            'unitPrice': _money(self.unit_price),
            'discount': _money(self.discount) if self.discount is not None else None,
        })

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'InvoiceLine':
        discount = data.get('discount')
        return cls(
            qty=int(data.get('qty') or 0),
            unit=data.get('unit') or 'pcs',
            code=data.get('code'),
            description=data.get('description') or '',
            unit_price=round2(data.get('unitPrice')),
            discount=round2(discount) if discount is not None else None,
        )


@dataclass
class InvoiceTotals:
    subtotal: Decimal
    tax_label: str
    tax_amount: Decimal
    total: Decimal
    currency: str = 'EUR'
    discount: Optional[Decimal] = None

    def to_dict(self) -> Dict[str, Any]:
        return _clean({
            'subtotal': _money(self.subtotal),
            'discount': _money(self.discount) if self.discount is not None else None,
            'taxLabel': self.tax_label,
            'taxAmount': _money(self.tax_amount),
            'total': _money(self.total),
            'currency': self.currency,
        })

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'InvoiceTotals':
        data = data or {}
        discount = data.get('discount')
        return cls(
            subtotal=round2(data.get('subtotal')),
            discount=round2(discount) if discount is not None else None,
            tax_label=data.get('taxLabel') or '',
            tax_amount=round2(data.get('taxAmount')),
            total=round2(data.get('total')),
            currency=data.get('currency') or 'EUR',
        )


@dataclass
class InvoiceData:
    """Données complètes d'une facture (FR ou PE)"""
    locale: str
    invoice_number: str
    issue_date: str
    buyer: InvoiceParty
    seller: InvoiceParty
    payment: InvoicePayment
    lines: List[InvoiceLine]
    totals: InvoiceTotals
    order_number: Optional[str] = None
    due_date: Optional[str] = None
    currency_label: Optional[str] = None
    serie: Optional[str] = None
    notes: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        data = _clean({
            'locale': self.locale,
            'invoiceNumber': self.invoice_number,
            'orderNumber': self.order_number,
            'issueDate': self.issue_date,
            'dueDate': self.due_date,
            'buyer': self.buyer.to_dict(),
            'seller': self.seller.to_dict(),
            'payment': self.payment.to_dict(),
            'lines': [line.to_dict() for line in self.lines],
            'totals': self.totals.to_dict(),
            'currencyLabel': self.currency_label,
            'serie': self.serie,
        })
        if self.notes:
            data['notes'] = list(self.notes)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'InvoiceData':
        """Reconstruit une facture depuis le JSON reçu (endpoint email)"""
        if not isinstance(data, dict):
            raise ValueError('invoiceData must be an object')
        if not data.get('invoiceNumber'):
            raise ValueError('invoiceNumber is required')

        locale = data.get('locale') if data.get('locale') in ('fr', 'pe') else 'fr'
        return cls(
            locale=locale,
            invoice_number=str(data['invoiceNumber']),
            order_number=data.get('orderNumber'),
            issue_date=data.get('issueDate') or '',
            due_date=data.get('dueDate'),
            buyer=InvoiceParty.from_dict(data.get('buyer')),
            seller=InvoiceParty.from_dict(data.get('seller') or _seller_dict()),
            payment=InvoicePayment.from_dict(data.get('payment')),
            lines=[InvoiceLine.from_dict(line) for line in data.get('lines') or []],
            totals=InvoiceTotals.from_dict(data.get('totals')),
            currency_label=data.get('currencyLabel'),
            serie=data.get('serie'),
            notes=[str(n) for n in data.get('notes') or []],
        )


def _seller_dict() -> Dict[str, Any]:
    seller = DEFAULT_SELLER
    return {
        'name': seller['name'],
        'addressLines': seller['address_lines'],
        'siret': seller['siret'],
        'ape': seller['ape'],
        'email': seller['email'],
    }


def invoice_number_for(order_id: str) -> str:
    return f"INV-{order_id[:8]}"


def locale_for_order(order, locale: str = None) -> str:
    """
    Locale de facture: argument explicite, puis région enregistrée
    sur la commande, puis devise (PEN -> pe)
    """
    if locale in ('fr', 'pe'):
        return locale
    region = getattr(order, 'region', None)
    if region in ('fr', 'pe'):
        return region
    if (getattr(order, 'currency', None) or '').upper() == 'PEN':
        return 'pe'
    return 'fr'


def seller_party(locale: str = 'fr') -> InvoiceParty:
    """Vendeur depuis la configuration (valeurs MISHKI LAB par défaut)"""
    from flask import current_app, has_app_context

    settings = current_app.config if has_app_context() else {}
    party = InvoiceParty(
        name=settings.get('SELLER_NAME') or DEFAULT_SELLER['name'],
        address_lines=list(settings.get('SELLER_ADDRESS_LINES') or DEFAULT_SELLER['address_lines']),
        siret=settings.get('SELLER_SIRET') or DEFAULT_SELLER['siret'],
        ape=settings.get('SELLER_APE') or DEFAULT_SELLER['ape'],
        email=settings.get('SELLER_EMAIL') or DEFAULT_SELLER['email'],
    )
    if locale == 'pe':
        party.ruc = settings.get('SELLER_RUC')
    return party


def _buyer_party(order, buyer, shipping: dict, locale: str) -> InvoiceParty:
    first_name = getattr(buyer, 'first_name', None) or order.first_name
    last_name = getattr(buyer, 'last_name', None) or order.last_name
    company = getattr(buyer, 'company', None) or order.company
    full_name = ' '.join(p for p in [first_name, last_name] if p).strip()

    if order.storefront == 'b2b':
        name = full_name or company or 'Client B2B'
    else:
        name = full_name or 'Client B2C'

    shipping = shipping or {}
    address_lines = [
        str(part) for part in [shipping.get('address'), shipping.get('city'), shipping.get('postalCode')]
        if part
    ]

    party = InvoiceParty(
        name=name,
        company=company or None,
        address_lines=address_lines,
        contact=shipping.get('contactName') or None,
        email=order.email or getattr(buyer, 'email', None),
        phone=shipping.get('phone') or None,
    )
    if locale == 'fr':
        party.siret = getattr(buyer, 'siret', None) or order.siret or None
    else:
        party.ruc = getattr(buyer, 'ruc', None) or order.ruc or None
    return party


def build_invoice_data(order, buyer=None, shipping: dict = None, locale: str = None,
                       payment=None) -> InvoiceData:
    """
    Construit les données de facture d'une commande. Fonction pure:
    aucune lecture ni écriture en base en dehors des objets fournis.

    Args:
        order: Commande (modèle Order)
        buyer: Utilisateur (optionnel, sinon champs dénormalisés de la commande)
        shipping: Snapshot de livraison (par défaut celui de la commande)
        locale: 'fr' ou 'pe' pour forcer le modèle
        payment: Paiement associé (échéance)
    """
    locale = locale_for_order(order, locale)
    shipping = shipping if shipping is not None else (order.shipping or {})

    lines = [
        InvoiceLine(
            qty=line.quantity,
            unit='pcs',
            code=line.reference,
            description=line.name or 'Produit',
            unit_price=round2(line.unit_price_ht),
        )
        for line in order.lines
    ]
    if not lines:
        lines = [InvoiceLine(qty=1, unit='pcs', description='Commande', unit_price=round2(order.subtotal))]

    due_date = format_date(payment.due_date) if payment is not None and payment.due_date else None
    installments = []
    if due_date and order.payment_status != 'payee':
        installments.append(Installment(amount=round2(order.total), due_date=due_date))

    invoice_payment = InvoicePayment(
        terms=PAYMENT_TERMS.get(order.payment_provider, DEFAULT_PAYMENT_TERMS),
        method=order.payment_provider,
        installments=installments,
    )

    return InvoiceData(
        locale=locale,
        invoice_number=invoice_number_for(order.id),
        order_number=order.id,
        issue_date=format_date(order.created_at),
        due_date=due_date,
        buyer=_buyer_party(order, buyer, shipping, locale),
        seller=seller_party(locale),
        payment=invoice_payment,
        lines=lines,
        totals=InvoiceTotals(
            subtotal=round2(order.subtotal),
            tax_label=TAX_LABELS[locale],
            tax_amount=round2(order.tax),
            total=round2(order.total),
            currency=order.currency or 'EUR',
        ),
        currency_label='SOLES' if locale == 'pe' else None,
        serie=PE_SERIE if locale == 'pe' else None,
    )


def month_label(value) -> str:
    return f"{FRENCH_MONTHS[value.month - 1]} {value.year}"


class InvoiceService:
    """Factures d'un client pro (écran Factures)"""

    def list_for_user(self, user_id: str) -> Dict[str, Any]:
        """
        Liste les paiements du client avec leur commande et leurs données
        de facture, du plus récent au plus ancien, et les mois distincts.
        """
        from storefront.models import Payment, Order

        rows = (
            Payment.query
            .outerjoin(Order, Payment.order_id == Order.id)
            .filter(
                (Payment.user_id == user_id) |
                ((Payment.user_id.is_(None)) & (Order.user_id == user_id))
            )
            .order_by(Payment.created_at.desc())
            .all()
        )

        invoices = []
        months = []
        for payment in rows:
            order = payment.order
            if order is None:
                continue

            invoice = build_invoice_data(order, payment=payment)
            produits = ', '.join(
                f"{line.name} x{line.quantity}" if line.quantity else line.name
                for line in order.lines
            )

            invoices.append({
                'id': payment.id,
                'numero': invoice.invoice_number,
                'date': payment.created_at.isoformat() if payment.created_at else None,
                'montantHT': float(payment.subtotal),
                'montantTTC': float(payment.total),
                'statut': payment.status or 'en_attente',
                'dateEcheance': payment.due_date.isoformat() if payment.due_date else None,
                'produits': produits,
                'locale': invoice.locale,
                'invoiceData': invoice.to_dict(),
            })

            if payment.created_at:
                label = month_label(payment.created_at)
                if label not in months:
                    months.append(label)

        return {'invoices': invoices, 'months': months}

    def get_invoice_for_order(self, order_id: str, user=None, locale: str = None) -> Optional[InvoiceData]:
        """Facture d'une commande, si elle appartient à l'utilisateur"""
        from storefront import db
        from storefront.models import Order

        order = db.session.get(Order, order_id)
        if order is None:
            return None
        if user is not None and order.user_id != user.id:
            return None

        payment = order.payments.first()
        return build_invoice_data(order, buyer=user, locale=locale, payment=payment)
