"""
Fonctions utilitaires
Helpers réutilisables dans toute l'application (montants, formats)
"""

from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from flask import request

CENT = Decimal('0.01')


def to_decimal(value) -> Decimal:
    """
    Convertit une valeur (int, float, str, Decimal) en Decimal

    Les floats passent par leur représentation texte pour éviter
    les artefacts binaires (0.1 -> Decimal('0.1')).
    """
    if value is None or value == '':
        return Decimal('0')
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(repr(value))
    try:
        return Decimal(str(value).strip().replace(',', '.'))
    except InvalidOperation:
        raise ValueError(f"Montant invalide: {value!r}")


def round2(value) -> Decimal:
    """Arrondi commercial au centime (demi supérieur)"""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def _group_thousands(integer_part: str, sep: str) -> str:
    groups = []
    while len(integer_part) > 3:
        groups.insert(0, integer_part[-3:])
        integer_part = integer_part[:-3]
    groups.insert(0, integer_part)
    return sep.join(groups)


def format_money(amount, currency='EUR', locale='fr'):
    """
    Formate un montant avec sa devise

    Args:
        amount: Montant
        currency: Code devise (EUR, PEN)
        locale: fr (fr-FR: "1 234,50 €") ou pe (es-PE: "S/ 1,234.50")

    Returns:
        str: Montant formaté
    """
    value = round2(amount or 0)
    sign = '-' if value < 0 else ''
    integer_part, decimals = f"{abs(value):.2f}".split('.')

    if locale == 'pe':
        symbol = 'S/' if currency == 'PEN' else currency
        return f"{sign}{symbol} {_group_thousands(integer_part, ',')}.{decimals}"

    symbol = '€' if currency == 'EUR' else currency
    return f"{sign}{_group_thousands(integer_part, ' ')},{decimals} {symbol}"


def format_date(value, locale='fr'):
    """Date courte: 31/12/2024 (fr et pe utilisent le même ordre)"""
    if not value:
        return ''
    return value.strftime('%d/%m/%Y')


def get_guest_token():
    """Jeton invité transmis par le front (header X-Guest-Token)"""
    token = request.headers.get('X-Guest-Token', '').strip()
    return token or None
