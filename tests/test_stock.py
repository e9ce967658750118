from decimal import Decimal

import pytest

from storefront import db
from storefront.models import Order, Payment, Product
from storefront.services.errors import StockConflictError, StockError, StorefrontError
from storefront.services.order_service import OrderService, normalize_order_lines
from storefront.services.quick_order_service import QuickOrderService, enforce_line_stock


TOTALS = {'subtotal': Decimal('600.00'), 'tax': Decimal('120.00'), 'total': Decimal('720.00'), 'currency': 'EUR'}


def _lines(quantity, reference='SER-01'):
    return [{'reference': reference, 'name': 'Sérum', 'quantity': quantity, 'unit_price_ht': Decimal('10.00')}]


def _stock(reference='SER-01'):
    db.session.expire_all()
    return Product.query.filter_by(reference=reference).one().stock


def test_reservation_rejects_without_partial_decrement(make_product):
    make_product('SER-01', stock=50)
    make_product('CRE-01', slug='cre-01', stock=500)
    lines = _lines(100, 'CRE-01') + _lines(60, 'SER-01')

    with pytest.raises(StockError) as exc:
        OrderService().create_order_and_payment(
            buyer={'id': None, 'email': 'pro@example.com'},
            lines=lines,
            totals=TOTALS,
            provider='card',
            reserve_stock=True
        )

    assert exc.value.reference == 'SER-01'
    assert exc.value.available == 50
    assert _stock('SER-01') == 50
    assert _stock('CRE-01') == 500
    assert Order.query.count() == 0


def test_reservation_aggregates_duplicate_references(make_product):
    make_product('SER-01', stock=50)

    with pytest.raises(StockError):
        OrderService().read_stock_snapshot(_lines(30) + _lines(30))


def test_reservation_decrements_stock_with_the_order(make_product):
    make_product('SER-01', stock=150)

    order_id = OrderService().create_order_and_payment(
        buyer={'id': None, 'email': 'pro@example.com'},
        lines=_lines(60),
        totals=TOTALS,
        provider='card',
        storefront='b2b',
        reserve_stock=True
    )

    assert _stock() == 90
    assert db.session.get(Order, order_id).storefront == 'b2b'
    assert Payment.query.filter_by(order_id=order_id).count() == 1


def test_concurrent_reservations_only_one_commits(make_product):
    make_product('SER-01', stock=50)
    service = OrderService()

    first = service.read_stock_snapshot(_lines(30))
    second = service.read_stock_snapshot(_lines(30))

    service.apply_stock_snapshot(first)
    db.session.commit()

    with pytest.raises(StockConflictError):
        service.apply_stock_snapshot(second)
    db.session.rollback()

    assert _stock() == 20


def test_stale_snapshot_rolls_back_the_whole_order(make_product):
    make_product('SER-01', stock=50)

    class StaleOrderService(OrderService):
        def read_stock_snapshot(self, lines):
            snapshot = super().read_stock_snapshot(lines)
            product = Product.query.filter_by(reference='SER-01').one()
            product.stock = 45
            product.version += 1
            db.session.commit()
            return snapshot

    with pytest.raises(StockConflictError):
        StaleOrderService().create_order_and_payment(
            buyer=None, lines=_lines(30), totals=TOTALS, provider='card', reserve_stock=True
        )

    assert _stock() == 45
    assert Order.query.count() == 0
    assert Payment.query.count() == 0


def test_inconsistent_totals_are_refused(make_product):
    make_product('SER-01', stock=50)

    with pytest.raises(StorefrontError):
        OrderService().create_order_and_payment(
            buyer=None,
            lines=_lines(1),
            totals={'subtotal': Decimal('10.00'), 'tax': Decimal('2.00'), 'total': Decimal('12.01')},
            provider='card'
        )
    assert Order.query.count() == 0


@pytest.mark.parametrize('quantity,stock,expected', [
    (120, 500, (120, None)),
    (10, 500, (100, None)),
    (120, 80, (80, 'Stock insuffisant (min 100, dispo 80)')),
    (150, 120, (120, 'Stock max: 120')),
    (120, 0, (0, 'Stock épuisé')),
])
def test_enforce_line_stock(quantity, stock, expected):
    assert enforce_line_stock(quantity, stock, 100) == expected


def test_quick_order_clamps_to_stock_and_blocks_checkout(make_product, make_user):
    make_product('SER-01', stock=80)
    user = make_user('pro@example.com', role='b2b', remise=Decimal('10'))

    draft = QuickOrderService(min_qty=100).prepare(
        [{'reference': 'ser-01', 'quantity': 120}, {'reference': 'XXX-99', 'quantity': 100}],
        user,
        'fr'
    )

    line = draft['lines'][0]
    assert line['quantity'] == 80
    assert line['unit_price_ht'] == Decimal('11.25')
    assert draft['stock_messages'] == {'SER-01': 'Stock insuffisant (min 100, dispo 80)'}
    assert draft['errors'] == [{'reference': 'XXX-99', 'error': 'Référence inconnue'}]
    assert draft['has_stock_issues'] is True
    assert draft['can_checkout'] is False


def test_normalize_order_lines_reads_legacy_shapes():
    lines = normalize_order_lines({
        'items': [
            {'code': 'SER-01', 'nom': 'Sérum', 'quantite': '2', 'prixHT': '12.5'},
            {'reference': 'CRE-01', 'name': 'Crème', 'qty': 1, 'price': 20},
            'not-a-line',
        ]
    })

    assert lines[0] == {
        'reference': 'SER-01',
        'name': 'Sérum',
        'quantity': 2,
        'unit_price_ht': Decimal('12.50'),
        'total_ht': Decimal('25.00'),
    }
    assert lines[1]['total_ht'] == Decimal('20.00')
    assert len(lines) == 2
    assert normalize_order_lines(None) == []


def test_lines_without_reference_reserve_nothing(make_product):
    make_product('SER-01', stock=50)
    lines = _lines(20) + [{'reference': None, 'name': 'Frais de port', 'quantity': 1, 'unit_price_ht': Decimal('5.00')}]

    snapshot = OrderService().read_stock_snapshot(lines)

    assert [(r.reference, r.quantity) for r in snapshot] == [('SER-01', 20)]
    assert OrderService().read_stock_snapshot([{'reference': '', 'name': 'Frais', 'quantity': 1}]) == []
