#!/usr/bin/env python3
"""
Seed des données de démo de la boutique.

Crée:
  1. Les tables (si absentes)
  2. Le catalogue de démo
  3. Un compte particulier et un compte pro validé

Usage:
    python seed.py
"""

import os
from decimal import Decimal

from dotenv import load_dotenv
load_dotenv()

from storefront import create_app, db


# ── Configuration ────────────────────────────────────────────
CLIENT_EMAIL    = 'client@test.com'
CLIENT_PASSWORD = 'client123'

PRO_EMAIL    = 'pro@test.com'
PRO_PASSWORD = 'pro12345'
PRO_COMPANY  = 'Institut Démo'
PRO_REMISE   = Decimal('15')

PRODUCTS = [
    # (référence, nom, slug, catégorie, prix HT, stock)
    ('SER-01', 'Sérum éclat', 'serum-eclat', 'soins-visage', '24.90', 500),
    ('CRE-01', 'Crème hydratante', 'creme-hydratante', 'soins-visage', '19.90', 800),
    ('HUI-01', 'Huile sèche', 'huile-seche', 'corps', '29.00', 120),
    ('MAS-01', 'Masque purifiant', 'masque-purifiant', 'soins-visage', '14.50', 60),
    ('GOM-01', 'Gommage doux', 'gommage-doux', 'corps', '17.00', 0),
]
# ─────────────────────────────────────────────────────────────


def seed():
    env = os.environ.get('FLASK_ENV', 'development')
    app = create_app(env)

    with app.app_context():
        # 1. Tables
        db.create_all()
        print('✓ Tables créées / vérifiées')

        # 2. Catalogue
        from storefront.models import Product, User
        created = 0
        for reference, name, slug, category, price, stock in PRODUCTS:
            if Product.query.filter_by(reference=reference).first():
                continue
            db.session.add(Product(
                reference=reference,
                name=name,
                slug=slug,
                category=category,
                price_ht=Decimal(price),
                stock=stock,
            ))
            created += 1
        db.session.commit()
        print(f'✓ {created} produit(s) créé(s), {len(PRODUCTS) - created} déjà présent(s)')

        # 3. Particulier
        client = User.query.filter_by(email=CLIENT_EMAIL).first()
        if not client:
            client = User(
                email=CLIENT_EMAIL,
                role='b2c',
                first_name='Jeanne',
                last_name='Martin',
                validated=True,
                region='fr',
            )
            client.set_password(CLIENT_PASSWORD)
            db.session.add(client)
            db.session.commit()
            print(f'✓ Client créé: {CLIENT_EMAIL} / {CLIENT_PASSWORD}')
        else:
            print(f'✓ Client existe déjà: {client.email}')

        # 4. Professionnel validé
        pro = User.query.filter_by(email=PRO_EMAIL).first()
        if not pro:
            pro = User(
                email=PRO_EMAIL,
                role='b2b',
                company=PRO_COMPANY,
                siret='12345678900011',
                remise=PRO_REMISE,
                validated=True,
                address='5 Rue du Printemps',
                postal_code='88000',
                city='Jeuxey',
                country='France',
                phone='+33600000000',
                region='fr',
            )
            pro.set_password(PRO_PASSWORD)
            db.session.add(pro)
            db.session.commit()
            print(f'✓ Pro créé: {PRO_EMAIL} / {PRO_PASSWORD} (remise {PRO_REMISE}%)')
        else:
            print(f'✓ Pro existe déjà: {pro.email}')

        print('\n' + '=' * 50)
        print('SEED TERMINÉ')
        print('=' * 50)
        print(f'\nClient:  {CLIENT_EMAIL} / {CLIENT_PASSWORD}')
        print(f'Pro:     {PRO_EMAIL} / {PRO_PASSWORD}')


if __name__ == '__main__':
    seed()
