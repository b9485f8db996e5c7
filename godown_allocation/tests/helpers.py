# godown_allocation/tests/helpers.py - shared fixtures for the service tests
from datetime import datetime

from godown_allocation.db import create_sqlalchemy_interface


def make_database():
    """Fresh in-memory SQLite database with every table created."""
    database = create_sqlalchemy_interface('sqlite://')
    database.create_all()
    return database


def add_godown(database, name, godown_type, is_active=True):
    return database.insert('godowns', {'name': name, 'godown_type': godown_type, 'is_active': is_active})[0]


def add_local_body(database, name, ward_count, body_type='panchayath'):
    return database.insert('locations_local_bodies', {
        'name': name,
        'body_type': body_type,
        'ward_count': ward_count,
        'is_active': True
    })[0]


def add_product(database, name, mrp=0.0, price=0.0):
    return database.insert('products', {'name': name, 'mrp': mrp, 'price': price, 'is_active': True})[0]


def add_entry(database, godown_id, product_id, quantity, created_at=None, **extra):
    """Insert a stock row directly, bypassing validation (negative quantities, fixed timestamps)."""
    row = {
        'godown_id': godown_id,
        'product_id': product_id,
        'quantity': quantity,
        'purchase_price': extra.pop('purchase_price', 0),
        'created_at': created_at or datetime.now(),
    }
    row.update(extra)
    return database.insert('godown_stock', row)[0]
