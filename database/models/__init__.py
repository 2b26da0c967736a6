# database/models/__init__.py
from database.models.user import User, EPOCH
from database.models.card import Card

__all__ = [
    'User',
    'Card',
    'EPOCH',
]
