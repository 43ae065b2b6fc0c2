from .tenancy import Business
from .auth import User, SessionToken
from .inventory import Product
from .sales import Sale, CreditAccount

__all__ = [
    'Business',
    'User', 'SessionToken',
    'Product',
    'Sale', 'CreditAccount',
]
