from .auth import User, USER_ROLES
from .catalog import Product
from .carts import Cart, CartLine, CART_KINDS
from .orders import Order, OrderLine, LabelSequence, ORDER_KINDS, ORDER_STATUSES, PAYMENT_METHODS
from .serials import SerialAllocation

__all__ = [
    'User', 'USER_ROLES',
    'Product',
    'Cart', 'CartLine', 'CART_KINDS',
    'Order', 'OrderLine', 'LabelSequence', 'ORDER_KINDS', 'ORDER_STATUSES', 'PAYMENT_METHODS',
    'SerialAllocation',
]
