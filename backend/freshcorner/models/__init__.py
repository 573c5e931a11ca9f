from .auth import User, OtpVerification
from .catalog import Category, Product
from .cart import Cart, CartItem
from .orders import Order, OrderItem
from .addresses import Address
from .inventory import Warehouse, WarehouseInventory, StockMovement, ExpiryAlert

__all__ = [
    'User', 'OtpVerification',
    'Category', 'Product',
    'Cart', 'CartItem',
    'Order', 'OrderItem',
    'Address',
    'Warehouse', 'WarehouseInventory', 'StockMovement', 'ExpiryAlert',
]
