from .catalog import Machine, MachineStatus, Product
from .sales import PaymentMethod, SaleRecord
from .cart import CartItem
from .chat import ChatMessage

__all__ = [
    'Machine', 'MachineStatus', 'Product',
    'PaymentMethod', 'SaleRecord',
    'CartItem',
    'ChatMessage',
]
