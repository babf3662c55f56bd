from .branches import Branch, MemoSequence
from .accounts import Account
from .parties import Customer, Supplier, Employee
from .inventory import Product, StockRegistryEntry
from .orders import Order, OrderItem
from .sales import Sale, SoldItem
from .purchases import Purchase
from .rollups import TopSheet, EmployeeProgress
from .transactions import Transaction

__all__ = [
    'Branch', 'MemoSequence',
    'Account',
    'Customer', 'Supplier', 'Employee',
    'Product', 'StockRegistryEntry',
    'Order', 'OrderItem',
    'Sale', 'SoldItem',
    'Purchase',
    'TopSheet', 'EmployeeProgress',
    'Transaction',
]
