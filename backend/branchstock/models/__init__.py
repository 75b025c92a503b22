from .branches import Branch
from .auth import User
from .catalog import Category, Product
from .stock import BranchStock, StockMovement
from .transfers import Transfer, TransferItem
from .sales import Sale, SaleItem

__all__ = [
    'Branch', 'User',
    'Category', 'Product',
    'BranchStock', 'StockMovement',
    'Transfer', 'TransferItem',
    'Sale', 'SaleItem',
]
