from .master import Category, Unit, Outlet, Product
from .inventory import OutletStock, Movement, TransferRecord, TransferDestination, MOVEMENT_TYPES, LOCATION_KINDS
from .preferences import FavoriteProduct, ProductUsage

__all__ = [
    'Category', 'Unit', 'Outlet', 'Product',
    'OutletStock', 'Movement', 'TransferRecord', 'TransferDestination',
    'MOVEMENT_TYPES', 'LOCATION_KINDS',
    'FavoriteProduct', 'ProductUsage',
]
