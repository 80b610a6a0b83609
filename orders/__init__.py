from .backend import Backend, SelectResult
from .storage import ObjectStorage
from .auth import AuthService
from .sequence import OrderNumberGenerator
from .validator import OrderValidator
from .lifecycle import SupplierOrderManager
from .reception import ReceptionTracker
from .company import CompanySettingsService

__all__ = [
    "Backend", "SelectResult", "ObjectStorage", "AuthService",
    "OrderNumberGenerator", "OrderValidator", "SupplierOrderManager",
    "ReceptionTracker", "CompanySettingsService",
]
