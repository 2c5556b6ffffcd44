from .backend_port import UploadBackendPort
from .confirm_port import ConfirmPort
from .object_store_port import ObjectStorePort
from .spreadsheet_port import SpreadsheetPort
from .token_store_port import TokenStorePort

__all__ = [
    "ConfirmPort",
    "ObjectStorePort",
    "SpreadsheetPort",
    "TokenStorePort",
    "UploadBackendPort",
]
