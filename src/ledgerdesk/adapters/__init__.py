from .memory_backend import InMemoryObjectStore, InMemoryUploadBackend
from .presigned_object_store import PresignedObjectStore
from .rest_backend import RestUploadBackend
from .spreadsheet_probe import ExcelSpreadsheetProbe

__all__ = [
    "ExcelSpreadsheetProbe",
    "InMemoryObjectStore",
    "InMemoryUploadBackend",
    "PresignedObjectStore",
    "RestUploadBackend",
]
