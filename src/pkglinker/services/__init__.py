from .reference_store import ReferenceStore
from .file_service import FileService

__all__ = ["ReferenceStore", "FileService"]
