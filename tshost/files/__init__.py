from .dependencies import DECLARATION_SUFFIX, DependencyTracker, is_declaration
from .loader import OnDemandFileLoader, file_exists
from .registry import FileRecord, VirtualFileRegistry

__all__ = [
    "DECLARATION_SUFFIX",
    "DependencyTracker",
    "FileRecord",
    "OnDemandFileLoader",
    "VirtualFileRegistry",
    "file_exists",
    "is_declaration",
]
