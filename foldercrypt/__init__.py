"""Batch symmetric file encryption over a pluggable backend."""

from .backend import CryptoBackend, GnuPGBackend
from .config import Settings, build_backend
from .errors import (
    BackendInvocationError,
    BackendNotFoundError,
    DecryptionFailedError,
    FolderCryptError,
    InvalidPathError,
)
from .models import BatchReport, BatchRequest, EncryptionTarget, OperationResult
from .native_backend import AesGcmBackend
from .resolver import FileSetResolver
from .workflow import DecryptionWorkflow, EncryptionWorkflow

__version__ = "1.0.0"

__all__ = [
    "AesGcmBackend",
    "BackendInvocationError",
    "BackendNotFoundError",
    "BatchReport",
    "BatchRequest",
    "CryptoBackend",
    "DecryptionFailedError",
    "DecryptionWorkflow",
    "EncryptionTarget",
    "EncryptionWorkflow",
    "FileSetResolver",
    "FolderCryptError",
    "GnuPGBackend",
    "InvalidPathError",
    "OperationResult",
    "Settings",
    "build_backend",
]
