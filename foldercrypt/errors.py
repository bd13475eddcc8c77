"""Error taxonomy for folder encryption workflows."""

from pathlib import Path
from typing import Optional, Union


class FolderCryptError(Exception):
    """Base class for all foldercrypt errors."""
    pass


class InvalidPathError(FolderCryptError):
    """Raised when a directory or file argument is missing or of the wrong kind."""
    pass


class BackendNotFoundError(FolderCryptError):
    """Raised when the configured encryption backend cannot be located."""
    pass


class BackendInvocationError(FolderCryptError):
    """
    Raised when a backend call fails for a single file.

    Carries the file path and the backend's diagnostic text so batch reports
    can show exactly what went wrong.
    """

    def __init__(self, path: Union[str, Path], detail: str, returncode: Optional[int] = None):
        self.path = Path(path)
        self.detail = (detail or "").strip() or "no diagnostic output"
        self.returncode = returncode
        super().__init__(f"{self.path}: {self.detail}")


class DecryptionFailedError(BackendInvocationError):
    """Raised when ciphertext cannot be decrypted (wrong passphrase or corrupted input)."""
    pass
