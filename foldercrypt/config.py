"""Environment-driven configuration for foldercrypt."""

import logging
import os
from typing import Mapping, Optional

from .backend import CryptoBackend, GnuPGBackend
from .native_backend import AesGcmBackend

BACKENDS = ("gnupg", "aes-gcm")


class Settings:
    def __init__(self, environ: Optional[Mapping[str, str]] = None):
        """
        Initialize settings from the process environment.

        Args:
            environ: Mapping to read instead of ``os.environ`` (used by tests)
        """
        self._environ = os.environ if environ is None else environ
        self._initialize_settings()

    def _initialize_settings(self):
        """Initialize all configuration settings."""
        env = self._environ

        # Logging configuration - SINGLE SOURCE OF TRUTH
        self.LOG_LEVEL: str = env.get("LOG_LEVEL", "WARNING").upper()

        # Backend selection
        self.BACKEND: str = env.get("FOLDERCRYPT_BACKEND", "gnupg").lower()
        if self.BACKEND not in BACKENDS:
            raise ValueError(
                f"Unknown FOLDERCRYPT_BACKEND '{self.BACKEND}' (expected one of: {', '.join(BACKENDS)})"
            )

        # GnuPG configuration
        self.GPG_PATH: str = env.get("GPG_PATH", "gpg")
        self.GNUPG_HOME: Optional[str] = env.get("GNUPG_HOME") or None
        self.ARMOR: bool = env.get("FOLDERCRYPT_ARMOR", "false").lower() == "true"
        self.CIPHER_ALGO: Optional[str] = env.get("FOLDERCRYPT_CIPHER_ALGO") or None

        # Ciphertext suffix (empty means "use the backend default")
        self.SUFFIX: Optional[str] = env.get("FOLDERCRYPT_SUFFIX") or None

        # Processing
        self.MAX_WORKERS: int = self._get_int("FOLDERCRYPT_MAX_WORKERS", "1", minimum=1)
        self.TIMEOUT: int = self._get_int("FOLDERCRYPT_TIMEOUT", "0", minimum=0)

    def _get_int(self, name: str, default: str, minimum: int) -> int:
        raw = self._environ.get(name, default)
        try:
            value = int(raw)
        except ValueError:
            raise ValueError(f"{name} must be an integer, got '{raw}'")
        if value < minimum:
            raise ValueError(f"{name} must be >= {minimum}, got {value}")
        return value

    def get_log_level(self) -> int:
        """Convert LOG_LEVEL string to logging level integer."""
        levels = {
            "DEBUG": logging.DEBUG,      # 10 - Backend command lines
            "INFO": logging.INFO,        # 20 - Per-file progress
            "WARNING": logging.WARNING,  # 30 - Per-file failures
            "ERROR": logging.ERROR,      # 40 - Setup failures only
            "CRITICAL": logging.CRITICAL
        }
        return levels.get(self.LOG_LEVEL, logging.WARNING)


def default_suffix(settings: Settings) -> str:
    """Ciphertext suffix the configured backend produces."""
    if settings.SUFFIX:
        return settings.SUFFIX
    if settings.BACKEND == "aes-gcm":
        return ".enc"
    return ".asc" if settings.ARMOR else ".gpg"


def build_backend(settings: Settings, backend_path: Optional[str] = None) -> CryptoBackend:
    """
    Construct the backend selected by ``settings``.

    Args:
        settings: Configuration to build from
        backend_path: Overrides ``settings.GPG_PATH`` for the GnuPG backend

    Returns:
        A ready (but not yet availability-checked) backend
    """
    suffix = default_suffix(settings)

    if settings.BACKEND == "aes-gcm":
        return AesGcmBackend(suffix=suffix)

    return GnuPGBackend(
        binary=backend_path or settings.GPG_PATH,
        suffix=suffix,
        home_dir=settings.GNUPG_HOME,
        armor=settings.ARMOR,
        cipher_algo=settings.CIPHER_ALGO,
        timeout=settings.TIMEOUT or None,
    )
