"""
Encryption backends.

A backend turns one input file into one output file, either encrypting or
decrypting with a passphrase. Workflows only talk to the ``CryptoBackend``
interface, so the external GnuPG binary can be swapped for another backend
(or a test double) without touching batch logic.
"""

import logging
import os
import shutil
import subprocess
import tempfile
from abc import ABC, abstractmethod
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Sequence, Union

from .errors import BackendInvocationError, BackendNotFoundError, DecryptionFailedError

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

# gpg diagnostics that mean "this ciphertext cannot be opened with this passphrase"
DECRYPTION_FAILURE_MARKERS = (
    "decryption failed",
    "bad session key",
    "bad passphrase",
    "no valid openpgp data found",
    "invalid packet",
    "unexpected eof",
)


@contextmanager
def staged_output(output: PathLike) -> Iterator[Path]:
    """
    Yield a temporary path next to ``output`` for a backend to write to.

    The temporary file replaces ``output`` only when the block finishes
    without raising. On any error, including KeyboardInterrupt, it is removed
    and an existing ``output`` is left untouched.
    """
    output = Path(output)
    fd, staging_name = tempfile.mkstemp(prefix=f".{output.name}.", suffix=".partial", dir=output.parent)
    os.close(fd)
    staging = Path(staging_name)
    try:
        yield staging
        os.replace(staging, output)
    except BaseException:
        staging.unlink(missing_ok=True)
        raise


class CryptoBackend(ABC):
    """Symmetric file encryption capability used by the workflows."""

    name = "backend"
    suffix = ".enc"

    def ensure_available(self) -> None:
        """Raise BackendNotFoundError if the backend cannot be used."""

    @abstractmethod
    def encrypt(self, source: Path, output: Path, passphrase: str) -> None:
        """Encrypt ``source`` into ``output``."""

    @abstractmethod
    def decrypt(self, source: Path, output: Path, passphrase: str) -> None:
        """Decrypt ``source`` into ``output``."""


class GnuPGBackend(CryptoBackend):
    """
    Symmetric encryption through an installed ``gpg`` binary.

    The passphrase is written to the child's stdin (``--passphrase-fd 0``) so
    it never appears in the process list.
    """

    name = "gnupg"

    def __init__(self, binary: str = "gpg", suffix: Optional[str] = None,
                 home_dir: Optional[str] = None, armor: bool = False,
                 cipher_algo: Optional[str] = None, timeout: Optional[float] = None,
                 cache_passphrase: bool = False, extra_args: Sequence[str] = ()):
        self.binary = binary
        self.suffix = suffix or ('.asc' if armor else '.gpg')
        self.home_dir = home_dir
        self.armor = armor
        self.cipher_algo = cipher_algo
        self.timeout = timeout
        self.cache_passphrase = cache_passphrase
        self.extra_args = list(extra_args)
        self._resolved: Optional[str] = None

    def __repr__(self):
        return f"GnuPGBackend(binary={self.binary!r}, suffix={self.suffix!r})"

    def ensure_available(self) -> None:
        """Locate the gpg binary once, before any file is processed."""
        if self._resolved:
            return

        candidate = Path(self.binary)
        if candidate.parent != Path('.') or candidate.is_absolute():
            resolved = str(candidate) if candidate.is_file() and os.access(candidate, os.X_OK) else None
        else:
            resolved = shutil.which(self.binary)

        if not resolved:
            raise BackendNotFoundError(
                f"GnuPG binary not found: {self.binary}. Install GnuPG or set GPG_PATH."
            )

        self._resolved = resolved
        logger.debug(f"Using GnuPG binary at {resolved}")

    def build_command(self, mode: str, source: PathLike, output: PathLike) -> List[str]:
        """
        Build the gpg argument list for one file.

        Args:
            mode: "encrypt" or "decrypt"
            source: Input file
            output: File gpg writes to

        Returns:
            List of command arguments for subprocess execution (no shell)
        """
        if mode not in ("encrypt", "decrypt"):
            raise ValueError(f"Unknown backend mode: {mode}")

        cmd = [
            self._resolved or self.binary,
            '--batch', '--yes', '--quiet',
            '--pinentry-mode', 'loopback',
            '--passphrase-fd', '0',
        ]
        if not self.cache_passphrase:
            cmd.append('--no-symkey-cache')
        if self.home_dir:
            cmd.extend(['--homedir', str(self.home_dir)])

        if mode == "encrypt":
            if self.armor:
                cmd.append('--armor')
            if self.cipher_algo:
                cmd.extend(['--cipher-algo', self.cipher_algo])

        cmd.extend(self.extra_args)
        cmd.extend(['--output', str(output)])
        cmd.append('--symmetric' if mode == "encrypt" else '--decrypt')
        cmd.append(str(source))
        return cmd

    def encrypt(self, source: Path, output: Path, passphrase: str) -> None:
        self._invoke("encrypt", source, output, passphrase)

    def decrypt(self, source: Path, output: Path, passphrase: str) -> None:
        self._invoke("decrypt", source, output, passphrase)

    def _child_environment(self) -> Dict[str, str]:
        """Environment for gpg with a fixed locale so diagnostics can be classified."""
        env = dict(os.environ)
        env.update({"LANG": "C", "LC_ALL": "C"})
        return env

    def _invoke(self, mode: str, source: Path, output: Path, passphrase: str) -> None:
        cmd = self.build_command(mode, source, output)
        logger.debug(f"Running gpg {mode} for {source}: {' '.join(cmd)}")

        try:
            completed = subprocess.run(
                cmd,
                input=(passphrase + "\n").encode('utf-8'),
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                env=self._child_environment(),
                timeout=self.timeout,
                close_fds=True,
            )
        except subprocess.TimeoutExpired:
            raise BackendInvocationError(source, f"gpg timed out after {self.timeout} seconds")
        except OSError as e:
            raise BackendInvocationError(source, f"could not start gpg: {e}")

        if completed.returncode == 0:
            return

        stderr = completed.stderr.decode('utf-8', errors='replace')
        if mode == "decrypt" and self._is_decryption_failure(stderr):
            raise DecryptionFailedError(source, stderr, completed.returncode)
        raise BackendInvocationError(source, stderr or f"gpg exited with status {completed.returncode}",
                                     completed.returncode)

    @staticmethod
    def _is_decryption_failure(stderr: str) -> bool:
        lowered = stderr.lower()
        return any(marker in lowered for marker in DECRYPTION_FAILURE_MARKERS)
