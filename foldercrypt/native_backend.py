"""
In-process passphrase encryption backend.

Files are written as ``salt (32) | iv (16) | ciphertext | tag (16)`` using
AES-256-GCM with a PBKDF2-SHA256 derived key. This is not OpenPGP: files
produced here can only be opened by this backend.
"""

import logging
import os
from pathlib import Path

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from .backend import CryptoBackend, staged_output
from .errors import BackendInvocationError, DecryptionFailedError

logger = logging.getLogger(__name__)

SALT_SIZE = 32
IV_SIZE = 16
TAG_SIZE = 16
HEADER_SIZE = SALT_SIZE + IV_SIZE
KDF_ITERATIONS = 100000


class AesGcmBackend(CryptoBackend):
    """AES-256-GCM file encryption with a password-derived key."""

    name = "aes-gcm"

    def __init__(self, suffix: str = ".enc", chunk_size: int = 64 * 1024,
                 iterations: int = KDF_ITERATIONS):
        self.suffix = suffix
        self.chunk_size = chunk_size
        self.iterations = iterations

    def __repr__(self):
        return f"AesGcmBackend(suffix={self.suffix!r})"

    def generate_key_from_password(self, password: str, salt: bytes) -> bytes:
        """Derive encryption key from password using PBKDF2."""
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=32,  # 256-bit key
            salt=salt,
            iterations=self.iterations
        )
        return kdf.derive(password.encode('utf-8'))

    def encrypt(self, source: Path, output: Path, passphrase: str) -> None:
        salt = os.urandom(SALT_SIZE)
        iv = os.urandom(IV_SIZE)
        key = self.generate_key_from_password(passphrase, salt)
        encryptor = Cipher(algorithms.AES(key), modes.GCM(iv)).encryptor()

        try:
            with open(source, 'rb') as inf, staged_output(output) as staging, open(staging, 'wb') as outf:
                outf.write(salt)
                outf.write(iv)
                while chunk := inf.read(self.chunk_size):
                    outf.write(encryptor.update(chunk))
                outf.write(encryptor.finalize())
                outf.write(encryptor.tag)
        except OSError as e:
            raise BackendInvocationError(source, f"cannot encrypt file: {e}")

    def decrypt(self, source: Path, output: Path, passphrase: str) -> None:
        try:
            file_size = Path(source).stat().st_size
        except OSError as e:
            raise BackendInvocationError(source, f"cannot read encrypted file: {e}")

        if file_size < HEADER_SIZE + TAG_SIZE:
            raise DecryptionFailedError(source, "file too small to be a valid encrypted file")

        try:
            with open(source, 'rb') as inf:
                salt = inf.read(SALT_SIZE)
                iv = inf.read(IV_SIZE)

                inf.seek(-TAG_SIZE, os.SEEK_END)
                tag = inf.read(TAG_SIZE)
                inf.seek(HEADER_SIZE)

                key = self.generate_key_from_password(passphrase, salt)
                decryptor = Cipher(algorithms.AES(key), modes.GCM(iv, tag)).decryptor()

                # Plaintext is only moved onto output once the tag has been verified
                with staged_output(output) as staging, open(staging, 'wb') as outf:
                    remaining = file_size - HEADER_SIZE - TAG_SIZE
                    while remaining > 0:
                        chunk = inf.read(min(self.chunk_size, remaining))
                        if not chunk:
                            break
                        outf.write(decryptor.update(chunk))
                        remaining -= len(chunk)

                    outf.write(decryptor.finalize())
        except InvalidTag:
            raise DecryptionFailedError(source, "invalid passphrase or corrupted file")
        except OSError as e:
            raise BackendInvocationError(source, f"cannot decrypt file: {e}")
