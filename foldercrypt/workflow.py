"""
Batch encryption and decryption workflows.

Each workflow resolves its candidate files, calls the backend once per file
and aggregates the outcomes. A failure on one file is recorded and the batch
moves on; only setup problems (bad directory, missing backend) abort the
whole operation, and they do so before any file is touched.
"""

import concurrent.futures
import logging
import threading
import time
from pathlib import Path
from typing import List, Optional, Tuple, Union

from .aggregator import aggregate
from .backend import CryptoBackend, staged_output
from .errors import BackendInvocationError, InvalidPathError
from .models import BatchReport, BatchRequest, EncryptionTarget, OperationResult, SkippedFile
from .resolver import FileSetResolver, list_files, require_directory, strip_suffix

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


class BatchWorkflow:
    """Shared per-file execution for the encryption and decryption workflows."""

    operation = ""

    def __init__(self, backend: CryptoBackend, resolver: Optional[FileSetResolver] = None,
                 max_workers: int = 1):
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        self.backend = backend
        self.resolver = resolver or FileSetResolver()
        self.max_workers = max_workers

    def _prepare(self, directory: PathLike) -> Path:
        """Validate inputs before any backend call."""
        base = require_directory(directory)
        self.backend.ensure_available()
        return base

    def _invoke(self, source: Path, output: Path, passphrase: str) -> None:
        raise NotImplementedError

    def _execute(self, target: EncryptionTarget, passphrase: str) -> None:
        """
        Invoke the backend against a staging file next to ``target.output``.

        The output only appears (or is replaced) once the backend succeeds.
        A failure or interrupt removes the staging file and leaves any
        existing output as it was.
        """
        try:
            with staged_output(target.output) as staging:
                self._invoke(target.source, staging, passphrase)
        except OSError as e:
            raise BackendInvocationError(target.source, f"cannot write {target.output}: {e}")

    def _attempt(self, target: EncryptionTarget, passphrase: str,
                 cancel_event: Optional[threading.Event]) -> Optional[OperationResult]:
        """
        Process one target, converting backend errors into a failed result.

        Returns:
            The result, or None when cancellation was requested before starting
        """
        if cancel_event is not None and cancel_event.is_set():
            return None

        start_time = time.time()
        try:
            self._execute(target, passphrase)
        except BackendInvocationError as e:
            logger.warning(f"{self.operation} failed for {target.source}: {e.detail}")
            return OperationResult(
                target=target,
                succeeded=False,
                error_detail=e.detail,
                error_type=type(e).__name__,
                duration=time.time() - start_time,
            )

        logger.info(f"{self.operation}ed {target.source} -> {target.output}")
        return OperationResult(target=target, succeeded=True, duration=time.time() - start_time)

    def _run_batch(self, targets: List[EncryptionTarget], passphrase: str,
                   cancel_event: Optional[threading.Event]) -> Tuple[List[OperationResult], List[EncryptionTarget]]:
        """
        Run every target, sequentially or on a thread pool.

        Returns:
            (results in target order, targets abandoned after cancellation)
        """
        if self.max_workers > 1 and len(targets) > 1:
            logger.info(f"Processing {len(targets)} files with {self.max_workers} workers")
            with concurrent.futures.ThreadPoolExecutor(max_workers=self.max_workers) as executor:
                futures = [
                    executor.submit(self._attempt, target, passphrase, cancel_event)
                    for target in targets
                ]
                outcomes = [future.result() for future in futures]
        else:
            outcomes = []
            for target in targets:
                outcome = self._attempt(target, passphrase, cancel_event)
                outcomes.append(outcome)

        results = [outcome for outcome in outcomes if outcome is not None]
        pending = [target for target, outcome in zip(targets, outcomes) if outcome is None]
        if pending:
            logger.warning(f"{self.operation} cancelled: {len(pending)} of {len(targets)} files not processed")
        return results, pending


class EncryptionWorkflow(BatchWorkflow):
    """Encrypts every file of a directory next to the original."""

    operation = "encrypt"

    def _invoke(self, source: Path, output: Path, passphrase: str) -> None:
        self.backend.encrypt(source, output, passphrase)

    def plan(self, directory: PathLike, suffix: Optional[str] = None) -> Tuple[List[EncryptionTarget], List[SkippedFile]]:
        """
        Work out what ``encrypt_all`` would do without calling the backend.

        Files already carrying the ciphertext suffix are skipped.
        """
        suffix = suffix or self.backend.suffix
        targets = []
        skipped = []
        for source in self.resolver.resolve(directory):
            if source.name.endswith(suffix):
                skipped.append(SkippedFile(source, f"already has the '{suffix}' suffix"))
                continue
            targets.append(EncryptionTarget(source, source.with_name(source.name + suffix)))
        return targets, skipped

    def encrypt_all(self, directory: PathLike, passphrase: str, suffix: Optional[str] = None,
                    cancel_event: Optional[threading.Event] = None) -> BatchReport:
        """
        Encrypt every file in ``directory``.

        Args:
            directory: Directory whose files are encrypted (not recursed into)
            passphrase: Symmetric passphrase handed to the backend
            suffix: Ciphertext suffix (defaults to the backend's)
            cancel_event: When set, files not yet started are left pending

        Returns:
            Report whose ``files`` are the ciphertext files now in the directory

        Raises:
            InvalidPathError: If ``directory`` is invalid
            BackendNotFoundError: If the backend is unavailable
        """
        suffix = suffix or self.backend.suffix
        base = self._prepare(directory)
        targets, skipped = self.plan(base, suffix)

        logger.info(f"Encrypting {len(targets)} files in {base}")
        results, pending = self._run_batch(targets, passphrase, cancel_event)

        return aggregate(
            results,
            operation=self.operation,
            files=list_files(base, suffix, with_suffix=True),
            pending=pending,
            skipped=skipped,
        )

    def run(self, request: BatchRequest, cancel_event: Optional[threading.Event] = None) -> BatchReport:
        return self.encrypt_all(request.directory, request.passphrase, request.suffix, cancel_event)


class DecryptionWorkflow(BatchWorkflow):
    """Decrypts suffixed files, writing each output without the suffix."""

    operation = "decrypt"

    def _invoke(self, source: Path, output: Path, passphrase: str) -> None:
        self.backend.decrypt(source, output, passphrase)

    def plan(self, directory: PathLike, suffix: Optional[str] = None) -> Tuple[List[EncryptionTarget], List[SkippedFile]]:
        """Work out what ``decrypt_all`` would do without calling the backend."""
        suffix = suffix or self.backend.suffix
        targets = []
        skipped = []
        for source in self.resolver.resolve(directory, suffix):
            try:
                output_name = strip_suffix(source.name, suffix)
            except ValueError as e:
                skipped.append(SkippedFile(source, str(e)))
                continue
            targets.append(EncryptionTarget(source, source.with_name(output_name)))
        return targets, skipped

    def decrypt_all(self, directory: PathLike, passphrase: str, suffix: Optional[str] = None,
                    cancel_event: Optional[threading.Event] = None) -> BatchReport:
        """
        Decrypt every file in ``directory`` ending with ``suffix``.

        Args:
            directory: Directory to scan (not recursed into)
            passphrase: Symmetric passphrase handed to the backend
            suffix: Ciphertext suffix to match and strip (defaults to the backend's)
            cancel_event: When set, files not yet started are left pending

        Returns:
            Report whose ``files`` are the non-suffixed files now in the directory

        Raises:
            InvalidPathError: If ``directory`` is invalid
            BackendNotFoundError: If the backend is unavailable
        """
        suffix = suffix or self.backend.suffix
        base = self._prepare(directory)
        targets, skipped = self.plan(base, suffix)

        logger.info(f"Decrypting {len(targets)} '{suffix}' files in {base}")
        results, pending = self._run_batch(targets, passphrase, cancel_event)

        return aggregate(
            results,
            operation=self.operation,
            files=list_files(base, suffix, with_suffix=False),
            pending=pending,
            skipped=skipped,
        )

    def run(self, request: BatchRequest, cancel_event: Optional[threading.Event] = None) -> BatchReport:
        return self.decrypt_all(request.directory, request.passphrase, request.suffix, cancel_event)

    def single_target(self, file_path: PathLike, suffix: Optional[str] = None) -> EncryptionTarget:
        """
        Compute the target for one file.

        The explicit ``suffix`` wins; otherwise the file's own extension is
        stripped.

        Raises:
            InvalidPathError: If the file is missing, not a regular file, or
                has no suffix to strip
        """
        path = Path(file_path)
        if not path.exists():
            raise InvalidPathError(f"File does not exist: {path}")
        if not path.is_file():
            raise InvalidPathError(f"Path is not a regular file: {path}")

        suffix = suffix or path.suffix
        if not suffix:
            raise InvalidPathError(f"File has no extension to strip: {path}")
        try:
            output_name = strip_suffix(path.name, suffix)
        except ValueError as e:
            raise InvalidPathError(f"Cannot derive output path for {path}: {e}")
        return EncryptionTarget(path, path.with_name(output_name))

    def decrypt_one(self, file_path: PathLike, passphrase: str, suffix: Optional[str] = None) -> OperationResult:
        """
        Decrypt a single file.

        Raises:
            InvalidPathError: If the file argument is invalid
            BackendNotFoundError: If the backend is unavailable
            BackendInvocationError: If the backend fails (DecryptionFailedError
                for a wrong passphrase or corrupted ciphertext)
        """
        target = self.single_target(file_path, suffix)
        self.backend.ensure_available()

        start_time = time.time()
        self._execute(target, passphrase)
        logger.info(f"decrypted {target.source} -> {target.output}")
        return OperationResult(target=target, succeeded=True, duration=time.time() - start_time)
