"""Value objects passed between the resolver, workflows and aggregator."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional, Tuple


@dataclass(frozen=True)
class EncryptionTarget:
    """A file to process and the path the backend writes to."""

    source: Path
    output: Path

    def to_dict(self) -> Dict[str, str]:
        return {'source': str(self.source), 'output': str(self.output)}


@dataclass(frozen=True)
class BatchRequest:
    """
    A directory-level encrypt or decrypt request.

    The passphrase is kept out of ``repr()`` so requests can be logged safely.
    """

    directory: Path
    passphrase: str = field(repr=False)
    suffix: str
    backend_path: Optional[str] = None

    def __post_init__(self):
        if not self.suffix:
            raise ValueError("suffix must be a non-empty string")
        object.__setattr__(self, 'directory', Path(self.directory))


@dataclass(frozen=True)
class OperationResult:
    """Outcome of one backend invocation."""

    target: EncryptionTarget
    succeeded: bool
    error_detail: Optional[str] = None
    error_type: Optional[str] = None
    duration: float = 0.0

    def to_dict(self) -> Dict:
        result = self.target.to_dict()
        result.update({
            'succeeded': self.succeeded,
            'error': self.error_detail,
            'error_type': self.error_type,
            'processing_time': round(self.duration, 6),
        })
        return result


@dataclass(frozen=True)
class SkippedFile:
    """A file excluded before any backend call, with the reason."""

    path: Path
    reason: str


@dataclass(frozen=True)
class BatchReport:
    """Aggregated outcome of a batch operation."""

    operation: str
    results: Tuple[OperationResult, ...] = ()
    files: Tuple[Path, ...] = ()
    pending: Tuple[EncryptionTarget, ...] = ()
    skipped: Tuple[SkippedFile, ...] = ()

    @property
    def total(self) -> int:
        """
        Number of files offered to the workflow (attempted plus abandoned).

        Files in ``skipped`` were filtered out before the batch started and
        are not counted here; ``summarize`` reports them separately.
        """
        return len(self.results) + len(self.pending)

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.results if r.succeeded)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if not r.succeeded)

    @property
    def failures(self) -> Tuple[OperationResult, ...]:
        return tuple(r for r in self.results if not r.succeeded)

    @property
    def cancelled(self) -> bool:
        return bool(self.pending)

    @property
    def ok(self) -> bool:
        """True when every offered file was processed successfully."""
        return self.failed == 0 and not self.cancelled

    def to_dict(self) -> Dict:
        return {
            'operation': self.operation,
            'total_files': self.total,
            'successful': self.succeeded,
            'failed': self.failed,
            'cancelled': self.cancelled,
            'results': [r.to_dict() for r in self.results],
            'files': [str(f) for f in self.files],
            'pending': [t.to_dict() for t in self.pending],
            'skipped': [{'file': str(s.path), 'reason': s.reason} for s in self.skipped],
        }
