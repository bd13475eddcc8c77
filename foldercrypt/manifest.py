"""JSON manifests describing a finished batch."""

import json
from datetime import datetime
from pathlib import Path
from typing import Dict, Optional, Union

from .aggregator import summarize
from .models import BatchReport


def build_manifest(report: BatchReport, backend_name: Optional[str] = None) -> Dict:
    """Manifest document for ``report``. Never includes the passphrase."""
    batch_info = {
        'timestamp': datetime.now().isoformat(),
        'operation': report.operation,
        'backend': backend_name,
        'cancelled': report.cancelled,
    }
    batch_info.update(summarize(report))

    return {
        'batch_info': batch_info,
        'successful_files': [
            {
                'input_file': str(r.target.source),
                'output_file': str(r.target.output),
                'processing_time': round(r.duration, 6)
            }
            for r in report.results if r.succeeded
        ],
        'failed_files': [
            {
                'input_file': str(r.target.source),
                'error_type': r.error_type,
                'error': r.error_detail
            }
            for r in report.failures
        ],
        'pending_files': [str(t.source) for t in report.pending],
        'skipped_files': [
            {
                'file': str(s.path),
                'reason': s.reason
            }
            for s in report.skipped
        ],
        'resulting_files': [str(f) for f in report.files],
    }


def write_manifest(report: BatchReport, manifest_path: Union[str, Path],
                   backend_name: Optional[str] = None) -> Path:
    """Write the manifest for ``report`` to ``manifest_path``."""
    manifest_path = Path(manifest_path)
    manifest_path.parent.mkdir(parents=True, exist_ok=True)

    with open(manifest_path, 'w', encoding='utf-8') as f:
        json.dump(build_manifest(report, backend_name), f, indent=2)

    return manifest_path
