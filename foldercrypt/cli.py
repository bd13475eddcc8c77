#!/usr/bin/env python3
"""
Command-line interface for folder encryption.

Encrypts every file of a folder with a symmetric passphrase, decrypts a
folder of ciphertext files, or decrypts a single file. The actual cipher work
is done by the configured backend (GnuPG by default).
"""

import argparse
import concurrent.futures
import getpass
import logging
import os
import sys
import threading
from pathlib import Path
from typing import List, Optional, Tuple

from .config import BACKENDS, Settings, build_backend, default_suffix
from .errors import BackendInvocationError, FolderCryptError
from .manifest import write_manifest
from .models import BatchReport, BatchRequest, EncryptionTarget
from .resolver import FileSetResolver
from .workflow import BatchWorkflow, DecryptionWorkflow, EncryptionWorkflow

logger = logging.getLogger(__name__)

PASSPHRASE_ENV = 'FOLDERCRYPT_PASSPHRASE'
PASSPHRASE_HELP = (f'Passphrase (prefer ${PASSPHRASE_ENV} or the prompt; '
                   'arguments are visible in process lists)')


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='foldercrypt',
        description="Symmetrically encrypt and decrypt the files of a folder",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Encrypt every file in a folder (writes <name>.gpg next to each file)
  foldercrypt encrypt /data/reports

  # Decrypt every .gpg file in a folder
  foldercrypt decrypt /data/reports

  # Decrypt files with a custom suffix, four at a time
  foldercrypt decrypt /data/reports --suffix .pgp --workers 4

  # Decrypt one file (output name drops the file's extension)
  foldercrypt decrypt-file /data/reports/q3.xlsx.gpg

Environment Variables:
  FOLDERCRYPT_PASSPHRASE - Passphrase for automation (avoids the prompt)
  GPG_PATH               - gpg binary to run (default: gpg)
  LOG_LEVEL              - DEBUG, INFO, WARNING (default) or ERROR
        """
    )

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument('--backend', choices=BACKENDS, help='Encryption backend (default: gnupg)')
    common.add_argument('--gpg-path', help='Path to the gpg binary')
    common.add_argument('--verbose', '-v', action='store_true', help='Verbose output')

    batch = argparse.ArgumentParser(add_help=False)
    batch.add_argument('--workers', type=int, help='Number of files processed in parallel (default: 1)')
    batch.add_argument('--exclude', help='Comma-separated glob patterns of file names to leave alone')
    batch.add_argument('--skip-hidden', action='store_true', help='Leave hidden files alone')
    batch.add_argument('--dry-run', action='store_true',
                       help='Show what would be processed without running the backend')
    batch.add_argument('--manifest', help='Write a JSON manifest of the results to this path')

    subparsers = parser.add_subparsers(dest='command', required=True)

    encrypt = subparsers.add_parser('encrypt', parents=[batch, common],
                                    help='Encrypt every file in a directory')
    encrypt.add_argument('directory', help='Directory whose files are encrypted')
    encrypt.add_argument('passphrase', nargs='?', help=PASSPHRASE_HELP)
    encrypt.add_argument('--suffix', help='Ciphertext suffix to append (default: backend suffix)')

    decrypt = subparsers.add_parser('decrypt', parents=[batch, common],
                                    help='Decrypt every suffixed file in a directory')
    decrypt.add_argument('directory', help='Directory containing encrypted files')
    decrypt.add_argument('passphrase', nargs='?', help=PASSPHRASE_HELP)
    decrypt.add_argument('--suffix', help='Suffix of the files to decrypt (default: backend suffix)')

    decrypt_file = subparsers.add_parser('decrypt-file', parents=[common],
                                         help='Decrypt a single file')
    decrypt_file.add_argument('file', help='Encrypted file')
    decrypt_file.add_argument('passphrase', nargs='?', help=PASSPHRASE_HELP)
    decrypt_file.add_argument('--suffix', help="Suffix to strip (default: the file's extension)")

    return parser


def configure_logging(settings: Settings, verbose: bool):
    level = settings.get_log_level()
    if verbose:
        level = min(level, logging.INFO)
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


def get_passphrase(args, confirm: bool) -> str:
    """Passphrase from the argument, the environment, or an interactive prompt."""
    if args.passphrase:
        return args.passphrase

    password = os.environ.get(PASSPHRASE_ENV)
    if password:
        if args.verbose:
            print(f"🔐 Using passphrase from environment variable ({PASSPHRASE_ENV})", file=sys.stderr)
        return password

    password = getpass.getpass("🔐 Enter passphrase: ")
    if confirm:
        confirm_password = getpass.getpass("🔐 Confirm passphrase: ")
        if password != confirm_password:
            raise ValueError("Passphrases do not match")
    return password


def make_workflow(args, settings: Settings, backend_path: Optional[str]) -> BatchWorkflow:
    backend = build_backend(settings, backend_path)
    exclude_patterns = [p.strip() for p in args.exclude.split(',')] if args.exclude else None
    resolver = FileSetResolver(include_hidden=not args.skip_hidden, exclude_patterns=exclude_patterns)
    workers = args.workers if args.workers is not None else settings.MAX_WORKERS

    if args.command == 'encrypt':
        return EncryptionWorkflow(backend, resolver, max_workers=workers)
    return DecryptionWorkflow(backend, resolver, max_workers=workers)


def print_dry_run(targets: List[EncryptionTarget], skipped):
    print("\n🔍 DRY RUN - Files that would be processed:")
    for i, target in enumerate(targets, 1):
        print(f"  {i:3d}. {target.source.name} → {target.output.name}")
    for item in skipped:
        print(f"  skip {item.path.name}: {item.reason}")
    print(f"\n📊 Total: {len(targets)} files")
    print("Run without --dry-run to perform the operation")


def print_report(report: BatchReport, verbose: bool):
    for path in report.files:
        print(path)

    print(f"\n✅ {report.operation.capitalize()}ed: {report.succeeded}/{report.total} files", file=sys.stderr)

    if report.skipped and verbose:
        print(f"   ⏭️  Skipped: {len(report.skipped)} files", file=sys.stderr)
        for item in report.skipped:
            print(f"     - {item.path.name}: {item.reason}", file=sys.stderr)

    if report.failed:
        print(f"   ❌ Failed: {report.failed} files", file=sys.stderr)
        for failed in report.failures:
            print(f"     - {failed.target.source}: {failed.error_detail}", file=sys.stderr)

    if report.pending:
        print(f"   ⏸️  Not processed (cancelled): {len(report.pending)} files", file=sys.stderr)


def run_interruptible(workflow: BatchWorkflow, request: BatchRequest) -> Tuple[BatchReport, bool]:
    """
    Run a batch, turning Ctrl-C into a cancellation.

    The batch runs on a worker thread so the main thread can catch
    KeyboardInterrupt. Files already started are allowed to finish and the
    rest are reported as pending.

    Returns:
        (report, whether the user interrupted the batch)
    """
    cancel_event = threading.Event()
    with concurrent.futures.ThreadPoolExecutor(max_workers=1) as executor:
        future = executor.submit(workflow.run, request, cancel_event)
        try:
            return future.result(), False
        except KeyboardInterrupt:
            cancel_event.set()
            print("\n⏸️ Interrupted by user, finishing files already in progress...", file=sys.stderr)
            return future.result(), True


def run_batch(args, settings: Settings) -> int:
    suffix = args.suffix or default_suffix(settings)

    if args.dry_run:
        workflow = make_workflow(args, settings, args.gpg_path)
        targets, skipped = workflow.plan(args.directory, suffix)
        print_dry_run(targets, skipped)
        return 0

    password = get_passphrase(args, confirm=args.command == 'encrypt')
    if not password:
        print("❌ Error: Passphrase cannot be empty", file=sys.stderr)
        return 1

    request = BatchRequest(
        directory=Path(args.directory),
        passphrase=password,
        suffix=suffix,
        backend_path=args.gpg_path,
    )
    password = None

    workflow = make_workflow(args, settings, request.backend_path)
    report, interrupted = run_interruptible(workflow, request)
    del request

    if args.manifest:
        manifest_path = write_manifest(report, args.manifest, workflow.backend.name)
        if args.verbose:
            print(f"📋 Manifest generated: {manifest_path}", file=sys.stderr)

    print_report(report, args.verbose)
    if interrupted:
        return 130
    return 0 if report.ok else 1


def run_decrypt_file(args, settings: Settings) -> int:
    workflow = DecryptionWorkflow(build_backend(settings, args.gpg_path))

    # Fail on a bad path before prompting for a passphrase
    workflow.single_target(args.file, args.suffix)

    password = get_passphrase(args, confirm=False)
    if not password:
        print("❌ Error: Passphrase cannot be empty", file=sys.stderr)
        return 1

    try:
        result = workflow.decrypt_one(args.file, password, args.suffix)
    except BackendInvocationError as e:
        print(f"❌ Decryption failed: {e}", file=sys.stderr)
        return 1
    finally:
        password = None

    print(result.target.output)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Command-line entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = Settings()
    except ValueError as e:
        print(f"❌ Configuration error: {e}", file=sys.stderr)
        return 1

    if args.backend:
        settings.BACKEND = args.backend

    configure_logging(settings, args.verbose)

    try:
        if args.command == 'decrypt-file':
            return run_decrypt_file(args, settings)
        return run_batch(args, settings)
    except KeyboardInterrupt:
        print("\n⏸️ Interrupted by user", file=sys.stderr)
        return 130
    except (FolderCryptError, ValueError) as e:
        print(f"❌ Error: {e}", file=sys.stderr)
        if args.verbose:
            import traceback
            traceback.print_exc()
        return 1


if __name__ == "__main__":
    sys.exit(main())
