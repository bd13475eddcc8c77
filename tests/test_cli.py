"""Command-line interface tests (AES-GCM backend, so no gpg is needed)."""

import concurrent.futures
import json
import threading
from unittest.mock import patch

import pytest

from fakes import FakeBackend

from foldercrypt.cli import build_parser, main, run_interruptible
from foldercrypt.models import BatchRequest
from foldercrypt.workflow import EncryptionWorkflow


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ["FOLDERCRYPT_PASSPHRASE", "FOLDERCRYPT_BACKEND", "FOLDERCRYPT_SUFFIX",
                 "FOLDERCRYPT_MAX_WORKERS", "FOLDERCRYPT_TIMEOUT", "FOLDERCRYPT_ARMOR",
                 "GPG_PATH", "GNUPG_HOME", "LOG_LEVEL"]:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def folder(tmp_path):
    data = tmp_path / "data"
    data.mkdir()
    (data / "a.txt").write_bytes(b"alpha")
    (data / "b.txt").write_bytes(b"bravo")
    return data


def encrypt(folder, *extra):
    return main(["encrypt", str(folder), "pw", "--backend", "aes-gcm", *extra])


class TestParser:

    def test_positional_order(self):
        args = build_parser().parse_args(["decrypt", "/data", "secret", "--suffix", ".pgp"])
        assert args.directory == "/data"
        assert args.passphrase == "secret"
        assert args.suffix == ".pgp"

    def test_passphrase_optional(self):
        args = build_parser().parse_args(["decrypt-file", "/data/a.gpg"])
        assert args.file == "/data/a.gpg"
        assert args.passphrase is None

    def test_command_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])


class TestBatchCommands:

    def test_encrypt_then_decrypt(self, folder, capsys):
        assert encrypt(folder) == 0
        out = capsys.readouterr().out
        assert str(folder / "a.txt.enc") in out
        assert str(folder / "b.txt.enc") in out

        (folder / "a.txt").unlink()
        (folder / "b.txt").unlink()

        assert main(["decrypt", str(folder), "pw", "--backend", "aes-gcm"]) == 0
        out = capsys.readouterr().out
        assert str(folder / "a.txt") in out.splitlines()
        assert (folder / "a.txt").read_bytes() == b"alpha"
        assert (folder / "b.txt").read_bytes() == b"bravo"

    def test_per_file_failure_sets_exit_code(self, folder, capsys):
        assert encrypt(folder) == 0
        (folder / "b.txt.enc").write_bytes(b"not really ciphertext" * 5)
        capsys.readouterr()

        assert main(["decrypt", str(folder), "pw", "--backend", "aes-gcm"]) == 1
        err = capsys.readouterr().err
        assert "Failed: 1" in err
        assert str(folder / "b.txt.enc") in err

    def test_wrong_passphrase(self, folder, capsys):
        encrypt(folder)
        assert main(["decrypt", str(folder), "nope", "--backend", "aes-gcm"]) == 1
        assert "invalid passphrase" in capsys.readouterr().err
        assert (folder / "a.txt").read_bytes() == b"alpha"
        assert (folder / "b.txt").read_bytes() == b"bravo"

    def test_missing_directory(self, tmp_path, capsys):
        assert main(["encrypt", str(tmp_path / "missing"), "pw", "--backend", "aes-gcm"]) == 1
        assert "does not exist" in capsys.readouterr().err

    def test_missing_gpg_binary(self, folder, tmp_path, capsys):
        code = main(["encrypt", str(folder), "pw", "--gpg-path", str(tmp_path / "no-gpg")])
        assert code == 1
        assert "not found" in capsys.readouterr().err
        assert not (folder / "a.txt.gpg").exists()

    def test_passphrase_from_environment(self, folder, monkeypatch):
        monkeypatch.setenv("FOLDERCRYPT_PASSPHRASE", "from-env")
        with patch("foldercrypt.cli.getpass.getpass") as mock_getpass:
            assert main(["encrypt", str(folder), "--backend", "aes-gcm"]) == 0
        mock_getpass.assert_not_called()

        (folder / "a.txt").unlink()
        assert main(["decrypt-file", str(folder / "a.txt.enc"), "from-env", "--backend", "aes-gcm"]) == 0
        assert (folder / "a.txt").read_bytes() == b"alpha"

    def test_prompt_confirmation_mismatch(self, folder, capsys):
        with patch("foldercrypt.cli.getpass.getpass", side_effect=["one", "two"]):
            assert main(["encrypt", str(folder), "--backend", "aes-gcm"]) == 1
        assert "do not match" in capsys.readouterr().err
        assert not (folder / "a.txt.enc").exists()

    def test_empty_passphrase(self, folder, capsys):
        with patch("foldercrypt.cli.getpass.getpass", return_value=""):
            assert main(["decrypt", str(folder), "--backend", "aes-gcm"]) == 1
        assert "cannot be empty" in capsys.readouterr().err

    def test_dry_run(self, folder, capsys):
        with patch("foldercrypt.cli.getpass.getpass") as mock_getpass:
            assert main(["encrypt", str(folder), "--backend", "aes-gcm", "--dry-run"]) == 0
        mock_getpass.assert_not_called()
        out = capsys.readouterr().out
        assert "a.txt → a.txt.enc" in out
        assert not (folder / "a.txt.enc").exists()

    def test_manifest(self, folder, tmp_path):
        manifest = tmp_path / "manifest.json"
        assert encrypt(folder, "--manifest", str(manifest)) == 0

        data = json.loads(manifest.read_text(encoding='utf-8'))
        assert data['batch_info']['backend'] == "aes-gcm"
        assert data['batch_info']['successful'] == 2
        assert "pw" not in json.dumps(data['failed_files'])

    def test_workers_and_exclude(self, folder):
        assert encrypt(folder, "--workers", "2", "--exclude", "b.*") == 0
        assert (folder / "a.txt.enc").exists()
        assert not (folder / "b.txt.enc").exists()

    def test_invalid_configuration(self, folder, monkeypatch, capsys):
        monkeypatch.setenv("FOLDERCRYPT_MAX_WORKERS", "lots")
        assert encrypt(folder) == 1
        assert "Configuration error" in capsys.readouterr().err


class TestDecryptFile:

    def test_decrypt_single_file(self, folder, capsys):
        encrypt(folder)
        (folder / "a.txt").unlink()
        capsys.readouterr()

        assert main(["decrypt-file", str(folder / "a.txt.enc"), "pw", "--backend", "aes-gcm"]) == 0
        assert capsys.readouterr().out.strip() == str(folder / "a.txt")
        assert (folder / "a.txt").read_bytes() == b"alpha"

    def test_missing_file_fails_before_prompt(self, folder, capsys):
        with patch("foldercrypt.cli.getpass.getpass") as mock_getpass:
            assert main(["decrypt-file", str(folder / "nope.enc"), "--backend", "aes-gcm"]) == 1
        mock_getpass.assert_not_called()
        assert "does not exist" in capsys.readouterr().err

    def test_wrong_passphrase(self, folder, capsys):
        encrypt(folder)
        assert main(["decrypt-file", str(folder / "a.txt.enc"), "bad", "--backend", "aes-gcm"]) == 1
        assert "Decryption failed" in capsys.readouterr().err


class TestInterrupt:

    def test_interrupt_reports_partial_batch(self, folder):
        started = threading.Event()
        release = threading.Event()

        def hold_first_file(mode, source):
            started.set()
            release.wait(5)

        workflow = EncryptionWorkflow(FakeBackend(on_call=hold_first_file))
        request = BatchRequest(folder, "pw", ".gpg")
        real_result = concurrent.futures.Future.result
        waits = []

        def result(future, timeout=None):
            waits.append(future)
            if len(waits) == 1:
                started.wait(5)
                raise KeyboardInterrupt
            release.set()
            return real_result(future, timeout)

        with patch.object(concurrent.futures.Future, "result", autospec=True, side_effect=result):
            report, interrupted = run_interruptible(workflow, request)

        assert interrupted
        assert report.succeeded == 1
        assert [t.source.name for t in report.pending] == ["b.txt"]
        assert (folder / "a.txt.gpg").exists()
        assert not (folder / "b.txt.gpg").exists()

    def test_interrupted_batch_still_writes_manifest(self, folder, tmp_path, capsys):
        manifest = tmp_path / "manifest.json"

        def interrupted_run(workflow, request):
            cancel = threading.Event()
            cancel.set()
            return workflow.run(request, cancel), True

        with patch("foldercrypt.cli.run_interruptible", side_effect=interrupted_run):
            code = encrypt(folder, "--manifest", str(manifest))

        assert code == 130
        data = json.loads(manifest.read_text(encoding='utf-8'))
        assert data['batch_info']['cancelled'] is True
        assert len(data['pending_files']) == 2
        assert "Not processed (cancelled): 2" in capsys.readouterr().err
