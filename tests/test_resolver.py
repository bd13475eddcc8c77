"""File discovery and suffix handling tests."""

import pytest

from foldercrypt.errors import InvalidPathError
from foldercrypt.resolver import FileSetResolver, list_files, require_directory, strip_suffix


@pytest.fixture
def folder(tmp_path):
    for name in ["b.txt", "a.txt", "a.txt.gpg", "c.log.gpg", ".hidden", "notes.gpg.bak"]:
        (tmp_path / name).write_bytes(b"x")
    (tmp_path / "sub.gpg").mkdir()
    return tmp_path


class TestResolve:

    def test_all_files_sorted(self, folder):
        names = [p.name for p in FileSetResolver().resolve(folder)]
        assert names == [".hidden", "a.txt", "a.txt.gpg", "b.txt", "c.log.gpg", "notes.gpg.bak"]

    def test_suffix_filter(self, folder):
        names = [p.name for p in FileSetResolver().resolve(folder, ".gpg")]
        assert names == ["a.txt.gpg", "c.log.gpg"]

    def test_directories_never_returned(self, folder):
        assert "sub.gpg" not in [p.name for p in FileSetResolver().resolve(folder, ".gpg")]

    def test_skip_hidden(self, folder):
        names = [p.name for p in FileSetResolver(include_hidden=False).resolve(folder)]
        assert ".hidden" not in names

    def test_exclude_patterns(self, folder):
        resolver = FileSetResolver(exclude_patterns=["*.bak", "b.*"])
        names = [p.name for p in resolver.resolve(folder)]
        assert names == [".hidden", "a.txt", "a.txt.gpg", "c.log.gpg"]

    def test_accepts_string_path(self, folder):
        assert len(FileSetResolver().resolve(str(folder), ".gpg")) == 2

    def test_missing_directory(self, tmp_path):
        with pytest.raises(InvalidPathError):
            FileSetResolver().resolve(tmp_path / "missing")

    def test_file_is_not_a_directory(self, folder):
        with pytest.raises(InvalidPathError):
            FileSetResolver().resolve(folder / "a.txt")

    def test_resolve_is_read_only(self, folder):
        before = sorted(p.name for p in folder.iterdir())
        FileSetResolver().resolve(folder, ".gpg")
        assert sorted(p.name for p in folder.iterdir()) == before


class TestStripSuffix:

    def test_exact_removal(self):
        assert strip_suffix("report.pdf.gpg", ".gpg") == "report.pdf"

    def test_characters_shared_with_suffix_are_kept(self):
        # character-class trimming would also eat the trailing "g"
        assert strip_suffix("dig.g.gpg", ".gpg") == "dig.g"
        assert strip_suffix("egg.gpg", ".gpg") == "egg"

    def test_multi_part_suffix(self):
        assert strip_suffix("data.tar.enc", ".tar.enc") == "data"

    def test_not_matching(self):
        with pytest.raises(ValueError):
            strip_suffix("report.pdf", ".gpg")

    def test_nothing_left(self):
        with pytest.raises(ValueError):
            strip_suffix(".gpg", ".gpg")

    def test_empty_suffix(self):
        with pytest.raises(ValueError):
            strip_suffix("report.pdf", "")


class TestListing:

    def test_with_and_without_suffix(self, folder):
        assert [p.name for p in list_files(folder, ".gpg", with_suffix=True)] == ["a.txt.gpg", "c.log.gpg"]
        assert [p.name for p in list_files(folder, ".gpg", with_suffix=False)] == [
            ".hidden", "a.txt", "b.txt", "notes.gpg.bak"
        ]

    def test_require_directory(self, folder):
        assert require_directory(str(folder)) == folder
        with pytest.raises(InvalidPathError):
            require_directory(folder / "nope")
