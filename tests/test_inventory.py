"""Tests for the local inventory scan and duplicate cleanup."""

import os

import pytest

from mirror.inventory import delete_case_duplicates, find_case_duplicates, scan
from mirror.models import PackageIdentity
from registry.nuget.nuspec import ArchiveMetadataError


class TestScan:
    """Test the storage scan."""

    def test_keeps_highest_version_per_id(self, make_archive, tmp_path):
        """Test that only the newest archive of each id is reported."""
        make_archive("A", "1.0.0")
        make_archive("A", "2.0.0")
        make_archive("B", "1.0.0")

        inventory = scan(str(tmp_path))

        assert inventory == {PackageIdentity("A", "2.0.0"), PackageIdentity("B", "1.0.0")}

    def test_ids_grouped_case_insensitively(self, make_archive, tmp_path):
        """Test that 'a' and 'A' are the same package."""
        make_archive("Contoso", "1.0.0")
        make_archive("contoso", "1.5.0")
        inventory = scan(str(tmp_path))
        assert len(inventory) == 1
        assert next(iter(inventory)).version.normalized() == "1.5.0"

    def test_prerelease_compared_by_precedence(self, make_archive, tmp_path):
        """Test that 1.0.0 beats 1.0.0-rc.1."""
        make_archive("A", "1.0.0-rc.1")
        make_archive("A", "1.0.0")
        assert scan(str(tmp_path)) == {PackageIdentity("A", "1.0.0")}

    def test_ignores_other_files_and_subdirectories(self, make_archive, tmp_path):
        """Test that only top-level .nupkg files count."""
        make_archive("A", "1.0.0")
        (tmp_path / "readme.txt").write_text("x")
        nested = tmp_path / "nested"
        nested.mkdir()
        make_archive("Nested", "1.0.0", directory=nested)

        assert scan(str(tmp_path)) == {PackageIdentity("A", "1.0.0")}

    def test_empty_directory(self, tmp_path):
        """Test an empty storage."""
        assert scan(str(tmp_path)) == set()

    def test_missing_directory(self, tmp_path):
        """Test a storage path that does not exist."""
        with pytest.raises(NotADirectoryError):
            scan(os.path.join(str(tmp_path), "missing"))

    def test_malformed_archive_propagates(self, make_archive, tmp_path):
        """Test that a corrupt archive surfaces as an error."""
        make_archive("A", "1.0.0")
        (tmp_path / "Broken.1.0.0.nupkg").write_bytes(b"not a zip")
        with pytest.raises(ArchiveMetadataError):
            scan(str(tmp_path))


class TestCaseDuplicates:
    """Test detection and removal of case-colliding archives."""

    def test_find_and_delete(self, make_archive, tmp_path):
        """Test that only the later-sorted colliding name is removed."""
        make_archive("Contoso", "1.0.0", file_name="Contoso.1.0.0.nupkg")
        make_archive("Contoso", "1.0.0", file_name="contoso.1.0.0.nupkg")
        make_archive("Other", "1.0.0")

        duplicates = find_case_duplicates(str(tmp_path))
        assert [os.path.basename(p) for p in duplicates] == ["contoso.1.0.0.nupkg"]

        removed = delete_case_duplicates(str(tmp_path))
        assert removed == duplicates
        assert sorted(os.listdir(str(tmp_path))) == ["Contoso.1.0.0.nupkg", "Other.1.0.0.nupkg"]

    def test_no_duplicates(self, make_archive, tmp_path):
        """Test a clean storage."""
        make_archive("A", "1.0.0")
        assert find_case_duplicates(str(tmp_path)) == []
        assert delete_case_duplicates(str(tmp_path)) == []
