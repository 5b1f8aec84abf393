"""Shared fixtures: archive builder and an in-memory registry."""

import os
import threading
import zipfile

import pytest

from common.http_client import RegistryRequestError
from registry.nuget.nuspec import DependencyGroup, PackageDependency
from versioning.frameworks import TargetFramework
from versioning.nuget_version import NuGetVersion, VersionRange

NUSPEC_TEMPLATE = """<?xml version="1.0" encoding="utf-8"?>
<package xmlns="http://schemas.microsoft.com/packaging/2013/05/nuspec.xsd">
  <metadata>
    <id>{id}</id>
    <version>{version}</version>
    <authors>test</authors>
    <description>test package</description>
    {dependencies}
  </metadata>
</package>"""


def build_nupkg(path, package_id, version, dependencies=""):
    """Write a minimal .nupkg archive with an embedded nuspec."""
    nuspec = NUSPEC_TEMPLATE.format(id=package_id, version=version, dependencies=dependencies)
    with zipfile.ZipFile(path, "w") as archive:
        archive.writestr(f"{package_id}.nuspec", nuspec)
        archive.writestr("lib/netstandard2.0/placeholder.txt", "")
    return path


class FakeRegistry:
    """In-memory VersionOracle.

    ``packages`` maps id -> {version string: [(framework, [(dep id, range)])] or None}.
    A framework of None stands for a group without targetFramework.
    """

    base_address = "https://feed.example/v3-flatcontainer/"

    def __init__(self, packages=None, failing=None):
        self._versions = {}
        self._groups = {}
        self.failing = {(op, pid.lower()) for op, pid in (failing or [])}
        self.dependency_calls = []
        self.fetched = []
        self._lock = threading.Lock()
        for package_id, versions in (packages or {}).items():
            self.add(package_id, versions)

    def add(self, package_id, versions):
        key = package_id.lower()
        self._versions.setdefault(key, [])
        for raw, groups in versions.items():
            version = NuGetVersion.parse(raw)
            self._versions[key].append(version)
            if groups is None:
                self._groups[(key, version)] = None
                continue
            self._groups[(key, version)] = [
                DependencyGroup(
                    TargetFramework.parse(framework),
                    tuple(PackageDependency(dep_id, VersionRange.parse(rng)) for dep_id, rng in deps),
                )
                for framework, deps in groups
            ]

    def _maybe_fail(self, op, package_id):
        if (op, package_id.lower()) in self.failing:
            raise RegistryRequestError(f"simulated {op} failure for {package_id}")

    def list_versions(self, package_id):
        self._maybe_fail("versions", package_id)
        return list(self._versions.get(package_id.lower(), []))

    def get_dependency_groups(self, package_id, version):
        with self._lock:
            self.dependency_calls.append((package_id.lower(), version))
        self._maybe_fail("dependencies", package_id)
        return self._groups.get((package_id.lower(), version), [])

    def fetch_archive(self, package_id, version, destination):
        self._maybe_fail("download", package_id)
        if os.path.exists(destination):
            return False
        build_nupkg(destination, package_id, version.normalized())
        with self._lock:
            self.fetched.append((package_id.lower(), version))
        return True


@pytest.fixture
def make_archive(tmp_path):
    """Factory writing archives into tmp_path (or a given directory)."""

    def _make(package_id, version, directory=None, file_name=None, dependencies=""):
        directory = directory or tmp_path
        name = file_name or f"{package_id}.{version}.nupkg"
        return build_nupkg(os.path.join(str(directory), name), package_id, version, dependencies)

    return _make


@pytest.fixture
def fake_registry():
    """Factory for FakeRegistry instances."""
    return FakeRegistry
