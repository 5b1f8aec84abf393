"""Data models for the package mirror: identities, the download set and faults."""
from __future__ import annotations

import os
import threading
from dataclasses import dataclass, field
from typing import Iterator, List, Optional, Protocol, Set

from constants import Constants
from registry.nuget.nuspec import DependencyGroup, PackageDependency, read_archive_metadata
from versioning.nuget_version import NuGetVersion


class VersionOracle(Protocol):
    """Remote registry operations the mirror depends on."""

    def list_versions(self, package_id: str) -> List[NuGetVersion]:
        ...

    def get_dependency_groups(self, package_id: str, version: NuGetVersion) -> Optional[List[DependencyGroup]]:
        ...

    def fetch_archive(self, package_id: str, version: NuGetVersion, destination: str) -> bool:
        ...


@dataclass(frozen=True, eq=False)
class PackageIdentity:
    """Immutable (id, version) pair plus the archive file name.

    Two identities are equal when their ids match case-insensitively and their
    versions have the same precedence, whichever way they were constructed.
    """

    id: str
    version: NuGetVersion
    file_name: str = ""

    def __post_init__(self):
        if not self.id:
            raise ValueError("Package id must not be empty")
        if isinstance(self.version, str):
            object.__setattr__(self, "version", NuGetVersion.parse(self.version))
        if not self.file_name:
            object.__setattr__(
                self, "file_name", f"{self.id}.{self.version.normalized()}{Constants.ARCHIVE_EXTENSION}"
            )

    @classmethod
    def from_archive(cls, archive_path: str) -> "PackageIdentity":
        """Identity from the metadata embedded in a local archive."""
        metadata = read_archive_metadata(archive_path)
        return cls(metadata.id, metadata.version, os.path.basename(archive_path))

    @classmethod
    def from_dependency(cls, dependency: PackageDependency) -> Optional["PackageIdentity"]:
        """Identity implied by a dependency declaration.

        The upper bound wins when the range has one, otherwise the lower bound.
        This is a single-version pick, not range satisfaction. Returns None for
        a range without any bound.
        """
        version_range = dependency.version_range
        if version_range.has_upper_bound:
            version = version_range.max_version
        else:
            version = version_range.min_version
        if version is None:
            return None
        return cls(dependency.id, version)

    @property
    def is_prerelease(self) -> bool:
        return self.version.is_prerelease

    @property
    def key(self):
        return (self.id.lower(), self.version)

    def __eq__(self, other) -> bool:
        if not isinstance(other, PackageIdentity):
            return NotImplemented
        return self.key == other.key

    def __hash__(self) -> int:
        return hash(self.key)

    def __str__(self) -> str:
        return f"{self.id} {self.version}"

    def __repr__(self) -> str:
        return f"PackageIdentity({self.id!r}, '{self.version}')"


class DownloadSet:
    """Thread-safe, add-only set of identities to download in this run.

    ``add_if_absent`` is the single atomic check-and-insert used as the visited
    guard of the closure walk.
    """

    def __init__(self):
        self._items: Set[PackageIdentity] = set()
        self._lock = threading.Lock()

    def add_if_absent(self, identity: PackageIdentity) -> bool:
        """Add the identity; return True only if it was not present yet."""
        with self._lock:
            if identity in self._items:
                return False
            self._items.add(identity)
            return True

    def snapshot(self) -> List[PackageIdentity]:
        with self._lock:
            return list(self._items)

    def __contains__(self, identity) -> bool:
        with self._lock:
            return identity in self._items

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    def __iter__(self) -> Iterator[PackageIdentity]:
        return iter(self.snapshot())


@dataclass(frozen=True)
class PackageFault:
    """A registry or I/O failure attributed to one package."""

    package: PackageIdentity
    stage: str  # "upgrade" | "dependencies" | "download"
    message: str

    def __str__(self) -> str:
        return f"{self.package} [{self.stage}]: {self.message}"


@dataclass
class DownloadReport:
    """Outcome of the download phase."""

    downloaded: List[PackageIdentity] = field(default_factory=list)
    skipped: List[PackageIdentity] = field(default_factory=list)
    failed: List[PackageFault] = field(default_factory=list)
