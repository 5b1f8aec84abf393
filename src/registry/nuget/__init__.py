"""NuGet registry package.

This package provides NuGet feed access for the mirror:
- nuspec.py: nuspec parsing (identity, dependency groups) from archives and the feed
- client.py: HTTP interactions with the NuGet V3 flat container API

Public API is preserved at registry.nuget without shims.
"""

# Patch points exposed for tests (e.g., monkeypatch in tests)
from common.http_client import safe_get, get_json  # noqa: F401

# Public API re-exports
from .nuspec import (  # noqa: F401
    ArchiveMetadataError,
    DependencyGroup,
    NuspecMetadata,
    PackageDependency,
    parse_nuspec,
    read_archive_metadata,
)
from .client import NuGetRegistryClient  # noqa: F401

__all__ = [
    # Nuspec model
    "ArchiveMetadataError",
    "DependencyGroup",
    "NuspecMetadata",
    "PackageDependency",
    "parse_nuspec",
    "read_archive_metadata",
    # Client
    "NuGetRegistryClient",
    # Patch points for tests
    "safe_get",
    "get_json",
]
