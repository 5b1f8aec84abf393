"""Nuspec parsing: package identity and dependency groups.

Used both for archives already in storage (the nuspec embedded in a .nupkg)
and for the nuspec documents published by the registry.
"""
from __future__ import annotations

import logging
import os
import xml.etree.ElementTree as ET
import zipfile
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from constants import Constants
from common.logging_utils import extra_context, is_debug_enabled
from versioning.frameworks import ANY, TargetFramework
from versioning.nuget_version import NuGetVersion, VersionRange

logger = logging.getLogger(__name__)


class ArchiveMetadataError(ValueError):
    """An archive or nuspec is missing or has malformed identity metadata."""


@dataclass(frozen=True)
class PackageDependency:
    """One dependency declaration: package id plus version range."""

    id: str
    version_range: VersionRange


@dataclass(frozen=True)
class DependencyGroup:
    """Dependencies declared for one target framework."""

    target_framework: TargetFramework
    packages: Tuple[PackageDependency, ...] = ()


@dataclass(frozen=True)
class NuspecMetadata:
    """Identity and dependency groups read from a nuspec."""

    id: str
    version: NuGetVersion
    dependency_groups: Tuple[DependencyGroup, ...] = field(default_factory=tuple)


def _strip_namespaces(root: ET.Element) -> None:
    # nuspec files use several schema namespaces; drop them for easier lookups
    for elem in root.iter():
        if isinstance(elem.tag, str) and "}" in elem.tag:
            elem.tag = elem.tag.split("}", 1)[1]


def _parse_dependency(elem: ET.Element) -> Optional[PackageDependency]:
    dep_id = (elem.get("id") or "").strip()
    if not dep_id:
        return None
    raw_range = elem.get("version")
    try:
        version_range = VersionRange.parse(raw_range)
    except ValueError as e:
        logger.warning("Ignoring dependency %s with invalid version range %r: %s", dep_id, raw_range, e)
        return None
    return PackageDependency(dep_id, version_range)


def _parse_dependency_groups(metadata: ET.Element) -> Tuple[DependencyGroup, ...]:
    dependencies = metadata.find("dependencies")
    if dependencies is None:
        return ()

    groups = dependencies.findall("group")
    if groups:
        result = []
        for group in groups:
            # a group without targetFramework parses as Any, which is never on the allow-list
            framework = TargetFramework.parse(group.get("targetFramework"))
            packages = tuple(
                dep for dep in (_parse_dependency(e) for e in group.findall("dependency")) if dep is not None
            )
            result.append(DependencyGroup(framework, packages))
        return tuple(result)

    # legacy nuspec: flat dependency list, tagged Any like an ungrouped group
    flat = tuple(
        dep for dep in (_parse_dependency(e) for e in dependencies.findall("dependency")) if dep is not None
    )
    if not flat:
        return ()
    return (DependencyGroup(TargetFramework(ANY), flat),)


def parse_nuspec(content: bytes, source: str = "<nuspec>") -> NuspecMetadata:
    """Parse nuspec XML content.

    Args:
        content: Raw nuspec bytes
        source: Name used in error messages

    Returns:
        NuspecMetadata

    Raises:
        ArchiveMetadataError: If the XML is malformed or lacks id/version.
    """
    try:
        root = ET.fromstring(content)
    except ET.ParseError as e:
        raise ArchiveMetadataError(f"Malformed nuspec in {source}: {e}") from e
    _strip_namespaces(root)

    metadata = root.find("metadata")
    if metadata is None:
        raise ArchiveMetadataError(f"No <metadata> element in {source}")

    package_id = (metadata.findtext("id") or "").strip()
    raw_version = (metadata.findtext("version") or "").strip()
    if not package_id or not raw_version:
        raise ArchiveMetadataError(f"Missing id or version in {source}")
    try:
        version = NuGetVersion.parse(raw_version)
    except ValueError as e:
        raise ArchiveMetadataError(f"Invalid version {raw_version!r} in {source}") from e

    groups = _parse_dependency_groups(metadata)
    if is_debug_enabled(logger):
        logger.debug(
            "Parsed nuspec",
            extra=extra_context(
                event="parse",
                component="nuspec",
                action="parse_nuspec",
                target=source,
                package_id=package_id,
                package_version=str(version),
                count=len(groups),
            ),
        )
    return NuspecMetadata(package_id, version, groups)


def read_archive_metadata(archive_path: str) -> NuspecMetadata:
    """Read the nuspec embedded at the root of a .nupkg archive.

    Raises:
        ArchiveMetadataError: If the archive is not a zip or has no nuspec.
        OSError: On file-system errors.
    """
    try:
        with zipfile.ZipFile(archive_path) as archive:
            candidates: List[str] = [
                name
                for name in archive.namelist()
                if "/" not in name and name.lower().endswith(Constants.NUSPEC_EXTENSION)
            ]
            if not candidates:
                raise ArchiveMetadataError(f"No nuspec found in {archive_path}")
            content = archive.read(candidates[0])
    except zipfile.BadZipFile as e:
        raise ArchiveMetadataError(f"Not a valid archive: {archive_path}") from e
    return parse_nuspec(content, source=os.path.basename(archive_path))
