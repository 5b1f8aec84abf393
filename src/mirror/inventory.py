"""Local inventory: archives already present in the storage directory."""
from __future__ import annotations

import logging
import os
from glob import escape, glob
from typing import Dict, List, Set

from constants import Constants
from common.logging_utils import extra_context, is_debug_enabled
from .models import PackageIdentity

logger = logging.getLogger(__name__)


def _archive_paths(storage_path: str) -> List[str]:
    pattern = os.path.join(escape(storage_path), f"*{Constants.ARCHIVE_EXTENSION}")
    return sorted(p for p in glob(pattern) if os.path.isfile(p))


def scan(storage_path: str) -> Set[PackageIdentity]:
    """Scan the top level of ``storage_path`` for archives.

    Only the highest version of each package id is kept. Archive identity is
    read from the embedded nuspec, not from the file name.

    Args:
        storage_path: Storage directory

    Returns:
        Set with one PackageIdentity per package id

    Raises:
        ArchiveMetadataError: If an archive has malformed metadata.
        OSError: On file-system errors.
    """
    if not os.path.isdir(storage_path):
        raise NotADirectoryError(storage_path)

    latest: Dict[str, PackageIdentity] = {}
    for path in _archive_paths(storage_path):
        identity = PackageIdentity.from_archive(path)
        key = identity.id.lower()
        existing = latest.get(key)
        if existing is not None and existing.version >= identity.version:
            continue
        latest[key] = identity

    if is_debug_enabled(logger):
        logger.debug(
            "Scanned storage",
            extra=extra_context(
                event="scan",
                component="inventory",
                action="scan",
                target=storage_path,
                count=len(latest),
            ),
        )
    return set(latest.values())


def find_case_duplicates(storage_path: str) -> List[str]:
    """Archives whose file names differ from an earlier one only by case.

    The first name in sorted order is treated as the original.
    """
    seen: Set[str] = set()
    duplicates: List[str] = []
    for path in _archive_paths(storage_path):
        name = os.path.basename(path).lower()
        if name in seen:
            duplicates.append(path)
        else:
            seen.add(name)
    return duplicates


def delete_case_duplicates(storage_path: str) -> List[str]:
    """Delete archives whose names collide case-insensitively.

    Returns:
        Paths that were removed
    """
    removed = []
    for path in find_case_duplicates(storage_path):
        os.remove(path)
        logger.info("Removed duplicate archive %s", path)
        removed.append(path)
    return removed
