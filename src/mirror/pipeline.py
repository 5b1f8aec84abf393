"""End-to-end mirror run: inventory, upgrades, closure, downloads."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import FrozenSet, List, Optional, Set

from versioning.frameworks import TargetFramework
from .downloader import DownloadOrchestrator
from .inventory import scan
from .models import DownloadReport, DownloadSet, PackageFault, PackageIdentity, VersionOracle
from .resolver import ClosureResolver, ResolutionContext

logger = logging.getLogger(__name__)


@dataclass
class MirrorReport:
    """Everything a run did, for the summary and the exit code."""

    inventory: Set[PackageIdentity] = field(default_factory=set)
    upgrades: List[PackageIdentity] = field(default_factory=list)
    download_set: DownloadSet = field(default_factory=DownloadSet)
    downloads: DownloadReport = field(default_factory=DownloadReport)
    resolution_faults: List[PackageFault] = field(default_factory=list)

    @property
    def faults(self) -> List[PackageFault]:
        return list(self.resolution_faults) + list(self.downloads.failed)

    @property
    def ok(self) -> bool:
        return not self.faults


def run_mirror(
    storage_path: str,
    oracle: VersionOracle,
    include_prerelease: bool = False,
    workers: int = 1,
    fail_fast: bool = False,
    frameworks: Optional[FrozenSet[TargetFramework]] = None,
) -> MirrorReport:
    """Bring ``storage_path`` up to date with the registry.

    Args:
        storage_path: Directory holding the mirrored archives
        oracle: Registry access
        include_prerelease: Allow prerelease versions as upgrade targets
        workers: Parallel registry lookups/downloads
        fail_fast: Abort on the first registry error instead of isolating it
        frameworks: Dependency group allow-list override

    Returns:
        MirrorReport
    """
    report = MirrorReport()
    report.inventory = scan(storage_path)
    logger.info("Found %d package(s) in %s", len(report.inventory), storage_path)

    resolver = ClosureResolver(oracle, frameworks=frameworks, workers=workers, fail_fast=fail_fast)
    context = ResolutionContext(download_set=report.download_set)

    report.upgrades = resolver.find_upgrades(report.inventory, include_prerelease, context)
    logger.info("%d package(s) have upgrades", len(report.upgrades))

    resolver.resolve(report.upgrades, context)
    report.resolution_faults = context.faults
    logger.info("Dependency closure holds %d package(s)", len(report.download_set))

    report.downloads = DownloadOrchestrator(oracle, workers=workers).run(storage_path, report.download_set)
    return report


def log_summary(report: MirrorReport) -> None:
    """Log the end-of-run summary, including every package fault."""
    logger.info(
        "Summary: %d installed, %d upgraded, %d in closure, %d downloaded, %d already present",
        len(report.inventory),
        len(report.upgrades),
        len(report.download_set),
        len(report.downloads.downloaded),
        len(report.downloads.skipped),
    )
    if report.ok:
        return
    logger.warning(
        "%d package(s) failed; other packages were processed normally:",
        len(report.faults),
    )
    for fault in report.faults:
        logger.warning("  %s", fault)
