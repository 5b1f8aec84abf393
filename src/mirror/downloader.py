"""Download orchestration: fetch every missing archive of the download set."""
from __future__ import annotations

import logging
import os
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Iterable, Set

from common.http_client import RegistryRequestError
from common.logging_utils import extra_context, is_debug_enabled, Timer
from .models import DownloadReport, PackageFault, PackageIdentity, VersionOracle

logger = logging.getLogger(__name__)


def _existing_names(storage_path: str) -> Set[str]:
    return {name.lower() for name in os.listdir(storage_path)}


class DownloadOrchestrator:
    """Fetches archives into storage with bounded parallelism.

    Archives already present (matched by file name, ignoring case) are
    skipped, so re-running against the same storage is a no-op. A failed
    download does not stop the others; failures are collected in the report.
    """

    def __init__(self, oracle: VersionOracle, workers: int = 1):
        self.oracle = oracle
        self.workers = max(1, int(workers))

    def _fetch(self, identity: PackageIdentity, destination: str) -> bool:
        return self.oracle.fetch_archive(identity.id, identity.version, destination)

    def run(self, storage_path: str, download_set: Iterable[PackageIdentity]) -> DownloadReport:
        """Download every identity whose archive is missing from ``storage_path``."""
        report = DownloadReport()
        existing = _existing_names(storage_path)
        pending = []
        for identity in list(download_set):
            destination = os.path.join(storage_path, identity.file_name)
            if identity.file_name.lower() in existing or os.path.exists(destination):
                report.skipped.append(identity)
                continue
            pending.append((identity, destination))

        logger.info("%d archive(s) to download, %d already present", len(pending), len(report.skipped))

        with Timer() as t, ThreadPoolExecutor(max_workers=self.workers) as pool:
            futures = {pool.submit(self._fetch, identity, dest): identity for identity, dest in pending}
            for future in as_completed(futures):
                identity = futures[future]
                try:
                    written = future.result()
                except (RegistryRequestError, OSError) as e:
                    logger.error("Failed to download %s: %s", identity, e)
                    report.failed.append(PackageFault(identity, "download", str(e)))
                    continue
                if written:
                    report.downloaded.append(identity)
                else:
                    report.skipped.append(identity)

        if is_debug_enabled(logger):
            logger.debug(
                "Download phase finished",
                extra=extra_context(
                    event="function_exit",
                    component="downloader",
                    action="run",
                    outcome="failures" if report.failed else "success",
                    count=len(report.downloaded),
                    duration_ms=t.duration_ms(),
                ),
            )
        return report
