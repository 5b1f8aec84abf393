"""Package mirror: local inventory, closure resolution and downloads.

- models.py: PackageIdentity, DownloadSet, faults and the VersionOracle protocol
- inventory.py: scan the storage directory
- resolver.py: upgrade selection and the dependency closure walk
- downloader.py: fetch missing archives
- pipeline.py: the end-to-end run
"""

from .models import DownloadReport, DownloadSet, PackageFault, PackageIdentity, VersionOracle  # noqa: F401
from .resolver import ClosureResolver, ResolutionContext, select_latest  # noqa: F401
from .downloader import DownloadOrchestrator  # noqa: F401
from .pipeline import MirrorReport, run_mirror, log_summary  # noqa: F401

__all__ = [
    "DownloadReport",
    "DownloadSet",
    "PackageFault",
    "PackageIdentity",
    "VersionOracle",
    "ClosureResolver",
    "ResolutionContext",
    "select_latest",
    "DownloadOrchestrator",
    "MirrorReport",
    "run_mirror",
    "log_summary",
]
