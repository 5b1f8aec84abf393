"""Closure resolution: upgrade selection and the transitive dependency walk.

Ranges resolve to a single version (upper bound if present, else lower
bound; see ``PackageIdentity.from_dependency``) and upgrades pick the highest
published version. There is no constraint solving or backtracking.
"""
from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import FrozenSet, Iterable, List, Optional

from common.http_client import RegistryRequestError
from common.logging_utils import extra_context, is_debug_enabled, Timer
from versioning.frameworks import TargetFramework, allowed_frameworks
from versioning.nuget_version import NuGetVersion
from .models import DownloadSet, PackageFault, PackageIdentity, VersionOracle

logger = logging.getLogger(__name__)


def select_latest(versions: Iterable[NuGetVersion], include_prerelease: bool) -> Optional[NuGetVersion]:
    """Highest stable version, or the higher of stable/prerelease maxima when allowed.

    Returns None when no eligible version exists.
    """
    versions = list(versions)
    max_stable = max((v for v in versions if not v.is_prerelease), default=None)
    if not include_prerelease:
        return max_stable
    max_pre = max((v for v in versions if v.is_prerelease), default=None)
    if max_stable is None:
        return max_pre
    if max_pre is None:
        return max_stable
    return max_stable if max_stable > max_pre else max_pre


@dataclass
class ResolutionContext:
    """Per-run state of a closure walk: the download set and recorded faults."""

    download_set: DownloadSet = field(default_factory=DownloadSet)
    faults: List[PackageFault] = field(default_factory=list)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def record_fault(self, fault: PackageFault) -> None:
        with self._lock:
            self.faults.append(fault)


class ClosureResolver:
    """Computes upgrades and their dependency closure against a version oracle.

    Args:
        oracle: Registry access (list versions, dependency groups)
        frameworks: Target frameworks whose dependency groups are followed
            (default: Constants.ALLOWED_FRAMEWORKS)
        workers: Thread pool size for registry lookups
        fail_fast: Re-raise registry errors instead of recording a fault and
            continuing with independent packages
    """

    def __init__(
        self,
        oracle: VersionOracle,
        frameworks: Optional[FrozenSet[TargetFramework]] = None,
        workers: int = 1,
        fail_fast: bool = False,
    ):
        self.oracle = oracle
        self.frameworks = frameworks if frameworks is not None else allowed_frameworks()
        self.workers = max(1, int(workers))
        self.fail_fast = fail_fast

    def latest_eligible(self, identity: PackageIdentity, include_prerelease: bool) -> Optional[PackageIdentity]:
        """The upgrade target for an installed package, if any.

        Returns a new identity only when the latest eligible version is
        strictly greater than the installed one.
        """
        versions = self.oracle.list_versions(identity.id)
        latest = select_latest(versions, include_prerelease)
        if latest is None or not latest > identity.version:
            return None
        return PackageIdentity(identity.id, latest)

    def find_upgrades(
        self,
        installed: Iterable[PackageIdentity],
        include_prerelease: bool,
        context: Optional[ResolutionContext] = None,
    ) -> List[PackageIdentity]:
        """Upgrade targets for every installed package.

        Registry failures are recorded on ``context`` unless fail_fast is set.
        """
        context = context if context is not None else ResolutionContext()
        installed = list(installed)

        def _check(identity: PackageIdentity) -> Optional[PackageIdentity]:
            try:
                return self.latest_eligible(identity, include_prerelease)
            except RegistryRequestError as e:
                if self.fail_fast:
                    raise
                logger.warning("Could not check %s for upgrades: %s", identity, e)
                context.record_fault(PackageFault(identity, "upgrade", str(e)))
                return None

        with ThreadPoolExecutor(max_workers=self.workers) as pool:
            results = list(pool.map(_check, installed))

        upgrades = [u for u in results if u is not None]
        for current, target in zip(installed, results):
            if target is not None:
                logger.info("Upgrade available: %s %s -> %s", current.id, current.version, target.version)
        return upgrades

    def dependencies_of(self, identity: PackageIdentity) -> List[PackageIdentity]:
        """Identities declared by the allowed dependency groups of one package."""
        groups = self.oracle.get_dependency_groups(identity.id, identity.version)
        if groups is None:
            return []

        children: List[PackageIdentity] = []
        for group in groups:
            if group.target_framework not in self.frameworks:
                if is_debug_enabled(logger):
                    logger.debug(
                        "Skipping dependency group",
                        extra=extra_context(
                            event="decision",
                            component="resolver",
                            action="filter_group",
                            outcome="skipped",
                            target=str(group.target_framework),
                            package_id=identity.id,
                            package_version=str(identity.version),
                        ),
                    )
                continue
            for dependency in group.packages:
                child = PackageIdentity.from_dependency(dependency)
                if child is None:
                    logger.warning(
                        "%s declares %s without a version bound; skipping it",
                        identity,
                        dependency.id,
                    )
                    continue
                children.append(child)
        return children

    def _expand(self, identity: PackageIdentity, context: ResolutionContext) -> List[PackageIdentity]:
        try:
            return self.dependencies_of(identity)
        except RegistryRequestError as e:
            if self.fail_fast:
                raise
            logger.warning("Could not read dependencies of %s: %s", identity, e)
            context.record_fault(PackageFault(identity, "dependencies", str(e)))
            return []

    def resolve(
        self,
        roots: Iterable[PackageIdentity],
        context: Optional[ResolutionContext] = None,
    ) -> DownloadSet:
        """Walk the dependency closure of ``roots`` into the download set.

        Each node is claimed in the download set before its dependencies are
        fetched, and only newly claimed nodes are expanded. That guard alone
        bounds the walk, so cycles and shared sub-dependencies are visited
        once.

        Args:
            roots: Packages to start from
            context: Walk state to populate (a fresh one when omitted)

        Returns:
            The populated DownloadSet
        """
        context = context if context is not None else ResolutionContext()
        frontier = [root for root in roots if root is not None]
        with Timer() as t, ThreadPoolExecutor(max_workers=self.workers) as pool:
            while frontier:
                claimed = [node for node in frontier if context.download_set.add_if_absent(node)]
                frontier = []
                for children in pool.map(lambda node: self._expand(node, context), claimed):
                    frontier.extend(children)

        if is_debug_enabled(logger):
            logger.debug(
                "Resolved closure",
                extra=extra_context(
                    event="function_exit",
                    component="resolver",
                    action="resolve",
                    count=len(context.download_set),
                    duration_ms=t.duration_ms(),
                ),
            )
        return context.download_set
