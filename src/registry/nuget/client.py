"""NuGet registry client: version listing, dependency metadata and archive download.

Talks to a NuGet V3 feed through its service index and the flat container
(``PackageBaseAddress/3.0.0``) resource:

- ``{base}{id}/index.json`` lists every published version
- ``{base}{id}/{version}/{id}.nuspec`` carries the dependency groups
- ``{base}{id}/{version}/{id}.{version}.nupkg`` is the archive itself

Ids and versions are lower-cased in these URLs; versions are normalized.
"""
from __future__ import annotations

import logging
import os
import tempfile
import threading
import urllib.parse
from typing import Any, Dict, List, Optional

import requests

from constants import Constants
from common.deadline import Deadline
from common.http_client import RegistryRequestError
from common.logging_utils import extra_context, is_debug_enabled, Timer, safe_url

import registry.nuget as nuget_pkg
from .nuspec import DependencyGroup, parse_nuspec, ArchiveMetadataError
from versioning.nuget_version import NuGetVersion

logger = logging.getLogger(__name__)

CONTEXT = "nuget"


def _get_package_base_address(service_index: Dict[str, Any]) -> Optional[str]:
    """Get the flat container base URL from a service index.

    Args:
        service_index: Service index dictionary

    Returns:
        Base URL ending with "/" or None
    """
    for resource in service_index.get("resources", []):
        types = resource.get("@type")
        if isinstance(types, str):
            types = [types]
        if Constants.PACKAGE_BASE_ADDRESS_TYPE in (types or []):
            base_url = resource.get("@id")
            if base_url:
                return base_url if base_url.endswith("/") else base_url + "/"
    return None


def _quote(part: str) -> str:
    return urllib.parse.quote(part.lower(), safe="")


class NuGetRegistryClient:
    """Version oracle backed by a NuGet V3 feed.

    Args:
        service_index_url: Feed service index (default: Constants.REGISTRY_URL_NUGET_V3)
        deadline: Run deadline threaded through every request
    """

    def __init__(self, service_index_url: Optional[str] = None, deadline: Optional[Deadline] = None):
        self.service_index_url = service_index_url or Constants.REGISTRY_URL_NUGET_V3
        self.deadline = deadline or Deadline()
        self._base_address: Optional[str] = None
        self._base_error: Optional[RegistryRequestError] = None
        self._lock = threading.Lock()

    @property
    def base_address(self) -> str:
        """Flat container base URL, fetched once from the service index.

        A failed lookup is remembered and re-raised without further requests.
        """
        with self._lock:
            if self._base_error is not None:
                raise self._base_error
            if self._base_address is None:
                try:
                    self._base_address = self._lookup_base_address()
                except RegistryRequestError as e:
                    self._base_error = e
                    raise
            return self._base_address

    def _lookup_base_address(self) -> str:
        index = nuget_pkg.get_json(self.service_index_url, context=CONTEXT, deadline=self.deadline)
        if not isinstance(index, dict):
            raise RegistryRequestError(
                f"Service index unavailable at {safe_url(self.service_index_url)}",
                url=safe_url(self.service_index_url),
            )
        base = _get_package_base_address(index)
        if not base:
            raise RegistryRequestError(
                f"Service index at {safe_url(self.service_index_url)} has no "
                f"{Constants.PACKAGE_BASE_ADDRESS_TYPE} resource",
                url=safe_url(self.service_index_url),
            )
        return base

    def _package_url(self, package_id: str, version: NuGetVersion, suffix: str) -> str:
        lower_id = _quote(package_id)
        lower_version = _quote(version.normalized())
        return f"{self.base_address}{lower_id}/{lower_version}/{suffix}"

    def list_versions(self, package_id: str) -> List[NuGetVersion]:
        """All published versions of a package (empty when unknown)."""
        url = f"{self.base_address}{_quote(package_id)}/index.json"
        data = nuget_pkg.get_json(url, context=CONTEXT, deadline=self.deadline)
        if not isinstance(data, dict):
            return []
        versions: List[NuGetVersion] = []
        for raw in data.get("versions", []):
            parsed = NuGetVersion.try_parse(raw) if isinstance(raw, str) else None
            if parsed is None:
                logger.debug("Skipping unparseable version %r of %s", raw, package_id)
                continue
            versions.append(parsed)
        if is_debug_enabled(logger):
            logger.debug(
                "Listed versions",
                extra=extra_context(
                    event="http_response",
                    component="client",
                    action="list_versions",
                    package_id=package_id,
                    count=len(versions),
                ),
            )
        return versions

    def get_dependency_groups(self, package_id: str, version: NuGetVersion) -> Optional[List[DependencyGroup]]:
        """Dependency groups declared by one package version.

        Returns:
            The groups (possibly empty), or None when the registry has no
            metadata for this version.
        """
        lower_id = _quote(package_id)
        url = self._package_url(package_id, version, f"{lower_id}{Constants.NUSPEC_EXTENSION}")
        res = nuget_pkg.safe_get(url, context=CONTEXT, deadline=self.deadline)
        if res.status_code == 404:
            logger.debug("No nuspec for %s %s", package_id, version)
            return None
        if res.status_code != 200:
            raise RegistryRequestError(
                f"nuspec request for {package_id} {version} returned HTTP {res.status_code}",
                url=safe_url(url),
                status_code=res.status_code,
            )
        try:
            metadata = parse_nuspec(res.content, source=f"{package_id} {version}")
        except ArchiveMetadataError as e:
            logger.warning("Ignoring unreadable nuspec for %s %s: %s", package_id, version, e)
            return None
        return list(metadata.dependency_groups)

    def fetch_archive(self, package_id: str, version: NuGetVersion, destination: str) -> bool:
        """Download a package archive to ``destination``.

        The body is streamed to a temporary file beside the destination and
        renamed into place, so an interrupted download never looks complete.

        Returns:
            True if the file was written, False if it already existed.
        """
        if os.path.exists(destination):
            return False

        lower_id = _quote(package_id)
        lower_version = _quote(version.normalized())
        url = self._package_url(package_id, version, f"{lower_id}.{lower_version}{Constants.ARCHIVE_EXTENSION}")
        with Timer() as t:
            res = nuget_pkg.safe_get(url, context=CONTEXT, deadline=self.deadline, stream=True)
            try:
                if res.status_code != 200:
                    raise RegistryRequestError(
                        f"archive request for {package_id} {version} returned HTTP {res.status_code}",
                        url=safe_url(url),
                        status_code=res.status_code,
                    )
                directory = os.path.dirname(os.path.abspath(destination))
                fd, tmp_path = tempfile.mkstemp(prefix=".nupkgsync-", suffix=".partial", dir=directory)
                try:
                    with os.fdopen(fd, "wb") as out:
                        try:
                            for chunk in res.iter_content(chunk_size=Constants.DOWNLOAD_CHUNK_SIZE):
                                self.deadline.check(f"downloading {package_id} {version}")
                                if chunk:
                                    out.write(chunk)
                        except requests.RequestException as e:
                            raise RegistryRequestError(
                                f"archive download for {package_id} {version} was interrupted: {e}",
                                url=safe_url(url),
                            ) from e
                    os.replace(tmp_path, destination)
                except BaseException:
                    if os.path.exists(tmp_path):
                        os.remove(tmp_path)
                    raise
            finally:
                res.close()

        logger.info("Downloaded %s %s (%d ms)", package_id, version, t.duration_ms())
        return True
