"""Constants used in the project."""

import logging
import os
from enum import Enum
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


class ExitCodes(Enum):
    """Exit codes for the program.

    Args:
        Enum (int): Exit codes for the program.
    """

    SUCCESS = 0
    FILE_ERROR = 1
    CONNECTION_ERROR = 2
    PARTIAL_FAILURE = 3
    TIMEOUT = 4


class Constants:  # pylint: disable=too-few-public-methods
    """General constants used in the project.
    Data holder for configuration constants; not intended to provide behavior.
    """

    REGISTRY_URL_NUGET_V3 = "https://api.nuget.org/v3/index.json"
    PACKAGE_BASE_ADDRESS_TYPE = "PackageBaseAddress/3.0.0"
    ARCHIVE_EXTENSION = ".nupkg"
    NUSPEC_EXTENSION = ".nuspec"
    LOG_FORMAT = "[%(levelname)s] %(message)s"
    REQUEST_TIMEOUT = 30  # Timeout in seconds for a single HTTP request
    DOWNLOAD_CHUNK_SIZE = 64 * 1024

    HTTP_RETRY_MAX = 3
    HTTP_RETRY_BASE_DELAY_SEC = 0.3
    HTTP_RETRY_STATUSES = (429, 500, 502, 503, 504)

    DEFAULT_WORKERS = 4

    # Target frameworks whose dependency groups are followed. Anything else is
    # ignored entirely.
    ALLOWED_FRAMEWORKS = [
        "agnostic",
        "netstandard1.0",
        "netstandard1.1",
        "netstandard1.2",
        "netstandard1.3",
        "netstandard1.4",
        "netstandard1.5",
        "netstandard1.6",
        "netstandard2.0",
        "netstandard2.1",
        "netstandard",
        "netcoreapp1.0",
        "netcoreapp1.1",
        "netcoreapp2.0",
        "netcoreapp2.1",
        "netcoreapp2.2",
        "netcoreapp3.0",
        "netcoreapp3.1",
        "net5.0",
    ]

    ENV_CONFIG = "NUPKGSYNC_CONFIG"
    DEFAULT_CONFIG_PATHS = [
        "nupkgsync.yml",
        "nupkgsync.yaml",
        os.path.join("~", ".config", "nupkgsync", "nupkgsync.yml"),
    ]


def _candidate_config_paths(path: Optional[str]):
    if path:
        return [path]
    env_path = os.environ.get(Constants.ENV_CONFIG)
    if env_path:
        return [env_path]
    return [os.path.expanduser(p) for p in Constants.DEFAULT_CONFIG_PATHS]


def load_yaml_config(path: Optional[str] = None) -> Dict[str, Any]:
    """Load the YAML configuration file.

    An explicit path must exist; default locations are optional.

    Args:
        path: Explicit config path (e.g., from --config)

    Returns:
        Parsed configuration mapping (empty when nothing was found)
    """
    import yaml  # pylint: disable=import-outside-toplevel

    for candidate in _candidate_config_paths(path):
        if not os.path.isfile(candidate):
            if path:
                raise FileNotFoundError(candidate)
            continue
        with open(candidate, encoding="utf-8") as fh:
            try:
                cfg = yaml.safe_load(fh) or {}
            except yaml.YAMLError as e:
                raise ValueError(f"Invalid YAML in {candidate}: {e}") from e
        if not isinstance(cfg, dict):
            raise ValueError(f"Configuration root must be a mapping: {candidate}")
        logger.debug("Loaded configuration from %s", candidate)
        return cfg
    return {}


def apply_config(cfg: Dict[str, Any]) -> None:
    """Map known configuration keys onto Constants."""
    registry = cfg.get("registry") or {}
    if registry.get("service_index_url"):
        Constants.REGISTRY_URL_NUGET_V3 = str(registry["service_index_url"])

    http = cfg.get("http") or {}
    if http.get("request_timeout") is not None:
        Constants.REQUEST_TIMEOUT = float(http["request_timeout"])
    if http.get("retry_max") is not None:
        Constants.HTTP_RETRY_MAX = max(1, int(http["retry_max"]))
    if http.get("retry_base_delay_sec") is not None:
        Constants.HTTP_RETRY_BASE_DELAY_SEC = float(http["retry_base_delay_sec"])

    mirror = cfg.get("mirror") or {}
    if mirror.get("workers") is not None:
        Constants.DEFAULT_WORKERS = max(1, int(mirror["workers"]))
    frameworks = mirror.get("allowed_frameworks")
    if frameworks is not None:
        if not isinstance(frameworks, list):
            raise ValueError("mirror.allowed_frameworks must be a list")
        Constants.ALLOWED_FRAMEWORKS = [str(f) for f in frameworks]
