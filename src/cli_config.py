"""CLI configuration: YAML config loading plus command-line overrides.

Extracted from the entrypoint to keep it slim. The YAML config is applied
first and CLI flags take precedence.
"""

from __future__ import annotations

import logging

from constants import Constants, apply_config, load_yaml_config

logger = logging.getLogger(__name__)


def load_configuration(args) -> None:
    """Load the YAML config (explicit --config or default locations) into Constants.

    Raises:
        FileNotFoundError: If an explicit --config path does not exist.
        ValueError: If the config content is invalid.
    """
    cfg = load_yaml_config(getattr(args, "CONFIG", None))
    if cfg:
        apply_config(cfg)


def apply_cli_overrides(args) -> None:
    """Apply CLI overrides for registry and concurrency tunables."""
    if getattr(args, "SOURCE", None):
        Constants.REGISTRY_URL_NUGET_V3 = args.SOURCE
    if getattr(args, "WORKERS", None) is not None:
        Constants.DEFAULT_WORKERS = int(args.WORKERS)
    logger.debug(
        "Effective settings: source=%s workers=%s timeout=%s retries=%s",
        Constants.REGISTRY_URL_NUGET_V3,
        Constants.DEFAULT_WORKERS,
        Constants.REQUEST_TIMEOUT,
        Constants.HTTP_RETRY_MAX,
    )
