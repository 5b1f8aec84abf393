"""nupkgsync - keep a local NuGet package mirror up to date.

Scans the storage directory, upgrades every package to its latest eligible
version and downloads the dependency closure of each upgrade.

    Returns:
        int: Exit code
"""
import logging
import os
import sys

from constants import ExitCodes, Constants
from common.deadline import Deadline, DeadlineExceeded
from common.http_client import RegistryRequestError
from common.logging_utils import configure_logging, extra_context, is_debug_enabled
from args import parse_args
from cli_config import apply_cli_overrides, load_configuration
from registry.nuget import ArchiveMetadataError, NuGetRegistryClient
from mirror import log_summary, run_mirror
from mirror.inventory import delete_case_duplicates
from versioning.frameworks import allowed_frameworks

logger = logging.getLogger(__name__)


def run(args):
    """Run one mirror update for parsed arguments and return the exit code."""
    storage = args.STORAGE_PATH
    if not os.path.isdir(storage):
        logging.error("Storage directory not found: %s", storage)
        return ExitCodes.FILE_ERROR.value

    deadline = Deadline(args.TIMEOUT)
    client = NuGetRegistryClient(Constants.REGISTRY_URL_NUGET_V3, deadline=deadline)
    try:
        if args.DELETE_DUPLICATES:
            removed = delete_case_duplicates(storage)
            logging.info("Removed %d duplicate archive(s).", len(removed))

        # an unreachable service index fails the whole run, not each package
        logging.debug("Using package base address %s", client.base_address)

        report = run_mirror(
            storage,
            client,
            include_prerelease=args.INCLUDE_PRERELEASE,
            workers=Constants.DEFAULT_WORKERS,
            fail_fast=args.FAIL_FAST,
            frameworks=allowed_frameworks(),
        )
    except DeadlineExceeded as e:
        deadline.cancel()
        logging.error("Run aborted: %s", e)
        return ExitCodes.TIMEOUT.value
    except RegistryRequestError as e:
        logging.error("Registry error, aborting: %s", e)
        return ExitCodes.CONNECTION_ERROR.value
    except (ArchiveMetadataError, OSError) as e:
        logging.error("Cannot read storage: %s", e)
        return ExitCodes.FILE_ERROR.value

    log_summary(report)
    if not report.ok:
        return ExitCodes.PARTIAL_FAILURE.value
    return ExitCodes.SUCCESS.value


def main(argv=None):
    """Main function of the program."""
    args = parse_args(argv)
    configure_logging(args.LOG_LEVEL, args.LOG_FILE, args.QUIET)

    try:
        load_configuration(args)
    except (OSError, ValueError) as e:
        logging.error("Invalid configuration: %s", e)
        sys.exit(ExitCodes.FILE_ERROR.value)
    apply_cli_overrides(args)

    if is_debug_enabled(logger):
        logger.debug(
            "CLI start",
            extra=extra_context(event="function_entry", component="cli", action="main", target=args.STORAGE_PATH)
        )

    code = run(args)

    if is_debug_enabled(logger):
        logger.debug(
            "CLI finished",
            extra=extra_context(
                event="function_exit",
                component="cli",
                action="main",
                outcome="success" if code == ExitCodes.SUCCESS.value else "failure",
            )
        )
    sys.exit(code)


if __name__ == "__main__":
    main()
