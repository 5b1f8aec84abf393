"""Argument parsing functionality for nupkgsync."""

import argparse


def _positive_int(value):
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError("must be a positive integer")
    return number


def _positive_float(value):
    number = float(value)
    if number <= 0:
        raise argparse.ArgumentTypeError("must be a positive number")
    return number


def parse_args(argv=None):
    """Parses the arguments passed to the program."""
    parser = argparse.ArgumentParser(
        prog="nupkgsync",
        description=(
            "nupkgsync - Upgrade a local NuGet package mirror and fetch the "
            "dependency closure of every upgrade"
        ),
        add_help=True,
    )

    parser.add_argument("-s", "--storage",
                        dest="STORAGE_PATH",
                        help="Path to the NuGet packages storage directory",
                        action="store", type=str,
                        required=True)
    parser.add_argument("--prerelease",
                        dest="INCLUDE_PRERELEASE",
                        help="Include prerelease versions when looking for upgrades",
                        action="store_true")

    parser.add_argument("--source",
                        dest="SOURCE",
                        help="NuGet V3 service index URL (default: nuget.org)",
                        action="store",
                        type=str)
    parser.add_argument("--workers",
                        dest="WORKERS",
                        help="Parallel registry lookups and downloads",
                        action="store",
                        type=_positive_int)
    parser.add_argument("--timeout",
                        dest="TIMEOUT",
                        help="Overall deadline for the run, in seconds",
                        action="store",
                        type=_positive_float)
    parser.add_argument("--fail-fast",
                        dest="FAIL_FAST",
                        help="Abort on the first registry error instead of skipping the affected package",
                        action="store_true")
    parser.add_argument("--delete-duplicates",
                        dest="DELETE_DUPLICATES",
                        help="Remove archives whose file names differ only by case before scanning",
                        action="store_true")

    parser.add_argument("-c", "--config",
                        dest="CONFIG",
                        help="Path to configuration file (YAML)",
                        action="store",
                        type=str)
    parser.add_argument("--loglevel",
                        dest="LOG_LEVEL",
                        help="Set the logging level",
                        action="store",
                        type=str,
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'],
                        default='INFO')
    parser.add_argument("--logfile",
                        dest="LOG_FILE",
                        help="Log output file",
                        action="store",
                        type=str)
    parser.add_argument("-q", "--quiet",
                        dest="QUIET",
                        help="Do not output to console.",
                        action="store_true")

    return parser.parse_args(argv)
