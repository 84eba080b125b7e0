import argparse
import logging
import sys
from pathlib import Path

import requests

from . import __version__
from .config import config
from .directory import DirectoryService
from .errors import AuditError, AuthenticationError, ConfigurationError
from .graph_client import GraphClient
from .report import DEFAULT_USER_PROPERTIES, AuditContext, AuditOptions, audit, report_columns
from .writers import FORMATS, write_report_file, write_rows


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        prog="consent-audit",
        description="List delegated and application permissions granted to apps in an Entra ID tenant.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--delegated",
        action="store_true",
        help="Only report delegated permissions (default: both kinds).",
    )
    parser.add_argument(
        "--application",
        action="store_true",
        help="Only report application permissions (default: both kinds).",
    )
    parser.add_argument(
        "--user-property",
        dest="user_properties",
        action="append",
        metavar="NAME",
        help="User attribute to add to delegated rows as Principal<NAME>; repeatable "
        "(default: DisplayName).",
    )
    parser.add_argument(
        "--client-property",
        dest="client_properties",
        action="append",
        metavar="NAME",
        help="Service principal attribute to add to every row as Client<NAME>, e.g. AppId; repeatable.",
    )
    parser.add_argument(
        "--precache-size",
        type=int,
        default=config.PRECACHE_SIZE,
        help="Number of users to load up front (env: PRECACHE_SIZE, default: 999).",
    )
    parser.add_argument("--progress", action="store_true", help="Show progress bars on stderr.")
    parser.add_argument(
        "--output",
        type=Path,
        help="Write the report to this file instead of stdout.",
    )
    parser.add_argument("--format", choices=FORMATS, default="csv", help="Output format (default: csv).")
    parser.add_argument(
        "--access-token",
        default=None,
        help="Use this Graph access token instead of client credentials (env: GRAPH_ACCESS_TOKEN).",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Log lookup misses and strategy changes.")
    parser.add_argument("--debug", action="store_true", help="Log every Graph request.")
    return parser.parse_args(argv)


def build_options(args) -> AuditOptions:
    # neither flag means both
    both = not args.delegated and not args.application
    return AuditOptions(
        delegated=args.delegated or both,
        application=args.application or both,
        user_properties=tuple(args.user_properties or DEFAULT_USER_PROPERTIES),
        client_properties=tuple(args.client_properties or ()),
        precache_size=args.precache_size,
        show_progress=args.progress,
    )


def configure_logging(args):
    level = logging.WARNING
    if args.debug:
        level = logging.DEBUG
    elif args.verbose:
        level = logging.INFO
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(message)s")


def main(argv=None):
    args = parse_args(argv)
    configure_logging(args)
    options = build_options(args)

    try:
        client = GraphClient(access_token=args.access_token)
    except (ConfigurationError, AuthenticationError, requests.RequestException) as e:
        logging.error(f"Not connected to Microsoft Graph: {e}")
        sys.exit(1)

    context = AuditContext.create(DirectoryService(client))
    rows = audit(context, options)

    columns = report_columns(options)
    try:
        if args.output:
            count = write_report_file(rows, args.output, args.format, columns)
        else:
            count = write_rows(rows, sys.stdout, args.format, columns)
    except (AuditError, requests.RequestException) as e:
        logging.error(str(e))
        sys.exit(1)

    logging.info(f"Wrote {count} rows")


if __name__ == "__main__":
    main()
