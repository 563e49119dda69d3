"""
Entry point for the archive_acquirer component.
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import List, Optional

from .application.exceptions import AcquirerError
from .infrastructure.containers import Container
from .infrastructure.options import build_spec, load_manifest

logger = logging.getLogger(__name__)

# CLI destinations that map onto download options.
_OPTION_NAMES = (
    "name",
    "url",
    "ensure",
    "checksum",
    "digest_url",
    "digest_string",
    "digest_type",
    "timeout",
    "src_target",
    "allow_insecure",
    "follow_redirects",
)


def setup_logging(level: str):
    """Applies basic logging configuration."""
    logging.basicConfig(level=level.upper())


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="archive-acquirer",
        description=(
            "Ensure a downloaded archive is present and matches its "
            "checksum, or is absent."
        ),
    )

    parser.add_argument("name", nargs="?", help="File name of the artifact.")
    parser.add_argument("url", nargs="?", help="Source URL (http, https, ftp or file).")

    parser.add_argument(
        "--manifest",
        type=Path,
        help="A TOML file with a [[downloads]] array to reconcile instead.",
    )
    parser.add_argument("--ensure", help="'present' (default) or 'absent'.")
    parser.add_argument(
        "--checksum",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Verify the artifact against its digest (default: on).",
    )
    parser.add_argument("--digest-url", help="URL of the digest file.")
    parser.add_argument(
        "--digest-string", help="Inline digest; takes priority over --digest-url."
    )
    parser.add_argument(
        "--digest-type",
        help="md5, sha1, sha224, sha256, sha384 or sha512 (default: md5).",
    )
    parser.add_argument(
        "--timeout", type=int, help="Transfer timeout in seconds (default: 120)."
    )
    parser.add_argument(
        "--src-target", help="Directory holding the artifact (default: /usr/src)."
    )
    parser.add_argument(
        "--allow-insecure",
        action="store_true",
        default=None,
        help="Skip TLS certificate verification.",
    )
    parser.add_argument(
        "--follow-redirects",
        action="store_true",
        default=None,
        help="Follow HTTP redirects.",
    )
    parser.add_argument("--log-level", help="Overrides logging.level.")

    return parser


async def run_application(args: argparse.Namespace) -> int:
    """Wires and runs the application using the DI container."""

    container = Container()
    config = container.config()
    setup_logging(level=args.log_level or config["logging"]["level"])
    defaults = config.get("defaults", {})

    try:
        if args.manifest:
            specs = load_manifest(args.manifest, defaults)
            service = container.acquisition_service()
            outcomes = await service.run(specs)
        else:
            raw = {key: getattr(args, key) for key in _OPTION_NAMES}
            spec = build_spec(raw, defaults)
            outcomes = [await container.reconciler().reconcile(spec)]
    except AcquirerError as e:
        logger.error(f"An application error occurred: {e}")
        return 1
    finally:
        await container.transport().aclose()

    changed = [outcome.name for outcome in outcomes if outcome.changed]
    logger.info(f"Changed: {', '.join(changed) if changed else 'nothing'}")
    return 0


def main(argv: Optional[List[str]] = None):
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.manifest and not (args.name and args.url):
        parser.error("NAME and URL are required unless --manifest is given")
    if args.manifest and (args.name or args.url):
        parser.error("NAME and URL cannot be combined with --manifest")

    sys.exit(asyncio.run(run_application(args)))


if __name__ == "__main__":
    main()
