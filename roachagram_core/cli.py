#!/usr/bin/env python3
"""
Roachagram Command Line Interface
=================================

Fetch an anagram narrative and write it as an HTML document.

Author: Olivier Vitrac, PhD, HDR | olivier.vitrac@adservio.fr | Adservio | 2026-10-19

Usage:
    roachagram fetch WORD [-o FILE]    Fetch and render an anagram narrative
    roachagram device-id               Show this installation's device id
    roachagram config                  Show current configuration
"""

import argparse
import asyncio
import json
import logging
import sys
from dataclasses import asdict
from pathlib import Path
from typing import List, Optional

from .config import RoachagramConfig, load_config
from .device_identity import DeviceIdentityStore
from .errors import ConfigurationError, InvalidInput
from .logging_utils import configure_logging
from .service import build_service, build_vault
from .version import get_short_banner

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_USAGE = 2


# =============================================================================
# ANSI Colors
# =============================================================================

class Colors:
    """ANSI color codes for terminal output."""
    RED = '\033[0;31m'
    GREEN = '\033[0;32m'
    YELLOW = '\033[1;33m'
    CYAN = '\033[0;36m'
    BOLD = '\033[1m'
    NC = '\033[0m'  # No Color

    @classmethod
    def disable(cls):
        """Disable colors (for non-TTY output)."""
        cls.RED = cls.GREEN = cls.YELLOW = ''
        cls.CYAN = cls.BOLD = cls.NC = ''


def print_ok(msg: str) -> None:
    print(f"{Colors.GREEN}✓{Colors.NC} {msg}", file=sys.stderr)


def print_warn(msg: str) -> None:
    print(f"{Colors.YELLOW}⚠{Colors.NC} {msg}", file=sys.stderr)


def print_error(msg: str) -> None:
    print(f"{Colors.RED}✗{Colors.NC} {msg}", file=sys.stderr)


# =============================================================================
# Commands
# =============================================================================

def _load(args: argparse.Namespace, require_api: bool = True) -> RoachagramConfig:
    """Load configuration and set up logging at its level."""
    config = load_config(args.config, require_api=require_api)
    configure_logging(config.logging.level, verbose=args.verbose)
    return config


def _apply_cli_overrides(config: RoachagramConfig, args: argparse.Namespace) -> RoachagramConfig:
    if getattr(args, "progressive", False):
        config.document.progressive = True
    if getattr(args, "theme", None):
        config.document.theme = args.theme
    if getattr(args, "caption", False):
        config.document.show_caption = True
    if getattr(args, "no_telemetry", False):
        config.telemetry.enabled = False
    return config


async def _fetch(config: RoachagramConfig, word: str):
    service = build_service(config)
    try:
        return await service.render(word)
    finally:
        await service.aclose()


def cmd_fetch(args: argparse.Namespace) -> int:
    """Fetch an anagram narrative and write the document."""
    config = _apply_cli_overrides(_load(args), args)

    try:
        result = asyncio.run(_fetch(config, args.word))
    except InvalidInput as e:
        print_error(str(e))
        return EXIT_USAGE

    if args.output:
        output = Path(args.output)
        output.write_text(result.document, encoding="utf-8")
        print_ok(f"Document written to {output}")
    else:
        sys.stdout.write(result.document)

    if not result.succeeded:
        print_warn(f"Request failed, fallback message rendered: {result.error}")
        return EXIT_FAILURE
    return EXIT_OK


def cmd_device_id(args: argparse.Namespace) -> int:
    """Show the device identifier, creating it if needed."""
    config = _load(args, require_api=False)
    store = DeviceIdentityStore(build_vault(config))
    device_id = store.get_or_create()
    print(device_id)
    if store.is_ephemeral:
        print_warn("Secure storage unavailable; this id lasts for this process only")
        return EXIT_FAILURE
    return EXIT_OK


def cmd_config(args: argparse.Namespace) -> int:
    """Show the effective configuration."""
    config = _load(args, require_api=False)
    print(json.dumps(asdict(config), indent=2))
    if not config.api.base_url:
        print_warn("api.base_url is not set; 'fetch' will refuse to start")
    return EXIT_OK


# =============================================================================
# Entry point
# =============================================================================

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="roachagram",
        description=get_short_banner(),
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    parser.add_argument("--config", type=Path, default=None, help="Path to roachagram.yaml")
    parser.add_argument("--no-color", action="store_true", help="Disable colored output")

    sub = parser.add_subparsers(dest="command")

    p_fetch = sub.add_parser("fetch", help="Fetch and render an anagram narrative")
    p_fetch.add_argument("word", help="Word or name (letters and spaces, up to 50 characters)")
    p_fetch.add_argument("-o", "--output", help="Write the HTML document to this file")
    p_fetch.add_argument("--progressive", action="store_true", help="Reveal the text progressively")
    p_fetch.add_argument("--theme", choices=["light", "dark"], help="Document theme")
    p_fetch.add_argument("--caption", action="store_true", help="Show the submitted word as a caption")
    p_fetch.add_argument("--no-telemetry", action="store_true", help="Do not send telemetry")
    p_fetch.set_defaults(func=cmd_fetch)

    p_device = sub.add_parser("device-id", help="Show this installation's device id")
    p_device.set_defaults(func=cmd_device_id)

    p_config = sub.add_parser("config", help="Show current configuration")
    p_config.set_defaults(func=cmd_config)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.no_color or not sys.stderr.isatty():
        Colors.disable()

    if not args.command:
        parser.print_help()
        return EXIT_USAGE

    try:
        return args.func(args)
    except ConfigurationError as e:
        print_error(str(e))
        return EXIT_USAGE


if __name__ == "__main__":
    sys.exit(main())
