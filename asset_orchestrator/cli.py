"""Command-line entry point.

Usage:
    # Build once and exit
    asset-orchestrator --config build.yaml --once

    # Build, then keep rebuilding on change until Ctrl+C
    asset-orchestrator --config build.yaml

    # Also render pages/ into the output directory after every build
    asset-orchestrator --config build.yaml --pages pages --templates templates
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from jinja2 import TemplateError

from .config import load_config
from .coordinator import Orchestrator
from .errors import ConfigError
from .pages import load_env, render_pages

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="asset-orchestrator",
        description="Compile scripts and stylesheets when their sources change",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--config", type=Path, required=True, help="YAML build file")
    parser.add_argument(
        "--once",
        action="store_true",
        help="Build stale artifacts and exit instead of watching",
    )
    parser.add_argument("--pages", type=Path, help="Directory of Jinja2 pages to render")
    parser.add_argument(
        "--templates",
        type=Path,
        action="append",
        default=[],
        help="Extra template directory for --pages (repeatable)",
    )
    parser.add_argument(
        "--site-dir",
        type=Path,
        help="Where rendered pages go (default: the output directory)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")
    return parser


async def serve(args: argparse.Namespace) -> int:
    config, toolchain = load_config(args.config)
    watch = not (args.once or config.dont_watch_files)
    site_dir = args.site_dir or config.output_dir

    def on_settled() -> None:
        if env is not None:
            try:
                render_pages(env, args.pages, site_dir)
            except (TemplateError, OSError) as exc:
                logger.error("Page rendering failed: %s", exc)
        logger.info("Resources compiled.")

    orchestrator = Orchestrator(config, toolchain=toolchain, end_callback=on_settled)
    env = load_env([args.pages, *args.templates], orchestrator) if args.pages else None

    try:
        await orchestrator.run(watch=watch)
        await orchestrator.wait_idle()
        if not watch:
            return 1 if orchestrator.failures else 0
        logger.info("Watching for changes. Ctrl+C to stop.")
        await asyncio.Event().wait()
        return 0
    finally:
        orchestrator.close()


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(levelname)s - %(message)s",
    )
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    try:
        return asyncio.run(serve(args))
    except ConfigError as exc:
        logger.error("%s", exc)
        return 2
    except KeyboardInterrupt:
        logger.info("Stopped.")
        return 0


if __name__ == "__main__":
    sys.exit(main())
