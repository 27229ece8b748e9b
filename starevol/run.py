"""Command line entry point for compact-star evolution runs."""
from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import List, Optional

from . import config_utils
from .config_utils import configure_logging, load_config
from .errors import StarEvolError
from .orchestrator import run

__all__ = ["main", "build_parser"]

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Evolve the spin and thermal state of a compact star")
    parser.add_argument("--config", type=Path, help="Path to YAML configuration (defaults apply when omitted)")
    parser.add_argument(
        "--override",
        action="append",
        nargs="+",
        metavar="PATH=VALUE",
        help="Apply configuration overrides using dotted paths; e.g. --override drivers.photon_cooling.enabled=false",
    )
    parser.add_argument(
        "--overrides-file",
        action="append",
        type=Path,
        help="Load overrides from a file (one PATH=VALUE per line).",
    )
    parser.add_argument("--outdir", type=Path, help="Output directory (overrides output.outdir)")
    parser.add_argument(
        "--progress",
        action="store_true",
        help="Show a console progress bar keyed on simulated time.",
    )
    parser.add_argument(
        "--quiet",
        action="store_true",
        help="Suppress INFO logs and Python warnings.",
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Run one evolution; returns 0 on success, 1 when integration stopped early, 2 on errors."""

    args = build_parser().parse_args(argv)
    configure_logging(logging.WARNING if args.quiet else logging.INFO, suppress_warnings=args.quiet)

    override_list: List[str] = []
    if args.overrides_file:
        for override_path in args.overrides_file:
            override_list.extend(config_utils.read_overrides_file(override_path))
    if args.override:
        for group in args.override:
            override_list.extend(group)
    try:
        cfg = load_config(args.config, overrides=override_list)
        summary = run(cfg, outdir=args.outdir, progress=args.progress or None)
    except StarEvolError as exc:
        logger.error("%s: %s", type(exc).__name__, exc)
        return 2
    integration = summary.get("integration", {})
    if not integration.get("ok", False):
        logger.error("Integration did not complete: %s", integration.get("message", ""))
        return 1
    return 0


if __name__ == "__main__":  # pragma: no cover - standard CLI entrypoint
    raise SystemExit(main())
