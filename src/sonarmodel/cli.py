"""Command-line interface for sonarmodel."""

from __future__ import annotations

import argparse
import json
import logging
import os
import shlex
from collections.abc import Mapping
from pathlib import Path

from sonarmodel import properties as props
from sonarmodel.config import load_config
from sonarmodel.errors import AnalysisError
from sonarmodel.pipeline import run
from sonarmodel.renderer.properties import FORMATS
from sonarmodel.scanner import PropertiesDump

logger = logging.getLogger(__name__)

ENV_PARAMS = "SONARQUBE_SCANNER_PARAMS"
EXIT_ANALYSIS_ERROR = 2


def _key_value(text: str) -> tuple[str, str]:
    key, sep, value = text.partition("=")
    if not sep or not key.strip():
        raise argparse.ArgumentTypeError(f"expected KEY=VALUE, got {text!r}")
    return key.strip(), value


def environment_overrides(environ: Mapping[str, str]) -> dict[str, str]:
    """Properties passed as a JSON object in ``SONARQUBE_SCANNER_PARAMS``."""
    raw = environ.get(ENV_PARAMS)
    if not raw:
        return {}
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise AnalysisError(f"{ENV_PARAMS} is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise AnalysisError(f"{ENV_PARAMS} must be a JSON object")
    return {str(k): str(v) for k, v in data.items()}


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="sonarmodel",
        description="Reduce a Gradle project model to scanner properties and run the analysis.",
    )
    parser.add_argument(
        "project",
        type=Path,
        help="Gradle project directory or JSON/YAML snapshot file",
    )
    parser.add_argument(
        "-D",
        dest="defines",
        metavar="KEY=VALUE",
        type=_key_value,
        action="append",
        default=[],
        help="Property override, applied last (repeatable)",
    )
    parser.add_argument(
        "--dump",
        metavar="FILE",
        default=None,
        help="Write the property map to FILE ('-' for stdout) instead of scanning",
    )
    parser.add_argument(
        "--format",
        choices=FORMATS,
        default="properties",
        help="Format used by --dump and --dry-run (default: properties)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print the property map to stdout without running the scanner",
    )
    parser.add_argument(
        "--scanner",
        default=None,
        help="Scanner command line (default: sonar-scanner)",
    )
    parser.add_argument(
        "-j",
        "--jobs",
        type=int,
        default=None,
        help="Worker threads used to resolve modules (default: CPU count)",
    )
    parser.add_argument(
        "--android-variant",
        default=None,
        help="Android variant(s) to analyze, comma-separated",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose (debug) output",
    )

    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.WARNING, format="%(message)s")
    if args.verbose:
        logging.getLogger("sonarmodel").setLevel(logging.DEBUG)

    project = args.project.resolve()
    try:
        config = load_config(project if project.is_dir() else project.parent)
        if args.scanner:
            config.scanner_command = shlex.split(args.scanner)
        if args.jobs:
            config.max_workers = args.jobs
        if args.android_variant:
            config.android_variant = args.android_variant

        overrides = environment_overrides(os.environ)
        overrides.update(dict(args.defines))
        if args.verbose:
            overrides.setdefault(props.VERBOSE, "true")

        engine = None
        if args.dump:
            engine = PropertiesDump(args.dump, args.format)
        elif args.dry_run:
            engine = PropertiesDump("-", args.format)

        return run(project, overrides=overrides, config=config, engine=engine)
    except AnalysisError as e:
        logger.error("%s", e)
        return EXIT_ANALYSIS_ERROR
