#!/usr/bin/env python3
"""Command-line interface for the equivalent plan generator."""

import argparse
import dataclasses
import logging
import sys
from pathlib import Path
from typing import Dict, List, Optional

import yaml

from exchange_planner.app_logging import configure_logging
from exchange_planner.config import EngineSettings
from exchange_planner.data_layer.exceptions import ConfigurationError
from exchange_planner.data_layer.patient_profile import PatientProfileLoader
from exchange_planner.output.formatters import format_plan_json_string, format_plan_markdown
from exchange_planner.planning.plan_generator import generate_plan

EXIT_MISSING_FILE = 1
EXIT_INVALID_INPUT = 2


def parse_adjustments(values: Optional[List[str]]) -> Dict[str, str]:
    """Parse repeated ``KEY=VALUE`` flags into an adjustments map.

    Args:
        values: Raw flag values such as ``["group:3=2.5"]``

    Returns:
        Dict of bucket key -> raw quantity string

    Raises:
        ValueError: If a value has no ``=``
    """
    adjustments: Dict[str, str] = {}
    for raw in values or []:
        key, sep, quantity = raw.partition("=")
        if not sep or not key.strip():
            raise ValueError(f"Adjustment must look like 'group:3=2.5'; got '{raw}'")
        adjustments[key.strip()] = quantity.strip()
    return adjustments


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Generate a daily exchange (equivalents) plan from a patient profile"
    )
    parser.add_argument(
        "--profile",
        type=str,
        default="config/patient_profile.yaml",
        help="Path to patient profile YAML file (default: config/patient_profile.yaml)"
    )
    parser.add_argument(
        "--catalog",
        type=str,
        help="Path to exchange systems YAML (default: packaged catalog or EXCHANGE_PLANNER_CATALOG)"
    )
    parser.add_argument(
        "--foods",
        type=str,
        help="Path to foods JSON (default: packaged foods or EXCHANGE_PLANNER_FOODS)"
    )
    parser.add_argument(
        "--output",
        type=str,
        choices=["markdown", "json", "both"],
        default="markdown",
        help="Output format: markdown (default), json, or both"
    )
    parser.add_argument(
        "--output-file",
        type=str,
        help="Optional file path to save output (default: print to stdout)"
    )
    parser.add_argument(
        "--top-n",
        type=int,
        help="Ranked foods kept per bucket (default: 6)"
    )
    parser.add_argument(
        "--adjust",
        action="append",
        metavar="KEY=VALUE",
        help="Override a bucket's daily exchanges, e.g. --adjust group:3=2.5 (repeatable)"
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Log debug details to stderr"
    )
    return parser


def write_output(text: str, output_file: Optional[str], suffix: Optional[str], label: str) -> None:
    if not output_file:
        print(text)
        return
    output_path = Path(output_file)
    if suffix:
        output_path = output_path.with_suffix(suffix)
    output_path.write_text(text, encoding="utf-8")
    print(f"{label} output saved to {output_path}", file=sys.stderr)


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    args = build_parser().parse_args(argv)
    configure_logging(logging.DEBUG if args.verbose else logging.INFO)

    profile_path = Path(args.profile)
    if not profile_path.exists():
        print(f"Error: Patient profile file not found: {profile_path}", file=sys.stderr)
        print(
            f"Hint: Copy config/patient_profile.yaml.example to {profile_path} and customize it",
            file=sys.stderr,
        )
        sys.exit(EXIT_MISSING_FILE)

    try:
        settings = EngineSettings.from_env()
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(EXIT_INVALID_INPUT)
    overrides = {}
    if args.catalog:
        overrides["catalog_path"] = args.catalog
    if args.foods:
        overrides["foods_path"] = args.foods
    if args.top_n is not None:
        if args.top_n <= 0:
            print("Error: --top-n must be positive", file=sys.stderr)
            sys.exit(EXIT_INVALID_INPUT)
        overrides["top_foods_per_bucket"] = args.top_n
    if overrides:
        settings = dataclasses.replace(settings, **overrides)

    for label, path in (("Catalog", settings.catalog_path), ("Foods", settings.foods_path)):
        if not Path(path).exists():
            print(f"Error: {label} file not found: {path}", file=sys.stderr)
            sys.exit(EXIT_MISSING_FILE)

    try:
        print(f"Loading patient profile from {profile_path}...", file=sys.stderr)
        loader = PatientProfileLoader(str(profile_path))
        profile = loader.load()
        adjustments = {**loader.load_adjustments(), **parse_adjustments(args.adjust)}

        print(f"Generating plan for system {profile.system_id}...", file=sys.stderr)
        result = generate_plan(profile, settings, adjustments)
    except yaml.YAMLError as e:
        print(f"Error: Invalid YAML: {e}", file=sys.stderr)
        sys.exit(EXIT_INVALID_INPUT)
    except (ConfigurationError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(EXIT_INVALID_INPUT)

    if args.output in ["markdown", "both"]:
        suffix = ".md" if args.output == "both" else None
        write_output(format_plan_markdown(result), args.output_file, suffix, "Markdown")

    if args.output in ["json", "both"]:
        if args.output == "both" and not args.output_file:
            print("\n" + "=" * 80 + "\n")
        suffix = ".json" if args.output == "both" else None
        write_output(format_plan_json_string(result, indent=2), args.output_file, suffix, "JSON")

    print(f"\nPlan generated: {result.targets.target_calories} kcal/day", file=sys.stderr)
    return 0


if __name__ == "__main__":
    sys.exit(main())
