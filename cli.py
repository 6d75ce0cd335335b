#!/usr/bin/env python
"""
Command-line interface for the Territory Builder

Usage:
    python cli.py resolve --level community --query Downsview --parent Toronto
    python cli.py streets --area Ontario --municipality Toronto --community Downsview
    python cli.py detect --area Ontario --municipality Toronto --community Downsview \
        --street "Wilson Avenue" --output downsview.json --summary
"""

import os
import sys
import json
import argparse

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from loguru import logger
from territory.config import get_config, load_environment, validate_config
from territory.errors import OverlapRejected, ProviderError, ResolutionEmpty, TerritoryError
from territory.models import GeoLevel
from territory.pipeline import DetectionOrchestrator
from territory.session import DetectionSession


def setup_logging(verbose: bool = False):
    """Configure logging"""
    logger.remove()
    level = "DEBUG" if verbose else "INFO"
    logger.add(
        sys.stderr,
        format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{message}</cyan>",
        level=level
    )


def build_orchestrator() -> DetectionOrchestrator:
    config = load_environment(get_config())
    validate_config(config)
    return DetectionOrchestrator(config)


def cmd_resolve(args):
    """Resolve a place name at one hierarchy level"""
    setup_logging(args.verbose)
    orchestrator = build_orchestrator()
    level = GeoLevel(args.level)

    parent = None
    if args.parent:
        parent_level = list(GeoLevel)[level.depth - 1] if level.depth else None
        if parent_level is None:
            logger.error("An area has no parent level")
            return 1
        candidates = orchestrator.resolver.resolve(parent_level, args.parent)
        if not candidates:
            logger.error(f"No {parent_level.value} found for '{args.parent}'")
            return 1
        parent = candidates[0]

    nodes = orchestrator.resolver.resolve(level, args.query, parent)
    if not nodes:
        logger.warning(f"No results for '{args.query}'")
        return 1

    print(json.dumps([n.model_dump(mode="json") for n in nodes], indent=2))
    return 0


def cmd_streets(args):
    """List residential streets of a community"""
    setup_logging(args.verbose)
    orchestrator = build_orchestrator()

    try:
        area, municipality, community = orchestrator.resolve_names(args.area, args.municipality, args.community)
    except ResolutionEmpty as e:
        logger.error(str(e))
        return 1

    streets = orchestrator.streets.discover(community, municipality, area)
    if args.filter:
        streets = orchestrator.streets.filter(community, args.filter)
    if not streets:
        logger.warning(f"No streets found in {community.name}")
        return 1

    for street in streets:
        print(f"{street.name}\t{street.source.value}")
    logger.info(f"{len(streets)} streets")
    return 0


def cmd_detect(args):
    """Detect buildings along streets and synthesize a territory"""
    setup_logging(args.verbose)
    orchestrator = build_orchestrator()

    try:
        area, municipality, community = orchestrator.resolve_names(args.area, args.municipality, args.community)
    except ResolutionEmpty as e:
        logger.error(str(e))
        return 1

    session = DetectionSession(max_api_calls=orchestrator.config.detection.max_api_calls)
    result = orchestrator.run(
        session,
        area,
        municipality,
        community,
        street_names=args.street,
        name=args.name,
        description=args.description,
        zone_type=args.zone_type,
        radius_m=args.radius,
    )

    for warning in result.warnings:
        logger.warning(f"  {warning}")

    if args.summary:
        print(json.dumps(result.summary(), indent=2))

    if not result.ok:
        logger.error(f"Detection {result.state.value}: {result.error_type}: {result.error_message}")
        return 1

    logger.info(f"✓ {len(result.draft.buildings)} buildings, {result.area_m2:.0f} m², {result.density_per_ha:.1f} per ha, {result.api_call_count} API calls")

    if args.output:
        orchestrator.write(result, args.output)

    if args.save:
        try:
            zone = orchestrator.save(result)
        except OverlapRejected as e:
            logger.error(f"Save rejected: {e}")
            for zone in e.overlapping_zones:
                logger.error(f"  overlaps: {zone.get('name', zone)}")
            return 1
        except (ProviderError, TerritoryError) as e:
            logger.error(f"Save failed: {e}")
            return 1
        logger.info(f"✓ Saved zone {zone.get('_id') or zone.get('id') or ''}".rstrip())

    return 0


def main():
    parser = argparse.ArgumentParser(
        description="Territory Builder CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  Resolve a community:
    python cli.py resolve --level community --query Downsview --parent Toronto

  List streets:
    python cli.py streets --area Ontario --municipality Toronto --community Downsview --filter wil

  Detect and save a territory:
    python cli.py detect --area Ontario --municipality Toronto --community Downsview \\
        --street "Wilson Avenue" --street "Keele Street" --output downsview.json --save
        """
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    def hierarchy_args(sub):
        sub.add_argument("--area", required=True, help="Area (province / state)")
        sub.add_argument("--municipality", required=True, help="Municipality (city / town)")
        sub.add_argument("--community", required=True, help="Community (neighbourhood)")

    # Resolve command
    resolve_parser = subparsers.add_parser("resolve", help="Resolve a place name")
    resolve_parser.add_argument("--level", choices=[lvl.value for lvl in GeoLevel], required=True, help="Hierarchy level")
    resolve_parser.add_argument("--query", "-q", required=True, help="Place name")
    resolve_parser.add_argument("--parent", help="Name of the parent place")
    resolve_parser.set_defaults(func=cmd_resolve)

    # Streets command
    streets_parser = subparsers.add_parser("streets", help="List residential streets of a community")
    hierarchy_args(streets_parser)
    streets_parser.add_argument("--filter", "-f", help="Only streets containing this text")
    streets_parser.set_defaults(func=cmd_streets)

    # Detect command
    detect_parser = subparsers.add_parser("detect", help="Detect buildings and synthesize a territory")
    hierarchy_args(detect_parser)
    detect_parser.add_argument("--street", action="append", required=True, help="Street name (repeatable)")
    detect_parser.add_argument("--name", help="Territory name")
    detect_parser.add_argument("--description", help="Territory description")
    detect_parser.add_argument("--zone-type", help="Zone type (default from config)")
    detect_parser.add_argument("--radius", "-r", type=float, help="Search radius around each street in meters")
    detect_parser.add_argument("--output", "-o", help="Output JSON file for the territory payload")
    detect_parser.add_argument("--save", action="store_true", help="Validate overlap and save to the backend")
    detect_parser.add_argument("--summary", "-s", action="store_true", help="Print summary to stdout")
    detect_parser.set_defaults(func=cmd_detect)

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        return 1

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
