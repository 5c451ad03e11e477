"""Command-line interface for placement mask generation."""

import argparse
import sys
import time
from pathlib import Path

import structlog

logger = structlog.get_logger()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Generate object placement masks over a heightmap"
    )
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument(
        "--prompt", type=str, help="World description to extract requests from"
    )
    source.add_argument(
        "--requests", type=str, help="TOML file with [[requests]] entries"
    )
    parser.add_argument(
        "--heightmap",
        type=str,
        default=None,
        help="Grayscale image or .npy heightmap (default: synthesized from the prompt)",
    )
    parser.add_argument(
        "--seed", type=int, default=None, help="Random seed (default: from config)"
    )
    parser.add_argument(
        "--grid-size",
        type=int,
        default=None,
        help="Cells per grid side (default: from config)",
    )
    parser.add_argument(
        "--width", type=float, default=None, help="Map width (default: heightmap size)"
    )
    parser.add_argument(
        "--height",
        type=float,
        default=None,
        help="Map height (default: heightmap size)",
    )
    parser.add_argument(
        "--config", type=str, default=None, help="Placement config TOML"
    )
    parser.add_argument(
        "--rules", type=str, default=None, help="Object rule table TOML"
    )
    parser.add_argument(
        "--output",
        "-o",
        type=str,
        default="masks.npz",
        help="Output path (default: masks.npz)",
    )
    parser.add_argument(
        "--images",
        type=str,
        default=None,
        help="Directory to save one PNG per mask (optional)",
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Verbose logging"
    )
    return parser


def configure_logging(verbose: bool) -> None:
    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(10 if verbose else 20),
    )


def main(argv: list[str] | None = None) -> None:
    """CLI entry point for placement mask generation."""
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.verbose)

    # Import here to avoid slow startup for --help
    from ..exceptions import PlacementError
    from ..heightmap.sources import ArrayHeightSource, FeatureHeightSource
    from .config import PlacementConfig, load_config
    from .persistence import save_mask_images, save_masks
    from .pipeline import PlacementPipeline
    from .prompt import parse_requests
    from .requests import load_requests
    from .rules import default_rule_table, load_rule_table

    try:
        config = load_config(Path(args.config)) if args.config else PlacementConfig()
        overrides = {}
        if args.seed is not None:
            overrides["seed"] = args.seed
        if args.grid_size is not None:
            overrides["grid_size"] = args.grid_size
        if overrides:
            config = config.with_overrides(**overrides)

        rules = load_rule_table(Path(args.rules)) if args.rules else default_rule_table()

        if args.requests:
            requests = load_requests(Path(args.requests))
        else:
            requests = parse_requests(args.prompt, rules)

        if args.heightmap:
            path = Path(args.heightmap)
            loader = (
                ArrayHeightSource.from_npy
                if path.suffix == ".npy"
                else ArrayHeightSource.from_image
            )
            source = loader(path, args.width, args.height)
            width, height = source.width, source.height
        else:
            width = args.width if args.width is not None else 1024.0
            height = args.height if args.height is not None else width
            # Request files carry no landforms, so they get the flat base
            source = FeatureHeightSource.from_prompt(
                args.prompt or "", width, height, seed=config.seed
            )

        pipeline = PlacementPipeline(rules=rules, config=config)

        print(
            f"Placing {len(requests)} requests on a {config.grid_size}x"
            f"{config.grid_size} grid with seed {config.seed}"
        )
        start_time = time.time()
        result = pipeline.run(source, requests, width, height)
        gen_time = time.time() - start_time
    except FileNotFoundError as e:
        parser.error(str(e))
    except PlacementError as e:
        logger.error("placement_aborted", error=str(e))
        sys.exit(1)

    print(f"Generation complete in {gen_time:.1f}s")
    for object_type, mask in sorted(result.masks.items()):
        print(f"  {object_type:<14} {mask.placed_count:>8} cells ({mask.coverage:.1%})")
    for warning in result.warnings:
        print(f"  warning: {warning}")
    for object_type, failure in result.failures.items():
        print(f"  failed: {object_type}: {failure}")

    output_path = Path(args.output)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    save_masks(output_path, result)
    print(f"Saved to {output_path}")

    if args.images:
        save_mask_images(Path(args.images), result)

    if result.failures:
        sys.exit(1)


if __name__ == "__main__":
    main()
