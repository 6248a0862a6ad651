"""
Prompt demand CLI: estimate, related and suggestions from the command line.
"""

import argparse
import json
import sys
from datetime import datetime, timezone
from typing import Callable, List, Optional

from . import __version__
from .logging_utils import setup_logging
from .schemas.estimate_schema import EstimationResult, KeywordListResult
from .services.estimation_engine import EstimationEngine
from .settings import load_settings

COMMANDS = ("estimate", "related", "suggestions")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="prompt-demand",
        description="Estimate search demand for a natural-language prompt",
    )
    parser.add_argument("command", choices=COMMANDS, help="Command to run")
    parser.add_argument("prompt_arg", nargs="?", metavar="prompt", help="Prompt text")
    parser.add_argument("-p", "--prompt", help="Prompt to estimate")
    parser.add_argument("-r", "--region", help="Region for estimation (default: from config)")
    parser.add_argument(
        "-o",
        "--output",
        choices=("json", "text"),
        default="text",
        help="Output format (default: text)",
    )
    parser.add_argument("-c", "--config", help="Configuration YAML file path")
    parser.add_argument(
        "-v",
        "--version",
        action="version",
        version=f"Prompt Demand Estimator {__version__}",
    )
    return parser


def main(
    argv: Optional[List[str]] = None,
    engine_factory: Optional[Callable[[Optional[str]], EstimationEngine]] = None,
) -> int:
    """
    Main CLI entry point.

    Returns:
        Exit code: 0 on success, 1 on errors
    """
    args = build_parser().parse_args(argv)
    setup_logging(level="WARNING")

    try:
        prompt = args.prompt or args.prompt_arg
        if not prompt:
            raise ValueError("Prompt is required")

        factory = engine_factory or _default_engine
        engine = factory(args.config)

        if args.command == "estimate":
            result = engine.estimate(prompt, args.region)
        elif args.command == "related":
            result = engine.related_keywords(prompt, args.region)
        else:
            result = engine.keyword_suggestions(prompt, args.region)

        _output(result, args.output, engine.settings.top_n)
        return 0
    except Exception as exc:
        _output_error(exc, args.output)
        return 1


def _default_engine(config_path: Optional[str]) -> EstimationEngine:
    return EstimationEngine(load_settings(config_path))


def _output(result, fmt: str, top_n: int) -> None:
    if fmt == "json":
        print(result.model_dump_json(indent=2))
    elif isinstance(result, EstimationResult):
        print(_format_estimate(result))
    else:
        print(_format_keywords(result, top_n))


def _format_estimate(result: EstimationResult) -> str:
    e = result.estimates
    lines = [
        f"Prompt:     {result.prompt}",
        f"Region:     {result.region}",
        f"Estimate:   {e.total:.2f} (head {e.head:.2f}, mid {e.mid:.2f}, long {e.long:.2f})",
        f"Confidence: {result.confidence:.3f}",
    ]
    if result.metadata is not None:
        lines.append(
            f"Variants:   {result.metadata.total_variants} "
            f"({result.metadata.variants_with_data} with volume)"
        )
    return "\n".join(lines)


def _format_keywords(result: KeywordListResult, top_n: int) -> str:
    lines = [f"Prompt: {result.prompt} ({result.region})"]
    if result.error:
        lines.append(f"Error: {result.error}")
    for rank, item in enumerate(result.keywords[:top_n], start=1):
        lines.append(f"{rank:>3}. {item.keyword}  volume={item.search_volume or 0}  cpc={item.cpc:.2f}")
    if not result.keywords:
        lines.append("No keywords found")
    return "\n".join(lines)


def _output_error(exc: Exception, fmt: str) -> None:
    if fmt == "json":
        print(json.dumps(
            {
                "error": exc.__class__.__name__,
                "message": str(exc),
                "timestamp": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
            },
            indent=2,
        ))
    else:
        print(f"Error: {exc}")


if __name__ == "__main__":
    sys.exit(main())
