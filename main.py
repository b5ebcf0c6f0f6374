"""
AI Aggregator — Multi-LLM Comparison
=====================================
CLI entry point.  Run with::

    python main.py "What causes the Northern Lights?"
    python main.py --providers mistral,gemini "Explain quantum entanglement"

Environment variables (set the ones for providers you want to use):
    GOOGLE_GEMINI_API_KEY  (or GOOGLE_API_KEY)
    MISTRAL_API_KEY
    HUGGINGFACE_API_KEY    (or HF_TOKEN)
    COHERE_API_KEY
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
import textwrap

from dotenv import load_dotenv

load_dotenv()  # Load .env file if present

from ai_aggregator.errors import NoProvidersAvailable, ValidationError
from ai_aggregator.orchestrator import Orchestrator
from ai_aggregator.providers import ProviderFactory
from ai_aggregator.registry import build_default_registry
from ai_aggregator.schemas import ComparisonReport


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="AI Aggregator: compare LLM answers side by side",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=textwrap.dedent("""\
            Examples:
              python main.py "What is photosynthesis?"
              python main.py --providers mistral,cohere "Explain gravity"
              python main.py --temperature 0.2 --max-tokens 300 "Summarise RGPD"
              python main.py --json "Compare ML frameworks" > report.json
        """),
    )
    parser.add_argument("prompt", help="The prompt sent to every provider.")
    parser.add_argument(
        "--providers",
        type=str,
        default=None,
        help="Comma-separated provider ids (default: every configured provider).",
    )
    parser.add_argument(
        "--temperature",
        type=float,
        default=0.7,
        help="Sampling temperature in [0, 1] (default: 0.7).",
    )
    parser.add_argument(
        "--max-tokens",
        type=int,
        default=500,
        help="Completion budget in [50, 2000] (default: 500).",
    )
    parser.add_argument(
        "--timeout-ms",
        type=int,
        default=30000,
        help="Per-provider deadline in milliseconds (default: 30000).",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print the full comparison report as JSON.",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable DEBUG logging.",
    )
    return parser.parse_args(argv)


def _configure_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-7s | %(name)s | %(message)s",
        datefmt="%H:%M:%S",
    )


def _print_report(report: ComparisonReport) -> None:
    sep = "=" * 72
    summary = report.summary
    print(f"\n{sep}")
    print("  AI AGGREGATOR — COMPARISON")
    print(sep)
    for scored in report.responses:
        pid = scored.provider_id.value
        if not scored.is_success:
            print(f"\n[{pid}] {scored.status.value.upper()}: {scored.result.error_message}")
            continue
        print(
            f"\n[{pid}] composite={scored.composite} relevance={scored.relevance} "
            f"similarity={scored.similarity} speed={scored.speed} "
            f"sovereignty={scored.sovereignty.total if scored.sovereignty else '-'} "
            f"eco={scored.green_impact.eco_grade} ({scored.latency_ms} ms)"
        )
        print(textwrap.indent(textwrap.fill(scored.text or "", width=68), "    "))
    print(f"\n{sep}")
    print(f"  Successful      : {summary.successful_responses}/{summary.total_responses}")
    if summary.best_response:
        print(f"  Best            : {summary.best_response.provider_id.value} "
              f"({summary.best_response.composite})")
    print(f"  Consensus       : {summary.consensus_level}")
    print(f"  Avg sovereignty : {summary.average_sovereignty}")
    print(f"  Carbon (g CO2)  : {summary.total_carbon_grams}")
    print(f"  Processing time : {report.processing_time_ms} ms")
    print(sep)


async def _main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    _configure_logging(args.verbose)

    registry = build_default_registry()
    adapters = ProviderFactory.create_configured(registry)
    orchestrator = Orchestrator(adapters, registry, enable_logging_observer=args.verbose)

    if args.providers:
        provider_ids = [n.strip() for n in args.providers.split(",") if n.strip()]
    elif adapters:
        provider_ids = [p.value for p in adapters]
    else:
        print("ERROR: No providers configured. Set at least one API key in .env.", file=sys.stderr)
        return 2

    options = {
        "temperature": args.temperature,
        "max_tokens": args.max_tokens,
        "timeout_ms": args.timeout_ms,
    }
    try:
        report = await orchestrator.compare(args.prompt, provider_ids, options)
    except NoProvidersAvailable as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 2
    except ValidationError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1

    if args.json:
        print(json.dumps(report.to_dict(), indent=2, ensure_ascii=False))
    else:
        _print_report(report)
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(_main()))
