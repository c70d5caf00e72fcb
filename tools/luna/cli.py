#!/usr/bin/env python3
"""
Luna Command Line Interface

Usage:
    luna --action process --text "Calculate 25 * 8"
    luna --action classify --text "add this to my list" --module goals
    luna --action evaluate [--cases args/intent_cases.yaml] [--report out.md]
    luna --action capabilities
    luna --action serve [--host 127.0.0.1] [--port 8090]
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

from tools.logging_config import setup_logging

ACTIONS = ["process", "classify", "evaluate", "capabilities", "serve"]


def _hints(args: argparse.Namespace) -> dict:
    return {
        key: value
        for key, value in {
            "route": args.route,
            "module": args.module,
            "language": args.language,
            "timezone": args.timezone,
        }.items()
        if value
    }


def cmd_process(args: argparse.Namespace) -> int:
    from tools.luna.engine import create_engine

    engine = create_engine()
    result = engine.process(args.text, hints=_hints(args))
    print(json.dumps(result.to_dict(), indent=2))
    return 0


def cmd_classify(args: argparse.Namespace) -> int:
    from tools.luna.engine import create_engine

    engine = create_engine()
    intent = engine.classify(args.text, hints=_hints(args))
    print(json.dumps(intent.to_dict(), indent=2))
    return 0


def cmd_evaluate(args: argparse.Namespace) -> int:
    from tools.luna.analytics.evaluation import generate_report, load_cases, run_suite
    from tools.luna.config import load_config
    from tools.luna.context import ContextResolver
    from tools.luna.parser.intent_classifier import IntentClassifier

    config = load_config()
    result = run_suite(
        load_cases(args.cases),
        classifier=IntentClassifier(config.classifier),
        resolver=ContextResolver(config.context),
    )
    report = generate_report(result)

    if args.report:
        Path(args.report).write_text(report)
        print(f"Report written to {args.report}")
    else:
        print(report)

    return 0 if result.failed == 0 else 1


def cmd_capabilities(args: argparse.Namespace) -> int:
    from tools.luna.capabilities.registry import create_default_registry

    print(json.dumps(create_default_registry().to_list(), indent=2))
    return 0


def cmd_serve(args: argparse.Namespace) -> int:
    import uvicorn

    from tools.luna.api import create_app

    print(f"Starting Luna API at http://{args.host}:{args.port}/api/luna")
    print("Press Ctrl+C to stop")
    uvicorn.run(create_app(), host=args.host, port=args.port, log_level="info")
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Luna - local intent recognition and execution"
    )
    parser.add_argument("--action", required=True, choices=ACTIONS, help="Action to perform")
    parser.add_argument("--text", help="Utterance for process/classify")

    # Context hints
    parser.add_argument("--route", help="Current app route")
    parser.add_argument("--module", help="Current app module (tasks, goals, habits, ...)")
    parser.add_argument("--language", help="Language or locale (en, es-ES, ...)")
    parser.add_argument("--timezone", help="IANA timezone")

    # Evaluation
    parser.add_argument("--cases", help="Labeled cases YAML (default args/intent_cases.yaml)")
    parser.add_argument("--report", help="Write the markdown report to this file")

    # Server
    parser.add_argument("--host", default="127.0.0.1", help="Bind host")
    parser.add_argument("--port", type=int, default=8090, help="Bind port")

    parser.add_argument("--verbose", action="store_true", help="Debug logging")

    args = parser.parse_args(argv)
    setup_logging(level="DEBUG" if args.verbose else None)

    if args.action in ("process", "classify") and args.text is None:
        print(json.dumps({"success": False, "error": f"--text required for {args.action}"}))
        return 1

    handlers = {
        "process": cmd_process,
        "classify": cmd_classify,
        "evaluate": cmd_evaluate,
        "capabilities": cmd_capabilities,
        "serve": cmd_serve,
    }
    return handlers[args.action](args)


if __name__ == "__main__":
    sys.exit(main())
