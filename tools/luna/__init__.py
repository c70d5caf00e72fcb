"""Luna Local Intelligence - answer common commands without a network round trip

Philosophy:
    Most of what people type into the assistant is short and routine: add a
    task, what time is it, take me to my goals. Those should come back in
    milliseconds from deterministic local code. Everything else is handed to
    the remote assistant with a clear signal, never a guess.

Components:
    models.py: Data models (IntentCategory, Intent, AppContext, LocalTaskResult, ...)
    config.py: Validated configuration (args/luna.yaml)
    context.py: Context resolver (route/module, time of day, session windows)
    parser/: Trigger tables, intent classifier, entity extraction
    capabilities/: Local capability registry and handlers
    cache.py: LRU + TTL response cache
    engine.py: Local execution engine (routing policy, state machine)
    analytics/: Event log, usage/accuracy aggregation, evaluation harness
    api.py: FastAPI routes
    cli.py: Command line entry point

Usage:
    from tools.luna.engine import create_engine

    engine = create_engine()
    result = engine.process("Calculate 25 * 8", hints={"module": "tasks"})
    result.content  # "200"
"""

from pathlib import Path

# Path constants
PROJECT_ROOT = Path(__file__).parent.parent.parent
ARGS_DIR = PROJECT_ROOT / "args"
CONFIG_PATH = ARGS_DIR / "luna.yaml"
CASES_PATH = ARGS_DIR / "intent_cases.yaml"

__all__ = [
    "ARGS_DIR",
    "CASES_PATH",
    "CONFIG_PATH",
    "PROJECT_ROOT",
]
