"""Luna Test Suite

Test organization:
- unit/luna/: Unit tests per component
  - classifier, entity extraction, context, cache, capabilities
  - engine routing, analytics, evaluation, config, CLI
- integration/: HTTP API tests against a wired engine

Running tests:
    # All tests
    pytest

    # Specific module
    pytest tests/unit/luna/test_engine.py

    # API only
    pytest tests/integration/
"""
