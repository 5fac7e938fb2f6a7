# =============================================================================
# src/cli/__main__.py -- Package Entry Point
# =============================================================================
#
# Enables running the CLI package itself as a module:
#     python -m src.cli <command>
#
# All commands live in ingest.py.
# =============================================================================

"""Allow ``python -m src.cli`` execution."""

from src.cli.ingest import main

main()
