# =============================================================================
# src/cli/__init__.py -- CLI Module Overview
# =============================================================================
#
# Command-line access to the Ragline engine for operators and developers:
#
#   init        -- create the repository database and seed default configs
#   collection  -- create / list collections
#   ingest      -- ingest files or whole directories into a collection
#   search      -- similarity search over one or all active collections
#   reprocess   -- rebuild a document's chunks and embeddings
#   stats       -- per-collection document and vector counts
#
# Architecture Notes:
#   - argparse for argument parsing (not Click/Typer).
#   - Every command builds the engine via src.main.build_engine and closes
#     it when done; CLI runs are one-shot.
# =============================================================================

"""CLI tools for the Ragline engine (``python -m src.cli``)."""
