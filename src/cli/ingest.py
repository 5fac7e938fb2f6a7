# =============================================================================
# src/cli/ingest.py -- Ragline command line interface
# =============================================================================
#
# Standalone CLI for managing collections, ingesting documents and running
# similarity searches against the configured vector store.
#
# Supported subcommands:
#
#   init        -- Create the SQLite repository and seed default configs
#   collection  -- Create or list collections
#   ingest      -- Ingest files (or every file in a directory) into a collection
#   search      -- Similarity search over one or all active collections
#   reprocess   -- Rebuild a document's chunks and embeddings
#   stats       -- Document and vector counts for a collection
#
# The ingestion pipeline for each file:
#   1. Extract text (PDF, Word, PowerPoint, HTML, CSV, JSON, Markdown, text)
#   2. Chunk it with the collection's chunking strategy
#   3. Cleanse chunks (rule-based, optional LLM pass)
#   4. Embed chunks with the collection's embedding model
#   5. Store chunks + embeddings in the collection's vector store
#
# Usage examples:
#   python -m src.cli init
#   python -m src.cli collection create handbook --description "Staff handbook"
#   python -m src.cli ingest --collection handbook docs/handbook.pdf
#   python -m src.cli search "parental leave policy" --collection handbook
#   python -m src.cli stats --collection handbook
# =============================================================================

"""Standalone CLI for the Ragline ingestion and retrieval engine.

Usage::

    python -m src.cli init
    python -m src.cli collection create handbook
    python -m src.cli ingest --collection handbook docs/
    python -m src.cli search "holiday allowance" --top-k 5
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path

from src.config.settings import Settings
from src.main import DEFAULT_VECTOR_STORE_ID, Engine, build_engine, close_engine
from src.models.document import CollectionDescriptor, IngestRequest, SearchRequest
from src.services.ingestion.text_extractor import TextExtractor
from src.utils.errors import RaglineError

# File suffix -> MIME type for the formats the extractor reads.
_SUFFIX_MIME_TYPES: dict[str, str] = {
    ".pdf": "application/pdf",
    ".docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    ".doc": "application/msword",
    ".pptx": "application/vnd.openxmlformats-officedocument.presentationml.presentation",
    ".ppt": "application/vnd.ms-powerpoint",
    ".txt": "text/plain",
    ".html": "text/html",
    ".htm": "text/html",
    ".md": "text/markdown",
    ".markdown": "text/markdown",
    ".csv": "text/csv",
    ".json": "application/json",
}


def mime_type_for(path: Path) -> str | None:
    """Return the MIME type for *path* by suffix, or ``None`` if unsupported."""
    return _SUFFIX_MIME_TYPES.get(path.suffix.lower())


def _collect_files(paths: list[str]) -> list[Path]:
    files: list[Path] = []
    for raw in paths:
        path = Path(raw)
        if path.is_dir():
            files.extend(sorted(p for p in path.rglob("*") if p.is_file() and mime_type_for(p)))
        else:
            files.append(path)
    return files


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


async def _handle_init(args: argparse.Namespace, engine: Engine) -> int:
    print("Ragline initialised")
    print(f"  Database:      {engine.config.get('storage', {}).get('sqlite_db_path')}")
    print(f"  Vector store:  {engine.settings.vector_store_type}")
    print(f"  Embeddings:    {engine.settings.embedding_model}")
    return 0


async def _handle_collection(args: argparse.Namespace, engine: Engine) -> int:
    if args.action == "list":
        collections = await engine.repository.list_collections()
        if not collections:
            print("No collections.")
        for collection in collections:
            state = "active" if collection.is_active else "inactive"
            print(
                f"  {collection.id:<20} {collection.embedding_model:<24} "
                f"{collection.embedding_dimensions:>5}d  {state}"
            )
        return 0

    descriptor = CollectionDescriptor(
        id=args.id or args.name,
        vector_store_id=args.vector_store,
        name=args.name,
        embedding_model=args.model or engine.settings.embedding_model,
        embedding_dimensions=args.dimensions,
        embedding_provider=engine.settings.embedding_provider,
        default_chunking_strategy_id=args.chunking_strategy,
        default_cleansing_config_id=args.cleansing_config,
        description=args.description,
    )
    await engine.ingestion.create_collection(descriptor)
    print(f"Created collection '{descriptor.id}' ({descriptor.embedding_dimensions} dimensions)")
    return 0


async def _handle_ingest(args: argparse.Namespace, engine: Engine) -> int:
    requests: list[IngestRequest] = []
    for path in _collect_files(args.paths):
        mime_type = args.mime_type or mime_type_for(path)
        if mime_type is None or not TextExtractor.is_supported(mime_type):
            print(f"  Skipping unsupported file: {path}", file=sys.stderr)
            continue
        requests.append(
            IngestRequest(
                collection_id=args.collection,
                filename=path.name,
                mime_type=mime_type,
                data=path.read_bytes(),
                title=args.title if len(args.paths) == 1 else None,
                chunking_strategy_id=args.chunking_strategy,
                cleansing_config_id=args.cleansing_config,
            )
        )
    if not requests:
        print("Error: no supported files to ingest.", file=sys.stderr)
        return 1

    print(f"Ingesting {len(requests)} file(s) into '{args.collection}'")
    results = await engine.ingestion.ingest_many(requests)
    failures = 0
    for request, result in zip(requests, results):
        if isinstance(result, BaseException):
            failures += 1
            print(f"  {request.filename:<40} rejected  {result}")
        elif result.error_code:
            failures += 1
            print(f"  {request.filename:<40} failed    {result.error_message}")
        else:
            print(f"  {request.filename:<40} {result.processing_status.value:<9} {result.id}")
    print(f"\nDone: {len(requests) - failures} succeeded, {failures} failed")
    return 1 if failures else 0


async def _handle_search(args: argparse.Namespace, engine: Engine) -> int:
    hits = await engine.retrieval.search(
        SearchRequest(query=args.query, collection_id=args.collection, top_k=args.top_k)
    )
    if args.json:
        print(json.dumps([engine.retrieval.describe(hit) for hit in hits], indent=2, default=str))
        return 0
    if not hits:
        print("No results.")
    for rank, hit in enumerate(hits, start=1):
        preview = " ".join(hit.content.split())[:160]
        print(f"{rank:>2}. [{hit.score:.3f}] {hit.document_title or hit.document_id}")
        print(f"    {preview}")
    return 0


async def _handle_reprocess(args: argparse.Namespace, engine: Engine) -> int:
    record = await engine.ingestion.regenerate(
        args.document_id,
        chunking_strategy_id=args.chunking_strategy,
        cleansing_config_id=args.cleansing_config,
    )
    print(f"Document {record.id}: {record.processing_status.value}")
    if record.error_message:
        print(f"  {record.error_message}")
        return 1
    return 0


async def _handle_stats(args: argparse.Namespace, engine: Engine) -> int:
    if args.collection:
        collection_ids = [args.collection]
    else:
        collection_ids = [c.id for c in await engine.repository.list_collections()]
    if not collection_ids:
        print("No collections.")
    for collection_id in collection_ids:
        stats = await engine.ingestion.get_collection_stats(collection_id)
        print(f"Collection {stats['collection_id']} ({stats['name']})")
        print("=" * 40)
        print(f"  Documents:   {stats['documents']}")
        for status, count in stats["by_status"].items():
            print(f"    {status:<12} {count}")
        print(f"  Chunks:      {stats['chunks']}")
        print(f"  Dimensions:  {stats['dimensions']}")
        print(f"  Index type:  {stats['index_type'] or '-'}")
    return 0


_HANDLERS = {
    "init": _handle_init,
    "collection": _handle_collection,
    "ingest": _handle_ingest,
    "search": _handle_search,
    "reprocess": _handle_reprocess,
    "stats": _handle_stats,
}


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------


def _build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the CLI."""
    parser = argparse.ArgumentParser(
        prog="python -m src.cli",
        description="Ingest documents into vector stores and search them.",
    )
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # -- init --
    subparsers.add_parser("init", help="Create the database and default configs")

    # -- collection --
    collection_parser = subparsers.add_parser("collection", help="Create or list collections")
    collection_parser.add_argument("action", choices=["create", "list"])
    collection_parser.add_argument("name", nargs="?", help="Collection name (create)")
    collection_parser.add_argument("--id", help="Collection id (default: the name)")
    collection_parser.add_argument("--description", help="Free-text description")
    collection_parser.add_argument(
        "--vector-store", dest="vector_store", default=DEFAULT_VECTOR_STORE_ID,
        help="Vector store id (default: default)",
    )
    collection_parser.add_argument("--model", help="Embedding model (default: EMBEDDING_MODEL)")
    collection_parser.add_argument(
        "--dimensions", type=int, default=1536, help="Embedding dimensions (default: 1536)"
    )
    collection_parser.add_argument("--chunking-strategy", dest="chunking_strategy")
    collection_parser.add_argument("--cleansing-config", dest="cleansing_config")

    # -- ingest --
    ingest_parser = subparsers.add_parser("ingest", help="Ingest files or directories")
    ingest_parser.add_argument("paths", nargs="+", help="Files or directories to ingest")
    ingest_parser.add_argument("--collection", required=True, help="Target collection id")
    ingest_parser.add_argument("--title", help="Document title (single file only)")
    ingest_parser.add_argument(
        "--mime-type", dest="mime_type", help="Override MIME type detection"
    )
    ingest_parser.add_argument("--chunking-strategy", dest="chunking_strategy")
    ingest_parser.add_argument("--cleansing-config", dest="cleansing_config")

    # -- search --
    search_parser = subparsers.add_parser("search", help="Similarity search")
    search_parser.add_argument("query", help="Query text")
    search_parser.add_argument("--collection", help="Collection id (default: all active)")
    search_parser.add_argument("--top-k", dest="top_k", type=int, default=5)
    search_parser.add_argument("--json", action="store_true", help="Print results as JSON")

    # -- reprocess --
    reprocess_parser = subparsers.add_parser("reprocess", help="Rebuild a document")
    reprocess_parser.add_argument("document_id")
    reprocess_parser.add_argument("--chunking-strategy", dest="chunking_strategy")
    reprocess_parser.add_argument("--cleansing-config", dest="cleansing_config")

    # -- stats --
    stats_parser = subparsers.add_parser("stats", help="Show collection statistics")
    stats_parser.add_argument("--collection", help="Collection id (default: all)")

    return parser


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


async def _run(args: argparse.Namespace, app_settings: Settings) -> int:
    engine = await build_engine(app_settings)
    try:
        return await _HANDLERS[args.command](args, engine)
    except RaglineError as exc:
        print(f"Error [{exc.code}]: {exc}", file=sys.stderr)
        return 1
    finally:
        await close_engine(engine)


def main(argv: list[str] | None = None) -> None:
    """CLI entry point.

    Parses the subcommand, builds the engine from environment variables /
    .env, dispatches to the handler and exits with its status code.
    """
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)
    if args.command == "collection" and args.action == "create" and not args.name:
        parser.error("collection create requires a name")

    sys.exit(asyncio.run(_run(args, Settings())))


if __name__ == "__main__":
    main()
