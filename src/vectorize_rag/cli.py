"""Command-line entry point: ingest a document or search the index.

    vectorize-rag ingest --url https://example.com/guide
    vectorize-rag ingest --file notes.md
    vectorize-rag search "how are indexes created?" -k 3
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from vectorize_rag.config import settings
from vectorize_rag.errors import IngestionError, ValidationError

logger = logging.getLogger("vectorize_rag")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="vectorize-rag", description=__doc__.splitlines()[0])
    parser.add_argument("--log-level", default=settings.log_level, help="Logging level")
    parser.add_argument("--index", default=settings.index_name, help="Target index name")
    sub = parser.add_subparsers(dest="command", required=True)

    ingest = sub.add_parser("ingest", help="Ingest one document")
    source = ingest.add_mutually_exclusive_group(required=True)
    source.add_argument("--url", help="Document URL to fetch and vectorize")
    source.add_argument("--text", help="Raw document text to vectorize")
    source.add_argument("--file", type=Path, help="Read raw document text from a file")

    search = sub.add_parser("search", help="Semantic search over the index")
    search.add_argument("query")
    search.add_argument("-k", type=int, default=5, help="Number of results")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    logging.basicConfig(level=args.log_level.upper())

    from vectorize_rag.ingestion.embedder import EmbeddingGenerator
    from vectorize_rag.retrieval.index_manager import VectorIndexManager

    index = VectorIndexManager()
    embedder = EmbeddingGenerator()

    try:
        if args.command == "ingest":
            from vectorize_rag.ingestion.pipeline import IngestionPipeline

            text = args.text
            if args.file:
                try:
                    text = args.file.read_text(encoding="utf-8")
                except (OSError, UnicodeDecodeError) as exc:
                    raise ValidationError(f"Cannot read {args.file}: {exc}", field="file") from exc
            pipeline = IngestionPipeline(index, embedder, index_name=args.index)
            result = pipeline.ingest(document_url=args.url, document_text=text)
            print(json.dumps(result.model_dump(by_alias=True)))
        else:
            from vectorize_rag.retrieval.retriever import SemanticRetriever

            retriever = SemanticRetriever(index, embedder, index_name=args.index)
            for r in retriever.search(args.query, k=args.k):
                print(json.dumps({"ref": r.citation.short_ref(), "score": r.citation.score,
                                  "content": r.content}, ensure_ascii=False))
    except IngestionError as exc:
        logger.error("%s error: %s", exc.kind, exc)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
