"""
ingest.py
---------
Knowledge base ingestion. Reads the topic documents (one file per commodity or
transport service), splits them into overlapping chunks tagged with `source`
and `category`, and dumps an InMemoryVectorStore that the API loads at startup.

Usage:
    freight-ingest                      # KNOWLEDGE_BASE_DIR -> VECTOR_STORE_PATH
    freight-ingest ./docs --output ./data/vector_store.json
"""
from __future__ import annotations

import argparse
import asyncio
import re
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Union

import structlog
from docx import Document as DocxDocument
from langchain_core.documents import Document
from langchain_core.embeddings import Embeddings
from langchain_core.vectorstores import InMemoryVectorStore
from langchain_text_splitters import RecursiveCharacterTextSplitter

from .config import settings
from .logging_config import configure_logging
from .models import Category

logger = structlog.get_logger(__name__)

SUPPORTED_SUFFIXES = (".docx", ".txt", ".md")
DEFAULT_CHUNK_SIZE = 1500
DEFAULT_CHUNK_OVERLAP = 300

PathLike = Union[str, Path]


def category_for(path: PathLike) -> Category:
    """Topic of a knowledge base file from its name: "Green_Lentils.docx" is Green Lentils."""
    stem = re.sub(r"[\s_\-]+", " ", Path(path).stem).strip().lower()
    for category in Category:
        if category is not Category.GENERAL and stem.startswith(category.value.lower()):
            return category
    return Category.GENERAL


def read_docx(path: PathLike) -> str:
    """Paragraph text followed by table rows, cells joined with " | "."""
    doc = DocxDocument(str(path))
    parts = [p.text for p in doc.paragraphs if p.text.strip()]
    for table in doc.tables:
        for row in table.rows:
            cells = [cell.text.strip() for cell in row.cells]
            if any(cells):
                parts.append(" | ".join(cells))
    return "\n".join(parts)


def read_text(path: Path) -> str:
    if path.suffix.lower() == ".docx":
        return read_docx(path)
    return path.read_text(encoding="utf-8")


def discover(directory: PathLike) -> List[Path]:
    root = Path(directory)
    if not root.is_dir():
        raise FileNotFoundError(f"Knowledge base directory not found: {root}")
    return sorted(
        p for p in root.iterdir()
        if p.is_file() and p.suffix.lower() in SUPPORTED_SUFFIXES and not p.name.startswith("~$")
    )


def load_documents(paths: Iterable[PathLike]) -> List[Document]:
    docs: List[Document] = []
    for raw in paths:
        path = Path(raw)
        text = read_text(path).strip()
        if not text:
            logger.warning("knowledge_file_empty", source=path.name)
            continue
        docs.append(
            Document(
                page_content=text,
                metadata={"source": path.name, "category": category_for(path).value},
            )
        )
    return docs


def split_documents(
    docs: Sequence[Document],
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    chunk_overlap: int = DEFAULT_CHUNK_OVERLAP,
) -> List[Document]:
    splitter = RecursiveCharacterTextSplitter(chunk_size=chunk_size, chunk_overlap=chunk_overlap)
    chunks = splitter.split_documents(list(docs))
    seen: dict = {}
    for chunk in chunks:
        source = chunk.metadata.get("source")
        chunk.metadata["chunk"] = seen.get(source, 0)
        seen[source] = chunk.metadata["chunk"] + 1
    return chunks


async def ingest(
    paths: Iterable[PathLike],
    store: InMemoryVectorStore,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    chunk_overlap: int = DEFAULT_CHUNK_OVERLAP,
) -> int:
    """Load, split and index `paths` into `store`. Returns the number of chunks added."""
    docs = load_documents(paths)
    chunks = split_documents(docs, chunk_size, chunk_overlap)
    if chunks:
        await store.aadd_documents(chunks)
    logger.info("knowledge_base_ingested", files=len(docs), chunks=len(chunks))
    return len(chunks)


async def build_vector_store(
    directory: PathLike,
    embeddings: Embeddings,
    output_path: PathLike,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    chunk_overlap: int = DEFAULT_CHUNK_OVERLAP,
) -> int:
    store = InMemoryVectorStore(embeddings)
    count = await ingest(discover(directory), store, chunk_size, chunk_overlap)
    output = Path(output_path)
    output.parent.mkdir(parents=True, exist_ok=True)
    store.dump(str(output))
    logger.info("vector_store_written", path=str(output), chunks=count)
    return count


def main(argv: Optional[Sequence[str]] = None) -> int:
    from .app.deps import make_embeddings

    parser = argparse.ArgumentParser(description="Index the freight knowledge base documents")
    parser.add_argument(
        "directory",
        nargs="?",
        default=settings.knowledge_base_dir,
        help="Directory with the topic documents (.docx, .txt, .md)",
    )
    parser.add_argument("--output", default=settings.vector_store_path, help="Vector store dump path")
    parser.add_argument("--chunk-size", type=int, default=settings.chunk_size)
    parser.add_argument("--chunk-overlap", type=int, default=settings.chunk_overlap)
    args = parser.parse_args(argv)

    configure_logging(settings.log_level, settings.log_json)
    if not settings.llm_enabled:
        logger.warning("ingesting_with_offline_embeddings")
    try:
        asyncio.run(
            build_vector_store(
                args.directory,
                make_embeddings(settings),
                args.output,
                args.chunk_size,
                args.chunk_overlap,
            )
        )
    except FileNotFoundError as exc:
        logger.error("ingestion_failed", error=str(exc))
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
