"""CSV encoding and file naming for harvested Scholar records."""

from __future__ import annotations

import csv
import io
import logging
import re
from collections.abc import Sequence
from dataclasses import astuple
from datetime import UTC, date, datetime
from pathlib import Path

from models import Paper

LOGGER = logging.getLogger(__name__)

CSV_COLUMNS = [
    "title",
    "authors",
    "publication_info",
    "link",
    "pdf_link",
    "cited_by",
    "type",
    "snippet",
]

FILENAME_PLACEHOLDER = "scholar_papers"
_MAX_SLUG_LEN = 50
_NON_ALNUM_RUN = re.compile(r"[^a-z0-9]+")


def encode_papers(papers: Sequence[Paper]) -> str:
    """Serialize papers into CSV text with a fixed column order.

    A field is quoted (inner quotes doubled) only when it contains a comma,
    a double quote or a newline. Rows are joined with ``\\n`` and the text
    has no trailing newline.
    """
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n", quoting=csv.QUOTE_MINIMAL)
    writer.writerow(CSV_COLUMNS)
    for paper in papers:
        writer.writerow(astuple(paper))
    return buffer.getvalue().removesuffix("\n")


def slugify_query(query: str) -> str:
    slug = _NON_ALNUM_RUN.sub("_", query.lower()).strip("_")
    return slug[:_MAX_SLUG_LEN] or FILENAME_PLACEHOLDER


def derive_filename(query: str, today: date | None = None) -> str:
    """Return ``<slug>_<YYYY-MM-DD>.csv`` for a query."""
    if today is None:
        today = datetime.now(UTC).date()
    return f"{slugify_query(query)}_{today.isoformat()}.csv"


def save_csv(content: str, output_dir: str | Path, filename: str) -> Path:
    """Write CSV text to ``output_dir/filename``, creating the directory if needed."""
    path = Path(output_dir) / filename
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8", newline="")
    LOGGER.info("Wrote CSV to %s", path)
    return path
