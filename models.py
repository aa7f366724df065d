"""Shared typed models for the harvest pipeline."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from enum import Enum

MAX_RECORDS_CEILING = int(os.getenv("HARVEST_MAX_RECORDS_CEILING", "1000"))


class InvalidRequest(ValueError):
    """Raised when a harvest request is missing its credential or query."""


@dataclass(frozen=True, slots=True)
class Paper:
    """Normalized Google Scholar record, one CSV row."""

    title: str = ""
    authors: str = ""
    publication_info: str = ""
    link: str = ""
    pdf_link: str = ""
    cited_by: int = 0
    type: str = ""
    snippet: str = ""


@dataclass(frozen=True, slots=True)
class HarvestRequest:
    credential: str
    query: str
    max_records: int

    @classmethod
    def create(cls, credential: str | None, query: str | None, max_records: int | None = None) -> HarvestRequest:
        """Validate caller input and clamp max_records to MAX_RECORDS_CEILING.

        Raises:
            InvalidRequest: credential or query is blank, or max_records < 1.
        """
        credential = (credential or "").strip()
        query = (query or "").strip()
        if not credential or not query:
            raise InvalidRequest("API key and keyword are required")

        if max_records is None:
            max_records = MAX_RECORDS_CEILING
        if max_records < 1:
            raise InvalidRequest(f"max_records must be positive, got {max_records}")

        return cls(credential=credential, query=query, max_records=min(max_records, MAX_RECORDS_CEILING))


class TerminationReason(str, Enum):
    EXHAUSTED = "exhausted"
    LIMIT_REACHED = "limit_reached"
    UPSTREAM_ERROR = "upstream_error"
    CANCELLED = "cancelled"
    # Credential rejected; the run is discarded without an artifact.
    UNAUTHORIZED = "unauthorized"


@dataclass(slots=True)
class HarvestRun:
    """Transient state of one harvest, mutated only by the pagination loop."""

    page_index: int = 0
    accumulated: list[Paper] = field(default_factory=list)
    terminated: bool = False
    termination_reason: TerminationReason | None = None
    filename: str = ""

    def terminate(self, reason: TerminationReason) -> None:
        self.terminated = True
        self.termination_reason = reason
