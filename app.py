"""FastAPI surface: streaming harvest endpoint and CSV download."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse, Response, StreamingResponse
from pydantic import BaseModel, Field

from artifact_store import ArtifactNotFound, ArtifactStore
from harvester import stream_harvest
from models import HarvestRequest, InvalidRequest

LOGGER = logging.getLogger(__name__)


class ScrapeRequest(BaseModel):
    api_key: str | None = Field(default=None, alias="apiKey")
    keyword: str | None = None
    max_results: int | None = Field(default=None, alias="maxResults")


@asynccontextmanager
async def lifespan(app: FastAPI):
    LOGGER.info("Scholar harvest API starting; artifact store holds %s entries", len(app.state.artifact_store))
    yield
    LOGGER.info("Scholar harvest API shutting down")


def create_app(store: ArtifactStore | None = None) -> FastAPI:
    """Build the application with its process-wide artifact store."""
    app = FastAPI(
        title="Scholar Harvest API",
        version="0.1.0",
        description="Harvests Google Scholar results via SerpAPI into downloadable CSV files.",
        lifespan=lifespan,
    )
    app.state.artifact_store = store if store is not None else ArtifactStore()

    @app.get("/health")
    async def health_check() -> dict:
        return {"status": "ok"}

    @app.post("/api/scrape")
    def scrape(payload: ScrapeRequest, request: Request) -> Response:
        try:
            harvest_request = HarvestRequest.create(payload.api_key, payload.keyword, payload.max_results)
        except InvalidRequest as exc:
            LOGGER.warning("Rejected scrape request: %s", exc)
            return JSONResponse(status_code=400, content={"error": str(exc)})

        return StreamingResponse(
            stream_harvest(harvest_request, request.app.state.artifact_store),
            media_type="text/event-stream",
            headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
        )

    @app.get("/api/download")
    def download(request: Request, file: str | None = None) -> Response:
        if not file:
            return PlainTextResponse("Missing filename", status_code=400)

        try:
            content = request.app.state.artifact_store.get(file)
        except ArtifactNotFound:
            LOGGER.info("Download requested for unknown artifact %s", file)
            return PlainTextResponse("File not found or expired", status_code=404)

        return Response(
            content=content,
            media_type="text/csv; charset=utf-8",
            headers={"Content-Disposition": f'attachment; filename="{file}"'},
        )

    return app


app = create_app()
