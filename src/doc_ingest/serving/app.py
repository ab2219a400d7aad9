"""FastAPI application exposing document ingestion and search as a REST API."""

from __future__ import annotations

import base64
import binascii
import logging
from functools import lru_cache

from fastapi import Depends, FastAPI, HTTPException
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from doc_ingest.config import settings
from doc_ingest.models import Document, DocumentStatus, IngestionOutcome, Page, ProcessingLog
from doc_ingest.pipeline.orchestrator import IngestionOrchestrator
from doc_ingest.pipeline.search import SearchHit, SemanticSearcher

logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Document Ingestion API",
    version="0.1.0",
    description="Upload documents, track their processing, and search their pages.",
)


# ── Dependencies ──────────────────────────────────────────────────────
@lru_cache(maxsize=1)
def get_orchestrator() -> IngestionOrchestrator:
    """Process-wide orchestrator built from settings; override in tests."""
    return IngestionOrchestrator.from_settings()


def get_searcher(
    orchestrator: IngestionOrchestrator = Depends(get_orchestrator),
) -> SemanticSearcher:
    return SemanticSearcher(
        orchestrator.index,
        orchestrator.embedder,
        max_input_chars=orchestrator.policy.max_embed_input_chars,
    )


# ── Request / Response schemas ────────────────────────────────────────
class UploadRequest(BaseModel):
    """A document upload; the file travels base64-encoded."""

    owner_id: str = Field(min_length=1)
    filename: str = Field(min_length=1)
    content_base64: str


class SearchRequest(BaseModel):
    """A question about one document."""

    query: str = Field(min_length=1)
    k: int = Field(default=5, ge=1, le=50)
    page_number: int | None = Field(default=None, ge=1)


class SearchResponse(BaseModel):
    document_id: str
    hits: list[SearchHit]


def _document_or_404(orchestrator: IngestionOrchestrator, document_id: str) -> Document:
    document = orchestrator.metadata.get_document(document_id)
    if document is None:
        raise HTTPException(status_code=404, detail=f"Document {document_id} not found")
    return document


# ── Routes ────────────────────────────────────────────────────────────
@app.get("/health")
async def health() -> dict[str, str]:
    """Liveness probe."""
    return {"status": "ok"}


@app.post("/documents", response_model=IngestionOutcome)
async def upload_document(
    request: UploadRequest,
    orchestrator: IngestionOrchestrator = Depends(get_orchestrator),
) -> JSONResponse:
    """Ingest a document; 200 when ready, 422 when the ingestion failed."""
    try:
        data = base64.b64decode(request.content_base64, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise HTTPException(status_code=400, detail=f"Invalid base64 content: {exc}") from exc

    outcome = await orchestrator.ingest(data, request.filename, request.owner_id)
    status_code = 200 if outcome.ok else 422
    return JSONResponse(status_code=status_code, content=outcome.model_dump(mode="json"))


@app.get("/documents/{document_id}", response_model=Document)
def get_document(
    document_id: str,
    orchestrator: IngestionOrchestrator = Depends(get_orchestrator),
) -> Document:
    return _document_or_404(orchestrator, document_id)


@app.get("/documents/{document_id}/pages", response_model=list[Page])
def get_pages(
    document_id: str,
    orchestrator: IngestionOrchestrator = Depends(get_orchestrator),
) -> list[Page]:
    """Pages of the document, or of its original when it is a dedup reference."""
    document = _document_or_404(orchestrator, document_id)
    return orchestrator.content.get_pages(document.content_document_id)


@app.get("/documents/{document_id}/logs", response_model=list[ProcessingLog])
def get_logs(
    document_id: str,
    orchestrator: IngestionOrchestrator = Depends(get_orchestrator),
) -> list[ProcessingLog]:
    return orchestrator.progress.list_logs(document_id)


@app.post("/documents/{document_id}/search", response_model=SearchResponse)
def search_document(
    document_id: str,
    request: SearchRequest,
    orchestrator: IngestionOrchestrator = Depends(get_orchestrator),
    searcher: SemanticSearcher = Depends(get_searcher),
) -> SearchResponse:
    document = _document_or_404(orchestrator, document_id)
    if document.status is not DocumentStatus.READY:
        raise HTTPException(status_code=409, detail=f"Document {document_id} is {document.status.value}")
    hits = searcher.search(
        document.content_document_id,
        request.query,
        k=request.k,
        page_number=request.page_number,
    )
    return SearchResponse(document_id=document_id, hits=hits)
