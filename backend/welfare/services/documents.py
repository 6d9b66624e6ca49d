# ruff: noqa: TC003
from __future__ import annotations

import uuid
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from welfare.models.request import WelfareRequest


@runtime_checkable
class DocumentRenderer(Protocol):
    """Interface for the request document (PDF) generator and its storage."""

    async def render(self, request: WelfareRequest) -> str:
        """Render the finalized request and return an opaque document reference."""
        ...


class InMemoryDocumentRenderer:
    """In-memory stub that keeps the rendered fields instead of a PDF."""

    def __init__(self) -> None:
        self._documents: dict[uuid.UUID, dict[str, Any]] = {}

    async def render(self, request: WelfareRequest) -> str:
        """Store the document fields and return a memory:// reference."""
        self._documents[request.id] = {
            "request_type": request.request_type,
            "requester_name": request.requester_name,
            "requester_department": request.requester_department,
            "net_amount": str(request.net_amount),
        }
        return f"memory://documents/{request.id}.pdf"

    def get(self, request_id: uuid.UUID) -> dict[str, Any] | None:
        """Return the stored document fields for a request."""
        return self._documents.get(request_id)


_document_renderer: DocumentRenderer = InMemoryDocumentRenderer()


def get_document_renderer() -> DocumentRenderer:
    """Return the configured document renderer."""
    return _document_renderer


def set_document_renderer(renderer: DocumentRenderer) -> None:
    """Override the renderer (for testing or production wiring)."""
    global _document_renderer
    _document_renderer = renderer
