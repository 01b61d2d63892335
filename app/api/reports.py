import os
import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_db, get_renderer, get_storage
from app.exceptions import QueryNotFoundError
from app.middleware.rate_limit import RENDER_LIMIT, limiter
from app.models.schemas import RenderResponse, ReportOut
from app.services import query_service
from app.services.report_service import ReportRenderer
from app.services.storage_service import StorageService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/files/{filename}")
async def get_report_file(
    filename: str,
    storage: Annotated[StorageService, Depends(get_storage)],
    download: bool = False,
):
    """Serve generated report files (HTML for preview, PDF for download).

    Args:
        filename: The report file name
        download: If True, serve as an attachment
    """
    filename = os.path.basename(filename)
    folder = "pdfs" if filename.endswith(".pdf") else "reports"
    content = await storage.get_file(f"{folder}/{filename}")

    if content is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Report file not found")

    # Determine content type based on extension
    media_type = "application/pdf" if filename.endswith(".pdf") else "text/html"
    disposition = f'attachment; filename="{filename}"' if download else "inline"

    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": disposition},
    )


@router.post("/{query_id}/render", response_model=RenderResponse)
@limiter.limit(RENDER_LIMIT)
async def render_report(
    request: Request,
    query_id: str,
    renderer: Annotated[ReportRenderer, Depends(get_renderer)],
):
    """Render the query's report document and attach its URL."""
    try:
        result = await renderer.render(query_id)
    except QueryNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Query not found")

    return RenderResponse(
        success=True,
        document_url=result.document_url,
        html_url=result.html_url,
        pdf_url=result.pdf_url,
    )


@router.get("/{query_id}", response_model=ReportOut)
async def get_report(query_id: str, db: Annotated[AsyncSession, Depends(get_db)]):
    """The executive report for a query."""
    try:
        report = await query_service.get_report(db, query_id)
    except QueryNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Query not found")

    if report is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Report not generated yet")
    return ReportOut.model_validate(report)
