"""Order report download endpoint (CSV / XLSX)."""
import logging
import tempfile
from datetime import datetime
from typing import Annotated, BinaryIO, Iterator

from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.background import BackgroundTask

from app.core.config import settings
from app.core.limiter import limiter
from app.db.session import get_session
from app.schemas.order import ReportFilter
from app.services.report import ReportFileType, generate_report

logger = logging.getLogger(__name__)

router = APIRouter()

DOWNLOAD_CHUNK_SIZE = 64 * 1024


def _iter_file(buffer: BinaryIO) -> Iterator[bytes]:
    while chunk := buffer.read(DOWNLOAD_CHUNK_SIZE):
        yield chunk


def report_filename(file_type: ReportFileType, now: datetime | None = None) -> str:
    now = now or datetime.now()
    return f"orders_report_{now:%Y%m%d_%H%M%S}{file_type.extension}"


# ─── POST /orders/_report ───

@router.post(
    "/_report",
    summary="Download all orders matching the filters as CSV (default) or XLSX",
    response_class=StreamingResponse,
)
@limiter.limit(settings.RATE_LIMIT_REPORT)
async def download_report(
    request: Request,
    body: ReportFilter,
    db: Annotated[AsyncSession, Depends(get_session)],
):
    # Resolve the format first so an unknown type fails before any output exists.
    file_type = ReportFileType.from_value(body.file_type)
    filename = report_filename(file_type)

    # Spool the report so a failure part-way never reaches the client as a truncated file.
    buffer = tempfile.SpooledTemporaryFile(max_size=settings.REPORT_SPOOL_MAX_BYTES)
    try:
        await generate_report(db, body, buffer)
    except Exception:
        buffer.close()
        raise
    buffer.seek(0)

    logger.info("Report ready: %s", filename)
    return StreamingResponse(
        _iter_file(buffer),
        media_type=file_type.media_type,
        headers={
            "Content-Disposition": f'attachment; filename="{filename}"',
            "Cache-Control": "no-cache, no-store, must-revalidate",
            "Pragma": "no-cache",
            "Expires": "0",
        },
        background=BackgroundTask(buffer.close),
    )
