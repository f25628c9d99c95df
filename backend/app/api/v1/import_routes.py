"""JSON bulk import endpoint for orders."""
import logging
import os
from typing import Annotated

from fastapi import APIRouter, Depends, File, Request, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.limiter import limiter
from app.db.session import get_session
from app.schemas.imports import ImportResult
from app.services.order_import import import_orders

logger = logging.getLogger(__name__)

router = APIRouter()


def _upload_size(file: UploadFile) -> int:
    """Declared size when the multipart parser recorded one, else measured from the spool."""
    if file.size is not None:
        return file.size
    current = file.file.tell()
    size = file.file.seek(0, os.SEEK_END)
    file.file.seek(current)
    return size


# ─── POST /orders/upload ───

@router.post(
    "/upload",
    response_model=ImportResult,
    summary="Bulk import orders from a JSON array file (max 10MB)",
)
@limiter.limit(settings.RATE_LIMIT_UPLOAD)
async def upload_orders(
    request: Request,
    db: Annotated[AsyncSession, Depends(get_session)],
    file: UploadFile = File(..., description="JSON array of {customerId, amount, status, paymentMethod}"),
):
    size = _upload_size(file)
    logger.info("Received upload request: filename=%s, size=%s", file.filename, size)

    result = await import_orders(db, file.file, file.filename, size)

    logger.info(
        "Upload completed: %d successful, %d failed out of %d total",
        result.successful_imports, result.failed_imports, result.total_records,
    )
    return result
