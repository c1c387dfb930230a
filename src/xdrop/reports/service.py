"""User-submitted issue reports with optional screenshots."""

from __future__ import annotations

import base64
import binascii
import re

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from xdrop.config import get_settings
from xdrop.db.models import Report
from xdrop.errors import ServiceError, UpstreamError
from xdrop.reports.schemas import CreateReportRequest
from xdrop.storage.service import BaseObjectStorage, StorageError
from xdrop.timeutil import utcnow

logger = structlog.get_logger()

MAX_SCREENSHOT_BYTES = 5 * 1024 * 1024
_DATA_URL_RE = re.compile(r"^data:(?P<mime>[\w/+.-]+);base64,", re.IGNORECASE)
_MIME_EXT = {"image/png": "png", "image/jpeg": "jpg", "image/gif": "gif", "image/webp": "webp"}
_EXT_RE = re.compile(r"[a-z0-9]{1,5}")


def decode_screenshot(data: str, filename: str | None = None) -> tuple[bytes, str, str]:
    """
    Decode a base64 screenshot (plain or `data:` URL).

    Returns:
        (bytes, file extension, content type)
    """
    mime = None
    match = _DATA_URL_RE.match(data)
    if match:
        mime = match.group("mime").lower()
        data = data[match.end():]
    try:
        raw = base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ServiceError("screenshot must be valid base64") from e
    if not raw:
        raise ServiceError("screenshot is empty")
    if len(raw) > MAX_SCREENSHOT_BYTES:
        raise ServiceError("File must be under 5MB")

    ext = filename.rsplit(".", 1)[1].lower() if filename and "." in filename else ""
    if not _EXT_RE.fullmatch(ext):
        ext = _MIME_EXT.get(mime or "", "png")
    content_type = mime or next((m for m, e in _MIME_EXT.items() if e == ext), "application/octet-stream")
    return raw, ext, content_type


async def create_report(
    db: AsyncSession, storage: BaseObjectStorage, user_id: str, req: CreateReportRequest
) -> Report:
    category = req.category.strip()
    if not category:
        raise ServiceError("category is required")

    screenshot_url = None
    if req.screenshot_base64:
        raw, ext, content_type = decode_screenshot(req.screenshot_base64, req.screenshot_filename)
        key = f"{user_id}/{int(utcnow().timestamp() * 1000)}.{ext}"
        try:
            screenshot_url = await storage.upload(get_settings().bucket_report_screenshots, key, raw, content_type)
        except StorageError as e:
            raise UpstreamError("Failed to upload screenshot") from e

    details = (req.details or "").strip() or None
    report = Report(user_id=user_id, category=category, details=details, screenshot_url=screenshot_url)
    db.add(report)
    await db.flush()
    logger.info("report_created", report_id=report.id, category=category, has_screenshot=bool(screenshot_url))
    return report


async def list_own_reports(db: AsyncSession, user_id: str) -> list[Report]:
    result = await db.execute(select(Report).where(Report.user_id == user_id).order_by(Report.created_at.desc()))
    return list(result.scalars().all())
