"""Issue report endpoints (user JWT)."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from xdrop.auth.dependencies import get_current_user_id
from xdrop.database import get_session
from xdrop.errors import to_http
from xdrop.reports.schemas import CreateReportRequest, ReportListResponse, ReportResponse
from xdrop.reports.service import create_report, list_own_reports
from xdrop.storage.service import BaseObjectStorage, get_storage

router = APIRouter(prefix="/api/v1/reports", tags=["Reports"])


@router.post("", response_model=ReportResponse, status_code=201)
async def create_report_endpoint(
    body: CreateReportRequest,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
    storage: BaseObjectStorage = Depends(get_storage),
):
    try:
        report = await create_report(db, storage, user_id, body)
        await db.commit()
    except ValueError as e:
        raise to_http(e) from e
    return ReportResponse.model_validate(report)


@router.get("", response_model=ReportListResponse)
async def list_reports_endpoint(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
):
    reports = await list_own_reports(db, user_id)
    return ReportListResponse(reports=[ReportResponse.model_validate(r) for r in reports])
