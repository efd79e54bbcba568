"""Report API endpoints."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from soilsense.database import get_db
from soilsense.dependencies import get_current_user
from soilsense.models.user import User
from soilsense.schemas.base import MessageResponse
from soilsense.schemas.report import CreateReportRequest, ReportListItem, ReportListResponse, ReportResponse
from soilsense.services.report import get_report_service

router = APIRouter(prefix="/reports", tags=["Reports"])


@router.post("", response_model=ReportResponse, status_code=201)
def create_report(
    body: CreateReportRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> ReportResponse:
    """Save a field analysis and its recommendations."""
    report = get_report_service().create_report(
        db,
        user.id,
        name=body.name,
        date=body.date,
        sensor_data=body.sensor_data.model_dump(by_alias=True),
        calculation_data=body.calculation_data.model_dump(by_alias=True),
        selected_crop=body.selected_crop.model_dump(by_alias=True, exclude_none=True),
        crop_recommendations=[c.model_dump(by_alias=True) for c in body.crop_recommendations],
        fertilizer_recommendation=body.fertilizer_recommendation.model_dump(by_alias=True),
    )
    return ReportResponse.model_validate(report)


@router.get("", response_model=ReportListResponse)
def list_reports(
    limit: int = Query(default=50, ge=1),
    offset: int = Query(default=0, ge=0),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> ReportListResponse:
    """List the current user's reports, newest first. At most 100 per page."""
    items, total = get_report_service().list_reports(db, user.id, limit=min(limit, 100), offset=offset)
    return ReportListResponse(items=[ReportListItem(**item) for item in items], total=total)


@router.get("/{report_id}", response_model=ReportResponse)
def get_report(
    report_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> ReportResponse:
    """Get a single report by ID."""
    report = get_report_service().get_report(db, user.id, report_id)
    return ReportResponse.model_validate(report)


@router.delete("/{report_id}", response_model=MessageResponse)
def delete_report(
    report_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> MessageResponse:
    """Delete a report."""
    get_report_service().delete_report(db, user.id, report_id)
    return MessageResponse(message="Report deleted successfully")
