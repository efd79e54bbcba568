"""Report service: saved field analyses owned by a user."""

import logging
from datetime import datetime
from typing import Any

from sqlalchemy.orm import Session

from soilsense.errors import NotFoundError
from soilsense.models.report import Report

logger = logging.getLogger("soilsense")

REPORT_NOT_FOUND = "Report not found or access denied"
DEFAULT_CROP_ICON = "\U0001f331"


class ReportService:
    """CRUD over reports, always scoped to the owning user."""

    def create_report(
        self,
        db: Session,
        user_id: int,
        name: str,
        date: datetime,
        sensor_data: dict[str, Any],
        calculation_data: dict[str, Any],
        selected_crop: dict[str, Any],
        crop_recommendations: list[dict[str, Any]],
        fertilizer_recommendation: dict[str, Any],
    ) -> Report:
        report = Report(
            user_id=user_id,
            name=name,
            date=date,
            sensor_data=sensor_data,
            calculation_data=calculation_data,
            selected_crop=selected_crop,
            crop_recommendations=crop_recommendations,
            fertilizer_recommendation=fertilizer_recommendation,
        )
        db.add(report)
        db.commit()
        db.refresh(report)
        logger.info("Report %s created for user %s", report.id, user_id)
        return report

    def list_reports(self, db: Session, user_id: int, limit: int = 50, offset: int = 0) -> tuple[list[dict], int]:
        """List a user's reports, newest first. Returns (items, total_count)."""
        query = db.query(Report).filter(Report.user_id == user_id)
        total = query.count()
        reports = query.order_by(Report.created_at.desc(), Report.id.desc()).offset(offset).limit(limit).all()

        items = []
        for report in reports:
            crop = report.selected_crop or {}
            items.append(
                {
                    "id": report.id,
                    "name": report.name,
                    "date": report.date,
                    "crop_name": crop.get("name") or "Unknown",
                    "crop_icon": crop.get("icon") or DEFAULT_CROP_ICON,
                    "created_at": report.created_at,
                    "updated_at": report.updated_at,
                }
            )
        return items, total

    def get_report(self, db: Session, user_id: int, report_id: int) -> Report:
        report = db.query(Report).filter(Report.id == report_id, Report.user_id == user_id).first()
        if not report:
            raise NotFoundError(REPORT_NOT_FOUND)
        return report

    def delete_report(self, db: Session, user_id: int, report_id: int) -> None:
        report = self.get_report(db, user_id, report_id)
        db.delete(report)
        db.commit()


_report_service: ReportService | None = None


def get_report_service() -> ReportService:
    """Get singleton report service instance."""
    global _report_service
    if _report_service is None:
        _report_service = ReportService()
    return _report_service
