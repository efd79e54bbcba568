"""Pydantic schemas for report endpoints."""

from datetime import datetime
from typing import Any

from pydantic import Field

from soilsense.schemas.base import CamelModel
from soilsense.schemas.chat import (
    CalculationData,
    CropRecommendation,
    FertilizerRecommendation,
    SelectedCrop,
    SensorData,
)


class CreateReportRequest(CamelModel):
    name: str = Field(min_length=1, max_length=256)
    date: datetime
    sensor_data: SensorData
    calculation_data: CalculationData
    selected_crop: SelectedCrop
    crop_recommendations: list[CropRecommendation]
    fertilizer_recommendation: FertilizerRecommendation


class ReportResponse(CamelModel):
    id: int
    user_id: int
    name: str
    date: datetime
    sensor_data: dict[str, Any]
    calculation_data: dict[str, Any]
    selected_crop: dict[str, Any]
    crop_recommendations: list[dict[str, Any]]
    fertilizer_recommendation: dict[str, Any]
    created_at: datetime
    updated_at: datetime


class ReportListItem(CamelModel):
    id: int
    name: str
    date: datetime
    crop_name: str
    crop_icon: str
    created_at: datetime
    updated_at: datetime


class ReportListResponse(CamelModel):
    items: list[ReportListItem]
    total: int
