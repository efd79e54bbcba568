"""Pydantic schemas for chat and recommendation endpoints."""

from datetime import datetime
from typing import Literal

from pydantic import Field

from soilsense.models.conversation import MessageType
from soilsense.schemas.base import CamelModel


class HistoryTurn(CamelModel):
    role: Literal["user", "assistant"]
    content: str


class SendMessageRequest(CamelModel):
    message_type: Literal["text", "voice", "image"]
    conversation_id: int | None = None
    message: str | None = Field(default=None, max_length=4000)
    image_base64: str | None = None
    audio_base64: str | None = None
    conversation_history: list[HistoryTurn] | None = None


class ChatResponse(CamelModel):
    message: str
    message_type: Literal["text", "voice_response", "image_analysis"]
    timestamp: datetime
    conversation_id: int


class ChatMessageResponse(CamelModel):
    id: int
    conversation_id: int
    user_message: str
    assistant_message: str
    message_type: MessageType
    created_at: datetime


class ConversationSummary(CamelModel):
    id: int
    title: str
    created_at: datetime
    updated_at: datetime
    message_count: int
    last_message: str


class ConversationDetail(CamelModel):
    id: int
    title: str
    created_at: datetime
    updated_at: datetime
    messages: list[ChatMessageResponse] = []


# --- Soil and crop data ---


class SensorData(CamelModel):
    temperature: float
    humidity: float
    ec: float
    ph: float
    nitrogen: float
    phosphorus: float
    potassium: float
    salinity: float


class SelectedCrop(CamelModel):
    name: str
    id: str | None = None
    icon: str | None = None
    variety: str | None = None


class CalculationData(CamelModel):
    area_size: str
    number_of_trees: str
    selected_crop: SelectedCrop


class FertilizerItem(CamelModel):
    name: str
    amount: str
    per_tree: str
    color: str


class FertilizerRecommendation(CamelModel):
    non_organic: list[FertilizerItem]
    organic: list[FertilizerItem]


class CropRecommendation(CamelModel):
    id: str
    name: str
    icon: str
    suitability_score: float
    reasons: list[str] = []


class Finding(CamelModel):
    title: str
    description: str


class AdviceGroup(CamelModel):
    key: str
    advices: list[Finding]


class DiseaseAnalysis(CamelModel):
    results: list[Finding]
    advices: list[AdviceGroup]


class FertilizerCalculationRequest(CamelModel):
    sensor_data: SensorData
    calculation_data: CalculationData


class FertilizerResponse(CamelModel):
    fertilizer_recommendation: FertilizerRecommendation


class CropRecommendationRequest(CamelModel):
    sensor_data: SensorData


class CropRecommendationResponse(CamelModel):
    recommendations: list[CropRecommendation]


class CropDiseaseRequest(CamelModel):
    image_base64: str = Field(min_length=1)


class CropDiseaseResponse(CamelModel):
    disease_analysis: DiseaseAnalysis
