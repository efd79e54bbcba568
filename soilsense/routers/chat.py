"""Chat and agronomy recommendation API endpoints."""

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from soilsense.database import get_db
from soilsense.dependencies import get_current_user
from soilsense.models.user import User
from soilsense.rate_limit import limiter
from soilsense.schemas.base import MessageResponse
from soilsense.schemas.chat import (
    ChatMessageResponse,
    ChatResponse,
    ConversationDetail,
    ConversationSummary,
    CropDiseaseRequest,
    CropDiseaseResponse,
    CropRecommendationRequest,
    CropRecommendationResponse,
    FertilizerCalculationRequest,
    FertilizerResponse,
    SendMessageRequest,
)
from soilsense.services.chat import get_chat_service

router = APIRouter(prefix="/chat", tags=["Chat"])


@router.post("/message", response_model=ChatResponse)
@limiter.limit("30/minute")
def send_message(
    request: Request,
    body: SendMessageRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> ChatResponse:
    """Send a text, voice or image message to the assistant."""
    history = None
    if body.conversation_history:
        history = [turn.model_dump() for turn in body.conversation_history]

    result = get_chat_service().send_message(
        db,
        user.id,
        message_type=body.message_type,
        message=body.message,
        image_base64=body.image_base64,
        audio_base64=body.audio_base64,
        conversation_id=body.conversation_id,
        conversation_history=history,
    )
    return ChatResponse(**result)


@router.get("/history", response_model=list[ChatMessageResponse])
def get_chat_history(
    limit: int = Query(default=50, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> list[ChatMessageResponse]:
    """Flat message history across all conversations, newest first."""
    messages = get_chat_service().get_chat_history(db, user.id, limit=limit, offset=offset)
    return [ChatMessageResponse.model_validate(m) for m in messages]


@router.get("/conversations", response_model=list[ConversationSummary])
def list_conversations(
    limit: int = Query(default=50, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> list[ConversationSummary]:
    """List conversations, most recently active first."""
    items = get_chat_service().get_conversations(db, user.id, limit=limit, offset=offset)
    return [ConversationSummary(**item) for item in items]


@router.get("/conversations/{conversation_id}", response_model=ConversationDetail)
def get_conversation(
    conversation_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> ConversationDetail:
    """Get a conversation with all of its messages."""
    conversation = get_chat_service().get_conversation_details(db, user.id, conversation_id)
    return ConversationDetail.model_validate(conversation)


@router.delete("/conversations/{conversation_id}", response_model=MessageResponse)
def delete_conversation(
    conversation_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> MessageResponse:
    """Delete a conversation and its messages."""
    get_chat_service().delete_conversation(db, user.id, conversation_id)
    return MessageResponse(message="Conversation deleted successfully")


# --- Recommendations ---


@router.post("/calculate-fertilizer", response_model=FertilizerResponse)
@limiter.limit("10/minute")
def calculate_fertilizer(
    request: Request,
    body: FertilizerCalculationRequest,
    user: User = Depends(get_current_user),
) -> FertilizerResponse:
    """Yearly fertilizer quantities for the given soil readings and field."""
    recommendation = get_chat_service().calculate_fertilizer(
        body.sensor_data.model_dump(), body.calculation_data.model_dump()
    )
    return FertilizerResponse(fertilizer_recommendation=recommendation)


@router.post("/crop-recommendations", response_model=CropRecommendationResponse)
@limiter.limit("10/minute")
def crop_recommendations(
    request: Request,
    body: CropRecommendationRequest,
    user: User = Depends(get_current_user),
) -> CropRecommendationResponse:
    """Top crops for the given soil readings."""
    recommendations = get_chat_service().get_crop_recommendations(body.sensor_data.model_dump())
    return CropRecommendationResponse(recommendations=recommendations)


@router.post("/analyze-crop-disease", response_model=CropDiseaseResponse)
@limiter.limit("10/minute")
def analyze_crop_disease(
    request: Request,
    body: CropDiseaseRequest,
    user: User = Depends(get_current_user),
) -> CropDiseaseResponse:
    """Disease and health analysis of a crop photo."""
    analysis = get_chat_service().analyze_crop_disease(body.image_base64)
    return CropDiseaseResponse(disease_analysis=analysis)
