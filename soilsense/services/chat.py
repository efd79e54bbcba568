"""Chat service: assistant conversations and AI-backed agronomy helpers."""

import logging
import math
from typing import Any

from pydantic import TypeAdapter, ValidationError
from sqlalchemy.orm import Session

from soilsense.database import utcnow
from soilsense.errors import BadRequestError, NotFoundError, ServiceUnavailableError
from soilsense.models.conversation import ChatMessage, Conversation, MessageType
from soilsense.schemas.chat import CropRecommendation, DiseaseAnalysis, FertilizerRecommendation
from soilsense.services.llm import CompletionClient, extract_json, get_deepseek_client, get_openai_client

logger = logging.getLogger("soilsense")

CHAT_MODEL = "gpt-4o"
RECOMMENDATION_MODEL = "deepseek-chat"
MAX_RECOMMENDED_CROPS = 6
TITLE_LENGTH = 50
DEFAULT_TREES = 30.0
MAX_TREES = 1_000_000

CROP_LIST = TypeAdapter(list[CropRecommendation])

SYSTEM_PROMPT = """You are SoilSense, an agricultural assistant focused on soil health, crop management and \
sustainable farming. Give farmers practical, actionable advice.

You cover soil assessment and management, crop nutrition and fertilization, pest and disease control, \
irrigation, crop rotation and planning, and weather considerations.

Give step-by-step instructions for complex tasks, mention safety precautions for any chemical application, \
account for local conditions, and ask a clarifying question when the request is ambiguous."""

IMAGE_PROMPT = (
    "Please analyze this image and provide detailed agricultural advice. Focus on soil condition, "
    "plant health, potential issues, and specific recommendations for improvement."
)

DISEASE_PROMPT = (
    "Analyze this crop image for diseases, overall health, hydration and nutrient status. Reply with JSON "
    'of the form {"diseaseAnalysis": {"results": [{"title": "...", "description": "..."}], '
    '"advices": [{"key": "fertilizer", "advices": [{"title": "...", "description": "..."}]}]}}.'
)

FALLBACK_REPLY = "I apologize, but I was unable to process your request. Please try again."

FALLBACK_CROPS = [
    {
        "id": "tomato",
        "name": "Tomato",
        "icon": "\U0001f345",
        "suitabilityScore": 85,
        "reasons": ["Based on current soil conditions"],
    },
    {
        "id": "potato",
        "name": "Potato",
        "icon": "\U0001f954",
        "suitabilityScore": 80,
        "reasons": ["Suitable for your pH level"],
    },
]

FALLBACK_DISEASE_ANALYSIS = {
    "results": [
        {"title": "Disease Detection", "description": "Unable to parse detailed analysis. Please try again."},
        {"title": "Health Condition", "description": "Manual inspection recommended."},
    ],
    "advices": [
        {
            "key": "fertilizer",
            "advices": [{"title": "General Recommendation", "description": "Apply balanced NPK fertilizer."}],
        }
    ],
}


def conversation_title(message: str | None) -> str:
    """Title from the first message, truncated to 50 characters."""
    if not message:
        return "New Conversation"
    return message if len(message) <= TITLE_LENGTH else message[: TITLE_LENGTH - 3] + "..."


def image_content(prompt: str, image_base64: str) -> list[dict[str, Any]]:
    return [
        {"type": "text", "text": prompt},
        {"type": "image_url", "image_url": {"url": f"data:image/jpeg;base64,{image_base64}", "detail": "high"}},
    ]


def sensor_summary(sensor: dict[str, Any]) -> str:
    return (
        f"Temperature: {sensor['temperature']}°C, Humidity: {sensor['humidity']}%, "
        f"EC: {sensor['ec']} µS/cm, pH: {sensor['ph']}, N: {sensor['nitrogen']} mg/kg, "
        f"P: {sensor['phosphorus']} mg/kg, K: {sensor['potassium']} mg/kg, Salinity: {sensor['salinity']} mg/kg"
    )


def fallback_fertilizer(number_of_trees: str) -> dict[str, list[dict[str, str]]]:
    """Per-tree rule of thumb used when the model reply cannot be parsed."""
    try:
        trees = float(number_of_trees)
    except ValueError:
        trees = 0.0
    if not math.isfinite(trees) or not 0 < trees <= MAX_TREES:
        trees = DEFAULT_TREES
    return {
        "nonOrganic": [
            {"name": "Nitrogen", "amount": f"{round(trees * 0.5)} Kg", "perTree": "0.5 kg/tree", "color": "#D8285C"},
            {"name": "Phosphorus", "amount": f"{round(trees * 0.4)} Kg", "perTree": "0.4 kg/tree", "color": "#4096F1"},
        ],
        "organic": [
            {"name": "Compost", "amount": f"{round(trees * 1.3)} Kg", "perTree": "1.3 kg/tree", "color": "#624A46"},
        ],
    }


class ChatService:
    """Proxies chat and recommendation requests to AI providers and stores conversations."""

    def __init__(self, openai: CompletionClient, deepseek: CompletionClient) -> None:
        self.openai = openai
        self.deepseek = deepseek

    # --- Conversations ---

    def _get_conversation(self, db: Session, user_id: int, conversation_id: int) -> Conversation:
        conversation = (
            db.query(Conversation).filter(Conversation.id == conversation_id, Conversation.user_id == user_id).first()
        )
        if not conversation:
            raise NotFoundError("Conversation not found or access denied")
        return conversation

    def send_message(
        self,
        db: Session,
        user_id: int,
        message_type: str,
        message: str | None = None,
        image_base64: str | None = None,
        audio_base64: str | None = None,
        conversation_id: int | None = None,
        conversation_history: list[dict[str, str]] | None = None,
    ) -> dict:
        """Send one message to the assistant, storing the exchange in a conversation.

        A conversation is created when ``conversation_id`` is omitted. Prior
        turns come from ``conversation_history`` when given, otherwise from the
        stored conversation.
        """
        if not self.openai.configured:
            raise ServiceUnavailableError()

        if message_type == "voice" and audio_base64:
            user_message = self.openai.transcribe(audio_base64)
            response_type = "voice_response"
        elif message_type == "text" and message:
            user_message = message
            response_type = "text"
        elif message_type == "image" and image_base64:
            user_message = "[Image uploaded]"
            response_type = "image_analysis"
        else:
            raise BadRequestError("Invalid message type or missing required data")

        conversation = None
        if conversation_id is not None:
            conversation = self._get_conversation(db, user_id, conversation_id)

        if conversation_history:
            history = [{"role": turn["role"], "content": turn["content"]} for turn in conversation_history]
        else:
            history = []
            for stored in (conversation.messages if conversation else []):
                history.append({"role": "user", "content": stored.user_message})
                history.append({"role": "assistant", "content": stored.assistant_message})

        api_messages: list[dict[str, Any]] = [{"role": "system", "content": SYSTEM_PROMPT}, *history]
        if message_type == "image":
            api_messages.append({"role": "user", "content": image_content(IMAGE_PROMPT, image_base64)})
        else:
            api_messages.append({"role": "user", "content": user_message})

        reply = self.openai.complete(api_messages, model=CHAT_MODEL, max_tokens=1000) or FALLBACK_REPLY

        # Nothing is written until the provider has answered
        if conversation is None:
            title = conversation_title(message or (user_message if message_type == "voice" else None))
            conversation = Conversation(user_id=user_id, title=title)
            db.add(conversation)
            db.flush()

        db.add(
            ChatMessage(
                conversation_id=conversation.id,
                user_id=user_id,
                user_message=user_message,
                assistant_message=reply,
                message_type=MessageType(message_type.upper()),
            )
        )
        conversation.updated_at = utcnow()
        db.commit()

        return {
            "message": reply,
            "message_type": response_type,
            "timestamp": utcnow(),
            "conversation_id": conversation.id,
        }

    def get_conversations(self, db: Session, user_id: int, limit: int = 50, offset: int = 0) -> list[dict]:
        """List a user's conversations, most recently active first."""
        conversations = (
            db.query(Conversation)
            .filter(Conversation.user_id == user_id)
            .order_by(Conversation.updated_at.desc(), Conversation.id.desc())
            .offset(offset)
            .limit(limit)
            .all()
        )
        return [
            {
                "id": conv.id,
                "title": conv.title,
                "created_at": conv.created_at,
                "updated_at": conv.updated_at,
                "message_count": len(conv.messages),
                "last_message": conv.messages[-1].user_message if conv.messages else "",
            }
            for conv in conversations
        ]

    def get_conversation_details(self, db: Session, user_id: int, conversation_id: int) -> Conversation:
        return self._get_conversation(db, user_id, conversation_id)

    def delete_conversation(self, db: Session, user_id: int, conversation_id: int) -> None:
        conversation = self._get_conversation(db, user_id, conversation_id)
        db.delete(conversation)
        db.commit()

    def get_chat_history(self, db: Session, user_id: int, limit: int = 50, offset: int = 0) -> list[ChatMessage]:
        """Flat list of a user's exchanges across conversations, newest first."""
        return (
            db.query(ChatMessage)
            .filter(ChatMessage.user_id == user_id)
            .order_by(ChatMessage.created_at.desc(), ChatMessage.id.desc())
            .offset(offset)
            .limit(limit)
            .all()
        )

    # --- Recommendations ---

    def calculate_fertilizer(
        self, sensor_data: dict[str, Any], calculation_data: dict[str, Any]
    ) -> FertilizerRecommendation:
        """Yearly fertilizer quantities for a field, split into organic and non-organic."""
        crop = calculation_data["selected_crop"]
        variety = f" ({crop['variety']})" if crop.get("variety") else ""
        prompt = (
            "You are an agricultural fertilizer expert. Calculate the optimal fertilizer quantities for one full "
            "year based on the data below, considering nutrient levels, crop requirements, pH, field size and "
            "tree density.\n\n"
            f"Soil: {sensor_summary(sensor_data)}\n"
            f"Field: Area {calculation_data['area_size']}, Trees {calculation_data['number_of_trees']}, "
            f"Crop {crop['name']}{variety}\n\n"
            'Reply with JSON: {"fertilizerRecommendation": {"nonOrganic": [{"name": "Nitrogen", "amount": "15 Kg", '
            '"perTree": "0.5 kg/tree", "color": "#D8285C"}], "organic": [{"name": "Compost", "amount": "40 Kg", '
            '"perTree": "1.3 kg/tree", "color": "#624A46"}]}}'
        )
        content = self.deepseek.complete(
            [{"role": "user", "content": prompt}], model=RECOMMENDATION_MODEL, max_tokens=3000
        )
        parsed = extract_json(content) or {}
        try:
            return FertilizerRecommendation.model_validate(parsed.get("fertilizerRecommendation"))
        except ValidationError:
            logger.warning("Fertilizer reply was not parseable, using fallback")
            return FertilizerRecommendation.model_validate(fallback_fertilizer(calculation_data["number_of_trees"]))

    def get_crop_recommendations(self, sensor_data: dict[str, Any]) -> list[CropRecommendation]:
        """Up to six crops suited to the measured soil."""
        prompt = (
            "You are an agricultural expert. Based on the soil sensor data, recommend the top 6 most suitable "
            f"crops.\n\nSoil: {sensor_summary(sensor_data)}\n\n"
            'Reply with JSON: {"recommendations": [{"id": "crop_id", "name": "Crop Name", "icon": "emoji", '
            '"suitabilityScore": 95, "reasons": ["Reason 1", "Reason 2"]}]}'
        )
        content = self.deepseek.complete(
            [{"role": "user", "content": prompt}], model=RECOMMENDATION_MODEL, max_tokens=2000
        )
        parsed = extract_json(content) or {}
        try:
            recommendations = CROP_LIST.validate_python(parsed.get("recommendations"))
        except ValidationError:
            logger.warning("Crop recommendation reply was not parseable, using fallback")
            recommendations = CROP_LIST.validate_python(FALLBACK_CROPS)
        return recommendations[:MAX_RECOMMENDED_CROPS]

    def analyze_crop_disease(self, image_base64: str) -> DiseaseAnalysis:
        """Disease, health and nutrient findings for a crop photo."""
        content = self.openai.complete(
            [{"role": "user", "content": image_content(DISEASE_PROMPT, image_base64)}],
            model=CHAT_MODEL,
            max_tokens=2000,
        )
        parsed = extract_json(content) or {}
        try:
            return DiseaseAnalysis.model_validate(parsed.get("diseaseAnalysis"))
        except ValidationError:
            logger.warning("Disease analysis reply was not parseable, using fallback")
            return DiseaseAnalysis.model_validate(FALLBACK_DISEASE_ANALYSIS)


_chat_service: ChatService | None = None


def get_chat_service() -> ChatService:
    """Get singleton chat service instance."""
    global _chat_service
    if _chat_service is None:
        _chat_service = ChatService(get_openai_client(), get_deepseek_client())
    return _chat_service
