# sehat_rakshak/services/assistant_service.py
"""
AI health assistant backed by an OpenAI-compatible chat completions API.

Red-flag detection is a keyword pre-filter on the user's own text and does
not depend on the model's answer.
"""

import logging
from dataclasses import dataclass
from typing import Optional
from uuid import UUID

import httpx
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from sehat_rakshak.core.config import Settings
from sehat_rakshak.models.ai_interaction import AIInteraction
from sehat_rakshak.models.prescription import Prescription
from sehat_rakshak.schemas.assistant import AssistantResponse, Language

logger = logging.getLogger(__name__)

NOT_CONFIGURED_MESSAGE = "AI Assistant is not configured. Please set OPENAI_API_KEY to enable it."
EMPTY_RESPONSE_MESSAGE = "No response from AI"
EMERGENCY_PREFIX = "EMERGENCY DETECTED! "

RED_FLAG_SYMPTOMS = (
    "chest pain",
    "difficulty breathing",
    "severe bleeding",
    "unconscious",
    "stroke",
    "heart attack",
    "severe headache",
    "high fever",
    "seizure",
    "allergic reaction",
    "swelling throat",
    "dizziness severe",
)

SYSTEM_PROMPTS = {
    "general": (
        "You are Sehat Rakshak AI Health Assistant. You help patients understand their "
        "prescriptions, medications, and provide basic health guidance.\n\n"
        "Guidelines:\n"
        "- Be empathetic and supportive\n"
        "- Explain medical terms in simple language\n"
        "- Always remind patients to consult their doctor for serious concerns\n"
        "- Detect emergency symptoms and escalate immediately\n"
        "- Provide information in both English and Hindi when needed\n"
        "- Never provide specific medical diagnoses\n"
        "- Focus on medication adherence and general wellness"
    ),
    "prescription": (
        "You are helping a patient understand their prescription. Explain:\n"
        "- What each medicine is for\n"
        "- How to take it (dosage, timing, with/without food)\n"
        "- Possible side effects\n"
        "- When to expect improvement\n"
        "- Importance of completing the full course\n"
        "Keep explanations simple and in both English and Hindi."
    ),
    "symptoms": (
        "You are evaluating patient-reported symptoms.\n"
        "CRITICAL: If you detect any emergency symptoms (chest pain, difficulty breathing, "
        "severe bleeding, stroke symptoms, etc.), immediately flag it as a red flag emergency.\n"
        "For non-emergency symptoms, provide general guidance and recommend consulting a "
        "doctor if symptoms persist."
    ),
    "translation": (
        "Translate the following medical instructions from English to Hindi and vice versa. "
        "Maintain medical accuracy while using simple, patient-friendly language."
    ),
}


class AssistantError(Exception):
    """The language model provider could not be reached or answered with an error."""


@dataclass(frozen=True)
class AssistantConfig:
    api_key: Optional[str] = None
    api_url: str = "https://api.openai.com/v1/chat/completions"
    model: str = "gpt-3.5-turbo"
    temperature: float = 0.7
    max_tokens: int = 500
    timeout_seconds: float = 30.0

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    @classmethod
    def from_settings(cls, settings: Settings) -> "AssistantConfig":
        return cls(
            api_key=settings.openai_api_key,
            api_url=settings.openai_api_url,
            model=settings.openai_model,
            temperature=settings.openai_temperature,
            max_tokens=settings.openai_max_tokens,
            timeout_seconds=settings.assistant_timeout_seconds,
        )


def detect_red_flags(text: str) -> bool:
    lowered = (text or "").lower()
    return any(symptom in lowered for symptom in RED_FLAG_SYMPTOMS)


def call_chat_completion(
    config: AssistantConfig,
    messages: list[dict[str, str]],
    transport: Optional[httpx.BaseTransport] = None,
) -> str:
    """
    Send one chat completion request.
    Returns the fixed not-configured message when no API key is set.
    """
    if not config.is_configured:
        return NOT_CONFIGURED_MESSAGE

    payload = {
        "model": config.model,
        "messages": messages,
        "temperature": config.temperature,
        "max_tokens": config.max_tokens,
    }
    headers = {"Authorization": f"Bearer {config.api_key}"}

    try:
        with httpx.Client(transport=transport, timeout=config.timeout_seconds) as client:
            response = client.post(config.api_url, json=payload, headers=headers)
            response.raise_for_status()
            data = response.json()
    except httpx.HTTPError as exc:
        logger.error("Assistant provider error: %s", exc)
        raise AssistantError(f"AI provider error: {exc}") from exc
    except ValueError as exc:
        raise AssistantError("AI provider returned invalid JSON") from exc

    choices = data.get("choices") or []
    if not choices:
        return EMPTY_RESPONSE_MESSAGE
    return (choices[0].get("message") or {}).get("content") or EMPTY_RESPONSE_MESSAGE


def _save_interaction(
    db: Optional[Session],
    *,
    patient_id: Optional[UUID],
    query: str,
    response: str,
    is_red_flag: bool,
    language: Language,
) -> None:
    if db is None or patient_id is None:
        return
    try:
        db.add(
            AIInteraction(
                patient_id=patient_id,
                query=query,
                response=response,
                is_red_flag=is_red_flag,
                language=language.value,
            )
        )
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.warning("Failed to save AI interaction. patient=%s err=%s", patient_id, e)


def ask_health_question(
    config: AssistantConfig,
    query: str,
    *,
    db: Optional[Session] = None,
    patient_id: Optional[UUID] = None,
    language: Language = Language.ENGLISH,
    transport: Optional[httpx.BaseTransport] = None,
) -> AssistantResponse:
    is_red_flag = detect_red_flags(query)
    messages = [
        {"role": "system", "content": SYSTEM_PROMPTS["general"]},
        {"role": "user", "content": query},
    ]
    answer = call_chat_completion(config, messages, transport)
    _save_interaction(db, patient_id=patient_id, query=query, response=answer, is_red_flag=is_red_flag, language=language)
    return AssistantResponse(message=answer, is_red_flag=is_red_flag)


def analyze_symptoms(
    config: AssistantConfig,
    symptoms: str,
    *,
    db: Optional[Session] = None,
    patient_id: Optional[UUID] = None,
    language: Language = Language.ENGLISH,
    transport: Optional[httpx.BaseTransport] = None,
) -> AssistantResponse:
    """Red-flag symptoms are marked in the prompt with the emergency prefix."""
    is_red_flag = detect_red_flags(symptoms)
    prompt = (
        f"Patient reports these symptoms: {symptoms}\n\n"
        f"{EMERGENCY_PREFIX if is_red_flag else ''}Provide guidance in {language.value} language."
    )
    messages = [
        {"role": "system", "content": SYSTEM_PROMPTS["symptoms"]},
        {"role": "user", "content": prompt},
    ]
    answer = call_chat_completion(config, messages, transport)
    _save_interaction(db, patient_id=patient_id, query=symptoms, response=answer, is_red_flag=is_red_flag, language=language)
    return AssistantResponse(message=answer, is_red_flag=is_red_flag)


def build_explanation_prompt(prescription: Prescription, language: Language) -> str:
    medications = "\n".join(
        f"{i}. {m.medicine_name} - {m.dosage}, {m.frequency}, {m.timing}, for {m.duration_days} days"
        + (f" ({m.instructions})" if m.instructions else "")
        for i, m in enumerate(prescription.medications, start=1)
    )
    notes = f"Doctor's Notes: {prescription.notes}\n\n" if prescription.notes else ""
    script_hint = "Provide the explanation in Hindi (Devanagari script)." if language == Language.HINDI else ""
    return (
        f"Explain this prescription in simple {language.value} language:\n\n"
        f"Diagnosis: {prescription.diagnosis}\n"
        f"Medications:\n{medications}\n\n"
        f"{notes}"
        "Please explain:\n"
        "1. What is the diagnosis in simple terms\n"
        "2. What each medicine does\n"
        "3. How to take them properly\n"
        "4. What to expect during treatment\n"
        "5. Any important precautions\n\n"
        f"{script_hint}"
    ).rstrip()


def explain_prescription(
    config: AssistantConfig,
    prescription: Prescription,
    *,
    db: Optional[Session] = None,
    language: Language = Language.ENGLISH,
    transport: Optional[httpx.BaseTransport] = None,
) -> AssistantResponse:
    prompt = build_explanation_prompt(prescription, language)
    messages = [
        {"role": "system", "content": SYSTEM_PROMPTS["prescription"]},
        {"role": "user", "content": prompt},
    ]
    answer = call_chat_completion(config, messages, transport)
    _save_interaction(
        db,
        patient_id=prescription.patient_id,
        query=prompt,
        response=answer,
        is_red_flag=False,
        language=language,
    )
    return AssistantResponse(message=answer, is_red_flag=False)


def translate_medical_text(
    config: AssistantConfig,
    text: str,
    *,
    source: Language = Language.ENGLISH,
    target: Language = Language.HINDI,
    transport: Optional[httpx.BaseTransport] = None,
) -> AssistantResponse:
    prompt = (
        f"Translate this medical text from {source.value} to {target.value}. "
        f"Maintain accuracy and use patient-friendly language:\n\n{text}"
    )
    messages = [
        {"role": "system", "content": SYSTEM_PROMPTS["translation"]},
        {"role": "user", "content": prompt},
    ]
    return AssistantResponse(message=call_chat_completion(config, messages, transport))
