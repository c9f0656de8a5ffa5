# sehat_rakshak/schemas/assistant.py
from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, field_validator


class Language(str, Enum):
    ENGLISH = "english"
    HINDI = "hindi"


class AskRequest(BaseModel):
    query: str
    patient_id: Optional[UUID] = None
    language: Language = Language.ENGLISH

    @field_validator("query")
    @classmethod
    def validate_query(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Query must not be empty")
        return v


class SymptomsRequest(BaseModel):
    symptoms: str
    patient_id: Optional[UUID] = None
    language: Language = Language.ENGLISH

    @field_validator("symptoms")
    @classmethod
    def validate_symptoms(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Symptoms must not be empty")
        return v


class ExplainRequest(BaseModel):
    language: Language = Language.ENGLISH


class TranslateRequest(BaseModel):
    text: str
    source: Language = Language.ENGLISH
    target: Language = Language.HINDI


class AssistantResponse(BaseModel):
    message: str
    is_red_flag: bool = False
