"""
Pydantic schemas for visitor attendance.

Visitors are brothers of other lodges signing the attendance book of a
session. Their input is normalized (trimmed, inner whitespace collapsed)
before validation.
"""

import enum
import re
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator, model_validator


class VisitorDegree(str, enum.Enum):
    """Masonic degree of a visitor."""
    APPRENTICE = "apprentice"
    COMPANION = "companion"
    MASTER = "master"


# Suggested obediences; any non-empty text is accepted
OBEDIENCE_OPTIONS = {
    "GOB": "GOB - Grande Oriente do Brasil",
    "GLESP": "GLESP - Grande Loja do Estado de Sao Paulo",
    "GLEMG": "GLEMG - Grande Loja do Estado de Minas Gerais",
    "Other": "Other obedience",
}

_LODGE_NUMBER_RE = re.compile(r"^\d+$")
_MASONIC_NUMBER_RE = re.compile(r"^[0-9.\-]+$")


def normalize_text(value: str) -> str:
    """Trim and collapse runs of whitespace to a single space."""
    return re.sub(r"\s+", " ", value.strip())


class VisitorAttendanceInput(BaseModel):
    """
    Visitor signing the attendance of a session.

    Rules:
        name: 3-120 characters
        lodge: 2-120 characters
        lodge_number: digits only, at most 10
        obedience: 1-120 characters, free text or one of OBEDIENCE_OPTIONS
        masonic_number: optional, digits, dots and hyphens, at most 20

    Example:
        >>> VisitorAttendanceInput(
        ...     name="  Joao   da Silva ",
        ...     degree="master",
        ...     lodge="Estrela do Oriente",
        ...     lodge_number="123",
        ...     obedience="GOB",
        ... ).name
        'Joao da Silva'
    """

    name: str = Field(..., min_length=3, max_length=120)
    degree: VisitorDegree
    lodge: str = Field(..., min_length=2, max_length=120)
    lodge_number: str = Field(..., max_length=10)
    obedience: str = Field(
        ...,
        min_length=1,
        max_length=120,
        description="Obedience of the visiting lodge; see the suggested options",
    )
    masonic_number: Optional[str] = Field(default=None, max_length=20)

    @model_validator(mode="before")
    @classmethod
    def normalize_fields(cls, data: Any) -> Any:
        """Normalize whitespace of every text field before validation."""
        if not isinstance(data, dict):
            return data
        data = dict(data)
        for key in ("name", "lodge", "lodge_number", "obedience", "masonic_number"):
            value = data.get(key)
            if isinstance(value, str):
                data[key] = normalize_text(value)
        if data.get("masonic_number") == "":
            data["masonic_number"] = None
        return data

    @field_validator("lodge_number")
    @classmethod
    def validate_lodge_number(cls, v: str) -> str:
        if not _LODGE_NUMBER_RE.match(v):
            raise ValueError("Lodge number must contain digits only")
        return v

    @field_validator("masonic_number")
    @classmethod
    def validate_masonic_number(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not _MASONIC_NUMBER_RE.match(v):
            raise ValueError("Masonic number may contain only digits, dots or hyphens")
        return v

    model_config = {
        "json_schema_extra": {
            "example": {
                "name": "Joao da Silva",
                "degree": "master",
                "lodge": "Estrela do Oriente",
                "lodge_number": "123",
                "obedience": "GOB",
                "masonic_number": "12.345-6",
            }
        }
    }


class VisitorAttendanceResponse(BaseModel):
    """Visitor recorded for a session."""

    guid: str = Field(..., description="External identifier (vis_xxx)")
    name: str
    degree: str
    lodge: str
    lodge_number: str
    obedience: str
    masonic_number: Optional[str] = None

    model_config = {"from_attributes": True}
