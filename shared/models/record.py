"""Pydantic models for register records.

Hierarchy:
  RecordKind:  which register a record belongs to (risk or control).
  Record:      a stored risk or control as read from the record store.
  RiskInput:   the text fields of a risk that is being created or edited
               and has not been stored yet.

Only the embedding field of a Record is ever written back by this service.
All other fields are owned by the record store and are passed through to
the caller untouched.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class RecordKind(str, Enum):
    RISK = "risk"
    CONTROL = "control"


class Record(BaseModel):
    """A risk or control record.

    Risks carry ``threat_description`` and ``description``; controls carry
    ``code``, ``description``, ``control_text``, ``purpose`` and ``guidance``.
    Fields that do not apply to a kind stay None.

    The embedding, if present, has the dimensionality of the configured model
    and is always replaced as a whole.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    # Core identity
    id: str
    kind: RecordKind = RecordKind.RISK
    title: str

    # Descriptive text
    code: str | None = None
    threat_description: str | None = None
    description: str | None = None
    control_text: str | None = None
    purpose: str | None = None
    guidance: str | None = None

    # Vector representation, absent until computed
    embedding: list[float] | None = None

    # Presentation-only relations, passed through as stored
    risk_category: str | None = None
    calculated_score: int | None = None
    owner_user_id: str | None = None
    owner: dict[str, Any] | None = None
    asset_category: str | None = None
    asset: dict[str, Any] | None = None
    interested_party: dict[str, Any] | None = None
    archived: bool = False

    def has_embedding(self) -> bool:
        return bool(self.embedding)


class RiskInput(BaseModel):
    """Text fields of a risk that is being drafted in a form."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    title: str
    threat_description: str | None = None
    description: str | None = None
