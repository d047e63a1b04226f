from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from shared.models.record import RecordKind


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SimilarRisksRequest(_CamelModel):
    limit: int | None = Field(default=None, ge=1, le=100)


class SimilarityCheckRequest(_CamelModel):
    title: str
    threat_description: str | None = None
    description: str | None = None
    exclude_id: str | None = None
    limit: int | None = Field(default=None, ge=1, le=100)


class BackfillRequest(_CamelModel):
    kind: RecordKind = RecordKind.RISK
    batch_size: int = Field(default=10, ge=1)
    max_concurrency: int = Field(default=2, ge=1)
    dry_run: bool = False
