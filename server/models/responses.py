from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from shared.models.similarity import SimilarRecordResult


class SimilarityResponse(BaseModel):
    results: list[SimilarRecordResult]


class BackfillResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    kind: str
    dry_run: bool
    processed: int
    succeeded: int
    failed: int


class EmbeddingStatusResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    kind: str
    total: int
    with_embedding: int
    without_embedding: int
