"""Pydantic models produced by the similarity and backfill pipelines."""

from pydantic import BaseModel

from shared.models.record import Record


class SimilarityResult(BaseModel):
    """Score of one pairwise comparison.

    Attributes:
        score:          Confidence 0-100 that both records describe the same threat.
        matched_fields: Names of the fields the comparison considers matching.
    """

    score: int
    matched_fields: list[str] = []


class SimilarityCandidate(BaseModel):
    """A stored record scored against a target. Built per request, never persisted."""

    record: Record
    score: int
    matched_fields: list[str] = []


class BackfillStats(BaseModel):
    """Counters of one backfill run."""

    processed: int = 0
    succeeded: int = 0
    failed: int = 0


class EmbeddingStatus(BaseModel):
    """How many records of a kind have a stored embedding."""

    kind: str
    total: int
    with_embedding: int
    without_embedding: int


class SimilarRecordResult(BaseModel):
    """One entry of a similarity lookup as handed to the caller.

    Attributes:
        risk:   Public representation of the matching record (see to_public_record()).
        score:  Final confidence 0-100.
        fields: Matched field names.
    """

    risk: dict
    score: int
    fields: list[str] = []
