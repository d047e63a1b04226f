import logging
import math
import os

import pytest

from shared.clients.store.memory.StoreClientMemory import StoreClientMemory
from shared.helper.HelperConfig import HelperConfig
from shared.logging.logging_setup import ColorLogger
from shared.models.record import Record, RecordKind

_ENV_PREFIXES = ("SIMILARITY_", "EMBED_", "LLM_", "STORE_", "INTERNAL_SERVICE_TOKEN")


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Start every test without configuration leaking in from the shell."""
    for key in list(os.environ):
        if key.startswith(_ENV_PREFIXES):
            monkeypatch.delenv(key, raising=False)


@pytest.fixture
def helper_config() -> HelperConfig:
    return HelperConfig(logger=ColorLogger(logging.getLogger("risk_similarity.tests")))


@pytest.fixture
def memory_store(helper_config) -> StoreClientMemory:
    return StoreClientMemory(helper_config=helper_config)


def vector_for_score(score: float) -> list[float]:
    """Unit vector whose cosine with [1, 0] is score / 100."""
    c = score / 100
    return [c, math.sqrt(1 - c * c)]


QUERY_VECTOR = [1.0, 0.0]


def make_risk(record_id: str, title: str, score: float | None = None, **fields) -> Record:
    """Risk record; ``score`` sets an embedding scoring that value against QUERY_VECTOR."""
    embedding = vector_for_score(score) if score is not None else fields.pop("embedding", None)
    return Record(id=record_id, kind=RecordKind.RISK, title=title, embedding=embedding, **fields)
