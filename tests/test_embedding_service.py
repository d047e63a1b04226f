import asyncio
from unittest.mock import AsyncMock

import pytest

from conftest import make_risk
from services.embedding_backfill.EmbeddingService import EmbeddingService
from shared.models.record import Record, RecordKind
from shared.models.similarity import BackfillStats

VECTOR = [0.6, 0.8]


@pytest.fixture
def embed_client():
    client = AsyncMock()
    client.embed_max_text_length = 1024
    client.generate.return_value = VECTOR
    return client


@pytest.fixture
def service(helper_config, memory_store, embed_client):
    return EmbeddingService(helper_config, memory_store, embed_client)


@pytest.fixture
def write_spy(memory_store, monkeypatch):
    spy = AsyncMock(wraps=memory_store._write_embedding)
    monkeypatch.setattr(memory_store, "_write_embedding", spy)
    return spy


def _seed(memory_store, count, kind=RecordKind.RISK):
    memory_store.add_records([
        Record(id=f"r{i:02d}", kind=kind, title=f"Record {i:02d}") for i in range(1, count + 1)
    ])


def _backfill(service, kind=RecordKind.RISK, **kwargs) -> BackfillStats:
    return asyncio.run(service.backfill_embeddings(kind, **kwargs))


################ SINGLE RECORD ##################

def test_compute_and_store_embedding(service, memory_store, embed_client):
    record = make_risk("r1", "Phishing", threat_description="Fake mails")
    memory_store.add_records([record])

    assert asyncio.run(service.compute_and_store_embedding(record)) == VECTOR
    embed_client.generate.assert_awaited_once_with("phishing\n\nfake mails")
    stored = asyncio.run(memory_store.get_record_by_id(RecordKind.RISK, "r1"))
    assert stored.embedding == VECTOR


def test_compute_uses_control_fields(service, memory_store, embed_client):
    control = Record(
        id="c1", kind=RecordKind.CONTROL, code="A.8.3", title="Access restriction", description="desc",
        control_text="Restrict access", purpose="purpose", guidance="guide",
    )
    memory_store.add_records([control])

    asyncio.run(service.compute_and_store_embedding(control))

    embed_client.generate.assert_awaited_once_with("a.8.3\n\naccess restriction\n\ndesc\n\npurpose\n\nguide")


def test_compute_returns_none_when_generation_fails(service, memory_store, embed_client, write_spy):
    record = make_risk("r1", "Phishing")
    memory_store.add_records([record])
    embed_client.generate.return_value = None

    assert asyncio.run(service.compute_and_store_embedding(record)) is None
    write_spy.assert_not_awaited()


def test_compute_returns_none_when_store_write_fails(service):
    # record was never stored, the write fails
    assert asyncio.run(service.compute_and_store_embedding(make_risk("ghost", "Phishing"))) is None


def test_compute_never_raises(service, embed_client):
    embed_client.generate.side_effect = RuntimeError("unexpected")
    assert asyncio.run(service.compute_and_store_embedding(make_risk("r1", "Phishing"))) is None


################ BACKFILL ##################

def test_dry_run_counts_without_writing(service, memory_store, embed_client, write_spy):
    _seed(memory_store, 25)

    stats = _backfill(service, batch_size=10, max_concurrency=2, dry_run=True)

    assert stats == BackfillStats(processed=25, succeeded=25, failed=0)
    embed_client.generate.assert_not_awaited()
    write_spy.assert_not_awaited()
    assert asyncio.run(memory_store.count_records_missing_embedding(RecordKind.RISK)) == 25


def test_backfill_embeds_every_record_once(service, memory_store, embed_client):
    _seed(memory_store, 25)
    memory_store.add_records([make_risk("r00", "Already embedded", embedding=[1.0, 0.0])])

    stats = _backfill(service, batch_size=10, max_concurrency=2)

    assert stats == BackfillStats(processed=25, succeeded=25, failed=0)
    texts = [call.args[0] for call in embed_client.generate.await_args_list]
    assert sorted(texts) == [f"record {i:02d}" for i in range(1, 26)]
    assert asyncio.run(memory_store.count_records_missing_embedding(RecordKind.RISK)) == 0


def test_second_run_processes_nothing(service, memory_store):
    _seed(memory_store, 12)

    _backfill(service, batch_size=5)
    stats = _backfill(service, batch_size=5)

    assert stats == BackfillStats(processed=0, succeeded=0, failed=0)


def test_out_of_band_writes_are_not_revisited(service, memory_store, embed_client):
    _seed(memory_store, 25)
    texts: list[str] = []

    async def generate(text):
        texts.append(text)
        if len(texts) == 1:
            # another process embeds records of the next page mid-scan
            await memory_store.set_record_embedding(RecordKind.RISK, "r15", [0.0, 1.0])
            await memory_store.set_record_embedding(RecordKind.RISK, "r16", [0.0, 1.0])
        return VECTOR

    embed_client.generate.side_effect = generate

    stats = _backfill(service, batch_size=10, max_concurrency=2)

    expected = [f"record {i:02d}" for i in range(1, 26) if i not in (15, 16)]
    assert sorted(texts) == expected
    assert len(texts) == len(set(texts))
    assert stats == BackfillStats(processed=23, succeeded=23, failed=0)


def test_failures_are_counted_and_retried_next_run(service, memory_store, embed_client):
    _seed(memory_store, 7)
    embed_client.generate.return_value = None

    stats = _backfill(service, batch_size=3, max_concurrency=2)
    assert stats == BackfillStats(processed=7, succeeded=0, failed=7)

    embed_client.generate.return_value = VECTOR
    stats = _backfill(service, batch_size=3, max_concurrency=2)
    assert stats == BackfillStats(processed=7, succeeded=7, failed=0)


def test_partial_failures(service, memory_store, embed_client):
    _seed(memory_store, 4)

    async def generate(text):
        return None if text in ("record 02", "record 03") else VECTOR

    embed_client.generate.side_effect = generate

    assert _backfill(service, batch_size=10) == BackfillStats(processed=4, succeeded=2, failed=2)


def test_backfill_respects_kind(service, memory_store, embed_client):
    _seed(memory_store, 3, kind=RecordKind.CONTROL)
    memory_store.add_records([make_risk("risk-1", "Phishing")])

    stats = _backfill(service, kind=RecordKind.CONTROL)

    assert stats.processed == 3
    assert asyncio.run(memory_store.count_records_missing_embedding(RecordKind.RISK)) == 1


@pytest.mark.parametrize("kwargs", [{"batch_size": 0}, {"max_concurrency": 0}])
def test_invalid_arguments_raise_before_store_access(helper_config, embed_client, kwargs):
    store = AsyncMock()
    service = EmbeddingService(helper_config, store, embed_client)

    with pytest.raises(ValueError):
        _backfill(service, **kwargs)
    assert store.mock_calls == []


def test_store_failure_returns_partial_stats(helper_config, embed_client):
    store = AsyncMock()
    store.list_records_missing_embedding.side_effect = [
        [make_risk("r1", "One"), make_risk("r2", "Two")],
        RuntimeError("db down"),
    ]
    store.set_record_embedding.return_value = True
    service = EmbeddingService(helper_config, store, embed_client)

    stats = _backfill(service, batch_size=2)

    assert stats == BackfillStats(processed=2, succeeded=2, failed=0)
    second_page = store.list_records_missing_embedding.await_args_list[1]
    assert second_page.kwargs["after_id"] == "r2"


################ STATUS ##################

def test_embedding_status(service, memory_store):
    _seed(memory_store, 4)
    memory_store.add_records([make_risk("r99", "Embedded", embedding=VECTOR)])

    status = asyncio.run(service.embedding_status(RecordKind.RISK))

    assert (status.kind, status.total, status.with_embedding, status.without_embedding) == ("risk", 5, 1, 4)
