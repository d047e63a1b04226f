import asyncio
from unittest.mock import AsyncMock

import pytest

from conftest import QUERY_VECTOR, make_risk, vector_for_score
from services.similarity.SimilarityService import SimilarityService
from shared.models.record import RecordKind, RiskInput
from shared.models.similarity import SimilarityResult


@pytest.fixture
def embed_client():
    client = AsyncMock()
    client.embed_max_text_length = 1024
    client.generate.return_value = QUERY_VECTOR
    return client


@pytest.fixture
def rechecker():
    checker = AsyncMock()
    checker.recheck.return_value = SimilarityResult(score=88, matched_fields=["description"])
    return checker


@pytest.fixture
def service(helper_config, memory_store, embed_client, rechecker):
    return SimilarityService(helper_config, memory_store, embed_client, rechecker)


def _draft(title, threat=None, desc=None):
    return RiskInput(title=title, threat_description=threat, description=desc)


def _new(service, data, **kwargs):
    return asyncio.run(service.find_similar_for_new(data, **kwargs))


def _existing(service, record_id, **kwargs):
    return asyncio.run(service.find_similar_for_existing(record_id, **kwargs))


################ NEW RISKS ##################

def test_short_title_returns_nothing_without_store_access(helper_config, embed_client, rechecker):
    store = AsyncMock()
    service = SimilarityService(helper_config, store, embed_client, rechecker)

    assert _new(service, _draft("AB")) == []
    assert _new(service, _draft("  AB   ")) == []
    assert store.mock_calls == []
    embed_client.generate.assert_not_awaited()


def test_exact_title_match_scores_95_without_recheck(service, memory_store, embed_client, rechecker):
    memory_store.add_records([
        make_risk("r1", "Phishing emails targeting staff"),
        make_risk("r2", "Ransomware", score=99),
    ])

    results = _new(service, _draft("  phishing EMAILS targeting staff "))

    assert len(results) == 1
    assert results[0].risk["id"] == "r1"
    assert results[0].score == 95
    assert results[0].fields == ["title"]
    rechecker.recheck.assert_not_awaited()
    embed_client.generate.assert_not_awaited()


def test_candidate_below_threshold_is_excluded(service, memory_store, rechecker):
    memory_store.add_records([make_risk("r1", "Ransomware on file servers", score=60)])

    assert _new(service, _draft("Phishing emails targeting staff")) == []
    rechecker.recheck.assert_not_awaited()


def test_candidate_above_borderline_keeps_vector_score(service, memory_store, rechecker):
    memory_store.add_records([make_risk("r1", "Phishing via mail", score=90)])

    results = _new(service, _draft("Phishing emails targeting staff"))

    assert [(r.risk["id"], r.score, r.fields) for r in results] == [("r1", 90, ["title"])]
    rechecker.recheck.assert_not_awaited()


def test_borderline_recheck_overwrites_score_only(service, memory_store, rechecker):
    memory_store.add_records([
        make_risk("r1", "Mail fraud", score=75),
        make_risk("r2", "Phishing via mail", score=86),
    ])
    draft = _draft("Phishing emails targeting staff", "fake mails")

    results = _new(service, draft)

    # re-checked 75 -> 88 moves ahead of the unchanged 86
    assert [(r.risk["id"], r.score, r.fields) for r in results] == [
        ("r1", 88, ["title"]),
        ("r2", 86, ["title"]),
    ]
    rechecker.recheck.assert_awaited_once()
    checked_draft, checked_record = rechecker.recheck.await_args.args
    assert checked_draft == draft
    assert checked_record.id == "r1"


def test_failed_recheck_keeps_vector_score(service, memory_store, rechecker):
    memory_store.add_records([make_risk("r1", "Mail fraud", score=80)])
    rechecker.recheck.side_effect = ConnectionError("llm down")

    results = _new(service, _draft("Phishing emails targeting staff"))

    assert [(r.risk["id"], r.score) for r in results] == [("r1", 80)]


def test_recheck_below_threshold_drops_candidate(service, memory_store, rechecker):
    memory_store.add_records([
        make_risk("r1", "Mail fraud", score=75),
        make_risk("r2", "Phishing via mail", score=90),
    ])
    rechecker.recheck.return_value = SimilarityResult(score=20, matched_fields=[])

    results = _new(service, _draft("Phishing emails targeting staff"))

    assert [(r.risk["id"], r.score) for r in results] == [("r2", 90)]
    rechecker.recheck.assert_awaited_once()


def test_recheck_cap_limits_llm_calls(service, memory_store, rechecker):
    memory_store.add_records([make_risk(f"r{i:02d}", f"Variant {i}", score=75) for i in range(15)])

    results = _new(service, _draft("Phishing emails targeting staff"), limit=20)

    assert rechecker.recheck.await_count == 10
    scores = [r.score for r in results]
    assert scores.count(88) == 10
    assert scores.count(75) == 5
    assert scores == sorted(scores, reverse=True)


def test_results_are_sorted_and_truncated(service, memory_store):
    memory_store.add_records([
        make_risk("r1", "A one", score=91),
        make_risk("r2", "B two", score=99),
        make_risk("r3", "C three", score=95),
    ])

    results = _new(service, _draft("Phishing emails targeting staff"), limit=2)

    assert [r.risk["id"] for r in results] == ["r2", "r3"]


def test_excluded_id_is_skipped_but_archived_risks_are_candidates(service, memory_store):
    memory_store.add_records([
        make_risk("r1", "Being edited", score=99),
        make_risk("r2", "Archived", score=92, archived=True),
        make_risk("r3", "Other", score=91),
    ])

    results = _new(service, _draft("Phishing emails targeting staff"), exclude_id="r1")

    assert [(r.risk["id"], r.score) for r in results] == [("r2", 92), ("r3", 91)]


def test_candidates_without_embedding_are_skipped(service, memory_store, embed_client):
    memory_store.add_records([
        make_risk("r1", "No vector yet"),
        make_risk("r2", "Has vector", score=93),
    ])

    results = _new(service, _draft("Phishing emails targeting staff"))

    assert [r.risk["id"] for r in results] == ["r2"]
    embed_client.generate.assert_awaited_once()


def test_embedding_failure_returns_nothing(service, memory_store, embed_client):
    memory_store.add_records([make_risk("r1", "Other", score=99)])
    embed_client.generate.return_value = None

    assert _new(service, _draft("Phishing emails targeting staff")) == []


def test_dimension_mismatch_is_caught_at_top_level(service, memory_store):
    memory_store.add_records([make_risk("r1", "Other", embedding=[0.1, 0.2, 0.3])])

    assert _new(service, _draft("Phishing emails targeting staff")) == []


def test_draft_text_is_normalized_before_embedding(service, memory_store, embed_client):
    memory_store.add_records([make_risk("r1", "Other", score=99)])

    _new(service, _draft(" Phishing ", "Fake MAILS", None))

    embed_client.generate.assert_awaited_once_with("phishing\n\nfake mails")


def test_thresholds_come_from_configuration(helper_config, memory_store, embed_client, rechecker, monkeypatch):
    monkeypatch.setenv("SIMILARITY_THRESHOLD", "50")
    monkeypatch.setenv("SIMILARITY_BORDERLINE_MIN", "50")
    monkeypatch.setenv("SIMILARITY_BORDERLINE_MAX", "60")
    service = SimilarityService(helper_config, memory_store, embed_client, rechecker)
    memory_store.add_records([make_risk("r1", "Other", score=55)])

    results = _new(service, _draft("Phishing emails targeting staff"))

    assert [r.score for r in results] == [88]


################ EXISTING RISKS ##################

def test_existing_risk_uses_stored_embedding(service, memory_store, embed_client, rechecker):
    memory_store.add_records([
        make_risk("target", "Phishing", embedding=QUERY_VECTOR),
        make_risk("r1", "Mail fraud", score=75),
        make_risk("r2", "Unrelated", score=20),
    ])

    results = _existing(service, "target")

    assert [(r.risk["id"], r.score, r.fields) for r in results] == [("r1", 75, ["title"])]
    embed_client.generate.assert_not_awaited()
    rechecker.recheck.assert_not_awaited()


def test_existing_risk_without_embedding_gets_one_stored(service, memory_store, embed_client):
    memory_store.add_records([
        make_risk("target", "Phishing", threat_description="Fake mails"),
        make_risk("r1", "Mail fraud", score=97),
    ])

    results = _existing(service, "target")

    assert [r.risk["id"] for r in results] == ["r1"]
    embed_client.generate.assert_awaited_once_with("phishing\n\nfake mails")
    stored = asyncio.run(memory_store.get_record_by_id(RecordKind.RISK, "target"))
    assert stored.embedding == QUERY_VECTOR


def test_existing_risk_not_found(service):
    assert _existing(service, "missing") == []


def test_existing_risk_embedding_failure_returns_nothing(service, memory_store, embed_client):
    memory_store.add_records([make_risk("target", "Phishing"), make_risk("r1", "Other", score=99)])
    embed_client.generate.return_value = None

    assert _existing(service, "target") == []


def test_existing_risk_never_returns_itself(service, memory_store):
    memory_store.add_records([
        make_risk("target", "Phishing", embedding=QUERY_VECTOR),
        make_risk("twin", "Phishing", embedding=vector_for_score(100)),
    ])

    results = _existing(service, "target")

    assert [(r.risk["id"], r.score) for r in results] == [("twin", 100)]


def test_store_failure_is_caught_at_top_level(helper_config, embed_client, rechecker):
    store = AsyncMock()
    store.get_record_by_id.side_effect = RuntimeError("db down")
    store.list_records.side_effect = RuntimeError("db down")
    service = SimilarityService(helper_config, store, embed_client, rechecker)

    assert _existing(service, "target") == []
    assert _new(service, _draft("Phishing emails targeting staff")) == []


def test_public_record_renames_asset_category(service, memory_store):
    memory_store.add_records([
        make_risk(
            "r1", "Laptop theft", score=96,
            asset={"id": "a1", "nameSerialNo": "LT-1", "AssetCategory": {"id": "c1", "name": "Laptops"}},
            threat_description="Stolen device",
        ),
    ])

    risk = _new(service, _draft("Phishing emails targeting staff"))[0].risk

    assert risk["asset"] == {"id": "a1", "nameSerialNo": "LT-1", "category": {"id": "c1", "name": "Laptops"}}
    assert risk["threatDescription"] == "Stolen device"
    assert "embedding" not in risk
