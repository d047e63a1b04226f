"""Similarity service.

Finds stored risks that describe the same threat as a given risk. Stored
embeddings are compared by cosine similarity; exact title matches short-cut
the scoring, and scores in the borderline band are re-checked semantically
by the LLM, up to a fixed number of calls per request.
"""

from shared.clients.embed.EmbedClientInterface import EmbedClientInterface
from shared.clients.store.StoreClientInterface import StoreClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.helper.text_normalizer import normalize_record_text, normalize_risk_text
from shared.helper.vector_math import cosine_similarity, map_to_score
from shared.models.record import Record, RecordKind, RiskInput
from shared.models.similarity import SimilarityCandidate, SimilarRecordResult
from services.similarity.SemanticRechecker import SemanticRechecker
from services.similarity.result_mapper import to_public_results

SIMILARITY_THRESHOLD = 70    # minimum score to report a candidate
EXACT_MATCH_SCORE = 95       # score of a candidate with an identical title
BORDERLINE_MIN = 65          # inclusive lower bound of the re-check band
BORDERLINE_MAX = 85          # inclusive upper bound of the re-check band
RECHECK_CAP = 10             # max semantic re-checks per request
DEFAULT_LIMIT = 10
MIN_TITLE_LENGTH = 3


def _vector_score(vector: list[float], other: list[float]) -> int:
    # half-up rounding of the 0-100 score
    return int(map_to_score(cosine_similarity(vector, other)) + 0.5)


class SimilarityService:
    """Orchestrates embedding, vector scoring and semantic re-checks for risk lookups."""

    def __init__(
        self,
        helper_config: HelperConfig,
        store_client: StoreClientInterface,
        embed_client: EmbedClientInterface,
        rechecker: SemanticRechecker,
    ) -> None:
        self.logging = helper_config.get_logger()
        self._store = store_client
        self._embed = embed_client
        self._rechecker = rechecker

        self.threshold = helper_config.get_number_val("SIMILARITY_THRESHOLD", default=SIMILARITY_THRESHOLD)
        self.exact_match_score = int(helper_config.get_number_val("SIMILARITY_EXACT_MATCH_SCORE", default=EXACT_MATCH_SCORE))
        self.borderline_min = helper_config.get_number_val("SIMILARITY_BORDERLINE_MIN", default=BORDERLINE_MIN)
        self.borderline_max = helper_config.get_number_val("SIMILARITY_BORDERLINE_MAX", default=BORDERLINE_MAX)
        self.recheck_cap = int(helper_config.get_number_val("SIMILARITY_RECHECK_CAP", default=RECHECK_CAP))
        self.default_limit = helper_config.get_positive_int_val("SIMILARITY_DEFAULT_LIMIT", default=DEFAULT_LIMIT)
        self.min_title_length = int(helper_config.get_number_val("SIMILARITY_MIN_TITLE_LENGTH", default=MIN_TITLE_LENGTH))
        self.max_text_length = self._embed.embed_max_text_length

    ##########################################
    ############## ENTRY POINTS ##############
    ##########################################

    async def find_similar_for_existing(self, record_id: str, limit: int | None = None) -> list[SimilarRecordResult]:
        """Find stored risks similar to an existing risk.

        Never raises: any unexpected failure is logged and reported as no
        results, so a lookup can never break the request that asked for it.

        Args:
            record_id (str): Id of the stored risk.
            limit (int | None): Maximum number of results; the configured default if None.

        Returns:
            list[SimilarRecordResult]: Matches sorted by score, highest first.
        """
        try:
            candidates = await self._find_similar_for_existing(record_id, limit or self.default_limit)
        except Exception as exc:
            self.logging.exception("Similarity lookup for risk %s failed: %s", record_id, exc)
            return []
        return to_public_results(candidates)

    async def find_similar_for_new(
        self,
        data: RiskInput,
        limit: int | None = None,
        exclude_id: str | None = None,
    ) -> list[SimilarRecordResult]:
        """Find stored risks similar to a risk that is being drafted.

        Never raises: any unexpected failure is logged and reported as no
        results.

        Args:
            data (RiskInput): Title, threat description and description of the draft.
            limit (int | None): Maximum number of results; the configured default if None.
            exclude_id (str | None): Id of the risk being edited, left out of the candidates.

        Returns:
            list[SimilarRecordResult]: Matches sorted by score, highest first.
        """
        try:
            candidates = await self._find_similar_for_new(data, limit or self.default_limit, exclude_id)
        except Exception as exc:
            self.logging.exception("Similarity check for draft risk %r failed: %s", (data.title or "")[:50], exc)
            return []
        return to_public_results(candidates)

    ##########################################
    ################ CORE ####################
    ##########################################

    async def _find_similar_for_existing(self, record_id: str, limit: int) -> list[SimilarityCandidate]:
        target = await self._store.get_record_by_id(RecordKind.RISK, record_id)
        if target is None:
            self.logging.info("Similarity lookup: risk %s not found.", record_id)
            return []

        vector = target.embedding
        if not target.has_embedding():
            vector = await self._embed.generate(normalize_record_text(target, max_length=self.max_text_length))
            if vector is None:
                self.logging.warning("Similarity lookup: no embedding available for risk %s.", record_id)
                return []
            # cached for the next lookup; a failed write is logged by the store
            await self._store.set_record_embedding(RecordKind.RISK, record_id, vector)

        candidates = await self._store.list_records(RecordKind.RISK, exclude_id=record_id)
        if not candidates:
            return []

        scored = self._score_candidates(vector, candidates)
        scored.sort(key=lambda c: c.score, reverse=True)
        self.logging.info(
            "Similarity lookup for risk %s: %d of %d candidates above threshold.",
            record_id, len(scored), len(candidates),
        )
        return scored[:limit]

    async def _find_similar_for_new(self, data: RiskInput, limit: int, exclude_id: str | None) -> list[SimilarityCandidate]:
        title = (data.title or "").strip()
        if len(title) < self.min_title_length:
            return []

        candidates = await self._store.list_records(RecordKind.RISK, exclude_id=exclude_id)
        if not candidates:
            return []

        # an identical title is definitive, no vector scoring or re-check
        normalized_title = title.lower()
        exact = [
            SimilarityCandidate(record=c, score=self.exact_match_score, matched_fields=["title"])
            for c in candidates
            if c.title.strip().lower() == normalized_title
        ]
        if exact:
            self.logging.info("Similarity check: %d exact title match(es) for %r.", len(exact), title[:50])
            return exact[:limit]

        text = normalize_risk_text(data.title, data.threat_description, data.description, max_length=self.max_text_length)
        vector = await self._embed.generate(text)
        if vector is None:
            self.logging.warning("Similarity check: no embedding available for draft risk %r.", title[:50])
            return []

        scored = self._score_candidates(vector, candidates)
        scored.sort(key=lambda c: c.score, reverse=True)
        await self._recheck_borderline(data, scored)

        # re-checked scores face the threshold again
        final = [c for c in scored if c.score >= self.threshold]
        final.sort(key=lambda c: c.score, reverse=True)
        return final[:limit]

    ##########################################
    ############### HELPERS ##################
    ##########################################

    def _score_candidates(self, vector: list[float], candidates: list[Record]) -> list[SimilarityCandidate]:
        """Score candidates against a vector and keep those at or above the threshold.

        Candidates without a stored embedding are skipped, never embedded on
        the fly.

        Raises:
            ValueError: If a stored embedding has a different dimensionality.
        """
        kept: list[SimilarityCandidate] = []
        skipped = 0
        for candidate in candidates:
            if not candidate.has_embedding():
                skipped += 1
                continue
            score = _vector_score(vector, candidate.embedding)
            if score >= self.threshold:
                # TODO: derive matched fields per field instead of reporting the title only
                kept.append(SimilarityCandidate(record=candidate, score=score, matched_fields=["title"]))
        if skipped:
            self.logging.debug("Skipped %d candidates without a stored embedding.", skipped)
        return kept

    def _is_borderline(self, score: int) -> bool:
        return self.borderline_min <= score <= self.borderline_max

    async def _recheck_borderline(self, data: RiskInput, scored: list[SimilarityCandidate]) -> None:
        """Replace borderline vector scores with semantic re-check scores, in place.

        At most ``recheck_cap`` re-checks are issued; later borderline
        candidates keep their vector score. A failed re-check keeps the vector
        score too. Matched fields are never changed here.
        """
        issued = 0
        cap_logged = False
        for candidate in scored:
            if not self._is_borderline(candidate.score):
                continue
            if issued >= self.recheck_cap:
                if not cap_logged:
                    self.logging.warning(
                        "Semantic re-check cap of %d reached, remaining borderline candidates keep their vector score.",
                        self.recheck_cap,
                    )
                    cap_logged = True
                continue

            issued += 1
            try:
                result = await self._rechecker.recheck(data, candidate.record)
            except Exception as exc:
                self.logging.warning(
                    "Semantic re-check failed for risk %s, keeping vector score %d: %s",
                    candidate.record.id, candidate.score, exc,
                )
                continue
            self.logging.debug(
                "Semantic re-check for risk %s: %d -> %d", candidate.record.id, candidate.score, result.score,
            )
            candidate.score = result.score
