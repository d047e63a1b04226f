"""Semantic re-check of a pair of risks.

Cheap lexical fast paths first; otherwise one chat request to the LLM with a
strict scoring rubric, followed by penalties for incomplete and generic
risks. Transport failures propagate to the caller.
"""

import json
import math
import re

from shared.clients.llm.LLMClientInterface import LLMClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.helper.text_normalizer import word_overlap
from shared.models.record import Record, RiskInput
from shared.models.similarity import SimilarityResult

COMPLETENESS_PENALTY = 15
GENERIC_PENALTY = 10
GENERIC_SCORE_FLOOR = 50
GENERIC_SCORE_TRIGGER = 70
GENERIC_TITLE_MAX_WORDS = 3
GENERIC_TERMS = ("risk", "security", "threat", "vulnerability", "breach", "attack")

_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")
_BARE_NUMBER = re.compile(r"\b(\d{1,3})\b")
_WORD_GAP = re.compile(r"\s+")

RECHECK_PROMPT = """You are a risk management expert. Compare these two information security risks and determine if they describe the SAME SPECIFIC RISK or DIFFERENT risks.

CRITICAL: Risks are only similar if they describe the EXACT SAME threat, scenario, or security issue. Being in the same category (e.g., "both are security risks") is NOT enough for a high score.

Risk 1:
Title: {title1}
Threat Description: {threat1}
Description: {desc1}

Risk 2:
Title: {title2}
Threat Description: {threat2}
Description: {desc2}

Scoring rules (BE STRICT):
- 90-100: Risks describe the EXACT SAME threat/scenario (e.g., "Phishing emails targeting staff" = "Phishing emails targeting staff")
- 80-89: Risks describe the same threat but with minor variations (e.g., "Phishing emails" vs "Phishing attacks via email")
- 70-79: Risks are related but describe different aspects (e.g., "Phishing emails" vs "Malware from email attachments")
- 50-69: Risks are in the same category but clearly different (e.g., "Phishing" vs "Ransomware")
- 30-49: Risks are both security risks but unrelated
- 0-29: Completely different risks

IMPORTANT:
- If risk data is incomplete (missing threat description or description), be MORE conservative
- Generic risks (e.g., "Security risk" or "Data breach") should score LOW unless they're truly identical
- Different attack vectors, different assets, or different scenarios = DIFFERENT risks

Respond with ONLY a JSON object:
{{
  "score": <number 0-100>,
  "matchedFields": ["title", "threatDescription", "description"],
  "reasoning": "<brief explanation of why this score>"
}}"""

RiskLike = Record | RiskInput


def _clean(value: str | None) -> str:
    return (value or "").strip().lower()


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _clamp_score(value: float) -> float:
    return max(0.0, min(100.0, value))


def _is_complete(risk: RiskLike) -> bool:
    return bool(_clean(risk.title)) and bool(_clean(risk.threat_description) or _clean(risk.description))


def _is_generic_title(title: str | None) -> bool:
    # counted on the untrimmed title: leading/trailing blanks add empty words
    lowered = (title or "").lower()
    return len(_WORD_GAP.split(lowered)) <= GENERIC_TITLE_MAX_WORDS and any(term in lowered for term in GENERIC_TERMS)


class SemanticRechecker:
    """Scores a pair of risks with lexical fast paths and an LLM fallback."""

    def __init__(self, helper_config: HelperConfig, llm_client: LLMClientInterface) -> None:
        self.logging = helper_config.get_logger()
        self._llm = llm_client

    ##########################################
    ################ CORE ####################
    ##########################################

    async def recheck(self, risk1: RiskLike, risk2: RiskLike) -> SimilarityResult:
        """Score how likely two risks describe the same threat.

        Args:
            risk1 (RiskLike): First risk (title / threat description / description).
            risk2 (RiskLike): Second risk.

        Returns:
            SimilarityResult: Score 0-100 and the matched field names.

        Raises:
            Exception: If the chat request fails at transport or HTTP level.
        """
        title1, title2 = _clean(risk1.title), _clean(risk2.title)
        threat1, threat2 = _clean(risk1.threat_description), _clean(risk2.threat_description)
        desc1, desc2 = _clean(risk1.description), _clean(risk2.description)

        # identical in every field
        if title1 and title1 == title2 and threat1 == threat2 and desc1 == desc2:
            fields = [name for name, value in (("title", title1), ("threatDescription", threat1), ("description", desc1)) if value]
            return SimilarityResult(score=100, matched_fields=fields)

        # identical titles, graded by word overlap of the other fields
        if title1 and title1 == title2:
            desc_overlap = word_overlap(desc1, desc2)
            threat_overlap = word_overlap(threat1, threat2)
            if desc_overlap > 0.8 and threat_overlap > 0.8:
                score = 95
            elif desc_overlap > 0.7 or threat_overlap > 0.7:
                score = 85
            else:
                score = 70
            return SimilarityResult(score=score, matched_fields=["title"])

        prompt = RECHECK_PROMPT.format(
            title1=risk1.title or "N/A",
            threat1=risk1.threat_description or "N/A",
            desc1=risk1.description or "N/A",
            title2=risk2.title or "N/A",
            threat2=risk2.threat_description or "N/A",
            desc2=risk2.description or "N/A",
        )
        content = await self._llm.do_chat([{"role": "user", "content": prompt}])
        return self._score_from_reply(content, risk1, risk2)

    ##########################################
    ############### HELPERS ##################
    ##########################################

    def _score_from_reply(self, content: str, risk1: RiskLike, risk2: RiskLike) -> SimilarityResult:
        """Turn the LLM reply into a penalised score.

        Prefers the JSON object in the reply; falls back to the first 1-3 digit
        number in the text, or 0.
        """
        match = _JSON_OBJECT.search(content or "")
        if match:
            try:
                parsed = json.loads(match.group(0))
                if not isinstance(parsed, dict):
                    raise ValueError("reply JSON is not an object")
                raw_score = parsed.get("score") or 0
                score = _clamp_score(float(raw_score))

                if not _is_complete(risk1) or not _is_complete(risk2):
                    score = max(0.0, score - COMPLETENESS_PENALTY)

                if (_is_generic_title(risk1.title) or _is_generic_title(risk2.title)) and score > GENERIC_SCORE_TRIGGER:
                    score = max(score - GENERIC_PENALTY, GENERIC_SCORE_FLOOR)

                matched = parsed.get("matchedFields") or []
                matched = [str(field) for field in matched] if isinstance(matched, list) else []
                self.logging.info(
                    "Semantic re-check: LLM score %s -> adjusted %d, reasoning: %s",
                    raw_score, _round_half_up(score), parsed.get("reasoning") or "N/A",
                )
                return SimilarityResult(score=_round_half_up(score), matched_fields=matched)
            except (ValueError, TypeError):
                self.logging.warning("Semantic re-check: failed to parse JSON reply: %s", match.group(0)[:200])

        number = _BARE_NUMBER.search(content or "")
        score = int(number.group(1)) if number else 0
        self.logging.warning("Semantic re-check: no JSON in reply, extracted score %d", score)
        return SimilarityResult(score=int(_clamp_score(score)), matched_fields=[])
