"""Presentation mapping of scored records.

Runs after scoring, so the scoring code never depends on the output shape.
"""

from shared.models.record import Record
from shared.models.similarity import SimilarityCandidate, SimilarRecordResult

# storage name of the asset's nested category object -> public name
STORAGE_ASSET_CATEGORY_KEY = "AssetCategory"
PUBLIC_ASSET_CATEGORY_KEY = "category"


def to_public_record(record: Record) -> dict:
    """Public, camelCase representation of a record.

    The embedding and the internal kind marker are dropped, and the asset's
    nested ``AssetCategory`` object is exposed as ``category`` (None when the
    asset has no category).
    """
    data = record.model_dump(by_alias=True, exclude={"embedding", "kind"})
    asset = data.get("asset")
    if asset is not None:
        asset = dict(asset)
        asset[PUBLIC_ASSET_CATEGORY_KEY] = asset.pop(STORAGE_ASSET_CATEGORY_KEY, None)
        data["asset"] = asset
    return data


def to_public_results(candidates: list[SimilarityCandidate]) -> list[SimilarRecordResult]:
    return [
        SimilarRecordResult(
            risk=to_public_record(candidate.record),
            score=candidate.score,
            fields=list(candidate.matched_fields),
        )
        for candidate in candidates
    ]
