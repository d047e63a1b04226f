"""Embedding service.

Computes embeddings for stored records and writes them back to the record
store: one record at a time after a create/update, or as a resumable
backfill job over every record that has no embedding yet.
"""

import asyncio

from shared.clients.embed.EmbedClientInterface import EmbedClientInterface
from shared.clients.store.StoreClientInterface import StoreClientInterface
from shared.helper.ConcurrencyLimiter import ConcurrencyLimiter
from shared.helper.HelperConfig import HelperConfig
from shared.helper.text_normalizer import normalize_record_text
from shared.models.record import Record, RecordKind
from shared.models.similarity import BackfillStats, EmbeddingStatus

BACKFILL_BATCH_SIZE = 10       # records fetched per page
BACKFILL_CONCURRENCY = 2       # max parallel embedding requests


class EmbeddingService:
    """Computes and persists record embeddings."""

    def __init__(
        self,
        helper_config: HelperConfig,
        store_client: StoreClientInterface,
        embed_client: EmbedClientInterface,
    ) -> None:
        self.logging = helper_config.get_logger()
        self._store = store_client
        self._embed = embed_client

    ##########################################
    ############# SINGLE RECORD ##############
    ##########################################

    async def compute_and_store_embedding(self, record: Record) -> list[float] | None:
        """Embed one record and persist the vector, best-effort.

        Never raises, so callers can run it after a create or update without
        risking the write they just made.

        Args:
            record (Record): The record to embed; its kind selects the text fields.

        Returns:
            list[float] | None: The stored vector, or None if it could not be generated or stored.
        """
        try:
            text = normalize_record_text(record, max_length=self._embed.embed_max_text_length)
            embedding = await self._embed.generate(text)
            if embedding is None:
                self.logging.error("Failed to generate embedding for %s %s", record.kind.value, record.id)
                return None
            if not await self._store.set_record_embedding(record.kind, record.id, embedding):
                return None
            return embedding
        except Exception as exc:
            self.logging.error("Error computing/storing embedding for %s %s: %s", record.kind.value, record.id, exc)
            return None

    ##########################################
    ############### BACKFILL #################
    ##########################################

    async def backfill_embeddings(
        self,
        kind: RecordKind,
        batch_size: int = BACKFILL_BATCH_SIZE,
        max_concurrency: int = BACKFILL_CONCURRENCY,
        dry_run: bool = False,
    ) -> BackfillStats:
        """Embed every record of a kind that has no embedding yet.

        Pages through the store by id with a strict "greater than last id"
        cursor, so records written mid-run are neither skipped nor repeated.
        Batches run one after another; records within a batch run in parallel,
        bounded by one limiter for the whole job. Re-running after a
        completed run finds nothing to do.

        In dry-run mode nothing is embedded or written; every listed record
        counts as succeeded.

        Args:
            kind (RecordKind): Which register to backfill.
            batch_size (int): Page size, at least 1.
            max_concurrency (int): Max parallel records, at least 1.
            dry_run (bool): Only count what would be processed.

        Returns:
            BackfillStats: Counters of this run. If the run aborts on a store
            failure, the counters accumulated so far.

        Raises:
            ValueError: If batch_size or max_concurrency is below 1.
        """
        if batch_size < 1:
            raise ValueError(f"batch_size must be at least 1. Got: {batch_size}")
        if max_concurrency < 1:
            raise ValueError(f"max_concurrency must be at least 1. Got: {max_concurrency}")

        stats = BackfillStats()
        limiter = ConcurrencyLimiter(max_concurrency)
        cursor: str | None = None

        self.logging.info(
            "Starting %s embedding backfill (batch_size=%d, max_concurrency=%d, dry_run=%s)",
            kind.value, batch_size, max_concurrency, dry_run,
        )

        try:
            while True:
                batch = await self._store.list_records_missing_embedding(kind, after_id=cursor, limit=batch_size)
                if not batch:
                    break

                results = await asyncio.gather(
                    *[limiter.execute(self._make_unit(record, dry_run)) for record in batch],
                    return_exceptions=True,
                )
                for record, result in zip(batch, results):
                    stats.processed += 1
                    if result is True:
                        stats.succeeded += 1
                    else:
                        stats.failed += 1
                        if isinstance(result, Exception):
                            self.logging.error("Backfill failed for %s %s: %s", kind.value, record.id, result)

                cursor = batch[-1].id
                self.logging.info(
                    "Backfill progress: processed %d, succeeded %d, failed %d (cursor: %s)",
                    stats.processed, stats.succeeded, stats.failed, cursor,
                )
        except Exception as exc:
            self.logging.exception("Backfill of %s embeddings aborted after %d records: %s", kind.value, stats.processed, exc)
            return stats

        self.logging.info(
            "Backfill of %s embeddings complete: processed %d, succeeded %d, failed %d",
            kind.value, stats.processed, stats.succeeded, stats.failed, color="green",
        )
        return stats

    def _make_unit(self, record: Record, dry_run: bool):
        async def unit() -> bool:
            if dry_run:
                return True
            return await self.compute_and_store_embedding(record) is not None

        return unit

    ##########################################
    ################ STATUS ##################
    ##########################################

    async def embedding_status(self, kind: RecordKind) -> EmbeddingStatus:
        """Count the records of a kind with and without a stored embedding."""
        total = await self._store.count_records(kind)
        missing = await self._store.count_records_missing_embedding(kind)
        return EmbeddingStatus(
            kind=kind.value,
            total=total,
            with_embedding=total - missing,
            without_embedding=missing,
        )
