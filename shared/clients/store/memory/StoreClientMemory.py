import json
from pathlib import Path

from shared.clients.store.StoreClientInterface import StoreClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig
from shared.models.record import Record, RecordKind


class StoreClientMemory(StoreClientInterface):
    """In-process record store.

    Keeps records per kind in insertion order. Used for local development
    (optionally seeded from a JSON file of records) and as the store behind
    the test suite. Returned records are copies, so callers never mutate the
    stored state by accident.
    """

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._seed_file = self.get_config_val("SEED_FILE", default="", val_type="string")
        self._records: dict[RecordKind, dict[str, Record]] = {kind: {} for kind in RecordKind}

    ##########################################
    ################ GETTER ##################
    ##########################################

    def _get_engine_name(self) -> str:
        return "Memory"

    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="SEED_FILE", val_type="string", default=""),
        ]

    ##########################################
    ############## LIFECYCLE #################
    ##########################################

    async def boot(self) -> None:
        if not self._seed_file:
            return
        raw = json.loads(Path(self._seed_file).read_text(encoding="utf-8"))
        self.add_records([Record.model_validate(item) for item in raw])
        self.logging.info("Seeded memory store with %d records from %s", len(raw), self._seed_file)

    async def close(self) -> None:
        pass

    async def do_healthcheck(self) -> None:
        pass

    def add_records(self, records: list[Record]) -> None:
        """Insert or replace records, keyed by kind and id."""
        for record in records:
            self._records[record.kind][record.id] = record.model_copy(deep=True)

    ##########################################
    ################ READS ###################
    ##########################################

    async def get_record_by_id(self, kind: RecordKind, record_id: str) -> Record | None:
        record = self._records[kind].get(record_id)
        return record.model_copy(deep=True) if record else None

    async def list_records(self, kind: RecordKind, exclude_id: str | None = None) -> list[Record]:
        return [
            record.model_copy(deep=True)
            for record in self._records[kind].values()
            if record.id != exclude_id
        ]

    async def list_records_missing_embedding(self, kind: RecordKind, after_id: str | None, limit: int) -> list[Record]:
        pending = sorted(
            (r for r in self._records[kind].values() if r.embedding is None and (after_id is None or r.id > after_id)),
            key=lambda r: r.id,
        )
        return [record.model_copy(deep=True) for record in pending[:limit]]

    async def count_records(self, kind: RecordKind) -> int:
        return len(self._records[kind])

    async def count_records_missing_embedding(self, kind: RecordKind) -> int:
        return sum(1 for r in self._records[kind].values() if r.embedding is None)

    ##########################################
    ################ WRITES ##################
    ##########################################

    async def _write_embedding(self, kind: RecordKind, record_id: str, embedding: list[float]) -> None:
        record = self._records[kind].get(record_id)
        if record is None:
            raise KeyError(f"No {kind.value} with id '{record_id}'")
        self._records[kind][record_id] = record.model_copy(update={"embedding": list(embedding)})
