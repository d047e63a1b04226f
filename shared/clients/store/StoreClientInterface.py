from abc import ABC, abstractmethod
from typing import Any

from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig
from shared.models.record import Record, RecordKind


class StoreClientInterface(ABC):
    """Access to the externally owned record store.

    The store's schema belongs to the register application. This client
    reads records and writes back exactly one field, the embedding.
    """

    def __init__(self, helper_config: HelperConfig):
        self.logging = helper_config.get_logger()
        self._helper_config = helper_config
        self.validate_full_configuration()

    ##########################################
    ############### CHECKER ##################
    ##########################################

    def validate_full_configuration(self) -> None:
        """
        Validates that all required configuration values for the client are set and valid.

        Raises:
            ValueError: If any required configuration value is missing or invalid.
        """
        for config in self._get_required_config():
            _ = self.get_config_val(raw_key=config.env_key, default=config.default, val_type=config.val_type)

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def get_client_type(self) -> str:
        return "store"

    def get_engine_name(self) -> str:
        """
        Returns the name of the engine used by the client in lowercase. E.g. "postgres"
        """
        return self._get_engine_name().lower()

    @abstractmethod
    def _get_engine_name(self) -> str:
        """
        Returns the name of the engine used by the client. E.g. "Postgres"
        """
        pass

    ################ CONFIG ##################
    @abstractmethod
    def _get_required_config(self) -> list[EnvConfig]:
        """
        Returns all required configurations for the client.

        Returns:
            list[EnvConfig]: A list containing the details of each required configuration key.
        """
        pass

    def get_config_val(self, raw_key: str, default: Any = None, val_type: str = "string") -> Any:
        """
        Retrieves the value of a "STORE_<ENGINE>_<KEY>" configuration key.

        Args:
            raw_key (str): The raw configuration key name
            default (Any): The default value to return if the configuration key is not set
            val_type (str): The type of the configuration value ("string", "number", "bool")
        """
        key = f"STORE_{self.get_engine_name().upper()}_{raw_key.upper()}"
        if val_type == "string":
            return self._helper_config.get_string_val(key, default=default)
        elif val_type == "number":
            return self._helper_config.get_number_val(key, default=default)
        elif val_type == "bool":
            return self._helper_config.get_bool_val(key, default=default)
        else:
            raise ValueError(f"Unsupported config value type '{val_type}' for env key '{raw_key}' in STORE client '{self.get_engine_name()}'.")

    ##########################################
    ############## LIFECYCLE #################
    ##########################################

    @abstractmethod
    async def boot(self) -> None:
        """Open connections / pools needed for requests."""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Release connections / pools."""
        pass

    @abstractmethod
    async def do_healthcheck(self) -> None:
        """
        Raises:
            Exception: If the store cannot be reached.
        """
        pass

    ##########################################
    ################ READS ###################
    ##########################################

    @abstractmethod
    async def get_record_by_id(self, kind: RecordKind, record_id: str) -> Record | None:
        """Load one record with its text fields and stored embedding.

        Returns:
            Record | None: The record, or None if no record has that id.
        """
        pass

    @abstractmethod
    async def list_records(self, kind: RecordKind, exclude_id: str | None = None) -> list[Record]:
        """List the records of a kind with their embeddings.

        Archived risks are listed too; they still count as duplicates.

        Args:
            kind (RecordKind): Which register to read.
            exclude_id (str | None): Id to leave out, usually the record being compared.

        Returns:
            list[Record]: Records in the store's natural order.
        """
        pass

    @abstractmethod
    async def list_records_missing_embedding(self, kind: RecordKind, after_id: str | None, limit: int) -> list[Record]:
        """Next page of records that have no embedding, ordered by id ascending.

        Only ids strictly greater than ``after_id`` are returned, so a scan
        resumed from the last id of the previous page neither skips nor
        repeats rows while embeddings are being written mid-scan.

        Args:
            kind (RecordKind): Which register to scan.
            after_id (str | None): Cursor; None starts from the lowest id.
            limit (int): Maximum page size.

        Returns:
            list[Record]: Up to ``limit`` records, empty when the scan is done.
        """
        pass

    @abstractmethod
    async def count_records(self, kind: RecordKind) -> int:
        pass

    @abstractmethod
    async def count_records_missing_embedding(self, kind: RecordKind) -> int:
        pass

    ##########################################
    ################ WRITES ##################
    ##########################################

    @abstractmethod
    async def _write_embedding(self, kind: RecordKind, record_id: str, embedding: list[float]) -> None:
        """Replace the embedding of one record in a single field update.

        Raises:
            Exception: On any store failure.
        """
        pass

    async def set_record_embedding(self, kind: RecordKind, record_id: str, embedding: list[float]) -> bool:
        """Persist an embedding, best-effort.

        A failed write only means the vector is recomputed next time, so
        errors are logged and reported through the return value.

        Returns:
            bool: True if the embedding was written.
        """
        try:
            await self._write_embedding(kind, record_id, embedding)
            return True
        except Exception as exc:
            self.logging.error(
                "Failed to store embedding for %s %s in %s: %s",
                kind.value, record_id, self.get_engine_name(), exc,
            )
            return False
