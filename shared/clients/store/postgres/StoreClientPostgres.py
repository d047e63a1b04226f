import json
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from shared.clients.store.StoreClientInterface import StoreClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig
from shared.models.record import Record, RecordKind

# Columns of the register application's tables, selected with nested
# relation objects in the storage naming ("AssetCategory").
_RISK_SELECT = """
    SELECT r.id, r.title, r."threatDescription", r.description, r.embedding, r.archived,
           r."riskCategory", r."calculatedScore", r."ownerUserId", r."assetCategory",
           CASE WHEN u.id IS NULL THEN NULL
                ELSE json_build_object('id', u.id, 'displayName', u."displayName", 'email', u.email) END AS owner,
           CASE WHEN a.id IS NULL THEN NULL
                ELSE json_build_object(
                    'id', a.id, 'nameSerialNo', a."nameSerialNo", 'model', a.model,
                    'AssetCategory', CASE WHEN ac.id IS NULL THEN NULL
                                          ELSE json_build_object('id', ac.id, 'name', ac.name) END) END AS asset,
           CASE WHEN ip.id IS NULL THEN NULL
                ELSE json_build_object('id', ip.id, 'name', ip.name, 'group', ip."group") END AS "interestedParty"
    FROM "Risk" r
    LEFT JOIN "User" u ON u.id = r."ownerUserId"
    LEFT JOIN "Asset" a ON a.id = r."assetId"
    LEFT JOIN "AssetCategory" ac ON ac.id = a."assetCategoryId"
    LEFT JOIN "InterestedParty" ip ON ip.id = r."interestedPartyId"
"""

_CONTROL_SELECT = """
    SELECT c.id, c.code, c.title, c.description, c."controlText", c.purpose, c.guidance, c.embedding
    FROM "Control" c
"""

_TABLES = {RecordKind.RISK: ("\"Risk\"", "r"), RecordKind.CONTROL: ("\"Control\"", "c")}


def _decode_json(value: Any) -> Any:
    # asyncpg hands json/jsonb back as text unless a codec is registered
    if isinstance(value, (str, bytes)):
        return json.loads(value)
    return value


class StoreClientPostgres(StoreClientInterface):
    """Record store backed by the register application's PostgreSQL database.

    Uses a SQLAlchemy asyncio engine with raw SQL against the existing
    tables. The embedding is a JSONB column, written with one UPDATE.
    """

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._url = self.get_config_val("URL", default=None, val_type="string")
        self._pool_size = int(self.get_config_val("POOL_SIZE", default=5, val_type="number"))
        self._engine: AsyncEngine | None = None

    ##########################################
    ################ GETTER ##################
    ##########################################

    def _get_engine_name(self) -> str:
        return "Postgres"

    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="URL", val_type="string", default=None),
            EnvConfig(env_key="POOL_SIZE", val_type="number", default=5),
        ]

    def _get_engine(self) -> AsyncEngine:
        if self._engine is None:
            raise Exception("Database engine not initialised. Call boot() before making requests.")
        return self._engine

    ##########################################
    ############## LIFECYCLE #################
    ##########################################

    async def boot(self) -> None:
        self._engine = create_async_engine(self._url, pool_size=self._pool_size, pool_pre_ping=True)

    async def close(self) -> None:
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None

    async def do_healthcheck(self) -> None:
        async with self._get_engine().connect() as conn:
            await conn.execute(text("SELECT 1"))

    ##########################################
    ############### HELPERS ##################
    ##########################################

    async def _fetch(self, sql: str, params: dict) -> list[dict]:
        async with self._get_engine().connect() as conn:
            result = await conn.execute(text(sql), params)
            return [dict(row) for row in result.mappings().all()]

    def _row_to_record(self, kind: RecordKind, row: dict) -> Record:
        embedding = _decode_json(row.get("embedding"))
        data = {
            "id": row["id"],
            "kind": kind,
            "title": row["title"],
            "description": row.get("description"),
            "embedding": embedding if embedding else None,
        }
        if kind == RecordKind.RISK:
            data.update({
                "threat_description": row.get("threatDescription"),
                "archived": bool(row.get("archived")),
                "risk_category": row.get("riskCategory"),
                "calculated_score": row.get("calculatedScore"),
                "owner_user_id": row.get("ownerUserId"),
                "asset_category": row.get("assetCategory"),
                "owner": _decode_json(row.get("owner")),
                "asset": _decode_json(row.get("asset")),
                "interested_party": _decode_json(row.get("interestedParty")),
            })
        else:
            data.update({
                "code": row.get("code"),
                "control_text": row.get("controlText"),
                "purpose": row.get("purpose"),
                "guidance": row.get("guidance"),
            })
        return Record(**data)

    def _select(self, kind: RecordKind) -> str:
        return _RISK_SELECT if kind == RecordKind.RISK else _CONTROL_SELECT

    ##########################################
    ################ READS ###################
    ##########################################

    async def get_record_by_id(self, kind: RecordKind, record_id: str) -> Record | None:
        _, alias = _TABLES[kind]
        rows = await self._fetch(f"{self._select(kind)} WHERE {alias}.id = :id", {"id": record_id})
        return self._row_to_record(kind, rows[0]) if rows else None

    async def list_records(self, kind: RecordKind, exclude_id: str | None = None) -> list[Record]:
        _, alias = _TABLES[kind]
        conditions: list[str] = []
        params: dict = {}
        if exclude_id is not None:
            conditions.append(f"{alias}.id <> :exclude_id")
            params["exclude_id"] = exclude_id
        where = f" WHERE {' AND '.join(conditions)}" if conditions else ""
        rows = await self._fetch(f"{self._select(kind)}{where}", params)
        return [self._row_to_record(kind, row) for row in rows]

    async def list_records_missing_embedding(self, kind: RecordKind, after_id: str | None, limit: int) -> list[Record]:
        table, alias = _TABLES[kind]
        params: dict = {"limit": limit}
        cursor_condition = ""
        if after_id is not None:
            cursor_condition = f" AND {alias}.id > :after_id"
            params["after_id"] = after_id
        sql = (
            f"SELECT {alias}.* FROM {table} {alias} "
            f"WHERE {alias}.embedding IS NULL{cursor_condition} "
            f"ORDER BY {alias}.id ASC LIMIT :limit"
        )
        rows = await self._fetch(sql, params)
        return [self._row_to_record(kind, row) for row in rows]

    async def count_records(self, kind: RecordKind) -> int:
        table, _ = _TABLES[kind]
        rows = await self._fetch(f"SELECT COUNT(*) AS count FROM {table}", {})
        return int(rows[0]["count"])

    async def count_records_missing_embedding(self, kind: RecordKind) -> int:
        table, _ = _TABLES[kind]
        rows = await self._fetch(f"SELECT COUNT(*) AS count FROM {table} WHERE embedding IS NULL", {})
        return int(rows[0]["count"])

    ##########################################
    ################ WRITES ##################
    ##########################################

    async def _write_embedding(self, kind: RecordKind, record_id: str, embedding: list[float]) -> None:
        table, _ = _TABLES[kind]
        async with self._get_engine().begin() as conn:
            await conn.execute(
                text(f"UPDATE {table} SET embedding = CAST(:embedding AS jsonb) WHERE id = :id"),
                {"embedding": json.dumps(embedding), "id": record_id},
            )
