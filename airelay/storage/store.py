"""Repository over the endpoint and endpoint-model tables."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Sequence
from uuid import uuid4

from sqlalchemy import delete, select
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError

from ..logging_utils import get_logger
from .database import DatabaseManager
from .models import EndpointModelRecord, EndpointRecord

_INSERT_CHUNK = 200


@dataclass(frozen=True)
class NewModel:
    model_id: str
    model_name: str | None = None


class EndpointStore:
    """Read and write access to ``ai_endpoints`` / ``ai_endpoint_models``."""

    def __init__(self, db: DatabaseManager) -> None:
        self._db = db
        self._log = get_logger("store")

    def get_endpoint(self, endpoint_id: str) -> EndpointRecord | None:
        with self._db.session() as session:
            return session.get(EndpointRecord, endpoint_id)

    def list_enabled_endpoints(self) -> list[EndpointRecord]:
        with self._db.session() as session:
            stmt = (
                select(EndpointRecord)
                .where(EndpointRecord.enabled.is_(True))
                .order_by(EndpointRecord.name)
            )
            return list(session.execute(stmt).scalars())

    def list_enabled_models(self, endpoint_ids: Sequence[str]) -> list[EndpointModelRecord]:
        if not endpoint_ids:
            return []
        with self._db.session() as session:
            stmt = (
                select(EndpointModelRecord)
                .where(EndpointModelRecord.endpoint_id.in_(list(endpoint_ids)))
                .where(EndpointModelRecord.enabled.is_(True))
                .order_by(EndpointModelRecord.endpoint_id, EndpointModelRecord.model_id)
            )
            return list(session.execute(stmt).scalars())

    def list_models(self, endpoint_id: str) -> list[EndpointModelRecord]:
        with self._db.session() as session:
            stmt = (
                select(EndpointModelRecord)
                .where(EndpointModelRecord.endpoint_id == endpoint_id)
                .order_by(EndpointModelRecord.model_id)
            )
            return list(session.execute(stmt).scalars())

    def insert_missing_models(self, endpoint_id: str, models: Iterable[NewModel]) -> int:
        """Insert models absent for ``endpoint_id``; existing rows are left untouched."""

        rows: list[dict] = []
        seen: set[str] = set()
        for model in models:
            if not model.model_id or model.model_id in seen:
                continue
            seen.add(model.model_id)
            rows.append(
                {
                    "id": str(uuid4()),
                    "endpoint_id": endpoint_id,
                    "model_id": model.model_id,
                    "model_name": model.model_name or model.model_id,
                    "enabled": False,
                }
            )
        if not rows:
            return 0
        inserted = 0
        with self._db.session() as session:
            dialect = self._db.dialect
            for start in range(0, len(rows), _INSERT_CHUNK):
                chunk = rows[start : start + _INSERT_CHUNK]
                if dialect == "sqlite":
                    stmt = (
                        sqlite_insert(EndpointModelRecord)
                        .values(chunk)
                        .on_conflict_do_nothing(index_elements=["endpoint_id", "model_id"])
                    )
                    inserted += max(session.execute(stmt).rowcount or 0, 0)
                elif dialect == "postgresql":
                    from sqlalchemy.dialects.postgresql import insert as pg_insert

                    stmt = (
                        pg_insert(EndpointModelRecord)
                        .values(chunk)
                        .on_conflict_do_nothing(index_elements=["endpoint_id", "model_id"])
                    )
                    inserted += max(session.execute(stmt).rowcount or 0, 0)
                else:
                    for row in chunk:
                        try:
                            with session.begin_nested():
                                session.add(EndpointModelRecord(**row))
                                session.flush()
                            inserted += 1
                        except IntegrityError:
                            continue
        self._log.debug("Inserted {} new models for endpoint {}", inserted, endpoint_id)
        return inserted

    def create_endpoint(
        self,
        *,
        name: str,
        type: str,
        base_url: str | None = None,
        api_key: str | None = None,
        enabled: bool = True,
        owner_id: str | None = None,
        endpoint_id: str | None = None,
    ) -> EndpointRecord:
        record = EndpointRecord(
            id=endpoint_id or str(uuid4()),
            name=name,
            type=type,
            base_url=base_url,
            api_key=api_key,
            enabled=enabled,
            owner_id=owner_id,
        )
        with self._db.session() as session:
            session.add(record)
        return record

    def delete_endpoint(self, endpoint_id: str) -> bool:
        with self._db.session() as session:
            record = session.get(EndpointRecord, endpoint_id)
            if record is None:
                return False
            session.execute(
                delete(EndpointModelRecord).where(EndpointModelRecord.endpoint_id == endpoint_id)
            )
            session.delete(record)
        return True

    def set_model_enabled(
        self, endpoint_id: str, model_id: str, enabled: bool
    ) -> EndpointModelRecord | None:
        with self._db.session() as session:
            stmt = (
                select(EndpointModelRecord)
                .where(EndpointModelRecord.endpoint_id == endpoint_id)
                .where(EndpointModelRecord.model_id == model_id)
            )
            record = session.execute(stmt).scalar_one_or_none()
            if record is None:
                return None
            record.enabled = enabled
            return record


__all__ = ["EndpointStore", "NewModel"]
