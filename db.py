from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any
from uuid import uuid4

from sqlmodel import Field, Session, SQLModel, create_engine, select


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


def _run_sort_key(run: dict[str, Any]) -> tuple[Any, Any]:
    metrics = run.get("metrics", {})
    return (metrics.get("elapsed_seconds", float("inf")), metrics.get("moves", float("inf")))


def _matches_size(run: dict[str, Any], width: int | None, height: int | None) -> bool:
    if width is not None and run.get("width") != width:
        return False
    if height is not None and run.get("height") != height:
        return False
    return True


@dataclass
class RunRecord:
    """One completed trip from start to exit. The maze itself is never stored."""

    id: str
    player: str
    width: int
    height: int
    metrics: dict[str, Any]
    created_at: str


class JsonRunRepository:
    def __init__(self, path: str | Path, schema_version: int = 1):
        self.path = Path(path)
        self.schema_version = schema_version
        self._ensure_store()

    def _empty_doc(self) -> dict[str, Any]:
        return {"schema_version": self.schema_version, "runs": {}}

    def _ensure_store(self) -> None:
        if self.path.exists():
            return
        self._write_doc(self._empty_doc())

    def _read_doc(self) -> dict[str, Any]:
        if not self.path.exists():
            return self._empty_doc()
        raw = self.path.read_text(encoding="utf-8").strip()
        if not raw:
            return self._empty_doc()
        doc = json.loads(raw)
        doc.setdefault("schema_version", self.schema_version)
        doc.setdefault("runs", {})
        return doc

    def _write_doc(self, doc: dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp_path.write_text(json.dumps(doc, indent=2, sort_keys=True), encoding="utf-8")
        tmp_path.replace(self.path)

    def record_run(self, player: str, width: int, height: int, metrics: dict[str, Any]) -> dict[str, Any]:
        doc = self._read_doc()
        record = asdict(
            RunRecord(
                id=str(uuid4()),
                player=player,
                width=width,
                height=height,
                metrics=metrics,
                created_at=_utc_now_iso(),
            )
        )
        doc["runs"][record["id"]] = record
        doc["schema_version"] = self.schema_version
        self._write_doc(doc)
        return record

    def get_run(self, run_id: str) -> dict[str, Any] | None:
        return self._read_doc()["runs"].get(run_id)

    def top_runs(self, width: int | None = None, height: int | None = None, limit: int = 10) -> list[dict[str, Any]]:
        items = [r for r in self._read_doc()["runs"].values() if _matches_size(r, width, height)]
        items.sort(key=_run_sort_key)
        return items[:limit]

    def close(self) -> None:
        pass


# ---------------------------------------------------------------------------
# SQLModel table for SqliteRunRepository
# ---------------------------------------------------------------------------


class RunModel(SQLModel, table=True):
    __tablename__ = "runs"
    id: str = Field(primary_key=True)
    player: str = Field(index=True)
    width: int
    height: int
    metrics_json: str = Field(sa_column_kwargs={"name": "metrics"})
    created_at: str


def _row_to_dict(row: RunModel) -> dict[str, Any]:
    metrics = json.loads(row.metrics_json) if isinstance(row.metrics_json, str) else row.metrics_json
    return {
        "id": row.id,
        "player": row.player,
        "width": row.width,
        "height": row.height,
        "metrics": metrics,
        "created_at": row.created_at,
    }


class SqliteRunRepository:
    """SQLite-backed run history using SQLModel. Same interface as JsonRunRepository."""

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.engine = create_engine(f"sqlite:///{self.path}", connect_args={"check_same_thread": False})
        SQLModel.metadata.create_all(self.engine)

    def record_run(self, player: str, width: int, height: int, metrics: dict[str, Any]) -> dict[str, Any]:
        row = RunModel(
            id=str(uuid4()),
            player=player,
            width=width,
            height=height,
            metrics_json=json.dumps(metrics),
            created_at=_utc_now_iso(),
        )
        with Session(self.engine) as session:
            session.add(row)
            session.commit()
            session.refresh(row)
            return _row_to_dict(row)

    def get_run(self, run_id: str) -> dict[str, Any] | None:
        with Session(self.engine) as session:
            row = session.get(RunModel, run_id)
            if row is None:
                return None
            return _row_to_dict(row)

    def top_runs(self, width: int | None = None, height: int | None = None, limit: int = 10) -> list[dict[str, Any]]:
        with Session(self.engine) as session:
            stmt = select(RunModel)
            if width is not None:
                stmt = stmt.where(RunModel.width == width)
            if height is not None:
                stmt = stmt.where(RunModel.height == height)
            items = [_row_to_dict(row) for row in session.exec(stmt).all()]
        # Metrics live in a JSON column, so ordering happens here.
        items.sort(key=_run_sort_key)
        return items[:limit]

    def close(self) -> None:
        self.engine.dispose()


def open_repo(path: str | Path):
    """Return SqliteRunRepository for .db paths, JsonRunRepository otherwise."""
    path = Path(path)
    if path.suffix == ".db":
        return SqliteRunRepository(path)
    return JsonRunRepository(path)
