"""Database storage layer.

Backend is selected at startup via the DATABASE_URL environment variable:
  - DATABASE_URL=none (or unset) → files under DATA_DIR (default / fallback)
      confidence/<ASSET>_confidence.json   one ConfidenceMetrics record per asset
      risk_history/<ASSET>.csv             one row per calendar day
  - DATABASE_URL=postgresql://... → PostgreSQL via SQLAlchemy async + asyncpg

All public functions are async; file I/O runs in a worker thread.
"""
import asyncio
import json
from datetime import timedelta
from pathlib import Path
from typing import Optional

import pandas as pd
from pydantic import ValidationError

from common.logger import get_logger
from common.models import ConfidenceMetrics, RiskHistoryPoint, utc_now
from config.settings import DATA_DIR, DATABASE_URL

logger = get_logger("database")

HISTORY_COLUMNS = ["date", "risk_level", "price", "fair_value", "deviation"]

# ── Backend detection ──────────────────────────────────────────────────────────
USE_POSTGRES: bool = DATABASE_URL.lower() not in ("none", "", "null")

# PostgreSQL objects — populated only when USE_POSTGRES is True
_engine = None
_SessionFactory = None

if USE_POSTGRES:
    from sqlalchemy import select
    from sqlalchemy.dialects.postgresql import insert as pg_insert
    from sqlalchemy.ext.asyncio import (
        async_sessionmaker,
        create_async_engine,
    )
    from storage.models import Base, ConfidenceMetricsDB, RiskHistoryDB

    # Normalise URL scheme for asyncpg driver
    _db_url = DATABASE_URL
    if _db_url.startswith("postgres://"):
        _db_url = "postgresql+asyncpg://" + _db_url[len("postgres://"):]
    elif _db_url.startswith("postgresql://") and "+asyncpg" not in _db_url:
        _db_url = _db_url.replace("postgresql://", "postgresql+asyncpg://", 1)

    _engine = create_async_engine(
        _db_url,
        echo=False,
        pool_pre_ping=True,
        pool_size=5,
        max_overflow=10,
    )
    _SessionFactory = async_sessionmaker(_engine, expire_on_commit=False)
    logger.info(f"[PG] Backend: {_db_url.split('@')[-1]}")
else:
    logger.info("[FILE] Backend: %s", DATA_DIR)


# ── File helpers (sync; run via asyncio.to_thread) ────────────────────────────

def _metrics_path(asset_id: str, data_dir: Path) -> Path:
    return data_dir / "confidence" / f"{asset_id.upper()}_confidence.json"


def _history_path(asset_id: str, data_dir: Path) -> Path:
    return data_dir / "risk_history" / f"{asset_id.upper()}.csv"


def _file_save_metrics(metrics: ConfidenceMetrics, data_dir: Path) -> None:
    path = _metrics_path(metrics.asset_id, data_dir)
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(".json.tmp")
    tmp.write_text(metrics.model_dump_json(), encoding="utf-8")
    tmp.replace(path)


def _file_load_metrics(asset_id: str, data_dir: Path) -> Optional[ConfidenceMetrics]:
    """Corrupt files are removed so the asset starts over from its baseline."""
    path = _metrics_path(asset_id, data_dir)
    if not path.exists():
        return None
    try:
        return ConfidenceMetrics.model_validate_json(path.read_text(encoding="utf-8"))
    except (ValidationError, ValueError) as e:
        logger.warning(f"[FILE] Discarding corrupt metrics for {asset_id}: {e}")
        path.unlink(missing_ok=True)
        return None


def _csv_save_risk_history(asset_id: str, points: list[RiskHistoryPoint], data_dir: Path) -> None:
    df = pd.DataFrame([p.to_json_dict() for p in points], columns=HISTORY_COLUMNS)
    path = _history_path(asset_id, data_dir)
    path.parent.mkdir(parents=True, exist_ok=True)
    if path.exists():
        existing = pd.read_csv(path, dtype={"date": str})
        df = pd.concat([existing, df], ignore_index=True)
    df = df.drop_duplicates(subset="date", keep="last").sort_values("date")
    df.to_csv(path, index=False)
    logger.info("[FILE] Saved %d risk points for %s → %s", len(points), asset_id.upper(), path)


def _csv_load_risk_history(asset_id: str, days: Optional[int], data_dir: Path) -> pd.DataFrame:
    path = _history_path(asset_id, data_dir)
    if not path.exists():
        return pd.DataFrame(columns=HISTORY_COLUMNS)
    df = pd.read_csv(path, dtype={"date": str})
    if days is not None:
        cutoff = (utc_now() - timedelta(days=days)).strftime("%Y-%m-%d")
        df = df[df["date"] >= cutoff]
    return df.sort_values("date").reset_index(drop=True)


def history_points(df: pd.DataFrame) -> list[RiskHistoryPoint]:
    """Convert a risk-history frame back into RiskHistoryPoint objects."""
    return [RiskHistoryPoint.from_json_dict(row) for row in df[HISTORY_COLUMNS].to_dict("records")]


# ── PostgreSQL helpers (async) ─────────────────────────────────────────────────

async def _pg_save_metrics(metrics: ConfidenceMetrics) -> None:
    payload = json.loads(metrics.model_dump_json())
    async with _SessionFactory() as session:
        async with session.begin():
            stmt = (
                pg_insert(ConfidenceMetricsDB)
                .values(asset_id=metrics.asset_id, payload=payload)
                .on_conflict_do_update(
                    index_elements=["asset_id"],
                    set_={"payload": payload, "updated_at": metrics.last_updated},
                )
            )
            await session.execute(stmt)


async def _pg_load_metrics(asset_id: str) -> Optional[ConfidenceMetrics]:
    async with _SessionFactory() as session:
        row = await session.get(ConfidenceMetricsDB, asset_id)
    if row is None:
        return None
    try:
        return ConfidenceMetrics.model_validate(row.payload)
    except ValidationError as e:
        logger.warning(f"[PG] Discarding corrupt metrics for {asset_id}: {e}")
        return None


async def _pg_save_risk_history(asset_id: str, points: list[RiskHistoryPoint]) -> None:
    async with _SessionFactory() as session:
        async with session.begin():
            for p in points:
                stmt = (
                    pg_insert(RiskHistoryDB)
                    .values(
                        asset_id=asset_id.upper(),
                        date=p.date.date(),
                        risk_level=p.risk_level,
                        price=p.price,
                        fair_value=p.fair_value,
                        deviation=p.deviation,
                    )
                    .on_conflict_do_update(
                        index_elements=["asset_id", "date"],
                        set_={
                            "risk_level": p.risk_level,
                            "price": p.price,
                            "fair_value": p.fair_value,
                            "deviation": p.deviation,
                        },
                    )
                )
                await session.execute(stmt)
    logger.info("[PG] Saved %d risk points for %s", len(points), asset_id.upper())


async def _pg_load_risk_history(asset_id: str, days: Optional[int]) -> pd.DataFrame:
    async with _SessionFactory() as session:
        stmt = select(RiskHistoryDB).where(RiskHistoryDB.asset_id == asset_id.upper())
        if days is not None:
            stmt = stmt.where(RiskHistoryDB.date >= (utc_now() - timedelta(days=days)).date())
        rows = (await session.execute(stmt.order_by(RiskHistoryDB.date))).scalars().all()
    if not rows:
        return pd.DataFrame(columns=HISTORY_COLUMNS)
    return pd.DataFrame([{
        "date": r.date.strftime("%Y-%m-%d"),
        "risk_level": r.risk_level,
        "price": r.price,
        "fair_value": r.fair_value,
        "deviation": r.deviation,
    } for r in rows])


# ── Public async API ───────────────────────────────────────────────────────────

async def load_metrics(asset_id: str) -> Optional[ConfidenceMetrics]:
    """Return the stored confidence record for *asset_id*, or None if absent or unreadable."""
    if USE_POSTGRES:
        return await _pg_load_metrics(asset_id)
    return await asyncio.to_thread(_file_load_metrics, asset_id, DATA_DIR)


async def save_metrics(metrics: ConfidenceMetrics) -> None:
    if USE_POSTGRES:
        await _pg_save_metrics(metrics)
    else:
        await asyncio.to_thread(_file_save_metrics, metrics, DATA_DIR)


async def save_risk_history(asset_id: str, points: list[RiskHistoryPoint]) -> None:
    """Persist risk points; a day already stored is overwritten by the newer point."""
    if not points:
        return
    if USE_POSTGRES:
        await _pg_save_risk_history(asset_id, points)
    else:
        await asyncio.to_thread(_csv_save_risk_history, asset_id, points, DATA_DIR)


async def load_risk_history(asset_id: str, days: Optional[int] = None) -> pd.DataFrame:
    """Return risk history for *asset_id* sorted by date, optionally limited to the last *days* days."""
    if USE_POSTGRES:
        return await _pg_load_risk_history(asset_id, days)
    return await asyncio.to_thread(_csv_load_risk_history, asset_id, days, DATA_DIR)


async def init_db() -> None:
    """Create all tables (idempotent). Prefer Alembic for production migrations."""
    if not USE_POSTGRES:
        return
    async with _engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("[PG] Tables ensured")
