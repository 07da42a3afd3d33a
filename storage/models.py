"""SQLAlchemy ORM models for the PostgreSQL backend."""
from sqlalchemy import (
    BigInteger, Column, Date, Float, Index,
    String, TIMESTAMP, UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.sql import func


class Base(DeclarativeBase):
    pass


class ConfidenceMetricsDB(Base):
    """One row per asset; payload is the serialized ConfidenceMetrics record."""
    __tablename__ = "confidence_metrics"

    asset_id = Column(String(20), primary_key=True)
    payload = Column(JSONB, nullable=False)
    updated_at = Column(
        TIMESTAMP(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )


class RiskHistoryDB(Base):
    __tablename__ = "risk_history"

    id = Column(BigInteger, primary_key=True, autoincrement=True)
    asset_id = Column(String(20), nullable=False)
    date = Column(Date, nullable=False)
    risk_level = Column(Float, nullable=False)
    price = Column(Float, nullable=False)
    fair_value = Column(Float, nullable=False)
    deviation = Column(Float, nullable=False)
    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())

    __table_args__ = (
        UniqueConstraint("asset_id", "date", name="uq_risk_history_asset_date"),
        Index("idx_risk_history_asset_date", "asset_id", "date"),
    )
