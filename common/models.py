"""Core Pydantic models for RISK PULSE."""
import json
from datetime import date as date_type, datetime, time, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

DAY_FORMAT = "%Y-%m-%d"


def as_utc(value: datetime | date_type) -> datetime:
    """Naive datetimes are read as UTC; plain dates become UTC midnight."""
    if not isinstance(value, datetime):
        return datetime.combine(value, time.min, tzinfo=timezone.utc)
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def day_string(value: datetime | date_type) -> str:
    """Calendar-day key (UTC) used for history identity and snapshot dedup."""
    return as_utc(value).strftime(DAY_FORMAT)


def parse_day_string(value: str) -> datetime:
    return datetime.strptime(value, DAY_FORMAT).replace(tzinfo=timezone.utc)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def risk_category(level: float) -> str:
    if level < 0.20: return "Very Low Risk"
    if level < 0.40: return "Low Risk"
    if level < 0.55: return "Neutral"
    if level < 0.70: return "Elevated Risk"
    if level < 0.90: return "High Risk"
    return "Extreme Risk"


# ── Price input ────────────────────────────────────────────────────────────────

class PricePoint(BaseModel):
    model_config = ConfigDict(frozen=True)

    date: datetime
    price: float


# ── Risk factors ───────────────────────────────────────────────────────────────

class RiskFactorType(str, Enum):
    LOG_REGRESSION = "Log Regression"
    RSI = "RSI"
    SMA_POSITION = "SMA Position"
    BULL_MARKET_BANDS = "Bull Market Bands"
    FUNDING_RATE = "Funding Rate"
    FEAR_GREED = "Fear & Greed"
    MACRO_RISK = "Macro Risk"

    @property
    def default_weight(self) -> float:
        return FACTOR_DEFAULT_WEIGHTS[self]

    @property
    def description(self) -> str:
        return FACTOR_DESCRIPTIONS[self]


FACTOR_DEFAULT_WEIGHTS = {
    RiskFactorType.LOG_REGRESSION:    0.35,
    RiskFactorType.RSI:               0.12,
    RiskFactorType.SMA_POSITION:      0.12,
    RiskFactorType.BULL_MARKET_BANDS: 0.11,
    RiskFactorType.FUNDING_RATE:      0.10,
    RiskFactorType.FEAR_GREED:        0.10,
    RiskFactorType.MACRO_RISK:        0.10,
}

assert abs(sum(FACTOR_DEFAULT_WEIGHTS.values()) - 1.0) < 0.001, "Weights must sum to 1.0"

FACTOR_DESCRIPTIONS = {
    RiskFactorType.LOG_REGRESSION:    "Fair value deviation based on logarithmic regression",
    RiskFactorType.RSI:               "Relative Strength Index (14-period)",
    RiskFactorType.SMA_POSITION:      "Price position relative to 200-day SMA",
    RiskFactorType.BULL_MARKET_BANDS: "Position relative to 20W SMA & 21W EMA support",
    RiskFactorType.FUNDING_RATE:      "Perpetual futures funding rate sentiment",
    RiskFactorType.FEAR_GREED:        "Crypto Fear & Greed Index",
    RiskFactorType.MACRO_RISK:        "Macro indicators (VIX + DXY average)",
}

# RiskFactorWeights attribute holding each factor's weight
FACTOR_WEIGHT_FIELDS = {
    RiskFactorType.LOG_REGRESSION:    "log_regression",
    RiskFactorType.RSI:               "rsi",
    RiskFactorType.SMA_POSITION:      "sma_position",
    RiskFactorType.BULL_MARKET_BANDS: "bull_market_bands",
    RiskFactorType.FUNDING_RATE:      "funding_rate",
    RiskFactorType.FEAR_GREED:        "fear_greed",
    RiskFactorType.MACRO_RISK:        "macro_risk",
}


class RiskFactor(BaseModel):
    """One indicator's contribution; unavailable factors keep a weight but no values."""
    model_config = ConfigDict(frozen=True)

    type: RiskFactorType
    raw_value: Optional[float] = None
    normalized_value: Optional[float] = None  # 0.0 - 1.0, 1.0 = highest risk
    weight: float

    @classmethod
    def unavailable(cls, factor_type: RiskFactorType, weight: float) -> "RiskFactor":
        return cls(type=factor_type, raw_value=None, normalized_value=None, weight=weight)

    @property
    def id(self) -> str:
        return self.type.value

    @property
    def is_available(self) -> bool:
        return self.normalized_value is not None

    @property
    def weighted_contribution(self) -> Optional[float]:
        if self.normalized_value is None:
            return None
        return self.normalized_value * self.weight

    @property
    def raw_value_display(self) -> str:
        raw = self.raw_value
        if raw is None:
            return "N/A"
        if self.type is RiskFactorType.LOG_REGRESSION: return f"{raw:.2f}"
        if self.type is RiskFactorType.RSI:            return f"{raw:.1f}"
        if self.type is RiskFactorType.SMA_POSITION:
            return "Below 200 SMA" if raw > 0.5 else "Above 200 SMA"
        if self.type is RiskFactorType.BULL_MARKET_BANDS: return f"{raw:+.1f}%"
        if self.type is RiskFactorType.FUNDING_RATE:   return f"{raw * 100:.4f}%"
        if self.type is RiskFactorType.FEAR_GREED:     return f"{raw:.0f}"
        return f"{raw:.1f}"

    @property
    def normalized_value_display(self) -> str:
        if self.normalized_value is None:
            return "N/A"
        return f"{self.normalized_value * 100:.0f}%"


class RiskFactorWeights(BaseModel):
    model_config = ConfigDict(frozen=True)

    log_regression: float
    rsi: float
    sma_position: float
    bull_market_bands: float
    funding_rate: float
    fear_greed: float
    macro_risk: float

    def weight_for(self, factor_type: RiskFactorType) -> float:
        return getattr(self, FACTOR_WEIGHT_FIELDS[factor_type])

    @property
    def total(self) -> float:
        return sum(self.weight_for(t) for t in RiskFactorType)

    @property
    def is_valid(self) -> bool:
        return abs(self.total - 1.0) < 0.001


DEFAULT_WEIGHTS = RiskFactorWeights(
    log_regression=0.35, rsi=0.12, sma_position=0.12, bull_market_bands=0.11,
    funding_rate=0.10, fear_greed=0.10, macro_risk=0.10,
)

# More emphasis on regression
CONSERVATIVE_WEIGHTS = RiskFactorWeights(
    log_regression=0.50, rsi=0.10, sma_position=0.10, bull_market_bands=0.10,
    funding_rate=0.08, fear_greed=0.06, macro_risk=0.06,
)

SENTIMENT_FOCUSED_WEIGHTS = RiskFactorWeights(
    log_regression=0.25, rsi=0.12, sma_position=0.12, bull_market_bands=0.11,
    funding_rate=0.15, fear_greed=0.15, macro_risk=0.10,
)

WEIGHT_PRESETS = {
    "default":           DEFAULT_WEIGHTS,
    "conservative":      CONSERVATIVE_WEIGHTS,
    "sentiment_focused": SENTIMENT_FOCUSED_WEIGHTS,
}


def weights_for_preset(name: str) -> RiskFactorWeights:
    try:
        return WEIGHT_PRESETS[name.lower()]
    except KeyError:
        raise ValueError(f"Unknown weight preset '{name}', expected one of {sorted(WEIGHT_PRESETS)}")


# ── Supplementary indicator inputs ─────────────────────────────────────────────

class BandPosition(str, Enum):
    ABOVE_BOTH = "Above Support"
    IN_BAND = "Testing Support"
    BELOW_BOTH = "Below Support"


class BullMarketSupportBands(BaseModel):
    """20-week SMA and 21-week EMA used as support during bull markets."""
    model_config = ConfigDict(frozen=True)

    sma_20_week: float
    ema_21_week: float
    current_price: float

    @property
    def position(self) -> BandPosition:
        above_sma = self.current_price > self.sma_20_week
        above_ema = self.current_price > self.ema_21_week
        if above_sma and above_ema:
            return BandPosition.ABOVE_BOTH
        if not above_sma and not above_ema:
            return BandPosition.BELOW_BOTH
        return BandPosition.IN_BAND

    @property
    def percent_from_sma(self) -> float:
        if self.sma_20_week == 0:
            return 0.0
        return (self.current_price - self.sma_20_week) / self.sma_20_week * 100

    @property
    def percent_from_ema(self) -> float:
        if self.ema_21_week == 0:
            return 0.0
        return (self.current_price - self.ema_21_week) / self.ema_21_week * 100


class RiskFactorData(BaseModel):
    """Supplementary indicator values for one scoring pass; any of them may be missing."""
    rsi: Optional[float] = None
    sma200: Optional[float] = None
    current_price: Optional[float] = None
    bull_market_bands: Optional[BullMarketSupportBands] = None
    funding_rate: Optional[float] = None     # decimal, 0.0001 = 0.01%
    fear_greed_value: Optional[float] = None
    vix_value: Optional[float] = None
    dxy_value: Optional[float] = None
    fetched_at: datetime = Field(default_factory=utc_now)

    @classmethod
    def empty(cls) -> "RiskFactorData":
        return cls()

    @property
    def available_count(self) -> int:
        values = [self.rsi, self.sma200, self.funding_rate, self.fear_greed_value,
                  self.vix_value, self.dxy_value, self.bull_market_bands]
        return sum(v is not None for v in values)

    @property
    def has_any_data(self) -> bool:
        return self.available_count > 0


# ── Risk points ────────────────────────────────────────────────────────────────

class RiskHistoryPoint(BaseModel):
    """Persisted per-day risk record; date_string is the identity."""
    model_config = ConfigDict(frozen=True)

    date_string: str
    date: datetime
    risk_level: float
    price: float
    fair_value: float
    deviation: float

    @classmethod
    def at(cls, date: datetime, risk_level: float, price: float,
           fair_value: float, deviation: float) -> "RiskHistoryPoint":
        return cls(date_string=day_string(date), date=as_utc(date), risk_level=risk_level,
                   price=price, fair_value=fair_value, deviation=deviation)

    @property
    def id(self) -> str:
        return self.date_string

    @property
    def risk_category(self) -> str:
        return risk_category(self.risk_level)

    @property
    def is_overvalued(self) -> bool:
        return self.deviation > 0

    @property
    def deviation_percentage(self) -> float:
        if self.fair_value <= 0:
            return 0.0
        return (self.price - self.fair_value) / self.fair_value * 100

    def to_json_dict(self) -> dict:
        return {
            "date": self.date_string,
            "risk_level": self.risk_level,
            "price": self.price,
            "fair_value": self.fair_value,
            "deviation": self.deviation,
        }

    @classmethod
    def from_json_dict(cls, data: dict) -> "RiskHistoryPoint":
        return cls(
            date_string=data["date"],
            date=parse_day_string(data["date"]),
            risk_level=data["risk_level"],
            price=data["price"],
            fair_value=data["fair_value"],
            deviation=data["deviation"],
        )

    def to_json(self) -> str:
        return json.dumps(self.to_json_dict())

    @classmethod
    def from_json(cls, payload: str) -> "RiskHistoryPoint":
        return cls.from_json_dict(json.loads(payload))


class MultiFactorRiskPoint(BaseModel):
    model_config = ConfigDict(frozen=True)

    date_string: str
    date: datetime
    risk_level: float
    price: float
    fair_value: float
    deviation: float
    factors: list[RiskFactor]
    weights: RiskFactorWeights = DEFAULT_WEIGHTS

    @classmethod
    def at(cls, date: datetime, risk_level: float, price: float, fair_value: float,
           deviation: float, factors: list[RiskFactor],
           weights: RiskFactorWeights = DEFAULT_WEIGHTS) -> "MultiFactorRiskPoint":
        return cls(date_string=day_string(date), date=as_utc(date), risk_level=risk_level,
                   price=price, fair_value=fair_value, deviation=deviation,
                   factors=factors, weights=weights)

    @property
    def id(self) -> str:
        return self.date_string

    @property
    def available_factor_count(self) -> int:
        return sum(f.is_available for f in self.factors)

    @property
    def available_weight(self) -> float:
        return sum(f.weight for f in self.factors if f.is_available)

    @property
    def risk_category(self) -> str:
        return risk_category(self.risk_level)

    @property
    def has_supplementary_factors(self) -> bool:
        return any(f.is_available for f in self.factors
                   if f.type is not RiskFactorType.LOG_REGRESSION)

    def factor_for(self, factor_type: RiskFactorType) -> Optional[RiskFactor]:
        return next((f for f in self.factors if f.type is factor_type), None)

    def to_risk_history_point(self) -> RiskHistoryPoint:
        return RiskHistoryPoint(
            date_string=self.date_string,
            date=self.date,
            risk_level=self.risk_level,
            price=self.price,
            fair_value=self.fair_value,
            deviation=self.deviation,
        )


# ── Confidence tracking ────────────────────────────────────────────────────────

class RSquaredSnapshot(BaseModel):
    date: datetime
    r_squared: float
    data_point_count: int


class PredictionSnapshot(BaseModel):
    asset_id: str
    snapshot_date: datetime
    risk_level: float
    risk_category: str
    price_at_snapshot: float

    # Filled in as the 30/60/90-day horizons pass
    price_at_30_days: Optional[float] = None
    price_at_60_days: Optional[float] = None
    price_at_90_days: Optional[float] = None
    is_correct_30_day: Optional[bool] = None
    is_correct_60_day: Optional[bool] = None
    is_correct_90_day: Optional[bool] = None
    validated_at: Optional[datetime] = None

    @property
    def id(self) -> str:
        return f"{self.asset_id}_{int(self.snapshot_date.timestamp())}"

    @property
    def is_graded(self) -> bool:
        return self.is_correct_30_day is not None


class ConfidenceMetrics(BaseModel):
    """Per-asset record owned by the confidence tracker."""
    asset_id: str
    r_squared_history: list[RSquaredSnapshot] = Field(default_factory=list)
    prediction_snapshots: list[PredictionSnapshot] = Field(default_factory=list)
    last_updated: datetime = Field(default_factory=utc_now)


class AdaptiveConfidenceResult(BaseModel):
    asset_id: str
    static_confidence: int
    adaptive_confidence: int
    r_squared: Optional[float] = None
    data_point_count: int = 0
    prediction_accuracy: Optional[float] = None
    validated_prediction_count: int = 0
    total_prediction_count: int = 0
    r_squared_bonus: float = 0.0
    data_point_bonus: float = 0.0
    accuracy_bonus: float = 0.0
    last_updated: datetime = Field(default_factory=utc_now)
