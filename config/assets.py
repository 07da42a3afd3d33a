"""Per-asset risk configuration.

Each asset carries the origin date its logarithmic regression is anchored at,
the log10 deviation bounds used to map deviation onto the 0..1 risk scale, and
a static confidence baseline (1-9) reflecting how much history backs the fit.
"""
from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class DeviationBounds(BaseModel):
    model_config = ConfigDict(frozen=True)

    low: float
    high: float

    @model_validator(mode="after")
    def _symmetric(self) -> "DeviationBounds":
        if not (self.high > 0 and abs(self.low) == self.high):
            raise ValueError(f"deviation bounds must be symmetric around zero, got [{self.low}, {self.high}]")
        return self


class AssetRiskConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    asset_id: str            # symbol, e.g. "BTC"
    gecko_id: str            # CoinGecko id, e.g. "bitcoin"
    display_name: str
    origin_date: datetime
    deviation_bounds: DeviationBounds
    confidence_level: int = Field(ge=1, le=9)
    binance_symbol: Optional[str] = None


def _origin(year: int, month: int, day: int) -> datetime:
    return datetime(year, month, day, tzinfo=timezone.utc)


BTC = AssetRiskConfig(
    asset_id="BTC", gecko_id="bitcoin", display_name="Bitcoin",
    origin_date=_origin(2009, 1, 3),
    deviation_bounds=DeviationBounds(low=-0.8, high=0.8),
    confidence_level=9, binance_symbol="BTCUSDT",
)
ETH = AssetRiskConfig(
    asset_id="ETH", gecko_id="ethereum", display_name="Ethereum",
    origin_date=_origin(2015, 7, 30),
    deviation_bounds=DeviationBounds(low=-0.7, high=0.7),
    confidence_level=8, binance_symbol="ETHUSDT",
)
SOL = AssetRiskConfig(
    asset_id="SOL", gecko_id="solana", display_name="Solana",
    origin_date=_origin(2020, 4, 10),
    deviation_bounds=DeviationBounds(low=-0.6, high=0.6),
    confidence_level=6, binance_symbol="SOLUSDT",
)
BNB = AssetRiskConfig(
    asset_id="BNB", gecko_id="binancecoin", display_name="BNB",
    origin_date=_origin(2017, 7, 25),
    deviation_bounds=DeviationBounds(low=-0.65, high=0.65),
    confidence_level=7, binance_symbol="BNBUSDT",
)
UNI = AssetRiskConfig(
    asset_id="UNI", gecko_id="uniswap", display_name="Uniswap",
    origin_date=_origin(2020, 9, 17),
    deviation_bounds=DeviationBounds(low=-0.55, high=0.55),
    confidence_level=5, binance_symbol="UNIUSDT",
)
RENDER = AssetRiskConfig(
    asset_id="RENDER", gecko_id="render-token", display_name="Render",
    origin_date=_origin(2020, 6, 10),
    deviation_bounds=DeviationBounds(low=-0.55, high=0.55),
    confidence_level=5, binance_symbol="RENDERUSDT",
)
SUI = AssetRiskConfig(
    asset_id="SUI", gecko_id="sui", display_name="Sui",
    origin_date=_origin(2023, 5, 3),
    deviation_bounds=DeviationBounds(low=-0.50, high=0.50),
    confidence_level=4, binance_symbol="SUIUSDT",
)
ONDO = AssetRiskConfig(
    asset_id="ONDO", gecko_id="ondo-finance", display_name="Ondo",
    origin_date=_origin(2024, 1, 18),
    deviation_bounds=DeviationBounds(low=-0.45, high=0.45),
    confidence_level=3, binance_symbol="ONDOUSDT",
)

ALL_CONFIGS = [BTC, ETH, SOL, BNB, SUI, UNI, ONDO, RENDER]

BY_SYMBOL = {c.asset_id: c for c in ALL_CONFIGS}
BY_GECKO_ID = {c.gecko_id: c for c in ALL_CONFIGS}
COIN_GECKO_IDS = {c.asset_id: c.gecko_id for c in ALL_CONFIGS}

assert len(BY_SYMBOL) == len(ALL_CONFIGS), "Asset symbols must be unique"
assert len(BY_GECKO_ID) == len(ALL_CONFIGS), "Gecko ids must be unique"

DEFAULT_CONFIDENCE_LEVEL = 5


def for_coin(symbol: str) -> Optional[AssetRiskConfig]:
    return BY_SYMBOL.get(symbol.upper())


def for_gecko_id(gecko_id: str) -> Optional[AssetRiskConfig]:
    return BY_GECKO_ID.get(gecko_id.lower())


def resolve(identifier: str) -> Optional[AssetRiskConfig]:
    """Look up by symbol first, then by CoinGecko id."""
    return for_coin(identifier) or for_gecko_id(identifier)


def gecko_id_for(symbol: str) -> Optional[str]:
    config = for_coin(symbol)
    return config.gecko_id if config else None


def is_supported(symbol: str) -> bool:
    return symbol.upper() in BY_SYMBOL
