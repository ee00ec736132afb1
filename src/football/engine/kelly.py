"""
Fractional Kelly stake sizing from real market prices.

Only a genuine over price from the market input is used. Without one the
result says so explicitly and carries no stake; a price is never invented.
"""

from dataclasses import dataclass
from typing import Optional

from config.settings import KellySettings, settings
from src.football.models.schemas import MarketStateInput


@dataclass(frozen=True)
class RealOdds:
    """A usable over price and where it came from."""
    odds: float
    source: str  # "live" or "prematch"
    line: str
    bookmaker: str = ""

    def __str__(self) -> str:
        return f"{self.line} @{self.odds:.2f}"


@dataclass(frozen=True)
class KellyResult:
    kelly_fraction: Optional[float]
    bet_suggestion: Optional[float]  # percent of bankroll
    has_real_odds: bool
    odds_info: Optional[RealOdds] = None


def extract_real_odds(
    market: Optional[MarketStateInput],
    config: Optional[KellySettings] = None,
) -> Optional[RealOdds]:
    """Primary over/under over price, or None when there is no usable price."""
    cfg = config or settings.kelly
    if market is None or not market.over_odds or market.over_odds <= cfg.min_valid_odds:
        return None

    line = market.line_or_default
    return RealOdds(
        odds=market.over_odds,
        source="live" if market.is_live else "prematch",
        line=f"Over {line}",
        bookmaker=market.bookmaker,
    )


def calculate_kelly(
    probability: float,
    market: Optional[MarketStateInput],
    config: Optional[KellySettings] = None,
) -> KellyResult:
    """
    Kelly fraction and stake suggestion for a 0-100 win probability.

    p = probability / 100 * conservative_factor, q = 1 - p, b = odds - 1,
    kelly = max(0, (b*p - q) / b). The stake is kelly * 100 * position
    fraction, floored at min_stake_pct and capped at max_stake_pct. A zero
    Kelly fraction yields no stake.
    """
    cfg = config or settings.kelly
    odds_info = extract_real_odds(market, cfg)
    if odds_info is None:
        return KellyResult(kelly_fraction=None, bet_suggestion=None, has_real_odds=False)

    p = max(0.0, min(1.0, probability / 100)) * cfg.conservative_factor
    q = 1 - p
    b = odds_info.odds - 1

    raw_kelly = (b * p - q) / b
    kelly_fraction = max(0.0, round(raw_kelly, 2))

    bet_suggestion = None
    if kelly_fraction > 0:
        suggestion = round(kelly_fraction * 100 * cfg.position_fraction, 1)
        if suggestion > 0:
            bet_suggestion = min(cfg.max_stake_pct, max(cfg.min_stake_pct, suggestion))

    return KellyResult(
        kelly_fraction=kelly_fraction,
        bet_suggestion=bet_suggestion,
        has_real_odds=True,
        odds_info=odds_info,
    )


def format_odds_display(odds_info: Optional[RealOdds]) -> str:
    if odds_info is None:
        return "no live odds"
    return str(odds_info)
