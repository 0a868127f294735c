"""
Price history analysis: trend classification, trending products and deals.
Callers pass history already ordered by observed_at.
"""

import math
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Sequence

from shopscan.schemas.trends import (
    DealEntry,
    DealMetrics,
    PriceHistoryEntry,
    PricedProduct,
    Trend,
    TrendDirection,
    TrendingProduct,
    TrendReport,
)

STABLE_THRESHOLD_PERCENT = 2.0


def _round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5)) if x >= 0 else -int(math.floor(-x + 0.5))


def _as_aware(dt: datetime) -> datetime:
    return dt if dt.tzinfo is not None else dt.replace(tzinfo=timezone.utc)


def window_entries(
    history: Sequence[PriceHistoryEntry],
    window_days: int,
    now: Optional[datetime] = None,
) -> List[PriceHistoryEntry]:
    now = _as_aware(now or datetime.now(timezone.utc))
    cutoff = now - timedelta(days=window_days)
    return [e for e in history if _as_aware(e.observed_at) >= cutoff]


def price_change_percentage(first: float, last: float) -> float:
    return (last - first) / first * 100


def calculate_price_trend(prices: Sequence[float]) -> Trend:
    if len(prices) < 2:
        return Trend.INSUFFICIENT_DATA

    change = price_change_percentage(prices[0], prices[-1])
    if abs(change) < STABLE_THRESHOLD_PERCENT:
        return Trend.STABLE
    return Trend.INCREASING if change > 0 else Trend.DECREASING


def analyze_trend(
    history: Sequence[PriceHistoryEntry],
    window_days: int = 30,
    now: Optional[datetime] = None,
) -> TrendReport:
    prices = [e.price for e in window_entries(history, window_days, now)]
    if not prices:
        return TrendReport(trend=Trend.INSUFFICIENT_DATA, points=0)

    change = price_change_percentage(prices[0], prices[-1]) if len(prices) >= 2 else None
    return TrendReport(
        trend=calculate_price_trend(prices),
        change_percentage=round(change, 2) if change is not None else None,
        lowest_price=min(prices),
        highest_price=max(prices),
        average_price=sum(prices) / len(prices),
        points=len(prices),
    )


def rank_trending(
    histories: Dict[str, Sequence[PriceHistoryEntry]],
    window_days: int = 7,
    direction: TrendDirection = TrendDirection.DECREASING,
    limit: int = 20,
    now: Optional[datetime] = None,
) -> List[TrendingProduct]:
    """
    First-to-last price delta per product over the window.
    DECREASING keeps drops, biggest first; INCREASING keeps rises, biggest first.
    Products with fewer than 2 points in the window are skipped.
    """
    ranked: List[TrendingProduct] = []
    for product_id, history in histories.items():
        prices = [e.price for e in window_entries(history, window_days, now)]
        if len(prices) < 2:
            continue
        first, last = prices[0], prices[-1]
        change = (last - first) / first
        ranked.append(
            TrendingProduct(
                product_id=product_id,
                first_price=first,
                last_price=last,
                price_change=change,
                price_change_percentage=_round_half_up(change * 100),
            )
        )

    if direction == TrendDirection.DECREASING:
        ranked = sorted((p for p in ranked if p.price_change < 0), key=lambda p: p.price_change)
    else:
        ranked = sorted((p for p in ranked if p.price_change > 0), key=lambda p: -p.price_change)
    return ranked[:limit]


def deal_metrics(current_price: float, original_price: float) -> DealMetrics:
    savings = original_price - current_price if original_price > 0 else 0.0
    pct = savings / original_price * 100 if original_price > 0 else 0.0
    return DealMetrics(
        current_price=current_price,
        original_price=original_price,
        savings_amount=round(savings, 2),
        savings_percentage=_round_half_up(pct),
    )


def find_deals(
    products: Sequence[PricedProduct],
    min_savings_percentage: float = 10,
    limit: int = 20,
) -> List[DealEntry]:
    """Products whose current price undercuts the original by at least min_savings_percentage."""
    deals = []
    for p in products:
        if not p.original_price or p.original_price <= 0:
            continue
        metrics = deal_metrics(p.current_price, p.original_price)
        exact_pct = metrics.savings_amount / p.original_price * 100
        if exact_pct >= min_savings_percentage:
            deals.append(DealEntry(product_id=p.product_id, metrics=metrics))

    deals.sort(key=lambda d: (-d.metrics.savings_amount / d.metrics.original_price, d.product_id))
    return deals[:limit]
