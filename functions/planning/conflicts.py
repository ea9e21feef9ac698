"""
Detect days where two trades that cannot share the site are scheduled.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from itertools import combinations
from typing import Iterable

from planning.business_days import business_days_in_span
from planning.catalog import CONFLICT_IGNORED_TRADES, can_work_in_parallel
from planning.schedule import ScheduleItem


@dataclass(frozen=True)
class TradeConflict:
    date: date
    trades: tuple[str, ...]


def find_trade_conflicts(items: Iterable[ScheduleItem]) -> list[TradeConflict]:
    trades_by_day: dict[date, list[str]] = {}
    for item in items:
        if item.is_completed or not item.start_date or not item.end_date:
            continue
        if item.trade_type in CONFLICT_IGNORED_TRADES:
            continue
        for day in business_days_in_span(item.start_date, item.end_date):
            trades = trades_by_day.setdefault(day, [])
            if item.trade_type not in trades:
                trades.append(item.trade_type)

    conflicts = []
    for day in sorted(trades_by_day):
        trades = trades_by_day[day]
        if any(not can_work_in_parallel(a, b) for a, b in combinations(trades, 2)):
            conflicts.append(TradeConflict(date=day, trades=tuple(trades)))
    return conflicts
