"""Normalization of persisted open positions."""
from __future__ import annotations

import logging
import math
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional

from .models import OpenPosition, OpenPositions, PositionRecord

logger = logging.getLogger(__name__)


def _finite(value: object) -> float:
    try:
        number = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return 0.0
    return number if math.isfinite(number) else 0.0


def normalize_open_position(
    record: PositionRecord, now: Optional[datetime] = None
) -> Optional[OpenPosition]:
    """Return a closable position, or ``None`` when the record is unusable.

    Records with a non-positive amount, open value or open price are
    dropped. Negative fees are floored at zero and a missing open time falls
    back to the creation time, then to ``now``.
    """

    amount = _finite(record.amount)
    open_value = _finite(record.open_value)
    open_price = _finite(record.open_price)
    if amount <= 0 or open_value <= 0 or open_price <= 0:
        logger.debug("Dropping corrupt open position %s", record.id)
        return None
    opened_at = record.opened_at or record.created_at or now or datetime.now(timezone.utc)
    return OpenPosition(
        id=record.id,
        amount=amount,
        open_value=open_value,
        open_price=open_price,
        open_fee=max(0.0, _finite(record.open_fee)),
        opened_at=opened_at,
    )


def opened_timestamp(position: OpenPosition) -> float:
    opened_at = position.opened_at
    if opened_at.tzinfo is None:
        opened_at = opened_at.replace(tzinfo=timezone.utc)
    return opened_at.timestamp()


def group_open_positions(
    records: Iterable[PositionRecord], now: Optional[datetime] = None
) -> Dict[str, OpenPositions]:
    """Group open records per asset into longs and shorts, oldest first."""

    longs: Dict[str, List[OpenPosition]] = {}
    shorts: Dict[str, List[OpenPosition]] = {}
    for record in records:
        if record.status.lower() != "open":
            continue
        position = normalize_open_position(record, now)
        if position is None:
            continue
        side = record.side.lower()
        if side == "long":
            longs.setdefault(record.asset_id, []).append(position)
        elif side == "short":
            shorts.setdefault(record.asset_id, []).append(position)

    grouped: Dict[str, OpenPositions] = {}
    for asset_id in set(longs) | set(shorts):
        grouped[asset_id] = OpenPositions(
            longs=tuple(sorted(longs.get(asset_id, []), key=opened_timestamp)),
            shorts=tuple(sorted(shorts.get(asset_id, []), key=opened_timestamp)),
        )
    return grouped


__all__ = ["group_open_positions", "normalize_open_position", "opened_timestamp"]
