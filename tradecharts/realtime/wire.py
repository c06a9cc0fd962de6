"""
Wire format for broadcast messages.

Every outbound message is a JSON object with a ``type`` field. Price updates
carry the tick plus the full analysis:

    {"type": "price_update", "symbol": "BTC", "price": 64012.5,
     "volume": 1234.0, "timestamp": 1717000000000, "analysis": {...}}

NaN and infinity are rejected rather than written as non-standard JSON. If
the analysis cannot be encoded the update is still sent, with a minimal
error object in place of the analysis.
"""

import json
import logging
import time
from typing import Any

from tradecharts.entities import AnalysisResult, PricePoint
from tradecharts.errors import SerializationError

logger = logging.getLogger(__name__)

PRICE_UPDATE = "price_update"
ANALYSIS_UNAVAILABLE = {"error": "Analysis temporarily unavailable"}


def now_ms() -> int:
    return int(time.time() * 1000)


def dumps(payload: dict[str, Any]) -> str:
    """Strict JSON encoding.

    Raises:
        SerializationError: On non-finite floats or unserializable values.
    """
    try:
        return json.dumps(payload, allow_nan=False, separators=(",", ":"))
    except (TypeError, ValueError) as exc:
        raise SerializationError(str(exc)) from exc


def encode_price_update(point: PricePoint, result: AnalysisResult | None) -> str:
    """Encode a price update with its analysis.

    Raises:
        SerializationError: If any part of the message cannot be encoded.
    """
    analysis = result.to_dict() if result is not None else ANALYSIS_UNAVAILABLE
    return dumps(_price_update(point, analysis))


def build_message(point: PricePoint, result: AnalysisResult | None) -> str:
    """Encode a price update, substituting the fallback analysis on failure."""
    try:
        return encode_price_update(point, result)
    except SerializationError as exc:
        logger.warning("Falling back to minimal update for %s: %s", point.symbol, exc.reason)
        return dumps(_price_update(point, ANALYSIS_UNAVAILABLE))


def decode_analysis(message: str | dict[str, Any]) -> AnalysisResult:
    """Rebuild an AnalysisResult from a price update (or a bare analysis object).

    Raises:
        SerializationError: If the message is not valid JSON or carries no analysis.
    """
    if isinstance(message, str):
        try:
            message = json.loads(message)
        except json.JSONDecodeError as exc:
            raise SerializationError(f"invalid JSON: {exc}") from exc
    if not isinstance(message, dict):
        raise SerializationError("expected a JSON object")

    data = message.get("analysis", message) if message.get("type") == PRICE_UPDATE else message
    if not isinstance(data, dict) or "error" in data:
        raise SerializationError("message carries no analysis")
    try:
        return AnalysisResult.from_dict(data)
    except (KeyError, TypeError, ValueError) as exc:
        raise SerializationError(f"malformed analysis: {exc}") from exc


def welcome(subscriber_id: str, active: int) -> str:
    return dumps({
        "type": "welcome",
        "message": "Connected to AI Trading Data",
        "subscriberId": subscriber_id,
        "activeClients": active,
        "timestamp": now_ms(),
    })


def control(event: str, **fields: Any) -> str:
    """Reply to a client command: subscribed, pong, analysis, ..."""
    return dumps({"type": event, **fields, "timestamp": now_ms()})


def error(message: str, **fields: Any) -> str:
    return dumps({"type": "error", "error": message, **fields})


def _price_update(point: PricePoint, analysis: dict[str, Any]) -> dict[str, Any]:
    return {
        "type": PRICE_UPDATE,
        "symbol": point.symbol,
        "price": point.close,
        "volume": point.volume,
        "timestamp": point.timestamp,
        "analysis": analysis,
    }
