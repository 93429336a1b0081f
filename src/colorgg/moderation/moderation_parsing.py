"""Utilities for parsing and normalising classifier responses."""

from __future__ import annotations

import json
import math
from typing import Any, Dict

from colorgg.datatypes.moderation_datatypes import (
    CONFIDENCE_THRESHOLD,
    ActionType,
    PurgeResult,
    Verdict,
)
from colorgg.util.logger import get_logger

logger = get_logger("moderation_parsing")

_decoder = json.JSONDecoder()


def extract_json_object(raw: str) -> Dict[str, Any]:
    """Return the first balanced JSON object embedded in ``raw``.

    Models often wrap their answer in prose or code fences, so every ``{`` is
    tried as a starting point until one decodes to an object.

    Raises:
        ValueError: If the text contains no decodable JSON object.
    """
    if not isinstance(raw, str):
        raise ValueError(f"Expected text response, got {type(raw).__name__}")

    start = raw.find("{")
    while start != -1:
        try:
            payload, _ = _decoder.raw_decode(raw, start)
        except json.JSONDecodeError:
            start = raw.find("{", start + 1)
            continue
        if isinstance(payload, dict):
            return payload
        start = raw.find("{", start + 1)

    raise ValueError("No JSON object found in AI response")


def _coerce_confidence(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0.0
    confidence = float(value)
    if math.isnan(confidence):
        return 0.0
    return min(1.0, max(0.0, confidence))


def _coerce_duration(value: Any) -> int:
    if isinstance(value, bool):
        return 0
    try:
        duration = int(value)
    except (TypeError, ValueError, OverflowError):
        return 0
    return max(0, duration)


def normalize_verdict(payload: Any) -> Verdict:
    """Clamp and default every field of a raw classifier payload.

    The result always satisfies ``flagged -> confidence > CONFIDENCE_THRESHOLD``.
    """
    if not isinstance(payload, dict):
        logger.warning("[PARSE] Verdict payload is not an object: %r", type(payload))
        return Verdict.failed("Malformed AI response")

    confidence = _coerce_confidence(payload.get("confidence"))

    raw_violations = payload.get("violations")
    violations = (
        [str(item).strip() for item in raw_violations if isinstance(item, (str, int)) and not isinstance(item, bool) and str(item).strip()]
        if isinstance(raw_violations, list)
        else []
    )

    reasoning = payload.get("reasoning")
    reasoning = reasoning.strip() if isinstance(reasoning, str) and reasoning.strip() else "No reasoning provided"

    reply = payload.get("replyMessage", payload.get("reply_message"))
    reply_message = reply.strip() if isinstance(reply, str) and reply.strip() and reply.strip().lower() != "null" else None

    return Verdict(
        flagged=payload.get("flagged") is True and confidence > CONFIDENCE_THRESHOLD,
        violations=violations,
        confidence=confidence,
        reasoning=reasoning,
        suggested_action=ActionType.parse(payload.get("suggestedAction", payload.get("suggested_action", "none"))),
        suggested_duration=_coerce_duration(payload.get("suggestedDuration", payload.get("suggested_duration", 0))),
        reply_message=reply_message,
    )


def normalize_purge_result(payload: Any, message_count: int) -> PurgeResult:
    """Keep only in-range, de-duplicated indexes and the reasons that belong to them."""
    if not isinstance(payload, dict):
        return PurgeResult(summary="Could not parse AI response")

    indexes: set[int] = set()
    raw_indexes = payload.get("flaggedIndexes", payload.get("flagged_indexes"))
    if isinstance(raw_indexes, list):
        for item in raw_indexes:
            if isinstance(item, bool):
                continue
            try:
                index = int(item)
            except (TypeError, ValueError):
                continue
            if 0 <= index < message_count:
                indexes.add(index)

    reasons: Dict[int, str] = {}
    raw_reasons = payload.get("reasons")
    if isinstance(raw_reasons, dict):
        for key, reason in raw_reasons.items():
            try:
                index = int(key)
            except (TypeError, ValueError):
                continue
            if index in indexes:
                reasons[index] = str(reason)

    flagged = sorted(indexes)
    summary = payload.get("summary")
    return PurgeResult(
        flagged_indexes=flagged,
        reasons=reasons,
        total_flagged=len(flagged),
        summary=summary if isinstance(summary, str) else "",
    )
