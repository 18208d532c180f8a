from __future__ import annotations

import logging
import math
import re
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from .models import AnnotatedToken, Alignment, Marker, TimedToken
from .ssml import MARK_PREFIX, token_surface

logger = logging.getLogger(__name__)

DEFAULT_AUDIO_DURATION = 7.32

_MARK_NAME_RE = re.compile(rf"^(?:{re.escape(MARK_PREFIX)})?(\d+)$")
_TIMING_KEYS = ("surface", "startTime", "endTime")


def marker_index(name: Any) -> Optional[int]:
    """Map a marker name to the token index it marks.

    Synthesizers report names as ``"token_3"``, ``"3"``, ``3`` or ``3.0``;
    all of them resolve to ``3``. Unrecognized names resolve to ``None``.
    """
    if name is None or isinstance(name, bool):
        return None
    if isinstance(name, int):
        return name if name >= 0 else None
    if isinstance(name, float):
        if math.isfinite(name) and name.is_integer() and name >= 0:
            return int(name)
        return None
    if not isinstance(name, str):
        return None
    match = _MARK_NAME_RE.match(name.strip())
    if not match:
        return None
    return int(match.group(1))


def coerce_marker(raw: Any) -> Optional[Marker]:
    if isinstance(raw, Marker):
        return raw
    if isinstance(raw, Mapping):
        name = raw.get("markName", raw.get("mark_name", raw.get("name")))
        seconds = raw.get("timeSeconds", raw.get("time_seconds"))
    else:
        name = getattr(raw, "mark_name", getattr(raw, "name", None))
        seconds = getattr(raw, "time_seconds", None)
    try:
        seconds = float(seconds)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(seconds) or seconds < 0:
        return None
    return Marker(name=name, time_seconds=seconds)


def coerce_markers(raw_markers: Optional[Iterable[Any]]) -> List[Marker]:
    if not raw_markers:
        return []
    markers: List[Marker] = []
    for raw in raw_markers:
        marker = coerce_marker(raw)
        if marker is not None:
            markers.append(marker)
    return markers


def marker_times(markers: Iterable[Marker]) -> Dict[int, float]:
    times: Dict[int, float] = {}
    for marker in markers:
        index = marker_index(marker.name)
        if index is None:
            continue
        times.setdefault(index, marker.time_seconds)
    return times


def _token_extra(token: Any) -> dict:
    if isinstance(token, AnnotatedToken):
        payload = token.to_payload()
    elif isinstance(token, Mapping):
        payload = dict(token)
    else:
        payload = {}
    for key in _TIMING_KEYS:
        payload.pop(key, None)
    return payload


def align_exact(tokens: Sequence[Any], times: Mapping[int, float]) -> List[TimedToken]:
    timed: List[TimedToken] = []
    clock = 0.0
    for index, token in enumerate(tokens):
        start = times.get(index)
        if start is None:
            start = clock
        end = times.get(index + 1)
        if end is not None and end < start:
            end = start
        clock = end if end is not None else start
        timed.append(
            TimedToken(
                surface=token_surface(token),
                start_time=start,
                end_time=end,
                extra=_token_extra(token),
            )
        )
    return timed


def estimate_timing(
    tokens: Sequence[Any], duration: float, offset: float = 0.0
) -> List[TimedToken]:
    """Spread ``duration`` seconds over tokens in proportion to their length."""
    surfaces = [token_surface(token) for token in tokens]
    total_chars = sum(len(surface) for surface in surfaces)
    per_char = duration / total_chars if total_chars > 0 else 0.0

    timed: List[TimedToken] = []
    clock = offset
    for index, (token, surface) in enumerate(zip(tokens, surfaces)):
        start = clock
        end = start + len(surface) * per_char
        clock = end
        logger.debug(
            "Token %d (%s): estimated %.2fs - %.2fs", index, surface, start, end
        )
        timed.append(
            TimedToken(
                surface=surface,
                start_time=start,
                end_time=end,
                extra=_token_extra(token),
            )
        )
    return timed


def resolve_duration(
    audio_duration: Optional[float], default_duration: float = DEFAULT_AUDIO_DURATION
) -> float:
    if audio_duration is None:
        return default_duration
    try:
        value = float(audio_duration)
    except (TypeError, ValueError):
        return default_duration
    if not math.isfinite(value) or value <= 0:
        return default_duration
    return value


def align(
    tokens: Sequence[Any],
    markers: Optional[Iterable[Any]],
    audio_duration: Optional[float] = None,
    default_duration: float = DEFAULT_AUDIO_DURATION,
    offset: float = 0.0,
) -> Alignment:
    """Attach start/end times to ``tokens``.

    Uses the synthesizer's markers when at least one of them names a token
    boundary; otherwise falls back to :func:`estimate_timing` and reports
    ``exact=False``.
    """
    coerced = coerce_markers(markers)
    times = marker_times(coerced)
    if times:
        return Alignment(tokens=align_exact(tokens, times), exact=True, markers=coerced)

    if coerced:
        logger.warning(
            "None of the %d returned timepoints name a token boundary.", len(coerced)
        )
    duration = resolve_duration(audio_duration, default_duration)
    return Alignment(
        tokens=estimate_timing(tokens, duration, offset=offset),
        exact=False,
    )
