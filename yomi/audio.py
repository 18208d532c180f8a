from __future__ import annotations

import io
from typing import Tuple

import numpy as np
import soundfile as sf

FRAME_SECONDS = 0.02
HOP_SECONDS = 0.01
DB_FLOOR = -90.0
SILENCE_FLOOR_DBFS = -40.0


def _read_mono(data: bytes) -> Tuple[np.ndarray, int]:
    if not data:
        raise ValueError("Audio content is empty.")
    samples, sample_rate = sf.read(io.BytesIO(data), always_2d=True)
    mono = samples.mean(axis=1).astype(np.float64)
    if mono.size == 0 or sample_rate <= 0:
        raise ValueError("Audio content has no samples.")
    return mono, int(sample_rate)


def _frame_levels(mono: np.ndarray, sample_rate: int) -> Tuple[np.ndarray, int]:
    frame = max(1, int(sample_rate * FRAME_SECONDS))
    hop = max(1, int(sample_rate * HOP_SECONDS))
    starts = np.arange(0, mono.size - frame + 1, hop)
    frames = np.stack([mono[start : start + frame] for start in starts], axis=0)
    rms = np.sqrt(np.mean(np.square(frames), axis=1))
    levels = 20.0 * np.log10(np.maximum(rms, 1e-12))
    return np.clip(levels, DB_FLOOR, 0.0), frame


def _speech_threshold(levels: np.ndarray) -> float:
    """Split frame levels into quiet and loud classes (Otsu, 1 dB bins).

    Returns the lowest level counted as loud, never below the silence floor.
    """
    counts, edges = np.histogram(levels, bins=np.arange(DB_FLOOR, 1.0, 1.0))
    centers = edges[:-1] + 0.5
    quiet_weight = np.cumsum(counts)
    loud_weight = quiet_weight[-1] - quiet_weight
    quiet_sum = np.cumsum(counts * centers)
    loud_sum = quiet_sum[-1] - quiet_sum

    split = (quiet_weight > 0) & (loud_weight > 0)
    if not np.any(split):
        return SILENCE_FLOOR_DBFS
    quiet_mean = quiet_sum[split] / quiet_weight[split]
    loud_mean = loud_sum[split] / loud_weight[split]
    spread = quiet_weight[split] * loud_weight[split] * (loud_mean - quiet_mean) ** 2
    best = float(edges[1:][split][int(np.argmax(spread))])
    return max(best, SILENCE_FLOOR_DBFS)


def speech_span_seconds(data: bytes) -> Tuple[float, float]:
    """Return ``(offset, duration)`` of the speech-active part of a clip.

    Frames are 20 ms RMS windows on a 10 ms hop. Clips too short to frame,
    or without any frame above the threshold, count as fully active.
    """
    mono, sample_rate = _read_mono(data)
    total = mono.size / float(sample_rate)
    if mono.size <= int(sample_rate * FRAME_SECONDS):
        return 0.0, total

    levels, frame = _frame_levels(mono, sample_rate)
    active = np.flatnonzero(levels >= _speech_threshold(levels))
    if active.size == 0:
        return 0.0, total

    hop = max(1, int(sample_rate * HOP_SECONDS))
    offset = active[0] * hop / float(sample_rate)
    end = min(total, (active[-1] * hop + frame) / float(sample_rate))
    return float(offset), float(max(0.0, end - offset))
