import math
from types import SimpleNamespace

import pytest

from yomi import align as align_util
from yomi.models import Marker


def _tokens(*surfaces: str) -> list[dict]:
    return [{"surface": s, "reading": s, "difficulty": "N5"} for s in surfaces]


@pytest.mark.parametrize(
    "name, index",
    [
        ("token_0", 0),
        ("token_12", 12),
        ("3", 3),
        (" 4 ", 4),
        (5, 5),
        (6.0, 6),
        ("token_x", None),
        ("mark_1", None),
        (-1, None),
        (1.5, None),
        (True, None),
        (None, None),
        (float("nan"), None),
    ],
)
def test_marker_index(name, index) -> None:
    assert align_util.marker_index(name) == index


def test_exact_alignment_example() -> None:
    markers = [
        {"markName": "token_0", "timeSeconds": 0.0},
        {"markName": "token_1", "timeSeconds": 0.5},
        {"markName": "token_2", "timeSeconds": 1.2},
    ]
    result = align_util.align(_tokens("今日", "は"), markers)
    assert result.exact is True
    assert [(t.start_time, t.end_time) for t in result.tokens] == [(0.0, 0.5), (0.5, 1.2)]


def test_exact_alignment_accepts_mixed_marker_names() -> None:
    markers = [
        Marker(name=0, time_seconds=0.1),
        Marker(name="1", time_seconds=0.4),
        SimpleNamespace(mark_name="token_2", time_seconds=0.9),
    ]
    result = align_util.align(_tokens("a", "b"), markers)
    assert result.exact is True
    assert [(t.start_time, t.end_time) for t in result.tokens] == [(0.1, 0.4), (0.4, 0.9)]


def test_exact_alignment_missing_end_marker() -> None:
    markers = [Marker("token_0", 0.0), Marker("token_1", 0.7)]
    result = align_util.align(_tokens("a", "b"), markers)
    assert result.tokens[0].end_time == 0.7
    assert result.tokens[1].start_time == 0.7
    assert result.tokens[1].end_time is None


def test_exact_alignment_missing_start_marker_uses_previous_end() -> None:
    markers = [Marker("token_0", 0.0), Marker("token_1", 0.6), Marker("token_3", 1.5)]
    result = align_util.align(_tokens("a", "b", "c"), markers)
    starts = [t.start_time for t in result.tokens]
    assert starts == [0.0, 0.6, 0.6]
    assert result.tokens[1].end_time is None
    assert result.tokens[2].end_time == 1.5


def test_exact_alignment_first_marker_wins_and_clamps() -> None:
    markers = [
        Marker("token_0", 1.0),
        Marker("token_0", 2.0),
        Marker("token_1", 0.5),
    ]
    result = align_util.align(_tokens("a"), markers)
    assert result.tokens[0].start_time == 1.0
    assert result.tokens[0].end_time == 1.0


def test_exact_alignment_keeps_token_fields() -> None:
    markers = [Marker("token_0", 0.0), Marker("token_1", 0.3)]
    tokens = [{"surface": "猫", "reading": "ネコ", "pos": "名詞", "difficulty": "N5", "startTime": 9}]
    payload = align_util.align(tokens, markers).tokens[0].to_payload()
    assert payload == {
        "surface": "猫",
        "reading": "ネコ",
        "pos": "名詞",
        "difficulty": "N5",
        "startTime": 0.0,
        "endTime": 0.3,
    }


def test_estimated_alignment_example() -> None:
    result = align_util.align(_tokens("今日", "晴れた"), [], audio_duration=5)
    assert result.exact is False
    assert result.markers == []
    assert [(t.start_time, t.end_time) for t in result.tokens] == [(0.0, 2.0), (2.0, 5.0)]


def test_estimated_alignment_sums_to_duration() -> None:
    tokens = _tokens("吾輩", "は", "猫", "で", "ある", "。")
    result = align_util.align(tokens, None, audio_duration=3.3)
    durations = [t.end_time - t.start_time for t in result.tokens]
    assert math.isclose(sum(durations), 3.3, rel_tol=1e-9)
    for prev, cur in zip(result.tokens, result.tokens[1:]):
        assert prev.end_time == cur.start_time
    assert result.tokens[0].start_time == 0.0
    assert math.isclose(result.tokens[-1].end_time, 3.3, rel_tol=1e-9)


def test_estimated_alignment_uses_default_duration() -> None:
    result = align_util.align(_tokens("ab", "cd"), [])
    assert math.isclose(result.tokens[-1].end_time, align_util.DEFAULT_AUDIO_DURATION)

    result = align_util.align(_tokens("ab"), [], audio_duration=0, default_duration=4.0)
    assert result.tokens[0].end_time == 4.0


def test_estimated_alignment_zero_chars() -> None:
    result = align_util.align(_tokens("", ""), [], audio_duration=5)
    assert [(t.start_time, t.end_time) for t in result.tokens] == [(0.0, 0.0), (0.0, 0.0)]


def test_estimated_alignment_zero_length_token_in_middle() -> None:
    result = align_util.align(_tokens("ab", "", "cd"), [], audio_duration=4)
    assert [(t.start_time, t.end_time) for t in result.tokens] == [
        (0.0, 2.0),
        (2.0, 2.0),
        (2.0, 4.0),
    ]


def test_estimated_alignment_with_offset() -> None:
    tokens = _tokens("ab", "c")
    timed = align_util.estimate_timing(tokens, 3.0, offset=0.5)
    assert [(t.start_time, t.end_time) for t in timed] == [(0.5, 2.5), (2.5, 3.5)]


def test_unrecognized_markers_fall_back_to_estimate() -> None:
    markers = [{"markName": "sentence_a", "timeSeconds": 0.2}]
    result = align_util.align(_tokens("ab"), markers, audio_duration=2)
    assert result.exact is False
    assert result.tokens[0].end_time == 2.0


def test_coerce_markers_drops_invalid_times() -> None:
    markers = align_util.coerce_markers(
        [
            {"markName": "token_0", "timeSeconds": "0.25"},
            {"markName": "token_1", "timeSeconds": None},
            {"markName": "token_2", "timeSeconds": -1},
        ]
    )
    assert markers == [Marker(name="token_0", time_seconds=0.25)]
