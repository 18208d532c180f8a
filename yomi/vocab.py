from __future__ import annotations

import csv
import logging
import re
from pathlib import Path
from types import MappingProxyType
from typing import Dict, Iterable, Mapping, Optional, Sequence, Tuple, Union

from .errors import PartialVocabularyLoadError
from .models import TIER_UNKNOWN, TIERS

logger = logging.getLogger(__name__)

_TIER_TAG_RE = re.compile(r"JLPT_([1-5])")

PathLike = Union[str, Path]

# Stands in for bytes that failed to decode as UTF-8.
_UNDECODABLE = "\ufffd"


def parse_tier(tags: Optional[str]) -> str:
    """Return the tier encoded in a free-text tags field.

    The first ``JLPT_<digit>`` token (digit 1-5) anywhere in the string
    selects ``N<digit>``. Anything else, including ``None`` and the empty
    string, is ``N0``.
    """
    if not tags or not isinstance(tags, str):
        return TIER_UNKNOWN
    match = _TIER_TAG_RE.search(tags)
    if not match:
        return TIER_UNKNOWN
    return "N" + match.group(1)


class VocabularyIndex:
    """Read-only word -> tier mapping."""

    def __init__(
        self, entries: Optional[Mapping[str, str]] = None, skipped: int = 0
    ) -> None:
        self._entries = MappingProxyType(dict(entries or {}))
        self.skipped = skipped

    def get(self, word: Optional[str]) -> Optional[str]:
        if not word:
            return None
        return self._entries.get(word)

    def __contains__(self, word: object) -> bool:
        return word in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def entries(self) -> Mapping[str, str]:
        return self._entries

    def tier_counts(self) -> Dict[str, int]:
        counts = {tier: 0 for tier in TIERS}
        for tier in self._entries.values():
            counts[tier] = counts.get(tier, 0) + 1
        return counts

    @classmethod
    def from_records(cls, records: Iterable[Mapping[str, object]]) -> "VocabularyIndex":
        builder = _IndexBuilder()
        for line, row in enumerate(records, start=1):
            builder.add_record(row, line)
        return builder.build()


class _IndexBuilder:
    def __init__(self) -> None:
        self.entries: Dict[str, str] = {}
        self.skipped = 0

    def _insert(self, word: str, tier: str) -> None:
        if word and word not in self.entries:
            self.entries[word] = tier

    def skip(self, line: int, reason: object) -> None:
        self.skipped += 1
        logger.warning("Skipping vocabulary record %d: %s", line, reason)

    def add_record(self, row: Mapping[str, object], line: int) -> bool:
        try:
            expression, reading, tier = _parse_record(row, line)
        except PartialVocabularyLoadError as exc:
            self.skip(exc.line, exc)
            return False
        self._insert(expression, tier)
        if reading:
            self._insert(reading, tier)
        return True

    def build(self) -> VocabularyIndex:
        return VocabularyIndex(self.entries, skipped=self.skipped)


def _cell(row: Mapping[str, object], key: str, line: int) -> Optional[str]:
    value = row.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise PartialVocabularyLoadError(f"{key} is not text: {value!r}", line)
    if _UNDECODABLE in value:
        raise PartialVocabularyLoadError(f"{key} is not valid UTF-8", line)
    return value.strip()


def _parse_record(
    row: Mapping[str, object], line: int
) -> Tuple[str, Optional[str], str]:
    if not isinstance(row, Mapping):
        raise PartialVocabularyLoadError("record is not a mapping", line)
    expression = _cell(row, "expression", line)
    if expression is None:
        raise PartialVocabularyLoadError("missing expression field", line)
    reading = _cell(row, "reading", line)
    tags = _cell(row, "tags", line)
    return expression, reading, parse_tier(tags)


def _load_csv(path: Path, builder: "_IndexBuilder") -> None:
    with path.open(
        "r", encoding="utf-8-sig", errors="replace", newline=""
    ) as handle:
        reader = csv.DictReader(handle)
        if reader.fieldnames is None or "expression" not in reader.fieldnames:
            logger.error("Vocabulary file %s has no expression column; skipped.", path)
            return
        while True:
            try:
                row = next(reader)
            except StopIteration:
                return
            except csv.Error as exc:
                builder.skip(reader.line_num, f"unreadable line: {exc}")
                continue
            builder.add_record(row, reader.line_num)


def load_vocabulary(paths: Union[PathLike, Sequence[PathLike]]) -> VocabularyIndex:
    if isinstance(paths, (str, Path)):
        paths = [paths]
    builder = _IndexBuilder()
    for raw in paths:
        path = Path(raw)
        if not path.exists():
            raise FileNotFoundError(f"Vocabulary file not found: {path}")
        logger.info("Loading vocabulary from %s", path)
        _load_csv(path, builder)
    index = builder.build()
    logger.info(
        "Vocabulary loaded. Total unique entries: %d (skipped %d records)",
        len(index),
        index.skipped,
    )
    return index
