from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Iterable, List, Optional, Protocol

from .models import NO_BASE_FORM, TIER_UNKNOWN, TIERS, AnnotatedToken, Token
from .vocab import VocabularyIndex

logger = logging.getLogger(__name__)

fugashi = None


class TokenizerLike(Protocol):
    def tokenize(self, text: str) -> List[Token]: ...


def _lazy_import_fugashi() -> None:
    global fugashi
    if fugashi is not None:
        return
    try:
        import fugashi as _fugashi
    except Exception as exc:  # pragma: no cover - optional runtime dependency
        raise RuntimeError(
            "fugashi is missing. Install fugashi + unidic-lite to tokenize Japanese text."
        ) from exc
    fugashi = _fugashi


def _feature_value(feature: Any, *names: str) -> Optional[str]:
    for name in names:
        value = getattr(feature, name, None)
        if value is None:
            continue
        text = str(value).strip()
        if text and text != NO_BASE_FORM:
            return text
    return None


def token_from_word(word: Any) -> Token:
    """Convert one fugashi ``UnidicNode`` into a :class:`Token`."""
    surface = str(word.surface)
    feature = getattr(word, "feature", None)
    base_form = _feature_value(feature, "orthBase", "lemma")
    if base_form and "-" in base_form and not _feature_value(feature, "orthBase"):
        # UniDic lemmas of loanwords carry the source word after a hyphen.
        base_form = base_form.split("-", 1)[0] or None
    reading = _feature_value(feature, "kana", "pron") or surface
    pos = _feature_value(feature, "pos1") or ""
    return Token(surface=surface, base_form=base_form, reading=reading, pos=pos)


class Tokenizer:
    """Thin wrapper around a fugashi UniDic tagger."""

    def __init__(
        self, dictionary_dir: Optional[Path] = None, tagger: Optional[Any] = None
    ) -> None:
        self.dictionary_dir = dictionary_dir
        if tagger is not None:
            self._tagger = tagger
            return
        _lazy_import_fugashi()
        if dictionary_dir is not None:
            if not (Path(dictionary_dir) / "dicrc").exists():
                raise FileNotFoundError(f"UniDic dicrc not found in {dictionary_dir}")
            self._tagger = fugashi.Tagger(f"-d {dictionary_dir}")
        else:
            self._tagger = fugashi.Tagger()

    def tokenize(self, text: str) -> List[Token]:
        return [token_from_word(word) for word in self._tagger(text) if word.surface]


def build_tokenizer(dictionary_dir: Optional[Path] = None) -> Tokenizer:
    tokenizer = Tokenizer(dictionary_dir)
    logger.info("Tokenizer ready.")
    return tokenizer


def classify(token: Token, vocabulary: VocabularyIndex) -> str:
    """Resolve a token's tier: base form first, then surface, then ``N0``."""
    tier = None
    if token.has_base_form:
        tier = vocabulary.get(token.base_form)
    if tier is None:
        tier = vocabulary.get(token.surface)
    if tier not in TIERS:
        return TIER_UNKNOWN
    return tier


def annotate_tokens(
    tokens: Iterable[Token], vocabulary: VocabularyIndex
) -> List[AnnotatedToken]:
    return [
        AnnotatedToken(token=token, difficulty=classify(token, vocabulary))
        for token in tokens
    ]
