from __future__ import annotations

import asyncio
import base64
import logging
import math
from dataclasses import dataclass
from typing import Any, List, Mapping, Optional, Sequence, Tuple

from . import audio as audio_util
from .align import align, marker_times
from .annotate import TokenizerLike, annotate_tokens, build_tokenizer
from .config import ServiceConfig
from .errors import InvalidInputError, NotReadyError, UpstreamSynthesisError
from .models import Alignment, AnnotatedToken
from .ssml import build_ssml
from .synth import GoogleSynthesizer, SynthesisResult, Synthesizer
from .vocab import VocabularyIndex, load_vocabulary

logger = logging.getLogger(__name__)


@dataclass
class SynthesisOutcome:
    audio: bytes
    alignment: Alignment

    @property
    def exact(self) -> bool:
        return self.alignment.exact

    def to_payload(self) -> dict:
        timepoints = (
            [marker.to_payload() for marker in self.alignment.markers]
            if self.alignment.exact
            else []
        )
        return {
            "audioContent": base64.b64encode(self.audio).decode("ascii"),
            "tokens": [token.to_payload() for token in self.alignment.tokens],
            "timepoints": timepoints,
        }


def _google_synthesizer(config: ServiceConfig) -> GoogleSynthesizer:
    return GoogleSynthesizer(
        language_code=config.language_code,
        voice_name=config.voice_name,
        audio_encoding=config.audio_encoding,
        speaking_rate=config.speaking_rate,
        pitch=config.pitch,
    )


def validate_text(text: Any) -> str:
    if not isinstance(text, str) or not text.strip():
        raise InvalidInputError("Text is required.")
    return text


def validate_tokens(tokens: Any) -> List[Any]:
    if not isinstance(tokens, (list, tuple)) or not tokens:
        raise InvalidInputError("Tokens are required.")
    for index, token in enumerate(tokens):
        if isinstance(token, Mapping):
            surface = token.get("surface")
        else:
            surface = getattr(token, "surface", None)
        if not isinstance(surface, str):
            raise InvalidInputError(f"Token {index} is missing a surface string.")
    return list(tokens)


def validate_audio_duration(value: Any) -> Optional[float]:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidInputError("audioDuration must be a number.")
    if not math.isfinite(value) or value < 0:
        raise InvalidInputError("audioDuration must be >= 0.")
    return float(value) if value > 0 else None


class ReadAlongService:
    """Owns the tokenizer, vocabulary and synthesizer for one process.

    Tokenizer and vocabulary may be injected, or built by :meth:`load`.
    Annotation is refused until both exist; synthesis never needs them.
    """

    def __init__(
        self,
        config: Optional[ServiceConfig] = None,
        *,
        tokenizer: Optional[TokenizerLike] = None,
        vocabulary: Optional[VocabularyIndex] = None,
        synthesizer: Optional[Synthesizer] = None,
    ) -> None:
        self.config = config or ServiceConfig()
        self.tokenizer = tokenizer
        self.vocabulary = vocabulary
        self.synthesizer = synthesizer or _google_synthesizer(self.config)
        self.load_error: Optional[str] = None

    def ready(self) -> bool:
        return self.tokenizer is not None and self.vocabulary is not None

    def status(self) -> dict:
        return {
            "ready": self.ready(),
            "tokenizer": self.tokenizer is not None,
            "vocabulary_entries": len(self.vocabulary) if self.vocabulary else 0,
            "error": self.load_error,
        }

    async def load(self) -> None:
        try:
            if self.tokenizer is None:
                self.tokenizer = await asyncio.to_thread(
                    build_tokenizer, self.config.dictionary_path
                )
            if self.vocabulary is None:
                if not self.config.vocabulary_paths:
                    logger.warning(
                        "No vocabulary files configured; every token will be N0."
                    )
                self.vocabulary = await asyncio.to_thread(
                    load_vocabulary, list(self.config.vocabulary_paths)
                )
        except (RuntimeError, OSError, ValueError) as exc:
            self.load_error = str(exc)
            logger.error("Initialization failed: %s", exc)

    def annotate(self, text: Any) -> List[AnnotatedToken]:
        if not self.ready():
            raise NotReadyError("Tokenizer is not ready yet.")
        text = validate_text(text)
        return annotate_tokens(self.tokenizer.tokenize(text), self.vocabulary)

    async def _call_synthesizer(self, ssml: str) -> SynthesisResult:
        timeout = self.config.synthesis_timeout
        try:
            if timeout is None:
                return await self.synthesizer.synthesize(ssml)
            return await asyncio.wait_for(self.synthesizer.synthesize(ssml), timeout)
        except asyncio.TimeoutError as exc:
            raise UpstreamSynthesisError(
                f"Speech synthesis timed out after {timeout}s."
            ) from exc

    async def _probe_speech_span(self, audio: bytes) -> Tuple[float, Optional[float]]:
        try:
            offset, duration = await asyncio.to_thread(
                audio_util.speech_span_seconds, audio
            )
        except (RuntimeError, ValueError) as exc:
            logger.warning("Could not measure synthesized audio: %s", exc)
            return 0.0, None
        if duration <= 0:
            return 0.0, None
        return offset, duration

    async def synthesize(
        self, tokens: Any, audio_duration: Any = None
    ) -> SynthesisOutcome:
        tokens = validate_tokens(tokens)
        audio_duration = validate_audio_duration(audio_duration)

        ssml = build_ssml(tokens)
        logger.debug("Generated SSML: %s", ssml)
        result = await self._call_synthesizer(ssml)
        logger.info(
            "TTS synthesis completed. Audio length: %d bytes, Timepoints: %d",
            len(result.audio),
            len(result.markers),
        )

        offset = 0.0
        if not marker_times(result.markers):
            logger.warning(
                "No usable timepoints returned; estimating timing from token lengths."
            )
            if audio_duration is None and self.config.probe_audio_duration:
                offset, audio_duration = await self._probe_speech_span(result.audio)

        alignment = align(
            tokens,
            result.markers,
            audio_duration=audio_duration,
            default_duration=self.config.default_audio_duration,
            offset=offset,
        )
        return SynthesisOutcome(audio=result.audio, alignment=alignment)


def annotate_payload(tokens: Sequence[AnnotatedToken]) -> dict:
    return {"tokens": [token.to_payload() for token in tokens]}
