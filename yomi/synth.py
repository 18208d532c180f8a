from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, List, Optional

from .errors import UpstreamSynthesisError
from .models import Marker

logger = logging.getLogger(__name__)

texttospeech = None


@dataclass
class SynthesisResult:
    audio: bytes
    markers: List[Marker] = field(default_factory=list)


class Synthesizer:
    """Speech synthesizer interface.

    Implementations turn SSML into encoded audio bytes plus the time points
    of any ``<mark/>`` elements they honored. Engines that do not report
    marks return an empty marker list.
    """

    async def synthesize(self, ssml: str) -> SynthesisResult:
        raise NotImplementedError


def _lazy_import_texttospeech() -> None:
    global texttospeech
    if texttospeech is not None:
        return
    try:
        from google.cloud import texttospeech_v1beta1 as _texttospeech
    except Exception as exc:  # pragma: no cover - optional runtime dependency
        raise RuntimeError(
            "google-cloud-texttospeech is missing. Install it to synthesize speech."
        ) from exc
    texttospeech = _texttospeech


class GoogleSynthesizer(Synthesizer):
    """Google Cloud Text-to-Speech with SSML mark time pointing."""

    def __init__(
        self,
        language_code: str = "ja-JP",
        voice_name: str = "ja-JP-Standard-A",
        audio_encoding: str = "MP3",
        speaking_rate: float = 1.0,
        pitch: float = 0.0,
        client: Optional[Any] = None,
    ) -> None:
        self.language_code = language_code
        self.voice_name = voice_name
        self.audio_encoding = audio_encoding
        self.speaking_rate = speaking_rate
        self.pitch = pitch
        self._client = client

    def _get_client(self) -> Any:
        if self._client is None:
            _lazy_import_texttospeech()
            self._client = texttospeech.TextToSpeechAsyncClient()
        return self._client

    def build_request(self, ssml: str) -> Any:
        _lazy_import_texttospeech()
        return texttospeech.SynthesizeSpeechRequest(
            input=texttospeech.SynthesisInput(ssml=ssml),
            voice=texttospeech.VoiceSelectionParams(
                language_code=self.language_code,
                name=self.voice_name,
            ),
            audio_config=texttospeech.AudioConfig(
                audio_encoding=texttospeech.AudioEncoding[self.audio_encoding],
                speaking_rate=self.speaking_rate,
                pitch=self.pitch,
            ),
            enable_time_pointing=[
                texttospeech.SynthesizeSpeechRequest.TimepointType.SSML_MARK
            ],
        )

    async def synthesize(self, ssml: str) -> SynthesisResult:
        try:
            client = self._get_client()
            request = self.build_request(ssml)
            response = await client.synthesize_speech(request=request)
        except Exception as exc:
            raise UpstreamSynthesisError(f"Google TTS request failed: {exc}") from exc

        markers = [
            Marker(name=point.mark_name, time_seconds=float(point.time_seconds))
            for point in (response.timepoints or [])
        ]
        return SynthesisResult(audio=bytes(response.audio_content), markers=markers)
