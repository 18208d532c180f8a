import asyncio
from types import SimpleNamespace

import pytest
from google.api_core import exceptions as google_exceptions
from google.cloud import texttospeech_v1beta1 as texttospeech

from yomi import synth as synth_util
from yomi.errors import UpstreamSynthesisError
from yomi.models import Marker


class FakeClient:
    def __init__(self, response=None, error: Exception | None = None) -> None:
        self.response = response
        self.error = error
        self.requests: list = []

    async def synthesize_speech(self, request):
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return self.response


def test_build_request_enables_ssml_mark_time_pointing() -> None:
    synthesizer = synth_util.GoogleSynthesizer(voice_name="ja-JP-Wavenet-B", speaking_rate=0.9)
    request = synthesizer.build_request("<speak>猫</speak>")
    assert request.input.ssml == "<speak>猫</speak>"
    assert request.voice.language_code == "ja-JP"
    assert request.voice.name == "ja-JP-Wavenet-B"
    assert request.audio_config.audio_encoding == texttospeech.AudioEncoding.MP3
    assert request.audio_config.speaking_rate == pytest.approx(0.9)
    assert list(request.enable_time_pointing) == [
        texttospeech.SynthesizeSpeechRequest.TimepointType.SSML_MARK
    ]


def test_synthesize_returns_audio_and_markers() -> None:
    response = SimpleNamespace(
        audio_content=b"ID3audio",
        timepoints=[
            SimpleNamespace(mark_name="token_0", time_seconds=0.0),
            SimpleNamespace(mark_name="token_1", time_seconds=0.42),
        ],
    )
    client = FakeClient(response=response)
    synthesizer = synth_util.GoogleSynthesizer(client=client)

    result = asyncio.run(synthesizer.synthesize("<speak/>"))

    assert result.audio == b"ID3audio"
    assert result.markers == [Marker("token_0", 0.0), Marker("token_1", 0.42)]
    assert len(client.requests) == 1


def test_synthesize_without_timepoints() -> None:
    client = FakeClient(response=SimpleNamespace(audio_content=b"x", timepoints=[]))
    result = asyncio.run(synth_util.GoogleSynthesizer(client=client).synthesize("<speak/>"))
    assert result.markers == []


def test_synthesize_wraps_upstream_errors() -> None:
    client = FakeClient(error=google_exceptions.ServiceUnavailable("down"))
    synthesizer = synth_util.GoogleSynthesizer(client=client)
    with pytest.raises(UpstreamSynthesisError):
        asyncio.run(synthesizer.synthesize("<speak/>"))


def test_base_synthesizer_is_abstract() -> None:
    with pytest.raises(NotImplementedError):
        asyncio.run(synth_util.Synthesizer().synthesize("<speak/>"))
