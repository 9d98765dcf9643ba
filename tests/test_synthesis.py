import asyncio

import pytest
import requests

from kawaii_narrator.core.config import VoiceConfig
from kawaii_narrator.voice.errors import SynthesisError
from kawaii_narrator.voice.synthesis import VoicevoxSynthesizer

WAV = b"RIFF" + b"\x00" * 400


class FakeResponse:
    def __init__(self, json_data=None, content=b"", status_code=200, text=""):
        self._json = json_data
        self.content = content
        self.status_code = status_code
        self.text = text

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def json(self):
        if self._json is None:
            raise ValueError("no json")
        return self._json


class FakeSession:
    def __init__(self, query=None, audio=WAV, fail=None, status_code=200):
        self.query = {"speedScale": 1.0, "volumeScale": 1.0, "accent_phrases": []} if query is None else query
        self.audio = audio
        self.fail = fail
        self.status_code = status_code
        self.posts = []
        self.closed = False

    def post(self, url, params=None, json=None, timeout=None):
        self.posts.append((url, params, json, timeout))
        if self.fail:
            raise self.fail
        if url.endswith("/audio_query"):
            return FakeResponse(json_data=dict(self.query), status_code=self.status_code)
        return FakeResponse(content=self.audio, status_code=self.status_code)

    def get(self, url, timeout=None):
        if self.fail:
            raise self.fail
        if url.endswith("/speakers"):
            return FakeResponse(json_data=[{"name": "まお", "styles": [{"id": 888753760}]}])
        return FakeResponse(text="1.0.0\n")

    def close(self):
        self.closed = True


def make_synthesizer(**session_args):
    session = FakeSession(**session_args)
    return VoicevoxSynthesizer(VoiceConfig(engine_url="http://localhost:10101/"), session), session


def synthesize(synthesizer, text="こんにちは"):
    return asyncio.run(synthesizer.synthesize(text, speaker_id=7, speed_scale=1.2, volume_scale=0.5))


def test_two_step_request():
    synthesizer, session = make_synthesizer()
    assert synthesize(synthesizer) == WAV

    (query_url, query_params, _, timeout), (synth_url, synth_params, body, _) = session.posts
    assert query_url == "http://localhost:10101/audio_query"
    assert query_params == {"text": "こんにちは", "speaker": 7}
    assert timeout == 30.0
    assert synth_url == "http://localhost:10101/synthesis"
    assert synth_params == {"speaker": 7}
    assert body["speedScale"] == 1.2
    assert body["volumeScale"] == 0.5
    assert body["accent_phrases"] == []


def test_connection_error_raises_synthesis_error():
    synthesizer, _ = make_synthesizer(fail=requests.ConnectionError("refused"))
    with pytest.raises(SynthesisError):
        synthesize(synthesizer)


def test_http_error_raises_synthesis_error():
    synthesizer, _ = make_synthesizer(status_code=500)
    with pytest.raises(SynthesisError):
        synthesize(synthesizer)


def test_truncated_audio_rejected():
    synthesizer, _ = make_synthesizer(audio=b"RIFF")
    with pytest.raises(SynthesisError):
        synthesize(synthesizer)


def test_empty_text_rejected_without_request():
    synthesizer, session = make_synthesizer()
    with pytest.raises(SynthesisError):
        synthesize(synthesizer, "  ")
    assert session.posts == []


def test_engine_probes():
    synthesizer, session = make_synthesizer()
    assert asyncio.run(synthesizer.check_connection())
    speakers = asyncio.run(synthesizer.list_speakers())
    assert speakers[0]["styles"][0]["id"] == 888753760
    synthesizer.close()
    assert session.closed


def test_engine_probes_when_unreachable():
    synthesizer, _ = make_synthesizer(fail=requests.ConnectionError("refused"))
    assert not asyncio.run(synthesizer.check_connection())
    assert asyncio.run(synthesizer.list_speakers()) == []
