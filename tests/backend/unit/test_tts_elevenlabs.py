"""
Unit tests for services.tts_elevenlabs module (no network).
"""
import pytest

from speech_audit.config import settings
from speech_audit.services import tts_elevenlabs


def test_pick_voice_id_keeps_elevenlabs_ids():
    assert tts_elevenlabs.pick_voice_id("21m00Tcm4TlvDq8ikWAM") == "21m00Tcm4TlvDq8ikWAM"


@pytest.mark.parametrize("voice", [None, "", "en-US-Neural2-C"])
def test_pick_voice_id_falls_back_to_default(voice):
    assert tts_elevenlabs.pick_voice_id(voice) == settings.default_voice_id


@pytest.mark.asyncio
async def test_synthesize_speech_joins_stream(monkeypatch):
    calls = []

    async def fake_stream(text, voice_id, **kwargs):
        calls.append((text, voice_id))
        yield b"ID3"
        yield b"-audio"

    monkeypatch.setattr(tts_elevenlabs, "_stream_elevenlabs", fake_stream)

    audio = await tts_elevenlabs.synthesize_speech("Hello there.", "en-US-Neural2-C")

    assert audio == b"ID3-audio"
    assert calls == [("Hello there.", settings.default_voice_id)]


@pytest.mark.asyncio
async def test_stream_requires_api_key(monkeypatch):
    monkeypatch.setattr(settings, "eleven_api_key", None)
    with pytest.raises(RuntimeError, match="ELEVENLABS_API_KEY"):
        async for _ in tts_elevenlabs._stream_elevenlabs("Hello", "voice"):
            pass


@pytest.mark.asyncio
async def test_stream_skips_empty_text(monkeypatch):
    monkeypatch.setattr(settings, "eleven_api_key", None)
    chunks = [c async for c in tts_elevenlabs._stream_elevenlabs("   ", "voice")]
    assert chunks == []
