"""
Unit tests for services.asr_factory module.
Tests engine selection and language hinting for stored recordings.
"""
import pytest
from unittest.mock import patch, MagicMock, AsyncMock

from speech_audit.services.asr_base import TranscriptionResult
from speech_audit.services.asr_factory import get_asr_service, transcribe_audio


@pytest.fixture
def recording(tmp_path):
    path = tmp_path / "answer.webm"
    path.write_bytes(b"fake-audio")
    return str(path)


def _mock_service(result):
    service = MagicMock()
    service.name = "openai-whisper-api"
    service.transcribe = AsyncMock(return_value=result)
    return service


class TestASRFactory:
    """Tests for ASR service factory."""

    @patch('speech_audit.services.asr_factory.openai_whisper_service')
    def test_get_asr_service_returns_whisper_service(self, mock_service):
        mock_service.is_available.return_value = True

        assert get_asr_service() is mock_service
        mock_service.is_available.assert_called_once()

    @patch('speech_audit.services.asr_factory.openai_whisper_service')
    def test_get_asr_service_raises_when_unavailable(self, mock_service):
        mock_service.is_available.return_value = False

        with pytest.raises(RuntimeError, match="OpenAI Whisper API not available"):
            get_asr_service()

    @pytest.mark.asyncio
    @patch('speech_audit.services.asr_factory.get_asr_service')
    async def test_transcribe_audio_forwards_language_hint(self, mock_get_service, recording):
        mock_result = TranscriptionResult(full_text="Test transcription", confidence=0.9, language="es")
        mock_service = _mock_service(mock_result)
        mock_get_service.return_value = mock_service

        result = await transcribe_audio(recording, language="es-ES")

        assert result is mock_result
        mock_service.transcribe.assert_called_once_with(audio_path=recording, language="es-ES")

    @pytest.mark.asyncio
    @patch('speech_audit.services.asr_factory.get_asr_service')
    async def test_transcribe_audio_defaults_language(self, mock_get_service, recording):
        mock_service = _mock_service(TranscriptionResult(full_text="hello"))
        mock_get_service.return_value = mock_service

        with patch('speech_audit.services.asr_factory.settings') as mock_settings:
            mock_settings.default_language = "en-US"
            await transcribe_audio(recording)

        assert mock_service.transcribe.call_args.kwargs["language"] == "en-US"

    @pytest.mark.asyncio
    @patch('speech_audit.services.asr_factory.get_asr_service')
    async def test_missing_recording_fails_before_engine_call(self, mock_get_service, tmp_path):
        with pytest.raises(FileNotFoundError, match="recording not found"):
            await transcribe_audio(str(tmp_path / "gone.webm"))

        mock_get_service.assert_not_called()
