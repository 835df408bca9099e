# speech_audit/config.py
import os
from pydantic import BaseModel
from dotenv import load_dotenv

load_dotenv()  # Load environment variables from .env file


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "yes")


class Settings(BaseModel):
    # General app settings
    APP_NAME: str = "Speech Audit API"
    env: str = os.getenv("ENV", "dev")

    # Host & Port settings
    host: str = os.getenv("HOST", "0.0.0.0")
    port: int = int(os.getenv("PORT", "8000"))

    # CORS origins for frontend
    CORS_ORIGINS: list[str] = [
        "http://localhost:5173",
        "http://127.0.0.1:5173",
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    # Presentation defaults for users, templates and sessions
    default_voice: str = os.getenv("DEFAULT_VOICE", "en-US-Neural2-C")
    default_language: str = os.getenv("DEFAULT_LANGUAGE", "en-US")
    supported_languages: list[str] = [
        "en-US", "es-ES", "fr-FR", "de-DE", "it-IT", "pt-BR", "ja-JP", "ko-KR", "zh-CN",
    ]

    # Session lifecycle thresholds
    # Idle time after which a resumable session counts as abandoned
    session_idle_minutes: int = int(os.getenv("SESSION_IDLE_MINUTES", "60"))
    # Age of the last update after which the sweep abandons a session
    session_cleanup_hours: int = int(os.getenv("SESSION_CLEANUP_HOURS", "24"))

    # Where uploaded response recordings and synthesized question audio live
    audio_storage_dir: str = os.getenv("AUDIO_STORAGE_DIR", "storage/audio")
    generate_question_audio: bool = _env_flag("GENERATE_QUESTION_AUDIO")
    seed_sample_templates: bool = _env_flag("SEED_SAMPLE_TEMPLATES")

    # OpenAI Whisper API Settings (for ASR)
    openai_api_key: str | None = os.getenv("OPENAI_API_KEY")
    whisper_api_url: str = os.getenv("WHISPER_API_URL", "https://api.openai.com/v1/audio/transcriptions")
    whisper_model: str = os.getenv("WHISPER_MODEL", "whisper-1")

    # ElevenLabs API Settings (for TTS)
    eleven_api_key: str | None = os.getenv("ELEVENLABS_API_KEY")
    eleven_api_base: str = os.getenv("ELEVENLABS_API_URL", "https://api.elevenlabs.io/v1")
    default_voice_id: str = os.getenv("DEFAULT_VOICE_ID", "21m00Tcm4TlvDq8ikWAM")

settings = Settings()  # Instantiate configuration
