"""
Configuration management for Kawaii Narrator.
Handles loading and validation of pipeline settings.

Components keep a reference to their settings model and read it at every
decision point, so changes made by the host take effect immediately.
"""

import os
from pathlib import Path
from typing import Optional, List
from pydantic import BaseModel, Field
from dotenv import load_dotenv

# Load environment variables
load_dotenv()


class StreamConfig(BaseModel):
    """Chunk accumulation and segment extraction settings."""
    completion_timeout_ms: int = 1000
    start_markers: List[str] = ["⏺", "✦"]
    prompt_markers: List[str] = [">", "╭─", "│", "╰─"]
    strip_ansi: bool = True

    # Segments beyond this count are replaced by the overflow notice
    max_segments: int = 10
    overflow_notice: str = "他に{remaining}個のメッセージがあるが、負荷対策で省略したぞ"


class DuplicateConfig(BaseModel):
    """Duplicate speech suppression settings."""
    window_ms: int = 5000
    max_entries: int = 1000
    prune_ratio: float = 0.7


class VoiceConfig(BaseModel):
    """Voice synthesis and playback configuration."""
    enabled: bool = True
    engine_url: str = "http://localhost:10101"
    speaker_id: int = 888753760
    speed_scale: float = 1.2
    volume: int = 50  # 0-100, sent to the engine as volumeScale
    interval_seconds: float = 0.5
    request_timeout: float = 30.0
    max_queue_size: int = 10
    min_audio_bytes: int = 100


class ExpressionConfig(BaseModel):
    """Avatar expression transition settings."""
    neutralize_ms: int = 200
    apply_ms: int = 300
    frame_ms: int = 16
    lip_sync_channel: str = "aa"
    lip_sync_neutral_scale: float = 1.0
    lip_sync_emotion_scale: float = 0.5

    # Optional YAML emotion table replacing the built-in rules
    rules_file: Optional[str] = None


class AvatarConfig(BaseModel):
    """VRM avatar settings."""
    model_path: Optional[str] = None
    channels: List[str] = ["happy", "sad", "angry", "surprised", "relaxed", "neutral"]


class Config(BaseModel):
    """Main application configuration."""
    app_name: str = "Kawaii Narrator"
    version: str = "1.0.0"
    debug: bool = False
    log_level: str = "INFO"
    log_dir: str = "logs"

    # Component configurations
    stream: StreamConfig = Field(default_factory=StreamConfig)
    duplicates: DuplicateConfig = Field(default_factory=DuplicateConfig)
    voice: VoiceConfig = Field(default_factory=VoiceConfig)
    expression: ExpressionConfig = Field(default_factory=ExpressionConfig)
    avatar: AvatarConfig = Field(default_factory=AvatarConfig)


def _env_flag(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


def deep_merge(base: dict, override: dict) -> dict:
    """Deep merge two dictionaries."""
    for key, value in override.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            base[key] = deep_merge(base[key], value)
        else:
            base[key] = value
    return base


def load_config(config_file: Optional[str] = None) -> Config:
    """Load configuration from file or environment variables."""

    if config_file is None:
        config_file = "configs/config.yaml"

    config_path = Path(config_file)

    # Load from YAML if exists
    config_data = {}
    if config_path.exists() and config_path.suffix in ['.yaml', '.yml']:
        import yaml
        with open(config_path, 'r', encoding='utf-8') as f:
            config_data = yaml.safe_load(f) or {}

    # Override with environment variables
    env_overrides = {}

    if os.getenv('KAWAII_VOICE_ENGINE_URL'):
        env_overrides.setdefault('voice', {})['engine_url'] = os.getenv('KAWAII_VOICE_ENGINE_URL')
    if os.getenv('KAWAII_SPEAKER_ID'):
        env_overrides.setdefault('voice', {})['speaker_id'] = int(os.getenv('KAWAII_SPEAKER_ID'))
    if os.getenv('KAWAII_VOICE_ENABLED'):
        env_overrides.setdefault('voice', {})['enabled'] = _env_flag(os.getenv('KAWAII_VOICE_ENABLED'))
    if os.getenv('KAWAII_VOLUME'):
        env_overrides.setdefault('voice', {})['volume'] = int(os.getenv('KAWAII_VOLUME'))
    if os.getenv('KAWAII_LOG_LEVEL'):
        env_overrides['log_level'] = os.getenv('KAWAII_LOG_LEVEL')

    final_config = deep_merge(config_data, env_overrides)

    return Config(**final_config)


def save_config(config: Config, config_file: str = "configs/config.yaml"):
    """Save configuration to YAML file."""
    import yaml

    config_path = Path(config_file)
    config_path.parent.mkdir(parents=True, exist_ok=True)

    with open(config_path, 'w', encoding='utf-8') as f:
        yaml.dump(config.model_dump(), f, default_flow_style=False, indent=2, allow_unicode=True)
