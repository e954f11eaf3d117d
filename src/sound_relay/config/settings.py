import os
from pathlib import Path
from typing import Literal, Optional
from pydantic import BaseModel, Field, ConfigDict
from dotenv import load_dotenv
import logging

logger = logging.getLogger(__name__)

MAX_ARTIFACT_BYTES = 20 * 1024 * 1024


class SoundRelayConfig(BaseModel):
    ingest_url: str = Field(default="http://localhost:8000/api.php", min_length=1, description="URL of the remote ingestion endpoint")
    segment_duration_s: float = Field(default=10.0, gt=0, description="Length of one capture segment in seconds")
    settle_delay_s: float = Field(default=0.05, ge=0, description="Pause after releasing the input device before the next segment acquires it")
    max_retries: int = Field(default=3, ge=1, description="Total upload attempts per segment")
    retry_delay_s: float = Field(default=0.0, ge=0, description="Pause between upload attempts")
    max_artifact_bytes: int = Field(default=MAX_ARTIFACT_BYTES, gt=0, description="Largest artifact accepted for upload")
    request_timeout_s: float = Field(default=30.0, gt=0, description="HTTP timeout for one upload attempt")
    delivery_mode: Literal["digest", "name"] = Field(default="digest", description="Send content with its digest, or with its name")
    input_device: Optional[str] = Field(default=None, description="sounddevice input device (index or name); system default when unset")
    output_device: Optional[str] = Field(default=None, description="sounddevice output device for reference playback")
    preferred_sample_rate: int = Field(default=44100, gt=0, description="Sample rate used when the device supports it")
    preferred_channels: int = Field(default=2, ge=1, description="Channel count used when the device supports it")
    artifact_dir: str = Field(default=".", description="Directory segment artifacts are written to")
    artifact_ext: str = Field(default="wav", min_length=1, description="Artifact file extension")
    clear_on_start: bool = Field(default=True, description="Ask the remote store to drop old records at startup")
    max_delivery_workers: int = Field(default=16, ge=1, description="Threads available to background uploads")
    db_path: str = Field(default="sound_relay.db", description="sqlite database used by the ingestion server")
    log_level: str = Field(default="INFO", description="Logging level")

    model_config = ConfigDict(
        env_file=".env",
        env_file_encoding="utf-8"
    )


def _optional(name: str) -> Optional[str]:
    value = os.getenv(name, "").strip()
    return value or None


def load_config(config_path: Optional[Path] = None) -> SoundRelayConfig:
    if config_path is None:
        config_path = Path(".env")

    if config_path.exists():
        load_dotenv(config_path)
        logger.info(f"Loaded environment variables from {config_path}")
    else:
        logger.warning(f"Config file {config_path} not found, using environment variables only")

    try:
        config = SoundRelayConfig(
            ingest_url=os.getenv("INGEST_URL", "http://localhost:8000/api.php"),
            segment_duration_s=float(os.getenv("SEGMENT_DURATION_S", "10.0")),
            settle_delay_s=float(os.getenv("SETTLE_DELAY_S", "0.05")),
            max_retries=int(os.getenv("MAX_RETRIES", "3")),
            retry_delay_s=float(os.getenv("RETRY_DELAY_S", "0.0")),
            max_artifact_bytes=int(os.getenv("MAX_ARTIFACT_BYTES", str(MAX_ARTIFACT_BYTES))),
            request_timeout_s=float(os.getenv("REQUEST_TIMEOUT_S", "30.0")),
            delivery_mode=os.getenv("DELIVERY_MODE", "digest").lower(),
            input_device=_optional("INPUT_DEVICE"),
            output_device=_optional("OUTPUT_DEVICE"),
            preferred_sample_rate=int(os.getenv("PREFERRED_SAMPLE_RATE", "44100")),
            preferred_channels=int(os.getenv("PREFERRED_CHANNELS", "2")),
            artifact_dir=os.getenv("ARTIFACT_DIR", "."),
            artifact_ext=os.getenv("ARTIFACT_EXT", "wav").lstrip("."),
            clear_on_start=os.getenv("CLEAR_ON_START", "true").lower() in ("true", "1", "yes"),
            max_delivery_workers=int(os.getenv("MAX_DELIVERY_WORKERS", "16")),
            db_path=os.getenv("DB_PATH", "sound_relay.db"),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )
        return config

    except Exception as e:
        logger.error(f"Failed to load configuration: {e}")
        raise ValueError(str(e)) from e


def parse_device(value: Optional[str]):
    """sounddevice accepts either a numeric index or a name substring."""
    if value is None:
        return None
    return int(value) if value.isdigit() else value


def create_example_env_file(path: Path = Path(".env.example")):
    example_content = """# Remote ingestion endpoint (uploads and the startup clear request)
INGEST_URL=http://localhost:8000/api.php

# Capture timing
SEGMENT_DURATION_S=10.0
SETTLE_DELAY_S=0.05

# Upload policy
MAX_RETRIES=3
RETRY_DELAY_S=0.0
MAX_ARTIFACT_BYTES=20971520
REQUEST_TIMEOUT_S=30.0
# digest: content + SHA-256 digest, name: content + file name
DELIVERY_MODE=digest
MAX_DELIVERY_WORKERS=16

# Audio devices (index or name, empty for system default)
INPUT_DEVICE=
OUTPUT_DEVICE=
PREFERRED_SAMPLE_RATE=44100
PREFERRED_CHANNELS=2

# Artifacts
ARTIFACT_DIR=.
ARTIFACT_EXT=wav

# Drop old records on the server before capturing (true/false)
CLEAR_ON_START=true

# Ingestion server storage
DB_PATH=sound_relay.db

# Logging level
LOG_LEVEL=INFO
"""

    with open(path, "w") as f:
        f.write(example_content)

    logger.info(f"Created example environment file at {path}")


def setup_logging(log_level: str = "INFO"):
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )
