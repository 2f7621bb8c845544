#!/usr/bin/env python3
from dataclasses import dataclass
import os
from pathlib import Path
from dotenv import load_dotenv

load_dotenv()


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ["true", "1", "yes"]


@dataclass
class Config:
    """Application configuration"""
    workspace: Path = Path(os.getenv("AUTOCAPTCHA_WORKSPACE", "./workspace"))
    request_timeout: int = int(os.getenv("AUTOCAPTCHA_REQUEST_TIMEOUT", "60"))
    headless: bool = _flag("AUTOCAPTCHA_HEADLESS", "true")
    api_port: int = int(os.getenv("AUTOCAPTCHA_API_PORT", os.getenv("API_PORT", "8010")))
    enable_debug: bool = _flag("AUTOCAPTCHA_DEBUG", "false")
    log_dir: Path = Path(os.getenv("AUTOCAPTCHA_LOG_DIR", "./logs"))
    run_log: bool = _flag("AUTOCAPTCHA_RUN_LOG", "false")

    # Element screenshot when canvas pixel reads are blocked cross-origin
    screenshot_fallback: bool = _flag("AUTOCAPTCHA_SCREENSHOT_FALLBACK", "true")

    # One input per image instead of nearest-input-per-image
    exclusive_pairing: bool = _flag("AUTOCAPTCHA_EXCLUSIVE_PAIRING", "false")

    # Settle time before the first automatic detection on a fresh page
    detect_delay_ms: int = int(os.getenv("AUTOCAPTCHA_DETECT_DELAY_MS", "1000"))

    @property
    def store_path(self) -> Path:
        return self.workspace / "autocaptcha.json"


config = Config()
