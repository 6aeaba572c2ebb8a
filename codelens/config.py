"""
Application configuration module.

Centralizes all configuration values and constants.
"""

import os
import tempfile
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

# Project paths
PROJECT_ROOT = Path(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
SOURCE_DIR = Path(os.path.dirname(os.path.abspath(__file__)))
USER_CONFIG_DIR = Path.home() / ".codelens"


def env_file_candidates() -> List[Path]:
    """
    Dotfile locations in search order.

    An explicit CODELENS_ENV_FILE wins, then the working directory, then the
    project root, then the per-user folder used by packaged builds.
    """
    candidates = []
    explicit = os.environ.get("CODELENS_ENV_FILE")
    if explicit:
        candidates.append(Path(explicit))
    candidates.append(Path.cwd() / ".env")
    candidates.append(PROJECT_ROOT / ".env")
    candidates.append(USER_CONFIG_DIR / ".env")
    return candidates


def find_env_file() -> Optional[Path]:
    """Return the first existing dotfile, or None."""
    for candidate in env_file_candidates():
        if candidate.is_file():
            return candidate
    return None


def load_environment() -> Optional[Path]:
    """Load the first dotfile found. Existing environment variables win."""
    env_file = find_env_file()
    if env_file is not None:
        load_dotenv(env_file, override=False)
    return env_file


# Load environment variables from the first .env file found
load_environment()

# Screenshot storage (temporary, per-slot files)
SCREENSHOT_FOLDER = os.path.join(tempfile.gettempdir(), "codelens-screenshots")

# Logs
LOG_DIR = PROJECT_ROOT / "logs"

# Server configuration
DEFAULT_PORT = 8000
MAX_PORT_ATTEMPTS = 10

# Capture ring
MAX_SLOTS = 2
MAX_IMAGE_BYTES = 20 * 1024 * 1024
CAPTURE_HIDE_DELAY_SECONDS = 0.3

# Analysis scheduling
ANALYSIS_DEBOUNCE_SECONDS = 0.5
ANALYSIS_TIMEOUT_SECONDS = 60

# Provider request parameters
MAX_TOKENS = 2000
TEMPERATURE = 0.1
REQUEST_TIMEOUT_SECONDS = 50


# Analysis modes
class AnalysisMode:
    CODE = "code"
    GENERAL = "general"

    ALL = (CODE, GENERAL)


# Global shortcuts (pynput GlobalHotKeys syntax) -> orchestrator action
HOTKEYS = {
    "<ctrl>+<alt>+h": "capture",
    "<ctrl>+<alt>+g": "reset",
    "<ctrl>+<alt>+<enter>": "trigger_analysis",
    "<ctrl>+<alt>+m": "toggle_mode",
    "<ctrl>+<alt>+n": "next_model",
    "<ctrl>+<alt>+p": "next_provider",
}
