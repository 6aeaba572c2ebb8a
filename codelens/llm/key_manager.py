"""
API Key Manager.

Keys live in the process environment and are persisted to the active .env
file with python-dotenv, so they survive restarts and are picked up by the
same search order used at startup.
"""

import logging
import os
from pathlib import Path
from typing import Dict, Optional

from dotenv import set_key, unset_key

from ..config import USER_CONFIG_DIR, find_env_file
from .providers import PROVIDERS

logger = logging.getLogger(__name__)

VALID_PROVIDERS = tuple(PROVIDERS)


class KeyManager:
    """
    Reads, stores and masks provider credentials.

    Args:
        env_file: Dotfile to write to. Defaults to the first existing file in
                  the config search order, else ``~/.codelens/.env``.
    """

    def __init__(self, env_file: Optional[Path] = None):
        self._env_file = Path(env_file) if env_file else None

    @property
    def env_file(self) -> Path:
        if self._env_file is not None:
            return self._env_file
        return find_env_file() or USER_CONFIG_DIR / ".env"

    @staticmethod
    def mask_key(plaintext: str) -> str:
        """
        Mask an API key for display purposes.
        Shows first 3 and last 4 characters: 'sk-...a1b2'
        """
        if len(plaintext) <= 8:
            return "****"
        return f"{plaintext[:3]}...{plaintext[-4:]}"

    def get_api_key(self, provider: str) -> Optional[str]:
        if provider not in VALID_PROVIDERS:
            return None
        return PROVIDERS[provider].get_credential()

    def save_api_key(self, provider: str, plaintext_key: str):
        """Store a key in the environment and persist it to the dotfile."""
        if provider not in VALID_PROVIDERS:
            raise ValueError(f"Invalid provider: {provider}")

        env_var = PROVIDERS[provider].env_var
        os.environ[env_var] = plaintext_key

        path = self.env_file
        path.parent.mkdir(parents=True, exist_ok=True)
        path.touch(exist_ok=True)
        set_key(str(path), env_var, plaintext_key)
        logger.info("Saved %s to %s", env_var, path)

    def delete_api_key(self, provider: str):
        if provider not in VALID_PROVIDERS:
            raise ValueError(f"Invalid provider: {provider}")

        env_var = PROVIDERS[provider].env_var
        os.environ.pop(env_var, None)

        path = self.env_file
        if path.is_file():
            unset_key(str(path), env_var)
        logger.info("Removed %s", env_var)

    def get_api_key_status(self) -> Dict[str, dict]:
        """
        Get status of all provider keys.
        Returns {provider: {has_key, is_valid, masked}} for each provider.
        """
        status = {}
        for provider in VALID_PROVIDERS:
            key = self.get_api_key(provider)
            status[provider] = {
                "has_key": key is not None,
                "is_valid": PROVIDERS[provider].is_configured(),
                "masked": self.mask_key(key) if key else None,
            }
        return status


# Global singleton
key_manager = KeyManager()
