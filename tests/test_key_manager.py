"""
Dotfile-backed API key management.
"""

import os

import pytest

from codelens.llm.key_manager import KeyManager


@pytest.fixture
def manager(tmp_path):
    return KeyManager(env_file=tmp_path / "config" / ".env")


def test_mask_key():
    assert KeyManager.mask_key("sk-abcdefgh1234") == "sk-...1234"
    assert KeyManager.mask_key("short") == "****"


def test_save_writes_env_and_dotfile(manager):
    manager.save_api_key("openai", "sk-test-abcdef123456")

    assert os.environ["OPENAI_API_KEY"] == "sk-test-abcdef123456"
    assert "sk-test-abcdef123456" in manager.env_file.read_text()

    status = manager.get_api_key_status()
    assert status["openai"] == {"has_key": True, "is_valid": True, "masked": "sk-...3456"}
    assert status["anthropic"]["has_key"] is False


def test_key_with_wrong_prefix_is_stored_but_invalid(manager):
    manager.save_api_key("anthropic", "sk-not-anthropic-key")
    status = manager.get_api_key_status()["anthropic"]
    assert status["has_key"] is True
    assert status["is_valid"] is False


def test_delete_removes_key(manager):
    manager.save_api_key("gemini", "AIza-test-key-0000")
    manager.delete_api_key("gemini")

    assert "GEMINI_API_KEY" not in os.environ
    assert "AIza-test-key-0000" not in manager.env_file.read_text()
    assert manager.get_api_key("gemini") is None


def test_unknown_provider_is_rejected(manager):
    with pytest.raises(ValueError):
        manager.save_api_key("acme", "sk-123")
    with pytest.raises(ValueError):
        manager.delete_api_key("acme")
    assert manager.get_api_key("acme") is None


def test_default_env_file_follows_search_order(tmp_path, monkeypatch):
    explicit = tmp_path / "explicit.env"
    explicit.write_text("")
    monkeypatch.setenv("CODELENS_ENV_FILE", str(explicit))
    assert KeyManager().env_file == explicit
