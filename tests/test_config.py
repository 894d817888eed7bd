import pytest

from stt_bridge.config import SpeechBridgeConfig


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("PROVIDER", "API_KEY", "API_KEY_FILE", "LANGUAGE", "HANDSHAKE_TIMEOUT_SECONDS"):
        monkeypatch.delenv(f"STT_BRIDGE_{name}", raising=False)


class TestSpeechBridgeConfig:
    def test_defaults(self):
        config = SpeechBridgeConfig(_env_file=None)
        assert config.provider == "speechmatics"
        assert config.language is None
        assert config.handshake_timeout_seconds == 10.0
        assert config.frame_duration_ms == 20

    def test_reads_prefixed_environment(self, monkeypatch):
        monkeypatch.setenv("STT_BRIDGE_PROVIDER", "gladia")
        monkeypatch.setenv("STT_BRIDGE_LANGUAGE", "fr")
        monkeypatch.setenv("STT_BRIDGE_HANDSHAKE_TIMEOUT_SECONDS", "3.5")

        config = SpeechBridgeConfig(_env_file=None)

        assert config.provider == "gladia"
        assert config.language == "fr"
        assert config.handshake_timeout_seconds == 3.5

    def test_rejects_unknown_provider(self, monkeypatch):
        monkeypatch.setenv("STT_BRIDGE_PROVIDER", "whisper")
        with pytest.raises(ValueError):
            SpeechBridgeConfig(_env_file=None)

    def test_reads_env_file(self, tmp_path):
        env_file = tmp_path / ".env.local"
        env_file.write_text("STT_BRIDGE_API_KEY=from-file\nUNRELATED=1\n")
        config = SpeechBridgeConfig(_env_file=env_file)
        assert config.api_key == "from-file"


class TestResolveApiKey:
    def test_direct_key_wins(self, tmp_path):
        secret = tmp_path / "key"
        secret.write_text("from-secret")
        config = SpeechBridgeConfig(_env_file=None, api_key="direct", api_key_file=str(secret))
        assert config.resolve_api_key() == "direct"

    def test_reads_secret_file(self, tmp_path):
        secret = tmp_path / "key"
        secret.write_text("  from-secret\n")
        config = SpeechBridgeConfig(_env_file=None, api_key_file=str(secret))
        assert config.resolve_api_key() == "from-secret"

    def test_missing_secret_file(self, tmp_path):
        config = SpeechBridgeConfig(_env_file=None, api_key_file=str(tmp_path / "absent"))
        assert config.resolve_api_key() == ""

    def test_no_key(self):
        assert SpeechBridgeConfig(_env_file=None).resolve_api_key() == ""
