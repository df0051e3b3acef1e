"""
Unit tests for configuration loading.
"""
import pytest

from chat_gateway.core.config import GatewayConfig, default_config, load_config
from chat_gateway.models import ProviderId


CONFIG_YAML = """
probe_timeout: 2.5
providers:
  - id: ollama
    base_url: http://gpu-box:11434
    extra:
      keep_alive: 10m
  - id: groq
    api_key: ${TEST_GROQ_KEY}
    timeout: 30
  - id: lmstudio
    enabled: false
"""


class TestLoadConfig:
    """Test YAML loading and environment expansion."""

    def test_load_yaml(self, tmp_path, monkeypatch):
        """Test providers, order, env expansion and timeouts."""
        monkeypatch.setenv("TEST_GROQ_KEY", "gsk-from-env")
        path = tmp_path / "providers.yaml"
        path.write_text(CONFIG_YAML)

        config = load_config(str(path))

        assert [p.id for p in config.providers] == [ProviderId.OLLAMA, ProviderId.GROQ, ProviderId.LMSTUDIO]
        assert config.probe_timeout == 2.5
        assert config.get(ProviderId.OLLAMA).extra == {"keep_alive": "10m"}
        assert config.get(ProviderId.GROQ).api_key == "gsk-from-env"
        assert config.get(ProviderId.GROQ).timeout == 30.0
        assert [p.id for p in config.enabled_providers] == [ProviderId.OLLAMA, ProviderId.GROQ]

    def test_unset_env_reference_is_none(self, tmp_path, monkeypatch):
        """Test a reference to an unset variable yields no value."""
        monkeypatch.delenv("TEST_GROQ_KEY", raising=False)
        path = tmp_path / "providers.yaml"
        path.write_text(CONFIG_YAML)

        assert load_config(str(path)).get(ProviderId.GROQ).api_key is None

    def test_missing_file_uses_defaults(self, tmp_path):
        """Test a missing file falls back to defaults."""
        config = load_config(str(tmp_path / "absent.yaml"))
        assert [p.id for p in config.providers] == list(ProviderId)

    def test_invalid_file_uses_defaults(self, tmp_path):
        """Test an unknown provider id in the file falls back to defaults."""
        path = tmp_path / "providers.yaml"
        path.write_text("providers:\n  - id: openrouter\n")
        assert len(load_config(str(path)).providers) == len(ProviderId)

    def test_defaults_from_environment(self, monkeypatch):
        """Test default settings read the environment."""
        monkeypatch.setenv("OLLAMA_HOST", "http://ollama.internal:11434")
        monkeypatch.setenv("GROQ_API_KEY", "gsk-env")
        monkeypatch.delenv("CEREBRAS_API_KEY", raising=False)

        config = default_config()

        assert config.get(ProviderId.OLLAMA).base_url == "http://ollama.internal:11434"
        assert config.get(ProviderId.GROQ).api_key == "gsk-env"
        assert config.get(ProviderId.CEREBRAS).api_key is None

    def test_from_dict_rejects_unknown_provider(self):
        """Test programmatic construction validates provider ids."""
        with pytest.raises(ValueError):
            GatewayConfig.from_dict({"providers": [{"id": "openrouter"}]})
