"""
Tests for the injectable AI configuration.

Covers:
1. AIConfig / SamplingParams / ModelDescriptor validation
2. Declared model descriptors (lookup by file name)
3. load_ai_config() YAML loading and error reporting
"""

from pathlib import Path

import pytest

from pdfstudio.config import (
    DEFAULT_EXCERPT_BUDGETS,
    AIConfig,
    ModelDescriptor,
    SamplingParams,
    load_ai_config,
)


class TestAIConfig:
    """Tests for AIConfig defaults and validation."""

    def test_defaults(self):
        """Defaults should match the documented service and budget values."""
        config = AIConfig()

        assert config.remote_base_url == "http://localhost:8081/api/ai"
        assert config.health_attempts == 3
        assert config.health_retry_seconds == 1.0
        assert config.remote_summary_max_length == 500
        assert config.max_concurrent_requests == 1
        assert config.excerpt_budget("summarize") == 4000
        assert config.excerpt_budget("chat") == 3000
        assert config.excerpt_budget("translate") == 2000

    def test_chat_budget_smaller_than_summary_budget(self):
        config = AIConfig()
        assert config.excerpt_budget("chat") < config.excerpt_budget("summarize")

    @pytest.mark.parametrize("field_name", [
        "health_attempts", "process_timeout_seconds", "max_new_tokens", "max_concurrent_requests",
    ])
    def test_non_positive_values_rejected(self, field_name):
        """Zero for any count or timeout should raise ValueError."""
        with pytest.raises(ValueError, match=field_name):
            AIConfig(**{field_name: 0})

    def test_negative_retry_interval_rejected(self):
        with pytest.raises(ValueError):
            AIConfig(health_retry_seconds=-1)

    def test_invalid_excerpt_budget_rejected(self):
        with pytest.raises(ValueError, match="summarize"):
            AIConfig(excerpt_budgets={"summarize": 0})

    def test_unknown_operation_uses_chat_budget(self):
        assert AIConfig().excerpt_budget("something_else") == DEFAULT_EXCERPT_BUDGETS["chat"]


class TestModelDescriptors:
    """Model capabilities come from configuration, not filename guessing."""

    def test_describe_model_by_file_name(self):
        llama = ModelDescriptor(name="LLaMA 3.2 3B", context_length=4096)
        config = AIConfig(models={"llama.gguf": llama})

        assert config.describe_model(Path("/models/llama.gguf")) is llama

    def test_unknown_model_uses_default(self):
        config = AIConfig()
        assert config.describe_model("/models/mystery-phi-llama.gguf") == config.default_model
        assert config.describe_model(None) == config.default_model

    def test_invalid_sampling_rejected(self):
        with pytest.raises(ValueError):
            SamplingParams(temperature=-0.5)

    def test_invalid_context_length_rejected(self):
        with pytest.raises(ValueError):
            ModelDescriptor(context_length=0)

    def test_default_model_must_be_descriptor(self):
        with pytest.raises(ValueError):
            AIConfig(default_model="Generic")


class TestLoadAIConfig:
    """Tests for load_ai_config()."""

    def test_missing_file_yields_defaults(self, tmp_path):
        config = load_ai_config(tmp_path / "missing.yaml")
        assert config == AIConfig()

    def test_loads_values_and_descriptors(self, tmp_path):
        """YAML values and nested model descriptors should be parsed."""
        config_file = tmp_path / "ai.yaml"
        config_file.write_text(
            "remote_enabled: false\n"
            "health_attempts: 5\n"
            "engine_candidates: ['bin/llama-cli']\n"
            "excerpt_budgets:\n"
            "  summarize: 1000\n"
            "models:\n"
            "  tiny.gguf:\n"
            "    name: Tiny\n"
            "    context_length: 2048\n"
            "    sampling:\n"
            "      temperature: 0.2\n",
            encoding='utf-8',
        )

        config = load_ai_config(config_file)

        assert config.remote_enabled is False
        assert config.health_attempts == 5
        assert config.engine_candidates == ("bin/llama-cli",)
        assert config.excerpt_budget("summarize") == 1000
        assert config.excerpt_budget("chat") == 3000
        tiny = config.describe_model("tiny.gguf")
        assert tiny.name == "Tiny"
        assert tiny.context_length == 2048
        assert tiny.sampling.temperature == 0.2

    def test_overrides_win_over_file(self, tmp_path):
        config_file = tmp_path / "ai.yaml"
        config_file.write_text("remote_enabled: true\n", encoding='utf-8')

        config = load_ai_config(config_file, remote_enabled=False)

        assert config.remote_enabled is False

    def test_unknown_key_raises(self, tmp_path):
        config_file = tmp_path / "ai.yaml"
        config_file.write_text("not_a_setting: 1\n", encoding='utf-8')

        with pytest.raises(ValueError, match="not_a_setting"):
            load_ai_config(config_file)

    def test_malformed_yaml_raises(self, tmp_path):
        config_file = tmp_path / "ai.yaml"
        config_file.write_text("models: [unclosed\n", encoding='utf-8')

        with pytest.raises(ValueError):
            load_ai_config(config_file)

    def test_bad_descriptor_field_raises_value_error(self, tmp_path):
        config_file = tmp_path / "ai.yaml"
        config_file.write_text("models:\n  x.gguf:\n    colour: blue\n", encoding='utf-8')

        with pytest.raises(ValueError):
            load_ai_config(config_file)

    def test_scalar_default_model_rejected(self, tmp_path):
        """A bare name is not a descriptor and fails at load time."""
        config_file = tmp_path / "ai.yaml"
        config_file.write_text("default_model: Generic\n", encoding='utf-8')

        with pytest.raises(ValueError, match="default_model"):
            load_ai_config(config_file)

    def test_repository_config_loads(self):
        """The shipped config/ai_config.yaml should be valid."""
        config = load_ai_config()
        assert config.describe_model("phi-3-mini-4k-instruct-q4.gguf").name == "Phi-3 Mini"
