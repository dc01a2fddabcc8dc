"""
PDF Studio Configuration Module
Centralized configuration for the AI assistant core.

Application-wide constants (paths, debug flag, log format) live at module
level. Everything the inference orchestrator needs is carried by an explicitly
constructed AIConfig that callers pass in; nothing in here is mutated at
runtime.
"""

import os
from dataclasses import dataclass, field, fields, replace
from pathlib import Path

import yaml

# Debug Mode Configuration
DEBUG_MODE = os.environ.get('DEBUG', 'false').lower() == 'true'

# Application Paths
APP_NAME = "PDFStudio"
APPDATA_DIR = Path(os.environ.get('APPDATA', os.path.expanduser('~/.config'))) / APP_NAME
MODELS_DIR = APPDATA_DIR / "models"
LOGS_DIR = APPDATA_DIR / "logs"

# Default AI configuration file shipped with the application
AI_CONFIG_FILE = Path(__file__).parent.parent / "config" / "ai_config.yaml"

# Logging Configuration
LOG_FILE = LOGS_DIR / "processing.log"
DEBUG_FLOW_FILE = LOGS_DIR / "debug_flow.txt"
LOG_FORMAT = "[%(levelname)s %(asctime)s] %(message)s"
LOG_DATE_FORMAT = "%H:%M:%S"

# Remote AI service (sibling microservice)
AI_SERVICE_URL = "http://localhost:8081/api/ai"
AI_SERVICE_TIMEOUT_SECONDS = 60
AI_SERVICE_HEALTH_TIMEOUT_SECONDS = 5
AI_SERVICE_HEALTH_ATTEMPTS = 3
AI_SERVICE_HEALTH_RETRY_SECONDS = 1.0

# llama.cpp CLI engine. No timeout existed originally; a runaway child is
# killed after this many seconds.
LLAMA_CLI_TIMEOUT_SECONDS = 300

# Line prefixes of the diagnostics llama.cpp prints before (and after) the
# completion. Extend in ai_config.yaml for other engine builds.
DEFAULT_LOG_FILTER_PATTERNS = (
    "llama_model_load",
    "llm_load_",
    "llama_new_context",
    "llama_perf",
    "llama_print_timings",
    "load_backend",
    "ggml_",
    "system_info:",
    "sampling:",
    "sampler seed",
    "sampler params",
    "sampler chain",
    "generate: n_ctx",
    "build:",
    "main: ",
    "error:",
)

# Candidate locations, checked in order
DEFAULT_ENGINE_CANDIDATES = (
    "llama.cpp/build/bin/Release/llama-cli.exe",
    "llama.cpp/build/bin/llama-cli",
    "llama.cpp/build/bin/llama-cli.exe",
    "llama.cpp/llama-cli",
    "llama.cpp/llama-cli.exe",
    "llama-cli",
    "llama-cli.exe",
    "C:/llama.cpp/build/bin/Release/llama-cli.exe",
    "llama.cpp/build/bin/Release/main.exe",
    "llama.cpp/build/bin/main",
)

DEFAULT_GGUF_CANDIDATES = (
    "models/Llama-3.2-3B-Instruct-Q6_K_L.gguf",
    "models/phi-3-mini-4k-instruct-q4.gguf",
    "Models/Llama-3.2-3B-Instruct-Q6_K_L.gguf",
    "Models/phi-3-mini-4k-instruct-q4.gguf",
    str(MODELS_DIR / "Llama-3.2-3B-Instruct-Q6_K_L.gguf"),
    str(MODELS_DIR / "phi-3-mini-4k-instruct-q4.gguf"),
)

DEFAULT_ONNX_CANDIDATES = (
    "models/model.onnx",
    "models/llama/model.onnx",
    "models/phi3/model.onnx",
    str(MODELS_DIR / "model.onnx"),
)

DEFAULT_TOKENIZER = "bert-base-uncased"

# Character budgets for the document excerpt embedded in each prompt
DEFAULT_EXCERPT_BUDGETS = {
    "summarize": 4000,
    "chat": 3000,
    "entities": 3000,
    "insights": 3000,
    "sensitive": 3000,
    "tables": 3000,
    "translate": 2000,
}


@dataclass(frozen=True)
class SamplingParams:
    """Sampling parameters handed to the CLI engine."""
    temperature: float = 0.7
    top_k: int = 40
    top_p: float = 0.9
    repeat_penalty: float = 1.1

    def __post_init__(self):
        if self.temperature < 0:
            raise ValueError(f"temperature must be >= 0, got {self.temperature}")
        if self.top_k < 0:
            raise ValueError(f"top_k must be >= 0, got {self.top_k}")
        if not 0 < self.top_p <= 1:
            raise ValueError(f"top_p must be in (0, 1], got {self.top_p}")
        if self.repeat_penalty <= 0:
            raise ValueError(f"repeat_penalty must be > 0, got {self.repeat_penalty}")


@dataclass(frozen=True)
class ModelDescriptor:
    """
    Declared capabilities of one model file.

    Attributes:
        name: Human-readable model family (e.g. "LLaMA 3.2 3B").
        context_length: Total token window (prompt + completion).
        sampling: Default sampling parameters for the model.
    """
    name: str = "Generic"
    context_length: int = 512
    sampling: SamplingParams = field(default_factory=SamplingParams)

    def __post_init__(self):
        if self.context_length <= 0:
            raise ValueError(f"context_length must be positive, got {self.context_length}")


@dataclass(frozen=True)
class AIConfig:
    """
    Everything the inference orchestrator needs, passed in at construction.

    Candidate path lists are ordered; the first usable entry wins. Model
    descriptors are keyed by model file name (not full path).
    """
    remote_enabled: bool = True
    remote_base_url: str = AI_SERVICE_URL
    remote_timeout_seconds: float = AI_SERVICE_TIMEOUT_SECONDS
    health_timeout_seconds: float = AI_SERVICE_HEALTH_TIMEOUT_SECONDS
    health_attempts: int = AI_SERVICE_HEALTH_ATTEMPTS
    health_retry_seconds: float = AI_SERVICE_HEALTH_RETRY_SECONDS
    remote_summary_max_length: int = 500

    engine_candidates: tuple[str, ...] = DEFAULT_ENGINE_CANDIDATES
    gguf_candidates: tuple[str, ...] = DEFAULT_GGUF_CANDIDATES
    onnx_candidates: tuple[str, ...] = DEFAULT_ONNX_CANDIDATES
    tokenizer: str = DEFAULT_TOKENIZER

    process_timeout_seconds: float = LLAMA_CLI_TIMEOUT_SECONDS
    log_filter_patterns: tuple[str, ...] = DEFAULT_LOG_FILTER_PATTERNS
    extra_engine_args: tuple[str, ...] = ()

    max_new_tokens: int = 512
    max_concurrent_requests: int = 1
    tensor_max_threads: int = 4
    excerpt_budgets: dict = field(default_factory=lambda: dict(DEFAULT_EXCERPT_BUDGETS))

    default_model: ModelDescriptor = field(default_factory=ModelDescriptor)
    models: dict = field(default_factory=dict)

    def __post_init__(self):
        positive = (
            'remote_timeout_seconds', 'health_timeout_seconds', 'health_attempts',
            'remote_summary_max_length', 'process_timeout_seconds', 'max_new_tokens',
            'max_concurrent_requests', 'tensor_max_threads',
        )
        for name in positive:
            value = getattr(self, name)
            if value <= 0:
                raise ValueError(f"{name} must be positive, got {value}")
        if self.health_retry_seconds < 0:
            raise ValueError(f"health_retry_seconds must be >= 0, got {self.health_retry_seconds}")
        for operation, budget in self.excerpt_budgets.items():
            if budget <= 0:
                raise ValueError(f"excerpt budget for '{operation}' must be positive, got {budget}")
        if not isinstance(self.default_model, ModelDescriptor):
            raise ValueError("default_model must be a ModelDescriptor")
        for key, descriptor in self.models.items():
            if not isinstance(descriptor, ModelDescriptor):
                raise ValueError(f"models['{key}'] must be a ModelDescriptor")

    def excerpt_budget(self, operation: str) -> int:
        """Character budget for an operation's document excerpt."""
        return self.excerpt_budgets.get(operation, DEFAULT_EXCERPT_BUDGETS["chat"])

    def describe_model(self, model_path) -> ModelDescriptor:
        """
        Look up the declared descriptor for a model file.

        Args:
            model_path: Path (or name) of the model file

        Returns:
            The descriptor registered under the file's name, else the default
        """
        if model_path is None:
            return self.default_model
        return self.models.get(Path(model_path).name, self.default_model)


def _build_sampling(raw: dict | None) -> SamplingParams:
    if not raw:
        return SamplingParams()
    return SamplingParams(**raw)


def _build_descriptor(raw: dict) -> ModelDescriptor:
    raw = dict(raw)
    sampling = _build_sampling(raw.pop('sampling', None))
    return ModelDescriptor(sampling=sampling, **raw)


def load_ai_config(config_file: Path | None = None, **overrides) -> AIConfig:
    """
    Load the AI configuration from YAML.

    A missing file yields the built-in defaults. Unknown keys and invalid
    values raise ValueError so misconfiguration surfaces at startup rather
    than as a silent fallback later.

    Args:
        config_file: YAML file to read (defaults to config/ai_config.yaml)
        **overrides: Field values applied on top of the file

    Returns:
        AIConfig: The validated configuration
    """
    config_file = Path(config_file) if config_file is not None else AI_CONFIG_FILE

    data = {}
    if config_file.exists():
        try:
            with open(config_file, encoding='utf-8') as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ValueError(f"Could not parse AI config {config_file}: {e}") from e
        if not isinstance(data, dict):
            raise ValueError(f"AI config {config_file} must contain a mapping")
    else:
        from pdfstudio.logging_config import debug_log
        debug_log(f"[Config] AI config not found at {config_file}. Using defaults.")

    data = {**data, **overrides}
    known = {f.name for f in fields(AIConfig)}
    unknown = set(data) - known
    if unknown:
        raise ValueError(f"Unknown AI config keys: {sorted(unknown)}")

    try:
        kwargs = {}
        for key, value in data.items():
            if key in ('engine_candidates', 'gguf_candidates', 'onnx_candidates',
                       'log_filter_patterns', 'extra_engine_args'):
                value = tuple(str(v) for v in value)
            elif key == 'excerpt_budgets':
                value = {**DEFAULT_EXCERPT_BUDGETS, **value}
            elif key == 'default_model' and isinstance(value, dict):
                value = _build_descriptor(value)
            elif key == 'models':
                value = {
                    name: d if isinstance(d, ModelDescriptor) else _build_descriptor(d)
                    for name, d in (value or {}).items()
                }
            kwargs[key] = value
        return replace(AIConfig(), **kwargs)
    except TypeError as e:
        raise ValueError(f"Invalid AI config: {e}") from e
