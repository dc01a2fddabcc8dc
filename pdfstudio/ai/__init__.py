"""
PDF Studio AI Module
Tiered text generation for the document AI features.

Architecture:
=============
One orchestrator picks a single inference tier at startup, in priority order:

1. **Remote**: the PDF Studio AI microservice over HTTP (model hosting and
   response caching live there).

2. **Subprocess**: llama.cpp's llama-cli run per request against a local
   GGUF model, CPU only.

3. **Tensor**: an ONNX model run in-process with ONNX Runtime and a
   Hugging Face tokenizer. Output is screened for gibberish.

4. **Stub**: deterministic text statistics, so every operation still
   returns something useful with no model installed.
"""

from .errors import (
    EmptyOutput,
    EngineNotLoaded,
    ExecutableNotFound,
    GibberishOutput,
    InferenceError,
    ModelFileNotFound,
    ProcessExitFailure,
    ProcessTimeout,
    RemoteConnectFailure,
    RemoteError,
    RemoteServerError,
    RemoteTimeout,
    TempFileIOFailure,
    TensorRuntimeUnavailable,
    TokenizerUnavailable,
)
from .locator import ExecutableLocator
from .orchestrator import InferenceOrchestrator
from .process_engine import ProcessInferenceEngine
from .remote_client import RemoteInferenceClient
from .stub_responses import StubResponseGenerator
from .tensor_engine import TensorInferenceEngine
from .types import AIResponse, InferenceRequest, InferenceResult, ModelTier

__all__ = [
    'AIResponse',
    'EmptyOutput',
    'EngineNotLoaded',
    'ExecutableLocator',
    'ExecutableNotFound',
    'GibberishOutput',
    'InferenceError',
    'InferenceOrchestrator',
    'InferenceRequest',
    'InferenceResult',
    'ModelFileNotFound',
    'ModelTier',
    'ProcessExitFailure',
    'ProcessInferenceEngine',
    'ProcessTimeout',
    'RemoteConnectFailure',
    'RemoteError',
    'RemoteInferenceClient',
    'RemoteServerError',
    'RemoteTimeout',
    'StubResponseGenerator',
    'TempFileIOFailure',
    'TensorInferenceEngine',
    'TensorRuntimeUnavailable',
    'TokenizerUnavailable',
]
