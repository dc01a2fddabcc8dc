"""
ONNX Runtime Engine for PDF Studio

In-process fallback for machines without llama.cpp. Loads an ONNX model with
a Hugging Face tokenizer, runs a single forward pass and greedy-decodes the
logits.

Known limitation: one forward pass over the prompt is not autoregressive
generation. With encoder models such as BERT the decode is usually
unreadable, which is why callers screen the output with is_gibberish()
before accepting it.

onnxruntime and transformers are imported lazily so a missing or broken
install only disables this tier instead of breaking application startup.
"""

import time
import traceback
from pathlib import Path

import numpy as np

from ..config import AIConfig
from ..logging_config import debug_log, debug_timing, error, warning
from ..system_resources import get_inference_threads
from .errors import (
    EngineNotLoaded,
    InferenceError,
    ModelFileNotFound,
    TensorRuntimeUnavailable,
    TokenizerUnavailable,
)
from .locator import ExecutableLocator
from .types import InferenceRequest

# Output ids that end decoding: BERT [SEP], </s>, GPT-2 <|endoftext|>
EOS_TOKEN_IDS = frozenset({102, 2, 50256})

# Fewer input tokens than this after reserving the completion budget triggers
# a rebalance between input and output.
MIN_INPUT_TOKENS = 128
REBALANCED_INPUT_TOKENS = 256


def plan_token_budget(context_length: int, max_new_tokens: int) -> tuple[int, int]:
    """
    Split the context window between prompt tokens and new tokens.

    Args:
        context_length: Total window of the model
        max_new_tokens: Requested completion budget

    Returns:
        tuple[int, int]: (max_input_length, max_new_tokens)
    """
    max_input_length = context_length - max_new_tokens
    if max_input_length < MIN_INPUT_TOKENS:
        max_input_length = min(REBALANCED_INPUT_TOKENS, context_length // 2)
        max_new_tokens = context_length - max_input_length
        debug_log(
            f"[ONNX MODEL] Adjusted max input length to {max_input_length} "
            f"and max new tokens to {max_new_tokens}"
        )
    return max_input_length, max_new_tokens


def greedy_decode(logits, max_new_tokens: int, eos_ids=EOS_TOKEN_IDS) -> list[int]:
    """
    Pick the highest-scoring token at each output position.

    Args:
        logits: Array shaped (batch, positions, vocab); batch 0 is used
        max_new_tokens: Maximum number of ids to emit
        eos_ids: Ids that stop decoding (the stop id itself is kept)

    Returns:
        list[int]: Chosen token ids
    """
    logits = np.asarray(logits)
    if logits.ndim != 3:
        raise InferenceError(f"Expected logits of rank 3, got shape {logits.shape}")

    positions = min(max_new_tokens, logits.shape[1])
    output_ids = []
    for position in range(positions):
        token_id = int(np.argmax(logits[0, position]))
        output_ids.append(token_id)
        if token_id in eos_ids:
            break
    return output_ids


class TensorInferenceEngine:
    """
    Manages an ONNX Runtime session plus tokenizer for in-process inference.

    Construction only records configuration; load_model() does the work and
    leaves the engine either fully usable or unloaded. Release with close()
    or by using the engine as a context manager.
    """

    def __init__(self, config: AIConfig, locator: ExecutableLocator | None = None):
        self.config = config
        self.locator = locator or ExecutableLocator()
        self.session = None
        self.tokenizer = None
        self.model_path: Path | None = None
        self.descriptor = config.default_model
        self._input_names: set[str] = set()

    @property
    def model_type(self) -> str:
        return self.descriptor.name

    @property
    def context_length(self) -> int:
        return self.descriptor.context_length

    def _get_onnxruntime(self):
        """Lazy import of onnxruntime."""
        try:
            import onnxruntime as ort
        except (ImportError, OSError) as e:
            # OSError: DLL initialization failure on Windows
            raise TensorRuntimeUnavailable(f"ONNX Runtime not available: {e}") from e
        return ort

    def _load_tokenizer(self):
        try:
            from transformers import AutoTokenizer
        except ImportError as e:
            raise TokenizerUnavailable(f"transformers not installed: {e}") from e

        try:
            return AutoTokenizer.from_pretrained(self.config.tokenizer)
        except (OSError, ValueError) as e:
            raise TokenizerUnavailable(
                f"Could not load tokenizer '{self.config.tokenizer}': {e}"
            ) from e

    def load_model(self) -> bool:
        """
        Locate the ONNX model and create a CPU session and tokenizer.

        Returns:
            bool: True if both the session and tokenizer loaded
        """
        debug_log("[ONNX MODEL LOAD] Starting load_model()")
        load_start = time.time()

        try:
            model_path = self.locator.locate_model(self.config.onnx_candidates, suffix=".onnx")
            if model_path is None:
                raise ModelFileNotFound("No ONNX model found in candidate locations")

            ort = self._get_onnxruntime()
            options = ort.SessionOptions()
            options.intra_op_num_threads = get_inference_threads(self.config.tensor_max_threads)
            options.graph_optimization_level = ort.GraphOptimizationLevel.ORT_ENABLE_BASIC
            options.enable_mem_pattern = True

            try:
                session = ort.InferenceSession(
                    str(model_path), sess_options=options, providers=["CPUExecutionProvider"]
                )
            except Exception as e:
                raise TensorRuntimeUnavailable(f"Failed to create ONNX session: {e}") from e

            tokenizer = self._load_tokenizer()

        except InferenceError as e:
            warning(f"ONNX model not loaded: {e}")
            debug_log(f"[ONNX MODEL LOAD] Checked locations: {list(self.config.onnx_candidates)}")
            self.close()
            return False
        except Exception as e:
            error(f"Unexpected error loading ONNX model: {e}")
            debug_log(f"[ONNX MODEL LOAD ERROR] Traceback:\n{traceback.format_exc()}")
            self.close()
            return False

        self.session = session
        self.tokenizer = tokenizer
        self.model_path = model_path
        self.descriptor = self.config.describe_model(model_path)
        self._input_names = {i.name for i in session.get_inputs()}

        debug_timing("[ONNX MODEL LOAD] Model load", time.time() - load_start)
        debug_log(
            f"[ONNX MODEL LOAD] Loaded {model_path} "
            f"(type: {self.model_type}, context: {self.context_length}, "
            f"inputs: {sorted(self._input_names)})"
        )
        return True

    def is_model_loaded(self) -> bool:
        return self.session is not None and self.tokenizer is not None

    def generate(self, request: InferenceRequest) -> str:
        """
        Single forward pass plus greedy decode.

        Args:
            request: Prompt and completion budget (sampling is ignored)

        Returns:
            str: Decoded text (unscreened; see is_gibberish)

        Raises:
            EngineNotLoaded: No session
            TokenizerUnavailable: No tokenizer
            InferenceError: Runtime or decoding failure
        """
        if self.session is None:
            raise EngineNotLoaded("ONNX model not loaded")
        if self.tokenizer is None:
            raise TokenizerUnavailable("Tokenizer not initialized")

        debug_log(f"[ONNX MODEL] Generating text for prompt (length: {len(request.prompt)})")

        try:
            input_ids = self.tokenizer.encode(request.prompt, add_special_tokens=True)
            debug_log(f"[ONNX MODEL] Tokenized input: {len(input_ids)} tokens")

            max_input_length, max_new_tokens = plan_token_budget(
                self.context_length, request.max_new_tokens
            )
            if len(input_ids) > max_input_length:
                debug_log(f"[ONNX MODEL] Truncated input from {len(input_ids)} to {max_input_length} tokens")
                input_ids = input_ids[:max_input_length]

            ids = np.asarray([input_ids], dtype=np.int64)
            feeds = {
                "input_ids": ids,
                "attention_mask": np.ones_like(ids),
                "token_type_ids": np.zeros_like(ids),
            }
            if self._input_names:
                feeds = {name: value for name, value in feeds.items() if name in self._input_names}

            outputs = self.session.run(None, feeds)
            output_ids = greedy_decode(outputs[0], max_new_tokens)
            debug_log(f"[ONNX MODEL] Decoded {len(output_ids)} output tokens")

            text = self.tokenizer.decode(output_ids, skip_special_tokens=True)

        except InferenceError:
            raise
        except Exception as e:
            error(f"ONNX inference failed: {e}")
            debug_log(f"[ONNX MODEL] Traceback:\n{traceback.format_exc()}")
            raise InferenceError(f"Inference failed: {e}") from e

        preview = text[:200] + "..." if len(text) > 200 else text
        debug_log(f"[ONNX MODEL] Output preview: {preview}")
        return text

    def close(self):
        """Release the session and tokenizer. Never raises."""
        try:
            if self.session is not None:
                self.session = None
                debug_log("[ONNX MODEL] Session closed")
            if self.tokenizer is not None:
                self.tokenizer = None
                debug_log("[ONNX MODEL] Tokenizer closed")
        except Exception as e:
            error(f"Error closing ONNX model session: {e}")
        self._input_names = set()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
