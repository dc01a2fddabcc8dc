"""
Inference Orchestrator for PDF Studio

Settles once, at construction, on the best available inference tier and runs
every document AI operation through it:

    Remote (AI microservice) > Subprocess (llama-cli + GGUF)
        > Tensor (ONNX Runtime) > Stub (text statistics)

Guarantees:
- Every operation returns non-empty output; engine exceptions never escape.
- Unusable output (empty, error-shaped, or gibberish from the tensor tier)
  is replaced by the stub response for that operation.
- If the remote tier fails mid-call, a local tier is resolved once (lazily)
  and used for that call; orchestrator.tier itself never changes.
- Each tier admits at most config.max_concurrent_requests calls at a time.
"""

import re
import threading
from collections.abc import Callable

from ..config import AIConfig
from ..logging_config import Timer, debug_log, info, warning
from .errors import EmptyOutput, GibberishOutput, InferenceError
from .locator import ExecutableLocator
from .output_sanitizer import is_error_placeholder, is_gibberish
from .process_engine import ProcessInferenceEngine
from .prompt_templates import (
    build_chat_prompt,
    build_entities_prompt,
    build_insights_prompt,
    build_sensitive_prompt,
    build_summarize_prompt,
    build_tables_prompt,
    build_translate_prompt,
    truncate_text,
)
from .remote_client import RemoteInferenceClient
from .stub_responses import StubResponseGenerator
from .tensor_engine import TensorInferenceEngine
from .types import AIResponse, InferenceRequest, InferenceResult, ModelTier

MODEL_CONFIDENCE = 0.85
STUB_CONFIDENCE = 0.5

_LIST_MARKER = re.compile(r"^(?:[-*•]|\d+[.)])\s*")


def parse_list_output(text: str) -> list[str]:
    """Split model output into items, dropping bullets and numbering."""
    items = []
    for line in text.splitlines():
        item = _LIST_MARKER.sub("", line.strip()).strip()
        if item:
            items.append(item)
    return items


class InferenceOrchestrator:
    """
    Single entry point for the AI features.

    Engines may be injected (tests do this); anything not injected is built
    from the configuration only when tier selection reaches it.

    Example:
        orchestrator = InferenceOrchestrator(load_ai_config())
        print(orchestrator.tier)
        summary = orchestrator.summarize(text, title="report.pdf")
    """

    def __init__(
        self,
        config: AIConfig | None = None,
        *,
        remote_client=None,
        locator: ExecutableLocator | None = None,
        process_engine=None,
        tensor_engine=None,
        stub: StubResponseGenerator | None = None,
        cancel_event: threading.Event | None = None,
    ):
        """
        Args:
            config: AI configuration (defaults to AIConfig())
            remote_client: Client for the AI microservice
            locator: Path resolver shared by the local engines
            process_engine: llama-cli engine
            tensor_engine: ONNX Runtime engine (load_model() is called here)
            stub: Model-free response generator
            cancel_event: Aborts the remote availability retry loop when set
        """
        self.config = config or AIConfig()
        self.locator = locator or ExecutableLocator()
        self.stub = stub or StubResponseGenerator()

        self._remote_client = remote_client
        self._process_engine = process_engine
        self._tensor_engine = tensor_engine

        self._slots = {
            tier: threading.BoundedSemaphore(self.config.max_concurrent_requests)
            for tier in (ModelTier.REMOTE, ModelTier.SUBPROCESS, ModelTier.TENSOR)
        }
        self._fallback_lock = threading.Lock()
        self._fallback_tier: ModelTier | None = None

        with Timer("AI tier selection"):
            self.tier = self._select_tier(cancel_event)
        info(f"AI tier selected: {self.tier.value} ({self.model_type})")

    # ------------------------------------------------------------------
    # Engines
    # ------------------------------------------------------------------

    @property
    def remote_client(self):
        if self._remote_client is None:
            self._remote_client = RemoteInferenceClient(self.config)
        return self._remote_client

    @property
    def process_engine(self):
        if self._process_engine is None:
            self._process_engine = ProcessInferenceEngine(self.config, self.locator)
        return self._process_engine

    @property
    def tensor_engine(self):
        if self._tensor_engine is None:
            self._tensor_engine = TensorInferenceEngine(self.config, self.locator)
        return self._tensor_engine

    def _engine_for(self, tier: ModelTier):
        if tier is ModelTier.SUBPROCESS:
            return self.process_engine
        if tier is ModelTier.TENSOR:
            return self.tensor_engine
        raise ValueError(f"No local engine for tier {tier.value}")

    # ------------------------------------------------------------------
    # Tier selection
    # ------------------------------------------------------------------

    def _probe(self, label: str, check: Callable[[], bool]) -> bool:
        try:
            available = bool(check())
        except Exception as e:
            warning(f"{label} probe failed: {e}")
            return False
        debug_log(f"[ORCHESTRATOR] {label} available: {available}")
        return available

    def _select_tier(self, cancel_event: threading.Event | None) -> ModelTier:
        if self.config.remote_enabled and self._probe(
            "AI microservice", lambda: self.remote_client.is_available(cancel_event)
        ):
            return ModelTier.REMOTE
        return self._select_local_tier()

    def _select_local_tier(self) -> ModelTier:
        if self._probe("llama.cpp engine", lambda: self.process_engine.is_model_loaded()):
            return ModelTier.SUBPROCESS

        def _load_tensor():
            engine = self.tensor_engine
            return engine.is_model_loaded() or engine.load_model()

        if self._probe("ONNX engine", _load_tensor):
            return ModelTier.TENSOR

        warning("No AI model available. Using statistics-based responses.")
        return ModelTier.STUB

    def _local_fallback_tier(self) -> ModelTier:
        """Local tier used when the remote tier fails; resolved once."""
        with self._fallback_lock:
            if self._fallback_tier is None:
                debug_log("[ORCHESTRATOR] Resolving local fallback for the remote tier")
                self._fallback_tier = self._select_local_tier()
                info(f"Remote fallback tier: {self._fallback_tier.value}")
            return self._fallback_tier

    @property
    def model_type(self) -> str:
        """Human-readable label of the model behind the active tier."""
        if self.tier is ModelTier.REMOTE:
            return "AI microservice"
        if self.tier is ModelTier.SUBPROCESS:
            return self.process_engine.model_type
        if self.tier is ModelTier.TENSOR:
            return self.tensor_engine.model_type
        return "Stub"

    def status(self) -> dict:
        return {
            'tier': self.tier.value,
            'model': self.model_type,
            'remote_url': self.config.remote_base_url,
            'remote_fallback_tier': self._fallback_tier.value if self._fallback_tier else None,
        }

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def _request(self, prompt: str, tier: ModelTier) -> InferenceRequest:
        descriptor = getattr(self._engine_for(tier), 'descriptor', self.config.default_model)
        return InferenceRequest(
            prompt=prompt,
            max_new_tokens=self.config.max_new_tokens,
            sampling=descriptor.sampling,
        )

    def _accept(self, text: str | None, tier: ModelTier) -> str:
        """Return usable output text or raise why it is unusable."""
        if text is None or not text.strip():
            raise EmptyOutput(f"{tier.value} tier returned no text")
        text = text.strip()
        if is_error_placeholder(text):
            raise InferenceError(f"{tier.value} tier returned an error string: {text[:100]}")
        if tier is ModelTier.TENSOR and is_gibberish(text):
            raise GibberishOutput("tensor output failed the readability screen")
        return text

    def _run(self, tier: ModelTier, call: Callable[[], str]) -> InferenceResult:
        if tier is ModelTier.STUB:
            return InferenceResult("", tier, succeeded=False, error_message="no model tier available")

        with self._slots[tier]:
            try:
                return InferenceResult(self._accept(call(), tier), tier)
            except Exception as e:
                return InferenceResult("", tier, succeeded=False,
                                       error_message=f"{type(e).__name__}: {e}")

    def _dispatch_local(self, tier: ModelTier, prompt: str) -> InferenceResult:
        if tier is ModelTier.STUB:
            return self._run(tier, lambda: "")
        request = self._request(prompt, tier)
        return self._run(tier, lambda: self._engine_for(tier).generate(request))

    def _complete(self, operation: str, prompt: str,
                  remote_call: Callable[[], str] | None = None) -> InferenceResult:
        """
        Run one prompt through the active tier.

        Returns a failed result (never raises) when no model produced usable
        text; callers substitute the stub output for their operation.
        """
        debug_log(f"[ORCHESTRATOR] {operation}: tier={self.tier.value}, prompt={len(prompt)} chars")

        if self.tier is not ModelTier.REMOTE:
            result = self._dispatch_local(self.tier, prompt)
        else:
            result = None
            if remote_call is not None:
                result = self._run(ModelTier.REMOTE, remote_call)
                if not result.succeeded:
                    warning(f"AI microservice failed for {operation}: {result.error_message}")
            if result is None or not result.succeeded:
                result = self._dispatch_local(self._local_fallback_tier(), prompt)

        if not result.succeeded:
            warning(f"{operation} using stub response ({result.tier.value}: {result.error_message})")
        return result

    def generate(self, request: InferenceRequest) -> InferenceResult:
        """
        Run a raw prompt through the active tier.

        The remote tier has no raw-prompt endpoint, so the local fallback
        tier serves it. On failure the result carries a stub analysis of the
        prompt text instead.
        """
        tier = self.tier if self.tier is not ModelTier.REMOTE else self._local_fallback_tier()
        if tier is ModelTier.STUB:
            result = self._run(tier, lambda: "")
        else:
            result = self._run(tier, lambda: self._engine_for(tier).generate(request))

        if result.succeeded:
            return result
        warning(f"generate using stub response ({tier.value}: {result.error_message})")
        return InferenceResult(self.stub.summary(request.prompt), ModelTier.STUB,
                               error_message=result.error_message)

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def summarize(self, text: str, title: str = "document") -> str:
        """
        Summarize a document.

        Args:
            text: Extracted document text
            title: Document name (sent to the AI microservice)

        Returns:
            str: Summary (model or stub), never empty
        """
        with Timer(f"Summarize '{title}'"):
            budget = self.config.excerpt_budget("summarize")
            result = self._complete(
                "summarize",
                build_summarize_prompt(text, budget),
                remote_call=lambda: self.remote_client.summarize(
                    truncate_text(text, budget), title, self.config.remote_summary_max_length
                ).summary,
            )
            return result.text if result.succeeded else self.stub.summary(text)

    def chat(self, context: str, message: str, conversation_id: str | None = None) -> str:
        """Answer a question about the document text in context."""
        with Timer("Chat"):
            budget = self.config.excerpt_budget("chat")
            result = self._complete(
                "chat",
                build_chat_prompt(context, message, budget),
                remote_call=lambda: self.remote_client.chat(
                    message, truncate_text(context, budget), conversation_id
                ).response,
            )
            return result.text if result.succeeded else self.stub.chat(message, context)

    def extract_entities(self, text: str) -> list[str]:
        with Timer("Extract entities"):
            prompt = build_entities_prompt(text, self.config.excerpt_budget("entities"))
            result = self._complete("extract_entities", prompt)
            entities = parse_list_output(result.text) if result.succeeded else []
            return entities or self.stub.entities(text)

    def translate(self, text: str, target_language: str) -> str:
        with Timer(f"Translate to {target_language}"):
            prompt = build_translate_prompt(
                text, target_language, self.config.excerpt_budget("translate")
            )
            result = self._complete("translate", prompt)
            return result.text if result.succeeded else self.stub.translation(text, target_language)

    def generate_insights(self, text: str) -> AIResponse:
        """
        Key insights about a document.

        Returns:
            AIResponse: confidence is lower when the stub produced the text
        """
        with Timer("Generate insights", auto_log=False) as timer:
            prompt = build_insights_prompt(text, self.config.excerpt_budget("insights"))
            result = self._complete("generate_insights", prompt)

        if result.succeeded:
            return AIResponse(result.text, MODEL_CONFIDENCE,
                              int(timer.get_duration_ms()), self.model_type)
        return AIResponse(self.stub.insights(text), STUB_CONFIDENCE,
                          int(timer.get_duration_ms()), "Stub")

    def detect_sensitive_content(self, text: str) -> list[str]:
        with Timer("Detect sensitive content"):
            prompt = build_sensitive_prompt(text, self.config.excerpt_budget("sensitive"))
            result = self._complete("detect_sensitive_content", prompt)
            findings = parse_list_output(result.text) if result.succeeded else []
            return findings or self.stub.sensitive_content(text)

    def extract_tables(self, text: str) -> list[str]:
        """Table rows from the model, else column-layout detection."""
        with Timer("Extract tables"):
            prompt = build_tables_prompt(text, self.config.excerpt_budget("tables"))
            result = self._complete("extract_tables", prompt)
            rows = parse_list_output(result.text) if result.succeeded else []
            return rows or self.stub.tables(text)

    def detect_structure(self, text: str) -> list[str]:
        """Heading-like lines; heuristic on every tier."""
        return self.stub.structure(text)

    def close(self):
        """Release engine resources. Safe to call more than once."""
        for engine in (self._process_engine, self._tensor_engine):
            if engine is not None:
                try:
                    engine.close()
                except Exception as e:
                    warning(f"Error closing {type(engine).__name__}: {e}")
        debug_log("[ORCHESTRATOR] Closed")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
