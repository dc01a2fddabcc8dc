"""
Data types shared by the inference tiers.

Key Types:
    ModelTier - Which inference strategy an orchestrator settled on
    InferenceRequest - One prompt plus its generation budget
    InferenceResult - Text produced for a request, tagged with its tier
    AIResponse - Insight text with confidence and timing
    SummaryResponse / ChatResponse - AI microservice payloads
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from ..config import SamplingParams


class ModelTier(Enum):
    """Inference strategies in priority order."""

    REMOTE = "remote"
    SUBPROCESS = "subprocess"
    TENSOR = "tensor"
    STUB = "stub"


@dataclass(frozen=True)
class InferenceRequest:
    """
    A single-shot generation request.

    Attributes:
        prompt: Full prompt text (may be empty).
        max_new_tokens: Completion budget; must be positive.
        sampling: Sampling parameters for engines that sample.
    """
    prompt: str
    max_new_tokens: int = 512
    sampling: SamplingParams = field(default_factory=SamplingParams)

    def __post_init__(self):
        if self.max_new_tokens <= 0:
            raise ValueError(f"max_new_tokens must be positive, got {self.max_new_tokens}")


@dataclass
class InferenceResult:
    """
    Text produced for one request.

    A result with succeeded=False never leaves the orchestrator; it is
    replaced by stub output first.
    """
    text: str
    tier: ModelTier
    succeeded: bool = True
    error_message: str | None = None


@dataclass
class AIResponse:
    """Generated insights plus how they were produced."""
    text: str
    confidence: float
    processing_time_ms: int = 0
    model_used: str = ""


@dataclass
class SummaryResponse:
    """Response body of POST {base}/summarize."""
    summary: str
    processing_time_ms: int = 0
    cached: bool = False
    model_used: str | None = None

    @classmethod
    def from_json(cls, data: dict) -> SummaryResponse:
        return cls(
            summary=data.get('summary') or "",
            processing_time_ms=int(data.get('processingTimeMs') or 0),
            cached=bool(data.get('cached', False)),
            model_used=data.get('modelUsed'),
        )


@dataclass
class ChatResponse:
    """Response body of POST {base}/chat."""
    response: str
    processing_time_ms: int = 0
    cached: bool = False

    @classmethod
    def from_json(cls, data: dict) -> ChatResponse:
        return cls(
            response=data.get('response') or "",
            processing_time_ms=int(data.get('processingTimeMs') or 0),
            cached=bool(data.get('cached', False)),
        )
