"""
Inference error taxonomy.

Every engine raises a subclass of InferenceError. The orchestrator catches
them at its boundary and substitutes a stub response, so none of these reach
UI code.
"""


class InferenceError(Exception):
    """Base class for failures inside an inference tier."""


class EngineNotLoaded(InferenceError):
    """generate() was called on an engine that never finished loading."""


class ExecutableNotFound(InferenceError):
    """No candidate path held a runnable CLI inference engine."""


class ModelFileNotFound(InferenceError):
    """No candidate path held a model weight file."""


class ProcessExitFailure(InferenceError):
    """The CLI engine exited with a non-zero code (or could not be started)."""

    def __init__(self, code: int | None, detail: str = ""):
        self.code = code
        message = f"Inference process exited with code {code}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class ProcessTimeout(ProcessExitFailure):
    """The CLI engine ran past its deadline and was killed."""

    def __init__(self, timeout_seconds: float, code: int | None = None):
        self.timeout_seconds = timeout_seconds
        super().__init__(code, f"killed after {timeout_seconds:g}s deadline")


class EmptyOutput(InferenceError):
    """The engine ran but produced no usable text."""


class TempFileIOFailure(InferenceError):
    """The prompt could not be written to its temporary file."""


class TokenizerUnavailable(InferenceError):
    """The tensor runtime has no tokenizer to encode or decode with."""


class TensorRuntimeUnavailable(InferenceError):
    """ONNX Runtime (or its session) could not be created."""


class GibberishOutput(InferenceError):
    """Decoded text failed the readability screen."""


class RemoteError(InferenceError):
    """Base class for AI microservice failures."""


class RemoteConnectFailure(RemoteError):
    """The AI microservice could not be reached."""


class RemoteTimeout(RemoteError):
    """The AI microservice did not answer within the request timeout."""


class RemoteServerError(RemoteError):
    """The AI microservice answered with a non-200 status or a malformed body."""

    def __init__(self, status: int, detail: str = ""):
        self.status = status
        message = f"AI microservice returned error: {status}"
        if detail:
            message = f"{message} - {detail}"
        super().__init__(message)
