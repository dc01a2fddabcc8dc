"""
llama.cpp CLI Engine for PDF Studio
Runs GGUF models (LLaMA, Phi-3, ...) through the llama-cli executable.

One child process per request:
- The prompt goes through a UTF-8 temp file (--file) instead of the command
  line, avoiding Windows code-page mangling and argument length limits.
- stdout/stderr are merged and filtered line by line; llama.cpp prints its
  loader and sampler diagnostics on the same stream as the completion.
- The child runs under a deadline and is killed if it overruns.
- CPU only: -ngl 0 keeps every layer off the GPU.
"""

import subprocess
import sys
import tempfile
import threading
import time
from pathlib import Path

from ..config import AIConfig
from ..logging_config import debug_log, warning
from .errors import (
    EmptyOutput,
    EngineNotLoaded,
    ExecutableNotFound,
    ProcessExitFailure,
    ProcessTimeout,
    TempFileIOFailure,
)
from .locator import ExecutableLocator
from .output_sanitizer import LlamaOutputFilter, strip_prompt_echo
from .types import InferenceRequest


class ProcessInferenceEngine:
    """
    Generates text by invoking llama-cli as a child process.

    The executable and model file are resolved once, at construction. If
    either is missing the engine stays unloaded and generate() raises
    EngineNotLoaded.

    Example:
        engine = ProcessInferenceEngine(config)
        if engine.is_model_loaded():
            text = engine.generate(InferenceRequest(prompt, max_new_tokens=256))
    """

    def __init__(self, config: AIConfig, locator: ExecutableLocator | None = None):
        self.config = config
        self.locator = locator or ExecutableLocator()

        self.executable_path: Path | None = self.locator.locate_executable(config.engine_candidates)
        self.model_path: Path | None = self.locator.locate_model(config.gguf_candidates, suffix=".gguf")
        self.descriptor = config.describe_model(self.model_path)

        if self.executable_path is None:
            warning("llama.cpp executable not found. Checked locations:")
            for candidate in config.engine_candidates:
                debug_log(f"[LLAMA CLI]   - {candidate}")
        if self.model_path is None:
            warning("No GGUF model found. Checked locations:")
            for candidate in config.gguf_candidates:
                debug_log(f"[LLAMA CLI]   - {candidate}")

        if self.is_model_loaded():
            debug_log(
                f"[LLAMA CLI] Ready: {self.model_path.name} via {self.executable_path} "
                f"(type: {self.descriptor.name}, context: {self.descriptor.context_length})"
            )

    @property
    def model_type(self) -> str:
        return self.descriptor.name

    def is_model_loaded(self) -> bool:
        """True if both the executable and a GGUF model were found."""
        return self.executable_path is not None and self.model_path is not None

    def build_command(self, request: InferenceRequest, prompt_file: Path) -> list[str]:
        """
        Build the llama-cli argument list for one request.

        Args:
            request: Prompt, token budget and sampling parameters
            prompt_file: Temp file holding the prompt

        Returns:
            list[str]: argv for subprocess
        """
        sampling = request.sampling
        return [
            str(self.executable_path),
            "-m", str(self.model_path),
            "--file", str(prompt_file),
            "-n", str(request.max_new_tokens),
            "--temp", str(sampling.temperature),
            "--top-k", str(sampling.top_k),
            "--top-p", str(sampling.top_p),
            "--repeat-penalty", str(sampling.repeat_penalty),
            "-ngl", "0",
            *self.config.extra_engine_args,
        ]

    def generate(self, request: InferenceRequest) -> str:
        """
        Run one generation and return the cleaned completion.

        Args:
            request: The inference request

        Returns:
            str: Completion text with diagnostics and prompt echo removed

        Raises:
            EngineNotLoaded: Executable or model was not found at construction
            TempFileIOFailure: The prompt file could not be written
            ExecutableNotFound: The executable vanished since construction
            ProcessExitFailure: Non-zero exit (ProcessTimeout on deadline expiry)
            EmptyOutput: The process succeeded but printed no completion
        """
        if not self.is_model_loaded():
            raise EngineNotLoaded("GGUF model or llama.cpp executable not available")

        debug_log("\n[LLAMA CLI] Starting text generation")
        debug_log(f"[LLAMA CLI] Model: {self.model_path.name}, max tokens: {request.max_new_tokens}")
        debug_log(f"[LLAMA CLI] Prompt length: {len(request.prompt)} chars")

        prompt_file = self._write_prompt_file(request.prompt)
        try:
            output = self._run_process(self.build_command(request, prompt_file))
        finally:
            self._remove_prompt_file(prompt_file)

        output = strip_prompt_echo(output, request.prompt)
        if not output:
            raise EmptyOutput("llama.cpp returned an empty response")

        debug_log(f"[LLAMA CLI] Output length: {len(output)} chars")
        debug_log(f"[LLAMA CLI] Output preview (first 100 chars): {output[:100]}")
        return output

    def _write_prompt_file(self, prompt: str) -> Path:
        prompt_file = None
        try:
            with tempfile.NamedTemporaryFile(
                mode='w', encoding='utf-8', prefix='llama_prompt_', suffix='.txt', delete=False
            ) as f:
                prompt_file = Path(f.name)
                f.write(prompt)
        except OSError as e:
            if prompt_file is not None:
                self._remove_prompt_file(prompt_file)
            raise TempFileIOFailure(f"Unable to create temp file for prompt: {e}") from e

        debug_log(f"[LLAMA CLI] Wrote prompt to temp file: {prompt_file}")
        return prompt_file

    def _remove_prompt_file(self, prompt_file: Path) -> None:
        try:
            prompt_file.unlink(missing_ok=True)
            debug_log(f"[LLAMA CLI] Cleaned up temp file: {prompt_file}")
        except OSError as e:
            warning(f"Failed to delete temp file {prompt_file}: {e}")

    def _run_process(self, command: list[str]) -> str:
        debug_log(f"[LLAMA CLI] Running command: {' '.join(command)}")

        popen_kwargs = {}
        if sys.platform == "win32":
            popen_kwargs['creationflags'] = subprocess.CREATE_NO_WINDOW

        try:
            process = subprocess.Popen(
                command,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                stdin=subprocess.DEVNULL,
                text=True,
                encoding='utf-8',
                errors='replace',
                **popen_kwargs,
            )
        except FileNotFoundError as e:
            raise ExecutableNotFound(f"llama.cpp executable not found: {command[0]}") from e
        except OSError as e:
            raise ProcessExitFailure(None, f"could not start llama.cpp: {e}") from e

        timeout = self.config.process_timeout_seconds
        timed_out = threading.Event()

        def _kill_on_deadline():
            timed_out.set()
            process.kill()

        deadline = threading.Timer(timeout, _kill_on_deadline)
        deadline.daemon = True
        output_filter = LlamaOutputFilter(self.config.log_filter_patterns)
        start_time = time.time()

        deadline.start()
        try:
            for line in process.stdout:
                output_filter.feed(line)
            exit_code = process.wait()
        finally:
            deadline.cancel()
            if process.poll() is None:
                process.kill()
                process.wait()
            if process.stdout is not None:
                process.stdout.close()

        elapsed = time.time() - start_time
        debug_log(
            f"[LLAMA CLI] Process finished in {elapsed:.2f}s with code {exit_code} "
            f"({output_filter.skipped} diagnostic lines skipped)"
        )

        if timed_out.is_set():
            raise ProcessTimeout(timeout, exit_code)
        if exit_code != 0:
            raise ProcessExitFailure(exit_code)

        return output_filter.text()

    def close(self):
        """Nothing is held between requests; present for a uniform engine API."""
        debug_log("[LLAMA CLI] Engine closed")
