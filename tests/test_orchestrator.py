"""
Tests for InferenceOrchestrator.

Every engine is replaced with a fake so tier selection, fallback and
output screening can be exercised without models or a network.
"""

import threading
import time
from itertools import product

import pytest

from pdfstudio.ai.errors import ProcessExitFailure, RemoteConnectFailure
from pdfstudio.ai.orchestrator import InferenceOrchestrator, parse_list_output
from pdfstudio.ai.types import AIResponse, InferenceRequest, ModelTier
from pdfstudio.config import AIConfig, ModelDescriptor

SAMPLE = "Hello world. This is a test document about finance and banking."


class FakeRemote:
    def __init__(self, available=True, summary="Remote summary.", reply="Remote reply.", error=None):
        self.available = available
        self.summary_text = summary
        self.reply = reply
        self.error = error
        self.calls = []

    def is_available(self, cancel_event=None):
        self.calls.append(('is_available',))
        return self.available

    def summarize(self, content, filename, max_length):
        self.calls.append(('summarize', content, filename, max_length))
        if self.error:
            raise self.error

        class _Response:
            summary = self.summary_text
        return _Response()

    def chat(self, message, context=None, conversation_id=None):
        self.calls.append(('chat', message, context, conversation_id))
        if self.error:
            raise self.error

        class _Response:
            response = self.reply
        return _Response()


class FakeEngine:
    def __init__(self, loaded=True, output="Model output.", error=None, name="Fake Model"):
        self.loaded = loaded
        self.output = output
        self.error = error
        self.descriptor = ModelDescriptor(name=name, context_length=2048)
        self.requests = []
        self.load_calls = 0
        self.closed = False

    @property
    def model_type(self):
        return self.descriptor.name

    def is_model_loaded(self):
        return self.loaded

    def load_model(self):
        self.load_calls += 1
        return self.loaded

    def generate(self, request):
        self.requests.append(request)
        if self.error:
            raise self.error
        return self.output

    def close(self):
        self.closed = True


def _orchestrator(remote=None, process=None, tensor=None, **config_overrides):
    return InferenceOrchestrator(
        AIConfig(**config_overrides),
        remote_client=remote or FakeRemote(available=False),
        process_engine=process or FakeEngine(loaded=False),
        tensor_engine=tensor or FakeEngine(loaded=False),
    )


def _run_all_operations(orchestrator):
    return [
        orchestrator.summarize(SAMPLE, title="doc.pdf"),
        orchestrator.chat(SAMPLE, "What is this about"),
        orchestrator.translate(SAMPLE, "French"),
        orchestrator.generate_insights(SAMPLE).text,
        *orchestrator.extract_entities(SAMPLE),
        *orchestrator.detect_sensitive_content(SAMPLE),
        *orchestrator.extract_tables(SAMPLE),
        *orchestrator.detect_structure(SAMPLE),
    ]


class TestTierSelection:
    """Exactly the highest-priority available tier is selected."""

    @pytest.mark.parametrize("remote_up,process_up,tensor_up", list(product([True, False], repeat=3)))
    def test_priority_order(self, remote_up, process_up, tensor_up):
        orchestrator = _orchestrator(
            remote=FakeRemote(available=remote_up),
            process=FakeEngine(loaded=process_up),
            tensor=FakeEngine(loaded=tensor_up),
        )

        if remote_up:
            expected = ModelTier.REMOTE
        elif process_up:
            expected = ModelTier.SUBPROCESS
        elif tensor_up:
            expected = ModelTier.TENSOR
        else:
            expected = ModelTier.STUB
        assert orchestrator.tier is expected

        outputs = _run_all_operations(orchestrator)
        assert all(isinstance(text, str) and text.strip() for text in outputs)

    def test_remote_disabled_skips_probe(self):
        remote = FakeRemote(available=True)
        orchestrator = _orchestrator(remote=remote, process=FakeEngine(), remote_enabled=False)

        assert orchestrator.tier is ModelTier.SUBPROCESS
        assert remote.calls == []

    def test_tensor_not_loaded_when_subprocess_available(self):
        tensor = FakeEngine()
        _orchestrator(process=FakeEngine(), tensor=tensor)

        assert tensor.load_calls == 0

    def test_probe_exception_means_unavailable(self):
        process = FakeEngine()
        process.is_model_loaded = lambda: 1 / 0

        orchestrator = _orchestrator(process=process, tensor=FakeEngine())

        assert orchestrator.tier is ModelTier.TENSOR

    def test_status(self):
        orchestrator = _orchestrator(process=FakeEngine(name="Phi-3 Mini"))

        status = orchestrator.status()

        assert status['tier'] == "subprocess"
        assert status['model'] == "Phi-3 Mini"
        assert status['remote_fallback_tier'] is None


class TestLocalTiers:
    """Dispatch to the subprocess and tensor engines."""

    def test_summary_uses_model_output_and_truncated_prompt(self):
        process = FakeEngine(output="  The document is about banking.  ")
        orchestrator = _orchestrator(process=process)

        summary = orchestrator.summarize("x" * 5000)

        assert summary == "The document is about banking."
        prompt = process.requests[0].prompt
        assert ("x" * 4000 + "...") in prompt
        assert ("x" * 4001) not in prompt

    def test_request_uses_engine_sampling_and_budget(self):
        process = FakeEngine()
        orchestrator = _orchestrator(process=process, max_new_tokens=128)

        orchestrator.chat(SAMPLE, "Question?")

        request = process.requests[0]
        assert request.max_new_tokens == 128
        assert request.sampling == process.descriptor.sampling

    def test_engine_exception_falls_back_to_stub(self):
        process = FakeEngine(error=ProcessExitFailure(1))
        orchestrator = _orchestrator(process=process)

        summary = orchestrator.summarize(SAMPLE)

        assert "11 words" in summary
        assert orchestrator.tier is ModelTier.SUBPROCESS

    @pytest.mark.parametrize("output", ["", "   ", None, "[Inference error: boom]", "Error: failed"])
    def test_unusable_output_falls_back_to_stub(self, output):
        orchestrator = _orchestrator(process=FakeEngine(output=output))

        assert "DOCUMENT SUMMARY" in orchestrator.summarize(SAMPLE)

    def test_tensor_gibberish_replaced(self):
        orchestrator = _orchestrator(tensor=FakeEngine(output="[PAD] ## . , ; : ! ? ~ ~ ~"))

        assert orchestrator.tier is ModelTier.TENSOR
        assert "DOCUMENT SUMMARY" in orchestrator.summarize(SAMPLE)

    def test_subprocess_output_not_gibberish_screened(self):
        """Only tensor output is screened for gibberish."""
        orchestrator = _orchestrator(process=FakeEngine(output="!!!!!!!!!!!!!!!!!!!!"))

        assert orchestrator.summarize(SAMPLE) == "!!!!!!!!!!!!!!!!!!!!"

    def test_list_operations_parse_model_output(self):
        output = "1. John Smith\n2. Acme Bank\n\n- March 2024"
        orchestrator = _orchestrator(process=FakeEngine(output=output))

        assert orchestrator.extract_entities(SAMPLE) == ["John Smith", "Acme Bank", "March 2024"]

    def test_insights_confidence(self):
        model = _orchestrator(process=FakeEngine(output="Key insight.")).generate_insights(SAMPLE)
        stub = _orchestrator().generate_insights(SAMPLE)

        assert isinstance(model, AIResponse)
        assert model.text == "Key insight."
        assert model.confidence == 0.85
        assert model.model_used == "Fake Model"
        assert stub.confidence < model.confidence
        assert stub.model_used == "Stub"
        assert "DOCUMENT INSIGHTS" in stub.text

    def test_generate_raw_request(self):
        orchestrator = _orchestrator(process=FakeEngine(output="Raw."))

        result = orchestrator.generate(InferenceRequest("Say something"))

        assert result.text == "Raw."
        assert result.tier is ModelTier.SUBPROCESS
        assert result.succeeded is True

    def test_generate_raw_request_failure_returns_stub_result(self):
        orchestrator = _orchestrator(process=FakeEngine(error=RuntimeError("crash")))

        result = orchestrator.generate(InferenceRequest(SAMPLE))

        assert result.tier is ModelTier.STUB
        assert result.succeeded is True
        assert "crash" in result.error_message
        assert result.text.strip()


class TestStubTier:
    def test_sample_summary(self):
        """With no model the summary is text statistics."""
        orchestrator = _orchestrator()

        summary = orchestrator.summarize(SAMPLE)

        assert orchestrator.tier is ModelTier.STUB
        assert "11 words" in summary
        assert "finance" in summary.lower()
        assert "banking" in summary.lower()

    def test_chat_patterns(self):
        orchestrator = _orchestrator()

        assert "Generate Summary" in orchestrator.chat(SAMPLE, "please summarize")
        assert "Tell me a joke" in orchestrator.chat(SAMPLE, "Tell me a joke")


class TestRemoteTier:
    """Remote tier calls and per-call local fallback."""

    def test_summary_via_remote(self):
        remote = FakeRemote()
        orchestrator = _orchestrator(remote=remote)

        summary = orchestrator.summarize("y" * 5000, title="report.pdf")

        assert summary == "Remote summary."
        _, content, filename, max_length = remote.calls[-1]
        assert content == "y" * 4000 + "..."
        assert filename == "report.pdf"
        assert max_length == 500

    def test_chat_via_remote(self):
        remote = FakeRemote()
        orchestrator = _orchestrator(remote=remote)

        reply = orchestrator.chat(SAMPLE, "Who?", conversation_id="c1")

        assert reply == "Remote reply."
        assert remote.calls[-1] == ('chat', "Who?", SAMPLE, "c1")

    def test_remote_failure_uses_local_tier_without_changing_tier(self):
        process = FakeEngine(output="Local summary.")
        orchestrator = _orchestrator(
            remote=FakeRemote(error=RemoteConnectFailure("down")), process=process
        )
        assert orchestrator.tier is ModelTier.REMOTE

        assert orchestrator.summarize(SAMPLE) == "Local summary."
        assert orchestrator.tier is ModelTier.REMOTE
        assert orchestrator.status()['remote_fallback_tier'] == "subprocess"

    def test_local_fallback_resolved_once(self):
        probes = []
        process = FakeEngine(loaded=False)
        process.is_model_loaded = lambda: probes.append(1) or False
        tensor = FakeEngine(output="Readable tensor output.")
        orchestrator = _orchestrator(remote=FakeRemote(error=RemoteConnectFailure("down")),
                                     process=process, tensor=tensor)
        assert probes == []

        orchestrator.summarize(SAMPLE)
        orchestrator.chat(SAMPLE, "Why?")

        assert probes == [1]
        assert len(tensor.requests) == 2
        assert orchestrator.status()['remote_fallback_tier'] == "tensor"

    def test_remote_failure_without_local_model_gives_stub(self):
        orchestrator = _orchestrator(remote=FakeRemote(error=RemoteConnectFailure("down")))

        assert "11 words" in orchestrator.summarize(SAMPLE)

    def test_operation_without_remote_endpoint_served_locally(self):
        process = FakeEngine(output="Texte traduit.")
        orchestrator = _orchestrator(remote=FakeRemote(), process=process)

        assert orchestrator.translate(SAMPLE, "French") == "Texte traduit."
        assert "French" in process.requests[0].prompt

    def test_remote_error_string_treated_as_failure(self):
        orchestrator = _orchestrator(remote=FakeRemote(summary="Error: model crashed"))

        assert "DOCUMENT SUMMARY" in orchestrator.summarize(SAMPLE)


class TestConcurrency:
    def test_calls_to_one_tier_are_serialised(self):
        """max_concurrent_requests=1 admits one call per tier at a time."""
        active = 0
        peak = 0
        lock = threading.Lock()

        class SlowEngine(FakeEngine):
            def generate(self, request):
                nonlocal active, peak
                with lock:
                    active += 1
                    peak = max(peak, active)
                time.sleep(0.05)
                with lock:
                    active -= 1
                return "Done."

        orchestrator = _orchestrator(process=SlowEngine())
        threads = [threading.Thread(target=orchestrator.summarize, args=(SAMPLE,)) for _ in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert peak == 1

    def test_close_releases_engines(self):
        process = FakeEngine()
        tensor = FakeEngine()
        orchestrator = _orchestrator(process=process, tensor=tensor)

        with orchestrator:
            pass

        assert process.closed is True
        assert tensor.closed is True


class TestParseListOutput:
    def test_strips_markers(self):
        assert parse_list_output("* a\n• b\n3) c\n\n  d  ") == ["a", "b", "c", "d"]
