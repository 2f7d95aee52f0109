"""
Tests for the deep validation and learning extraction workers.

Verifies:
- Residual issues are recorded as findings, clean messages are not
- Learnings are extracted from responder code blocks
- Missing referents complete the job, dependency failures retry it
- Capture can write while a worker waits on a slow validator or reasoner
"""

import json
import threading
import time
from typing import List

from context_keeper.db.base import Store
from context_keeper.db.services import ConversationService, FindingService, LearningService
from context_keeper.exceptions import ValidatorUnavailableError
from context_keeper.ingestion.capture import capture_event
from context_keeper.learning.extractors import (
    ExtractionResult,
    Extractor,
    LearningDraft,
    ReasoningExtractor,
)
from context_keeper.queue.job_queue import JobQueue
from context_keeper.queue.payloads import EXTRACT_LEARNING, SANITIZE_ASYNC
from context_keeper.sanitization.validator import DeepValidator, ValidationResult
from context_keeper.worker import JobOutcome, LearningWorker, SanitizationWorker


class FixedValidator(DeepValidator):
    def __init__(self, issues: List[str]):
        self.issues = issues
        self.seen: List[str] = []

    @property
    def name(self):
        return "fixed"

    def validate(self, text):
        self.seen.append(text)
        return ValidationResult(is_clean=not self.issues, issues=list(self.issues))


class UnavailableValidator(DeepValidator):
    @property
    def name(self):
        return "unavailable"

    def validate(self, text):
        raise ValidatorUnavailableError("validator timed out")


class FixedExtractor(Extractor):
    def __init__(self, result: ExtractionResult):
        self.result = result

    @property
    def name(self):
        return "fixed"

    def extract(self, transcript):
        return self.result


def _capture(store, **fields):
    fields.setdefault("session_id", "s1")
    return capture_event(store, json.dumps(fields))


def _jobs(store, job_type):
    with store.session_scope() as db:
        return JobQueue(db).list_jobs(job_type=job_type)


class TestSanitizationWorker:
    """Tests for SanitizationWorker."""

    def test_finding_recorded_for_residual_issue(self, store):
        result = _capture(store, prompt="I live near the old mill")
        validator = FixedValidator(["address"])

        outcome = SanitizationWorker(store, validator=validator).process_next()

        assert outcome is JobOutcome.COMMITTED
        assert validator.seen == ["I live near the old mill"]
        with store.session_scope() as db:
            findings = FindingService(db).get_findings(message_id=result.message_id)
            assert [f.issues for f in findings] == [["address"]]
        assert [j.status for j in _jobs(store, SANITIZE_ASYNC)] == ["completed"]

    def test_validator_sees_sanitized_content(self, store):
        _capture(store, prompt="mail bob@example.com")
        validator = FixedValidator([])

        SanitizationWorker(store, validator=validator).drain()

        assert validator.seen == ["mail [REDACTED_EMAIL]"]

    def test_clean_message_records_nothing(self, store):
        _capture(store, prompt="Refactor the parser")

        assert SanitizationWorker(store).drain() == 1

        with store.session_scope() as db:
            assert FindingService(db).get_findings() == []
        assert [j.status for j in _jobs(store, SANITIZE_ASYNC)] == ["completed"]

    def test_content_never_rewritten(self, store):
        result = _capture(store, prompt="cd /home/alice")

        SanitizationWorker(store).drain()

        with store.session_scope() as db:
            assert ConversationService(db).get_message(result.message_id).content == "cd /home/alice"
            assert FindingService(db).get_findings()[0].issues == ["user_path"]

    def test_missing_message_completes_job(self, store):
        with store.session_scope() as db:
            job_id = JobQueue(db).enqueue(SANITIZE_ASYNC, {"messageId": "gone"})

        outcome = SanitizationWorker(store, validator=FixedValidator(["x"])).process_next()

        assert outcome is JobOutcome.COMMITTED
        with store.session_scope() as db:
            assert JobQueue(db).get(job_id).status == "completed"
            assert FindingService(db).get_findings() == []

    def test_unavailable_validator_retries_then_dead_letters(self, store):
        capture_event(store, json.dumps({"prompt": "hello", "session_id": "s1"}), max_attempts=2)
        worker = SanitizationWorker(store, validator=UnavailableValidator())

        assert worker.process_next() is JobOutcome.RETRIED
        assert worker.process_next() is JobOutcome.DEAD_LETTERED
        assert worker.process_next() is JobOutcome.IDLE

        job = _jobs(store, SANITIZE_ASYNC)[0]
        assert job.status == "dead_letter"
        assert job.attempts == 2
        assert "validator timed out" in job.error

    def test_malformed_payload_is_retried(self, store):
        with store.session_scope() as db:
            job_id = JobQueue(db).enqueue(SANITIZE_ASYNC, {"conversationId": "c1"})

        assert SanitizationWorker(store).process_next() is JobOutcome.RETRIED
        with store.session_scope() as db:
            job = JobQueue(db).get(job_id)
            assert job.status == "queued"
            assert job.attempts == 1

    def test_failed_handler_leaves_no_partial_writes(self, store):
        result = _capture(store, prompt="hello", session_id="s9")

        class CrashAfterWrite(SanitizationWorker):
            def persist(self, db, payload, content, verdict):
                super().persist(db, payload, content, verdict)
                raise RuntimeError("crashed after recording")

        worker = CrashAfterWrite(store, validator=FixedValidator(["address"]))
        assert worker.process_next() is JobOutcome.RETRIED

        with store.session_scope() as db:
            assert FindingService(db).get_findings(message_id=result.message_id) == []
            assert JobQueue(db).list_jobs(job_type=SANITIZE_ASYNC)[0].status == "queued"

    def test_ignores_other_job_types(self, store):
        with store.session_scope() as db:
            JobQueue(db).enqueue(EXTRACT_LEARNING, {"conversationId": "c1"})
        assert SanitizationWorker(store).process_next() is JobOutcome.IDLE


class TestLearningWorker:
    """Tests for LearningWorker."""

    def test_code_block_produces_technical_learning(self, store):
        _capture(store, prompt="How do I print in Python?")
        answer = _capture(store, role="assistant", content="Like this:\n```python\nprint('hi')\n```")

        assert LearningWorker(store).drain() == 1

        with store.session_scope() as db:
            learnings = LearningService(db).get_learnings(answer.conversation_id)
            assert [(l.category, l.title) for l in learnings] == [("technical", "Code example shared")]
            assert "print('hi')" in learnings[0].content
        assert [j.status for j in _jobs(store, EXTRACT_LEARNING)] == ["completed"]

    def test_no_learning_completes_without_rows(self, store):
        _capture(store, role="assistant", content="Sure, happy to help.")

        outcome = LearningWorker(store, extractor=FixedExtractor(ExtractionResult.none())).process_next()

        assert outcome is JobOutcome.COMMITTED
        with store.session_scope() as db:
            assert LearningService(db).get_learnings() == []

    def test_extraction_failure_is_retried(self, store):
        _capture(store, role="assistant", content="answer")
        worker = LearningWorker(store, extractor=FixedExtractor(ExtractionResult.failure("reasoner down")))

        assert worker.process_next() is JobOutcome.RETRIED

        job = _jobs(store, EXTRACT_LEARNING)[0]
        assert job.status == "queued"
        assert job.error == "reasoner down"

    def test_missing_conversation_completes_job(self, store):
        with store.session_scope() as db:
            job_id = JobQueue(db).enqueue(EXTRACT_LEARNING, {"conversationId": "gone"})

        assert LearningWorker(store).process_next() is JobOutcome.COMMITTED
        with store.session_scope() as db:
            assert JobQueue(db).get(job_id).status == "completed"

    def test_learning_text_is_sanitized(self, store):
        _capture(store, role="assistant", content="done")
        draft_result = ExtractionResult.value(
            LearningDraft(category="workflow", title="Ask bob@example.com", content="Deploy from 10.0.0.5")
        )

        LearningWorker(store, extractor=FixedExtractor(draft_result)).drain()

        with store.session_scope() as db:
            learning = LearningService(db).get_learnings()[0]
            assert learning.title == "Ask [REDACTED_EMAIL]"
            assert learning.content == "Deploy from [REDACTED_IP]"


class BlockingValidator(DeepValidator):
    """Holds validate() open until the test releases it."""

    def __init__(self):
        self.entered = threading.Event()
        self.release = threading.Event()

    @property
    def name(self):
        return "blocking"

    def validate(self, text):
        self.entered.set()
        self.release.wait(timeout=10)
        return ValidationResult(is_clean=False, issues=["address"])


def _process_in_thread(worker):
    outcomes = []
    thread = threading.Thread(target=lambda: outcomes.append(worker.process_next()))
    thread.start()
    return thread, outcomes


def _capture_from_hook(store, **fields):
    """Capture through a second Store with a short busy timeout, as the hook process does."""
    hook_store = Store(store.database_url, busy_timeout=1.0)
    try:
        started = time.monotonic()
        result = _capture(hook_store, **fields)
        return result, time.monotonic() - started
    finally:
        hook_store.dispose()


class TestCaptureDuringSlowStep:
    """Capture keeps working while a worker waits on its validator or reasoner."""

    def test_capture_not_blocked_by_deep_validation(self, file_store):
        _capture(file_store, prompt="I live near the old mill")
        validator = BlockingValidator()
        thread, outcomes = _process_in_thread(SanitizationWorker(file_store, validator=validator))

        try:
            assert validator.entered.wait(timeout=5)
            result, elapsed = _capture_from_hook(file_store, prompt="a second prompt")
        finally:
            validator.release.set()
            thread.join(timeout=10)

        assert result is not None
        assert elapsed < 1.0
        assert outcomes == [JobOutcome.COMMITTED]
        with file_store.session_scope() as db:
            assert len(FindingService(db).get_findings()) == 1
            assert ConversationService(db).get_message(result.message_id).content == "a second prompt"

    def test_capture_not_blocked_by_reasoning_extraction(self, file_store, make_client):
        _capture(file_store, role="assistant", content="Run make test before pushing.")
        entered = threading.Event()
        release = threading.Event()

        def hold_request(request):
            entered.set()
            release.wait(timeout=10)

        client = make_client(
            {"category": "workflow", "title": "Test before pushing", "content": "Run make test."},
            on_request=hold_request,
        )
        worker = LearningWorker(file_store, extractor=ReasoningExtractor(client))
        thread, outcomes = _process_in_thread(worker)

        try:
            assert entered.wait(timeout=5)
            result, elapsed = _capture_from_hook(file_store, prompt="thanks")
        finally:
            release.set()
            thread.join(timeout=10)
            worker.close()

        assert result is not None
        assert elapsed < 1.0
        assert outcomes == [JobOutcome.COMMITTED]
        with file_store.session_scope() as db:
            assert [l.title for l in LearningService(db).get_learnings()] == ["Test before pushing"]
