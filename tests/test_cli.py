"""Tests for the operator CLI."""

import json

import pytest
from rich.console import Console
from typer.testing import CliRunner

import context_keeper.cli as cli
from context_keeper.config import Settings
from context_keeper.db.base import Store
from context_keeper.db.services import ConversationService
from context_keeper.queue.job_queue import JobQueue

runner = CliRunner()


@pytest.fixture
def cli_settings(tmp_path, monkeypatch):
    """Point the CLI at a throwaway database."""
    settings = Settings(
        database_url=f"sqlite:///{tmp_path / 'cli.db'}",
        anthropic_api_key=None,
        log_format="console",
    )
    monkeypatch.setattr(cli, "get_settings", lambda: settings)
    monkeypatch.setattr(cli, "console", Console(width=200))
    return settings


def _store(settings):
    return Store.from_settings(settings)


class TestCaptureCommand:
    """Tests for `context-keeper capture`."""

    def test_capture_stores_sanitized_message(self, cli_settings):
        event = {"type": "user_prompt", "prompt": "mail me at ann@example.com", "session_id": "cli-1"}
        result = runner.invoke(cli.app, ["capture"], input=json.dumps(event))

        assert result.exit_code == 0

        store = _store(cli_settings)
        try:
            with store.session_scope() as db:
                service = ConversationService(db)
                conversation = service.get_by_correlation_key("cli-1")
                contents = [m.content for m in service.get_messages(conversation.id)]
        finally:
            store.dispose()
        assert contents == ["mail me at [REDACTED_EMAIL]"]

    def test_capture_invalid_input_exits_zero(self, cli_settings):
        result = runner.invoke(cli.app, ["capture"], input="{not json")
        assert result.exit_code == 0

    def test_capture_unusable_database_exits_zero(self, tmp_path, monkeypatch):
        settings = Settings(database_url=f"sqlite:///{tmp_path / 'missing' / 'dir' / 'x.db'}")
        monkeypatch.setattr(cli, "get_settings", lambda: settings)

        result = runner.invoke(cli.app, ["capture"], input='{"prompt": "hi"}')
        assert result.exit_code == 0


class TestQueueCommands:
    """Tests for jobs, queue-stats and findings."""

    def test_jobs_lists_queued_jobs(self, cli_settings):
        runner.invoke(cli.app, ["capture"], input=json.dumps({"prompt": "hello", "session_id": "s"}))

        result = runner.invoke(cli.app, ["jobs", "--status", "queued"])

        assert result.exit_code == 0
        assert "sanitize_async" in result.stdout

    def test_jobs_empty(self, cli_settings):
        result = runner.invoke(cli.app, ["jobs"])
        assert result.exit_code == 0
        assert "No jobs found" in result.stdout

    def test_jobs_invalid_status(self, cli_settings):
        result = runner.invoke(cli.app, ["jobs", "--status", "lost"])
        assert result.exit_code == 1

    def test_queue_stats(self, cli_settings):
        store = _store(cli_settings)
        try:
            store.create_all()
            with store.session_scope() as db:
                queue = JobQueue(db)
                queue.enqueue("sanitize_async", {"messageId": "m1"})
                queue.enqueue("extract_learning_ai", {"conversationId": "c1"})
        finally:
            store.dispose()

        result = runner.invoke(cli.app, ["queue-stats"])

        assert result.exit_code == 0
        assert "sanitize_async" in result.stdout
        assert "extract_learning_ai" in result.stdout

    def test_queue_stats_empty(self, cli_settings):
        result = runner.invoke(cli.app, ["queue-stats"])
        assert "Queue is empty" in result.stdout

    def test_findings_empty(self, cli_settings):
        result = runner.invoke(cli.app, ["findings"])
        assert result.exit_code == 0
        assert "No findings recorded" in result.stdout

    def test_init_db(self, cli_settings, tmp_path):
        result = runner.invoke(cli.app, ["init-db"])
        assert result.exit_code == 0
        assert (tmp_path / "cli.db").exists()
