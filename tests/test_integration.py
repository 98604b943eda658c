"""
Integration tests for hexcheck.
Tests complete check runs: resolve -> parse -> fetch -> compare -> annotate.
"""

import asyncio
import logging

import pytest

from hexcheck.annotations import Annotation, AnnotationLayer, AnnotationStyle
from hexcheck.buffers import BufferResolver, ManifestBuffer, open_buffer
from hexcheck.checker import UpdateChecker, create_context, outdated, run_check
from hexcheck.cli_config import DisplayConfig, HexcheckConfig
from hexcheck.dependency import CheckResult
from hexcheck.notifications import NotificationLevel

EXPECTED_ANNOTATIONS = [
    Annotation(line=13, text="new version available 1.7.10"),
    Annotation(line=15, text="new version available 1.4.4"),
]


class FakeClient:
    """Stands in for HexClient; answers from a dict, optionally with delays."""

    def __init__(self, latest, delays=None, on_fetch=None, failing=()):
        self.latest = latest
        self.delays = delays or {}
        self.on_fetch = on_fetch
        self.failing = set(failing)
        self.completed = []

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        return False

    async def check_dependency(self, dependency):
        await asyncio.sleep(self.delays.get(dependency.name, 0))
        if dependency.name in self.failing:
            raise RuntimeError(f"lookup crashed for {dependency.name}")
        if self.on_fetch:
            self.on_fetch(dependency)
        self.completed.append(dependency.name)
        return CheckResult(dependency, self.latest.get(dependency.name))


@pytest.fixture
def context(console, hex_transport):
    return create_context(console=console, transport=hex_transport)


class TestCheckRun:
    """Test complete check runs against a mocked registry."""

    @pytest.mark.asyncio
    async def test_annotates_only_newer_versions(self, context, sample_mix_exs, hex_transport):
        buffer = open_buffer(sample_mix_exs)

        results = await UpdateChecker(context).check(buffer, cwd=str(sample_mix_exs.parent))

        assert len(results) == 5
        assert len(hex_transport.requests) == 5
        assert context.annotator.annotations(buffer) == EXPECTED_ANNOTATIONS
        assert [r.dependency.name for r in outdated(results)] == ["phoenix", "jason"]

        latest = {r.dependency.name: r.latest_version for r in results}
        assert latest["plug_cowboy"] == "2.6.1"
        assert latest["ecto_sql"] is None
        assert latest["telemetry"] is None

    @pytest.mark.asyncio
    async def test_failures_are_reported_but_do_not_abort(self, context, sample_mix_exs):
        buffer = open_buffer(sample_mix_exs)

        await UpdateChecker(context).check(buffer)

        # ecto_sql failed with a 500; telemetry has no releases and stays silent
        assert context.notifier.messages() == ["Failed to fetch ecto_sql from hex.pm"]
        assert len(context.annotator.annotations(buffer)) == 2

    @pytest.mark.asyncio
    async def test_rerun_does_not_accumulate(self, context, sample_mix_exs):
        buffer = open_buffer(sample_mix_exs)
        checker = UpdateChecker(context)

        await checker.check(buffer)
        first = context.annotator.annotations(buffer)
        await checker.check(buffer)
        second = context.annotator.annotations(buffer)

        assert first == second == EXPECTED_ANNOTATIONS
        # The repeated failure is shown only once per session
        assert context.notifier.messages() == ["Failed to fetch ecto_sql from hex.pm"]

    @pytest.mark.asyncio
    async def test_rerun_clears_stale_annotations(self, console, make_transport, sample_mix_exs):
        answers = {"phoenix": (200, '{"releases": [{"version": "1.8.0"}]}')}
        context = create_context(console=console, transport=make_transport(answers))
        buffer = open_buffer(sample_mix_exs)
        context.annotator.annotate(buffer, 14, "left over from an earlier run")

        await UpdateChecker(context).check(buffer)

        assert context.annotator.annotations(buffer) == [
            Annotation(line=13, text="new version available 1.8.0")
        ]

    @pytest.mark.asyncio
    async def test_clear_leaves_other_namespaces_alone(self, context, sample_mix_exs):
        buffer = open_buffer(sample_mix_exs)
        other = AnnotationLayer(namespace="diagnostics")
        other.annotate(buffer, 0, "unrelated")

        await UpdateChecker(context).check(buffer)

        assert other.annotations(buffer) == [Annotation(line=0, text="unrelated")]

    @pytest.mark.asyncio
    async def test_completion_order_is_not_declaration_order(self, context, sample_mix_exs):
        client = FakeClient(
            {"phoenix": "1.7.10", "jason": "1.4.4"},
            delays={"phoenix": 0.05, "plug_cowboy": 0.03, "jason": 0.01},
        )
        buffer = open_buffer(sample_mix_exs)

        results = await UpdateChecker(context, client_factory=lambda: client).check(buffer)

        assert client.completed[-1] == "phoenix"
        assert [r.dependency.name for r in results] == client.completed
        assert context.annotator.annotations(buffer) == EXPECTED_ANNOTATIONS

    @pytest.mark.asyncio
    async def test_closed_buffer_is_not_annotated(self, context, sample_mix_exs):
        buffer = open_buffer(sample_mix_exs)
        client = FakeClient(
            {"phoenix": "1.7.10", "jason": "1.4.4"},
            on_fetch=lambda dependency: buffer.close(),
        )

        results = await UpdateChecker(context, client_factory=lambda: client).check(buffer)

        assert len(outdated(results)) == 2
        assert not buffer.is_valid()
        assert context.annotator.annotations(buffer) == []

    @pytest.mark.asyncio
    async def test_crashing_lookup_does_not_stop_others(self, context, sample_mix_exs, fresh_error_handler):
        client = FakeClient(
            {"phoenix": "1.7.10", "jason": "1.4.4"}, failing={"phoenix"}
        )
        buffer = open_buffer(sample_mix_exs)

        results = await UpdateChecker(context, client_factory=lambda: client).check(buffer)

        assert len(results) == 4
        assert context.annotator.annotations(buffer) == [
            Annotation(line=15, text="new version available 1.4.4")
        ]
        assert fresh_error_handler.get_error_stats() == {"NETWORK_ERROR": 1}

    @pytest.mark.asyncio
    async def test_custom_message_prefix(self, console, hex_transport, sample_mix_exs):
        config = HexcheckConfig(display=DisplayConfig(message_prefix="⬆ "))
        context = create_context(config, console=console, transport=hex_transport)
        buffer = open_buffer(sample_mix_exs)

        await UpdateChecker(context).check(buffer)

        assert [a.text for a in context.annotator.annotations(buffer)] == [
            "⬆ 1.7.10",
            "⬆ 1.4.4",
        ]

    @pytest.mark.asyncio
    async def test_overlapping_runs_log_their_own_context(
        self, context, sample_mix_exs, temp_dir, caplog
    ):
        caplog.set_level(logging.INFO, logger="hexcheck.checker")
        other_dir = temp_dir / "other"
        other_dir.mkdir()
        other_manifest = other_dir / "mix.exs"
        other_manifest.write_text('  {:jason, "1.4.0"}\n')
        slow = FakeClient({"jason": "1.4.4"}, delays={"phoenix": 0.05})
        fast = FakeClient({"jason": "1.4.4"})

        await asyncio.gather(
            UpdateChecker(context, client_factory=lambda: slow).check(
                open_buffer(sample_mix_exs)
            ),
            UpdateChecker(context, client_factory=lambda: fast).check(
                open_buffer(other_manifest)
            ),
        )

        events = [r for r in caplog.records if r.name == "hexcheck.checker"]
        started = {
            r.run_id: r.manifest_path for r in events if r.event_type == "check_started"
        }
        completed = [r for r in events if r.event_type == "check_completed"]
        assert len(started) == 2
        assert len(completed) == 2
        for record in completed:
            assert record.manifest_path == started[record.run_id]
        assert completed[-1].manifest_path == str(sample_mix_exs)

    def test_run_check_sync(self, context, sample_mix_exs):
        buffer = open_buffer(sample_mix_exs)

        results = run_check(context, buffer)

        assert len(results) == 5
        assert context.annotator.annotations(buffer) == EXPECTED_ANNOTATIONS


class TestManifestResolution:
    """Test how a run finds its manifest."""

    @pytest.mark.asyncio
    async def test_falls_back_to_cwd_manifest(self, context, sample_mix_exs, temp_dir, hex_transport):
        source = temp_dir / "lib" / "my_app.ex"
        source.parent.mkdir()
        source.write_text("defmodule MyApp do\nend\n")
        buffer = open_buffer(source)

        results = await UpdateChecker(context).check(buffer, cwd=str(temp_dir))

        assert len(results) == 5
        assert {r.dependency.source_file for r in results} == {str(sample_mix_exs)}

    @pytest.mark.asyncio
    async def test_no_manifest_anywhere(self, context, temp_dir, hex_transport):
        buffer = ManifestBuffer()

        results = await UpdateChecker(context).check(buffer, cwd=str(temp_dir))

        assert results == []
        assert hex_transport.requests == []
        assert context.notifier.messages(NotificationLevel.WARN) == [
            "Could not locate mix.exs for this buffer"
        ]

    @pytest.mark.asyncio
    async def test_manifest_without_dependencies(self, context, temp_dir, hex_transport):
        manifest = temp_dir / "mix.exs"
        manifest.write_text("defmodule Empty.MixProject do\n  use Mix.Project\nend\n")
        buffer = open_buffer(manifest)

        results = await UpdateChecker(context).check(buffer, cwd=str(temp_dir))

        assert results == []
        assert hex_transport.requests == []
        assert context.notifier.messages(NotificationLevel.INFO) == [
            f"No dependencies found in {manifest}"
        ]

    def test_resolver_prefers_buffer_manifest(self, sample_mix_exs, temp_dir):
        other_dir = temp_dir / "elsewhere"
        other_dir.mkdir()
        (other_dir / "mix.exs").write_text("")
        buffer = open_buffer(sample_mix_exs)

        path = BufferResolver().resolve_manifest_path(buffer, str(other_dir))

        assert path == str(sample_mix_exs)

    def test_resolver_ignores_unreadable_buffer_path(self, temp_dir):
        buffer = ManifestBuffer(path=str(temp_dir / "missing" / "mix.exs"))

        assert BufferResolver().resolve_manifest_path(buffer, str(temp_dir)) is None


class TestAnnotations:
    """Test the annotation layer on its own."""

    def test_closed_buffer_rejects_annotations(self):
        layer = AnnotationLayer()
        buffer = ManifestBuffer(lines=["a"])
        buffer.close()

        with pytest.raises(ValueError):
            layer.annotate(buffer, 0, "x")

    def test_style_follows_display_config(self):
        style = AnnotationStyle(DisplayConfig(highlight_color=None, italic=False, bold=True)).style

        assert style.color is None
        assert style.bold is True
        assert style.italic is False
