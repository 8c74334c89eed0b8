"""Tests for the preview workflow in :mod:`hairgenius.orchestrator`."""

from __future__ import annotations

import asyncio
from typing import Callable, Optional

import pytest

from hairgenius.catalog import STYLES_LIST
from hairgenius.config import Settings
from hairgenius.errors import GenerationError
from hairgenius.orchestrator import BatchOrchestrator
from hairgenius.schemas import AppState, GeneratedPreview, PreviewStatus, StyleOption
from hairgenius.session import Session
from hairgenius.aiservices.imagegenerationclient import GenerationResult

STYLE_A = StyleOption(id="a", label="A", prompt="style a", category="style")
STYLE_B = StyleOption(id="b", label="B", prompt="style b", category="style")
STYLE_C = StyleOption(id="c", label="C", prompt="style c", category="creative")
COLOR_RED = StyleOption(id="red", label="Red", prompt="bright red", category="color")

RATE_LIMITED = GenerationError("Too many requests. Please try again later.", status_code=429)


class FakeGenerator:
    """Records calls and answers from a per-prompt script."""

    def __init__(self) -> None:
        self.calls: list[dict] = []
        self.outcomes: dict[str, list] = {}
        self.before_return: Optional[Callable[[dict], None]] = None

    def script(self, prompt: str, *outcomes) -> None:
        self.outcomes.setdefault(prompt, []).extend(outcomes)

    async def generate_hairstyle(
        self,
        image,
        prompt,
        reference_image=None,
        mime_type="image/jpeg",
        high_quality=False,
    ) -> GenerationResult:
        call = {
            "image": image,
            "prompt": prompt,
            "reference_image": reference_image,
            "mime_type": mime_type,
            "high_quality": high_quality,
        }
        self.calls.append(call)
        if self.before_return is not None:
            self.before_return(call)

        queued = self.outcomes.get(prompt)
        outcome = queued.pop(0) if queued else f"data:image/png;base64,{len(self.calls)}"
        if isinstance(outcome, BaseException):
            raise outcome
        return GenerationResult(image_url=outcome)


class RecordingSleep:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


@pytest.fixture
def session() -> Session:
    session = Session()
    session.select_image("c291cmNl", "image/png")
    return session


@pytest.fixture
def generator() -> FakeGenerator:
    return FakeGenerator()


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def orchestrator(session, generator, sleep) -> BatchOrchestrator:
    return BatchOrchestrator(
        session,
        generator,
        Settings(api_key="k"),
        styles=[STYLE_A, STYLE_B],
        colors=[COLOR_RED],
        sleep=sleep,
    )


def _prompts(generator: FakeGenerator) -> list[str]:
    return [call["prompt"] for call in generator.calls]


# ----------------------------------------------------------------------
# Batch generation
# ----------------------------------------------------------------------
def test_batch_all_succeed(orchestrator, session, generator, sleep) -> None:
    generator.script("Change hair to style a", "u1")
    generator.script("Change hair to style b", "u2")

    assert asyncio.run(orchestrator.batch_generate()) is True

    assert session.previews == {
        "a": GeneratedPreview(styleId="a", status=PreviewStatus.SUCCESS, imageUrl="u1"),
        "b": GeneratedPreview(styleId="b", status=PreviewStatus.SUCCESS, imageUrl="u2"),
    }
    assert session.app_state is AppState.READY_TO_GENERATE
    assert sleep.delays == [1.5, 1.5]


def test_batch_calls_use_low_fidelity_and_no_reference(orchestrator, generator) -> None:
    asyncio.run(orchestrator.batch_generate())

    for call in generator.calls:
        assert call["image"] == "c291cmNl"
        assert call["mime_type"] == "image/png"
        assert call["reference_image"] is None
        assert call["high_quality"] is False


def test_batch_continues_after_rate_limited_item(orchestrator, session, generator) -> None:
    generator.script("Change hair to style a", RATE_LIMITED)
    generator.script("Change hair to style b", "u2")

    asyncio.run(orchestrator.batch_generate())

    assert session.previews["a"] == GeneratedPreview(
        styleId="a",
        status=PreviewStatus.ERROR,
        error="Too many requests. Please try again later.",
    )
    assert session.previews["b"].status is PreviewStatus.SUCCESS
    assert _prompts(generator) == ["Change hair to style a", "Change hair to style b"]


def test_batch_visits_styles_in_catalog_order(session, generator, sleep) -> None:
    orchestrator = BatchOrchestrator(session, generator, Settings(api_key="k"), sleep=sleep)

    asyncio.run(orchestrator.batch_generate())

    assert _prompts(generator) == [f"Change hair to {style.prompt}" for style in STYLES_LIST]
    assert set(session.previews) == {style.id for style in STYLES_LIST}
    assert all(preview.is_terminal for preview in session.previews.values())


def test_batch_failure_is_isolated(session, generator, sleep) -> None:
    orchestrator = BatchOrchestrator(
        session, generator, Settings(api_key="k"), styles=[STYLE_A, STYLE_B, STYLE_C], sleep=sleep
    )
    generator.script("Change hair to style b", RuntimeError("socket closed"))

    asyncio.run(orchestrator.batch_generate())

    assert session.previews["a"].status is PreviewStatus.SUCCESS
    assert session.previews["b"].status is PreviewStatus.ERROR
    assert session.previews["b"].error == "socket closed"
    assert session.previews["c"].status is PreviewStatus.SUCCESS


def test_batch_uses_fallback_message_for_empty_errors(orchestrator, session, generator) -> None:
    generator.script("Change hair to style a", GenerationError(""))
    generator.script("Change hair to style b", RuntimeError())

    asyncio.run(orchestrator.batch_generate())

    assert session.previews["a"].error == "Generation failed"
    assert session.previews["b"].error == "Generation failed"


def test_batch_skips_styles_that_already_succeeded(orchestrator, session, generator, sleep) -> None:
    done = GeneratedPreview(styleId="a", status=PreviewStatus.SUCCESS, imageUrl="kept")
    session.set_preview(done)
    session.set_preview(GeneratedPreview(styleId="b", status=PreviewStatus.ERROR, error="old"))

    asyncio.run(orchestrator.batch_generate())

    assert _prompts(generator) == ["Change hair to style b"]
    assert session.previews["a"] is done
    assert session.previews["b"].status is PreviewStatus.SUCCESS
    assert sleep.delays == [1.5]


def test_batch_rerun_after_full_success_issues_no_calls(orchestrator, session, generator) -> None:
    asyncio.run(orchestrator.batch_generate())
    first = dict(session.previews)
    generator.calls.clear()

    asyncio.run(orchestrator.batch_generate())

    assert generator.calls == []
    assert session.previews == first


def test_batch_without_source_image_is_a_noop(generator, sleep) -> None:
    session = Session()
    orchestrator = BatchOrchestrator(session, generator, Settings(api_key="k"), styles=[STYLE_A], sleep=sleep)

    assert asyncio.run(orchestrator.batch_generate()) is False

    assert generator.calls == []
    assert sleep.delays == []
    assert session.previews == {}
    assert session.app_state is AppState.IDLE


def test_batch_publishes_progress_after_every_item(orchestrator, session) -> None:
    snapshots: list[dict] = []
    session.subscribe(snapshots.append)

    asyncio.run(orchestrator.batch_generate())

    statuses = [{k: v.status for k, v in snapshot.items()} for snapshot in snapshots]
    assert statuses == [
        {"a": PreviewStatus.LOADING, "b": PreviewStatus.LOADING},
        {"a": PreviewStatus.SUCCESS, "b": PreviewStatus.LOADING},
        {"a": PreviewStatus.SUCCESS, "b": PreviewStatus.SUCCESS},
    ]


def test_batch_marks_state_while_running(orchestrator, session, generator) -> None:
    seen: list[AppState] = []
    generator.before_return = lambda call: seen.append(session.app_state)

    asyncio.run(orchestrator.batch_generate())

    assert seen == [AppState.BATCH_GENERATING, AppState.BATCH_GENERATING]
    assert session.app_state is AppState.READY_TO_GENERATE


def test_batch_clears_previous_session_error(orchestrator, session) -> None:
    session.error = "Failed to apply color."

    asyncio.run(orchestrator.batch_generate())

    assert session.error is None


def test_batch_stops_when_source_image_is_replaced(orchestrator, session, generator) -> None:
    def replace_photo(call: dict) -> None:
        if call["prompt"] == "Change hair to style a":
            session.select_image("bmV3", "image/jpeg")

    generator.before_return = replace_photo

    asyncio.run(orchestrator.batch_generate())

    assert _prompts(generator) == ["Change hair to style a"]
    assert session.previews == {}
    assert session.app_state is AppState.READY_TO_GENERATE
    assert not orchestrator.is_busy


# ----------------------------------------------------------------------
# Single-flight guard
# ----------------------------------------------------------------------
def test_second_flow_is_rejected_while_batch_runs(orchestrator, session, generator) -> None:
    rejected: list[bool] = []

    async def scenario() -> None:
        gate = asyncio.Event()
        original = generator.generate_hairstyle

        async def slow_generate(*args, **kwargs):
            await gate.wait()
            return await original(*args, **kwargs)

        generator.generate_hairstyle = slow_generate
        batch = asyncio.create_task(orchestrator.batch_generate())
        await asyncio.sleep(0)

        assert orchestrator.is_busy
        rejected.append(await orchestrator.batch_generate())
        rejected.append(await orchestrator.retry_style("a"))
        rejected.append(await orchestrator.refine("a", "red"))
        rejected.append(await orchestrator.custom_generate("spiky"))

        gate.set()
        await batch

    asyncio.run(scenario())

    assert rejected == [False, False, False, False]
    assert _prompts(generator) == ["Change hair to style a", "Change hair to style b"]
    assert session.generated_image is None
    assert not orchestrator.is_busy


# ----------------------------------------------------------------------
# Retry
# ----------------------------------------------------------------------
def test_retry_only_touches_target_style(orchestrator, session, generator, sleep) -> None:
    generator.script("Change hair to style a", RATE_LIMITED, "u1-retry")
    asyncio.run(orchestrator.batch_generate())
    before_b = session.previews["b"]
    sleep.delays.clear()

    assert asyncio.run(orchestrator.retry_style("a")) is True

    assert session.previews["a"] == GeneratedPreview(
        styleId="a", status=PreviewStatus.SUCCESS, imageUrl="u1-retry"
    )
    assert session.previews["b"] is before_b
    assert sleep.delays == []


def test_retry_passes_through_loading(orchestrator, session, generator) -> None:
    session.set_preview(GeneratedPreview(styleId="a", status=PreviewStatus.ERROR, error="old"))
    snapshots: list[dict] = []
    session.subscribe(snapshots.append)
    generator.script("Change hair to style a", GenerationError("still failing"))

    asyncio.run(orchestrator.retry_style("a"))

    assert [s["a"] for s in snapshots] == [
        GeneratedPreview(styleId="a", status=PreviewStatus.LOADING),
        GeneratedPreview(styleId="a", status=PreviewStatus.ERROR, error="still failing"),
    ]
    assert "b" not in session.previews


def test_retry_uses_retry_fallback_message(orchestrator, session, generator) -> None:
    generator.script("Change hair to style b", GenerationError(""))

    asyncio.run(orchestrator.retry_style("b"))

    assert session.previews["b"].error == "Retry failed"


def test_retry_same_call_shape_as_batch(orchestrator, generator) -> None:
    asyncio.run(orchestrator.retry_style("b"))

    assert generator.calls == [
        {
            "image": "c291cmNl",
            "prompt": "Change hair to style b",
            "reference_image": None,
            "mime_type": "image/png",
            "high_quality": False,
        }
    ]


def test_retry_unknown_style_is_a_noop(orchestrator, session, generator) -> None:
    assert asyncio.run(orchestrator.retry_style("mullet")) is False

    assert generator.calls == []
    assert session.previews == {}


def test_retry_without_source_image_is_a_noop(generator, sleep) -> None:
    orchestrator = BatchOrchestrator(Session(), generator, Settings(api_key="k"), styles=[STYLE_A], sleep=sleep)

    assert asyncio.run(orchestrator.retry_style("a")) is False
    assert generator.calls == []


# ----------------------------------------------------------------------
# Refine and custom generation
# ----------------------------------------------------------------------
def test_refine_sets_final_image(orchestrator, session, generator) -> None:
    generator.script("Change hair to style a, dyed bright red", "final")

    assert asyncio.run(orchestrator.refine("a", "red")) is True

    assert session.generated_image == "final"
    assert session.app_state is AppState.SUCCESS
    assert generator.calls[0]["high_quality"] is True
    assert generator.calls[0]["reference_image"] is None
    assert session.previews == {}


def test_refine_failure_reverts_to_ready(orchestrator, session, generator) -> None:
    generator.script("Change hair to style a, dyed bright red", RATE_LIMITED)

    assert asyncio.run(orchestrator.refine("a", "red")) is False

    assert session.error == "Too many requests. Please try again later."
    assert session.app_state is AppState.READY_TO_GENERATE
    assert session.generated_image is None


def test_refine_failure_fallback_message(orchestrator, session, generator) -> None:
    generator.script("Change hair to style a, dyed bright red", GenerationError(""))

    asyncio.run(orchestrator.refine("a", "red"))

    assert session.error == "Failed to apply color."


@pytest.mark.parametrize(("style_id", "color_id"), [("zz", "red"), ("a", "zz")])
def test_refine_with_unknown_ids_is_a_noop(orchestrator, session, generator, style_id, color_id) -> None:
    assert asyncio.run(orchestrator.refine(style_id, color_id)) is False

    assert generator.calls == []
    assert session.app_state is AppState.READY_TO_GENERATE


def test_custom_generate_with_reference_image(orchestrator, session, generator) -> None:
    generator.before_return = lambda call: setattr(generator, "state_during_call", session.app_state)

    assert asyncio.run(orchestrator.custom_generate("  copy this fade  ", "cmVm")) is True

    call = generator.calls[0]
    assert call["prompt"] == "copy this fade"
    assert call["reference_image"] == "cmVm"
    assert call["high_quality"] is True
    assert generator.state_during_call is AppState.CUSTOM_GENERATING
    assert session.app_state is AppState.SUCCESS


def test_custom_generate_failure_sets_error(orchestrator, session, generator) -> None:
    session.generated_image = "earlier"
    generator.script("spiky", GenerationError(""))

    assert asyncio.run(orchestrator.custom_generate("spiky")) is False

    assert session.error == "Custom generation failed."
    assert session.generated_image == "earlier"
    assert session.app_state is AppState.READY_TO_GENERATE


def test_custom_generate_blank_prompt_is_a_noop(orchestrator, generator) -> None:
    assert asyncio.run(orchestrator.custom_generate("   ")) is False
    assert generator.calls == []


def test_new_upload_resets_session(orchestrator, session) -> None:
    asyncio.run(orchestrator.batch_generate())
    asyncio.run(orchestrator.refine("a", "red"))

    session.select_image("b3RoZXI=", "image/webp")

    assert session.previews == {}
    assert session.generated_image is None
    assert session.error is None
    assert session.app_state is AppState.READY_TO_GENERATE
    assert session.source_image.mimeType == "image/webp"


def test_clear_returns_to_idle(orchestrator, session) -> None:
    asyncio.run(orchestrator.batch_generate())

    session.clear()

    assert session.source_image is None
    assert session.previews == {}
    assert session.app_state is AppState.IDLE
    assert not session.has_successful_preview()
