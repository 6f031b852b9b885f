"""Tests for the extraction state machine."""

import asyncio
import json

import pytest

from app.drawing_reader.models import AppState, ExtractionResult, SelectedFile
from app.drawing_reader.services.extraction import (
    EmptyResponse,
    ExtractionService,
    InvalidInput,
    TransportFailure,
)
from app.drawing_reader.services.preview import PreviewStore
from app.drawing_reader.state import (
    DEFAULT_ERROR_MESSAGE,
    ExtractionController,
    ExtractionState,
    InvalidTransition,
    begin_analysis,
    complete_analysis,
    fail_analysis,
    initial_state,
    reset_state,
)


class GatedExtractor:
    """Extractor that holds every call until released."""

    def __init__(self, result: ExtractionResult):
        self.result = result
        self.release = asyncio.Event()
        self.calls = 0

    async def extract(self, image_bytes: bytes, mime_type: str) -> ExtractionResult:
        self.calls += 1
        await self.release.wait()
        return self.result


class FailingExtractor:
    """Extractor that always raises the given error."""

    def __init__(self, error: Exception):
        self.error = error

    async def extract(self, image_bytes: bytes, mime_type: str) -> ExtractionResult:
        raise self.error


@pytest.fixture
def selected_file() -> SelectedFile:
    return SelectedFile(filename="bracket.jpg", mime_type="image/jpeg", size=1024)


class TestTransitions:
    """Tests for the pure transition functions."""

    def test_initial_state_is_idle(self):
        """Test the initial record."""
        state = initial_state()
        assert state.state == AppState.IDLE
        assert state.file is None
        assert state.preview is None
        assert state.result is None
        assert state.error_message is None

    def test_begin_analysis_from_idle(self, selected_file):
        """Test IDLE -> ANALYZING."""
        state = begin_analysis(initial_state(), selected_file, "token")
        assert state.state == AppState.ANALYZING
        assert state.file == selected_file
        assert state.preview == "token"
        assert state.result is None
        assert state.error_message is None
        assert state.generation == 1

    @pytest.mark.parametrize("current", [AppState.ANALYZING, AppState.SUCCESS, AppState.ERROR])
    def test_begin_analysis_requires_idle(self, selected_file, current):
        """Test that a file can only be selected from IDLE."""
        with pytest.raises(InvalidTransition):
            begin_analysis(ExtractionState(state=current), selected_file, None)

    def test_complete_analysis(self, selected_file):
        """Test ANALYZING -> SUCCESS keeps the file and sets the result."""
        analyzing = begin_analysis(initial_state(), selected_file, "token")
        result = ExtractionResult()
        state = complete_analysis(analyzing, result, analyzing.generation)
        assert state.state == AppState.SUCCESS
        assert state.result == result
        assert state.error_message is None
        assert state.file == selected_file

    def test_fail_analysis(self, selected_file):
        """Test ANALYZING -> ERROR sets the message and no result."""
        analyzing = begin_analysis(initial_state(), selected_file, None)
        state = fail_analysis(analyzing, "quota exceeded", analyzing.generation)
        assert state.state == AppState.ERROR
        assert state.error_message == "quota exceeded"
        assert state.result is None

    def test_stale_generation_ignored(self, selected_file):
        """Test that completions for an older generation change nothing."""
        analyzing = begin_analysis(initial_state(), selected_file, None)
        stale = analyzing.generation - 1
        assert complete_analysis(analyzing, ExtractionResult(), stale) is analyzing
        assert fail_analysis(analyzing, "late", stale) is analyzing

    def test_completion_outside_analyzing_ignored(self):
        """Test that completions are ignored when not ANALYZING."""
        idle = initial_state()
        assert complete_analysis(idle, ExtractionResult(), 0) is idle
        assert fail_analysis(idle, "late", 0) is idle

    @pytest.mark.parametrize("finish", ["success", "error"])
    def test_reset_returns_to_initial(self, selected_file, finish):
        """Test that reset from SUCCESS or ERROR equals the initial state."""
        analyzing = begin_analysis(initial_state(), selected_file, "token")
        if finish == "success":
            done = complete_analysis(analyzing, ExtractionResult(), analyzing.generation)
        else:
            done = fail_analysis(analyzing, "boom", analyzing.generation)

        state = reset_state(done)
        assert state.model_copy(update={"generation": 0}) == initial_state()
        assert state.generation == done.generation


class TestExtractionController:
    """Tests for ExtractionController."""

    @pytest.mark.asyncio
    async def test_scenario_success(self, extraction_service, sample_jpeg_bytes):
        """Test a JPEG whose extraction returns two BOM rows and one dimension."""
        controller = ExtractionController(extraction_service)
        state = await controller.analyze("bracket.jpg", "image/jpeg", sample_jpeg_bytes)

        assert state.state == AppState.SUCCESS
        assert len(state.result.bom) == 2
        assert len(state.result.dimensions) == 1
        assert state.error_message is None

    @pytest.mark.asyncio
    async def test_scenario_missing_dimensions(
        self, make_openai, provider_payload, sample_jpeg_bytes
    ):
        """Test that a response without dimensions yields an empty list."""
        del provider_payload["dimensions"]
        service = ExtractionService(api_key="k", client=make_openai(content=json.dumps(provider_payload)))
        controller = ExtractionController(service)

        state = await controller.analyze("bracket.jpg", "image/jpeg", sample_jpeg_bytes)
        assert state.state == AppState.SUCCESS
        assert state.result.dimensions == []

    def test_scenario_non_image_rejected(self, extraction_service, fake_openai):
        """Test that a text file is rejected before any call and state stays IDLE."""
        controller = ExtractionController(extraction_service)
        seen = []
        controller.subscribe(seen.append)

        with pytest.raises(InvalidInput):
            controller.select_file("notes.txt", "text/plain", b"not an image")

        assert controller.state == initial_state()
        assert seen == []
        assert len(controller.previews) == 0
        assert fake_openai.completions.calls == []

    @pytest.mark.asyncio
    async def test_scenario_network_error(self, make_openai, sample_jpeg_bytes):
        """Test that a network error becomes the ERROR message."""
        client = make_openai(error=ConnectionError("Network is unreachable"))
        controller = ExtractionController(ExtractionService(api_key="k", client=client))

        state = await controller.analyze("bracket.jpg", "image/jpeg", sample_jpeg_bytes)
        assert state.state == AppState.ERROR
        assert "Network is unreachable" in state.error_message
        assert state.result is None

    @pytest.mark.asyncio
    async def test_scenario_empty_response(self, make_openai, sample_jpeg_bytes):
        """Test that an empty payload becomes an ERROR with the empty-response message."""
        controller = ExtractionController(ExtractionService(api_key="k", client=make_openai(content="")))

        state = await controller.analyze("bracket.jpg", "image/jpeg", sample_jpeg_bytes)
        assert state.state == AppState.ERROR
        assert state.error_message == str(EmptyResponse("No data returned from the extraction model"))

    @pytest.mark.asyncio
    async def test_error_without_message_uses_default(self, sample_png_bytes):
        """Test the fallback message for errors without text."""
        controller = ExtractionController(FailingExtractor(TransportFailure()))
        state = await controller.analyze("a.png", "image/png", sample_png_bytes)
        assert state.error_message == DEFAULT_ERROR_MESSAGE

    @pytest.mark.asyncio
    async def test_unexpected_error_becomes_error_state(self, sample_png_bytes):
        """Test that non-taxonomy exceptions do not escape."""
        controller = ExtractionController(FailingExtractor(RuntimeError("boom")))
        state = await controller.analyze("a.png", "image/png", sample_png_bytes)
        assert state.state == AppState.ERROR
        assert state.error_message == "boom"

    @pytest.mark.asyncio
    async def test_analyzing_entered_before_call_resolves(self, sample_png_bytes):
        """Test that selecting a file enters ANALYZING synchronously."""
        extractor = GatedExtractor(ExtractionResult())
        controller = ExtractionController(extractor)

        generation = controller.select_file("a.png", "image/png", sample_png_bytes)
        assert controller.state.state == AppState.ANALYZING
        assert controller.state.result is None
        assert controller.state.error_message is None

        task = asyncio.create_task(controller.run_extraction(sample_png_bytes, "image/png", generation))
        await asyncio.sleep(0)
        assert controller.state.state == AppState.ANALYZING

        extractor.release.set()
        await task
        assert controller.state.state == AppState.SUCCESS

    @pytest.mark.asyncio
    async def test_second_selection_while_analyzing_rejected(self, sample_png_bytes):
        """Test that only one extraction is outstanding at a time."""
        controller = ExtractionController(GatedExtractor(ExtractionResult()))
        controller.select_file("a.png", "image/png", sample_png_bytes)

        with pytest.raises(InvalidTransition):
            controller.select_file("b.png", "image/png", sample_png_bytes)
        assert controller.state.file.filename == "a.png"

    @pytest.mark.asyncio
    async def test_reset_during_analysis_discards_late_result(self, sample_png_bytes):
        """Test that a response arriving after reset is not applied."""
        extractor = GatedExtractor(ExtractionResult.model_validate({"bom": [{"description": "x", "quantity": "1"}]}))
        controller = ExtractionController(extractor)

        generation = controller.select_file("a.png", "image/png", sample_png_bytes)
        task = asyncio.create_task(controller.run_extraction(sample_png_bytes, "image/png", generation))
        await asyncio.sleep(0)

        controller.reset()
        assert controller.state.state == AppState.IDLE

        extractor.release.set()
        await task
        assert controller.state.state == AppState.IDLE
        assert controller.state.result is None

    @pytest.mark.asyncio
    async def test_late_result_does_not_overwrite_new_selection(self, sample_png_bytes):
        """Test that an old generation cannot complete a newer analysis."""
        extractor = GatedExtractor(ExtractionResult())
        controller = ExtractionController(extractor)

        first = controller.select_file("a.png", "image/png", sample_png_bytes)
        old_task = asyncio.create_task(controller.run_extraction(sample_png_bytes, "image/png", first))
        await asyncio.sleep(0)
        controller.reset()

        second = controller.select_file("b.png", "image/png", sample_png_bytes)
        assert second == first + 1

        extractor.release.set()
        await old_task
        assert controller.state.state == AppState.ANALYZING
        assert controller.state.file.filename == "b.png"

        await controller.run_extraction(sample_png_bytes, "image/png", second)
        assert controller.state.state == AppState.SUCCESS

    @pytest.mark.asyncio
    async def test_reset_releases_preview(self, extraction_service, sample_png_bytes):
        """Test that reset leaves no preview behind."""
        previews = PreviewStore()
        controller = ExtractionController(extraction_service, previews)

        await controller.analyze("a.png", "image/png", sample_png_bytes)
        token = controller.state.preview
        assert token in previews

        controller.reset()
        assert token not in previews
        assert len(previews) == 0
        assert controller.state.state == AppState.IDLE
        assert controller.state.file is None

    @pytest.mark.asyncio
    async def test_result_and_error_never_both_set(self, extraction_service, sample_png_bytes):
        """Test the mutual exclusion of result and error across transitions."""
        controller = ExtractionController(extraction_service)
        seen: list[ExtractionState] = []
        controller.subscribe(seen.append)

        await controller.analyze("a.png", "image/png", sample_png_bytes)
        controller.reset()

        assert [s.state for s in seen] == [AppState.ANALYZING, AppState.SUCCESS, AppState.IDLE]
        for state in seen:
            assert state.result is None or state.error_message is None
            if state.state == AppState.ANALYZING:
                assert state.result is None and state.error_message is None

    def test_unsubscribe(self, extraction_service, sample_png_bytes):
        """Test that unsubscribed callbacks are no longer notified."""
        controller = ExtractionController(extraction_service)
        seen = []
        unsubscribe = controller.subscribe(seen.append)
        unsubscribe()

        controller.select_file("a.png", "image/png", sample_png_bytes)
        assert seen == []

    def test_failing_subscriber_does_not_block_others(self, extraction_service, sample_png_bytes):
        """Test that one broken subscriber does not stop notification."""
        controller = ExtractionController(extraction_service)
        seen = []

        def broken(state):
            raise RuntimeError("subscriber bug")

        controller.subscribe(broken)
        controller.subscribe(seen.append)
        controller.select_file("a.png", "image/png", sample_png_bytes)
        assert len(seen) == 1

    def test_reset_from_idle_is_noop(self, extraction_service):
        """Test that resetting an idle controller notifies nobody."""
        controller = ExtractionController(extraction_service)
        seen = []
        controller.subscribe(seen.append)
        controller.reset()
        assert seen == []
        assert controller.state == initial_state()
