"""
Application state machine for drawing extraction.

States: IDLE -> ANALYZING -> SUCCESS | ERROR, and back to IDLE on reset.
Transitions are pure functions over an immutable ExtractionState; the
ExtractionController owns one state record, runs the extraction and
notifies subscribers after every committed change.

Each file selection bumps a generation counter. Completions carry the
generation they were started with and are dropped when it is stale, so a
reset during ANALYZING discards the late response instead of applying it.
"""

import logging
from typing import Callable, Protocol

from pydantic import BaseModel, ConfigDict

from .models import AppState, ExtractionResult, SelectedFile
from .services.extraction import ExtractionFailure, validate_image_upload
from .services.preview import PreviewStore

logger = logging.getLogger(__name__)

DEFAULT_ERROR_MESSAGE = "Failed to extract data from image."


class InvalidTransition(Exception):
    """Raised when an event is not allowed in the current state."""


class ExtractionState(BaseModel):
    """Immutable snapshot of the state machine."""

    model_config = ConfigDict(frozen=True)

    state: AppState = AppState.IDLE
    file: SelectedFile | None = None
    preview: str | None = None
    result: ExtractionResult | None = None
    error_message: str | None = None
    generation: int = 0


# =============================================================================
# Transitions
# =============================================================================


def initial_state() -> ExtractionState:
    return ExtractionState()


def begin_analysis(
    state: ExtractionState, file: SelectedFile, preview: str | None
) -> ExtractionState:
    """IDLE -> ANALYZING with the selected file; result and error cleared."""
    if state.state != AppState.IDLE:
        raise InvalidTransition(
            f"Cannot select a file while {state.state.value}; reset first"
        )
    return ExtractionState(
        state=AppState.ANALYZING,
        file=file,
        preview=preview,
        generation=state.generation + 1,
    )


def _is_current(state: ExtractionState, generation: int) -> bool:
    return state.state == AppState.ANALYZING and state.generation == generation


def complete_analysis(
    state: ExtractionState, result: ExtractionResult, generation: int
) -> ExtractionState:
    """ANALYZING -> SUCCESS. Stale or unexpected completions leave the state as is."""
    if not _is_current(state, generation):
        return state
    return state.model_copy(
        update={"state": AppState.SUCCESS, "result": result, "error_message": None}
    )


def fail_analysis(
    state: ExtractionState, message: str, generation: int
) -> ExtractionState:
    """ANALYZING -> ERROR. Stale or unexpected failures leave the state as is."""
    if not _is_current(state, generation):
        return state
    return state.model_copy(
        update={"state": AppState.ERROR, "result": None, "error_message": message}
    )


def reset_state(state: ExtractionState) -> ExtractionState:
    """Any state -> IDLE. The generation is kept so in-flight work stays stale."""
    return ExtractionState(generation=state.generation)


# =============================================================================
# Controller
# =============================================================================


class Extractor(Protocol):
    async def extract(self, image_bytes: bytes, mime_type: str) -> ExtractionResult: ...


Subscriber = Callable[[ExtractionState], None]


class ExtractionController:
    """
    Owns one state record and drives it through an extraction.

    Only one extraction may be outstanding at a time; selecting a file is
    accepted in IDLE only.
    """

    def __init__(self, extractor: Extractor, previews: PreviewStore | None = None):
        self._extractor = extractor
        self._previews = previews if previews is not None else PreviewStore()
        self._state = initial_state()
        self._subscribers: list[Subscriber] = []

    @property
    def state(self) -> ExtractionState:
        return self._state

    @property
    def previews(self) -> PreviewStore:
        return self._previews

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """
        Register a callback invoked with every new state.

        Returns:
            A function that removes the subscription.
        """
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def _commit(self, new_state: ExtractionState) -> None:
        if new_state == self._state:
            return
        self._state = new_state
        for callback in list(self._subscribers):
            try:
                callback(new_state)
            except Exception:
                logger.exception("State subscriber failed")

    def select_file(self, filename: str, mime_type: str | None, data: bytes) -> int:
        """
        Accept a file and enter ANALYZING.

        The upload is validated before anything else happens; an invalid
        upload leaves the state untouched.

        Args:
            filename: Original filename.
            mime_type: Declared MIME type.
            data: Encoded image payload.

        Returns:
            Generation of the extraction that should now be run.

        Raises:
            InvalidInput: If the upload is not an image.
            InvalidTransition: If the state is not IDLE.
        """
        validate_image_upload(data, mime_type)
        if self._state.state != AppState.IDLE:
            raise InvalidTransition(
                f"Cannot select a file while {self._state.state.value}; reset first"
            )

        selected = SelectedFile(filename=filename, mime_type=mime_type, size=len(data))
        preview = self._previews.create(data, mime_type)
        self._commit(begin_analysis(self._state, selected, preview))
        return self._state.generation

    async def run_extraction(self, data: bytes, mime_type: str, generation: int) -> None:
        """
        Run the extraction for `generation` and record its outcome.

        Failures never propagate; they become the ERROR state's message.
        """
        try:
            result = await self._extractor.extract(data, mime_type)
        except ExtractionFailure as e:
            logger.warning("Extraction failed (generation %d): %s", generation, e)
            self._commit(fail_analysis(self._state, str(e) or DEFAULT_ERROR_MESSAGE, generation))
            return
        except Exception as e:
            logger.exception("Unexpected error during extraction (generation %d)", generation)
            self._commit(fail_analysis(self._state, str(e) or DEFAULT_ERROR_MESSAGE, generation))
            return

        if not _is_current(self._state, generation):
            logger.info("Discarding result of stale extraction (generation %d)", generation)
            return
        self._commit(complete_analysis(self._state, result, generation))

    async def analyze(self, filename: str, mime_type: str | None, data: bytes) -> ExtractionState:
        """Select a file and run its extraction to completion."""
        generation = self.select_file(filename, mime_type, data)
        await self.run_extraction(data, mime_type, generation)
        return self._state

    def reset(self) -> None:
        """Return to IDLE and release the preview. In-flight work is not cancelled."""
        self._previews.release(self._state.preview)
        self._commit(reset_state(self._state))
