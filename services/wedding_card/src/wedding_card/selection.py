"""
Selection and view state machine.

EMPTY → ORIGINAL_ONLY → OPTIMIZING → DUAL

A new selection re-enters ORIGINAL_ONLY from any state and drops every derived variant.
Results are applied only if the request id, file and style they were started with are
still current.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import Enum, auto
from typing import Optional

from common.config import settings
from common.logging import get_logger

from .client import UploadResult, WeddingCardClient
from .errors import StaleResultError, TransportError, ValidationError
from .media import ImageVariant, SelectedFile, validate_selection
from .session import OptimizationSession

LOGGER = get_logger(__name__)

UPLOAD_SUCCESS_MESSAGE = (
    "Upload complete! Your greeting card is being printed at the reception desk. "
    "Write your wishes for the couple on it and pin it to the board."
)


class ViewPhase(Enum):
    EMPTY = auto()
    ORIGINAL_ONLY = auto()
    OPTIMIZING = auto()
    DUAL = auto()


class MessageLevel(str, Enum):
    SUCCESS = "success"
    ERROR = "error"


@dataclass
class StatusMessage:
    text: str
    level: MessageLevel = MessageLevel.ERROR


@dataclass
class ViewState:
    """Everything the UI renders. Owned by SelectionStateMachine."""

    phase: ViewPhase = ViewPhase.EMPTY
    file: Optional[SelectedFile] = None
    original: Optional[ImageVariant] = None
    optimized: Optional[ImageVariant] = None
    style: int = 0
    optimize_on: bool = False
    toggle_enabled: bool = True
    submit_enabled: bool = False
    optimizing: bool = False
    uploading: bool = False
    message: Optional[StatusMessage] = None

    # bumped on every new selection / reset
    selection_id: int = 0
    # bumped whenever a pending optimization result must be ignored
    request_id: int = 0

    @property
    def busy(self) -> bool:
        return self.optimizing or self.uploading

    @property
    def displayed(self) -> Optional[ImageVariant]:
        """Active variant: optimized when the toggle is on and it matches the style, else original."""
        if self.optimize_on and self.optimized is not None and self.optimized.style == self.style:
            return self.optimized
        return self.original


class SelectionStateMachine:
    """Reacts to file picks, optimize toggles, style changes and submission."""

    def __init__(
        self,
        session: OptimizationSession,
        client: Optional[WeddingCardClient] = None,
        style: int = 0,
        style_count: Optional[int] = None,
        max_bytes: Optional[int] = None,
    ) -> None:
        self.session = session
        self.client = client or session.client
        self.style_count = style_count
        self.max_bytes = settings.max_upload_bytes if max_bytes is None else max_bytes
        self.state = ViewState(style=style)

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------
    async def select_file(self, file: SelectedFile) -> bool:
        """Validate and adopt `file`. An invalid file leaves the current selection untouched."""
        try:
            validate_selection(file, self.max_bytes)
        except ValidationError as exc:
            LOGGER.info("File rejected", filename=file.name, reason=exc.message)
            self.state.message = StatusMessage(exc.message)
            return False

        previous = self.state
        self.state = ViewState(
            phase=ViewPhase.ORIGINAL_ONLY,
            file=file,
            style=previous.style,
            submit_enabled=True,
            selection_id=previous.selection_id + 1,
            request_id=previous.request_id + 1,
        )
        selection_id = self.state.selection_id

        original = await asyncio.to_thread(ImageVariant.original, file)
        if self.state.selection_id != selection_id:
            LOGGER.debug("Discarding decode of superseded selection", filename=file.name)
            return True
        self.state.original = original
        return True

    def reset(self) -> None:
        previous = self.state
        self.state = ViewState(
            style=previous.style,
            selection_id=previous.selection_id + 1,
            request_id=previous.request_id + 1,
        )

    # ------------------------------------------------------------------
    # Optimization
    # ------------------------------------------------------------------
    async def set_optimize(self, enabled: bool) -> None:
        state = self.state
        if state.file is None:
            return

        if not enabled:
            state.request_id += 1
            state.optimize_on = False
            state.optimizing = False
            state.toggle_enabled = True
            state.phase = ViewPhase.DUAL if state.optimized is not None else ViewPhase.ORIGINAL_ONLY
            return

        if state.optimize_on and state.optimizing:
            return
        state.optimize_on = True
        if state.optimized is not None and state.optimized.style == state.style:
            state.phase = ViewPhase.DUAL
            return
        await self._optimize()

    async def change_style(self, style: int) -> bool:
        state = self.state
        if style < 0 or (self.style_count is not None and style >= self.style_count):
            state.message = StatusMessage("Invalid image style selected")
            return False
        if style == state.style:
            return True

        state.style = style
        state.request_id += 1
        if state.file is not None and state.optimize_on:
            await self._optimize()
        return True

    def _is_current(self, request_id: int, file: SelectedFile, style: int) -> bool:
        state = self.state
        return state.request_id == request_id and state.file is file and state.style == style

    async def _optimize(self) -> None:
        state = self.state
        file, style = state.file, state.style
        state.request_id += 1
        request_id = state.request_id

        state.phase = ViewPhase.OPTIMIZING
        state.optimizing = True
        state.toggle_enabled = False
        state.message = None

        try:
            variant = await self.session.request_optimized(
                file, style, lambda: self._is_current(request_id, file, style)
            )
        except StaleResultError:
            return
        except (TransportError, ValidationError) as exc:
            state.message = StatusMessage(f"Optimization failed: {exc.message}")
            state.optimize_on = False
            state.phase = ViewPhase.DUAL if state.optimized is not None else ViewPhase.ORIGINAL_ONLY
            return
        finally:
            if self._is_current(request_id, file, style):
                state.optimizing = False
                state.toggle_enabled = True

        state.optimized = variant
        state.phase = ViewPhase.DUAL

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------
    async def submit(self) -> Optional[UploadResult]:
        """Upload the displayed variant; on success return to EMPTY."""
        state = self.state
        if state.file is None or not state.submit_enabled or state.uploading:
            return None

        file = state.file
        variant = state.displayed or ImageVariant.original(file)
        state.submit_enabled = False
        state.uploading = True
        state.message = None

        try:
            result = await self.client.upload(file.name, variant.content, variant.media_type)
        except (TransportError, ValidationError) as exc:
            LOGGER.warning("Upload failed", filename=file.name, error=exc.message)
            # the guest may have picked another file while the upload was in flight
            current = self.state
            current.message = StatusMessage(f"Error: {exc.message}")
            if current.file is file:
                current.submit_enabled = True
            return None
        finally:
            state.uploading = False

        LOGGER.info("Upload succeeded", filename=file.name, file_id=result.file_id, variant=variant.kind.value)
        self.reset()
        self.state.message = StatusMessage(UPLOAD_SUCCESS_MESSAGE, MessageLevel.SUCCESS)
        return result


__all__ = [
    "SelectionStateMachine",
    "ViewState",
    "ViewPhase",
    "StatusMessage",
    "MessageLevel",
    "UPLOAD_SUCCESS_MESSAGE",
]
