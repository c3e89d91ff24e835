# studyflow/core/pipeline.py

from typing import Optional

from studyflow.clients.contracts import CredentialPicker
from studyflow.core.errors import GenerationCancelled, GenerationInProgress
from studyflow.core.generation import DEFAULT_FLASHCARD_COUNT, CancelToken, GenerationDispatcher
from studyflow.core.refine import can_refine, refine
from studyflow.core.state import AppState
from studyflow.core.types import OutputFormat, StudyStyle
from studyflow.inputs.acquisition import StudyInput, acquire
from studyflow.memory.models import ContentRecord
from studyflow.utils.logging import get_logger

logger = get_logger(__name__)


class StudyPipeline:
    """
    Input acquisition -> dispatcher -> history append, plus refinement.

    Only one generation runs per AppState at a time; a second request while
    one is pending raises GenerationInProgress. Failures propagate unchanged
    and nothing is appended.
    """

    def __init__(
        self,
        state: AppState,
        dispatcher: GenerationDispatcher,
        credentials: Optional[CredentialPicker] = None,
    ) -> None:
        self.state = state
        self.dispatcher = dispatcher
        self.credentials = credentials

    def _begin(self) -> CancelToken:
        if self.state.generating:
            raise GenerationInProgress("A generation is already running.")
        token = CancelToken()
        self.state.generating = True
        self.state.cancel_token = token
        return token

    def _end(self) -> None:
        self.state.generating = False
        self.state.cancel_token = None

    async def generate(
        self,
        source: StudyInput,
        style: StudyStyle,
        format: OutputFormat,
    ) -> Optional[ContentRecord]:
        """
        Returns the new record (already appended to history), or None when the
        user declined credential selection for a video.
        """
        self.state.require_identity()
        token = self._begin()
        try:
            # Credential check comes first so a declined video costs nothing
            if format == OutputFormat.VIDEO:
                if not await self.dispatcher.ensure_video_credential(self.credentials):
                    return None

            raw_text, label = await acquire(source, self.dispatcher.client)
            record = await self.dispatcher.generate(
                raw_text, style, format, source_label=label, cancel=token,
            )
            if record is None:
                return None
            if token.cancelled:
                # Identity changed while we were waiting; the result belongs to nobody.
                raise GenerationCancelled("Generation was cancelled.")

            self.state.append(record)
            logger.info("Generated %s record %s (%r).", record.format.value, record.id, record.title)
            return record
        except Exception as e:
            logger.error("Generation failed (%s, %s): %s", format.value, style.value, e)
            raise
        finally:
            self._end()

    async def refine(
        self,
        record_id: str,
        target_format: OutputFormat,
        count: int = DEFAULT_FLASHCARD_COUNT,
    ) -> Optional[ContentRecord]:
        """
        Refine a stored Notes record. Non-Notes sources are ignored (None).
        """
        self.state.require_identity()
        source = self.state.get(record_id)
        if not can_refine(source, target_format):
            return None

        token = self._begin()
        try:
            record = await refine(self.dispatcher, source, target_format, count)
            if record is None:
                return None
            if token.cancelled:
                raise GenerationCancelled("Refinement was cancelled.")
            self.state.append(record)
            logger.info("Refined %s into %s record %s.", source.id, record.format.value, record.id)
            return record
        except Exception as e:
            logger.error("Error generating refinement of %s: %s", record_id, e)
            raise
        finally:
            self._end()
