# studyflow/core/errors.py

from __future__ import annotations


class StudyFlowError(RuntimeError):
    """Base class for every failure the service surfaces to its callers."""


class ValidationError(StudyFlowError):
    """Empty or missing input; blocks dispatch."""


class UnsupportedFormatError(StudyFlowError):
    pass


class ParserUnavailableError(StudyFlowError):
    pass


class GenerationError(StudyFlowError):
    """External call failed or its response lacked an expected field."""


class GenerationCancelled(StudyFlowError):
    pass


class InvalidRefinementError(StudyFlowError):
    pass


class NotLoggedIn(StudyFlowError):
    pass


class RecordNotFound(StudyFlowError):
    pass


class ConfirmationRequired(StudyFlowError):
    pass


class ChatBusyError(StudyFlowError):
    pass


class GenerationInProgress(StudyFlowError):
    pass
