from __future__ import annotations


class YomiError(RuntimeError):
    """Base class for annotation and alignment failures."""


class NotReadyError(YomiError):
    """Raised when the tokenizer or vocabulary has not finished loading."""


class InvalidInputError(YomiError, ValueError):
    """Raised when a request is missing a required field."""


class UpstreamSynthesisError(YomiError):
    """Raised when the speech synthesizer call fails or times out."""


class PartialVocabularyLoadError(YomiError, ValueError):
    """Raised for a single malformed vocabulary record."""

    def __init__(self, message: str, line: int = 0) -> None:
        super().__init__(message)
        self.line = line
