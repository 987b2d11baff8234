"""Custom exception hierarchy for the speech pipeline.

All exceptions inherit from PipelineError, enabling targeted handling
at per-file boundaries while preserving specific failure context.
Empty input (no frames, no tokens) is deliberately not an error.
"""


class PipelineError(Exception):
    """Base exception for all speech pipeline errors."""

    def __init__(self, message: str, source: str | None = None) -> None:
        self.source = source
        super().__init__(message)

    def __str__(self) -> str:
        if self.source:
            return f"[source={self.source}] {super().__str__()}"
        return super().__str__()


class TranscodeError(PipelineError):
    """Raised when ffmpeg conversion or loudness normalization fails."""

    def __init__(
        self,
        message: str,
        source: str | None = None,
        input_path: str | None = None,
    ) -> None:
        self.input_path = input_path
        super().__init__(message, source)


class VADError(PipelineError):
    """Raised when voice activity detection fails."""

    def __init__(
        self,
        message: str,
        source: str | None = None,
        detail: str | None = None,
    ) -> None:
        self.detail = detail
        super().__init__(message, source)


class InvalidFrameLengthError(VADError):
    """Raised when a frame does not match the classifier's frame size.

    Callers must zero-pad or truncate frames before classifying them.
    """

    def __init__(
        self,
        expected: int,
        actual: int,
        source: str | None = None,
    ) -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Frame has {actual} samples, expected {expected}",
            source,
        )


class DetectorInitError(VADError):
    """Raised when the external speech detector cannot be created or configured."""


class ASRError(PipelineError):
    """Raised when automatic speech recognition fails."""

    def __init__(
        self,
        message: str,
        source: str | None = None,
        provider: str | None = None,
    ) -> None:
        self.provider = provider
        super().__init__(message, source)


class MalformedUnitError(PipelineError):
    """Raised when a recognition unit is missing timing or has unordered words."""

    def __init__(
        self,
        message: str,
        source: str | None = None,
        unit_start: float | None = None,
    ) -> None:
        self.unit_start = unit_start
        super().__init__(message, source)


class ScoringError(PipelineError):
    """Raised when a reference or hypothesis cannot be loaded for scoring."""

    def __init__(
        self,
        message: str,
        source: str | None = None,
        path: str | None = None,
    ) -> None:
        self.path = path
        super().__init__(message, source)
