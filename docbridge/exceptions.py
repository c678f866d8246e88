"""Custom exceptions for docbridge."""


class DocbridgeError(Exception):
    """Base exception class for docbridge."""

    pass


class EngineError(DocbridgeError):
    """Conversion engine could not be brought up."""

    pass


class ScriptLoadError(EngineError):
    """The engine bootstrap could not be fetched or executed."""

    def __init__(self, script: str, cause: Exception | None = None) -> None:
        self.script = script
        self.cause = cause
        message = f"Failed to load engine bootstrap: {script}"
        if cause is not None:
            message += f" ({cause})"
        super().__init__(message)


class EngineNotFoundError(EngineError):
    """Bootstrap loaded but no engine module was exposed."""

    def __init__(self, message: str = "Engine module not found after script loading") -> None:
        super().__init__(message)


class InitializationTimeoutError(EngineError):
    """Engine runtime did not report readiness in time."""

    def __init__(self, timeout: float) -> None:
        self.timeout = timeout
        super().__init__(f"Engine initialization timeout after {timeout:g}s")


class UnsupportedFormatError(DocbridgeError):
    """File extension has no document type."""

    def __init__(self, extension: str) -> None:
        self.extension = extension
        super().__init__(f"Unsupported file format: {extension or '<none>'}")


class ConversionFailedError(DocbridgeError):
    """Engine entry point returned a non-zero status."""

    def __init__(self, code: int) -> None:
        self.code = code
        super().__init__(f"Conversion failed with code: {code}")


class TabularConversionError(DocbridgeError):
    """A step of the CSV fallback pipeline failed.

    The message always ends with advice to reformat the file, since the
    usual cause is malformed input rather than a system fault.
    """

    ADVICE = "Please ensure your CSV file is properly formatted and try again."

    def __init__(self, stage: str, message: str, cause: Exception | None = None) -> None:
        self.stage = stage
        self.cause = cause
        super().__init__(f"Failed to {stage}: {message}. {self.ADVICE}")


class SaveCancelledError(DocbridgeError):
    """User dismissed the interactive save prompt."""

    pass


class ConfigurationError(DocbridgeError):
    """Configuration error."""

    pass
