"""
Custom exceptions for the inpainting graph driver.
"""


class InpaintingError(Exception):
    """Base error for anything that stops the driver before a clean shutdown."""

    def __init__(self, message="An error occurred while running the inpainting graph.", details=None):
        super().__init__(message)
        self.details = details

    def __str__(self):
        if self.details:
            return f"{super().__str__()} Details: {self.details}"
        return super().__str__()


class ConfigError(InpaintingError, ValueError):
    """Invalid settings file or setting value."""

    def __init__(self, message="Invalid configuration.", details=None):
        super().__init__(message, details)


class GraphConfigError(InpaintingError):
    """Graph config file could not be read, parsed or initialized."""

    def __init__(self, message="Graph configuration could not be loaded.", path=None, details=None):
        super().__init__(message, details)
        self.path = path

    def __str__(self):
        error_str = super().__str__()
        if self.path:
            error_str += f"\n  Graph config: {self.path}"
        return error_str


class CaptureError(InpaintingError):
    """Camera or input video could not be opened."""

    def __init__(self, message="Capture source could not be opened.", source=None):
        super().__init__(message)
        self.source = source

    def __str__(self):
        error_str = super().__str__()
        if self.source is not None:
            error_str += f"\n  Source: {self.source}"
        return error_str


class WriterError(InpaintingError):
    """Output video writer could not be opened."""

    def __init__(self, message="Video writer could not be opened.", path=None):
        super().__init__(message)
        self.path = path

    def __str__(self):
        error_str = super().__str__()
        if self.path:
            error_str += f"\n  Output: {self.path}"
        return error_str


class GraphError(InpaintingError):
    """The graph engine rejected a start, submission or shutdown request."""

    def __init__(self, message="Graph operation failed.", details=None):
        super().__init__(message, details)
