from typing import Optional


class ExporterError(Exception):
    """Base class for every failure raised by the exporter."""


class ConfigurationError(ExporterError):
    """Missing, unreadable or invalid run configuration or credentials.

    Fatal: raised before any request is made.
    """


class TransportError(ExporterError):
    """Network failure, non-2xx status or unusable response body."""

    def __init__(
        self,
        message: str,
        url: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class ParseError(ExporterError):
    """A line of an export body is not a valid event record."""

    def __init__(self, message: str, line_number: Optional[int] = None):
        super().__init__(message)
        self.line_number = line_number


class WriteError(ExporterError):
    """The tabular file for an event could not be written completely."""
