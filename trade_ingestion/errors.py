class IngestionError(RuntimeError):
    """Base class for every failure raised by an ingestion run."""


class TransportError(IngestionError):
    """Raised when a page cannot be fetched (network failure or non-2xx status)."""


class ConversionError(IngestionError, ValueError):
    """Raised when a raw record cannot be converted into a Trade."""


class EmptyPageError(IngestionError):
    """Raised when a fetch returns no records past the current cursor."""


class BoundaryOverflowError(IngestionError):
    """Raised when a full page shares one key and the source cannot page by offset.

    Fetching again with the same parameters returns the same page, so callers
    must not retry this automatically.
    """


class StateParseError(IngestionError, ValueError):
    """Raised when persisted progress cannot be parsed into a cursor."""


class WriteError(IngestionError):
    """Raised when a sink fails to persist a batch."""


class RecorderError(IngestionError):
    """Raised on an I/O fault while reading or writing persisted progress."""
