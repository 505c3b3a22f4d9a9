"""Exception taxonomy for the relay.

Request-scoped errors (`InvalidRequest`, `FeedError`, `SerializationError`)
abort the whole response. Download and extraction errors raised while
enriching a single item are caught by the enricher and never reach the caller.
"""


class RelayError(Exception):
    """Base class for every error raised by this package."""


class InvalidRequest(RelayError, ValueError):
    """The caller sent something we cannot act on."""


class InvalidFeedURL(InvalidRequest):
    pass


class InvalidParameter(InvalidRequest):
    pass


class FetchError(RelayError):
    """Downloading a document failed."""


class FetchCancelled(FetchError):
    pass


class DocumentTooLarge(FetchError):
    pass


class UnsupportedDocument(FetchError):
    """The response was not the kind of document we asked for."""


class FeedError(RelayError):
    """The source feed could not be obtained."""


class FeedFetchError(FeedError):
    pass


class FeedParseError(FeedError):
    pass


class ExtractionError(RelayError):
    """Readable content could not be extracted from a page."""


class SerializationError(RelayError):
    """The assembled feed could not be written in its output format."""
