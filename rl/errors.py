"""
Exception types for rl.

Every error raised by the link store derives from RlError so callers
(the CLI, tests, embedding applications) can catch one base class.
"""


class RlError(Exception):
    """Base class for all rl errors."""


class NotFoundError(RlError):
    """No link matches the requested id."""

    def __init__(self, link_id: str):
        super().__init__(f"link {link_id} not found")
        self.link_id = link_id


class InvalidInputError(RlError, ValueError):
    """Malformed input: bad URL, bad identifier, or malformed JSON."""


class InvalidURLError(InvalidInputError):
    """URL is not absolute or lacks a scheme or host."""

    def __init__(self, url: str):
        super().__init__(f"invalid URL: {url!r}")
        self.url = url


class InvalidIDError(InvalidInputError):
    """Identifier does not match the short ID format."""

    def __init__(self, link_id: str):
        super().__init__(f"invalid ID format: {link_id!r}")
        self.link_id = link_id


class StorageError(RlError):
    """Engine-level failure: I/O, locking, constraint violation."""


class MigrationError(StorageError):
    """A schema migration failed; the store cannot be opened."""

    def __init__(self, version: int, name: str, cause: Exception):
        super().__init__(f"migration {name} (v{version}) failed: {cause}")
        self.version = version
        self.name = name


class SearchError(RlError):
    """The full-text engine rejected a search query."""


class ImportAbortedError(StorageError):
    """
    A storage failure stopped a bulk import part-way through.

    Records before the failing one stay committed; ``report`` describes
    them.
    """

    def __init__(self, index: int, url: str, cause: Exception, report=None):
        super().__init__(f"import aborted at record {index} ({url}): {cause}")
        self.index = index
        self.url = url
        self.report = report
