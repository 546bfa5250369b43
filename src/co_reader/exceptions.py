"""Exception types shared across the package."""


class CoReaderError(Exception):
    """Base class for all package errors"""


class AnchorBuildError(CoReaderError):
    """A selection could not be turned into a storable anchor"""


class StorageError(CoReaderError):
    """The persistence layer failed to read or write a collection"""
