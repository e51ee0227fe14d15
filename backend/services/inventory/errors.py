class InventoryError(Exception):
    """Base class for inventory ingestion errors."""


class ParseError(InventoryError):
    """The uploaded buffer could not be turned into rows."""


class UnsupportedFormatError(InventoryError):
    """The file extension is not one of the accepted formats."""


class ConcurrentWriteError(InventoryError):
    """Another ingestion or deletion is already in flight."""
