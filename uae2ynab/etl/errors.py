"""
Error kinds raised inside the ETL layers.

Only RowNormalizationError is expected to be raised many times per file; the
pipeline turns each one into a single diagnostic string and moves on.
"""


class StatementError(Exception):
    """Base class for every statement ingestion failure."""


class UnrecognizedFormatError(StatementError):
    def __init__(self, filename: str):
        super().__init__(
            f"Unrecognized format: {filename} does not match any supported bank statement"
        )
        self.filename = filename


class StructuralExtractionError(StatementError):
    """Format recognized but no transaction table could be located."""


class RowNormalizationError(StatementError):
    """A single row's date, amount or required field could not be parsed."""
