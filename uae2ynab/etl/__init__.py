"""
ETL Package - UAE bank statement to YNAB converter

Modules:
- profiles: per-bank signatures, sign rules and PDF calibration
- detect: content-based bank / statement type detection
- extract: CSV and positioned-text PDF row extraction
- filter: summary and balance row separation
- transform: date, amount, sign and payee/memo normalization
- load: YNAB CSV / xlsx generation
- pipeline: Main orchestrator
- schema: data model
"""
from .pipeline import ETLPipeline, FileBatch
from .load import YNABLoader, export_filename, combined_export_filename
from .schema import (
    Bank,
    FailureKind,
    FileResult,
    Outcome,
    ParseResult,
    StatementFile,
    StatementType,
    Transaction,
)

__all__ = [
    'ETLPipeline', 'FileBatch', 'YNABLoader', 'export_filename', 'combined_export_filename',
    'Bank', 'FailureKind', 'FileResult', 'Outcome', 'ParseResult', 'StatementFile',
    'StatementType', 'Transaction',
]
