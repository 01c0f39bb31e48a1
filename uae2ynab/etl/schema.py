"""
Statement Schema - Canonical data model shared by every ETL layer.

Raw extractor output keeps the loose "fragment" shape (TypedDict field bags of
raw strings). Everything after the normalizer is an immutable dataclass with
typed fields, so downstream export never has to second-guess a value.
"""
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import TypedDict, Dict, List, Optional, Union


class StatementType(Enum):
    ACCOUNT = "Account"
    CREDIT_CARD = "Credit Card"


class Bank(Enum):
    ADCB = "ADCB"
    ENBD = "Emirates NBD"


class FailureKind(Enum):
    """File-level failures. Row-level failures never set one of these."""
    UNRECOGNIZED_FORMAT = "unrecognized_format"
    STRUCTURAL_EXTRACTION = "structural_extraction"


CENTS = Decimal("0.01")


@dataclass(frozen=True)
class Transaction:
    """
    Canonical, bank-agnostic transaction.

    amount is signed: negative = money leaving the account/card balance,
    positive = money arriving. Always exactly two decimal places.
    """
    date: date
    payee: str
    memo: str
    amount: Decimal
    source_statement_type: StatementType
    source_bank: Bank

    def __post_init__(self):
        if self.amount == 0:
            raise ValueError("Transaction amount must not be zero")
        if self.amount != self.amount.quantize(CENTS):
            raise ValueError(f"Amount {self.amount} has more than two decimal places")
        # Normalise representation so "5000" and "5000.00" compare and render alike
        object.__setattr__(self, "amount", self.amount.quantize(CENTS))
        object.__setattr__(self, "payee", self.payee.strip())
        object.__setattr__(self, "memo", self.memo.strip())

    @property
    def is_outflow(self) -> bool:
        return self.amount < 0


@dataclass
class ParseResult:
    """Outcome of parsing one statement file."""
    bank_name: str
    statement_type: Optional[StatementType]
    transactions: List[Transaction] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    failure: Optional[FailureKind] = None

    @property
    def recognized(self) -> bool:
        return self.failure is not FailureKind.UNRECOGNIZED_FORMAT

    @property
    def is_fatal(self) -> bool:
        return self.failure is not None

    @property
    def is_clean(self) -> bool:
        return not self.errors and self.failure is None


# ─────────────────────────────────────────────────────────────
# Extraction payloads (loosely typed, raw strings only)
# ─────────────────────────────────────────────────────────────

class RawRow(TypedDict):
    """One table row as found in the source, before any coercion."""
    type: str                     # 'table_row'
    data: Dict[str, str]          # column role/label -> raw cell text
    page_number: int              # 1 for CSV
    line: int                     # CSV record number or PDF line number on the page
    continuation: List[str]       # wrapped description lines (PDF only)


class ExtractionPayload(TypedDict):
    """Output from Extract layer"""
    document_hash: str            # SHA256 of the raw bytes
    fragments: List[RawRow]
    source_file: str
    errors: List[str]             # rows the extractor itself could not use


# ─────────────────────────────────────────────────────────────
# Per-file lifecycle (Pending -> Settled, exactly once)
# ─────────────────────────────────────────────────────────────

class StatementFile:
    """
    An input file handed over by the caller.

    Compared by identity: two uploads may share a name and even bytes, but
    they are still different files in the batch.
    """

    def __init__(self, name: str, content: bytes):
        self.name = name
        self.content = content

    def __repr__(self) -> str:
        return f"StatementFile(name={self.name!r}, size={len(self.content)})"


class Outcome(Enum):
    OK = "ok"
    WARN = "warn"
    FAIL = "fail"


@dataclass(frozen=True)
class Pending:
    pass


@dataclass(frozen=True)
class Settled:
    outcome: Outcome
    result: Optional[ParseResult] = None
    error: Optional[str] = None

    def __post_init__(self):
        if self.outcome is Outcome.OK and (self.result is None or self.error is not None):
            raise ValueError("OK requires a result and no error")
        if self.outcome is Outcome.WARN and (self.result is None or not self.error):
            raise ValueError("WARN requires both a result and a warning")
        if self.outcome is Outcome.FAIL and (self.result is not None or not self.error):
            raise ValueError("FAIL requires an error and no result")

    @classmethod
    def from_result(cls, result: ParseResult) -> "Settled":
        """Map a ParseResult onto the three settled outcomes."""
        message = "; ".join(result.errors)
        if result.is_fatal:
            return cls(Outcome.FAIL, error=message or "Failed to parse file")
        if result.errors:
            return cls(Outcome.WARN, result=result, error=message)
        return cls(Outcome.OK, result=result)


FileState = Union[Pending, Settled]


class FileResult:
    """Caller-side wrapper tracking one submitted file."""

    def __init__(self, file: StatementFile):
        self.file = file
        self._state: FileState = Pending()

    @property
    def state(self) -> FileState:
        return self._state

    @property
    def loading(self) -> bool:
        return isinstance(self._state, Pending)

    @property
    def result(self) -> Optional[ParseResult]:
        return None if self.loading else self._state.result

    @property
    def error(self) -> Optional[str]:
        return None if self.loading else self._state.error

    def settle(self, settled: Settled) -> None:
        if not self.loading:
            raise RuntimeError(f"{self.file.name} has already settled")
        self._state = settled

    def __repr__(self) -> str:
        return f"FileResult({self.file!r}, state={self._state!r})"
