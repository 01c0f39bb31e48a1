"""
Statement Profiles - Per-bank configuration data for every supported variant.

Each bank x statement-type combination is one immutable StatementProfile.
Detection picks a profile; extraction and normalization are driven entirely by
the data in it. A new bank means a new Variant and a new PROFILES entry.

PDF calibration (line tolerance, column x-bands) lives in PdfLayout so it can
be tuned per statement layout without touching extraction logic. Bands are in
PDF points measured from the left page edge of an A4 page.
"""
import re
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Mapping, Optional, Tuple, List

from .schema import Bank, StatementType


class Variant(Enum):
    ADCB_ACCOUNT = "adcb_account"
    ADCB_CREDIT_CARD = "adcb_credit_card"
    ENBD_ACCOUNT = "enbd_account"
    ENBD_CREDIT_CARD = "enbd_credit_card"


class SignRule(Enum):
    SIGNED = "signed"                 # one signed column, negative = outflow
    DEBIT_CREDIT = "debit_credit"     # separate debit / credit columns
    CARD_CHARGE = "card_charge"       # unsigned charges, CR marks payments/refunds


@dataclass(frozen=True)
class PdfLayout:
    line_tolerance: float                    # max |top| delta for words on one line
    columns: Tuple[Tuple[str, float], ...]   # (role, x start), left to right
    header_labels: Tuple[str, ...]           # words of the repeated table header
    header_min_hits: int = 3
    stop_markers: Tuple[str, ...] = ()       # line prefixes ending the table on a page

    def column_for(self, x0: float) -> str:
        role = self.columns[0][0]
        for name, start in self.columns:
            if x0 >= start:
                role = name
            else:
                break
        return role


@dataclass(frozen=True)
class StatementProfile:
    variant: Variant
    bank: Bank
    statement_type: StatementType
    file_format: str                          # 'csv' | 'pdf'
    date_formats: Tuple[str, ...]
    date_pattern: str                         # regex a date cell must fully match
    sign_rule: SignRule
    columns: Mapping[str, str]                # role -> normalized header label (CSV)
    header_signature: Tuple[str, ...] = ()    # CSV labels that must all be present
    anchors: Tuple[str, ...] = ()             # PDF bank anchors (any)
    type_anchors: Tuple[str, ...] = ()        # PDF statement-type anchors (any)
    filename_hints: Tuple[str, ...] = ()
    payee_delimiter: str = r","
    summary_keywords: Tuple[str, ...] = ()
    credit_keywords: Tuple[str, ...] = ()     # CARD_CHARGE fallback when no CR marker
    layout: Optional[PdfLayout] = None

    @property
    def bank_name(self) -> str:
        return self.bank.value

    @property
    def label(self) -> str:
        return f"{self.bank.value} {self.statement_type.value}"

    def looks_like_date(self, value: str) -> bool:
        return bool(re.fullmatch(self.date_pattern, (value or "").strip()))

    def matches_header(self, cells: List[str]) -> bool:
        labels = {normalize_label(c) for c in cells if c}
        return bool(self.header_signature) and set(self.header_signature) <= labels


def normalize_label(value: str) -> str:
    """'Amount (AED) ' -> 'amount'; header cells compared case/space-insensitively."""
    text = " ".join(str(value).replace("\ufeff", "").split()).lower()
    return re.sub(r"\s*\(aed\)$", "", text)


_SUMMARY_KEYWORDS = (
    "opening balance",
    "closing balance",
    "balance brought forward",
    "balance carried forward",
    "previous balance",
    "total debits",
    "total credits",
    "total amount due",
)

_NUMERIC_DATE = r"\d{1,2}/\d{1,2}/\d{4}"


PROFILES: Mapping[Variant, StatementProfile] = MappingProxyType({
    Variant.ADCB_ACCOUNT: StatementProfile(
        variant=Variant.ADCB_ACCOUNT,
        bank=Bank.ADCB,
        statement_type=StatementType.ACCOUNT,
        file_format="csv",
        date_formats=("%d/%m/%Y",),
        date_pattern=_NUMERIC_DATE,
        sign_rule=SignRule.SIGNED,
        columns=MappingProxyType({
            "date": "date",
            "description": "description",
            "amount": "amount",
            "reference": "reference",
            "balance": "balance",
        }),
        header_signature=("date", "description", "amount"),
        filename_hints=("account", "current", "savings"),
        payee_delimiter=r",|\s+-\s+",
        summary_keywords=_SUMMARY_KEYWORDS,
    ),
    Variant.ADCB_CREDIT_CARD: StatementProfile(
        variant=Variant.ADCB_CREDIT_CARD,
        bank=Bank.ADCB,
        statement_type=StatementType.CREDIT_CARD,
        file_format="csv",
        date_formats=("%d/%m/%Y",),
        date_pattern=_NUMERIC_DATE,
        sign_rule=SignRule.CARD_CHARGE,
        columns=MappingProxyType({
            "date": "transaction date",
            "posting_date": "posting date",
            "description": "description",
            "amount": "amount",
            "foreign_amount": "original amount",
            "foreign_currency": "original currency",
            "reference": "reference",
        }),
        header_signature=("transaction date", "posting date", "description", "amount"),
        filename_hints=("card", "credit", "cc"),
        payee_delimiter=r"\s{2,}|,",
        summary_keywords=_SUMMARY_KEYWORDS,
        credit_keywords=("payment received", "payment - thank you", "refund"),
    ),
    Variant.ENBD_ACCOUNT: StatementProfile(
        variant=Variant.ENBD_ACCOUNT,
        bank=Bank.ENBD,
        statement_type=StatementType.ACCOUNT,
        file_format="pdf",
        date_formats=("%d %b %Y",),
        date_pattern=r"\d{1,2} [A-Za-z]{3} \d{4}",
        sign_rule=SignRule.DEBIT_CREDIT,
        columns=MappingProxyType({}),
        anchors=("emirates nbd",),
        type_anchors=("account statement", "statement of account"),
        filename_hints=("account", "current", "savings"),
        payee_delimiter=r"\s+-\s+|,",
        summary_keywords=_SUMMARY_KEYWORDS,
        layout=PdfLayout(
            line_tolerance=2.5,
            columns=(
                ("date", 0.0),
                ("description", 95.0),
                ("debit", 330.0),
                ("credit", 410.0),
                ("balance", 490.0),
            ),
            header_labels=("date", "description", "debit", "credit", "balance"),
            stop_markers=("closing balance", "end of statement"),
        ),
    ),
    Variant.ENBD_CREDIT_CARD: StatementProfile(
        variant=Variant.ENBD_CREDIT_CARD,
        bank=Bank.ENBD,
        statement_type=StatementType.CREDIT_CARD,
        file_format="pdf",
        date_formats=("%d/%m/%Y",),
        date_pattern=_NUMERIC_DATE,
        sign_rule=SignRule.CARD_CHARGE,
        columns=MappingProxyType({}),
        anchors=("emirates nbd",),
        type_anchors=("credit card statement", "card statement"),
        filename_hints=("card", "credit", "cc"),
        payee_delimiter=r"\s{2,}|,",
        summary_keywords=_SUMMARY_KEYWORDS,
        credit_keywords=("payment received", "payment - thank you", "refund"),
        layout=PdfLayout(
            line_tolerance=2.5,
            columns=(
                ("date", 0.0),
                ("posting_date", 80.0),
                ("description", 160.0),
                ("foreign_amount", 360.0),
                ("amount", 470.0),
            ),
            header_labels=("transaction", "posting", "description", "amount"),
            stop_markers=("total outstanding", "minimum payment due"),
        ),
    ),
})


def profiles_for(file_format: str) -> List[StatementProfile]:
    return [p for p in PROFILES.values() if p.file_format == file_format]
