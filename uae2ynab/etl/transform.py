"""
Transform Layer - Maps raw statement rows onto the canonical Transaction.

This module implements:
1. Explicit per-bank date parsing (no locale guessing, no defaults)
2. Amount parsing with currency and CR/DR marker handling
3. Statement-type aware sign rules (negative = outflow, always)
4. Payee / memo splitting that keeps every part of the description
"""
import re
import logging
from datetime import datetime, date
from decimal import Decimal, InvalidOperation
from typing import List, Optional, Tuple

from .config import Config
from .errors import RowNormalizationError
from .profiles import StatementProfile, SignRule
from .schema import Transaction, RawRow, CENTS

_MARKER = re.compile(r"(?<![A-Z])\s*(CR|DR)$")
_CURRENCY_PREFIX = re.compile(r"^([A-Z]{3})\s*(?=[-(\d])")
_CURRENCY_SUFFIX = re.compile(r"(?<=[\d)])\s*([A-Z]{3})$")
_NUMBER = re.compile(r"\d+(\.\d+)?")


class StatementNormalizer:
    """
    Deterministic row normalizer.
    One instance per parse; it holds no state between rows.
    """

    def normalize(self, row: RawRow, profile: StatementProfile) -> Transaction:
        data = row["data"]

        tx_date = self.parse_date(data.get("date", ""), profile.date_formats)
        description = _clean_text(data.get("description", ""))
        amount = self._signed_amount(data, description, profile)
        if amount == 0:
            raise RowNormalizationError("zero amount, row dropped")

        if data.get("foreign_amount"):
            logging.debug(f"Ignoring foreign amount {data['foreign_amount']!r}; using {Config.SETTLEMENT_CURRENCY} amount")

        payee, memo = self.split_payee_memo(
            data.get("description", ""),
            profile.payee_delimiter,
            continuation=row.get("continuation", []),
            reference=data.get("reference", ""),
        )

        return Transaction(
            date=tx_date,
            payee=payee,
            memo=memo,
            amount=amount,
            source_statement_type=profile.statement_type,
            source_bank=profile.bank,
        )

    # ─────────────────────────────────────────────────────────────
    # Dates
    # ─────────────────────────────────────────────────────────────

    @staticmethod
    def parse_date(raw: str, formats: Tuple[str, ...]) -> date:
        value = _clean_text(raw)
        if not value:
            raise RowNormalizationError("missing date")
        for fmt in formats:
            try:
                return datetime.strptime(value, fmt).date()
            except ValueError:
                continue
        raise RowNormalizationError(f"unparseable date {value!r}")

    # ─────────────────────────────────────────────────────────────
    # Amounts
    # ─────────────────────────────────────────────────────────────

    @staticmethod
    def parse_amount(raw: str) -> Tuple[Optional[Decimal], Optional[str]]:
        """
        Parse a settlement amount cell.

        Returns (value, marker): value keeps the sign printed in the cell
        (leading/trailing minus or parentheses), marker is 'CR', 'DR' or None.
        An empty cell gives (None, None).
        """
        text = " ".join(str(raw or "").split()).upper()
        if not text:
            return None, None

        marker = None
        m = _MARKER.search(text)
        if m:
            marker = m.group(1)
            text = text[:m.start()].strip()

        for pattern in (_CURRENCY_PREFIX, _CURRENCY_SUFFIX):
            cm = pattern.search(text)
            if cm:
                if cm.group(1) != Config.SETTLEMENT_CURRENCY:
                    raise RowNormalizationError(
                        f"amount {raw!r} is not in {Config.SETTLEMENT_CURRENCY}"
                    )
                text = (text[:cm.start()] + text[cm.end():]).strip()

        negative = text.startswith("-") or text.endswith("-") or (text.startswith("(") and text.endswith(")"))
        digits = text.strip("-() ").replace(",", "")
        if not _NUMBER.fullmatch(digits):
            if marker and not digits:
                raise RowNormalizationError(f"amount marker {marker} without a value")
            raise RowNormalizationError(f"invalid amount {raw!r}")

        try:
            value = Decimal(digits)
        except InvalidOperation:
            raise RowNormalizationError(f"invalid amount {raw!r}")
        if value != value.quantize(CENTS):
            raise RowNormalizationError(f"amount {raw!r} has more than two decimal places")

        return (-value if negative else value).quantize(CENTS), marker

    def _signed_amount(self, data: dict, description: str, profile: StatementProfile) -> Decimal:
        rule = profile.sign_rule

        if rule is SignRule.SIGNED:
            value, marker = self.parse_amount(data.get("amount", ""))
            if value is None:
                raise RowNormalizationError("missing amount")
            if marker == "CR":
                return abs(value)
            if marker == "DR":
                return -abs(value)
            return value

        if rule is SignRule.DEBIT_CREDIT:
            debit, _ = self.parse_amount(data.get("debit", ""))
            credit, _ = self.parse_amount(data.get("credit", ""))
            if debit and credit:
                raise RowNormalizationError("both debit and credit populated")
            if debit:
                return -abs(debit)
            if credit:
                return abs(credit)
            if debit is None and credit is None:
                raise RowNormalizationError("missing amount")
            return Decimal("0.00")

        if rule is SignRule.CARD_CHARGE:
            value, marker = self.parse_amount(data.get("amount", ""))
            if value is None:
                raise RowNormalizationError("missing amount")
            # Payments and refunds reduce the card balance: inflow
            if marker == "CR" or value < 0:
                return abs(value)
            if marker == "DR":
                return -abs(value)
            low = description.lower()
            if any(kw in low for kw in profile.credit_keywords):
                return abs(value)
            return -abs(value)

        raise ValueError(f"Unsupported sign rule: {rule}")

    # ─────────────────────────────────────────────────────────────
    # Payee / memo
    # ─────────────────────────────────────────────────────────────

    @staticmethod
    def split_payee_memo(description: str, delimiter: str,
                         continuation: Optional[List[str]] = None,
                         reference: str = "") -> Tuple[str, str]:
        """First delimited segment is the payee; everything else goes to memo."""
        raw = str(description or "").replace("\r", " ").replace("\n", " ").strip()
        parts = [_clean_text(p) for p in re.split(delimiter, raw, maxsplit=1)] if raw else []
        payee = parts[0] if parts else ""
        memo_parts = parts[1:]
        memo_parts.extend(_clean_text(line) for line in (continuation or []))
        reference = _clean_text(reference)
        if reference:
            memo_parts.append(f"Ref {reference}")
        memo_parts = [p for p in memo_parts if p]

        if not payee and memo_parts:
            payee = memo_parts.pop(0)
        return payee, " ".join(memo_parts)


def _clean_text(value: Optional[str]) -> str:
    # Replace internal newlines with spaces, collapse whitespace, and strip.
    return " ".join(str(value or "").split())
