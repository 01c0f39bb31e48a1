"""
Extract Layer - Bank/format specific row extraction.

Both parsers return an ExtractionPayload whose fragments are raw field bags:
values stay exactly as printed in the statement, keyed by column role.
Type coercion belongs to the transform layer.
"""
import io
import csv
import re
import hashlib
import logging
from typing import List, Dict, Optional, Tuple
from abc import ABC, abstractmethod

import pdfplumber
import pandas as pd

from .config import Config
from .errors import StructuralExtractionError
from .profiles import StatementProfile, PdfLayout, normalize_label
from .schema import ExtractionPayload, RawRow

AMOUNT_ROLES = ("amount", "debit", "credit")
_MONEY = re.compile(r"\d[\d,]*\.\d{2}")


def decode_text(content: bytes) -> Optional[str]:
    """Decode statement bytes; None when no configured encoding fits."""
    for encoding in Config.TEXT_ENCODINGS:
        try:
            return content.decode(encoding)
        except UnicodeDecodeError:
            continue
    return None


def read_csv_records(text: str) -> pd.DataFrame:
    """
    Read every record of a delimited file as strings, whatever its shape.

    Preamble and footer lines rarely have as many fields as the table, so the
    frame is made as wide as the widest physical line; quoting (including
    embedded delimiters and newlines) is left to pandas.
    """
    width = max((line.count(",") for line in text.splitlines()), default=0) + 1
    df = pd.read_csv(
        io.StringIO(text),
        header=None,
        names=list(range(width)),
        dtype=str,
        keep_default_na=False,
        skip_blank_lines=True,
        engine="python",
    )
    return df.fillna("")


def group_words_into_lines(words: List[dict], tol: float = 2.0) -> List[List[dict]]:
    """Cluster positioned words into physical lines by their vertical position."""
    words = sorted(words, key=lambda w: (float(w.get("top", 0)), float(w.get("x0", 0))))
    lines: List[List[dict]] = []
    current: List[dict] = []
    current_top: Optional[float] = None

    for w in words:
        t = float(w.get("top", 0))
        if current_top is None or abs(t - current_top) <= tol:
            current.append(w)
            current_top = t if current_top is None else (current_top * 0.7 + t * 0.3)
        else:
            lines.append(sorted(current, key=lambda w: float(w.get("x0", 0))))
            current = [w]
            current_top = t

    if current:
        lines.append(sorted(current, key=lambda w: float(w.get("x0", 0))))

    return lines


def split_columns(line: List[dict], layout: PdfLayout) -> Dict[str, str]:
    """Assign each word of a line to the column band its left edge falls in."""
    cells: Dict[str, List[str]] = {}
    for w in line:
        role = layout.column_for(float(w.get("x0", 0)))
        cells.setdefault(role, []).append(str(w.get("text", "")))
    return {role: " ".join(parts).strip() for role, parts in cells.items()}


class BaseParser(ABC):
    @abstractmethod
    def parse(self, content: bytes, filename: str, profile: StatementProfile) -> ExtractionPayload:
        pass

    def get_content_hash(self, content: bytes) -> str:
        return hashlib.sha256(content).hexdigest()


class CSVParser(BaseParser):
    """Delimited exports (ADCB account and credit card)."""

    def parse(self, content: bytes, filename: str, profile: StatementProfile) -> ExtractionPayload:
        text = decode_text(content)
        if text is None:
            raise StructuralExtractionError(f"{filename} is not readable text")

        try:
            df = read_csv_records(text)
        except (pd.errors.ParserError, pd.errors.EmptyDataError, csv.Error) as e:
            raise StructuralExtractionError(f"{filename} could not be read as CSV: {e}")

        header_idx = self._find_header(df, profile)
        if header_idx is None:
            raise StructuralExtractionError(
                f"No {profile.label} transaction table found in {filename}"
            )

        header = [normalize_label(c) for c in df.iloc[header_idx].tolist()]
        label_to_role = {label: role for role, label in profile.columns.items()}
        logging.info(f"CSV header for {filename} at record {header_idx + 1}: {header}")

        fragments: List[RawRow] = []
        for number, record in enumerate(df.iloc[header_idx + 1:].itertuples(index=False), 1):
            values = [str(v).strip() for v in record]
            if not any(values):
                continue
            data = {}
            for label, value in zip(header, values):
                if label:
                    data[label_to_role.get(label, label)] = value
            fragments.append({
                "type": "table_row",
                "data": data,
                "page_number": 1,
                "line": number,
                "continuation": [],
            })

        fragments = self._trim_footer(fragments, profile, filename)
        if not fragments:
            raise StructuralExtractionError(
                f"No transaction rows found under the {profile.label} header in {filename}"
            )

        return {
            "document_hash": self.get_content_hash(content),
            "fragments": fragments,
            "source_file": filename,
            "errors": [],
        }

    def _find_header(self, df: pd.DataFrame, profile: StatementProfile) -> Optional[int]:
        for idx, record in enumerate(df.itertuples(index=False)):
            if profile.matches_header(list(record)):
                return idx
        return None

    def _trim_footer(self, fragments: List[RawRow], profile: StatementProfile, filename: str) -> List[RawRow]:
        """
        Drop trailing non-data lines (totals, disclaimers).

        A trailing record is footer when its date cell holds no digits at all
        ("Total", disclaimers), or when it has neither an amount nor a valid
        date. Anything else is kept so a malformed date surfaces as a row error.
        """
        last_data = -1
        for i, frag in enumerate(fragments):
            if not self._is_footer_record(frag["data"], profile):
                last_data = i
        footer = fragments[last_data + 1:]
        if footer:
            logging.info(f"Skipping {len(footer)} footer line(s) in {filename}")
        return fragments[:last_data + 1]

    @staticmethod
    def _is_footer_record(data: Dict[str, str], profile: StatementProfile) -> bool:
        date_cell = data.get("date", "")
        if not any(c.isdigit() for c in date_cell):
            return True
        has_amount = any(data.get(role, "").strip() for role in AMOUNT_ROLES)
        return not has_amount and not profile.looks_like_date(date_cell)


class PDFParser(BaseParser):
    """Positioned-text statements (Emirates NBD account and credit card)."""

    def parse(self, content: bytes, filename: str, profile: StatementProfile) -> ExtractionPayload:
        pages_words: List[List[dict]] = []

        logging.info(f"Extracting PDF words: {filename}")
        with pdfplumber.open(io.BytesIO(content)) as pdf:
            for page in pdf.pages:
                pages_words.append(page.extract_words(keep_blank_chars=False, use_text_flow=False) or [])

        fragments, errors = build_rows(pages_words, profile)
        if not fragments:
            raise StructuralExtractionError(
                f"No transaction rows found in {filename} for {profile.label}"
            )

        return {
            "document_hash": self.get_content_hash(content),
            "fragments": fragments,
            "source_file": filename,
            "errors": errors,
        }


def build_rows(pages_words: List[List[dict]], profile: StatementProfile) -> Tuple[List[RawRow], List[str]]:
    """
    Rebuild table rows from per-page word lists.

    The table starts after the first header line and ends at a stop marker.
    Within it a dated line opens a new row, a line with neither date nor
    amount continues the previous row's description, and a line with an
    amount but no date is reported and skipped.

    A table still open at a page break carries over to the next page whether
    or not that page repeats the header. Text above the first row of a
    continued page is page furniture and is never merged into a description.
    """
    layout = profile.layout
    fragments: List[RawRow] = []
    errors: List[str] = []
    current: Optional[RawRow] = None
    in_table = False

    for page_number, words in enumerate(pages_words, 1):
        page_has_row = False
        for line_number, line in enumerate(group_words_into_lines(words, layout.line_tolerance), 1):
            text = " ".join(str(w.get("text", "")) for w in line).strip()
            low = text.lower()

            if _is_header_line(line, layout):
                in_table = True
                continue
            if not in_table:
                continue
            if any(low.startswith(marker) for marker in layout.stop_markers):
                in_table = False
                continue

            cells = split_columns(line, layout)
            has_date = profile.looks_like_date(cells.get("date", ""))
            has_amount = any(_MONEY.search(cells.get(role, "")) for role in AMOUNT_ROLES)

            if has_date:
                current = {
                    "type": "table_row",
                    "data": cells,
                    "page_number": page_number,
                    "line": line_number,
                    "continuation": [],
                }
                fragments.append(current)
                page_has_row = True
            elif any(kw in low for kw in profile.summary_keywords):
                continue
            elif has_amount:
                errors.append(f"Page {page_number} line {line_number}: amount without a transaction date ({text})")
            elif current is not None and page_has_row:
                current["continuation"].append(cells.get("description") or text)
            else:
                logging.debug(f"Page {page_number} line {line_number}: text before first row on page ignored")

    return fragments, errors


def _is_header_line(line: List[dict], layout: PdfLayout) -> bool:
    tokens = {re.sub(r"[^a-z]", "", str(w.get("text", "")).lower()) for w in line}
    return sum(1 for label in layout.header_labels if label in tokens) >= layout.header_min_hits


class ParserFactory:
    @staticmethod
    def get_parser(profile: StatementProfile) -> BaseParser:
        ft = profile.file_format
        if ft == 'pdf':
            return PDFParser()
        elif ft == 'csv':
            return CSVParser()
        else:
            raise ValueError(f"Unsupported file type: {ft}")
