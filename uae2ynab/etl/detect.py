"""
Format Detector - Classifies a statement by bank and statement type.

Classification is content based: CSV files are matched on their header row,
PDF files on anchor strings in the first pages of text. The filename is only a
tie-breaker between statement types of the same bank.
"""
import csv
import io
import logging
from typing import List, Optional

import pdfplumber

from .config import Config
from .extract import decode_text
from .profiles import StatementProfile, profiles_for

PDF_MAGIC = b"%PDF-"


class FormatDetector:
    """Content sniffing over the closed set of statement profiles."""

    def detect(self, content: bytes, filename: str = "") -> Optional[StatementProfile]:
        if content.lstrip()[:len(PDF_MAGIC)] == PDF_MAGIC:
            profile = self._detect_pdf(content, filename)
        else:
            profile = self._detect_csv(content, filename)

        if profile is None:
            logging.warning(f"No statement profile matched {filename!r}")
        else:
            logging.info(f"Detected {filename!r} as {profile.label}")
        return profile

    # ─────────────────────────────────────────────────────────────
    # CSV
    # ─────────────────────────────────────────────────────────────

    def _detect_csv(self, content: bytes, filename: str) -> Optional[StatementProfile]:
        text = decode_text(content)
        if not text or not text.strip():
            return None
        head = _leading_records(text, filename)
        matches = [
            p for p in profiles_for("csv")
            if any(p.matches_header(cells) for cells in head)
        ]
        if not matches:
            return None
        # The most specific signature wins ("Transaction Date" beats "Date")
        best = max(len(p.header_signature) for p in matches)
        return self._break_tie([p for p in matches if len(p.header_signature) == best], filename)

    # ─────────────────────────────────────────────────────────────
    # PDF
    # ─────────────────────────────────────────────────────────────

    def _detect_pdf(self, content: bytes, filename: str) -> Optional[StatementProfile]:
        text = self._pdf_text(content, filename).lower()
        if not text.strip():
            return None

        bank_matches = [p for p in profiles_for("pdf") if any(a in text for a in p.anchors)]
        if not bank_matches:
            return None

        scored = [(sum(1 for a in p.type_anchors if a in text), p) for p in bank_matches]
        best = max(score for score, _ in scored)
        candidates = [p for score, p in scored if score == best]
        if best == 0:
            # Bank recognised but not the statement type: only the filename can decide
            return self._filename_hint(candidates, filename)
        return self._break_tie(candidates, filename)

    def _pdf_text(self, content: bytes, filename: str) -> str:
        try:
            with pdfplumber.open(io.BytesIO(content)) as pdf:
                pages = pdf.pages[:Config.PDF_DETECT_PAGES]
                return "\n".join(page.extract_text() or "" for page in pages)
        except Exception as e:
            # Corrupted or encrypted PDFs are simply unrecognized
            logging.warning(f"Could not read PDF text from {filename!r}: {e}")
            return ""

    # ─────────────────────────────────────────────────────────────
    # Filename hints
    # ─────────────────────────────────────────────────────────────

    def _break_tie(self, candidates: List[StatementProfile], filename: str) -> Optional[StatementProfile]:
        if len(candidates) == 1:
            return candidates[0]
        return self._filename_hint(candidates, filename) or candidates[0]

    def _filename_hint(self, candidates: List[StatementProfile], filename: str) -> Optional[StatementProfile]:
        tokens = _filename_tokens(filename)
        hinted = [p for p in candidates if any(h in tokens for h in p.filename_hints)]
        return hinted[0] if len(hinted) == 1 else None


def _leading_records(text: str, filename: str) -> List[List[str]]:
    """
    First records of a delimited file, read leniently.

    Only the header has to be found here. A malformed row further down ends
    the scan instead of hiding a known header; the extractor then reports the
    file as a structural failure.
    """
    records: List[List[str]] = []
    try:
        for record in csv.reader(io.StringIO(text)):
            records.append(record)
            if len(records) >= Config.CSV_HEADER_SCAN_LIMIT:
                break
    except csv.Error as e:
        logging.warning(f"{filename!r}: CSV scan stopped at record {len(records) + 1}: {e}")
    return records


def _filename_tokens(filename: str) -> List[str]:
    stem = (filename or "").lower().rsplit(".", 1)[0]
    return [t for t in "".join(c if c.isalnum() else " " for c in stem).split() if t]
