"""
ETL Pipeline Orchestrator - Coordinates Detect, Extract, Filter and Transform.

Flow: Detect → Extract → Filter → Transform (per row)

Row failures are recorded and skipped, file failures are reported in the
ParseResult, and nothing a single file does can abort a batch.
"""
import asyncio
import time
import logging
from typing import Callable, Iterable, List, Optional, Tuple

from .detect import FormatDetector
from .errors import RowNormalizationError, StructuralExtractionError, UnrecognizedFormatError
from .extract import ParserFactory
from .filter import TransactionFilter
from .profiles import StatementProfile
from .schema import (
    FailureKind,
    FileResult,
    Outcome,
    ParseResult,
    RawRow,
    Settled,
    StatementFile,
    Transaction,
)
from .transform import StatementNormalizer


class ETLPipeline:
    """
    Statement ingestion pipeline.

    Holds no per-file state: every parse builds its own filter and
    normalizer, so repeated parses of the same bytes are identical.
    """

    def __init__(self):
        self.detector = FormatDetector()

    def parse(self, content: bytes, filename: str) -> ParseResult:
        """Process one file synchronously. Never raises for a bad file."""
        start_time = time.time()

        # ─── 1. Detect ───
        profile = self.detector.detect(content, filename)
        if profile is None:
            return ParseResult(
                bank_name="Unknown",
                statement_type=None,
                errors=[str(UnrecognizedFormatError(filename))],
                failure=FailureKind.UNRECOGNIZED_FORMAT,
            )

        result = ParseResult(bank_name=profile.bank_name, statement_type=profile.statement_type)

        # ─── 2. Extract ───
        try:
            payload = ParserFactory.get_parser(profile).parse(content, filename, profile)
        except StructuralExtractionError as e:
            logging.warning(f"Structural failure for {filename}: {e}")
            result.errors.append(str(e))
            result.failure = FailureKind.STRUCTURAL_EXTRACTION
            return result
        except Exception as e:
            logging.exception("PIPELINE_ERROR")
            result.errors.append(f"Failed to extract {profile.label} statement {filename}: {e}")
            result.failure = FailureKind.STRUCTURAL_EXTRACTION
            return result

        result.errors.extend(payload["errors"])

        # ─── 3. Filter summary rows ───
        eligible, metadata_rows = TransactionFilter().filter(payload["fragments"], profile)

        # ─── 4. Transform ───
        normalizer = StatementNormalizer()
        for row in eligible:
            try:
                result.transactions.append(normalizer.normalize(row, profile))
            except RowNormalizationError as e:
                result.errors.append(f"{_row_label(row, profile)}: {e}")

        processing_time = (time.time() - start_time) * 1000
        logging.info(
            f"Parsed {filename} ({payload['document_hash'][:12]}) as {profile.label}: "
            f"{len(result.transactions)} transactions, {len(metadata_rows)} summary rows, "
            f"{len(result.errors)} errors in {processing_time:.0f}ms"
        )
        return result

    async def parse_file(self, file: StatementFile) -> ParseResult:
        """Parse off the event loop; extraction may take a while on large PDFs."""
        return await asyncio.to_thread(self.parse, file.content, file.name)

    async def parse_batch(self, files: Iterable[StatementFile],
                          on_settled: Optional[Callable[[FileResult], None]] = None) -> List[FileResult]:
        batch = FileBatch(self, on_settled=on_settled)
        await batch.submit(files)
        return batch.results


class FileBatch:
    """
    Caller-side collection of submitted files and their outcomes.

    Files are parsed one at a time in submission order, across overlapping
    submit() calls too: a later submission queues behind the one in progress.
    A file removed while its parse is in flight still finishes parsing; its
    outcome is dropped.
    """

    def __init__(self, pipeline: Optional[ETLPipeline] = None,
                 on_settled: Optional[Callable[[FileResult], None]] = None):
        self.pipeline = pipeline or ETLPipeline()
        self.on_settled = on_settled
        self.results: List[FileResult] = []
        self._lock = asyncio.Lock()

    @property
    def is_processing(self) -> bool:
        return self._lock.locked()

    async def submit(self, files: Iterable[StatementFile]) -> List[FileResult]:
        entries = [FileResult(f) for f in files]
        self.results.extend(entries)

        async with self._lock:
            await self._process(entries)
        return entries

    async def _process(self, entries: List[FileResult]) -> None:
        for entry in entries:
            try:
                parsed = await self.pipeline.parse_file(entry.file)
                entry.settle(Settled.from_result(parsed))
            except Exception as e:
                logging.exception(f"Unexpected failure parsing {entry.file.name}")
                entry.settle(Settled(Outcome.FAIL, error=str(e) or "Failed to parse file"))

            if not self._contains(entry):
                logging.info(f"{entry.file.name} was removed while parsing; result discarded")
                continue
            if self.on_settled:
                self.on_settled(entry)

    def remove(self, file: StatementFile) -> None:
        self.results = [fr for fr in self.results if fr.file is not file]

    def clear(self) -> None:
        self.results = []

    def exportable(self) -> List[Tuple[StatementFile, List[Transaction]]]:
        """Files with at least one transaction, in submission order."""
        return [
            (fr.file, fr.result.transactions)
            for fr in self.results
            if fr.result is not None and fr.result.transactions
        ]

    def all_transactions(self) -> List[Transaction]:
        return [tx for _, transactions in self.exportable() for tx in transactions]

    def _contains(self, entry: FileResult) -> bool:
        return any(fr is entry for fr in self.results)


def _row_label(row: RawRow, profile: StatementProfile) -> str:
    if profile.file_format == "pdf":
        return f"Page {row['page_number']} line {row['line']}"
    return f"Row {row['line']}"
