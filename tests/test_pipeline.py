import asyncio
import threading
import time
from decimal import Decimal

import pytest

from uae2ynab.etl.pipeline import ETLPipeline, FileBatch
from uae2ynab.etl.schema import Bank, FailureKind, Outcome, StatementFile, StatementType

from .helpers import ADCB_CARD_CSV, PDF_BYTES, FakePage, enbd_account_pages, enbd_card_pages


@pytest.fixture
def pipeline():
    return ETLPipeline()


# ─────────────────────────────────────────────────────────────
# Single file
# ─────────────────────────────────────────────────────────────

def test_adcb_account_scenario(pipeline, adcb_file):
    result = pipeline.parse(adcb_file.content, adcb_file.name)

    assert result.bank_name == "ADCB"
    assert result.statement_type is StatementType.ACCOUNT
    assert [(t.payee, t.amount) for t in result.transactions] == [
        ("COFFEE SHOP", Decimal("-12.50")),
        ("SALARY", Decimal("5000.00")),
    ]
    assert result.errors == ["Row 3: zero amount, row dropped"]
    assert result.failure is None


def test_unrecognized_pdf(pipeline, fake_pdf):
    fake_pdf([FakePage([], "Some Other Bank\nStatement")])
    result = pipeline.parse(PDF_BYTES, "mystery.pdf")

    assert result.bank_name == "Unknown"
    assert result.statement_type is None
    assert result.transactions == []
    assert len(result.errors) == 1 and "Unrecognized format" in result.errors[0]
    assert result.failure is FailureKind.UNRECOGNIZED_FORMAT


def test_detected_but_no_table_is_structural(pipeline):
    result = pipeline.parse(b"Date,Description,Amount\nnothing,,\n", "adcb.csv")
    assert result.bank_name == "ADCB"
    assert result.failure is FailureKind.STRUCTURAL_EXTRACTION
    assert result.transactions == [] and result.errors


def test_all_rows_rejected_is_not_fatal(pipeline):
    result = pipeline.parse(b"Date,Description,Amount\n01/03/2024,A,0.00\n02/03/2024,B,abc\n", "adcb.csv")
    assert result.failure is None
    assert result.transactions == []
    assert len(result.errors) == 2
    assert result.errors[1].startswith("Row 2: ")


def test_enbd_account_pdf_end_to_end(pipeline, fake_pdf):
    fake_pdf(enbd_account_pages())
    result = pipeline.parse(PDF_BYTES, "enbd.pdf")

    assert result.bank_name == "Emirates NBD"
    assert result.statement_type is StatementType.ACCOUNT
    assert [(t.payee, t.memo, t.amount) for t in result.transactions] == [
        ("CARREFOUR", "DUBAI CARD ENDING 1234", Decimal("-250.00")),
        ("SALARY", "ACME LLC", Decimal("15000.00")),
        ("DEWA BILL", "", Decimal("-450.50")),
    ]
    assert result.errors == []
    assert all(t.source_bank is Bank.ENBD for t in result.transactions)


def test_enbd_card_pdf_end_to_end(pipeline, fake_pdf):
    fake_pdf(enbd_card_pages())
    result = pipeline.parse(PDF_BYTES, "enbd_card.pdf")

    assert result.statement_type is StatementType.CREDIT_CARD
    assert [t.amount for t in result.transactions] == [Decimal("-73.50"), Decimal("5000.00")]
    assert result.transactions[0].payee == "AMAZON.AE"


def test_adcb_card_csv_end_to_end(pipeline):
    result = pipeline.parse(ADCB_CARD_CSV.encode(), "card.csv")
    assert result.statement_type is StatementType.CREDIT_CARD
    assert [t.amount for t in result.transactions] == [
        Decimal("-73.50"), Decimal("5000.00"), Decimal("-37.00"),
    ]
    assert result.errors == []


def test_parsing_is_idempotent(pipeline, adcb_file):
    first = pipeline.parse(adcb_file.content, adcb_file.name)
    second = pipeline.parse(adcb_file.content, adcb_file.name)
    assert first == second


@pytest.mark.asyncio
async def test_parse_file_runs_off_the_loop(pipeline, adcb_file):
    result = await pipeline.parse_file(adcb_file)
    assert len(result.transactions) == 2


# ─────────────────────────────────────────────────────────────
# Batches
# ─────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_batch_outcomes_follow_submission_order(adcb_file):
    clean = StatementFile("clean.csv", b"Date,Description,Amount\n01/03/2024,A,-1.00\n")
    unknown = StatementFile("other.csv", b"Posted,Narrative,Value\n01/03/2024,A,1\n")
    settled = []

    batch = FileBatch(on_settled=lambda fr: settled.append(fr.file.name))
    await batch.submit([adcb_file, unknown, clean])

    assert [fr.file for fr in batch.results] == [adcb_file, unknown, clean]
    assert [fr.state.outcome for fr in batch.results] == [Outcome.WARN, Outcome.FAIL, Outcome.OK]
    assert settled == ["adcb_march.csv", "other.csv", "clean.csv"]
    assert not any(fr.loading for fr in batch.results)

    warn = batch.results[0]
    assert len(warn.result.transactions) == 2 and "zero amount" in warn.error
    assert batch.results[1].result is None


@pytest.mark.asyncio
async def test_parse_batch_returns_results(adcb_file):
    results = await ETLPipeline().parse_batch([adcb_file])
    assert len(results) == 1 and results[0].result.bank_name == "ADCB"


@pytest.mark.asyncio
async def test_unexpected_exception_fails_only_that_file(adcb_file):
    class Flaky(ETLPipeline):
        async def parse_file(self, file):
            if file.name == "bad.csv":
                raise RuntimeError("disk went away")
            return await super().parse_file(file)

    bad = StatementFile("bad.csv", b"")
    batch = FileBatch(Flaky())
    await batch.submit([bad, adcb_file])

    assert batch.results[0].state.outcome is Outcome.FAIL
    assert batch.results[0].error == "disk went away"
    assert batch.results[1].state.outcome is Outcome.WARN


@pytest.mark.asyncio
async def test_file_removed_while_parsing_is_discarded(adcb_file):
    settled = []
    batch = FileBatch(on_settled=settled.append)

    class Removing(ETLPipeline):
        async def parse_file(self, file):
            batch.remove(file)
            return await super().parse_file(file)

    batch.pipeline = Removing()
    await batch.submit([adcb_file])

    assert batch.results == []
    assert settled == []
    assert batch.exportable() == []


@pytest.mark.asyncio
async def test_files_with_the_same_name_stay_distinct():
    first = StatementFile("statement.csv", b"Date,Description,Amount\n01/03/2024,A,-1.00\n")
    second = StatementFile("statement.csv", b"Date,Description,Amount\n01/03/2024,B,-2.00\n02/03/2024,C,3.00\n")
    batch = FileBatch()
    await batch.submit([first, second])

    batch.remove(first)
    assert [fr.file for fr in batch.results] == [second]
    assert [t.payee for t in batch.all_transactions()] == ["B", "C"]


@pytest.mark.asyncio
async def test_exportable_skips_files_without_transactions(adcb_file):
    empty = StatementFile("empty.csv", b"Date,Description,Amount\n01/03/2024,A,0.00\n")
    batch = FileBatch()
    await batch.submit([empty, adcb_file])

    assert [f for f, _ in batch.exportable()] == [adcb_file]
    assert len(batch.all_transactions()) == 2

    batch.clear()
    assert batch.results == [] and batch.exportable() == []


def test_trailing_row_with_bad_date_is_reported(pipeline):
    content = b"Date,Description,Amount\n01/03/2024,COFFEE,-1.00\n2024-03-31,RENT,-5000.00\n"
    result = pipeline.parse(content, "adcb.csv")
    assert [t.payee for t in result.transactions] == ["COFFEE"]
    assert result.errors == ["Row 2: unparseable date '2024-03-31'"]


def test_known_header_with_unreadable_body_is_structural(pipeline):
    result = pipeline.parse(b"Date,Description,Amount\n01/03/2024,\"COFFEE,-1.00\n", "adcb.csv")
    assert result.bank_name == "ADCB"
    assert result.failure is FailureKind.STRUCTURAL_EXTRACTION
    assert len(result.errors) == 1


@pytest.mark.asyncio
async def test_overlapping_submits_never_parse_concurrently():
    class Slow(ETLPipeline):
        def __init__(self):
            super().__init__()
            self.guard = threading.Lock()
            self.active = 0
            self.peak = 0

        def parse(self, content, filename):
            with self.guard:
                self.active += 1
                self.peak = max(self.peak, self.active)
            time.sleep(0.05)
            try:
                return super().parse(content, filename)
            finally:
                with self.guard:
                    self.active -= 1

    a = StatementFile("a.csv", b"Date,Description,Amount\n01/03/2024,A,-1.00\n")
    b = StatementFile("b.csv", b"Date,Description,Amount\n01/03/2024,B,-2.00\n")
    settled = []
    pipeline = Slow()
    batch = FileBatch(pipeline, on_settled=lambda fr: settled.append(fr.file.name))

    first = asyncio.ensure_future(batch.submit([a]))
    await asyncio.sleep(0)
    assert batch.is_processing
    await asyncio.gather(first, batch.submit([b]))

    assert pipeline.peak == 1
    assert settled == ["a.csv", "b.csv"]
    assert not batch.is_processing
    assert [fr.state.outcome for fr in batch.results] == [Outcome.OK, Outcome.OK]
