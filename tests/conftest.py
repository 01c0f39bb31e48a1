from typing import List

import pdfplumber
import pytest

from uae2ynab.etl.schema import StatementFile

from .helpers import ADCB_SCENARIO_CSV, FakePDF, FakePage


@pytest.fixture
def fake_pdf(monkeypatch):
    """Replace pdfplumber.open so every PDF opened yields the given pages."""
    def install(pages: List[FakePage]):
        monkeypatch.setattr(pdfplumber, "open", lambda *args, **kwargs: FakePDF(pages))
    return install


@pytest.fixture
def adcb_file():
    return StatementFile("adcb_march.csv", ADCB_SCENARIO_CSV.encode("utf-8"))
