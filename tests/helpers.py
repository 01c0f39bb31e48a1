from typing import List


class FakePage:
    def __init__(self, words: List[dict], text: str = ""):
        self._words = words
        self._text = text

    def extract_words(self, **kwargs):
        return list(self._words)

    def extract_text(self, **kwargs):
        return self._text


class FakePDF:
    def __init__(self, pages: List[FakePage]):
        self.pages = pages

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False


def word(text: str, x0: float, top: float) -> dict:
    return {"text": text, "x0": x0, "x1": x0 + 5 * len(text), "top": top, "bottom": top + 8}


def line(top: float, *cells) -> List[dict]:
    """line(120, (10, "01 Mar 2024"), (100, "COFFEE")) -> one word per token."""
    words = []
    for x0, text in cells:
        x = x0
        for token in text.split():
            words.append(word(token, x, top))
            x += 5 * len(token) + 4
    return words


PDF_BYTES = b"%PDF-1.4\n% fake statement\n"

ADCB_SCENARIO_CSV = (
    "Date,Description,Amount\n"
    "01/03/2024,COFFEE SHOP,-12.50\n"
    "02/03/2024,SALARY,5000.00\n"
    "03/03/2024,,0.00\n"
)

ADCB_CARD_CSV = (
    "Transaction Date,Posting Date,Description,Amount (AED),Original Amount,Original Currency\n"
    "05/03/2024,06/03/2024,AMAZON.AE  DUBAI,73.50,,\n"
    "07/03/2024,08/03/2024,PAYMENT RECEIVED,\"5,000.00 CR\",,\n"
    "09/03/2024,10/03/2024,STEAM GAMES  SEATTLE,37.00,10.00,USD\n"
)


def enbd_account_pages() -> List[FakePage]:
    header = line(100, (10, "Date"), (100, "Description"), (335, "Debit"), (415, "Credit"), (495, "Balance"))
    page1 = (
        line(20, (10, "Emirates NBD"))
        + line(35, (10, "Account Statement"))
        + header
        + line(120, (10, "01 Mar 2024"), (100, "CARREFOUR - DUBAI"), (340, "250.00"), (495, "9,750.00"))
        + line(130, (100, "CARD ENDING 1234"))
        + line(140, (10, "02 Mar 2024"), (100, "SALARY - ACME LLC"), (420, "15,000.00"), (495, "24,750.00"))
    )
    page2 = (
        line(20, (10, "Emirates NBD"))
        + line(60, (10, "Date"), (100, "Description"), (335, "Debit"), (415, "Credit"), (495, "Balance"))
        + line(80, (10, "03 Mar 2024"), (100, "DEWA BILL"), (340, "450.50"), (495, "24,299.50"))
        + line(90, (10, "Closing Balance"), (495, "24,299.50"))
        + line(110, (10, "04 Mar 2024"), (100, "AFTER THE TABLE"), (340, "1.00"))
    )
    return [
        FakePage(page1, "Emirates NBD\nAccount Statement\nDate Description Debit Credit Balance"),
        FakePage(page2, "Emirates NBD\nDate Description Debit Credit Balance"),
    ]


def enbd_card_pages() -> List[FakePage]:
    words = (
        line(20, (10, "Emirates NBD"))
        + line(35, (10, "Credit Card Statement"))
        + line(100, (10, "Transaction Date"), (85, "Posting Date"), (165, "Description"), (475, "Amount (AED)"))
        + line(120, (10, "05/03/2024"), (85, "06/03/2024"), (165, "AMAZON.AE, DUBAI"), (365, "USD 20.00"), (475, "73.50"))
        + line(140, (10, "07/03/2024"), (85, "07/03/2024"), (165, "PAYMENT RECEIVED - THANK YOU"), (475, "5,000.00 CR"))
    )
    return [FakePage(words, "Emirates NBD\nCredit Card Statement")]


