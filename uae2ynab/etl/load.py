"""
Load Layer - YNAB import file generation.

Serializes transaction sequences exactly as given: sequences are concatenated
in order and rows are never re-sorted, merged or altered.

Supported targets:
1. 'csv'  - YNAB CSV import (Date, Payee, Memo, Outflow, Inflow)
2. 'xlsx' - the same columns as a formatted workbook for review
"""
import os
import pandas as pd
from io import BytesIO
from typing import Iterable, List, Dict, Sequence
from openpyxl import Workbook
from openpyxl.styles import Font, PatternFill, Alignment, Border, Side
from openpyxl.utils import get_column_letter

from .config import Config
from .schema import Transaction

YNAB_COLUMNS = ["Date", "Payee", "Memo", "Outflow", "Inflow"]


class YNABLoader:
    """
    Exporter for the YNAB file-based import.
    Supported: 'csv', 'xlsx'
    """

    def __init__(self):
        self.amount_format = '#,##0.00'
        self.header_font = Font(bold=True, color="FFFFFF")
        self.header_fill = PatternFill(start_color="1F2A44", end_color="1F2A44", fill_type="solid")
        self.border = Border(bottom=Side(style='thin', color='DDDDDD'))

    def generate(self, sequences: Iterable[Sequence[Transaction]], target_format: str = "csv") -> BytesIO:
        """
        Generate one import file from one or more transaction sequences,
        concatenated in the order given.
        """
        rows = self.to_rows(tx for seq in sequences for tx in seq)
        if target_format == "csv":
            return self._generate_csv(rows)
        elif target_format == "xlsx":
            return self._generate_excel(rows)
        raise ValueError(f"Unsupported export format: {target_format}")

    def to_rows(self, transactions: Iterable[Transaction]) -> List[Dict[str, str]]:
        """One row per transaction; exactly one of Outflow/Inflow is filled."""
        rows = []
        for tx in transactions:
            magnitude = f"{abs(tx.amount):.2f}"
            rows.append({
                "Date": tx.date.strftime(Config.YNAB_DATE_FORMAT),
                "Payee": tx.payee,
                "Memo": tx.memo,
                "Outflow": magnitude if tx.is_outflow else "",
                "Inflow": "" if tx.is_outflow else magnitude,
            })
        return rows

    def _generate_csv(self, rows: List[Dict[str, str]]) -> BytesIO:
        df = pd.DataFrame(rows, columns=YNAB_COLUMNS)
        output = BytesIO()
        output.write(df.to_csv(index=False, lineterminator="\n").encode("utf-8"))
        output.seek(0)
        return output

    def _generate_excel(self, rows: List[Dict[str, str]]) -> BytesIO:
        output = BytesIO()
        wb = Workbook()
        ws = wb.active
        ws.title = "Transactions"

        for col_idx, header in enumerate(YNAB_COLUMNS, 1):
            cell = ws.cell(row=1, column=col_idx, value=header)
            cell.font = self.header_font
            cell.fill = self.header_fill
            cell.alignment = Alignment(horizontal='center')

        for row_idx, row in enumerate(rows, 2):
            for col_idx, key in enumerate(YNAB_COLUMNS, 1):
                value = row[key]
                if key in ("Outflow", "Inflow"):
                    value = float(value) if value else None
                cell = ws.cell(row=row_idx, column=col_idx, value=value)
                if key in ("Outflow", "Inflow"):
                    cell.number_format = self.amount_format
                cell.border = self.border

        self._auto_width(ws)
        ws.freeze_panes = "A2"

        wb.save(output)
        output.seek(0)
        return output

    def _auto_width(self, ws) -> None:
        """Auto-adjust column widths"""
        for col_idx, column in enumerate(ws.columns, 1):
            max_length = max((len(str(cell.value)) for cell in column if cell.value is not None), default=0)
            ws.column_dimensions[get_column_letter(col_idx)].width = min(max_length + 4, 60)


def export_filename(source_name: str, target_format: str = "csv") -> str:
    """'adcb march.csv' -> 'adcb march_ynab.csv'."""
    stem = os.path.splitext(os.path.basename(source_name))[0] or "statement"
    return f"{stem}{Config.EXPORT_SUFFIX}.{target_format}"


def combined_export_filename(target_format: str = "csv") -> str:
    return f"{Config.COMBINED_EXPORT_NAME}{Config.EXPORT_SUFFIX}.{target_format}"
