"""
Transaction Eligibility Filter - Separates transaction rows from summary rows.

Statements interleave real transactions with balance and summary lines
(opening balance, balance brought forward, totals). Those are not
transactions and must not surface as row errors either, so they are set
aside before normalization.
"""
import logging
from typing import List, Tuple

from .profiles import StatementProfile
from .schema import RawRow


class TransactionFilter:
    """
    Filters raw rows into eligible transaction rows and metadata rows.

    A row is metadata when its description starts with one of the profile's
    summary keywords.
    """

    def filter(self, rows: List[RawRow], profile: StatementProfile) -> Tuple[List[RawRow], List[RawRow]]:
        """
        Returns:
            Tuple of (eligible_rows, metadata_rows), both in statement order
        """
        eligible = []
        metadata = []

        for row in rows:
            if self._is_metadata_row(row, profile):
                metadata.append(row)
            else:
                eligible.append(row)

        if metadata:
            logging.info(f"Set aside {len(metadata)} summary row(s) for {profile.label}")
        return eligible, metadata

    def _is_metadata_row(self, row: RawRow, profile: StatementProfile) -> bool:
        desc = " ".join(str(row["data"].get("description", "")).split()).lower()
        return any(desc.startswith(keyword) for keyword in profile.summary_keywords)
