"""UAE bank statements (ADCB CSV, Emirates NBD PDF) to YNAB import files."""

__version__ = "0.1.0"
