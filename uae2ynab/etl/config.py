import os


# ETL Configuration
class Config:
    TEXT_ENCODINGS = ('utf-8-sig', 'cp1252')
    CSV_HEADER_SCAN_LIMIT = 40         # records searched for a header signature
    PDF_DETECT_PAGES = 2               # pages of text used for PDF detection
    SETTLEMENT_CURRENCY = "AED"
    EXPORT_FORMATS = ('csv', 'xlsx')
    EXPORT_SUFFIX = "_ynab"
    COMBINED_EXPORT_NAME = "all_statements"
    YNAB_DATE_FORMAT = "%Y-%m-%d"
    LOG_FILE = os.environ.get('LOG_FILE')
    LOG_LEVEL = os.environ.get('UAE2YNAB_LOG_LEVEL', 'INFO')
