"""
Command-line entry point.

    uae2ynab convert statement.csv card.pdf --out exports/ [--combined]
    uae2ynab inspect-pdf card.pdf [--variant enbd_credit_card]
"""
import os
import sys
import asyncio
import argparse
import logging
from typing import List, Optional

import pdfplumber

from .etl.config import Config
from .etl.detect import FormatDetector
from .etl.extract import group_words_into_lines, split_columns
from .etl.load import YNABLoader, export_filename, combined_export_filename
from .etl.pipeline import FileBatch
from .etl.profiles import PROFILES, Variant
from .etl.schema import FileResult, StatementFile


def configure_logging(level: str = Config.LOG_LEVEL) -> None:
    logging.basicConfig(
        filename=Config.LOG_FILE,
        level=getattr(logging, str(level).upper(), logging.INFO),
        format='%(asctime)s %(levelname)s: %(message)s'
    )


def describe(fr: FileResult) -> str:
    """One status line per file, as shown next to each upload."""
    result = fr.result
    if fr.loading:
        return f"{fr.file.name}: Parsing..."
    if result is None:
        return f"{fr.file.name}: {fr.error}"
    label = f"{result.bank_name} · {result.statement_type.value} · {len(result.transactions)} transactions"
    if fr.error and result.transactions:
        return f"{fr.file.name}: {label} (with warnings: {fr.error})"
    if fr.error:
        return f"{fr.file.name}: {fr.error}"
    return f"{fr.file.name}: {label}"


def convert(paths: List[str], out_dir: str, combined: bool, target_format: str) -> int:
    files = []
    for path in paths:
        with open(path, "rb") as f:
            files.append(StatementFile(os.path.basename(path), f.read()))

    batch = FileBatch(on_settled=lambda fr: print(describe(fr)))
    asyncio.run(batch.submit(files))

    exportable = batch.exportable()
    if not exportable:
        print("No transactions to export.", file=sys.stderr)
        return 1

    os.makedirs(out_dir, exist_ok=True)
    loader = YNABLoader()
    if combined:
        outputs = [(combined_export_filename(target_format), [txs for _, txs in exportable])]
    else:
        outputs = [(export_filename(f.name, target_format), [txs]) for f, txs in exportable]

    written = set()
    for name, sequences in outputs:
        # Two uploads may share a name; never overwrite within one run
        stem, ext = os.path.splitext(name)
        n = 1
        while name in written:
            n += 1
            name = f"{stem}_{n}{ext}"
        written.add(name)

        out_path = os.path.join(out_dir, name)
        with open(out_path, "wb") as f:
            f.write(loader.generate(sequences, target_format).getvalue())
        count = sum(len(seq) for seq in sequences)
        print(f"Wrote {count} transactions to {out_path}")
        logging.info(f"Exported {count} transactions to {out_path}")
    return 0


def inspect_pdf(path: str, variant: Optional[str]) -> int:
    """Print clustered lines and column assignment, for tuning a PdfLayout."""
    with open(path, "rb") as f:
        content = f.read()

    if variant:
        profile = PROFILES[Variant(variant)]
    else:
        profile = FormatDetector().detect(content, os.path.basename(path))
    if profile is None or profile.layout is None:
        print(f"{path}: no PDF statement profile matched; pass --variant", file=sys.stderr)
        return 1

    print(f"Layout: {profile.label}")
    layout = profile.layout
    with pdfplumber.open(path) as pdf:
        for page_number, page in enumerate(pdf.pages, 1):
            print(f"\n{'=' * 60}\nPAGE {page_number}\n{'=' * 60}")
            words = page.extract_words(keep_blank_chars=False, use_text_flow=False) or []
            for line_number, line in enumerate(group_words_into_lines(words, layout.line_tolerance), 1):
                cells = split_columns(line, layout)
                top = float(line[0].get("top", 0))
                rendered = " | ".join(f"{role}={text!r}" for role, text in cells.items())
                print(f"[{line_number:>3}] top={top:7.1f}  {rendered}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="uae2ynab", description="Convert UAE bank statements to YNAB imports")
    parser.add_argument("--log-level", default=Config.LOG_LEVEL)
    sub = parser.add_subparsers(dest="command", required=True)

    p_convert = sub.add_parser("convert", help="Convert statements into YNAB import files")
    p_convert.add_argument("files", nargs="+")
    p_convert.add_argument("--out", default=".")
    p_convert.add_argument("--combined", action="store_true", help="Write one file for all statements")
    p_convert.add_argument("--format", choices=Config.EXPORT_FORMATS, default="csv")

    p_inspect = sub.add_parser("inspect-pdf", help="Show how a PDF is split into lines and columns")
    p_inspect.add_argument("file")
    p_inspect.add_argument("--variant", choices=[v.value for v in Variant if PROFILES[v].layout])

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)

    if args.command == "convert":
        return convert(args.files, args.out, args.combined, args.format)
    return inspect_pdf(args.file, args.variant)


if __name__ == "__main__":
    sys.exit(main())
