from __future__ import annotations

import argparse
import logging
import os
from pathlib import Path
from typing import Optional, Sequence

from dotenv import load_dotenv

from .config import Config
from .config import load_config as load_runtime_config
from .errors import BOQError, GenerationError
from .export import export_filename, export_ledger
from .generation import BOQGenerator, RetryPolicy
from .mutations import NEW_TRADE_NAME
from .project_meta import COUNTRY_BY_CODE
from .reporting import make_summary_text
from .session import EditSession

logger = logging.getLogger(__name__)

EXPORT_FORMATS = ("pdf", "xlsx", "csv")


def _write_ledger(session: EditSession, path: Path) -> Path:
    session.sync_totals()
    return session.save(path)


def run_generate(args: argparse.Namespace, cfg: Config) -> int:
    if cfg.disable_ai:
        logger.error("AI generation is disabled (DISABLE_OPENAI / --disable-ai).")
        return 1
    description = Path(args.description_file).read_text(encoding="utf-8")
    country = COUNTRY_BY_CODE[cfg.country_code]
    generator = BOQGenerator(
        model=cfg.model,
        temperature=cfg.temperature,
        policy=RetryPolicy(retries=cfg.max_retries, initial_delay=cfg.initial_backoff_seconds),
        api_key=os.getenv(cfg.api_key_env),
    )
    ledger = generator.generate(description, cfg.measurement_standard, country)
    if ledger.is_insufficient_info:
        logger.warning("Insufficient information: %s", ledger.missing_info_reason or "no reason given")

    out = Path(args.out) if args.out else cfg.output_dir / f"{export_filename(ledger.project_summary.project_type)}.json"
    path = _write_ledger(EditSession(ledger), out)
    logger.info("Ledger written to %s", path)
    print(make_summary_text(ledger))
    return 0


def run_summary(args: argparse.Namespace, cfg: Config) -> int:
    session = EditSession.load(Path(args.ledger))
    print(make_summary_text(session.snapshot()))
    return 0


def run_export(args: argparse.Namespace, cfg: Config) -> int:
    session = EditSession.load(Path(args.ledger))
    formats = EXPORT_FORMATS if args.format == "all" else (args.format,)
    written = export_ledger(session.snapshot(), cfg.output_dir, formats)
    logger.info("Export complete:")
    for fmt, path in written.items():
        logger.info(" - %s: %s", fmt, path)
    return 0


def run_edit(args: argparse.Namespace, cfg: Config) -> int:
    path = Path(args.ledger)
    session = EditSession.load(path)
    if args.add_item is not None:
        session.add_item(args.add_item)
    elif args.delete_item:
        session.delete_item(*args.delete_item)
    elif args.set:
        trade_index, item_index, field, value = args.set
        session.update_item_field(int(trade_index), int(item_index), field, value)
    elif args.set_overhead:
        trade_index, item_index, value = args.set_overhead
        session.update_item_overhead(int(trade_index), int(item_index), value)
    elif args.add_trade is not None:
        session.add_trade(args.add_trade)
    elif args.rename_trade:
        trade_index, name = args.rename_trade
        session.rename_trade(int(trade_index), name)
    elif args.delete_trade is not None:
        if not session.delete_trade(args.delete_trade, confirm=args.yes):
            logger.error("Refusing to delete a trade and its items without --yes.")
            return 1
    elif args.add_assumption:
        category, text = args.add_assumption
        session.add_assumption(category, text)
    elif args.delete_assumption is not None:
        session.delete_assumption(args.delete_assumption)
    else:
        logger.error("No edit requested.")
        return 1
    _write_ledger(session, Path(args.out) if args.out else path)
    return 0


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Generate, edit and export priced Bills of Quantities")
    parser.add_argument("--disable-ai", action="store_true", help="Disable OpenAI usage")
    parser.add_argument("-v", "--verbose", action="store_true", help="Increase logging verbosity")
    sub = parser.add_subparsers(dest="command", required=True)

    gen = sub.add_parser("generate", help="Generate a ledger from a project description")
    gen.add_argument("description_file", help="Text file with the project scope description")
    gen.add_argument("--country", help="Country code or name (e.g. UK, 'Sri Lanka')")
    gen.add_argument("--standard", help="Measurement standard (NRM1, NRM2, SMM7, CESMM4, POMI)")
    gen.add_argument("--model", help="Model name override")
    gen.add_argument("--max-retries", type=int, help="Quota retries before giving up")
    gen.add_argument("--out", help="Path of the ledger JSON to write")

    summ = sub.add_parser("summary", help="Print a text summary of a ledger")
    summ.add_argument("ledger", help="Ledger JSON file")

    exp = sub.add_parser("export", help="Export a ledger to PDF, Excel or CSV")
    exp.add_argument("ledger", help="Ledger JSON file")
    exp.add_argument("--format", choices=EXPORT_FORMATS + ("all",), default="pdf")
    exp.add_argument("--output-dir", dest="output_dir", help="Directory for exported files")

    edit = sub.add_parser("edit", help="Apply one edit to a ledger JSON file")
    edit.add_argument("ledger", help="Ledger JSON file (rewritten in place unless --out is given)")
    edit.add_argument("--out", help="Write the edited ledger here instead")
    actions = edit.add_mutually_exclusive_group(required=True)
    actions.add_argument("--add-item", type=int, metavar="T", help="Append a blank item to trade T")
    actions.add_argument("--delete-item", type=int, nargs=2, metavar=("T", "I"))
    actions.add_argument("--set", nargs=4, metavar=("T", "I", "FIELD", "VALUE"), help="Set an item field")
    actions.add_argument("--set-overhead", nargs=3, metavar=("T", "I", "VALUE"), help="Set explicit unit O&P")
    actions.add_argument("--add-trade", nargs="?", const=NEW_TRADE_NAME, metavar="NAME")
    actions.add_argument("--rename-trade", nargs=2, metavar=("T", "NAME"))
    actions.add_argument("--delete-trade", type=int, metavar="T")
    actions.add_argument("--add-assumption", nargs=2, metavar=("CATEGORY", "TEXT"))
    actions.add_argument("--delete-assumption", type=int, metavar="N")
    edit.add_argument("--yes", action="store_true", help="Confirm destructive edits")
    return parser.parse_args(argv)


COMMANDS = {
    "generate": run_generate,
    "summary": run_summary,
    "export": run_export,
    "edit": run_edit,
}


def main(argv: Optional[Sequence[str]] = None) -> int:
    load_dotenv()
    args = parse_args(argv)
    runtime_cfg = load_runtime_config(os.environ, args)
    log_level = logging.DEBUG if runtime_cfg.verbose else logging.INFO
    logging.basicConfig(level=log_level, format="%(message)s")
    try:
        return COMMANDS[args.command](args, runtime_cfg)
    except GenerationError as exc:
        logger.error("%s", exc)
        return 1
    except (BOQError, IndexError, ValueError, OSError) as exc:
        logger.error("%s failed: %s", args.command, exc)
        return 1


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
