# categorizer/cli.py
from __future__ import annotations

import argparse
import sys
import threading
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from loguru import logger

from . import config
from .config import Mode, load_settings
from .embed_cache import EmbeddingCache
from .errors import CategorizerError
from .export import export_frame, read_input_texts, write_results_csv
from .pipeline_types import ResultRow
from .service import CategorizerService
from .taxonomy import load_taxonomy_file


def _build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(description="Suggest categories for each input text.")
    ap.add_argument("--input", type=Path, required=True,
                    help="Texts to classify (.txt one per line, or .csv/.tsv)")
    ap.add_argument("--categories", type=Path, default=None,
                    help="Seed category file; defaults to the configured seed file")
    ap.add_argument("--config", type=Path, default=None,
                    help=f"Settings JSON (default: {config.CONFIG_PATH})")
    ap.add_argument("--output", type=Path, default=None,
                    help="Result CSV path (default: csv/result_<timestamp>.csv)")
    ap.add_argument("--column", default=None, help="Text column for CSV/TSV input")
    ap.add_argument("--mode", choices=[m.value for m in Mode], default=None)
    ap.add_argument("--top-k", type=int, default=None)
    ap.add_argument("--workers", type=int, default=1)
    ap.add_argument("--ndc-file", type=Path, default=None,
                    help="CSV/TSV with code,label columns replacing the built-in NDC dictionary")
    ap.add_argument("--rules", type=Path, nargs="?", const=config.DEFAULT_RULE_FILE, default=None,
                    help=f"Keyword rule JSON; bare flag uses {config.DEFAULT_RULE_FILE} (created if missing)")
    ap.add_argument("--purge-cache", action="store_true", help="Drop cached embeddings before the run")
    ap.add_argument("--stdout", action="store_true", help="Print the result table instead of writing a file")
    return ap


def main(argv: Optional[List[str]] = None) -> int:
    args = _build_parser().parse_args(argv)

    try:
        settings = load_settings(args.config)
        overrides = {}
        if args.mode:
            overrides["mode"] = Mode(args.mode)
        if args.top_k is not None:
            overrides["top_k"] = args.top_k
        if overrides:
            settings = settings.model_copy(update={"ranking": settings.ranking.model_copy(update=overrides)})
        if args.categories:
            if not args.categories.exists():
                raise FileNotFoundError(f"Category file not found: {args.categories}")
            settings = settings.model_copy(update={"seed_file": str(args.categories)})
        if args.rules:
            settings = settings.model_copy(update={"rule_file": str(args.rules)})

        texts = read_input_texts(args.input, args.column)
        if args.purge_cache:
            EmbeddingCache(settings.embedder.cache_dir, settings.embedder.resolved_model_id()).purge()
        ndc = load_taxonomy_file(args.ndc_file) if args.ndc_file else None
        svc = CategorizerService.from_settings(settings, taxonomy_entries=ndc)
    except (CategorizerError, OSError, ValueError) as e:
        logger.error("{}", e)
        return 2

    cancel = threading.Event()
    try:
        result = svc.classify_all(texts, workers=args.workers, cancel_event=cancel)
    except KeyboardInterrupt:
        cancel.set()
        logger.warning("Interrupted")
        return 130

    rows: List[ResultRow] = []
    for i, row in enumerate(result.rows):
        if row is None:
            err = result.errors.get(i)
            if err is not None:
                logger.error("{}", err)
            row = ResultRow(text=texts[i], need_review=True)
        rows.append(row)

    cfg = svc.config()
    split = cfg.mode is Mode.SPLIT
    if args.stdout:
        export_frame(rows, cfg.top_k, split).to_csv(sys.stdout, index=False)
    else:
        out = args.output or config.OUTPUT_DIR / f"result_{datetime.now():%Y%m%d_%H%M%S}.csv"
        write_results_csv(rows, out, cfg.top_k, split)

    review = sum(1 for r in rows if r.need_review)
    logger.info("Classified {}/{} texts; {} need review; {} errors", result.completed, len(texts), review, len(result.errors))
    return 1 if result.errors else 0


if __name__ == "__main__":
    sys.exit(main())
