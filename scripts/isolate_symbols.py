#!/usr/bin/env python3
"""
Symbol Isolation Script - Batch-process a directory of slot symbol images

Every image file in the input directory is decoded, isolated on the worker
pool and written to the output directory as <stem>.png, or <stem>_<ext>.png
when two inputs share a stem. Symbols that are skipped or fall back are
written with their original bytes.

    python scripts/isolate_symbols.py assets/raw assets/isolated
    python scripts/isolate_symbols.py assets/raw out --force --workers 4

Environment variables:
    ISOLATION_MAX_WORKERS, ISOLATION_TIMEOUT_SECONDS, LOG_LEVEL, LOG_FORMAT_JSON
"""

import sys
import argparse
from collections import Counter
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from symbol_isolation.core.config import settings
from symbol_isolation.core.exceptions import IsolationBaseException
from symbol_isolation.core.logging import get_logger, setup_logging
from symbol_isolation.core.metrics import get_metrics
from symbol_isolation.engines.isolation.codec import decode_image, encode_png
from symbol_isolation.pipeline.batch import IsolationRequest, SymbolBatchProcessor
from symbol_isolation.pipeline.hints import SourceHint, resolve_source_hint

logger = get_logger(__name__)

IMAGE_SUFFIXES = {".png", ".jpg", ".jpeg", ".webp", ".bmp", ".gif"}


def _output_names(paths) -> dict:
    """<stem>.png per input; stems shared by several inputs keep their extension."""
    stems = Counter(path.stem for path in paths)
    names = {}
    for path in paths:
        if stems[path.stem] > 1:
            names[path.name] = f"{path.stem}_{path.suffix.lstrip('.').lower()}.png"
            logger.warning("output_name_collision", file=path.name, output=names[path.name])
        else:
            names[path.name] = f"{path.stem}.png"
    return names


def isolate_directory(
    input_dir: Path,
    output_dir: Path,
    force: bool = False,
    workers: int = None,
    timeout: float = None,
) -> dict:
    """Isolate every image in input_dir. Returns a count per final state."""
    output_dir.mkdir(parents=True, exist_ok=True)

    paths = [path for path in sorted(input_dir.iterdir()) if path.suffix.lower() in IMAGE_SUFFIXES]
    output_names = _output_names(paths)

    # Keyed by file name: stems are not unique across extensions
    originals = {}
    requests = []
    passthrough = []

    for path in paths:
        data = path.read_bytes()
        originals[path.name] = data

        hint = resolve_source_hint(path.name, settings)
        if hint == SourceHint.SKIP:
            passthrough.append(path.name)
            continue

        try:
            image = decode_image(data)
        except IsolationBaseException as e:
            logger.warning("decode_failed", file=path.name, error=e.message)
            passthrough.append(path.name)
            continue

        requests.append(IsolationRequest(
            symbol_id=path.name,
            image=image,
            force=force or hint == SourceHint.FORCE,
        ))

    counts = {"passthrough": len(passthrough)}

    with SymbolBatchProcessor(max_workers=workers, timeout_seconds=timeout) as processor:
        def write_result(symbol_id, result):
            payload = encode_png(result.image) if result.processed else originals[symbol_id]
            (output_dir / output_names[symbol_id]).write_bytes(payload)
            counts[result.state.value] = counts.get(result.state.value, 0) + 1

        processor.process_batch(requests, sink=write_result)

    for name in passthrough:
        (output_dir / output_names[name]).write_bytes(originals[name])

    return counts


def main():
    parser = argparse.ArgumentParser(
        description="Isolate slot symbols from their light canvas background"
    )
    parser.add_argument("input_dir", type=Path, help="Directory of source images")
    parser.add_argument("output_dir", type=Path, help="Directory for isolated PNGs")
    parser.add_argument(
        "--force",
        action="store_true",
        help="Process every image even if its border is not a flat light canvas"
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=None,
        help="Worker threads (default: ISOLATION_MAX_WORKERS or CPU count)"
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Per-symbol budget in seconds (default: ISOLATION_TIMEOUT_SECONDS)"
    )
    parser.add_argument(
        "--metrics-file",
        type=Path,
        default=None,
        help="Write Prometheus metrics here when done"
    )

    args = parser.parse_args()

    setup_logging(log_level=settings.LOG_LEVEL, json_format=settings.LOG_FORMAT_JSON)
    logger.info(
        "isolation_run_started",
        app=settings.APP_NAME,
        app_version=settings.APP_VERSION,
        environment=settings.ENVIRONMENT,
        input_dir=str(args.input_dir)
    )

    if not args.input_dir.is_dir():
        logger.error("input_dir_missing", path=str(args.input_dir))
        sys.exit(2)

    counts = isolate_directory(
        args.input_dir,
        args.output_dir,
        force=args.force,
        workers=args.workers,
        timeout=args.timeout,
    )
    logger.info("isolation_run_completed", **counts)

    if args.metrics_file:
        args.metrics_file.write_bytes(get_metrics())

    sys.exit(0)


if __name__ == "__main__":
    main()
