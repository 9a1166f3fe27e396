"""Command line entry point.

Examples:
  panelslicer scan page1.png page2.png --preset comics --output slices.json
  panelslicer normalize response.json --width 1600 --height 2400
  panelslicer grid --rows 2 --cols 3
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, Optional, Sequence

from . import __version__
from .batch import BatchOrchestrator, DetectionJob, JobStatus, SliceMode, make_detect_fn
from .config import AppConfig, apply_env_overrides, get_preset, load_config
from .detector import generate_grid_slices
from .exceptions import RecognizerError, UnparsableRecognizerResult
from .recognizer import extract_response_text, regions_from_text

log = logging.getLogger("Slices")


def setup_logging(debug: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
        force=True,
    )


def _resolve_config(args: argparse.Namespace) -> AppConfig:
    # Precedence: environment < --preset < --config < explicit flags
    config = apply_env_overrides(AppConfig())
    if args.preset:
        config = get_preset(args.preset)
    if args.config:
        config = load_config(args.config, base=config)
    if args.threshold is not None:
        config.scan.color_threshold = args.threshold
    if args.concurrency is not None:
        config.batch.concurrency = args.concurrency
    config.scan.debug = config.scan.debug or args.debug
    return config


def _write_json(data: Any, output: Optional[str]) -> None:
    text = json.dumps(data, indent=2)
    if output:
        Path(output).write_text(text + "\n", encoding="utf-8")
        log.info(f"Wrote {output}")
    else:
        print(text)


def cmd_scan(args: argparse.Namespace) -> int:
    config = _resolve_config(args)
    paths = list(dict.fromkeys(args.images))
    jobs = [
        DetectionJob(
            item_id=path,
            status=JobStatus.QUEUED,
            mode=SliceMode.SCAN,
            config=config.scan.copy(),
            source=path,
        )
        for path in paths
    ]

    orchestrator = BatchOrchestrator(config.batch)
    asyncio.run(orchestrator.run_to_completion(jobs, config.batch.concurrency, make_detect_fn(config)))

    result: Dict[str, Any] = {
        job.item_id: {
            "status": job.status.value,
            "regions": [r.to_dict() for r in job.regions],
            "error": job.error,
        }
        for job in jobs
    }
    _write_json(result, args.output)

    failed = [job.item_id for job in jobs if job.status != JobStatus.DONE]
    if failed:
        log.warning(f"{len(failed)} of {len(jobs)} images failed")
        return 1
    return 0


def _read_response(source: str) -> str:
    """Recognizer text from a file ("-" for stdin), unwrapping provider JSON bodies."""
    raw = sys.stdin.read() if source == "-" else Path(source).read_text(encoding="utf-8")
    try:
        payload = json.loads(raw)
    except ValueError:
        return raw
    if isinstance(payload, dict) and ("choices" in payload or "candidates" in payload or "error" in payload):
        return extract_response_text(payload)
    return raw


def cmd_normalize(args: argparse.Namespace) -> int:
    config = AppConfig()
    if args.max_upload is not None:
        config.recognizer.max_upload_dim = args.max_upload

    try:
        text = _read_response(args.response)
        regions = regions_from_text(text, args.width, args.height, config.recognizer)
    except UnparsableRecognizerResult as e:
        log.error(f"{e} (first 200 chars: {e.text[:200]!r})")
        return 2
    except RecognizerError as e:
        log.error(str(e))
        return 1

    _write_json([r.to_dict() for r in regions], args.output)
    return 0


def cmd_grid(args: argparse.Namespace) -> int:
    try:
        slices = generate_grid_slices(args.rows, args.cols)
    except ValueError as e:
        log.error(str(e))
        return 1
    _write_json([r.to_dict() for r in slices], args.output)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="panelslicer",
        description="Detect rectangular slices (panels, sprites, UI elements) in images",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    scan = sub.add_parser("scan", help="Run the local scan over images")
    scan.add_argument("images", nargs="+", help="Image files")
    scan.add_argument("--threshold", type=int, default=None, help="Color threshold / split sensitivity (1-100)")
    scan.add_argument("--preset", type=str, default=None, help="Comics, Sprites or Screenshots")
    scan.add_argument("--config", type=str, default=None, help="YAML configuration file")
    scan.add_argument("--concurrency", type=int, default=None, help="Images processed per round (1-5)")
    scan.add_argument("--output", "-o", type=str, default=None, help="Write JSON here instead of stdout")
    scan.set_defaults(func=cmd_scan)

    norm = sub.add_parser("normalize", help="Normalize a recognizer response into regions")
    norm.add_argument("response", help='Response file (raw text or JSON body), "-" for stdin')
    norm.add_argument("--width", type=int, required=True, help="Original image width")
    norm.add_argument("--height", type=int, required=True, help="Original image height")
    norm.add_argument("--max-upload", type=int, default=None, help="Larger side of the transmitted image")
    norm.add_argument("--output", "-o", type=str, default=None)
    norm.set_defaults(func=cmd_normalize)

    grid = sub.add_parser("grid", help="Print a uniform grid of slices")
    grid.add_argument("--rows", type=int, required=True)
    grid.add_argument("--cols", type=int, required=True)
    grid.add_argument("--output", "-o", type=str, default=None)
    grid.set_defaults(func=cmd_grid)

    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.debug)

    try:
        return args.func(args)
    except KeyboardInterrupt:
        log.warning("Interrupted")
        return 130
    except (KeyError, ValueError, OSError) as e:
        log.error(str(e))
        return 1


if __name__ == "__main__":
    sys.exit(main())
