"""
Command-line interface for the HairGenius relay and preview workflow.

Usage:
    hairgenius serve [--host HOST] [--port PORT]
    hairgenius batch PHOTO [--output-dir DIR] [--retry-failed]
    hairgenius refine PHOTO STYLE_ID COLOR_ID [--output FILE]
    hairgenius custom PHOTO PROMPT [--reference IMAGE] [--output FILE]
    hairgenius styles
"""

from __future__ import annotations

import argparse
import asyncio
import base64
import logging
import mimetypes
import sys
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from .catalog import COLORS_LIST, STYLES_LIST
from .config import Settings, get_settings
from .orchestrator import BatchOrchestrator
from .schemas import GeneratedPreview, PreviewStatus
from .session import Session
from .utils import decode_data_url, extension_for_mime, to_data_url
from .aiservices.relaygenerationclient import RelayGenerationClient

logger = logging.getLogger(__name__)


def _read_image(path: Path) -> tuple[str, str]:
    mime_type = mimetypes.guess_type(path.name)[0] or "image/jpeg"
    return base64.b64encode(path.read_bytes()).decode("ascii"), mime_type


def _write_data_url(data_url: str, destination: Path) -> Path:
    raw, mime_type = decode_data_url(data_url)
    if not destination.suffix:
        destination = destination.with_suffix(f".{extension_for_mime(mime_type)}")
    destination.parent.mkdir(parents=True, exist_ok=True)
    destination.write_bytes(raw)
    return destination


def _log_progress(previews: Dict[str, GeneratedPreview]) -> None:
    done = sum(1 for p in previews.values() if p.is_terminal)
    if previews:
        logger.info("Previews: %d/%d finished", done, len(previews))


def print_summary(previews: Dict[str, GeneratedPreview], saved: Dict[str, Path]) -> None:
    """Print a per-style status table."""
    print("\n" + "=" * 70)
    print(f"{'Style':<18} {'Status':<10} {'Result'}")
    print("-" * 70)
    for style in STYLES_LIST:
        preview = previews.get(style.id)
        if preview is None:
            continue
        if preview.status is PreviewStatus.SUCCESS:
            result = str(saved.get(style.id, ""))
        else:
            result = preview.error or ""
        print(f"{style.id:<18} {preview.status.value:<10} {result}")
    print("=" * 70 + "\n")


async def run_batch(
    photo: Path,
    output_dir: Path,
    retry_failed: bool,
    settings: Settings,
    client: Optional[RelayGenerationClient] = None,
) -> int:
    session = Session()
    orchestrator = BatchOrchestrator(session, client or RelayGenerationClient(settings), settings)
    session.subscribe(_log_progress)

    session.select_image(*_read_image(photo))
    await orchestrator.batch_generate()

    if retry_failed:
        failed: List[str] = [
            style_id
            for style_id, preview in session.previews.items()
            if preview.status is PreviewStatus.ERROR
        ]
        for style_id in failed:
            logger.info("Retrying %s", style_id)
            await orchestrator.retry_style(style_id)

    saved: Dict[str, Path] = {}
    for style_id, preview in session.previews.items():
        if preview.status is PreviewStatus.SUCCESS and preview.imageUrl:
            saved[style_id] = _write_data_url(preview.imageUrl, output_dir / style_id)

    print_summary(session.previews, saved)
    return 0 if saved else 1


async def run_single(
    photo: Path,
    output: Path,
    settings: Settings,
    style_id: Optional[str] = None,
    color_id: Optional[str] = None,
    prompt: Optional[str] = None,
    reference: Optional[Path] = None,
    client: Optional[RelayGenerationClient] = None,
) -> int:
    session = Session()
    orchestrator = BatchOrchestrator(session, client or RelayGenerationClient(settings), settings)
    session.select_image(*_read_image(photo))

    if prompt is not None:
        reference_image = to_data_url(*_read_image(reference)) if reference is not None else None
        await orchestrator.custom_generate(prompt, reference_image)
    else:
        await orchestrator.refine(style_id or "", color_id or "")

    if session.generated_image is None:
        logger.error("Generation failed: %s", session.error or "unknown style or color")
        return 1

    written = _write_data_url(session.generated_image, output)
    print(f"Result written to: {written}")
    return 0


def _list_styles() -> int:
    for option in (*STYLES_LIST, *COLORS_LIST):
        print(f"{option.category:<9} {option.id:<16} {option.label}")
    return 0


def _serve(host: str, port: int, reload: bool) -> int:  # pragma: no cover - starts a server
    import uvicorn

    uvicorn.run("hairgenius.main:app", host=host, port=port, reload=reload)
    return 0


def build_parser(settings: Settings) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="hairgenius",
        description="Preview hairstyles on a photo through the HairGenius relay",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Start the relay (needs HAIRGENIUS_API_KEY or API_KEY)
  hairgenius serve --port 3000

  # Preview every style, retrying failures once
  hairgenius batch me.jpg --output-dir previews --retry-failed

  # Final result for one style and color
  hairgenius refine me.jpg bob auburn --output bob-auburn.png
        """,
    )
    parser.add_argument(
        "--relay-url",
        type=str,
        default=settings.relay_url,
        help=f"Relay base URL (default: {settings.relay_url})",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")

    subparsers = parser.add_subparsers(dest="command", required=True)

    serve = subparsers.add_parser("serve", help="Run the relay server")
    serve.add_argument("--host", type=str, default=settings.host)
    serve.add_argument("--port", type=int, default=settings.port)
    serve.add_argument("--reload", action="store_true", help="Reload on code changes")

    subparsers.add_parser("styles", help="List the style and color catalog")

    batch = subparsers.add_parser("batch", help="Generate a preview for every style")
    batch.add_argument("photo", type=Path)
    batch.add_argument("--output-dir", "-o", type=Path, default=Path("previews"))
    batch.add_argument(
        "--retry-failed",
        action="store_true",
        help="Retry each failed style once after the batch run",
    )

    refine = subparsers.add_parser("refine", help="Apply a style and color at full quality")
    refine.add_argument("photo", type=Path)
    refine.add_argument("style_id")
    refine.add_argument("color_id")
    refine.add_argument("--output", "-o", type=Path, default=Path("result"))

    custom = subparsers.add_parser("custom", help="Apply a free-form prompt at full quality")
    custom.add_argument("photo", type=Path)
    custom.add_argument("prompt")
    custom.add_argument("--reference", type=Path, default=None, help="Photo of the hairstyle to copy")
    custom.add_argument("--output", "-o", type=Path, default=Path("result"))

    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main CLI entry point."""
    settings = get_settings()
    args = build_parser(settings).parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    if args.command == "serve":
        return _serve(args.host, args.port, args.reload)
    if args.command == "styles":
        return _list_styles()

    settings = settings.model_copy(update={"relay_url": args.relay_url})

    photo: Path = args.photo
    if not photo.exists():
        logger.error("Photo does not exist: %s", photo)
        return 1

    if args.command == "batch":
        return asyncio.run(run_batch(photo, args.output_dir, args.retry_failed, settings))
    if args.command == "refine":
        return asyncio.run(
            run_single(photo, args.output, settings, style_id=args.style_id, color_id=args.color_id)
        )
    if args.reference is not None and not args.reference.exists():
        logger.error("Reference image does not exist: %s", args.reference)
        return 1
    return asyncio.run(
        run_single(photo, args.output, settings, prompt=args.prompt, reference=args.reference)
    )


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
