"""
Command-line entry point: extract BOM, dimensions and title block data
from a single drawing image and print the result as JSON.

Usage:
    drawing-reader drawing.jpg
    drawing-reader drawing.png --model gpt-4.1-mini
"""

import argparse
import asyncio
import logging
import mimetypes
import sys
from pathlib import Path

from .config import get_settings
from .services.extraction import ExtractionFailure, ExtractionService, validate_image_upload

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="drawing-reader",
        description="Extract BOM, dimensions and title block metadata from an engineering drawing.",
    )
    parser.add_argument("image", type=Path, help="Path to the drawing image (PNG, JPG, WEBP)")
    parser.add_argument("--model", help="OpenAI model to use (default from settings)")
    parser.add_argument("--mime-type", help="MIME type of the image (guessed from the extension by default)")
    parser.add_argument("--mock", action="store_true", help="Return sample data without calling the API")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    return parser


async def _run(service: ExtractionService, data: bytes, mime_type: str) -> str:
    try:
        result = await service.extract(data, mime_type)
    finally:
        await service.aclose()

    output = result.model_dump_json(by_alias=True, indent=2)
    summary = f"Extracted {len(result.bom)} BOM items and {len(result.dimensions)} dimensions."
    return f"{output}\n{summary}"


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    image_path: Path = args.image
    if not image_path.is_file():
        print(f"Error: Image file not found: {image_path}", file=sys.stderr)
        return 1

    mime_type = args.mime_type or mimetypes.guess_type(image_path.name)[0]
    try:
        data = image_path.read_bytes()
    except OSError as e:
        print(f"Error: Cannot read image file {image_path}: {e.strerror or e}", file=sys.stderr)
        return 1

    settings = get_settings()
    service = ExtractionService(
        api_key=settings.openai_api_key,
        model=args.model or settings.openai_model,
        temperature=settings.extraction_temperature,
        use_mock=args.mock or settings.use_mock,
    )

    try:
        validate_image_upload(data, mime_type)
        output = asyncio.run(_run(service, data, mime_type))
    except ExtractionFailure as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print(output)
    return 0


if __name__ == "__main__":
    sys.exit(main())
