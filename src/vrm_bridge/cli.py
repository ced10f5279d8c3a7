import argparse
import sys
from pathlib import Path
from typing import Optional

from loguru import logger

from vrm_bridge.config import configure_logging, get_settings
from vrm_bridge.converter import VRMConversionError
from vrm_bridge.models import ConversionRequest
from vrm_bridge.services.conversion import ConversionService


def _parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="GLB to VRM 1.0 converter")
    parser.add_argument("input_path", help="Source GLB file")
    parser.add_argument(
        "-o",
        "--output",
        dest="output_path",
        default=None,
        help="Where to write the VRM (defaults to the input path with a .vrm suffix)",
    )
    parser.add_argument("--name", dest="avatar_name", default="Converted Avatar", help="Avatar display name")
    parser.add_argument("--author", default=None, help="Avatar author")
    parser.add_argument("--avatar-version", dest="avatar_version", default="1.0", help="Avatar version")
    parser.add_argument("--save", action="store_true", help="Also save into the avatars directory")
    return parser.parse_args(argv)


def main(argv: Optional[list[str]] = None) -> int:
    args = _parse_args(sys.argv[1:] if argv is None else argv)
    settings = get_settings()
    configure_logging(settings)

    input_path = Path(args.input_path)
    if not input_path.is_file():
        logger.error("Input path does not exist or is not a file: {}", input_path)
        return 2
    output_path = Path(args.output_path) if args.output_path else input_path.with_suffix(".vrm")

    request = ConversionRequest(
        avatar_name=args.avatar_name,
        author=args.author,
        version=args.avatar_version,
        save=args.save,
    )
    try:
        result = ConversionService(settings=settings).convert(input_path.read_bytes(), request)
    except VRMConversionError as exc:
        logger.error("Conversion failed: {}", exc)
        return 1

    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_bytes(result.vrm)

    print(f"Wrote {output_path} ({result.mapped_bones} bones mapped)")
    for warning in result.warnings:
        print(f"warning: {warning}")
    if result.saved_path:
        print(f"Saved to {result.saved_path}")
    return 0


if __name__ == "__main__":  # pragma: no cover - console entrypoint
    sys.exit(main())
