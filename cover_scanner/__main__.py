import argparse
import sys

from cover_scanner import *
from cover_scanner.core.utils import CoverScannerError
from pathlib                  import Path

def build_parser() -> argparse.ArgumentParser:

    parser      = argparse.ArgumentParser(
        description = "Compare book covers or read title and author text from a cover photo."
    )
    subparsers  = parser.add_subparsers(dest = "command", required = True)

    compare_parser = subparsers.add_parser(
        "compare",
        help = "Estimate how similar two cover images are."
    )
    compare_parser.add_argument("first",  help = "Path or URL of the first cover image.")
    compare_parser.add_argument("second", help = "Path or URL of the second cover image.")
    compare_parser.add_argument(
        "--formula",
        choices = ["strict", "lenient"],
        default = None,
        help    = "Distance-to-percentage formula (defaults to the configured one)."
    )
    compare_parser.add_argument(
        "--config-file",
        type    = Path,
        default = None,
        help    = "Custom comparator configuration file."
    )
    compare_parser.add_argument(
        "--model",
        type    = Path,
        default = None,
        help    = "ONNX descriptor model to use instead of the configured one."
    )

    extract_parser = subparsers.add_parser(
        "extract",
        help = "Read title and author text from cover photos."
    )
    extract_parser.add_argument(
        "image_paths",
        nargs = "+",
        type  = Path,
        help  = "Cover photo(s) or directories of cover photos to read."
    )
    extract_parser.add_argument(
        "--config-file",
        type    = Path,
        default = None,
        help    = "Custom extractor configuration file."
    )
    extract_parser.add_argument(
        "--detector-model",
        type    = Path,
        default = None,
        help    = "ONNX region detector model to use instead of the configured one."
    )
    extract_parser.add_argument(
        "--output-json",
        action = "store_true",
        help   = "Save scan results to a JSON file."
    )
    extract_parser.add_argument(
        "--image-dir",
        type    = Path,
        default = None,
        help    = "Save annotated images into this directory."
    )

    return parser

def run_compare(args: argparse.Namespace) -> int:

    config_override = {"descriptor": {"model_file": str(args.model.resolve())}} if args.model else None
    comparator      = CoverComparator(
        formula         = args.formula,
        config_file     = args.config_file,
        config_override = config_override
    )
    result          = comparator.compare_sources(args.first, args.second)
    print(result)
    return 0 if result.available else 1

def run_extract(args: argparse.Namespace) -> int:

    config_override = {"detector": {"model_file": str(args.detector_model.resolve())}} if args.detector_model else None
    extractor       = CoverTextExtractor(
        config_file     = args.config_file,
        config_override = config_override,
        output_json     = args.output_json,
        output_images   = args.image_dir is not None,
        image_dir       = args.image_dir
    )

    # Directory arguments expand to the images they hold.
    image_files = [
        image_file
        for image_path in args.image_paths
        for image_file in (Utils.find_image_files(image_path) if image_path.is_dir() else [image_path])
    ]
    results     = extractor.run_headless_mode(image_files)

    exit_code = 0
    for image_file in image_files:
        if image_file.name not in results:
            print(f"Error: Could not read {image_file}")
            exit_code = 1
            continue

        print(f"[{image_file.name}]\n{results[image_file.name]['message']}\n")

    return exit_code

def main(argv: list[str] | None = None) -> int:

    args = build_parser().parse_args(argv)

    try:
        if args.command == "compare":
            return run_compare(args)
        return run_extract(args)

    # Missing model files and bad configuration surface here.
    except (CoverScannerError, FileNotFoundError, ValueError) as e:
        print(f"Error: {e}")
        return 1

if __name__ == "__main__":
    sys.exit(main())
