#!/usr/bin/env python3
"""
Batch Processing Example

Demonstrates decoding a directory of data type documents in batch.

Usage:
    python examples/batch_processing.py <input_dir> <output_dir> --type Dosage [--pattern "*.json"]
"""

import argparse
import sys
from pathlib import Path

from fhir_datatypes import Pipeline


def main():
    parser = argparse.ArgumentParser(description="Batch decode FHIR data type documents")
    parser.add_argument("input_dir", type=Path, help="Directory with JSON or XML documents")
    parser.add_argument("output_dir", type=Path, help="Output directory for normalized files")
    parser.add_argument("--type", "-t", dest="type_name", help="FHIR data type")
    parser.add_argument("--pattern", "-p", default="*.json", help="File pattern to match")
    parser.add_argument("--config", "-c", type=Path, help="Config file")
    parser.add_argument("--lenient", action="store_true", help="Keep unknown content")
    args = parser.parse_args()

    if not args.input_dir.exists():
        print(f"Error: Input directory not found: {args.input_dir}")
        sys.exit(1)

    # Create output directory
    args.output_dir.mkdir(parents=True, exist_ok=True)

    # Find files
    files = sorted(args.input_dir.glob(args.pattern))
    if not files:
        print(f"No files matching '{args.pattern}' in {args.input_dir}")
        sys.exit(0)

    print("=" * 60)
    print("FHIR Data Type Batch Processing")
    print("=" * 60)
    print(f"Input: {args.input_dir}")
    print(f"Output: {args.output_dir}")
    print(f"Pattern: {args.pattern}")
    print(f"Files found: {len(files)}")
    print("-" * 60)

    # Create pipeline
    if args.config:
        pipeline = Pipeline.from_config(args.config)
    elif args.lenient:
        pipeline = Pipeline.lenient()
    else:
        pipeline = Pipeline.strict()

    batch = pipeline.process_batch(files, args.type_name)

    for result in batch.results:
        name = Path(result.source).name
        if result.success:
            pipeline.save(result.record, args.output_dir / f"{Path(name).stem}.json", "json")
            print(f"[OK]    {name}")
        elif result.error is not None:
            print(f"[ERROR] {name}: {result.error}")
        else:
            for error in result.validation.errors:
                print(f"[ERROR] {name}: {error.path}: {error.message}")

    print("-" * 60)
    print(f"Processed: {batch.success_count}")
    print(f"Errors: {batch.failure_count}")

    if batch.failure_count:
        sys.exit(1)


if __name__ == "__main__":
    main()
