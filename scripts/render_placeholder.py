#!/usr/bin/env python
"""Run the optimize pipeline for one image from the command line.

Prints the blur placeholder descriptor as JSON, or writes the optimized image
to ``--output`` when one is given.
"""
from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path
from urllib.parse import parse_qsl, quote

from image_gateway.exceptions import PipelineError
from image_gateway.models import ImageEnvelope
from image_gateway.services.engine import get_engine
from image_gateway.services.paths import split_route_path
from image_gateway.services.pipeline import run_pipeline


def main() -> None:
    parser = argparse.ArgumentParser(description="Render an optimized image or blur placeholder")
    parser.add_argument("locator", help="Storage-relative path or http(s) URL of the source image")
    parser.add_argument("--query", default="", help="Operation query string, e.g. 'w=800&q=80'")
    parser.add_argument("--output", type=Path, help="Write the optimized image here instead of printing a placeholder")
    parser.add_argument("--base-url", default="http://localhost:8000", help="Base URL used for optimizedImageUrl")
    args = parser.parse_args()

    query = parse_qsl(args.query, keep_blank_values=True)
    if args.output is None:
        query = [("placeholder", "blur"), ("format", "json"), *query]

    tail = quote(args.locator, safe="/:")
    request_url = f"{args.base_url.rstrip('/')}/optimize/{tail}"
    if args.query:
        request_url = f"{request_url}?{args.query}"

    outcome = asyncio.run(run_pipeline(split_route_path(tail), query, request_url, get_engine()))

    if isinstance(outcome, PipelineError):
        print(f"{outcome.summary}: {outcome.message}", file=sys.stderr)
        sys.exit(1)
    if isinstance(outcome, ImageEnvelope):
        args.output.write_bytes(outcome.data)
        print(f"Wrote {len(outcome.data)} bytes ({outcome.content_type}) to {args.output}")
        return
    print(json.dumps(outcome.descriptor.model_dump(by_alias=True), indent=2))


if __name__ == "__main__":
    main()
