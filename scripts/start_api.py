#!/usr/bin/env python3
"""
Start the Codex API under uvicorn.

Usage:
    PORT=8080 python scripts/start_api.py
"""
import os
import sys

import uvicorn


def _read_port() -> int:
    """Fetch and validate the PORT environment variable."""
    value = os.environ.get("PORT", "8000")
    try:
        return int(value)
    except ValueError as exc:
        raise SystemExit(f"Invalid PORT '{value}': {exc}") from exc


def main() -> None:
    port = _read_port()
    uvicorn.run("codex_api.main:app", host=os.environ.get("HOST", "0.0.0.0"), port=port)


if __name__ == "__main__":
    try:
        main()
    except Exception as exc:
        print(f"Failed to start API: {exc}", file=sys.stderr)
        raise
