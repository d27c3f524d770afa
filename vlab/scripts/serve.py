"""
Virtual Lab Assistant - Development Server
===========================================
Runs the FastAPI app under ``uvicorn``.

Usage:
    python -m vlab.scripts.serve --port 8000 --reload
"""

from __future__ import annotations

import argparse
from pathlib import Path

import uvicorn
from dotenv import load_dotenv

_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent


def main() -> None:
    parser = argparse.ArgumentParser(prog="serve", description="Run the Virtual Lab Assistant API.")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=8000)
    parser.add_argument("--reload", action="store_true", default=False)
    args = parser.parse_args()

    load_dotenv(_PROJECT_ROOT / ".env")
    uvicorn.run("vlab.src.main:create_app", factory=True, host=args.host, port=args.port, reload=args.reload)


if __name__ == "__main__":
    main()
