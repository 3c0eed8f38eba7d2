#!/usr/bin/env python3
"""
Run the Juice Genius chat API (and the website, when present) with uvicorn.

Usage:
    python server.py              # start on $PORT (default 3001)
    python server.py --port 8000  # custom port
"""

import argparse

import uvicorn

from src.config import PORT


def main():
    parser = argparse.ArgumentParser()
    parser.add_argument("--port", type=int, default=PORT)
    parser.add_argument("--host", default="0.0.0.0")
    parser.add_argument("--reload", action="store_true")
    args = parser.parse_args()

    uvicorn.run("api.main:app", host=args.host, port=args.port, reload=args.reload)


if __name__ == "__main__":
    main()
