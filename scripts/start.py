#!/usr/bin/env python3
"""
Production startup script.

Validates PORT, then starts gunicorn (replaces this process via os.execvp).

Usage:
    python scripts/start.py
"""

from __future__ import annotations

import os
import sys


def main() -> None:
    port = os.environ.get("PORT", "").strip()
    if not port:
        print("WARNING: PORT not set, using default 8080", flush=True)
        port = "8080"

    try:
        port_int = int(port)
        if port_int < 1 or port_int > 65535:
            raise ValueError("Port out of range")
    except ValueError:
        print(f"ERROR: Invalid PORT value '{port}'. Must be integer 1-65535.", flush=True)
        sys.exit(1)

    print(f"=== Starting gunicorn on 0.0.0.0:{port} ===", flush=True)
    print("Health check endpoint ready at /healthz", flush=True)

    # One committed customer collection and tag save guard per process.
    os.execvp(
        "gunicorn",
        [
            "gunicorn",
            "app.wsgi:app",
            "--bind", f"0.0.0.0:{port}",
            "--workers", "1",
            "--threads", "4",
            "--timeout", "60",
            "--access-logfile", "-",
            "--error-logfile", "-",
        ],
    )


if __name__ == "__main__":
    main()
