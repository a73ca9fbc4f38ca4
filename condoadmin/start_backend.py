#!/usr/bin/env python3
"""
Backend startup wrapper for the condoadmin billing API.

Run from the repository root:
    python -m condoadmin.start_backend
"""
import os
import sys

import uvicorn


def main() -> None:
    host = os.getenv("HOST", "0.0.0.0")
    port = int(os.getenv("PORT", "8000"))
    print(f"[condoadmin] Starting billing backend on http://{host}:{port}")
    try:
        uvicorn.run(
            "condoadmin.main:app",
            host=host,
            port=port,
            reload=False,
            log_level="info",
            access_log=True,
        )
    except KeyboardInterrupt:
        print("\n[condoadmin] Shutting down...")
        sys.exit(0)


if __name__ == "__main__":
    main()
