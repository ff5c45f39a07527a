#!/usr/bin/env python3
"""
Tagged Ledger Entry Point

Starts the FastAPI server with the vault ledger.
"""

import sys

from tagged_ledger.api import run_server


if __name__ == "__main__":
    try:
        run_server()
    except KeyboardInterrupt:
        print("\nShutting down Tagged Ledger...")
    except Exception as e:
        print(f"Error starting server: {e}")
        sys.exit(1)
