#!/usr/bin/env python3
"""
Lending Ledger Entry Point

Starts the FastAPI server with the lending ledger.
"""

import sys

import uvicorn

from lending_ledger.config import get_config
from lending_ledger.logging_config import setup_logging


if __name__ == "__main__":
    config = get_config()
    logger = setup_logging(config.log_level, log_format=config.log_format, log_file=config.log_file)

    print("Starting Lending Ledger...")
    print(f"Accounting mode: {config.accounting_mode}")
    print(f"API available at: http://localhost:{config.api_port}")
    print(f"Documentation at: http://localhost:{config.api_port}/docs")
    print()

    try:
        uvicorn.run(
            "lending_ledger.api:app",
            host=config.api_host,
            port=config.api_port,
            workers=config.api_workers
        )
    except KeyboardInterrupt:
        print("\nShutting down Lending Ledger...")
    except Exception as e:
        logger.error(f"Error starting server: {e}")
        sys.exit(1)
