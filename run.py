#!/usr/bin/env python3
"""
Scan-to-Pay client service
Main execution script - Run this file to start the API server
"""

import os
import sys
from pathlib import Path

# Add current directory to Python path
sys.path.insert(0, str(Path(__file__).parent))

import uvicorn

from scanpay.main import create_app


def main():
    """Main entry point for the scan-to-pay service"""
    port_env = os.environ.get("PORT")
    try:
        port = int(port_env) if port_env else 8000
    except ValueError:
        print(f"⚠️ Invalid PORT value: {port_env}, using default 8000")
        port = 8000

    print(f"📚 API Documentation: http://localhost:{port}/docs")

    app = create_app()
    uvicorn.run(
        app,
        host='0.0.0.0',  # Allow external access for mobile testing
        port=port,
        reload=False,
        access_log=True,
        log_level="info"
    )


if __name__ == "__main__":
    main()
