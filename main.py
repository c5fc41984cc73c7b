#!/usr/bin/env python3
"""
Identity Verification API - Main Entry Point
"""

import os
import sys
import logging

# Make the idmatch package importable without installation
sys.path.insert(0, os.path.join(os.path.dirname(os.path.abspath(__file__)), 'infrastructure'))

from idmatch.server import run_server
from idmatch.settings import load_settings

if __name__ == "__main__":
    import argparse

    settings = load_settings()

    parser = argparse.ArgumentParser(description="Identity Verification API Server")
    parser.add_argument("--host", default=settings.host, help="Host to bind to")
    parser.add_argument("--port", type=int, default=settings.port, help="Port to bind to")
    parser.add_argument("--debug", action="store_true", help="Enable auto-reload")
    parser.add_argument("--log-level", default="INFO",
                       choices=["DEBUG", "INFO", "WARNING", "ERROR"],
                       help="Set log level")

    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        force=True
    )

    print("=" * 50)
    print("Identity Verification API v1.0.0")
    print("=" * 50)
    print(f"Server will start on http://{args.host}:{args.port}")
    print(f"API Documentation: http://{args.host}:{args.port}/docs")
    print(f"Health Check: http://{args.host}:{args.port}/health")
    print("=" * 50)

    try:
        run_server(host=args.host, port=args.port, debug=args.debug)
    except KeyboardInterrupt:
        print("\nShutting down gracefully...")
    except Exception as e:
        logging.error(f"Failed to start server: {e}")
        sys.exit(1)
