#!/usr/bin/env python3
"""Main entry point for the Apply Agent API server."""

import sys
import os

# Add project root to Python path
sys.path.insert(0, os.path.join(os.path.dirname(__file__)))

from src.api.server import run_server

if __name__ == '__main__':
    print("=" * 60)
    print("Apply Agent - Starting Server")
    print("=" * 60)
    print("\nEndpoints:")
    print("  POST /api/apply/<job_id>          - Queue one application")
    print("  POST /api/apply/bulk              - Queue several applications")
    print("  GET  /api/apply/status/<id>       - Application status")
    print("  GET  /api/apply/user/<user_id>    - Applications for a user")
    print("  GET  /api/queue/stats             - Queue counts")
    print("  GET  /api/health                  - Health check")
    print("\nStart workers separately with: python run_worker.py")
    print("\n" + "=" * 60)

    run_server()
