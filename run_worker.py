#!/usr/bin/env python3
"""Entry point for an application worker process."""

import sys
import os

# Add project root to Python path
sys.path.insert(0, os.path.join(os.path.dirname(__file__)))

from src.workers.apply_worker import build_worker

if __name__ == '__main__':
    print("=" * 60)
    print("Apply Agent - Starting Worker")
    print("=" * 60)

    build_worker().run()
