#!/usr/bin/env python3
"""Convenience runner for route sync.

Usage:
    python run.py demo --fixtures demo_routes.json
    python run.py live 12345 67890
"""
import sys

from route_sync.main import main

if __name__ == "__main__":
    sys.exit(main())
