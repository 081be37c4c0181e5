#!/usr/bin/env python3
"""
Convenience entry point for running classplanner directly.

Usage: python run_classplanner.py [command] [options]
"""

from classplanner.cli.app import app

if __name__ == "__main__":
    app()
