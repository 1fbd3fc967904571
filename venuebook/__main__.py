"""
Convenience entry point for running venuebook as a module.

Usage: python -m venuebook [command] [options]
"""

from .cli.app import app

if __name__ == "__main__":
    app()
