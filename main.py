#!/usr/bin/env python3
"""
Kawaii Narrator - Main Application Entry Point
Reads an AI assistant's terminal output aloud while a VRM avatar emotes along.

Features:
- Reassembles chunked CLI output into complete utterances
- Speaks the 『quoted』 parts through a local VOICEVOX-compatible engine
- Suppresses repeated lines
- Drives avatar expressions and lip-sync from what is being said

Usage:
    claude | python main.py
    python main.py --input session.log

Python: 3.11+
"""

import sys
import asyncio
import argparse
import logging
from pathlib import Path

# Add project root to Python path
PROJECT_ROOT = Path(__file__).parent
sys.path.insert(0, str(PROJECT_ROOT))

from kawaii_narrator.core.application import NarratorApplication
from kawaii_narrator.core.config import load_config
from kawaii_narrator.utils.logger import setup_logging


def check_python_version():
    """Ensure compatible Python version."""
    if sys.version_info < (3, 11):
        print("❌ Python 3.11 or higher is required!", file=sys.stderr)
        print(f"Current version: {sys.version}", file=sys.stderr)
        sys.exit(1)


def check_dependencies():
    """Check if all required dependencies are installed."""
    required_packages = {
        'numpy': 'numpy',
        'pygame': 'pygame',
        'requests': 'requests',
        'pydantic': 'pydantic',
        'yaml': 'PyYAML',
        'dotenv': 'python-dotenv',
        'pygltflib': 'pygltflib',
    }

    missing_packages = []
    for module, package in required_packages.items():
        try:
            __import__(module)
        except ImportError:
            missing_packages.append(package)

    if missing_packages:
        print("❌ Missing required packages:", file=sys.stderr)
        for pkg in missing_packages:
            print(f"   - {pkg}", file=sys.stderr)
        print("\nPlease install missing packages with:", file=sys.stderr)
        print("pip install -e .", file=sys.stderr)
        sys.exit(1)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Narrate AI assistant output with a VRM avatar")
    parser.add_argument("--config", default="configs/config.yaml", help="YAML configuration file")
    parser.add_argument("--input", help="Read terminal output from this file instead of stdin")
    parser.add_argument("--no-voice", action="store_true", help="Start with voice output disabled")
    parser.add_argument("--log-level", help="Override the configured log level")
    return parser.parse_args(argv)


def main():
    """Main application entry point."""
    check_python_version()
    check_dependencies()

    args = parse_args()
    config = load_config(args.config)
    if args.log_level:
        config.log_level = args.log_level
    if args.no_voice:
        config.voice.enabled = False

    setup_logging(config.log_level, config.log_dir)
    logger = logging.getLogger(__name__)
    logger.info(f"Starting {config.app_name} {config.version}")

    try:
        app = NarratorApplication(config, input_path=args.input)
        asyncio.run(app.run())

    except KeyboardInterrupt:
        logger.info("Application interrupted by user")
    except Exception as e:
        logger.error(f"Application error: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
