#!/usr/bin/env python3
"""
Main entry point script for Command Tower.

This script can be run directly from the command line to browse random
commanders, their average decklists and deck prices.
"""

import sys
from pathlib import Path

# Add the project directory to Python path
project_dir = Path(__file__).parent
sys.path.insert(0, str(project_dir))

from command_tower.cli import main

if __name__ == "__main__":
    main()
