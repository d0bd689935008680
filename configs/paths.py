"""
Project paths.

Usage:
    from configs.paths import ROBOTS_DIR
"""
from __future__ import annotations

from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent
DEMO_DIR = BASE_DIR / 'demo'
ROBOTS_DIR = DEMO_DIR / 'robots'
LOG_FILE = BASE_DIR / 'samplers.log'
