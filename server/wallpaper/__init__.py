"""Vibe Wallpaper service package.

Importing the package loads ``.env`` files so configuration is populated before
``wallpaper.config`` reads the environment.
"""
from __future__ import annotations

from pathlib import Path

from dotenv import load_dotenv

__version__ = "0.1.0"

_ROOT_DIR = Path(__file__).resolve().parent.parent

# Base env first; .env.local overrides for developer-specific keys.
load_dotenv(_ROOT_DIR / ".env")
load_dotenv(_ROOT_DIR / ".env.local", override=True)
