"""Textual dashboard."""

from .app import GlwikiApp, run_tui

__all__ = ["GlwikiApp", "run_tui"]
