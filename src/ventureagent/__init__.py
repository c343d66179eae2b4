"""Client-side AI agent pipeline for the venture business-planning platform."""

__version__ = "0.1.0"
