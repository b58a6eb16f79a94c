"""Data models, PIF and configuration."""
