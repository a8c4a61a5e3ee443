"""
Operations package for the Ancestry Maps Pipeline

This package centralizes the operational tools:
- Configuration management
- Pipeline orchestration (click CLI)

The Config class is exposed at the package level for convenient imports:
    from ops import Config
"""

from .config_loader import Config, load_config

__all__ = ["Config", "load_config"]
