"""Configuration module — exports Settings and the YAML loaders."""

from groundwriter.config.loader import load_config, settings_from_config
from groundwriter.config.settings import Settings

__all__ = ["Settings", "load_config", "settings_from_config"]
