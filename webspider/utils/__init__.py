"""
Utility modules for the web crawler system.
"""

from .config import Config, ConfigError, ConfigManager, CrawlerConfig, load_config

__all__ = ['Config', 'ConfigError', 'ConfigManager', 'CrawlerConfig', 'load_config']
