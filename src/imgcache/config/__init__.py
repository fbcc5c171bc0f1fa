"""Configuration — defaults, YAML/env hierarchy and the settings model."""

from imgcache.config.hierarchy import load_config, load_config_hierarchy
from imgcache.config.schema import ImageCacheConfig

__all__ = ["ImageCacheConfig", "load_config", "load_config_hierarchy"]
