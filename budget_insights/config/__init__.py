"""Configuration files and loaders.

Configuration is stored in JSON files so that domains other than the
default therapy-services one can substitute their own values without
code changes.
"""

from .defaults import get_config_value, get_service_categories, load_config

__all__ = ['load_config', 'get_config_value', 'get_service_categories']
