"""
Configuration package for the table anomaly monitor.
"""

from .settings import COLOR_PROFILES, MonitorSettings

__all__ = ['MonitorSettings', 'COLOR_PROFILES']
