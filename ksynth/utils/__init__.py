"""
Utility modules for ksynth.
"""

from ksynth.utils.config_loader import ConfigLoader

__all__ = ["ConfigLoader"]
