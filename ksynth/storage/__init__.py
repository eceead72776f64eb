"""
Snapshot storage module for ksynth.
"""

from ksynth.storage.data_manager import CURRENT_VERSION, DataManager

__all__ = ["CURRENT_VERSION", "DataManager"]
