"""
Concept extraction module for ksynth.
Extracts concept labels from note text.
"""

from ksynth.extraction.concept_extractor import ConceptExtractor
from ksynth.extraction.text_processing import STOP_WORDS, TextProcessor

__all__ = ["ConceptExtractor", "STOP_WORDS", "TextProcessor"]
