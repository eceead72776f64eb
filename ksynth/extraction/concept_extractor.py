"""
Concept extractor for ksynth.
Combines frequency, heading, emphasis and named entity strategies
into one set of concept labels per document.
"""

import logging
import math
import re
from typing import Dict, List, Mapping, Optional

from ksynth.extraction.text_processing import TextProcessor
from ksynth.utils.config_loader import ExtractionConfig


logger = logging.getLogger(__name__)

MIN_SENSITIVITY = 1
MAX_SENSITIVITY = 10
DEFAULT_SENSITIVITY = 5

_HEADING = re.compile(r'^#+\s+(.+)$', re.MULTILINE)
_EMPHASIS = re.compile(r'(\*\*|__)(.*?)\1|(\*|_)(.*?)\3')


class ConceptExtractor:
    """
    Rule-based concept extractor.
    Holds the extraction sensitivity and the user feedback table.
    """

    def __init__(
        self,
        sensitivity: int = DEFAULT_SENSITIVITY,
        text_processor: Optional[TextProcessor] = None
    ):
        """
        Initialize concept extractor.

        Args:
            sensitivity: Extraction sensitivity, clamped to 1-10
            text_processor: Text processor to use (a new one if None)
        """
        self.text_processor = text_processor or TextProcessor()
        self._sensitivity = DEFAULT_SENSITIVITY
        self._user_feedback: Dict[str, bool] = {}
        self.set_sensitivity(sensitivity)

    @classmethod
    def from_config(cls, config: ExtractionConfig) -> "ConceptExtractor":
        """Create an extractor from the extraction config section."""
        return cls(sensitivity=config.extraction_sensitivity)

    @property
    def sensitivity(self) -> int:
        return self._sensitivity

    @property
    def user_feedback(self) -> Dict[str, bool]:
        return dict(self._user_feedback)

    def set_sensitivity(self, sensitivity: int):
        """Set the sensitivity, clamping out-of-range values to 1-10."""
        if isinstance(sensitivity, float) and math.isnan(sensitivity):
            sensitivity = DEFAULT_SENSITIVITY
        self._sensitivity = int(max(MIN_SENSITIVITY, min(MAX_SENSITIVITY, sensitivity)))

    def record_feedback(self, concept: str, is_relevant: bool):
        """
        Record whether a concept is relevant.

        Only future extractions are affected; concepts already in the
        graph are left alone.
        """
        self._user_feedback[concept] = bool(is_relevant)
        logger.debug(f"Recorded feedback for '{concept}': relevant={bool(is_relevant)}")

    def load_feedback(self, feedback: Mapping[str, bool]):
        """
        Replace the feedback table, e.g. from a saved snapshot.

        Entries whose value is not a boolean are skipped.
        """
        table: Dict[str, bool] = {}
        for concept, value in feedback.items():
            if not isinstance(value, bool):
                logger.warning(f"Ignoring non-boolean feedback for '{concept}': {value!r}")
                continue
            table[str(concept)] = value
        self._user_feedback = table

    def clear_feedback(self):
        self._user_feedback = {}

    def extract_concepts(self, content: str) -> List[str]:
        """
        Extract concepts from document text.

        Args:
            content: Document text (markdown)

        Returns:
            Deduplicated concept labels. Labels with negative feedback
            are removed. Empty or whitespace-only input yields [].
        """
        if not content or not content.strip():
            return []

        concepts = (
            self.extract_from_frequency(content)
            + self.extract_from_headings(content)
            + self.extract_from_emphasis(content)
            + self.extract_from_named_entities(content)
        )

        filtered = [
            concept for concept in concepts
            if self._user_feedback.get(concept) is not False
        ]

        return list(dict.fromkeys(filtered))

    def frequency_threshold(self) -> int:
        """Minimum term frequency at the current sensitivity."""
        return max(2, 20 // (11 - self._sensitivity))

    def extract_from_frequency(self, content: str) -> List[str]:
        """
        Extract frequent terms.

        Terms must occur at least frequency_threshold() times; at most
        sensitivity * 3 terms are kept, most frequent first.
        """
        tokens = self.text_processor.tokenize(content)
        filtered_tokens = self.text_processor.remove_stop_words(tokens)
        term_frequency = self.text_processor.calculate_term_frequency(filtered_tokens)

        threshold = self.frequency_threshold()
        frequent = [
            (term, count) for term, count in term_frequency.items()
            if count >= threshold
        ]
        frequent.sort(key=lambda item: item[1], reverse=True)

        return [term for term, _ in frequent[:self._sensitivity * 3]]

    def extract_from_headings(self, content: str) -> List[str]:
        """Extract markdown heading text."""
        headings = []
        for match in _HEADING.finditer(content):
            heading = match.group(1).strip()
            if heading:
                headings.append(heading)
        return headings

    def extract_from_emphasis(self, content: str) -> List[str]:
        """Extract bold and italic spans."""
        emphasized = []
        for match in _EMPHASIS.finditer(content):
            text = match.group(2) or match.group(4)
            if text and text.strip():
                emphasized.append(text.strip())
        return emphasized

    def extract_from_named_entities(self, content: str) -> List[str]:
        return self.text_processor.extract_named_entities(content)
