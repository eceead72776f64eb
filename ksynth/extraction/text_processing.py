"""
Text processing utilities for concept extraction.
Tokenization, stop word filtering, stemming and entity heuristics.
"""

import re
from collections import Counter
from typing import Dict, Iterable, List


# Common English function words filtered before frequency counting
STOP_WORDS = frozenset({
    'a', 'an', 'the', 'and', 'or', 'but', 'is', 'are', 'was', 'were',
    'be', 'been', 'being', 'have', 'has', 'had', 'do', 'does', 'did',
    'of', 'as', 'like', 'if', 'that', 'you', 'with', 'your', 'through',
    'to', 'from', 'in', 'out', 'on', 'off', 'over', 'under', 'again',
    'further', 'then', 'once', 'here', 'there', 'when', 'where', 'why',
    'how', 'all', 'any', 'both', 'each', 'few', 'more', 'most', 'other',
    'some', 'such', 'no', 'nor', 'not', 'only', 'own', 'same', 'so',
    'than', 'too', 'very', 'can', 'will', 'just', 'should', 'now',
})

_NON_WORD = re.compile(r'\W')
_WHITESPACE = re.compile(r'\s+')
_SENTENCE_BOUNDARY = re.compile(r'[.!?]+')
_CAPITALIZED_WORD = re.compile(r'[A-Z][a-z]+')


class TextProcessor:
    """
    Stateless text processor.
    Every method is a pure function of its input.
    """

    def tokenize(self, text: str) -> List[str]:
        """
        Tokenize text into lowercase words.

        Args:
            text: Input text

        Returns:
            List of tokens. Empty input yields a single empty token.
        """
        normalized = _NON_WORD.sub(' ', text.lower())
        normalized = _WHITESPACE.sub(' ', normalized).strip()
        return normalized.split(' ')

    def calculate_term_frequency(self, tokens: Iterable[str]) -> Dict[str, int]:
        """Count occurrences of each token."""
        return dict(Counter(tokens))

    def remove_stop_words(self, tokens: Iterable[str]) -> List[str]:
        """Drop stop words and tokens of length one or less."""
        return [token for token in tokens if token not in STOP_WORDS and len(token) > 1]

    def stem_words(self, tokens: Iterable[str]) -> List[str]:
        """
        Strip one common suffix from each token.

        Rules are tried in order and only the first match applies:
        "ing", "ly", a single trailing "s" (not "ss"), then "ed" on
        tokens longer than four characters.
        """
        return [self._stem(token) for token in tokens]

    @staticmethod
    def _stem(token: str) -> str:
        if token.endswith('ing'):
            return token[:-3]
        if token.endswith('ly'):
            return token[:-2]
        if token.endswith('s') and not token.endswith('ss'):
            return token[:-1]
        if token.endswith('ed') and len(token) > 4:
            return token[:-2]
        return token

    def extract_named_entities(self, text: str) -> List[str]:
        """
        Extract capitalized words and word pairs as entity candidates.

        The first word of each sentence is never a candidate, so ordinary
        sentence-initial capitalization is not picked up. Words are
        separated by single spaces; text joined by a line break (such as
        a heading and the line below it) is not a word. Two adjacent
        candidates also produce a compound "Word1 Word2" label.

        Args:
            text: Raw document text

        Returns:
            Deduplicated entity labels in first-seen order
        """
        entities: List[str] = []

        for sentence in _SENTENCE_BOUNDARY.split(text):
            # Single spaces only: a word broken by a newline stays one token
            # and fails the capitalization match
            words = sentence.strip().split(' ')
            candidates = [
                index > 0 and _CAPITALIZED_WORD.fullmatch(word) is not None
                for index, word in enumerate(words)
            ]

            for index, word in enumerate(words):
                if not candidates[index]:
                    continue
                entities.append(word)
                if index + 1 < len(words) and candidates[index + 1]:
                    entities.append(f"{word} {words[index + 1]}")

        return list(dict.fromkeys(entities))
