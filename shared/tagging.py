"""
Lester v1 - Tagging Rules

Deterministic tag suggestions from a bookmark's URL and title.

The engine emits one suggestion for the site domain followed by one
suggestion per keyword of the title. It never raises: unusable input simply
yields fewer suggestions.
"""

import re
from dataclasses import dataclass
from typing import Iterable, Optional

from .models import TagSource, TagSuggestion

DOMAIN_CONFIDENCE = 0.72
KEYWORD_CONFIDENCE = 0.6
LLM_CONFIDENCE_SCALE = 0.9
LLM_CONFIDENCE_CAP = 0.95
MIN_KEYWORD_LENGTH = 4

STOPWORDS = frozenset({
    "the", "and", "for", "with", "that", "this", "from", "into", "your", "you",
    "are", "was", "were", "have", "has", "about", "http", "https",
})

SCHEMES = ("https://", "http://")

# Anything that is not a letter or a digit separates keywords
_KEYWORD_SPLIT = re.compile(r"[\W_]+")


@dataclass(frozen=True)
class RescalePolicy:
    """How suggestions are relabelled when they stand in for an LLM stage"""
    scale: float = LLM_CONFIDENCE_SCALE
    cap: float = LLM_CONFIDENCE_CAP
    source: TagSource = TagSource.LLM


def extract_domain(url: Optional[str]) -> Optional[str]:
    """
    Extract the host part of a URL for use as a tag.

    Strips the http(s) scheme, everything from the first "/" on, and a
    leading "www.".

    Returns:
        The lowercased domain, or None if nothing is left
    """
    if not url:
        return None
    remainder = url.strip()
    for scheme in SCHEMES:
        if remainder.lower().startswith(scheme):
            remainder = remainder[len(scheme):]
            break
    domain = remainder.split("/", 1)[0]
    if domain.lower().startswith("www."):
        domain = domain[4:]
    domain = domain.strip().lower()
    return domain or None


def extract_keywords(
    text: Optional[str],
    stopwords: Iterable[str] = STOPWORDS,
    min_length: int = MIN_KEYWORD_LENGTH,
) -> list[str]:
    """Split text into unique lowercase keywords, keeping first-seen order"""
    if not text:
        return []
    excluded = set(stopwords)
    keywords: list[str] = []
    seen: set[str] = set()
    for fragment in _KEYWORD_SPLIT.split(text):
        candidate = fragment.lower()
        if len(candidate) < min_length or candidate in excluded:
            continue
        if candidate in seen:
            continue
        seen.add(candidate)
        keywords.append(candidate)
    return keywords


class TaggingRules:
    """
    Rule-based tag suggestion engine.

    Confidence values default to the module constants and can be tuned
    through ``TaggingSettings`` without touching the algorithm.
    """

    def __init__(
        self,
        domain_confidence: float = DOMAIN_CONFIDENCE,
        keyword_confidence: float = KEYWORD_CONFIDENCE,
        stopwords: Iterable[str] = STOPWORDS,
        min_keyword_length: int = MIN_KEYWORD_LENGTH,
    ):
        self.domain_confidence = domain_confidence
        self.keyword_confidence = keyword_confidence
        self.stopwords = frozenset(stopwords)
        self.min_keyword_length = min_keyword_length

    def suggest(self, url: Optional[str], title: Optional[str]) -> list[TagSuggestion]:
        """
        Suggest tags for a bookmark.

        Args:
            url: Bookmark URL
            title: Bookmark title

        Returns:
            The domain suggestion (if any) followed by keyword suggestions
        """
        suggestions: list[TagSuggestion] = []

        domain = extract_domain(url)
        if domain:
            suggestions.append(TagSuggestion(
                name=domain,
                confidence=self.domain_confidence,
                source=TagSource.RULES,
            ))

        for keyword in extract_keywords(title, self.stopwords, self.min_keyword_length):
            suggestions.append(TagSuggestion(
                name=keyword,
                confidence=self.keyword_confidence,
                source=TagSource.RULES,
            ))

        return suggestions


def rescale_suggestions(
    suggestions: Iterable[TagSuggestion],
    policy: RescalePolicy = RescalePolicy(),
) -> list[TagSuggestion]:
    """Uniformly rescale confidences and relabel the source of suggestions"""
    return [
        TagSuggestion(
            name=suggestion.name,
            confidence=min(suggestion.confidence * policy.scale, policy.cap),
            source=policy.source,
        )
        for suggestion in suggestions
    ]
