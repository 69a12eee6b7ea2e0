"""Keyword-based column header to canonical field mapping."""

import logging
from typing import Iterable, List

from import_engine.intelligence.model import ColumnMappingSuggestion, IntelligenceRule, RuleType

logger = logging.getLogger(__name__)

# Scale applied when the keyword is longer than (and contains) the header
KEYWORD_CONTAINS_HEADER_FACTOR = 0.8


def score_header(header: str, keyword: str) -> float:
    """
    Score how well a normalized header matches one normalized keyword.

    Args:
        header: Trimmed, lowercased header
        keyword: Trimmed, lowercased keyword

    Returns:
        1.0 on equality, len(keyword)/len(header) when the header contains the
        keyword, len(header)/len(keyword) * 0.8 when the keyword contains the
        header, else 0.0
    """
    if not header or not keyword:
        return 0.0
    if header == keyword:
        return 1.0
    if keyword in header:
        return len(keyword) / len(header)
    if header in keyword:
        return len(header) / len(keyword) * KEYWORD_CONTAINS_HEADER_FACTOR
    return 0.0


class ColumnMapper:
    """
    Suggests a canonical field for arbitrary supplier headers.

    The mapper is pure: it works on the column-mapping rules it was given and
    never touches the store. Rules are consulted highest priority first and a
    later rule only wins when its score is strictly greater.
    """

    def __init__(self, rules: Iterable[IntelligenceRule]):
        """
        Initialize mapper.

        Args:
            rules: Active rules for one company; non column-mapping rules are ignored
        """
        column_rules = [r for r in rules if r.rule_type == RuleType.COLUMN_MAPPING and r.is_active]
        # Stable sort keeps stored order among equal priorities
        self.rules: List[IntelligenceRule] = sorted(column_rules, key=lambda r: -r.priority)

    def suggest(self, header: str) -> ColumnMappingSuggestion:
        """
        Suggest the canonical field for one header.

        Args:
            header: Raw supplier header

        Returns:
            ColumnMappingSuggestion; suggested_field is "" and confidence 0 when nothing matched
        """
        normalized = (header or "").strip().lower()
        best = ColumnMappingSuggestion(column_name=header)
        if not normalized:
            return best

        for rule in self.rules:
            for keyword in rule.input_keywords:
                normalized_keyword = keyword.strip().lower()
                score = score_header(normalized, normalized_keyword)
                if score == 1.0:
                    return ColumnMappingSuggestion(
                        column_name=header,
                        suggested_field=rule.applies_to_field,
                        confidence=1.0,
                        matched_keyword=keyword,
                    )
                if score > best.confidence:
                    best = ColumnMappingSuggestion(
                        column_name=header,
                        suggested_field=rule.applies_to_field,
                        confidence=score,
                        matched_keyword=keyword,
                    )

        if not best.suggested_field:
            logger.debug(f"No column mapping suggestion for header '{header}'")
        return best

    def suggest_many(self, headers: Iterable[str]) -> List[ColumnMappingSuggestion]:
        """Suggest a field for each header, preserving order."""
        return [self.suggest(h) for h in headers]
