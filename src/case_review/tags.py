"""Tag vocabulary and heuristic tag matching."""
import logging
import re
import threading
from datetime import datetime, timezone
from pathlib import Path

from pydantic import ConfigDict, ValidationError

from .formatting import round_half_up
from .models import (
    Case,
    CamelModel,
    MatchedTag,
    TagMatch,
    TagSetValidation,
    TagSuggestion,
    TagValidationResult,
    TagValidationSummary,
)


logger = logging.getLogger(__name__)

_WORD_SPLIT = re.compile(r"[\s\-_/]+")
_SPACES = re.compile(r"\s+")
VALID_MATCH_SCORE = 0.5


class TagLists(CamelModel):
    """Immutable snapshot of the open/close tag vocabularies."""
    model_config = ConfigDict(frozen=True)

    open_tags: tuple[str, ...] = ()
    close_tags: tuple[str, ...] = ()


class TagVocabulary:
    """Fixed tag vocabulary loaded from a JSON file.

    Readers take the current snapshot; reload() and add_custom_tags()
    swap in a new one under the same lock.
    """

    def __init__(self, lists: TagLists | None = None, path: Path | None = None):
        self.path = path
        self._lists = lists or TagLists()
        self._lock = threading.Lock()

    @classmethod
    def load(cls, path: Path) -> "TagVocabulary":
        vocabulary = cls(path=Path(path))
        if not vocabulary.reload():
            logger.warning("Could not load tag vocabulary from %s, using empty lists", path)
        else:
            lists = vocabulary.snapshot()
            logger.info("Loaded %d open tags and %d close tags", len(lists.open_tags), len(lists.close_tags))
        return vocabulary

    def reload(self) -> bool:
        """Re-read the vocabulary file. Returns False and keeps the current lists on failure."""
        if self.path is None:
            return False
        try:
            lists = TagLists.model_validate_json(self.path.read_text())
        except (OSError, ValidationError) as e:
            logger.error("Failed to reload tags: %s", e)
            return False
        with self._lock:
            self._lists = lists
        return True

    def add_custom_tags(self, open_tags: list[str] | None = None, close_tags: list[str] | None = None) -> None:
        """Extend the in-memory vocabulary; the file is not touched."""
        with self._lock:
            current = self._lists
            self._lists = TagLists(
                open_tags=tuple(dict.fromkeys([*current.open_tags, *(open_tags or [])])),
                close_tags=tuple(dict.fromkeys([*current.close_tags, *(close_tags or [])])),
            )

    def snapshot(self) -> TagLists:
        return self._lists

    @property
    def open_tags(self) -> list[str]:
        return list(self._lists.open_tags)

    @property
    def close_tags(self) -> list[str]:
        return list(self._lists.close_tags)

    def is_close_tag(self, tag: str) -> bool:
        normalized = normalize_tag(tag)
        return any(normalize_tag(valid) == normalized for valid in self._lists.close_tags)


def normalize_tag(tag: str | None) -> str:
    if not tag:
        return ""
    return _SPACES.sub(" ", tag.lower().strip())


def _words(normalized: str) -> list[str]:
    return [word for word in _WORD_SPLIT.split(normalized) if len(word) > 2]


def find_best_match(tag: str, valid_tags: list[str] | tuple[str, ...]) -> tuple[str | None, float, str]:
    """Best vocabulary match for a tag as (match, score, match_type).

    Tried in order: exact (1.0), containment (length ratio x 0.8), then
    word overlap (overlap ratio x 0.6, only above 0.3 overlap).
    """
    normalized = normalize_tag(tag)

    for valid in valid_tags:
        if normalize_tag(valid) == normalized:
            return valid, 1.0, "exact"

    for valid in valid_tags:
        candidate = normalize_tag(valid)
        if candidate in normalized or normalized in candidate:
            longest = max(len(normalized), len(candidate))
            similarity = min(len(normalized), len(candidate)) / longest if longest else 0.0
            return valid, similarity * 0.8, "partial"

    tag_words = _words(normalized)
    best: tuple[str | None, float, str] = (None, 0.0, "none")
    best_overlap = 0.0
    for valid in valid_tags:
        valid_words = _words(normalize_tag(valid))
        shared = [w for w in tag_words if any(v in w or w in v for v in valid_words)]
        overlap = len(shared) / max(len(tag_words), len(valid_words), 1)
        if overlap > best_overlap and overlap > 0.3:
            best_overlap = overlap
            best = (valid, overlap * 0.6, "word-overlap")
    return best


def validate_tags(case_tags: list[str], valid_tags: list[str] | tuple[str, ...]) -> TagSetValidation:
    """Match each tag against the vocabulary and score the set."""
    if not case_tags:
        return TagSetValidation(total_valid_tags=len(valid_tags))

    result = TagSetValidation(provided=list(case_tags), total_valid_tags=len(valid_tags))
    for tag in case_tags:
        match, score, match_type = find_best_match(tag, valid_tags)
        result.details.append(TagMatch(
            tag=tag, match_type=match_type, match_score=round(score, 2), suggested_tag=match,
        ))
        if match_type == "exact":
            result.valid.append(tag)
            result.matched_tags.append(MatchedTag(provided=tag, matched=match))
        elif score >= VALID_MATCH_SCORE:
            result.valid.append(tag)
            result.matched_tags.append(MatchedTag(provided=tag, matched=match, score=score))
            if match != tag:
                result.suggestions.append(TagSuggestion(current=tag, suggested=match))
        else:
            result.invalid.append(tag)
            result.unmatched_tags.append(tag)
            if match:
                result.suggestions.append(TagSuggestion(current=tag, suggested=match))

    average = sum(detail.match_score for detail in result.details) / len(case_tags)
    result.score = round_half_up(average * 10, 1)
    result.coverage = round_half_up(len(result.valid) / len(case_tags) * 100, 1)
    return result


def validate_case_tags(case: Case, vocabulary: TagVocabulary) -> TagValidationResult:
    """Heuristic validation of a case's open and close tags."""
    lists = vocabulary.snapshot()
    open_tags = case.tags.open_tags
    close_tags = case.tags.close_tags
    open_result = validate_tags(open_tags, lists.open_tags)
    close_result = validate_tags(close_tags, lists.close_tags)

    total = len(open_tags) + len(close_tags)
    overall = (open_result.score * len(open_tags) + close_result.score * len(close_tags)) / total if total else 0.0
    total_valid = len(open_result.valid) + len(close_result.valid)

    return TagValidationResult(
        open_tags=open_result,
        close_tags=close_result,
        summary=TagValidationSummary(
            total_tags_provided=total,
            total_valid=total_valid,
            total_invalid=len(open_result.invalid) + len(close_result.invalid),
            overall_score=round_half_up(overall, 1),
            overall_coverage=round_half_up(total_valid / max(total, 1) * 100, 1),
        ),
        validation_timestamp=datetime.now(timezone.utc).isoformat(),
    )
