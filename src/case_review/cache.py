"""File-backed result store for cases, analyses and aggregated summaries."""
import logging
from pathlib import Path
from typing import Callable, Generic, TypeVar

from pydantic import ValidationError

from .models import Aggregation, Case, CaseAnalysis, ReviewReport, short_case_number

logger = logging.getLogger(__name__)

T = TypeVar('T')

AGGREGATED_SUMMARY = "aggregated_summary"
REVIEW_REPORT = "review_report"


class FileCache(Generic[T]):
    """Simple file-based cache for serializable objects."""

    def __init__(self, cache_dir: Path):
        self.cache_dir = Path(cache_dir)
        self.cache_dir.mkdir(parents=True, exist_ok=True)

    def path(self, key: str, suffix: str = ".json") -> Path:
        return self.cache_dir / f"{key}{suffix}"

    def get(self, key: str, loader: Callable[[str], T]) -> T | None:
        """Get cached item, returning None if not found."""
        cache_file = self.path(key)
        if cache_file.exists():
            return loader(cache_file.read_text(encoding="utf-8"))
        return None

    def save(self, key: str, value: T, serializer: Callable[[T], str], suffix: str = ".json") -> Path:
        """Save item to cache."""
        cache_file = self.path(key, suffix)
        cache_file.write_text(serializer(value), encoding="utf-8")
        return cache_file

    def exists(self, key: str) -> bool:
        """Check if item exists in cache."""
        return self.path(key).exists()

    def keys(self, prefix: str = "") -> list[str]:
        return sorted(p.stem for p in self.cache_dir.glob(f"{prefix}*.json"))


def _dump(model) -> str:
    return model.model_dump_json(by_alias=True, indent=2)


class ResultStore(FileCache):
    """Output directory layout: case_<n>.json, analysis_<n>.json, aggregated_summary.json.

    Case numbers in file names have their leading zeros stripped.
    """

    @staticmethod
    def case_key(case_number: str) -> str:
        return f"case_{short_case_number(case_number)}"

    @staticmethod
    def analysis_key(case_number: str) -> str:
        return f"analysis_{short_case_number(case_number)}"

    def save_case(self, case: Case) -> Path:
        return self.save(self.case_key(case.case_number), case, _dump)

    def load_case(self, case_number: str) -> Case | None:
        return self.get(self.case_key(case_number), Case.model_validate_json)

    def has_analysis(self, case_number: str) -> bool:
        return self.exists(self.analysis_key(case_number))

    def save_analysis(self, analysis: CaseAnalysis) -> Path:
        return self.save(self.analysis_key(analysis.case_number), analysis, _dump)

    def load_analysis(self, case_number: str) -> CaseAnalysis | None:
        return self.get(self.analysis_key(case_number), CaseAnalysis.model_validate_json)

    def load_analyses(self) -> list[CaseAnalysis]:
        """Every readable analysis file in the directory; unreadable ones are logged and skipped."""
        analyses = []
        for key in self.keys("analysis_"):
            try:
                analyses.append(self.get(key, CaseAnalysis.model_validate_json))
            except (OSError, ValidationError) as e:
                logger.warning("Could not read %s.json: %s", key, e)
        return analyses

    def save_aggregation(self, aggregation: Aggregation, markdown: str | None = None) -> Path:
        path = self.save(AGGREGATED_SUMMARY, aggregation, _dump)
        if markdown is not None:
            self.save(AGGREGATED_SUMMARY, markdown, str, suffix=".md")
        return path

    def load_aggregation(self) -> Aggregation | None:
        return self.get(AGGREGATED_SUMMARY, Aggregation.model_validate_json)

    def save_review(self, report: ReviewReport) -> Path:
        return self.save(REVIEW_REPORT, report, _dump)
