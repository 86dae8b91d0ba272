"""Buckets, clusters and score statistics over a set of case analyses."""
import re
from collections import Counter
from datetime import datetime, timezone
from typing import Any, Iterable

from .formatting import round_half_up
from .models import (
    Aggregation,
    AggregationMetadata,
    Bucket,
    BucketGroups,
    CaseAnalysis,
    CaseRow,
    Classification,
    ClassifiedCase,
    Classifications,
    Cluster,
    ClusterMember,
    NamedCount,
    RangeCount,
    RCAStats,
    ResolutionStats,
    ScoreStats,
    TagAnalysis,
    TagCount,
)


QUALITY_METRICS = [
    "resolutionQuality",
    "responseTimeliness",
    "communicationQuality",
    "technicalAccuracy",
    "overallHandling",
]

# (label, lower bound inclusive, upper bound exclusive); the top band also takes 10.
SCORE_BANDS = [
    ("Excellent (9-10)", 9, 10),
    ("Good (7-8)", 7, 9),
    ("Average (5-6)", 5, 7),
    ("Below Average (3-4)", 3, 5),
    ("Poor (1-2)", 1, 3),
]
DISTRIBUTION_RANGES = ["9-10", "7-8", "5-6", "3-4", "1-2"]

MAX_CLUSTERS = 20
MAX_CLUSTER_KEYWORDS = 10
MAX_COMMON_TAGS = 10
CLUSTER_COLORS = [(20, "#ef4444"), (10, "#f97316"), (5, "#eab308")]
DEFAULT_CLUSTER_COLOR = "#22c55e"

_NON_ALNUM = re.compile(r"[^a-z0-9\s]")


def _as_dict(analysis: CaseAnalysis | dict) -> dict:
    if isinstance(analysis, CaseAnalysis):
        return analysis.model_dump(by_alias=True)
    return analysis


def _case_number(analysis: dict) -> str:
    return str(analysis.get("caseNumber") or "")


def get_nested(data: Any, path: str) -> Any:
    """Follow a dotted path through nested dicts; None when any step is missing."""
    node = data
    for part in path.split("."):
        if not isinstance(node, dict):
            return None
        node = node.get(part)
    return node


def percentage(count: int, total: int) -> int:
    if not total:
        return 0
    return int(round_half_up(count / total * 100))


def _number(value: Any) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return value


def _str_list(value: Any) -> list[str]:
    """Non-empty strings of a list field; a bare string counts as a one-item list."""
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list):
        return []
    return [v for v in value if isinstance(v, str) and v]


def _text(value: Any, default: str | None) -> str | None:
    if value is None or value == "" or isinstance(value, (dict, list)):
        return default
    return str(value)


def _scores(analyses: list[dict], path: str) -> list[float]:
    return [s for s in (_number(get_nested(a, path)) for a in analyses) if s is not None]


def _sorted_buckets(groups: dict[str, list[str]], total: int) -> list[Bucket]:
    buckets = [
        Bucket(name=name, count=len(cases), percentage=percentage(len(cases), total), cases=cases)
        for name, cases in groups.items()
    ]
    return sorted(buckets, key=lambda b: b.count, reverse=True)


def bucket_by_field(analyses: list[dict], path: str) -> list[Bucket]:
    """One bucket per distinct value; a missing value counts as "Unknown"."""
    groups: dict[str, list[str]] = {}
    for analysis in analyses:
        value = get_nested(analysis, path) or "Unknown"
        groups.setdefault(str(value), []).append(_case_number(analysis))
    return _sorted_buckets(groups, len(analyses))


def bucket_by_list_field(analyses: list[dict], path: str) -> list[Bucket]:
    """A case lands in one bucket per listed value, so percentages may sum past 100."""
    groups: dict[str, list[str]] = {}
    for analysis in analyses:
        values = get_nested(analysis, path) or []
        if not isinstance(values, list):
            values = [values]
        for value in values:
            if value:
                groups.setdefault(str(value), []).append(_case_number(analysis))
    return _sorted_buckets(groups, len(analyses))


def score_band(score: float | None) -> str | None:
    if score is None:
        return None
    for label, low, high in SCORE_BANDS:
        if low <= score < high or (high == 10 and score == 10):
            return label
    return None


def bucket_by_score(analyses: list[dict], path: str) -> list[Bucket]:
    """Fixed five bands, always present; scores outside 1-10 fall in none."""
    groups: dict[str, list[str]] = {label: [] for label, _, _ in SCORE_BANDS}
    for analysis in analyses:
        label = score_band(_number(get_nested(analysis, path)))
        if label:
            groups[label].append(_case_number(analysis))
    total = len(analyses)
    return [
        Bucket(name=label, count=len(cases), percentage=percentage(len(cases), total), cases=cases)
        for label, cases in groups.items()
    ]


def classify(analyses: list[dict], path: str) -> Classification:
    matching = [a for a in analyses if get_nested(a, path) is True]
    return Classification(
        count=len(matching),
        percentage=percentage(len(matching), len(analyses)),
        cases=[
            ClassifiedCase(
                case_number=_case_number(a),
                brief=_text(get_nested(a, "analysis.issueSummary.brief"), "N/A"),
            )
            for a in matching
        ],
    )


def normalize_topic(topic: str) -> str:
    """Lowercase, keep [a-z0-9 ], first five words longer than two characters."""
    words = [w for w in _NON_ALNUM.sub("", topic.lower()).split(" ") if len(w) > 2]
    return " ".join(words[:5]).strip() or "other"


def cluster_id(topic: str) -> str:
    return "cluster_" + re.sub(r"\s+", "_", topic)[:30]


def cluster_color(count: int, total: int) -> str:
    share = count / total * 100 if total else 0
    for threshold, color in CLUSTER_COLORS:
        if share >= threshold:
            return color
    return DEFAULT_CLUSTER_COLOR


def compute_clusters(analyses: list[dict]) -> list[Cluster]:
    groups: dict[str, dict] = {}
    for analysis in analyses:
        primary = _text(get_nested(analysis, "analysis.clusteringFeatures.primaryTopic"), None)
        if not primary:
            continue
        topic = normalize_topic(primary)
        group = groups.setdefault(topic, {"cases": [], "keywords": {}, "product_areas": {}})
        group["cases"].append(ClusterMember(
            case_number=_case_number(analysis),
            brief=_text(get_nested(analysis, "analysis.issueSummary.brief"), None),
        ))
        for keyword in _str_list(get_nested(analysis, "analysis.clusteringFeatures.keywords")):
            group["keywords"][keyword] = None
        for area in _str_list(get_nested(analysis, "analysis.tags.productArea")):
            group["product_areas"][area] = None

    total = len(analyses)
    clusters = [
        Cluster(
            id=cluster_id(topic),
            name=topic,
            count=len(group["cases"]),
            percentage=percentage(len(group["cases"]), total),
            keywords=list(group["keywords"])[:MAX_CLUSTER_KEYWORDS],
            product_areas=list(group["product_areas"]),
            cases=group["cases"],
            color=cluster_color(len(group["cases"]), total),
        )
        for topic, group in groups.items()
    ]
    return sorted(clusters, key=lambda c: c.count, reverse=True)[:MAX_CLUSTERS]


def score_stats(scores: list[float], with_distribution: bool = False) -> ScoreStats:
    """Mean to one decimal, min and max; zeros when there are no scores."""
    if not scores:
        return ScoreStats()
    stats = ScoreStats(
        avg=round_half_up(sum(scores) / len(scores), 1),
        min=min(scores),
        max=max(scores),
    )
    if with_distribution:
        counts = Counter(_distribution_range(s) for s in scores)
        stats.distribution = [RangeCount(range=r, count=counts[r]) for r in DISTRIBUTION_RANGES]
    return stats


def _distribution_range(score: float) -> str:
    if score >= 9:
        return "9-10"
    if score >= 7:
        return "7-8"
    if score >= 5:
        return "5-6"
    if score >= 3:
        return "3-4"
    return "1-2"


def _common_tags(analyses: list[dict], field: str) -> list[TagCount]:
    counts: Counter = Counter()
    for analysis in analyses:
        for side in ("openTags", "closeTags"):
            counts.update(_str_list(get_nested(analysis, f"analysis.tagValidation.{side}.{field}")))
    return [TagCount(tag=tag, count=count) for tag, count in counts.most_common(MAX_COMMON_TAGS)]


def tag_analysis(analyses: list[dict]) -> TagAnalysis:
    return TagAnalysis(
        open_tags_accuracy=score_stats(_scores(analyses, "analysis.tagValidation.openTags.score"), True),
        close_tags_accuracy=score_stats(_scores(analyses, "analysis.tagValidation.closeTags.score"), True),
        common_missing_tags=_common_tags(analyses, "missingTags"),
        common_incorrect_tags=_common_tags(analyses, "incorrectlyApplied"),
    )


def quality_metrics(analyses: list[dict]) -> dict[str, ScoreStats]:
    return {
        metric: score_stats(_scores(analyses, f"analysis.qualityAssessment.{metric}.score"))
        for metric in QUALITY_METRICS
    }


def rca_stats(analyses: list[dict]) -> RCAStats:
    performed = [a for a in analyses if get_nested(a, "analysis.rcaAssessment.rcaPerformed") is True]
    quality = _scores(analyses, "analysis.rcaAssessment.rcaQuality.score")
    return RCAStats(
        rca_performed_count=len(performed),
        rca_performed_percentage=percentage(len(performed), len(analyses)),
        avg_rca_quality=round_half_up(sum(quality) / len(quality), 1) if quality else 0,
        conclusive_rcas=sum(
            1 for a in analyses if get_nested(a, "analysis.rcaAssessment.rcaConclusive.verdict") is True
        ),
        actionable_rcas=sum(
            1 for a in analyses if get_nested(a, "analysis.rcaAssessment.rcaActionable.verdict") is True
        ),
    )


def _named_counts(counts: Counter, total: int) -> list[NamedCount]:
    return [
        NamedCount(name=name, count=count, percentage=percentage(count, total))
        for name, count in counts.most_common()
    ]


def resolution_stats(analyses: list[dict]) -> ResolutionStats:
    total = len(analyses)
    resolvers = Counter(
        str(get_nested(a, "analysis.resolutionAnalysis.resolvedBy.who") or "Unknown") for a in analyses
    )
    methods = Counter(
        str(get_nested(a, "analysis.resolutionAnalysis.resolutionMethod") or "Unknown") for a in analyses
    )
    self_resolved = sum(
        1 for a in analyses if get_nested(a, "analysis.resolutionAnalysis.wasSelfResolved.verdict") is True
    )
    return ResolutionStats(
        by_resolver=_named_counts(resolvers, total),
        by_method=_named_counts(methods, total),
        self_resolved_count=self_resolved,
        self_resolved_percentage=percentage(self_resolved, total),
    )


def case_row(analysis: dict) -> CaseRow:
    def value(path: str, default):
        return get_nested(analysis, f"analysis.{path}") or default

    def text(path: str, default: str = "Unknown") -> str:
        return _text(get_nested(analysis, f"analysis.{path}"), default)

    def strings(path: str) -> list[str]:
        return _str_list(get_nested(analysis, f"analysis.{path}"))

    return CaseRow(
        case_number=_case_number(analysis),
        brief=text("issueSummary.brief", "N/A"),
        issue_type=text("tags.issueType"),
        resolution_type=text("tags.resolutionType"),
        complexity=text("tags.technicalComplexity"),
        product_areas=strings("tags.productArea"),
        problem_categories=strings("tags.problemCategory"),
        overall_score=_number(get_nested(analysis, "analysis.qualityAssessment.overallHandling.score")) or 0,
        tag_score=_number(get_nested(analysis, "analysis.tagValidation.overallScore")) or 0,
        sentiment=text("sentimentAnalysis.customerSentiment.overall"),
        is_bug=value("issueClassification.isBug.verdict", False),
        is_config=value("issueClassification.isConfigurationIssue.verdict", False),
        keywords=strings("clusteringFeatures.keywords"),
        primary_topic=text("clusteringFeatures.primaryTopic"),
    )


def aggregate(analyses: Iterable[CaseAnalysis | dict]) -> Aggregation:
    """Recompute the full batch summary. Only generatedAt varies between calls on the same input."""
    records = [_as_dict(a) for a in analyses]
    metadata = AggregationMetadata(
        total_cases=len(records),
        generated_at=datetime.now(timezone.utc).isoformat(),
    )
    if not records:
        return Aggregation(metadata=metadata, quality_metrics=quality_metrics([]))

    return Aggregation(
        metadata=metadata,
        buckets=BucketGroups(
            by_issue_type=bucket_by_field(records, "analysis.tags.issueType"),
            by_resolution_type=bucket_by_field(records, "analysis.tags.resolutionType"),
            by_technical_complexity=bucket_by_field(records, "analysis.tags.technicalComplexity"),
            by_fault_attribution=bucket_by_field(records, "analysis.tags.faultAttribution"),
            by_product_area=bucket_by_list_field(records, "analysis.tags.productArea"),
            by_problem_category=bucket_by_list_field(records, "analysis.tags.problemCategory"),
            by_customer_sentiment=bucket_by_field(records, "analysis.sentimentAnalysis.customerSentiment.overall"),
            by_resolution_quality=bucket_by_score(records, "analysis.qualityAssessment.overallHandling.score"),
        ),
        classifications=Classifications(
            bugs=classify(records, "analysis.issueClassification.isBug.verdict"),
            configuration_issues=classify(records, "analysis.issueClassification.isConfigurationIssue.verdict"),
            customer_errors=classify(records, "analysis.issueClassification.isCustomerError.verdict"),
            non_nutanix_issues=classify(records, "analysis.issueClassification.isNonNutanixIssue.verdict"),
        ),
        tag_analysis=tag_analysis(records),
        clusters=compute_clusters(records),
        quality_metrics=quality_metrics(records),
        rca_stats=rca_stats(records),
        resolution_stats=resolution_stats(records),
        cases=[case_row(r) for r in records],
    )


def aggregate_analyses(analyses: Iterable[CaseAnalysis | dict]) -> Aggregation:
    return aggregate(analyses)
