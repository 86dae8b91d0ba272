"""Data models for cases, analyzer contexts, LLM responses and batch outputs."""
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


Confidence = Literal["high", "medium", "low"]

BucketCategory = Literal[
    "Bug",
    "Improvement",
    "Non-Nutanix Error",
    "Customer Assistance",
    "Customer Questions",
    "Customer Mistake",
    "Customer-Experience Error",
    "Customer-Experience Environment",
    "Issue Self Resolved",
    "Customer Self Resolved",
    "RCA not conclusive",
    "RCA not done",
]

CATEGORY_IDS: dict[str, int] = {
    "Bug": 1,
    "Improvement": 2,
    "Non-Nutanix Error": 3,
    "Customer Assistance": 4,
    "Customer Questions": 5,
    "Customer Mistake": 6,
    "Customer-Experience Error": 7,
    "Customer-Experience Environment": 8,
    "Issue Self Resolved": 9,
    "Customer Self Resolved": 10,
    "RCA not conclusive": 11,
    "RCA not done": 12,
}
CATEGORY_NAMES: dict[int, str] = {category_id: name for name, category_id in CATEGORY_IDS.items()}


def short_case_number(case_number: str) -> str:
    """Case number with leading zeros stripped ('00475706' -> '475706')."""
    return str(case_number).strip().lstrip("0") or "0"


def _unwrap_date(value: Any) -> Any:
    # Document-store exports wrap timestamps as {"$date": "..."}
    if isinstance(value, dict) and "$date" in value:
        value = value["$date"]
    if hasattr(value, "isoformat"):
        return value.isoformat()
    return value


def _lower(value: Any) -> Any:
    return value.strip().lower() if isinstance(value, str) else value


class CamelModel(BaseModel):
    """Base model serialized with camelCase keys."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Case records (read-only once fetched)
# ---------------------------------------------------------------------------

class CaseRecord(CamelModel):
    model_config = ConfigDict(frozen=True)


class CaseInfo(CaseRecord):
    case_number: str | None = None
    case_id: str | None = None
    subject: str | None = None
    description: str | None = None
    status: str | None = None
    priority: str | None = None
    case_type: str | None = Field(None, alias="type")
    origin: str | None = None
    is_closed: bool | None = None
    created_date: str | None = None
    closed_date: str | None = None
    case_age_days: float | None = None
    complexity: str | None = None
    product: str | None = None
    nos_version: str | None = None
    serial_number: str | None = None
    cluster_id: str | None = None
    skill: str | None = None
    support_level: str | None = None
    jira_case: str | None = None
    kb_article: str | None = None

    @field_validator("created_date", "closed_date", mode="before")
    @classmethod
    def _dates(cls, value):
        return _unwrap_date(value)

    @field_validator("case_number", "jira_case", "kb_article", "nos_version", mode="before")
    @classmethod
    def _as_text(cls, value):
        if value is None or isinstance(value, str):
            return value
        return str(value)


class Customer(CaseRecord):
    account_name: str | None = None
    contact_name: str | None = None
    contact_email: str | None = None
    account_id: str | None = None
    contact_id: str | None = None


class Ownership(CaseRecord):
    current_owner: str | None = None
    owner_id: str | None = None
    thread_id: str | None = None


def parse_tags(value: Any) -> list[str]:
    """Split a comma-separated tag string; lists pass through trimmed."""
    if not value:
        return []
    if isinstance(value, str):
        value = value.split(",")
    return [str(tag).strip() for tag in value if tag and str(tag).strip()]


class CaseTags(CaseRecord):
    open_tags: list[str] = []
    close_tags: list[str] = []

    @field_validator("open_tags", "close_tags", mode="before")
    @classmethod
    def _split(cls, value):
        return parse_tags(value)


class Resolution(CaseRecord):
    resolution_notes: str | None = None
    first_response_provided: Any = None
    relief_provided: Any = None


class Escalation(CaseRecord):
    is_escalated: bool | None = None
    escalated_date: str | None = None
    escalation_status: str | None = None
    escalation_temperature: str | None = None
    portal_escalation_reason: str | None = None
    portal_escalation_comments: str | None = None
    escalation_issue_summary: str | None = None
    escalation_information: str | None = None

    @field_validator("escalated_date", mode="before")
    @classmethod
    def _dates(cls, value):
        return _unwrap_date(value)


class ResponseDetail(CaseRecord):
    customer_message_at: str
    support_response_at: str
    response_time_hours: float
    customer_message_type: str | None = None
    support_response_type: str | None = None


class ResponseMetrics(CaseRecord):
    avg_response_time_hours: float | None = None
    median_response_time_hours: float | None = None
    min_response_time_hours: float | None = None
    max_response_time_hours: float | None = None
    total_customer_messages: int = 0
    total_support_responses: int = 0
    total_responses_counted: int = 0
    response_times_hours: list[float] = []
    response_details: list[ResponseDetail] = []


class ConversationEntry(CaseRecord):
    sequence: int | None = None
    entry_type: str | None = Field(None, alias="type")
    id: str | None = None
    timestamp: str | None = None
    subject: str | None = None
    author: str | None = None
    sender: dict[str, Any] | None = Field(None, alias="from")
    to: str | None = None
    cc: str | None = None
    content: str | None = None
    content_preview: str | None = None
    has_attachment: bool | None = None
    is_public: bool | None = None
    direction: str | None = None
    is_customer: bool = False
    time_since_previous_hours: float | None = None

    @field_validator("timestamp", mode="before")
    @classmethod
    def _dates(cls, value):
        return _unwrap_date(value)

    @property
    def author_name(self) -> str | None:
        if self.author:
            return self.author
        return (self.sender or {}).get("name")


class TimelineEvent(CaseRecord):
    id: str | None = None
    name: str | None = None
    event_type: str | None = Field(None, alias="type")
    category: str = "other"
    timestamp: str | None = None
    status: str | None = None
    priority: str | None = None
    escalated: Any = None
    escalation_status: str | None = None
    owner: str | None = None
    details: str | None = None

    @field_validator("timestamp", mode="before")
    @classmethod
    def _dates(cls, value):
        return _unwrap_date(value)


class Timeline(CaseRecord):
    events: list[TimelineEvent] = []
    categorized: dict[str, list[dict[str, Any]]] = {}
    total_events: int = 0


class Case(CaseRecord):
    """A support case as fetched from the source of record."""
    case_info: CaseInfo = CaseInfo()
    customer: Customer = Customer()
    ownership: Ownership = Ownership()
    tags: CaseTags = CaseTags()
    resolution: Resolution = Resolution()
    escalation: Escalation = Escalation()
    response_metrics: ResponseMetrics = ResponseMetrics()
    timeline: Timeline = Timeline()
    conversation: list[ConversationEntry] = []

    @property
    def case_number(self) -> str | None:
        return self.case_info.case_number


# ---------------------------------------------------------------------------
# Analyzer contexts
# ---------------------------------------------------------------------------

class AnalyzerKind(str, Enum):
    ISSUE_ANALYSIS = "issue_analysis"
    BUCKETIZATION = "bucketization"
    TAG_VALIDATION = "tag_validation"
    KB_RELEVANCE = "kb_relevance"
    JIRA_RELEVANCE = "jira_relevance"


class CaseContext(CamelModel):
    """Bounded, analyzer-specific view of a case. Never persisted."""
    kind: AnalyzerKind
    case_number: str
    subject: str
    description: str = ""
    resolution_notes: str = ""
    actions_taken: str = ""
    case_type: str | None = None
    priority: str | None = None
    product: str | None = None
    skill: str | None = None
    nos_version: str | None = None
    jira_case: str | None = None
    kb_article: str | None = None
    tags: list[str] = []
    open_tags: list[str] = []
    close_tags: list[str] = []
    conversation: list[dict[str, Any]] = []
    details: dict[str, Any] = {}
    truncated: list[str] = []


# ---------------------------------------------------------------------------
# Reference candidates
# ---------------------------------------------------------------------------

class KBArticle(CamelModel):
    article_number: str | None = None
    id: str | None = None
    title: str = ""
    summary: str | None = None
    solution: str | None = None
    description: str | None = None
    url: str | None = None

    @field_validator("article_number", "id", mode="before")
    @classmethod
    def _as_text(cls, value):
        if value is None or isinstance(value, str):
            return value
        return str(value)

    @property
    def identifier(self) -> str:
        return self.article_number or self.id or "N/A"


class JiraIssue(CamelModel):
    key: str
    summary: str = ""
    issue_type: str | None = None
    status: str | None = None
    resolution: str | None = None
    priority: str | None = None
    labels: list[str] = []
    components: list[str] = []
    affected_versions: list[str] = []
    fix_versions: list[str] = []
    description: str | None = None
    release_notes: str | None = None


# ---------------------------------------------------------------------------
# LLM response schemas
# ---------------------------------------------------------------------------

class BucketVerdict(CamelModel):
    """Bucketization output. Validated strictly."""
    category: BucketCategory
    category_id: int = Field(ge=1, le=12)
    confidence: Confidence
    reasoning: str
    key_evidence: list[str]
    alternative_category: str | None = None
    alternative_reasoning: str | None = None
    warnings: list[str] = []

    @field_validator("confidence", mode="before")
    @classmethod
    def _confidence(cls, value):
        return _lower(value)

    @model_validator(mode="after")
    def _consistent(self) -> "BucketVerdict":
        expected = CATEGORY_IDS[self.category]
        if self.category_id != expected:
            raise ValueError(
                f'Category/ID mismatch: "{self.category}" should have categoryId '
                f'{expected}, got {self.category_id} ("{CATEGORY_NAMES[self.category_id]}")'
            )
        if self.confidence == "high" and not self.key_evidence:
            raise ValueError("High confidence requires at least one piece of evidence")
        return self

    @property
    def evidence(self) -> list[str]:
        return self.key_evidence


class LenientModel(CamelModel):
    """Response schema that keeps undeclared keys."""
    model_config = ConfigDict(extra="allow")


class ScoredReasoning(LenientModel):
    score: float | None = Field(None, ge=1, le=10)
    reasoning: str | None = None


class QualityAssessment(LenientModel):
    resolution_quality: ScoredReasoning | None = None
    response_timeliness: ScoredReasoning | None = None
    communication_quality: ScoredReasoning | None = None
    technical_accuracy: ScoredReasoning | None = None
    overall_handling: ScoredReasoning | None = None


class IssueSummary(LenientModel):
    brief: str | None = None
    detailed: str | None = None
    root_cause: str | None = None
    technical_area: str | None = None


class AnalysisTags(LenientModel):
    problem_category: list[str] = []
    product_area: list[str] = []
    technical_complexity: Literal["Low", "Medium", "High", "Critical"] | None = None
    issue_type: str | None = None
    resolution_type: str | None = None
    fault_attribution: str | None = None


class CustomerSentiment(LenientModel):
    overall: Literal["Positive", "Neutral", "Negative", "Mixed"] | None = None
    trajectory: Literal["Improving", "Stable", "Declining"] | None = None
    frustration_level: Literal["None", "Low", "Medium", "High"] | None = None
    satisfaction_indicators: list[str] = []


class SupportSentiment(LenientModel):
    tone: Literal["Professional", "Friendly", "Formal", "Rushed"] | None = None
    empathy: Literal["High", "Medium", "Low"] | None = None
    proactiveness: Literal["High", "Medium", "Low"] | None = None


class SentimentAnalysis(LenientModel):
    customer_sentiment: CustomerSentiment | None = None
    support_sentiment: SupportSentiment | None = None


class ClusteringFeatures(LenientModel):
    primary_topic: str | None = None
    secondary_topics: list[str] = []
    keywords: list[str] = []
    similar_case_indicators: list[str] = []
    complexity_factors: list[str] = []


class ActionableInsights(LenientModel):
    knowledge_base_gaps: list[str] = []
    process_improvements: list[str] = []
    training_opportunities: list[str] = []
    automation_opportunities: list[str] = []
    prevention_recommendations: list[str] = []


class AnalysisMetadata(LenientModel):
    confidence_score: float | None = Field(None, ge=0.0, le=1.0)
    analysis_limitations: list[str] = []
    data_quality_issues: list[str] = []
    requires_human_review: bool | None = None
    review_reasons: list[str] = []


class IssueAnalysisResponse(LenientModel):
    """Issue/quality analysis output. Sections beyond these are kept as-is."""
    issue_summary: IssueSummary
    tags: AnalysisTags = AnalysisTags()
    quality_assessment: QualityAssessment = QualityAssessment()
    sentiment_analysis: SentimentAnalysis = SentimentAnalysis()
    clustering_features: ClusteringFeatures = ClusteringFeatures()
    actionable_insights: ActionableInsights = ActionableInsights()
    metadata: AnalysisMetadata = AnalysisMetadata()


class ClosureTagAssessment(LenientModel):
    tag: str
    is_accurate: bool | None = None
    accuracy_level: Literal["accurate", "partially_accurate", "inaccurate"] | None = None
    confidence: Confidence | None = None
    reasoning: str | None = None
    supporting_evidence: str | None = None
    suggested_replacement: str | None = None

    @field_validator("confidence", "accuracy_level", mode="before")
    @classmethod
    def _normalize(cls, value):
        return _lower(value)


class MissingTagSuggestion(LenientModel):
    suggested_tag: str
    reason: str | None = None
    confidence: Confidence | None = None
    evidence: str | None = None

    @field_validator("confidence", mode="before")
    @classmethod
    def _confidence(cls, value):
        return _lower(value)


class OverallTagAssessment(LenientModel):
    accuracy_score: float | None = Field(None, ge=0, le=100)
    tag_quality: Literal["good", "acceptable", "poor"] | None = None
    accurate_tags: int | None = None
    inaccurate_tags: int | None = None
    summary: str | None = None
    recommendations: list[str] = []

    @field_validator("tag_quality", mode="before")
    @classmethod
    def _quality(cls, value):
        return _lower(value)


class ClosureTagResponse(LenientModel):
    closure_tags_validation: list[ClosureTagAssessment] = []
    missing_tags: list[MissingTagSuggestion] = []
    overall_assessment: OverallTagAssessment = OverallTagAssessment()


class CandidateScore(LenientModel):
    """One KB article or JIRA issue scored against a case."""
    candidate_id: str | None = None
    title: str | None = None
    relevance_score: float = Field(ge=0, le=100)
    is_relevant: bool | None = None
    confidence: Confidence | None = None
    reasoning: str = ""
    matched_aspects: list[str] = []
    mismatched_aspects: list[str] = []
    recommendation_type: str | None = None
    score_breakdown: dict[str, float] | None = None

    @field_validator("confidence", mode="before")
    @classmethod
    def _confidence(cls, value):
        return _lower(value)

    @field_validator("candidate_id", mode="before")
    @classmethod
    def _identifier(cls, value):
        if value is None or isinstance(value, str):
            return value
        return str(value)


class RelevanceResponse(LenientModel):
    evaluated_count: int | None = None
    candidates: list[CandidateScore] = []
    summary: str | None = None


# ---------------------------------------------------------------------------
# Analyzer results
# ---------------------------------------------------------------------------

class InputSummary(CamelModel):
    conversation_length: int = 0
    total_events: int = 0
    had_escalation: bool = False
    avg_response_time: float | None = None


class CaseAnalysis(CamelModel):
    """Persisted issue/quality analysis for one case."""
    case_number: str
    analysis_timestamp: str
    analysis: dict[str, Any]
    extracted_actions: dict[str, Any] = {}
    input_summary: InputSummary = InputSummary()
    tag_check: "TagValidationResult | None" = None
    warnings: list[str] = []


class TagMatch(CamelModel):
    tag: str
    match_type: Literal["exact", "partial", "word-overlap", "none"]
    match_score: float
    suggested_tag: str | None = None


class MatchedTag(CamelModel):
    provided: str
    matched: str
    score: float | None = None


class TagSuggestion(CamelModel):
    current: str
    suggested: str


class TagSetValidation(CamelModel):
    provided: list[str] = []
    valid: list[str] = []
    invalid: list[str] = []
    suggestions: list[TagSuggestion] = []
    matched_tags: list[MatchedTag] = []
    unmatched_tags: list[str] = []
    score: float = 0.0
    coverage: float = 0.0
    details: list[TagMatch] = []
    total_valid_tags: int = 0


class TagValidationSummary(CamelModel):
    total_tags_provided: int = 0
    total_valid: int = 0
    total_invalid: int = 0
    overall_score: float = 0.0
    overall_coverage: float = 0.0


class TagValidationResult(CamelModel):
    open_tags: TagSetValidation
    close_tags: TagSetValidation
    summary: TagValidationSummary
    validation_timestamp: str


class ClosureTagVerdict(CamelModel):
    is_valid: bool
    inaccurate_tags: list[ClosureTagAssessment] = []
    partially_accurate_tags: list[ClosureTagAssessment] = []
    missing_tags: list[MissingTagSuggestion] = []
    overall_assessment: OverallTagAssessment | None = None
    warnings: list[str] = []


class RelevanceVerdict(CamelModel):
    is_valid: bool
    reason: str | None = None
    threshold: float = 40
    candidates: list[CandidateScore] = []
    summary: str | None = None
    warnings: list[str] = []


# ---------------------------------------------------------------------------
# Batch runs
# ---------------------------------------------------------------------------

class BatchEntry(CamelModel):
    case_number: str
    result: Any = None


class FailedCase(CamelModel):
    case_number: str
    error: str


class BatchRun(CamelModel):
    """Tri-partition of one batch over a list of case numbers."""
    succeeded: list[BatchEntry] = []
    failed: list[FailedCase] = []
    skipped: list[BatchEntry] = []
    concurrency_limit: int
    duration_seconds: float = 0.0

    @property
    def total(self) -> int:
        return len(self.succeeded) + len(self.failed) + len(self.skipped)


# ---------------------------------------------------------------------------
# Aggregation
# ---------------------------------------------------------------------------

class Bucket(CamelModel):
    name: str
    count: int
    percentage: int
    cases: list[str] = []


class BucketGroups(CamelModel):
    by_issue_type: list[Bucket] = []
    by_resolution_type: list[Bucket] = []
    by_technical_complexity: list[Bucket] = []
    by_fault_attribution: list[Bucket] = []
    by_product_area: list[Bucket] = []
    by_problem_category: list[Bucket] = []
    by_customer_sentiment: list[Bucket] = []
    by_resolution_quality: list[Bucket] = []


class ClassifiedCase(CamelModel):
    case_number: str
    brief: str = "N/A"


class Classification(CamelModel):
    count: int = 0
    percentage: int = 0
    cases: list[ClassifiedCase] = []


class Classifications(CamelModel):
    bugs: Classification = Classification()
    configuration_issues: Classification = Classification()
    customer_errors: Classification = Classification()
    non_nutanix_issues: Classification = Classification()


class RangeCount(CamelModel):
    range: str
    count: int


class ScoreStats(CamelModel):
    avg: float = 0
    min: float = 0
    max: float = 0
    distribution: list[RangeCount] = []


class TagCount(CamelModel):
    tag: str
    count: int


class TagAnalysis(CamelModel):
    open_tags_accuracy: ScoreStats = ScoreStats()
    close_tags_accuracy: ScoreStats = ScoreStats()
    common_missing_tags: list[TagCount] = []
    common_incorrect_tags: list[TagCount] = []


class ClusterMember(CamelModel):
    case_number: str
    brief: str | None = None
    similarity: float = 1.0


class Cluster(CamelModel):
    id: str
    name: str
    count: int
    percentage: int
    keywords: list[str] = []
    product_areas: list[str] = []
    cases: list[ClusterMember] = []
    color: str


class RCAStats(CamelModel):
    rca_performed_count: int = 0
    rca_performed_percentage: int = 0
    avg_rca_quality: float = 0
    conclusive_rcas: int = 0
    actionable_rcas: int = 0


class NamedCount(CamelModel):
    name: str
    count: int
    percentage: int


class ResolutionStats(CamelModel):
    by_resolver: list[NamedCount] = []
    by_method: list[NamedCount] = []
    self_resolved_count: int = 0
    self_resolved_percentage: int = 0


class CaseRow(CamelModel):
    case_number: str
    brief: str = "N/A"
    issue_type: str = "Unknown"
    resolution_type: str = "Unknown"
    complexity: str = "Unknown"
    product_areas: list[str] = []
    problem_categories: list[str] = []
    overall_score: float = 0
    tag_score: float = 0
    sentiment: str = "Unknown"
    is_bug: Any = False
    is_config: Any = False
    keywords: list[str] = []
    primary_topic: str = "Unknown"


class AggregationMetadata(CamelModel):
    total_cases: int = 0
    generated_at: str
    analysis_version: str = "1.0"


class Aggregation(CamelModel):
    """Batch-level summary recomputed from a list of case analyses."""
    metadata: AggregationMetadata
    buckets: BucketGroups = BucketGroups()
    classifications: Classifications = Classifications()
    tag_analysis: TagAnalysis = TagAnalysis()
    clusters: list[Cluster] = []
    quality_metrics: dict[str, ScoreStats] = {}
    rca_stats: RCAStats = RCAStats()
    resolution_stats: ResolutionStats = ResolutionStats()
    cases: list[CaseRow] = []


CaseAnalysis.model_rebuild()


# ---------------------------------------------------------------------------
# Case review
# ---------------------------------------------------------------------------

class ReferenceCheck(CamelModel):
    """Outcome of checking a case's linked JIRA issues or KB articles."""
    reference: str | None = None
    details: list[dict[str, Any]] = []
    valid: bool
    present: bool
    missing: bool = False
    reason: str | None = None


class CaseReview(CamelModel):
    case_number: str
    bucket: str | None = None
    is_closed_tag_valid: bool | None = None
    close_tags: list[str] = []
    jira: ReferenceCheck | None = None
    kb: ReferenceCheck | None = None
    identifiers: list[str] = []
    tag_validation: ClosureTagVerdict | None = None
    error: str | None = None
    case_info: CaseInfo | None = None


class NameCount(CamelModel):
    name: str
    count: int


# ---------------------------------------------------------------------------
# Action summary
# ---------------------------------------------------------------------------

Priority = Literal["high", "medium", "low"]


class ActionCase(CamelModel):
    """A reviewed case listed under an action."""
    case_number: str
    subject: str | None = None
    bucket: str | None = None
    product: str | None = None
    skill: str | None = None
    priority: str | None = None
    description: str | None = None
    current_tag: str | None = None
    suggested_tag: str | None = None
    linked_kb: str | None = None
    reason: str | None = None


class ActionSection(CamelModel):
    category: str
    title: str
    count: int = 0
    priority: Priority = "low"
    action_required: str


class WrongClosedTags(ActionSection):
    cases: list[ActionCase] = []


class JiraImpact(CamelModel):
    """One JIRA issue and the reviewed cases linked to it."""
    key: str
    summary: str | None = None
    status: str | None = None
    issue_type: str | None = None
    resolution: str | None = None
    components: list[str] = []
    labels: list[str] = []
    fix_versions: list[str] = []
    case_numbers: list[str] = []
    case_count: int = 0
    customer_versions: list[str] = []
    impact_level: str | None = None
    recommendation: str | None = None


class JiraActions(ActionSection):
    total_cases_affected: int = 0
    jiras: list[JiraImpact] = []


class KBIssueCounts(CamelModel):
    kb_missing: int = 0
    kb_not_valid: int = 0
    kb_not_linked: int = 0
    total: int = 0


class KBCaseGroup(CamelModel):
    title: str
    count: int = 0
    cases: list[ActionCase] = []


class KBSections(CamelModel):
    kb_should_exist: KBCaseGroup
    kb_not_relevant: KBCaseGroup
    kb_not_linked: KBCaseGroup


class MissingKB(ActionSection):
    summary: KBIssueCounts
    sections: KBSections


class KBRecommendation(CamelModel):
    product: str
    skill: str
    bucket: str
    cases: list[ActionCase] = []
    case_count: int = 0
    suggested_kb_title: str
    impact_score: int = 0
    priority: Priority = "low"


class KBRecommendations(ActionSection):
    total_cases_addressed: int = 0
    recommendations: list[KBRecommendation] = []


class JiraCreationCounts(CamelModel):
    total_bugs: int = 0
    total_improvements: int = 0
    total: int = 0


class ProductJiraGap(CamelModel):
    product: str
    bugs: list[ActionCase] = []
    improvements: list[ActionCase] = []
    total_count: int = 0


class JiraCreationNeeded(ActionSection):
    summary: JiraCreationCounts
    by_product: list[ProductJiraGap] = []


class PriorityAction(CamelModel):
    priority: Priority
    category: str
    action: str
    cases: int


class ActionSummary(CamelModel):
    """Follow-up work derived from a set of case reviews."""
    wrong_closed_tags: WrongClosedTags
    open_jiras_prioritization: JiraActions
    fixed_jiras_customer_update: JiraActions
    missing_kb: MissingKB
    kb_creation_recommendations: KBRecommendations
    jira_creation_needed: JiraCreationNeeded
    top_priority_actions: list[PriorityAction] = []


class ReviewSummary(CamelModel):
    success: int = 0
    failed: int = 0
    skipped: int = 0
    buckets: list[NameCount] = []
    closed_tags: list[NameCount] = []
    action_summary: ActionSummary | dict | None = None


class ReviewReport(CamelModel):
    cases: list[CaseReview] = []
    summary: ReviewSummary = ReviewSummary()
