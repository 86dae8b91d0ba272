"""Per-case analyzers: issue analysis, bucketization, tag and reference validation."""
import logging
from datetime import datetime, timezone
from typing import Protocol

from pydantic import BaseModel, ConfigDict

from .client import Completion
from .context import build_context
from .exceptions import AnalysisFailed, CaseReviewError, ConfigurationError, ResponseValidationError
from .formatting import extract_actions
from .models import (
    AnalyzerKind,
    BucketVerdict,
    Case,
    CaseAnalysis,
    ClosureTagResponse,
    ClosureTagVerdict,
    InputSummary,
    IssueAnalysisResponse,
    JiraIssue,
    KBArticle,
    RelevanceResponse,
    RelevanceVerdict,
)
from .parser import emit_warning, extract_json, parse_structured_response, validate_data
from .prompts import (
    BUCKETIZATION_SYSTEM_PROMPT,
    CLOSURE_TAG_SYSTEM_PROMPT,
    ISSUE_ANALYSIS_SYSTEM_PROMPT,
    JIRA_RELEVANCE_SYSTEM_PROMPT,
    KB_RELEVANCE_SYSTEM_PROMPT,
    RELEVANCE_CRITERIA,
    build_bucketization_prompt,
    build_closure_tag_prompt,
    build_issue_analysis_prompt,
    build_jira_relevance_batch_prompt,
    build_jira_relevance_prompt,
    build_kb_relevance_batch_prompt,
    build_kb_relevance_prompt,
    build_simplified_closure_tag_prompt,
)
from .tags import TagVocabulary, validate_case_tags


logger = logging.getLogger(__name__)

DEFAULT_RELEVANCE_THRESHOLD = 40


class LLMClient(Protocol):
    async def invoke(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        model: str | None = None,
        max_tokens: int | None = None,
        temperature: float | None = None,
    ) -> Completion: ...


class AnalyzerOptions(BaseModel):
    """Per-call LLM parameters. Unset values fall back to the analyzer defaults."""
    model_config = ConfigDict(frozen=True)

    model: str | None = None
    max_tokens: int | None = None
    temperature: float | None = None


class Analyzer:
    """Base class: calls the LLM and wraps upstream errors in AnalysisFailed."""

    name = "analyzer"
    defaults = AnalyzerOptions(max_tokens=1024, temperature=0.2)

    def __init__(self, client: LLMClient):
        self.client = client

    def _options(self, options: AnalyzerOptions | None, defaults: AnalyzerOptions | None = None) -> AnalyzerOptions:
        base = defaults or self.defaults
        if options is None:
            return base
        return base.model_copy(update={
            "model": options.model or base.model,
            "max_tokens": options.max_tokens or base.max_tokens,
            "temperature": base.temperature if options.temperature is None else options.temperature,
        })

    async def _complete(self, system_prompt: str, user_prompt: str, options: AnalyzerOptions) -> str:
        completion = await self.client.invoke(
            system_prompt,
            user_prompt,
            model=options.model,
            max_tokens=options.max_tokens,
            temperature=options.temperature,
        )
        return completion.text

    async def _guarded(self, case_number: str | None, coroutine):
        try:
            return await coroutine
        except (ConfigurationError, AnalysisFailed):
            raise
        except CaseReviewError as e:
            logger.error("%s failed for case %s: %s", self.name, case_number, e)
            raise AnalysisFailed(self.name, e) from e


class IssueAnalyzer(Analyzer):
    """Summary, tags, quality scores, sentiment and clustering features for one case."""

    name = "issue analysis"
    defaults = AnalyzerOptions(max_tokens=4096, temperature=0.3)

    def __init__(self, client: LLMClient, vocabulary: TagVocabulary | None = None):
        super().__init__(client)
        self.vocabulary = vocabulary or TagVocabulary()

    async def analyze(self, case: Case, options: AnalyzerOptions | None = None) -> CaseAnalysis:
        return await self._guarded(case.case_number, self._analyze(case, self._options(options)))

    async def _analyze(self, case: Case, options: AnalyzerOptions) -> CaseAnalysis:
        context = build_context(case, AnalyzerKind.ISSUE_ANALYSIS)
        actions = extract_actions(case)
        logger.info(
            "Case %s: %d keywords, %d tools, %d procedures extracted",
            context.case_number,
            len(actions["keywords"]),
            len(actions["toolsUsed"]),
            len(actions["proceduresFollowed"]),
        )
        lists = self.vocabulary.snapshot()
        prompt = build_issue_analysis_prompt(context, actions, list(lists.open_tags), list(lists.close_tags))
        text = await self._complete(ISSUE_ANALYSIS_SYSTEM_PROMPT, prompt, options)

        parsed = parse_structured_response(text, IssueAnalysisResponse, strict=False)
        tag_check = None
        if lists.open_tags or lists.close_tags:
            tag_check = validate_case_tags(case, self.vocabulary)

        return CaseAnalysis(
            case_number=context.case_number,
            analysis_timestamp=datetime.now(timezone.utc).isoformat(),
            analysis=parsed.value.model_dump(by_alias=True),
            extracted_actions=actions,
            input_summary=InputSummary(
                conversation_length=len(case.conversation),
                total_events=case.timeline.total_events,
                had_escalation=bool(case.escalation.is_escalated),
                avg_response_time=case.response_metrics.avg_response_time_hours,
            ),
            tag_check=tag_check,
            warnings=parsed.warnings,
        )


ENHANCEMENT_MARKERS = ("FEAT-", "RFE-")
RCA_FALLBACKS = ("RCA not conclusive", "RCA not done")


class Bucketizer(Analyzer):
    """Assigns exactly one of the twelve bucket categories."""

    name = "bucketization"
    defaults = AnalyzerOptions(max_tokens=1024, temperature=0.2)

    async def analyze(self, case: Case, options: AnalyzerOptions | None = None) -> BucketVerdict:
        return await self._guarded(case.case_number, self._analyze(case, self._options(options)))

    async def _analyze(self, case: Case, options: AnalyzerOptions) -> BucketVerdict:
        context = build_context(case, AnalyzerKind.BUCKETIZATION)
        text = await self._complete(BUCKETIZATION_SYSTEM_PROMPT, build_bucketization_prompt(context), options)
        verdict = parse_structured_response(text, BucketVerdict, strict=True).value

        collected: list[str] = []
        if context.jira_case and verdict.category not in ("Bug", "Improvement"):
            emit_warning(
                f"Case {context.case_number} links {context.jira_case} but was bucketed as {verdict.category}",
                collected,
            )
        if context.jira_case and verdict.category == "Bug" and context.jira_case.upper().startswith(ENHANCEMENT_MARKERS):
            emit_warning(
                f"Case {context.case_number} links enhancement {context.jira_case} but was bucketed as Bug",
                collected,
            )
        if not context.resolution_notes.strip() and verdict.category not in RCA_FALLBACKS:
            emit_warning(
                f"Case {context.case_number} has no resolution notes but was bucketed as {verdict.category}",
                collected,
            )
        return verdict.model_copy(update={"warnings": collected})


class ClosureTagValidator(Analyzer):
    """LLM judgement of whether the close tags describe the case."""

    name = "closure tag validation"
    defaults = AnalyzerOptions(max_tokens=2048, temperature=0.2)
    simplified_defaults = AnalyzerOptions(max_tokens=1536, temperature=0.2)

    def __init__(self, client: LLMClient, vocabulary: TagVocabulary):
        super().__init__(client)
        self.vocabulary = vocabulary

    async def validate(
        self, case: Case, *, simplified: bool = False, options: AnalyzerOptions | None = None
    ) -> ClosureTagVerdict:
        if not case.tags.close_tags:
            return ClosureTagVerdict(is_valid=True)
        defaults = self.simplified_defaults if simplified else self.defaults
        return await self._guarded(
            case.case_number, self._validate(case, simplified, self._options(options, defaults))
        )

    async def _validate(self, case: Case, simplified: bool, options: AnalyzerOptions) -> ClosureTagVerdict:
        context = build_context(case, AnalyzerKind.TAG_VALIDATION)
        valid_tags = self.vocabulary.close_tags
        if simplified:
            prompt = build_simplified_closure_tag_prompt(context, valid_tags)
        else:
            prompt = build_closure_tag_prompt(context, valid_tags)
        text = await self._complete(CLOSURE_TAG_SYSTEM_PROMPT, prompt, options)
        parsed = parse_structured_response(text, ClosureTagResponse, strict=False)
        response = parsed.value
        collected = list(parsed.warnings)

        assessments = []
        for assessment in response.closure_tags_validation:
            replacement = assessment.suggested_replacement
            if replacement and not self.vocabulary.is_close_tag(replacement):
                emit_warning(f"Suggested replacement {replacement!r} is not in the tag vocabulary", collected)
                assessment = assessment.model_copy(update={"suggested_replacement": None})
            assessments.append(assessment)

        missing = []
        for suggestion in response.missing_tags:
            if self.vocabulary.is_close_tag(suggestion.suggested_tag):
                missing.append(suggestion)
            else:
                emit_warning(
                    f"Suggested missing tag {suggestion.suggested_tag!r} is not in the tag vocabulary", collected
                )

        overall = response.overall_assessment
        return ClosureTagVerdict(
            is_valid=overall.tag_quality in ("good", "acceptable"),
            inaccurate_tags=[
                a for a in assessments if a.accuracy_level == "inaccurate" and a.confidence == "high"
            ],
            partially_accurate_tags=[
                a for a in assessments if a.accuracy_level == "partially_accurate" and a.confidence == "high"
            ],
            missing_tags=missing,
            overall_assessment=overall,
            warnings=collected,
        )


# Alternate key names the relevance prompts use for the same fields.
_CANDIDATE_KEYS = {"kbId": "candidateId", "jiraKey": "candidateId", "kbTitle": "title", "jiraSummary": "title"}
_LIST_KEYS = ("candidates", "relevantKBs", "kbScoresAndRecommendations", "jiraValidations")


def _normalize_candidate(item):
    if not isinstance(item, dict):
        return item
    return {_CANDIDATE_KEYS.get(key, key): value for key, value in item.items()}


def normalize_relevance(data: dict) -> dict:
    """Map single and batch relevance responses onto one shape."""
    for key in _LIST_KEYS:
        if isinstance(data.get(key), list):
            normalized = {k: v for k, v in data.items() if k not in _LIST_KEYS}
            normalized["candidates"] = [_normalize_candidate(item) for item in data[key]]
            return normalized
    return {"evaluatedCount": 1, "candidates": [_normalize_candidate(data)]}


class RelevanceValidator(Analyzer):
    """Scores KB articles or JIRA issues 0-100 against a case."""

    name = "relevance validation"
    defaults = AnalyzerOptions(max_tokens=1024, temperature=0.2)
    batch_defaults = AnalyzerOptions(max_tokens=2048, temperature=0.2)

    def __init__(self, client: LLMClient, source: str, threshold: float = DEFAULT_RELEVANCE_THRESHOLD):
        if source not in ("kb", "jira"):
            raise ValueError(f"Unknown relevance source: {source}")
        super().__init__(client)
        self.source = source
        self.threshold = threshold
        self.name = "KB relevance" if source == "kb" else "JIRA relevance"

    async def validate(
        self,
        case: Case,
        candidates: list[KBArticle] | list[JiraIssue],
        *,
        threshold: float | None = None,
        options: AnalyzerOptions | None = None,
    ) -> RelevanceVerdict:
        threshold = self.threshold if threshold is None else threshold
        if not candidates:
            noun = "KB articles" if self.source == "kb" else "JIRA issues"
            return RelevanceVerdict(
                is_valid=True, reason=f"No {noun} provided for evaluation.", threshold=threshold
            )
        defaults = self.defaults if len(candidates) == 1 else self.batch_defaults
        return await self._guarded(
            case.case_number,
            self._validate(case, candidates, threshold, self._options(options, defaults)),
        )

    def _prompt(self, case: Case, candidates) -> tuple[str, str]:
        if self.source == "kb":
            context = build_context(case, AnalyzerKind.KB_RELEVANCE)
            if len(candidates) == 1:
                return KB_RELEVANCE_SYSTEM_PROMPT, build_kb_relevance_prompt(context, candidates[0])
            return KB_RELEVANCE_SYSTEM_PROMPT, build_kb_relevance_batch_prompt(context, candidates)
        context = build_context(case, AnalyzerKind.JIRA_RELEVANCE)
        if len(candidates) == 1:
            return JIRA_RELEVANCE_SYSTEM_PROMPT, build_jira_relevance_prompt(context, candidates[0])
        return JIRA_RELEVANCE_SYSTEM_PROMPT, build_jira_relevance_batch_prompt(context, candidates)

    async def _validate(self, case: Case, candidates, threshold: float, options: AnalyzerOptions) -> RelevanceVerdict:
        system_prompt, user_prompt = self._prompt(case, candidates)
        text = await self._complete(system_prompt, user_prompt, options)

        data, _ = extract_json(text)
        response, collected = validate_data(normalize_relevance(data), RelevanceResponse, strict=False)
        if not response.candidates:
            raise ResponseValidationError("No candidate could be scored", collected, data)

        if len(response.candidates) != len(candidates):
            emit_warning(
                f"Expected {len(candidates)} scored candidates, got {len(response.candidates)}", collected
            )
        for scored in response.candidates:
            self._check_breakdown(scored, collected)

        ranked = sorted(response.candidates, key=lambda c: c.relevance_score, reverse=True)
        passing = [c for c in ranked if c.relevance_score >= threshold]
        return RelevanceVerdict(
            is_valid=bool(passing),
            reason=ranked[0].reasoning,
            threshold=threshold,
            candidates=ranked,
            summary=response.summary,
            warnings=collected,
        )

    @staticmethod
    def _check_breakdown(scored, collected: list[str]) -> None:
        breakdown = scored.score_breakdown
        if not breakdown:
            return
        label = scored.candidate_id or scored.title or "candidate"
        for criterion, points in breakdown.items():
            weight = RELEVANCE_CRITERIA.get(criterion)
            if weight is not None and points > weight:
                emit_warning(f"{label}: {criterion} scored {points} above its weight {weight}", collected)
        total = sum(breakdown.values())
        if abs(total - scored.relevance_score) > 1:
            emit_warning(
                f"{label}: breakdown sums to {total} but relevanceScore is {scored.relevance_score}", collected
            )


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------

async def analyze_case(
    case: Case,
    client: LLMClient,
    vocabulary: TagVocabulary | None = None,
    options: AnalyzerOptions | None = None,
) -> CaseAnalysis:
    return await IssueAnalyzer(client, vocabulary).analyze(case, options)


async def bucketise_case(case: Case, client: LLMClient, options: AnalyzerOptions | None = None) -> BucketVerdict:
    return await Bucketizer(client).analyze(case, options)


async def validate_closure_tags(
    case: Case,
    client: LLMClient,
    vocabulary: TagVocabulary,
    *,
    simplified: bool = False,
) -> ClosureTagVerdict:
    return await ClosureTagValidator(client, vocabulary).validate(case, simplified=simplified)


async def validate_kb_relevance(
    case: Case,
    articles: list[KBArticle],
    client: LLMClient,
    threshold: float = DEFAULT_RELEVANCE_THRESHOLD,
) -> RelevanceVerdict:
    return await RelevanceValidator(client, "kb", threshold).validate(case, articles)


async def validate_jira_relevance(
    case: Case,
    issues: list[JiraIssue],
    client: LLMClient,
    threshold: float = DEFAULT_RELEVANCE_THRESHOLD,
) -> RelevanceVerdict:
    return await RelevanceValidator(client, "jira", threshold).validate(case, issues)
