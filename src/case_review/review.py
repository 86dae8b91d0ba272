"""Closure-tag, bucket and reference review of closed cases."""
import asyncio
import json
import logging
from collections import Counter
from pathlib import Path
from typing import Any, Awaitable, Callable, Protocol

from .actions import generate_action_summary
from .analyzers import Bucketizer, ClosureTagValidator, LLMClient, RelevanceValidator
from .exceptions import ConfigurationError
from .formatting import clean_html
from .models import (
    Case,
    CaseReview,
    JiraIssue,
    KBArticle,
    NameCount,
    ReferenceCheck,
    ReviewReport,
    ReviewSummary,
)
from .tags import TagVocabulary


logger = logging.getLogger(__name__)

WRONG_CLOSURE_TAG = "Wrong Closure Tag"
JIRA_EXPECTED = ("Bug", "Improvement")
KB_EXPECTED = ("Customer Assistance", "Customer Questions")


class ReferenceSource(Protocol):
    async def fetch_jira(self, keys: str) -> list[JiraIssue]: ...

    async def fetch_kb(self, article_numbers: str) -> list[KBArticle]: ...


def split_references(value: str | None) -> list[str]:
    return [part.strip() for part in (value or "").split(",") if part.strip()]


def _names(items: Any) -> list[str]:
    return [item.get("name") for item in items or [] if isinstance(item, dict) and item.get("name")]


def _name(value: Any) -> str | None:
    return value.get("name") if isinstance(value, dict) else value


def transform_jira_details(issue: dict) -> JiraIssue:
    """Flatten a defect-tracker search result (key + fields) into a JiraIssue.

    Already-flat records pass through.
    """
    fields = issue.get("fields")
    if fields is None:
        return JiraIssue.model_validate(issue)
    description = fields.get("description")
    return JiraIssue(
        key=issue.get("key"),
        summary=fields.get("summary") or "",
        issue_type=_name(fields.get("issuetype")),
        status=_name(fields.get("status")),
        resolution=_name(fields.get("resolution")),
        priority=_name(fields.get("priority")),
        labels=fields.get("labels") or [],
        components=_names(fields.get("components")),
        affected_versions=_names(fields.get("versions")),
        fix_versions=_names(fields.get("fixVersions")),
        release_notes=fields.get("customfield_11165"),
        description=clean_html(description) if isinstance(description, str) else None,
    )


def kb_article(record: dict) -> KBArticle:
    """KB row with solution and description cleaned of HTML."""
    article = KBArticle.model_validate(record)
    return article.model_copy(update={
        "solution": clean_html(article.solution) if article.solution else article.solution,
        "description": clean_html(article.description) if article.description else article.description,
    })


class JsonReferenceSource:
    """JIRA issues and KB articles read from a JSON file.

    Layout: {"jira": [<issue>, ...], "kb": [<article>, ...]}; issues may be
    raw search results with a "fields" object or flat records.
    """

    def __init__(self, path: Path | None = None, data: dict | None = None):
        if data is None:
            data = json.loads(Path(path).read_text(encoding="utf-8")) if path else {}
        self.jira = {}
        for raw in data.get("jira", []):
            issue = transform_jira_details(raw)
            self.jira[issue.key.upper()] = issue
        self.kb = {}
        for raw in data.get("kb", []):
            article = kb_article(raw)
            self.kb[article.identifier] = article

    async def fetch_jira(self, keys: str) -> list[JiraIssue]:
        return [self.jira[key.upper()] for key in split_references(keys) if key.upper() in self.jira]

    async def fetch_kb(self, article_numbers: str) -> list[KBArticle]:
        return [self.kb[number] for number in split_references(article_numbers) if number in self.kb]


async def _fetch_or_empty(fetch: Callable[[str], Awaitable[list]], value: str | None, label: str) -> list:
    if not value:
        return []
    try:
        return await fetch(value)
    except Exception as e:
        logger.error("Error getting %s for %s: %s", label, value, e)
        return []


def generate_identifiers(review: CaseReview) -> list[str]:
    identifiers = []
    if review.jira and review.jira.present:
        identifiers.append("has_jira")
    if review.kb and review.kb.present:
        identifiers.append("has_kb")
    if review.jira and review.jira.missing:
        identifiers.append("jira_missing")
    if review.kb and review.kb.missing:
        identifiers.append("kb_missing")
    if review.kb and not review.kb.valid:
        identifiers.append("kb_not_valid")
    if review.is_closed_tag_valid is False:
        identifiers.append("wrong_closed_tag")
    if review.jira and not review.jira.valid:
        identifiers.append("jira_not_valid")
    return identifiers


def _counts(values: list[str]) -> list[NameCount]:
    return [NameCount(name=name, count=count) for name, count in Counter(values).items()]


class CaseReviewer:
    """Runs the per-case review: closure tags, then bucket and reference relevance."""

    def __init__(
        self,
        client: LLMClient,
        vocabulary: TagVocabulary,
        references: ReferenceSource,
        action_summary: Callable[[list[CaseReview]], Any] | None = generate_action_summary,
    ):
        self.closure = ClosureTagValidator(client, vocabulary)
        self.bucketizer = Bucketizer(client)
        self.kb_validator = RelevanceValidator(client, "kb")
        self.jira_validator = RelevanceValidator(client, "jira")
        self.references = references
        self.action_summary = action_summary

    async def review_case(self, case: Case) -> CaseReview:
        info = case.case_info
        close_tags = list(case.tags.close_tags)
        tag_verdict = await self.closure.validate(case, simplified=True)
        if not tag_verdict.is_valid:
            review = CaseReview(
                case_number=info.case_number,
                bucket=WRONG_CLOSURE_TAG,
                is_closed_tag_valid=False,
                close_tags=close_tags,
                tag_validation=tag_verdict,
                case_info=info,
            )
            review.identifiers = generate_identifiers(review)
            return review

        jira_issues, kb_articles = await asyncio.gather(
            _fetch_or_empty(self.references.fetch_jira, info.jira_case, "JIRA details"),
            _fetch_or_empty(self.references.fetch_kb, info.kb_article, "KB articles"),
        )
        bucket, kb_verdict, jira_verdict = await asyncio.gather(
            self.bucketizer.analyze(case),
            self.kb_validator.validate(case, kb_articles),
            self.jira_validator.validate(case, jira_issues),
        )
        logger.info(
            "Case %s: bucket %s, JIRA valid %s, KB valid %s",
            info.case_number, bucket.category, jira_verdict.is_valid, kb_verdict.is_valid,
        )

        jira_missing = bucket.category in JIRA_EXPECTED and not jira_issues
        if bucket.category == "Bug":
            # a linked JIRA on a bug should come with a known-issue KB
            kb_missing = bool(info.jira_case)
        else:
            kb_missing = bucket.category in KB_EXPECTED and not kb_articles

        review = CaseReview(
            case_number=info.case_number,
            bucket=bucket.category,
            is_closed_tag_valid=True,
            close_tags=close_tags,
            jira=ReferenceCheck(
                reference=info.jira_case,
                details=[
                    issue.model_dump(
                        by_alias=True,
                        include={"key", "summary", "issue_type", "status", "resolution", "labels",
                                 "components", "affected_versions", "fix_versions"},
                    )
                    for issue in jira_issues
                ],
                valid=jira_verdict.is_valid,
                present=bool(info.jira_case),
                missing=jira_missing,
                reason=jira_verdict.reason,
            ),
            kb=ReferenceCheck(
                reference=info.kb_article,
                details=[
                    {"articleNumber": kb.article_number, "title": kb.title, "summary": kb.summary}
                    for kb in kb_articles
                ],
                valid=kb_verdict.is_valid,
                present=bool(info.kb_article),
                missing=kb_missing,
                reason=kb_verdict.reason,
            ),
            tag_validation=tag_verdict,
            case_info=info,
        )
        review.identifiers = generate_identifiers(review)
        return review

    async def review_cases(
        self,
        case_numbers: list[str],
        fetch_case: Callable[[str], Awaitable[Case]],
    ) -> ReviewReport:
        """Review cases one at a time; a failing case is counted and the run continues."""
        report = ReviewReport()
        success = failed = skipped = 0
        for index, case_number in enumerate(case_numbers, 1):
            try:
                case = await fetch_case(case_number)
                review = await self.review_case(case)
            except ConfigurationError:
                raise
            except Exception as e:
                logger.error("Error reviewing case %s: %s", case_number, e)
                report.cases.append(CaseReview(case_number=case_number, error=str(e)))
                failed += 1
                continue
            report.cases.append(review)
            if review.is_closed_tag_valid:
                success += 1
            else:
                skipped += 1
            logger.info("Progress %d of %d", index, len(case_numbers))

        report.summary = ReviewSummary(
            success=success,
            failed=failed,
            skipped=skipped,
            buckets=_counts([r.bucket for r in report.cases if r.bucket]),
            closed_tags=_counts([tag for r in report.cases for tag in r.close_tags]),
            action_summary=self.action_summary(report.cases) if self.action_summary else None,
        )
        return report
