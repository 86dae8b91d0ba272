"""Follow-up actions derived from a set of case reviews."""
from .models import (
    ActionCase,
    ActionSummary,
    CaseReview,
    JiraActions,
    JiraCreationCounts,
    JiraCreationNeeded,
    JiraImpact,
    KBCaseGroup,
    KBIssueCounts,
    KBRecommendation,
    KBRecommendations,
    KBSections,
    MissingKB,
    PriorityAction,
    ProductJiraGap,
    WrongClosedTags,
)


OPEN_JIRA_EXCLUDED = ("closed", "resolved", "done", "fixed")
FIXED_STATUSES = ("closed", "resolved", "done")
FIXED_RESOLUTIONS = ("fixed", "done", "resolved")
KB_BUCKETS = ("Customer Assistance", "Customer Questions", "Bug")
JIRA_BUCKETS = ("Bug", "Improvement")

TOP_JIRAS = 10
MIN_CASES_FOR_KB = 3
MAX_KB_CASES = 20
MAX_KB_RECOMMENDATIONS = 15
DESCRIPTION_PREVIEW = 200

_PRIORITY_ORDER = {"high": 0, "medium": 1, "low": 2}


def _priority(count: int, high: int = 10, medium: int = 5) -> str:
    if count > high:
        return "high"
    if count > medium:
        return "medium"
    return "low"


def _info(review: CaseReview, attr: str) -> str | None:
    return getattr(review.case_info, attr, None) if review.case_info else None


def _action_case(review: CaseReview, **extra) -> ActionCase:
    return ActionCase(case_number=review.case_number, subject=_info(review, "subject"), **extra)


def _linked_jiras(reviews: list[CaseReview]):
    for review in reviews:
        if review.jira and review.jira.present:
            for detail in review.jira.details:
                if detail.get("key"):
                    yield review, detail


def _status(detail: dict, field: str) -> str:
    return (detail.get(field) or "").lower()


def wrong_closed_tags(reviews: list[CaseReview]) -> WrongClosedTags:
    cases = []
    for review in reviews:
        if review.is_closed_tag_valid is not False:
            continue
        verdict = review.tag_validation
        inaccurate = verdict.inaccurate_tags[0] if verdict and verdict.inaccurate_tags else None
        suggestion = verdict.missing_tags[0].suggested_tag if verdict and verdict.missing_tags else None
        reason = inaccurate.reasoning if inaccurate else None
        if reason is None and verdict and verdict.overall_assessment:
            reason = verdict.overall_assessment.summary
        cases.append(_action_case(
            review,
            current_tag=review.close_tags[0] if review.close_tags else None,
            suggested_tag=(inaccurate.suggested_replacement if inaccurate else None) or suggestion,
            reason=reason,
        ))
    return WrongClosedTags(
        category="wrong_closed_tags",
        title="Cases with Incorrect Closure Tags",
        count=len(cases),
        priority=_priority(len(cases)),
        cases=cases,
        action_required="Review and correct closure tags for accurate reporting",
    )


def _top(impacts: dict[str, JiraImpact], top_n: int) -> list[JiraImpact]:
    return sorted(impacts.values(), key=lambda j: j.case_count, reverse=True)[:top_n]


def _jira_impact(detail: dict) -> JiraImpact:
    return JiraImpact(
        key=detail["key"],
        summary=detail.get("summary"),
        status=detail.get("status"),
        issue_type=detail.get("issueType"),
        resolution=detail.get("resolution"),
        components=detail.get("components") or [],
        labels=detail.get("labels") or [],
        fix_versions=detail.get("fixVersions") or [],
    )


def open_jiras_prioritization(reviews: list[CaseReview], top_n: int = TOP_JIRAS) -> JiraActions:
    """Unresolved JIRA issues ranked by how many reviewed cases link them."""
    impacts: dict[str, JiraImpact] = {}
    for review, detail in _linked_jiras(reviews):
        if _status(detail, "status") in OPEN_JIRA_EXCLUDED:
            continue
        impact = impacts.setdefault(detail["key"], _jira_impact(detail))
        impact.case_numbers.append(review.case_number)
        impact.case_count += 1

    jiras = _top(impacts, top_n)
    for jira in jiras:
        jira.impact_level = "critical" if jira.case_count > 10 else "high" if jira.case_count > 5 else "medium"
    return JiraActions(
        category="open_jiras_prioritization",
        title="Open JIRAs to Prioritize for Fix",
        count=len(jiras),
        total_cases_affected=sum(j.case_count for j in jiras),
        priority="high" if jiras and jiras[0].case_count > 5 else "medium",
        jiras=jiras,
        action_required="Escalate to engineering for prioritized fix based on customer impact",
    )


def fixed_jiras_customer_update(reviews: list[CaseReview], top_n: int = TOP_JIRAS) -> JiraActions:
    """Fixed JIRA issues with a fix version the affected customers could upgrade to."""
    impacts: dict[str, JiraImpact] = {}
    for review, detail in _linked_jiras(reviews):
        fixed = (
            _status(detail, "status") in FIXED_STATUSES
            and _status(detail, "resolution") in FIXED_RESOLUTIONS
        )
        if not fixed or not detail.get("fixVersions"):
            continue
        impact = impacts.setdefault(detail["key"], _jira_impact(detail))
        impact.case_numbers.append(review.case_number)
        impact.case_count += 1
        version = _info(review, "nos_version")
        if version and version not in impact.customer_versions:
            impact.customer_versions.append(version)

    jiras = _top(impacts, top_n)
    for jira in jiras:
        jira.recommendation = f"Advise customer to upgrade to {' or '.join(jira.fix_versions)}"
    return JiraActions(
        category="fixed_jiras_customer_update",
        title="Fixed JIRAs - Customer Needs Version Update",
        count=len(jiras),
        total_cases_affected=sum(j.case_count for j in jiras),
        priority="medium" if jiras else "low",
        jiras=jiras,
        action_required="Proactively reach out to customers to recommend upgrade",
    )


def missing_kb(reviews: list[CaseReview]) -> MissingKB:
    should_exist = [r for r in reviews if r.kb and r.kb.missing]
    not_relevant = [r for r in reviews if r.kb and r.kb.present and not r.kb.valid]
    not_linked = [
        r for r in reviews
        if r.bucket in KB_BUCKETS and not (r.kb and (r.kb.present or r.kb.missing))
    ]
    counts = KBIssueCounts(
        kb_missing=len(should_exist),
        kb_not_valid=len(not_relevant),
        kb_not_linked=len(not_linked),
        total=len(should_exist) + len(not_relevant) + len(not_linked),
    )
    return MissingKB(
        category="missing_kb",
        title="KB Articles Missing or Not Linked",
        count=counts.total,
        summary=counts,
        priority="high" if counts.kb_missing + counts.kb_not_valid > 10 else "medium",
        sections=KBSections(
            kb_should_exist=KBCaseGroup(
                title="Cases Where KB Should Exist",
                count=len(should_exist),
                cases=[
                    _action_case(r, bucket=r.bucket, product=_info(r, "product"))
                    for r in should_exist[:MAX_KB_CASES]
                ],
            ),
            kb_not_relevant=KBCaseGroup(
                title="Linked KB Not Relevant",
                count=len(not_relevant),
                cases=[
                    _action_case(r, linked_kb=r.kb.reference, reason=r.kb.reason)
                    for r in not_relevant[:MAX_KB_CASES]
                ],
            ),
            kb_not_linked=KBCaseGroup(
                title="Cases Without KB Link (Should Have One)",
                count=len(not_linked),
                cases=[_action_case(r, bucket=r.bucket) for r in not_linked[:MAX_KB_CASES]],
            ),
        ),
        action_required="Link existing KBs or create new articles for common issues",
    )


def suggested_kb_title(product: str, skill: str, bucket: str) -> str:
    if bucket == "Customer Questions":
        return f"FAQ: {product} - {skill} Common Questions"
    if bucket == "Customer Assistance":
        return f"How To: {product} - {skill} Configuration Guide"
    if bucket == "Bug":
        return f"Known Issue: {product} - {skill} Troubleshooting"
    return f"{product} - {skill} Guide"


def kb_creation_recommendations(
    reviews: list[CaseReview], min_cases: int = MIN_CASES_FOR_KB
) -> KBRecommendations:
    """Group KB-less cases by product, skill and bucket; a group of min_cases or more earns a new article."""
    groups: dict[tuple[str, str, str], list[CaseReview]] = {}
    for review in reviews:
        if review.bucket not in KB_BUCKETS:
            continue
        if review.kb and review.kb.present and not review.kb.missing:
            continue
        key = (_info(review, "product") or "Unknown", _info(review, "skill") or "General", review.bucket)
        groups.setdefault(key, []).append(review)

    recommendations = [
        KBRecommendation(
            product=product,
            skill=skill,
            bucket=bucket,
            cases=[_action_case(r) for r in members],
            case_count=len(members),
            suggested_kb_title=suggested_kb_title(product, skill, bucket),
            impact_score=len(members),
            priority=_priority(len(members)),
        )
        for (product, skill, bucket), members in groups.items()
        if len(members) >= min_cases
    ]
    recommendations.sort(key=lambda r: r.case_count, reverse=True)
    return KBRecommendations(
        category="kb_creation_recommendations",
        title="Recommended KB Articles to Create",
        count=len(recommendations),
        total_cases_addressed=sum(r.case_count for r in recommendations),
        priority="high" if recommendations and recommendations[0].case_count > 5 else "medium",
        recommendations=recommendations[:MAX_KB_RECOMMENDATIONS],
        action_required="Create KB articles to reduce future case volume",
    )


def jira_creation_needed(reviews: list[CaseReview]) -> JiraCreationNeeded:
    """Bugs and improvements that nobody has filed a JIRA for yet."""
    needing = [
        r for r in reviews
        if r.bucket in JIRA_BUCKETS
        and (not (r.jira and r.jira.present) or "jira_missing" in r.identifiers)
    ]
    products: dict[str, ProductJiraGap] = {}
    for review in needing:
        product = _info(review, "product") or "Unknown"
        gap = products.setdefault(product, ProductJiraGap(product=product))
        description = _info(review, "description")
        entry = _action_case(
            review,
            skill=_info(review, "skill"),
            priority=_info(review, "priority"),
            description=description[:DESCRIPTION_PREVIEW] if description else None,
        )
        if review.bucket == "Bug":
            gap.bugs.append(entry)
        else:
            gap.improvements.append(entry)
        gap.total_count += 1

    bugs = sum(1 for r in needing if r.bucket == "Bug")
    return JiraCreationNeeded(
        category="jira_creation_needed",
        title="Bugs/Improvements Without JIRA",
        count=len(needing),
        summary=JiraCreationCounts(total_bugs=bugs, total_improvements=len(needing) - bugs, total=len(needing)),
        priority=_priority(len(needing)),
        by_product=sorted(products.values(), key=lambda g: g.total_count, reverse=True),
        action_required="Create JIRA tickets for tracking and engineering prioritization",
    )


def top_priority_actions(summary: ActionSummary) -> list[PriorityAction]:
    actions = []
    wrong_tags = summary.wrong_closed_tags
    if wrong_tags.count > 10:
        actions.append(PriorityAction(
            priority="high",
            category="wrong_closed_tags",
            action=f"Review {wrong_tags.count} cases with incorrect closure tags",
            cases=wrong_tags.count,
        ))
    if summary.open_jiras_prioritization.jiras:
        top = summary.open_jiras_prioritization.jiras[0]
        actions.append(PriorityAction(
            priority="high",
            category="open_jiras",
            action=f"Prioritize JIRA {top.key} affecting {top.case_count} cases",
            cases=top.case_count,
        ))
    creation = summary.jira_creation_needed.summary
    if creation.total > 5:
        actions.append(PriorityAction(
            priority="high",
            category="jira_creation",
            action=f"Create JIRAs for {creation.total_bugs} bugs and {creation.total_improvements} improvements",
            cases=creation.total,
        ))
    if summary.kb_creation_recommendations.recommendations:
        top = summary.kb_creation_recommendations.recommendations[0]
        actions.append(PriorityAction(
            priority="medium",
            category="kb_creation",
            action=f'Create KB for "{top.product} - {top.skill}" ({top.case_count} cases)',
            cases=top.case_count,
        ))
    fixed = summary.fixed_jiras_customer_update
    if fixed.jiras:
        actions.append(PriorityAction(
            priority="medium",
            category="customer_update",
            action=f"Notify {fixed.total_cases_affected} customers about available fixes",
            cases=len(fixed.jiras),
        ))
    return sorted(actions, key=lambda a: _PRIORITY_ORDER[a.priority])


def generate_action_summary(
    reviews: list[CaseReview], top_n: int = TOP_JIRAS, min_cases_for_kb: int = MIN_CASES_FOR_KB
) -> ActionSummary:
    """Six follow-up sections plus the cross-section top priority actions.

    Cases whose review errored carry no bucket or references and drop out of every section.
    """
    summary = ActionSummary(
        wrong_closed_tags=wrong_closed_tags(reviews),
        open_jiras_prioritization=open_jiras_prioritization(reviews, top_n),
        fixed_jiras_customer_update=fixed_jiras_customer_update(reviews, top_n),
        missing_kb=missing_kb(reviews),
        kb_creation_recommendations=kb_creation_recommendations(reviews, min_cases_for_kb),
        jira_creation_needed=jira_creation_needed(reviews),
    )
    summary.top_priority_actions = top_priority_actions(summary)
    return summary
