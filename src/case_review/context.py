"""Build bounded, analyzer-specific views of a case."""
from .exceptions import MissingRequiredField
from .formatting import clean_html, format_actions_for_llm, truncate
from .models import AnalyzerKind, Case, CaseContext


# Per-analyzer character limits. "message" bounds each conversation entry.
LIMITS: dict[AnalyzerKind, dict[str, int]] = {
    AnalyzerKind.ISSUE_ANALYSIS: {"description": 2000, "resolution_notes": 1000, "message": 2000},
    AnalyzerKind.BUCKETIZATION: {"description": 2000, "resolution_notes": 1000, "actions_taken": 1500},
    AnalyzerKind.TAG_VALIDATION: {"description": 1500, "resolution_notes": 1000, "message": 500},
    AnalyzerKind.KB_RELEVANCE: {"description": 2000, "resolution_notes": 1000},
    AnalyzerKind.JIRA_RELEVANCE: {"description": 1500, "resolution_notes": 800},
}

# Number of leading conversation entries carried into the context (None = all).
CONVERSATION_WINDOW: dict[AnalyzerKind, int | None] = {
    AnalyzerKind.ISSUE_ANALYSIS: None,
    AnalyzerKind.TAG_VALIDATION: 6,
}


def dedupe(*groups: list[str]) -> list[str]:
    """Flatten tag lists into one ordered list without duplicates."""
    seen: dict[str, None] = {}
    for group in groups:
        for tag in group or []:
            tag = tag.strip()
            if tag:
                seen.setdefault(tag, None)
    return list(seen)


def _conversation(case: Case, kind: AnalyzerKind, limit: int, truncated: list[str]) -> list[dict]:
    window = CONVERSATION_WINDOW[kind]
    entries = case.conversation if window is None else case.conversation[:window]
    messages = []
    for entry in entries:
        content, cut = truncate(clean_html(entry.content or entry.content_preview), limit)
        if cut and "conversation" not in truncated:
            truncated.append("conversation")
        messages.append({
            "sequence": entry.sequence,
            "type": entry.entry_type,
            "timestamp": entry.timestamp,
            "direction": entry.direction,
            "isCustomer": entry.is_customer,
            "author": entry.author_name,
            "subject": entry.subject,
            "content": content,
            "timeSincePreviousHours": entry.time_since_previous_hours,
        })
    return messages


def _issue_details(case: Case) -> dict:
    info = case.case_info
    metrics = case.response_metrics
    return {
        "caseInfo": {
            "status": info.status,
            "createdDate": info.created_date,
            "closedDate": info.closed_date,
            "caseAgeDays": info.case_age_days,
            "complexity": info.complexity,
        },
        "customer": case.customer.model_dump(by_alias=True),
        "escalation": case.escalation.model_dump(by_alias=True),
        "responseMetrics": {
            "avgResponseTimeHours": metrics.avg_response_time_hours,
            "medianResponseTimeHours": metrics.median_response_time_hours,
            "minResponseTimeHours": metrics.min_response_time_hours,
            "maxResponseTimeHours": metrics.max_response_time_hours,
            "totalCustomerMessages": metrics.total_customer_messages,
            "totalSupportResponses": metrics.total_support_responses,
        },
        "timeline": {
            "totalEvents": case.timeline.total_events,
            "eventTypes": [event.event_type for event in case.timeline.events],
            "ownerChanges": len(case.timeline.categorized.get("ownership", [])),
            "escalationEvents": len(case.timeline.categorized.get("escalation", [])),
        },
    }


def build_context(case: Case, kind: AnalyzerKind) -> CaseContext:
    """Project a case into the bounded view a given analyzer consumes.

    HTML is rendered to text before truncation; truncated fields are listed
    in ``truncated``. Raises MissingRequiredField when the case number or
    subject is absent.
    """
    info = case.case_info
    if not info.case_number:
        raise MissingRequiredField("caseNumber")
    if not info.subject:
        raise MissingRequiredField("subject", info.case_number)

    limits = LIMITS[kind]
    truncated: list[str] = []

    def bounded(name: str, text: str | None) -> str:
        value, cut = truncate(text, limits[name])
        if cut:
            truncated.append(name)
        return value

    description = bounded("description", clean_html(info.description))
    resolution_notes = bounded("resolution_notes", clean_html(case.resolution.resolution_notes))

    open_tags = dedupe(case.tags.open_tags)
    close_tags = dedupe(case.tags.close_tags)
    if kind is AnalyzerKind.BUCKETIZATION:
        tags = close_tags
    else:
        tags = dedupe(open_tags, close_tags)

    actions_taken = ""
    if kind is AnalyzerKind.BUCKETIZATION:
        actions_taken = bounded(
            "actions_taken", format_actions_for_llm(clean_html(case.resolution.resolution_notes))
        )

    conversation: list[dict] = []
    if kind in CONVERSATION_WINDOW:
        conversation = _conversation(case, kind, limits["message"], truncated)

    details = _issue_details(case) if kind is AnalyzerKind.ISSUE_ANALYSIS else {}

    return CaseContext(
        kind=kind,
        case_number=info.case_number,
        subject=info.subject,
        description=description,
        resolution_notes=resolution_notes,
        actions_taken=actions_taken,
        case_type=info.case_type,
        priority=info.priority,
        product=info.product,
        skill=info.skill,
        nos_version=info.nos_version,
        jira_case=info.jira_case,
        kb_article=info.kb_article,
        tags=tags,
        open_tags=open_tags,
        close_tags=close_tags,
        conversation=conversation,
        details=details,
        truncated=truncated,
    )
