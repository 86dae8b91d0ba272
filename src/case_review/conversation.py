"""Assemble a Case from case, comment, email and event rows."""
import statistics
from datetime import datetime

import pandas as pd

from .formatting import strip_html
from .models import Case, parse_tags


INTERNAL_DOMAINS = ["@nutanix.com", "@support_case@"]

EVENT_TYPE_CATEGORIES: dict[str, list[str]] = {
    "lifecycle": ["Case Creation", "Case Closure", "Stale Case Reset"],
    "ownership": ["Owner Change", "Handoff Approved", "Handoff Pending for Review", "Handoff Rejected"],
    "escalation": ["Escalation", "De-Escalation", "Acknowledged"],
    "automation": ["Discovery", "Predicted", "Snoozed", "Dismissed"],
    "exceptions": ["Expired Asset Exception", "Uplift Exception"],
    "attachments": ["Case Attachment"],
}

PREVIEW_LENGTH = 500


def as_bool(value) -> bool | None:
    """Interpret export flags ('true', 'False', 1, ...) as booleans."""
    if value is None or isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    text = str(value).strip().lower()
    if text in ("true", "t", "1", "yes", "y"):
        return True
    if text in ("false", "f", "0", "no", "n"):
        return False
    return None


def parse_time(value) -> datetime | None:
    """Parse a timestamp as a UTC-aware datetime; None when unparseable."""
    if value is None or value == "":
        return None
    if isinstance(value, dict) and "$date" in value:
        value = value["$date"]
    try:
        stamp = pd.to_datetime(value, utc=True)
    except (ValueError, TypeError):
        return None
    if pd.isna(stamp):
        return None
    return stamp.to_pydatetime()


def _hours(later: datetime, earlier: datetime) -> float:
    return (later - earlier).total_seconds() / 3600


def _is_internal_address(address: str) -> bool:
    return any(domain in address for domain in INTERNAL_DOMAINS)


def is_internal_email(email: dict) -> bool:
    """Internal when both ends are internal and the message is not incoming."""
    sender = (email.get("fromaddress") or "").lower()
    recipient = (email.get("toaddress") or "").lower()
    return _is_internal_address(sender) and _is_internal_address(recipient) and not as_bool(email.get("incoming"))


def is_internal_comment(comment: dict) -> bool:
    return as_bool(comment.get("public__c")) is False


def is_customer_email(email: dict, contact_email: str | None) -> bool:
    if not as_bool(email.get("incoming")):
        return False
    sender = (email.get("fromaddress") or "").lower()
    contact = (contact_email or "").lower()
    if contact and contact.split("@")[0] in sender:
        return True
    return not _is_internal_address(sender)


def comment_direction(comment: dict, contact_id: str | None) -> str:
    """'inbound' for customer comments, 'outbound' for support."""
    if contact_id and comment.get("commented_by__c") == contact_id:
        return "inbound"
    author = (comment.get("commented_by_txt__c") or "").lower()
    if any(word in author for word in ("customer", "portal", "contact")):
        return "inbound"
    return "outbound"


def event_category(event_type: str | None) -> str:
    for category, types in EVENT_TYPE_CATEGORIES.items():
        if event_type in types:
            return category
    return "other"


def categorize_events(events: list[dict]) -> dict[str, list[dict]]:
    categorized: dict[str, list[dict]] = {category: [] for category in EVENT_TYPE_CATEGORIES}
    categorized["other"] = []
    for event in events:
        categorized[event_category(event.get("type__c"))].append({
            "type": event.get("type__c"),
            "timestamp": event.get("eventtime__c"),
            "status": event.get("status__c"),
            "owner": event.get("case_owner_name__c"),
        })
    return categorized


def _chronological(items: list[tuple[datetime | None, dict]]) -> list[tuple[datetime | None, dict]]:
    # Undated entries sort last, original order otherwise preserved
    return sorted(items, key=lambda item: (item[0] is None, item[0] or datetime.min))


def build_conversation(comments: list[dict], emails: list[dict], case_row: dict) -> list[dict]:
    """Merge external comments and emails into one numbered chronological thread."""
    contact_id = case_row.get("contactid")
    contact_email = case_row.get("contact_email__c")
    entries: list[tuple[datetime | None, dict]] = []

    for comment in comments:
        direction = comment_direction(comment, contact_id)
        timestamp = comment.get("commented_on__c") or comment.get("createddate")
        entries.append((parse_time(timestamp), {
            "type": "comment",
            "id": comment.get("id"),
            "timestamp": timestamp,
            "author": comment.get("commented_by_txt__c") or "Unknown",
            "isPublic": as_bool(comment.get("public__c")),
            "content": comment.get("comment__c"),
            "direction": direction,
            "isCustomer": direction == "inbound",
        }))

    for email in emails:
        timestamp = email.get("messagedate") or email.get("createddate")
        content = email.get("textbody") or strip_html(email.get("htmlbody")) or None
        entries.append((parse_time(timestamp), {
            "type": "email",
            "id": email.get("id"),
            "timestamp": timestamp,
            "subject": email.get("subject"),
            "from": {"name": email.get("fromname"), "address": email.get("fromaddress")},
            "to": email.get("toaddress"),
            "cc": email.get("ccaddress"),
            "content": content,
            "contentPreview": content[:PREVIEW_LENGTH] + "..." if content and len(content) > PREVIEW_LENGTH else content,
            "hasAttachment": as_bool(email.get("hasattachment")),
            "direction": "inbound" if as_bool(email.get("incoming")) else "outbound",
            "isCustomer": is_customer_email(email, contact_email),
        }))

    conversation = []
    previous = None
    for sequence, (stamp, entry) in enumerate(_chronological(entries), 1):
        gap = round(_hours(stamp, previous), 2) if stamp and previous else None
        previous = stamp or previous
        conversation.append({"sequence": sequence, **entry, "timeSincePreviousHours": gap})
    return conversation


def response_metrics(emails: list[dict], comments: list[dict], case_row: dict) -> dict:
    """Customer-to-support response times.

    Each support message answers the most recent unanswered customer
    message; the pairing then resets. Trailing unanswered customer
    messages are not counted.
    """
    contact_email = case_row.get("contact_email__c")
    contact_id = case_row.get("contactid")
    messages: list[tuple[datetime | None, dict]] = []

    for email in emails:
        stamp = parse_time(email.get("messagedate") or email.get("createddate"))
        side = "customer" if is_customer_email(email, contact_email) else "support"
        messages.append((stamp, {"side": side, "type": "email"}))
    for comment in comments:
        stamp = parse_time(comment.get("commented_on__c") or comment.get("createddate"))
        side = "customer" if comment_direction(comment, contact_id) == "inbound" else "support"
        messages.append((stamp, {"side": side, "type": "comment"}))

    ordered = _chronological(messages)
    times: list[float] = []
    details = []
    pending: tuple[datetime | None, dict] | None = None
    for stamp, message in ordered:
        if message["side"] == "customer":
            pending = (stamp, message)
        elif pending is not None:
            asked_at, asked = pending
            if stamp is not None and asked_at is not None:
                hours = _hours(stamp, asked_at)
                times.append(hours)
                details.append({
                    "customerMessageAt": asked_at.isoformat(),
                    "supportResponseAt": stamp.isoformat(),
                    "responseTimeHours": round(hours, 2),
                    "customerMessageType": asked["type"],
                    "supportResponseType": message["type"],
                })
            pending = None

    def stat(value: float | None) -> float | None:
        return round(value, 2) if value is not None else None

    return {
        "avgResponseTimeHours": stat(statistics.fmean(times) if times else None),
        "medianResponseTimeHours": stat(statistics.median(times) if times else None),
        "minResponseTimeHours": stat(min(times) if times else None),
        "maxResponseTimeHours": stat(max(times) if times else None),
        "totalCustomerMessages": sum(1 for _, m in ordered if m["side"] == "customer"),
        "totalSupportResponses": sum(1 for _, m in ordered if m["side"] == "support"),
        "totalResponsesCounted": len(times),
        "responseTimesHours": [round(t, 2) for t in times],
        "responseDetails": details,
    }


def assemble_case(case_row: dict, comments: list[dict], emails: list[dict], events: list[dict]) -> Case:
    """Build the immutable Case record from raw store rows."""
    external_comments = [c for c in comments if not is_internal_comment(c)]
    external_emails = [e for e in emails if not is_internal_email(e)]
    ordered_events = [event for _, event in _chronological([(parse_time(e.get("eventtime__c")), e) for e in events])]

    row = case_row.get
    return Case.model_validate({
        "caseInfo": {
            "caseNumber": row("casenumber"),
            "caseId": row("id"),
            "subject": row("subject"),
            "description": row("description"),
            "status": row("status"),
            "priority": row("priority"),
            "type": row("type"),
            "origin": row("origin"),
            "isClosed": as_bool(row("isclosed")),
            "createdDate": row("createddate"),
            "closedDate": row("closeddate"),
            "caseAgeDays": row("case_age_days__c"),
            "complexity": row("case_complexity__c"),
            "product": row("product_type__c"),
            "nosVersion": row("nos_version_snapshot__c"),
            "serialNumber": row("serial_number__c"),
            "clusterId": row("cluster_id__c"),
            "skill": row("skill__c"),
            "supportLevel": row("support_level__c"),
            "jiraCase": row("jira_case_no__c"),
            "kbArticle": row("kb_article__c"),
        },
        "customer": {
            "accountName": row("acct_name_text__c"),
            "contactName": row("contact_txt__c"),
            "contactEmail": row("contact_email__c"),
            "accountId": row("accountid"),
            "contactId": row("contactid"),
        },
        "ownership": {
            "currentOwner": row("case_owner__c"),
            "ownerId": row("ownerid"),
            "threadId": row("thread_id__c"),
        },
        "tags": {
            "openTags": parse_tags(row("opentags__c")),
            "closeTags": parse_tags(row("closetags__c")),
        },
        "resolution": {
            "resolutionNotes": row("resolution__c"),
            "firstResponseProvided": row("first_response_provided__c"),
            "reliefProvided": row("relief_provided__c"),
        },
        "escalation": {
            "isEscalated": bool(as_bool(row("isescalated")) or as_bool(row("escalated__c"))),
            "escalatedDate": row("escalated_date__c"),
            "escalationStatus": row("escalation_status__c"),
            "escalationTemperature": row("escalation_temperature__c"),
            "portalEscalationReason": row("portal_escalation_reason__c"),
            "portalEscalationComments": row("portal_escalation_comments__c"),
            "escalationIssueSummary": row("escalation_issue_summary__c"),
            "escalationInformation": row("escalation_information__c"),
        },
        "responseMetrics": response_metrics(external_emails, external_comments, case_row),
        "timeline": {
            "events": [
                {
                    "id": e.get("id"),
                    "name": e.get("name"),
                    "type": e.get("type__c"),
                    "category": event_category(e.get("type__c")),
                    "timestamp": e.get("eventtime__c"),
                    "status": e.get("status__c"),
                    "priority": e.get("priority__c"),
                    "escalated": e.get("escalated__c"),
                    "escalationStatus": e.get("escalation_status__c"),
                    "owner": e.get("case_owner_name__c"),
                    "details": e.get("details__c"),
                }
                for e in ordered_events
            ],
            "categorized": categorize_events(ordered_events),
            "totalEvents": len(events),
        },
        "conversation": build_conversation(external_comments, external_emails, case_row),
    })
