from case_review.actions import (
    generate_action_summary,
    jira_creation_needed,
    kb_creation_recommendations,
    missing_kb,
    suggested_kb_title,
    wrong_closed_tags,
)
from case_review.models import (
    ActionSummary,
    CaseInfo,
    CaseReview,
    ClosureTagAssessment,
    ClosureTagVerdict,
    ReferenceCheck,
)


OPEN_JIRA = {"key": "ENG-1", "summary": "PC upgrade hang", "status": "Open", "issueType": "Bug"}
FIXED_JIRA = {"key": "ENG-2", "summary": "Disk removal stuck", "status": "Resolved",
              "resolution": "Fixed", "fixVersions": ["6.8", "6.7.1"]}


def review(case_number, bucket="Customer Assistance", *, jira=None, kb=None, product="Prism Central",
           skill="Upgrades", nos_version="6.5.2", **fields):
    return CaseReview(
        case_number=case_number,
        bucket=bucket,
        is_closed_tag_valid=True,
        jira=jira,
        kb=kb,
        case_info=CaseInfo(case_number=case_number, subject=f"subject {case_number}", product=product,
                           skill=skill, nos_version=nos_version, priority="P3",
                           description="x" * 300),
        **fields,
    )


def linked(*details):
    return ReferenceCheck(reference=",".join(d["key"] for d in details), details=list(details),
                          valid=True, present=True)


def no_kb(missing=False):
    return ReferenceCheck(valid=True, present=False, missing=missing)


def test_wrong_closed_tags_lists_suggestions():
    wrong = CaseReview(
        case_number="1",
        bucket="Wrong Closure Tag",
        is_closed_tag_valid=False,
        close_tags=["Upgrade - AOS"],
        tag_validation=ClosureTagVerdict(
            is_valid=False,
            inaccurate_tags=[ClosureTagAssessment(tag="Upgrade - AOS", reasoning="PC upgrade, not AOS",
                                                  suggested_replacement="Upgrade - PC")],
        ),
    )
    failed = CaseReview(case_number="2", error="Case not found: 2")

    section = wrong_closed_tags([wrong, failed, review("3")])
    assert section.count == 1
    assert section.priority == "low"
    case = section.cases[0]
    assert (case.case_number, case.current_tag, case.suggested_tag) == ("1", "Upgrade - AOS", "Upgrade - PC")
    assert case.reason == "PC upgrade, not AOS"


def test_open_and_fixed_jiras_ranked_by_case_count():
    reviews = [
        review("1", "Bug", jira=linked(OPEN_JIRA)),
        review("2", "Bug", jira=linked(OPEN_JIRA, FIXED_JIRA), nos_version="6.5.2"),
        review("3", "Bug", jira=linked(FIXED_JIRA), nos_version="6.6"),
        review("4", "Bug", jira=linked({**FIXED_JIRA, "key": "ENG-3", "fixVersions": []})),
    ]
    summary = generate_action_summary(reviews)

    open_jiras = summary.open_jiras_prioritization
    assert [(j.key, j.case_count) for j in open_jiras.jiras] == [("ENG-1", 2)]
    assert open_jiras.jiras[0].case_numbers == ["1", "2"]
    assert open_jiras.jiras[0].impact_level == "medium"
    assert open_jiras.priority == "medium"

    fixed = summary.fixed_jiras_customer_update
    assert [(j.key, j.case_count) for j in fixed.jiras] == [("ENG-2", 2)]
    assert fixed.jiras[0].customer_versions == ["6.5.2", "6.6"]
    assert fixed.jiras[0].recommendation == "Advise customer to upgrade to 6.8 or 6.7.1"
    assert fixed.total_cases_affected == 2


def test_missing_kb_sections():
    reviews = [
        review("1", kb=no_kb(missing=True)),
        review("2", kb=ReferenceCheck(reference="000012345", valid=False, present=True, reason="unrelated")),
        review("3", "Customer Questions", kb=no_kb()),
        review("4", "Customer Mistake", kb=no_kb()),
    ]
    section = missing_kb(reviews)
    assert (section.summary.kb_missing, section.summary.kb_not_valid, section.summary.kb_not_linked) == (1, 1, 1)
    assert section.count == 3
    assert section.sections.kb_not_relevant.cases[0].linked_kb == "000012345"
    assert section.sections.kb_not_relevant.cases[0].reason == "unrelated"
    assert section.sections.kb_not_linked.cases[0].case_number == "3"


def test_kb_recommendations_need_three_similar_cases():
    reviews = [review(str(n), "Customer Questions", kb=no_kb(missing=True)) for n in range(3)]
    reviews += [review(str(n), "Customer Assistance", kb=no_kb(), product="AOS") for n in range(3, 5)]
    section = kb_creation_recommendations(reviews)

    assert section.count == 1
    rec = section.recommendations[0]
    assert (rec.product, rec.skill, rec.bucket, rec.case_count) == ("Prism Central", "Upgrades", "Customer Questions", 3)
    assert rec.suggested_kb_title == "FAQ: Prism Central - Upgrades Common Questions"
    assert section.total_cases_addressed == 3
    assert len(kb_creation_recommendations(reviews, min_cases=2).recommendations) == 2


def test_suggested_kb_titles():
    assert suggested_kb_title("AOS", "General", "Bug") == "Known Issue: AOS - General Troubleshooting"
    assert suggested_kb_title("AOS", "General", "Customer Assistance") == "How To: AOS - General Configuration Guide"
    assert suggested_kb_title("AOS", "General", "Improvement") == "AOS - General Guide"


def test_jira_creation_grouped_by_product():
    reviews = [
        review("1", "Bug", jira=ReferenceCheck(valid=True, present=False, missing=True),
               identifiers=["jira_missing"]),
        review("2", "Improvement", product="AOS"),
        review("3", "Bug", product="AOS"),
        review("4", "Bug", jira=linked(OPEN_JIRA)),
    ]
    section = jira_creation_needed(reviews)
    assert (section.summary.total_bugs, section.summary.total_improvements, section.summary.total) == (2, 1, 3)
    assert [(g.product, g.total_count) for g in section.by_product] == [("AOS", 2), ("Prism Central", 1)]
    assert section.by_product[0].improvements[0].case_number == "2"
    assert len(section.by_product[0].bugs[0].description) == 200


def test_top_priority_actions_put_high_first():
    reviews = [review(str(n), "Customer Questions", kb=no_kb(missing=True)) for n in range(3)]
    reviews += [review(str(n), "Bug", kb=ReferenceCheck(reference="000099999", valid=True, present=True))
                for n in range(3, 9)]
    reviews.append(review("9", "Bug", jira=linked(FIXED_JIRA)))
    summary = generate_action_summary(reviews)

    assert [(a.priority, a.category) for a in summary.top_priority_actions] == [
        ("high", "jira_creation"),
        ("medium", "kb_creation"),
        ("medium", "customer_update"),
    ]
    assert summary.top_priority_actions[0].action == "Create JIRAs for 6 bugs and 0 improvements"
    assert summary.top_priority_actions[1].action == 'Create KB for "Prism Central - Upgrades" (3 cases)'


def test_empty_reviews():
    summary = generate_action_summary([])
    assert isinstance(summary, ActionSummary)
    assert summary.top_priority_actions == []
    assert summary.kb_creation_recommendations.recommendations == []
    dumped = summary.model_dump(by_alias=True)
    assert dumped["wrongClosedTags"]["actionRequired"].startswith("Review and correct")
    assert dumped["missingKb"]["sections"]["kbShouldExist"]["count"] == 0
