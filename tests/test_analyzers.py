import json

import pytest
from pydantic import ValidationError

from case_review.analyzers import (
    AnalyzerOptions,
    Bucketizer,
    ClosureTagValidator,
    IssueAnalyzer,
    RelevanceValidator,
    analyze_case,
    bucketise_case,
    normalize_relevance,
    validate_jira_relevance,
    validate_kb_relevance,
)
from case_review.exceptions import (
    AnalysisFailed,
    ConfigurationError,
    TransportError,
    UnparsableResponse,
    ValidationWarning,
)
from case_review.models import JiraIssue, KBArticle

from conftest import make_case


ISSUE_RESPONSE = {
    "issueSummary": {"brief": "PC upgrade hang", "rootCause": "Stale task"},
    "tags": {"issueType": "Upgrade", "productArea": ["Prism Central"], "technicalComplexity": "Medium"},
    "qualityAssessment": {"overallHandling": {"score": 8, "reasoning": "Quick fix"}},
    "clusteringFeatures": {"primaryTopic": "Prism Central upgrade hang", "keywords": ["upgrade", "pc"]},
    "metadata": {"confidenceScore": 0.8},
}

BUCKET_RESPONSE = {
    "category": "Customer Assistance",
    "categoryId": 4,
    "confidence": "medium",
    "reasoning": "Support walked the customer through the upgrade",
    "keyEvidence": ["Cleared stale upgrade task"],
}


@pytest.mark.asyncio
async def test_issue_analyzer_returns_camel_case_analysis(sample_case, vocabulary, fake_client):
    client = fake_client([ISSUE_RESPONSE])
    analysis = await analyze_case(sample_case, client, vocabulary)

    assert analysis.case_number == "00475706"
    assert analysis.analysis["issueSummary"]["brief"] == "PC upgrade hang"
    assert analysis.analysis["tags"]["productArea"] == ["Prism Central"]
    assert analysis.extracted_actions["proceduresFollowed"] == [
        "Restarted genesis on PCVM",
        "Cleared stale upgrade task",
    ]
    assert analysis.tag_check.close_tags.valid == ["Upgrade - PC"]
    assert analysis.input_summary.conversation_length == 2
    assert client.calls[0]["max_tokens"] == 4096


def test_analyzer_options_are_immutable():
    options = AnalyzerOptions(max_tokens=512)
    with pytest.raises(ValidationError):
        options.max_tokens = 1024
    assert Bucketizer.defaults.max_tokens == 1024
    assert Bucketizer.defaults.temperature == 0.2
    assert client.calls[0]["temperature"] == 0.3
    assert "Upgrade - PC" in client.calls[0]["user"]


@pytest.mark.asyncio
async def test_issue_analyzer_repairs_out_of_range_scores(sample_case, fake_client):
    response = {**ISSUE_RESPONSE, "qualityAssessment": {"overallHandling": {"score": 12}}}
    with pytest.warns(ValidationWarning):
        analysis = await IssueAnalyzer(fake_client([response])).analyze(sample_case)
    assert analysis.analysis["qualityAssessment"]["overallHandling"]["score"] == 10
    assert analysis.warnings
    assert analysis.tag_check is None


@pytest.mark.asyncio
async def test_issue_analyzer_options_override_defaults(sample_case, fake_client):
    client = fake_client([ISSUE_RESPONSE])
    await IssueAnalyzer(client).analyze(sample_case, AnalyzerOptions(model="other-model", temperature=0.0))
    assert client.calls[0]["model"] == "other-model"
    assert client.calls[0]["temperature"] == 0.0
    assert client.calls[0]["max_tokens"] == 4096


@pytest.mark.asyncio
async def test_analyzer_wraps_upstream_errors(sample_case, fake_client):
    client = fake_client([TransportError("LLM API error", status_code=502, body="bad gateway")])
    with pytest.raises(AnalysisFailed) as exc:
        await analyze_case(sample_case, client)
    assert isinstance(exc.value.cause, TransportError)
    assert "status 502" in str(exc.value)


@pytest.mark.asyncio
async def test_analyzer_wraps_unparsable_output(sample_case, fake_client):
    with pytest.raises(AnalysisFailed) as exc:
        await bucketise_case(sample_case, fake_client(["Sorry, I cannot categorize this."]))
    assert isinstance(exc.value.cause, UnparsableResponse)


@pytest.mark.asyncio
async def test_configuration_error_is_not_wrapped(sample_case, fake_client):
    with pytest.raises(ConfigurationError):
        await analyze_case(sample_case, fake_client([ConfigurationError("LLM_API_URL is not configured")]))


@pytest.mark.asyncio
async def test_bucketizer_accepts_valid_verdict(sample_case, fake_client):
    client = fake_client([f"```json\n{json.dumps(BUCKET_RESPONSE)}\n```"])
    verdict = await Bucketizer(client).analyze(sample_case)
    assert verdict.category == "Customer Assistance"
    assert verdict.category_id == 4
    assert verdict.warnings == []
    assert client.calls[0]["temperature"] == 0.2
    assert client.calls[0]["max_tokens"] == 1024


@pytest.mark.asyncio
async def test_bucketizer_rejects_mismatched_id(sample_case, fake_client):
    client = fake_client([{**BUCKET_RESPONSE, "categoryId": 1}])
    with pytest.raises(AnalysisFailed) as exc:
        await bucketise_case(sample_case, client)
    assert any("should have categoryId 4, got 1" in e for e in exc.value.cause.errors)


@pytest.mark.asyncio
async def test_bucketizer_warns_on_linked_jira_outside_bug_categories(fake_client):
    case = make_case(caseInfo={"jiraCase": "ENG-123"})
    with pytest.warns(ValidationWarning):
        verdict = await bucketise_case(case, fake_client([BUCKET_RESPONSE]))
    assert any("ENG-123" in warning for warning in verdict.warnings)


@pytest.mark.asyncio
async def test_bucketizer_warns_on_empty_resolution(fake_client):
    case = make_case(resolution={"resolutionNotes": ""})
    with pytest.warns(ValidationWarning):
        verdict = await bucketise_case(case, fake_client([BUCKET_RESPONSE]))
    assert any("no resolution notes" in warning for warning in verdict.warnings)


@pytest.mark.asyncio
async def test_closure_validator_skips_llm_without_close_tags(vocabulary, fake_client):
    client = fake_client([])
    case = make_case(tags={"openTags": ["A"], "closeTags": []})
    verdict = await ClosureTagValidator(client, vocabulary).validate(case)
    assert verdict.is_valid is True
    assert client.calls == []


@pytest.mark.asyncio
async def test_closure_validator_poor_quality_is_invalid(sample_case, vocabulary, fake_client):
    response = {
        "closureTagsValidation": [
            {"tag": "Upgrade - PC", "accuracyLevel": "inaccurate", "confidence": "High",
             "suggestedReplacement": "Made Up Tag"},
            {"tag": "Other", "accuracyLevel": "partially_accurate", "confidence": "low"},
        ],
        "missingTags": [
            {"suggestedTag": "Upgrade - AOS", "confidence": "medium"},
            {"suggestedTag": "Not In Vocabulary"},
        ],
        "overallAssessment": {"accuracyScore": 20, "tagQuality": "Poor"},
    }
    client = fake_client([response])
    with pytest.warns(ValidationWarning):
        verdict = await ClosureTagValidator(client, vocabulary).validate(sample_case)

    assert verdict.is_valid is False
    assert [t.tag for t in verdict.inaccurate_tags] == ["Upgrade - PC"]
    assert verdict.inaccurate_tags[0].suggested_replacement is None
    assert verdict.partially_accurate_tags == []
    assert [m.suggested_tag for m in verdict.missing_tags] == ["Upgrade - AOS"]
    assert len(verdict.warnings) == 2
    assert client.calls[0]["max_tokens"] == 2048


@pytest.mark.asyncio
async def test_closure_validator_simplified_prompt(sample_case, vocabulary, fake_client):
    client = fake_client([{"overallAssessment": {"tagQuality": "acceptable"}}])
    verdict = await ClosureTagValidator(client, vocabulary).validate(sample_case, simplified=True)
    assert verdict.is_valid is True
    assert client.calls[0]["max_tokens"] == 1536


@pytest.mark.asyncio
async def test_closure_validator_missing_quality_is_invalid(sample_case, vocabulary, fake_client):
    verdict = await ClosureTagValidator(fake_client([{}]), vocabulary).validate(sample_case)
    assert verdict.is_valid is False


@pytest.mark.asyncio
async def test_relevance_without_candidates_is_valid(sample_case, fake_client):
    client = fake_client([])
    kb = await validate_kb_relevance(sample_case, [], client)
    jira = await validate_jira_relevance(sample_case, [], client)
    assert kb.is_valid and kb.reason == "No KB articles provided for evaluation."
    assert jira.is_valid and jira.reason == "No JIRA issues provided for evaluation."
    assert client.calls == []


@pytest.mark.asyncio
async def test_kb_relevance_batch_uses_top_candidate(sample_case, fake_client):
    articles = [KBArticle(article_number=str(n), title=f"KB {n}") for n in (1, 2, 3)]
    response = {
        "evaluatedCount": 3,
        "kbScoresAndRecommendations": [
            {"kbId": "2", "relevanceScore": 55, "reasoning": "related"},
            {"kbId": "1", "relevanceScore": 85, "reasoning": "exact fix"},
            {"kbId": "3", "relevanceScore": 30, "reasoning": "different product"},
        ],
        "summary": "KB 1 matches",
    }
    client = fake_client([response])
    verdict = await validate_kb_relevance(sample_case, articles, client, threshold=40)

    assert verdict.is_valid is True
    assert verdict.reason == "exact fix"
    assert [c.relevance_score for c in verdict.candidates] == [85, 55, 30]
    assert verdict.summary == "KB 1 matches"
    assert client.calls[0]["max_tokens"] == 2048


@pytest.mark.asyncio
async def test_relevance_below_threshold_is_invalid(sample_case, fake_client):
    articles = [KBArticle(article_number="1", title="KB 1")]
    response = {"kbId": "1", "relevanceScore": 35, "reasoning": "unrelated"}
    verdict = await RelevanceValidator(fake_client([response]), "kb").validate(sample_case, articles)
    assert verdict.is_valid is False
    assert verdict.reason == "unrelated"


@pytest.mark.asyncio
async def test_jira_relevance_single_prompt_and_clamping(sample_case, fake_client):
    issue = JiraIssue(key="ENG-123", summary="PC upgrade hangs at 60%")
    response = {"jiraKey": "ENG-123", "relevanceScore": 140, "reasoning": "same bug"}
    client = fake_client([response])
    with pytest.warns(ValidationWarning):
        verdict = await validate_jira_relevance(sample_case, [issue], client)
    assert verdict.candidates[0].candidate_id == "ENG-123"
    assert verdict.candidates[0].relevance_score == 100
    assert verdict.is_valid is True
    assert client.calls[0]["max_tokens"] == 1024
    assert "ENG-123" in client.calls[0]["user"]


@pytest.mark.asyncio
async def test_relevance_count_mismatch_and_breakdown_warnings(sample_case, fake_client):
    issues = [JiraIssue(key="ENG-1"), JiraIssue(key="ENG-2")]
    response = {
        "jiraValidations": [
            {"jiraKey": "ENG-1", "relevanceScore": 60, "reasoning": "close",
             "scoreBreakdown": {"problem": 45, "technical": 10, "solution": 5, "symptom": 0}},
        ],
    }
    with pytest.warns(ValidationWarning):
        verdict = await validate_jira_relevance(sample_case, issues, fake_client([response]))
    assert any("Expected 2" in w for w in verdict.warnings)
    assert any("problem scored 45" in w for w in verdict.warnings)


@pytest.mark.asyncio
async def test_relevance_with_no_scorable_candidate_fails(sample_case, fake_client):
    issues = [JiraIssue(key="ENG-1"), JiraIssue(key="ENG-2")]
    response = {"jiraValidations": [{"jiraKey": "ENG-1"}]}
    with pytest.warns(ValidationWarning), pytest.raises(AnalysisFailed):
        await validate_jira_relevance(sample_case, issues, fake_client([response]))


def test_normalize_relevance_maps_aliases():
    single = normalize_relevance({"kbId": "7", "kbTitle": "Title", "relevanceScore": 10})
    assert single == {"evaluatedCount": 1, "candidates": [{"candidateId": "7", "title": "Title", "relevanceScore": 10}]}

    batch = normalize_relevance({"relevantKBs": [{"kbId": "1"}], "summary": "s"})
    assert batch == {"summary": "s", "candidates": [{"candidateId": "1"}]}
