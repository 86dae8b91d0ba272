"""Prompt templates and builders for each analyzer."""
import json

from .models import CaseContext, JiraIssue, KBArticle


def _or(value, default: str) -> str:
    return value if value else default


def _joined(values, default: str = "N/A", limit: int | None = None) -> str:
    values = list(values or [])
    if limit is not None:
        values = values[:limit]
    return ", ".join(str(v) for v in values) or default


# ---------------------------------------------------------------------------
# Issue / quality analysis
# ---------------------------------------------------------------------------

ISSUE_ANALYSIS_SYSTEM_PROMPT = """You are an expert support case analyst for Nutanix technical support. Analyze support cases and provide structured, evidence-based insights.

You will receive the case details, the tags applied to the case, the predefined tag lists and a summary of the actions taken while handling the case.

Return a JSON object with this structure:

{
  "issueSummary": {
    "brief": "One-line summary of the issue",
    "detailed": "2-3 paragraph summary of what happened",
    "rootCause": "Identified root cause, or 'Unable to determine'",
    "technicalArea": "Primary technical area (Storage, Networking, Virtualization, Backup/DR, Prism, AOS Core, ...)"
  },
  "tagValidation": {
    "openTags": {
      "appliedTags": [], "recommendedTags": [], "correctlyApplied": [],
      "incorrectlyApplied": [], "missingTags": [],
      "score": 1-10, "explanation": "Why this score"
    },
    "closeTags": {
      "appliedTags": [], "recommendedTags": [], "correctlyApplied": [],
      "incorrectlyApplied": [], "missingTags": [],
      "score": 1-10, "explanation": "Why this score"
    },
    "overallScore": 1-10,
    "overallExplanation": "Summary of tag accuracy"
  },
  "issueClassification": {
    "isBug": {"verdict": true|false|"Unable to determine", "confidence": "High|Medium|Low", "evidence": "..."},
    "isConfigurationIssue": {"verdict": true|false|"Unable to determine", "confidence": "High|Medium|Low", "evidence": "..."},
    "isCustomerError": {"verdict": true|false|"Unable to determine", "confidence": "High|Medium|Low", "evidence": "..."},
    "isNonNutanixIssue": {"verdict": true|false|"Unable to determine", "confidence": "High|Medium|Low", "evidence": "..."}
  },
  "resolutionAnalysis": {
    "resolutionMethod": "Bug Fix|Configuration Change|Workaround|Upgrade|Documentation|Customer Education|No Action Needed|Unresolved",
    "resolvedBy": {"who": "Support|Customer Self-Resolved|Engineering|Third Party|Auto-Resolved|Unknown", "confidence": "High|Medium|Low", "evidence": "..."},
    "wasSelfResolved": {"verdict": true|false|"Unable to determine", "evidence": "..."},
    "resolutionQuality": {"score": 1-10, "isPermanentFix": true|false, "isWorkaround": true|false, "reasoning": "..."}
  },
  "rcaAssessment": {
    "rcaPerformed": true|false|"Partial",
    "rcaQuality": {"score": 1-10, "verdict": "Comprehensive|Adequate|Incomplete|Missing|Not Applicable", "reasoning": "..."},
    "rcaConclusive": {"verdict": true|false|"Unable to determine", "evidence": "..."},
    "rcaActionable": {"verdict": true|false, "actionsIdentified": [], "actionsImplemented": [], "missingActions": []}
  },
  "tags": {
    "problemCategory": ["problem categories"],
    "productArea": ["product areas involved"],
    "technicalComplexity": "Low|Medium|High|Critical",
    "issueType": "Bug|Configuration|User Error|Documentation Gap|Feature Request|Hardware|Third Party|Unknown",
    "resolutionType": "Bug Fix|Workaround|Permanent Fix|Configuration Change|Upgrade Required|Customer Education|No Action Needed|Self-Resolved|Unresolved",
    "faultAttribution": "Nutanix Software|Nutanix Hardware|Customer Error|Third Party|Environment|Unknown"
  },
  "qualityAssessment": {
    "resolutionQuality": {"score": 1-10, "reasoning": "..."},
    "responseTimeliness": {"score": 1-10, "reasoning": "Based on response metrics"},
    "communicationQuality": {"score": 1-10, "reasoning": "Based on tone and clarity"},
    "technicalAccuracy": {"score": 1-10, "reasoning": "Based on the solution provided"},
    "overallHandling": {"score": 1-10, "reasoning": "Overall assessment"}
  },
  "sentimentAnalysis": {
    "customerSentiment": {
      "overall": "Positive|Neutral|Negative|Mixed",
      "trajectory": "Improving|Stable|Declining",
      "frustrationLevel": "None|Low|Medium|High",
      "satisfactionIndicators": []
    },
    "supportSentiment": {
      "tone": "Professional|Friendly|Formal|Rushed",
      "empathy": "High|Medium|Low",
      "proactiveness": "High|Medium|Low"
    }
  },
  "clusteringFeatures": {
    "primaryTopic": "Main topic for clustering",
    "secondaryTopics": [], "keywords": [], "similarCaseIndicators": [], "complexityFactors": []
  },
  "actionableInsights": {
    "knowledgeBaseGaps": [], "processImprovements": [], "trainingOpportunities": [],
    "automationOpportunities": [], "preventionRecommendations": []
  },
  "metadata": {
    "confidenceScore": 0.0-1.0,
    "analysisLimitations": [], "dataQualityIssues": [],
    "requiresHumanReview": true|false,
    "reviewReasons": []
  }
}

Guidelines:
- Be objective and evidence-based; quote the conversation where possible
- If information is missing, say "Unable to determine" or use null
- Recommend tags ONLY from the predefined lists
- For RCA assessment, judge whether the root cause was identified and acted on
- Return ONLY valid JSON, no additional text"""


def build_issue_analysis_prompt(
    context: CaseContext,
    actions: dict,
    open_tags: list[str],
    close_tags: list[str],
) -> str:
    case_data = {
        "caseNumber": context.case_number,
        "subject": context.subject,
        "description": context.description,
        "priority": context.priority,
        "type": context.case_type,
        "product": context.product,
        "nosVersion": context.nos_version,
        "jiraCase": context.jira_case,
        "kbArticle": context.kb_article,
        "openTags": context.open_tags,
        "closeTags": context.close_tags,
        "resolutionNotes": context.resolution_notes,
        **context.details,
        "conversation": context.conversation,
    }
    return f"""Analyze this support case and provide structured insights.

=== PREDEFINED OPEN TAGS (select from this list only) ===
{json.dumps(open_tags, indent=2)}

=== PREDEFINED CLOSE TAGS (select from this list only) ===
{json.dumps(close_tags, indent=2)}

=== EXTRACTED ACTIONS FROM CASE ===
{json.dumps(actions, indent=2)}

=== CASE DATA ===
{json.dumps(case_data, indent=2, default=str)}

Recommend tags ONLY from the predefined lists and use the extracted actions
(tools, KB articles, configuration changes, keywords) to explain which close
tags apply."""


# ---------------------------------------------------------------------------
# Bucketization
# ---------------------------------------------------------------------------

BUCKETIZATION_SYSTEM_PROMPT = """You are an expert Nutanix support case analyst. Categorize closed support cases into exactly ONE primary category.

## Categories (with IDs)
1. Bug - a software defect in a Nutanix product caused the issue (JIRA linked, fix/patch released, engineering confirmed)
2. Improvement - feature or enhancement request; functionality not supported today
3. Non-Nutanix Error - caused by third-party software, hardware, network or infrastructure
4. Customer Assistance - hands-on help with a legitimate task, no error involved
5. Customer Questions - informational questions only; NO actual problem existed
6. Customer Mistake - customer misconfiguration or operational error
7. Customer-Experience Error - confusing UI, unclear behavior or misleading documentation led to the issue
8. Customer-Experience Environment - sizing, capacity or infrastructure constraints in the customer environment
9. Issue Self Resolved - cleared on its own with no human intervention
10. Customer Self Resolved - customer found and applied the fix before support could help
11. RCA not conclusive - investigation was done but the root cause remains unknown
12. RCA not done - no root cause analysis performed (fallback)

## Selection Priority
Evaluate in this strict order and select the FIRST category that clearly fits:
Bug -> Non-Nutanix Error -> Improvement -> Customer Self Resolved -> Issue Self Resolved -> Customer Mistake -> Customer-Experience Error -> Customer-Experience Environment -> Customer Assistance -> Customer Questions -> RCA not conclusive -> RCA not done

## Decision Rules
1. Root cause trumps resolution pattern.
2. A linked JIRA means Bug unless the JIRA is an enhancement (FEAT-, RFE-, "feature request"), which means Improvement.
3. Empty, vague or "case closed" resolution notes mean RCA not done.
4. Customer Questions applies ONLY when there was no actual issue to resolve.
5. category and categoryId must match the table above.
6. High confidence requires at least one exact quote in keyEvidence.

Respond ONLY with valid JSON. No markdown code blocks."""

BUCKETIZATION_RESPONSE_FORMAT = """{
  "category": "<exact category name from the 12 options>",
  "categoryId": <number 1-12 matching the category>,
  "confidence": "<high|medium|low>",
  "reasoning": "<2-3 sentences referencing the selection priority>",
  "keyEvidence": ["<exact quote from resolution notes or description>"],
  "alternativeCategory": "<second-best category if confidence is not high, otherwise null>",
  "alternativeReasoning": "<why the alternative was considered, otherwise null>"
}"""


def build_bucketization_prompt(context: CaseContext) -> str:
    jira = f"Yes ({context.jira_case})" if context.jira_case else "No"
    kb = f"Yes ({context.kb_article})" if context.kb_article else "No"
    return f"""## Support Case Details

**Subject:** {context.subject}
**Case Type:** {_or(context.case_type, 'Not specified')}
**Priority:** {_or(context.priority, 'Not specified')}
**Product:** {_or(context.product, 'Not specified')}

**Description:**
{_or(context.description, 'No description provided')}

**Resolution Notes:**
{_or(context.resolution_notes, 'Not provided')}

**Actions Taken:**
{_or(context.actions_taken, 'Not provided')}

**Linked Artifacts:**
- JIRA Linked: {jira}
- KB Article Linked: {kb}

**Case Tags:** {_joined(context.tags, 'None')}

---

Categorize this case into exactly ONE of the 12 categories, following the
selection priority. Quote evidence directly from the case.

## Required JSON Response Format

{BUCKETIZATION_RESPONSE_FORMAT}"""


# ---------------------------------------------------------------------------
# Closure tag validation
# ---------------------------------------------------------------------------

CLOSURE_TAG_SYSTEM_PROMPT = """You are an expert Nutanix Support Case Quality Analyst specializing in case closure validation and tagging accuracy.

Validate whether the closure tags assigned to a support case accurately represent the case's issue, resolution and outcome.

- A correct tag has clear supporting evidence in the case
- An incorrect tag contradicts the case content or describes something not present
- A partially correct tag is relevant but too broad, too narrow or slightly misaligned

All suggested tags (replacements or missing tags) MUST come from the predefined list provided. Do not invent tags; if nothing fits, say "No suitable tag in predefined list".

Respond ONLY with valid JSON. No markdown code blocks."""

CLOSURE_TAG_RESPONSE_FORMAT = """{
  "closureTagsValidation": [
    {
      "tag": "<closure tag name>",
      "isAccurate": <true|false>,
      "accuracyLevel": "<accurate|partially_accurate|inaccurate>",
      "confidence": "<high|medium|low>",
      "reasoning": "<2-3 sentence explanation>",
      "supportingEvidence": "<direct quote from the case>",
      "suggestedReplacement": "<better tag if inaccurate, otherwise null>"
    }
  ],
  "missingTags": [
    {
      "suggestedTag": "<tag that should have been added>",
      "reason": "<why this tag is needed>",
      "confidence": "<high|medium|low>",
      "evidence": "<quote from the case>"
    }
  ],
  "overallAssessment": {
    "accuracyScore": <0-100>,
    "tagQuality": "<good|acceptable|poor>",
    "accurateTags": <count>,
    "inaccurateTags": <count>,
    "summary": "<2-3 sentence assessment>",
    "recommendations": ["<recommendation>"]
  }
}"""


def _tag_lines(tags: list[str], empty: str) -> str:
    return "\n".join(f"- {tag}" for tag in tags) if tags else empty


def build_closure_tag_prompt(context: CaseContext, valid_close_tags: list[str]) -> str:
    """Full prompt including the opening messages of the conversation."""
    messages = []
    for i, message in enumerate(context.conversation, 1):
        side = "CUSTOMER" if message.get("isCustomer") else "SUPPORT"
        content = message.get("content") or ""
        ellipsis = "..." if len(content) >= 500 else ""
        messages.append(f"[{i}] {side}: {content}{ellipsis}")
    conversation = "\n\n".join(messages)

    return f"""Validate if the closure tags assigned to this support case are accurate and appropriate.

## IMPORTANT: Valid Closure Tags (ALL suggestions MUST come from this list)
{' | '.join(valid_close_tags)}

## Case Information
**Subject:** {context.subject}
**Case Type:** {_or(context.case_type, 'Not specified')}
**Product:** {_or(context.product, 'Not specified')}
**Skill Category:** {_or(context.skill, 'Not specified')}
**NOS Version:** {_or(context.nos_version, 'Not specified')}

## Problem Description
{_or(context.description, 'No description provided')}

## Resolution
**Resolution Notes:** {_or(context.resolution_notes, 'Not provided')}

## Case Conversation Summary
{_or(conversation, 'No conversation available')}

---

### Open Tags (assigned when the case was opened):
{_tag_lines(context.open_tags, 'None assigned')}

### Closure Tags (VALIDATE THESE):
{_tag_lines(context.close_tags, 'No closure tags assigned')}

---

For each closure tag decide whether it is accurate, quote the evidence and
give a confidence level. Identify missing tags and better replacements.
All suggestedReplacement and suggestedTag values MUST be exact matches from
the valid closure tags list above.

## Required JSON Response Format

{CLOSURE_TAG_RESPONSE_FORMAT}"""


def build_simplified_closure_tag_prompt(context: CaseContext, valid_close_tags: list[str]) -> str:
    """Prompt without conversation history, for cases with little context."""
    return f"""Validate if the closure tags assigned to this support case are accurate.

## IMPORTANT: Valid Closure Tags (ALL suggestions MUST come from this list)
{' | '.join(valid_close_tags)}

## Case Context
**Subject:** {context.subject}
**Case Type:** {_or(context.case_type, 'Not specified')}
**Product:** {_or(context.product, 'Not specified')}
**Skill:** {_or(context.skill, 'Not specified')}

**Description:**
{_or(context.description, 'No description provided')}

**Resolution Notes:**
{_or(context.resolution_notes, 'Not provided')}

**Open Tags:** {_joined(context.open_tags, 'None')}

**Closure Tags (VALIDATE THESE):** {_joined(context.close_tags, 'None')}

All suggestedReplacement and suggestedTag values MUST be exact matches from
the valid closure tags list. Do NOT create new tags.

## Required JSON Response

{CLOSURE_TAG_RESPONSE_FORMAT}"""


# ---------------------------------------------------------------------------
# KB / JIRA relevance
# ---------------------------------------------------------------------------

RELEVANCE_CRITERIA: dict[str, int] = {
    "problem": 40,
    "technical": 25,
    "solution": 25,
    "symptom": 10,
}

KB_RELEVANCE_SYSTEM_PROMPT = """You are an expert Nutanix Technical Support Engineer with deep knowledge of AOS, Prism, AHV and related products, common infrastructure issues, error codes and troubleshooting procedures.

Assess whether Knowledge Base articles are relevant to customer support cases.
- A KB is relevant only if it would genuinely help resolve the case
- Look for matching error messages, symptoms or root causes
- Consider version compatibility but don't be overly strict
- Respond in valid JSON only, no markdown code blocks"""

JIRA_RELEVANCE_SYSTEM_PROMPT = """You are an expert Nutanix Technical Support Engineer evaluating JIRA issue relevance to support cases.

- A JIRA is relevant if it describes the same bug, issue or root cause as the case
- Match on error messages, symptoms, affected components, versions and resolution approach
- Consider version compatibility but don't be overly strict
- Respond in valid JSON only, no markdown code blocks"""

SCORING_GUIDE = """## Scoring Guide
Score each candidate 0-100 as the sum of:
1. Problem match (0-40): same or similar problem?
2. Technical context (0-25): same product, component or version?
3. Solution applicability (0-25): would its fix/solution resolve this case?
4. Symptom alignment (0-10): do errors, behaviors or symptoms match?

- 80-100: exact match
- 60-79: same issue, minor context differences
- 40-59: related but not directly applicable
- 0-39: not relevant

Report the per-criterion points in scoreBreakdown."""

SCORE_BREAKDOWN_FORMAT = '{"problem": <0-40>, "technical": <0-25>, "solution": <0-25>, "symptom": <0-10>}'


def _case_section(context: CaseContext) -> str:
    return f"""## Support Case
**Subject:** {context.subject}
**Product:** {_or(context.product, 'Not specified')}
**NOS Version:** {_or(context.nos_version, 'Not specified')}
**Skill:** {_or(context.skill, 'Not specified')}
**Tags:** {_joined(context.tags, 'None')}

**Problem Description:**
{_or(context.description, 'Not provided')}

**Resolution Notes:**
{_or(context.resolution_notes, 'Not yet resolved')}"""


def _kb_section(kb: KBArticle, solution_limit: int, description_limit: int) -> str:
    return f"""**KB ID:** {kb.identifier}
**Title:** {kb.title}
**Summary:** {_or(kb.summary, 'Not provided')}
**Solution:** {_or((kb.solution or '')[:solution_limit], 'Not provided')}
**Description:** {_or((kb.description or '')[:description_limit], 'Not provided')}"""


def _jira_section(jira: JiraIssue, description_limit: int, detailed: bool) -> str:
    lines = [
        f"**Key:** {jira.key}",
        f"**Summary:** {jira.summary}",
        f"**Type:** {_or(jira.issue_type, 'N/A')}",
        f"**Status:** {_or(jira.status, 'N/A')}",
        f"**Resolution:** {_or(jira.resolution, 'N/A')}",
    ]
    if detailed:
        lines.append(f"**Priority:** {_or(jira.priority, 'N/A')}")
    lines.extend([
        f"**Components:** {_joined(jira.components)}",
        f"**Labels:** {_joined(jira.labels, limit=None if detailed else 5)}",
    ])
    if detailed:
        lines.append(f"**Affected Versions:** {_joined(jira.affected_versions)}")
    lines.extend([
        f"**Fix Versions:** {_joined(jira.fix_versions)}",
        f"**Description:** {_or((jira.description or '')[:description_limit], 'Not provided')}",
    ])
    if detailed:
        lines.append(f"**Release Notes:** {_or((jira.release_notes or '')[:500], 'N/A')}")
    return "\n".join(lines)


def build_kb_relevance_prompt(context: CaseContext, kb: KBArticle) -> str:
    return f"""Evaluate if the following Knowledge Base article is relevant to the support case.

## Knowledge Base Article
{_kb_section(kb, 2000, 1500)}

{_case_section(context)}

{SCORING_GUIDE}

Respond in JSON only:
{{
  "kbId": {json.dumps(kb.identifier)},
  "kbTitle": {json.dumps(kb.title[:100])},
  "relevanceScore": <0-100>,
  "isRelevant": <boolean>,
  "confidence": "<high|medium|low>",
  "reasoning": "<2-3 sentence explanation>",
  "matchedAspects": ["<aspect>"],
  "mismatchedAspects": ["<aspect>"],
  "recommendationType": "<exact_match|partial_match|related_topic|not_relevant>",
  "scoreBreakdown": {SCORE_BREAKDOWN_FORMAT}
}}"""


def build_kb_relevance_batch_prompt(context: CaseContext, articles: list[KBArticle]) -> str:
    sections = "\n---\n".join(
        f"### KB {i}\n{_kb_section(kb, 1000, 500)}" for i, kb in enumerate(articles, 1)
    )
    return f"""Evaluate which of the following Knowledge Base articles are relevant to the support case.

{_case_section(context)}

---

## Knowledge Base Articles to Evaluate
{sections}

---

{SCORING_GUIDE}

Include ALL evaluated articles. Respond in JSON only:
{{
  "evaluatedCount": {len(articles)},
  "kbScoresAndRecommendations": [
    {{
      "kbId": "<kb id>",
      "kbTitle": "<kb title>",
      "relevanceScore": <0-100>,
      "isRelevant": <boolean>,
      "confidence": "<high|medium|low>",
      "reasoning": "<brief explanation>",
      "recommendationType": "<exact_match|partial_match|related_topic|not_relevant>",
      "scoreBreakdown": {SCORE_BREAKDOWN_FORMAT}
    }}
  ],
  "summary": "<1-2 sentence summary>"
}}"""


def build_jira_relevance_prompt(context: CaseContext, jira: JiraIssue) -> str:
    return f"""Evaluate if this JIRA issue is relevant to the support case.

## JIRA Issue
{_jira_section(jira, 1500, detailed=True)}

{_case_section(context)}

{SCORING_GUIDE}

Respond in JSON only:
{{
  "jiraKey": {json.dumps(jira.key)},
  "jiraSummary": {json.dumps(jira.summary[:100])},
  "relevanceScore": <0-100>,
  "isRelevant": <boolean>,
  "confidence": "<high|medium|low>",
  "reasoning": "<2-3 sentence explanation>",
  "matchedAspects": ["<aspect>"],
  "mismatchedAspects": ["<aspect>"],
  "recommendationType": "<exact_match|partial_match|related_issue|not_relevant>",
  "scoreBreakdown": {SCORE_BREAKDOWN_FORMAT}
}}"""


def build_jira_relevance_batch_prompt(context: CaseContext, issues: list[JiraIssue]) -> str:
    sections = "\n---\n".join(
        f"### JIRA {i}\n{_jira_section(jira, 600, detailed=False)}" for i, jira in enumerate(issues, 1)
    )
    return f"""Evaluate which JIRA issues are relevant to this support case.

{_case_section(context)}

---

## JIRA Issues to Evaluate
{sections}

---

{SCORING_GUIDE}

Include ALL evaluated issues. Respond in JSON only:
{{
  "evaluatedCount": {len(issues)},
  "jiraValidations": [
    {{
      "jiraKey": "<key>",
      "jiraSummary": "<summary>",
      "relevanceScore": <0-100>,
      "isRelevant": <boolean>,
      "confidence": "<high|medium|low>",
      "reasoning": "<brief explanation>",
      "recommendationType": "<exact_match|partial_match|related_issue|not_relevant>",
      "scoreBreakdown": {SCORE_BREAKDOWN_FORMAT}
    }}
  ],
  "summary": "<1-2 sentence summary>"
}}"""
