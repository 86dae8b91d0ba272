import json

import pytest

from case_review.client import Completion
from case_review.models import Case
from case_review.tags import TagLists, TagVocabulary


class FakeLLMClient:
    """Stands in for APIClient: replays canned responses and records every call."""

    def __init__(self, responses=None, handler=None):
        self.responses = list(responses or [])
        self.handler = handler
        self.calls = []

    async def invoke(self, system_prompt, user_prompt, *, model=None, max_tokens=None, temperature=None):
        self.calls.append({
            "system": system_prompt,
            "user": user_prompt,
            "model": model,
            "max_tokens": max_tokens,
            "temperature": temperature,
        })
        if self.handler is not None:
            text = self.handler(system_prompt, user_prompt)
        else:
            text = self.responses.pop(0)
        if isinstance(text, Exception):
            raise text
        if not isinstance(text, str):
            text = json.dumps(text)
        return Completion(text=text, usage={"inputTokens": 10, "outputTokens": 20})


def make_case(**overrides) -> Case:
    info = {
        "caseNumber": "00475706",
        "subject": "Prism Central upgrade stuck at 60%",
        "description": "<p>Upgrade of <b>Prism Central</b> hangs.</p>",
        "priority": "P3",
        "type": "Technical",
        "product": "Prism Central",
        "nosVersion": "6.5.2",
        "jiraCase": None,
        "kbArticle": None,
    }
    info.update(overrides.pop("caseInfo", {}))
    data = {
        "caseInfo": info,
        "tags": {"openTags": ["Prism Central-PC Mgmt"], "closeTags": ["Upgrade - PC"]},
        "resolution": {
            "resolutionNotes": "Actions taken:\n- Restarted genesis on PCVM\n- Cleared stale upgrade task\nThanks,\nSupport",
        },
        "conversation": [
            {
                "sequence": 1,
                "type": "email",
                "timestamp": "2024-05-01T10:00:00+00:00",
                "from": {"name": "Jane Customer", "email": "jane@example.com"},
                "content": "The upgrade is stuck.",
                "direction": "inbound",
                "isCustomer": True,
            },
            {
                "sequence": 2,
                "type": "comment",
                "timestamp": "2024-05-01T12:00:00+00:00",
                "author": "Sam Engineer",
                "content": "Please run ncc health_checks run_all.",
                "direction": "outbound",
                "isCustomer": False,
            },
        ],
    }
    data.update(overrides)
    return Case.model_validate(data)


@pytest.fixture
def sample_case() -> Case:
    return make_case()


@pytest.fixture
def vocabulary() -> TagVocabulary:
    return TagVocabulary(TagLists(
        open_tags=("Prism Central - PC Management", "AOS - Upgrade", "Hardware - Disk"),
        close_tags=("Upgrade - PC", "Upgrade - AOS", "Hardware - Disk Replacement"),
    ))


@pytest.fixture
def fake_client():
    def build(responses=None, handler=None) -> FakeLLMClient:
        return FakeLLMClient(responses=responses, handler=handler)
    return build
