"""Text transformations applied to case content before it reaches a prompt."""
import math
import re

from .models import Case


def round_half_up(value: float, digits: int = 0) -> float:
    """Round halves away from zero for positive values (2.5 -> 3, 0.25 -> 0.3)."""
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


# Ordered (pattern, replacement) rules; each one runs on the output of the previous.
HTML_RULES: list[tuple[re.Pattern, str]] = [
    (re.compile(r"<(h1)[^>]*>(.*?)</h1>", re.I), r"\n# \2\n"),
    (re.compile(r"<(h2)[^>]*>(.*?)</h2>", re.I), r"\n## \2\n"),
    (re.compile(r"<(h3)[^>]*>(.*?)</h3>", re.I), r"\n### \2\n"),
    (re.compile(r"<li\b[^>]*>(.*?)</li>", re.I), "• \\1\n"),
    (re.compile(r"</?(ul|ol)[^>]*>", re.I), "\n"),
    (re.compile(r"<p\b[^>]*>", re.I), "\n"),
    (re.compile(r"</p>", re.I), "\n"),
    (re.compile(r"<br\s*/?>", re.I), "\n"),
    (re.compile(r"<(strong|b)\b[^>]*>(.*?)</\1>", re.I), r"**\2**"),
    (re.compile(r"<(em|i)\b[^>]*>(.*?)</\1>", re.I), r"_\2_"),
    (re.compile(r"<code[^>]*>(.*?)</code>", re.I), r"`\1`"),
    (re.compile(r"<pre[^>]*>(.*?)</pre>", re.I | re.S), "\n```\n\\1\n```\n"),
    (re.compile(r'<a[^>]*href="([^"]*)"[^>]*>(.*?)</a>', re.I), r"\2 (\1)"),
    (re.compile(r"<tr\b[^>]*>", re.I), "\n"),
    (re.compile(r"<td\b[^>]*>(.*?)</td>", re.I), r"\1 | "),
    (re.compile(r"<th\b[^>]*>(.*?)</th>", re.I), r"**\1** | "),
    (re.compile(r"<[^>]+>"), ""),
    (re.compile(r"&nbsp;"), " "),
    (re.compile(r"&lt;"), "<"),
    (re.compile(r"&gt;"), ">"),
    (re.compile(r"&quot;"), '"'),
    (re.compile(r"&#39;"), "'"),
    (re.compile(r"&amp;"), "&"),
    (re.compile(r"\n\s*\n\s*\n"), "\n\n"),
]

_SCRIPT = re.compile(r"<script\b[^>]*>.*?</script>", re.I | re.S)
_STYLE = re.compile(r"<style\b[^>]*>.*?</style>", re.I | re.S)
_COMMENT = re.compile(r"<!--.*?-->", re.S)
_OPEN_TAG = re.compile(r"<(\w+)\s+([^>]*)>")
_HREF = re.compile(r'href="[^"]*"', re.I)
_ANY_TAG = re.compile(r"<[^>]*>")
_SPACES = re.compile(r"\s+")


def _keep_href(match: re.Match) -> str:
    href = _HREF.search(match.group(2))
    return f"<{match.group(1)} {href.group(0)}>" if href else f"<{match.group(1)}>"


def clean_html(html: str | None) -> str:
    """Render HTML as markdown-like plain text for a prompt."""
    if not html:
        return ""
    cleaned = _SCRIPT.sub("", html)
    cleaned = _STYLE.sub("", cleaned)
    cleaned = _COMMENT.sub("", cleaned)
    cleaned = _OPEN_TAG.sub(_keep_href, cleaned)
    for pattern, replacement in HTML_RULES:
        cleaned = pattern.sub(replacement, cleaned)
    return cleaned.strip()


def strip_html(text: str | None) -> str:
    """Drop tags and collapse whitespace."""
    if not text:
        return ""
    return _SPACES.sub(" ", _ANY_TAG.sub(" ", text)).strip()


def truncate(text: str | None, limit: int) -> tuple[str, bool]:
    """Cut text to at most `limit` characters. No suffix is appended."""
    text = text or ""
    if len(text) <= limit:
        return text, False
    return text[:limit], True


# ---------------------------------------------------------------------------
# "Actions taken" extraction
# ---------------------------------------------------------------------------

ACTION_HEADERS = [
    re.compile(r"actions?\s*taken:?", re.I),
    re.compile(r"troubleshooting\s*steps:?", re.I),
    re.compile(r"steps\s*taken:?", re.I),
    re.compile(r"what\s*was\s*done:?", re.I),
    re.compile(r"resolution\s*steps:?", re.I),
    re.compile(r"work\s*performed:?", re.I),
]

SIGNATURE_PATTERNS = [
    re.compile(r"^thank\s*you,?\s*$", re.I),
    re.compile(r"^thanks,?\s*$", re.I),
    re.compile(r"^best\s*regards,?", re.I),
    re.compile(r"^regards,?", re.I),
    re.compile(r"^sincerely,?", re.I),
    re.compile(r"^cheers,?", re.I),
    re.compile(r"nutanix\s*support", re.I),
    re.compile(r"systems?\s*reliability\s*engineer", re.I),
    re.compile(r"customer\s*support\s*portal", re.I),
    re.compile(r"business\s*hours:", re.I),
    re.compile(r"^thread::", re.I),
    re.compile(r"^\s*[-_]{3,}\s*$"),
]

_BULLET = re.compile(r"^[+\-•*]\s*")
_NUMBERED = re.compile(r"^\d+[.)]\s*")


def _is_signature(line: str) -> bool:
    return any(pattern.search(line) for pattern in SIGNATURE_PATTERNS)


def _bullet_lines(text: str) -> list[str]:
    actions = []
    for line in text.split("\n"):
        stripped = line.strip()
        if _is_signature(stripped):
            break
        if _BULLET.match(stripped):
            action = _BULLET.sub("", stripped).strip()
            if len(action) > 5:
                actions.append(action)
    return actions


def extract_actions_taken(closure_summary: str | None) -> dict:
    """Pull the "Actions taken" items out of a closure summary.

    Looks for the first known section header and collects bullet, numbered
    and plain lines after it until a signature line. Without a header, only
    bullet lines longer than five characters are kept.
    """
    if not closure_summary:
        return {"actions": [], "rawText": "", "hasActions": False}

    text = closure_summary.strip()
    header = None
    for pattern in ACTION_HEADERS:
        header = pattern.search(text)
        if header:
            break

    if header is None:
        actions = _bullet_lines(text)
        return {
            "actions": actions,
            "rawText": "\n".join(actions),
            "hasActions": bool(actions),
            "sectionFound": False,
        }

    actions = []
    for line in text[header.end():].split("\n"):
        stripped = line.strip()
        if _is_signature(stripped):
            break
        if not stripped:
            continue
        if _BULLET.match(stripped):
            action = _BULLET.sub("", stripped).strip()
        elif _NUMBERED.match(stripped):
            action = _NUMBERED.sub("", stripped).strip()
        elif not actions:
            action = stripped
        elif "@" not in stripped and "http" not in stripped:
            action = stripped
        else:
            continue
        if action:
            actions.append(action)

    return {
        "actions": actions,
        "rawText": "\n".join(actions),
        "hasActions": bool(actions),
        "sectionFound": True,
        "sectionHeader": header.group(0).strip(),
    }


def format_actions_for_llm(closure_summary: str | None) -> str:
    """Numbered list of the extracted actions."""
    extracted = extract_actions_taken(closure_summary)
    if not extracted["hasActions"]:
        return "No specific actions documented."
    return "\n".join(f"{i}. {action}" for i, action in enumerate(extracted["actions"], 1))


# ---------------------------------------------------------------------------
# Action summary for issue analysis
# ---------------------------------------------------------------------------

TOOL_PATTERNS: dict[str, re.Pattern] = {
    "NCC": re.compile(r"\bncc\b", re.I),
    "allssh": re.compile(r"\ballssh\b", re.I),
    "hostssh": re.compile(r"\bhostssh\b", re.I),
    "acli": re.compile(r"\bacli\b", re.I),
    "ncli": re.compile(r"\bncli\b", re.I),
    "genesis": re.compile(r"\bgenesis\b", re.I),
    "logbay": re.compile(r"\blogbay\b", re.I),
    "Panacea": re.compile(r"\bpanacea\b", re.I),
    "LCM": re.compile(r"\blcm\b", re.I),
    "Foundation": re.compile(r"\bfoundation\b", re.I),
    "curator_cli": re.compile(r"\bcurator_cli\b", re.I),
    "cluster status": re.compile(r"\bcluster\s+status\b", re.I),
    "Insights": re.compile(r"\binsights\b", re.I),
}

TECHNICAL_KEYWORDS = [
    "upgrade", "network", "storage", "disk", "cvm", "ahv", "esxi", "hyper-v",
    "prism", "prism central", "snapshot", "replication", "protection domain",
    "metro", "backup", "memory", "cpu", "performance", "latency", "certificate",
    "licensing", "firmware", "bios", "bmc", "ipmi", "dns", "ntp", "vlan",
    "files", "objects", "volumes", "nc2", "lcm", "ncc", "alert", "cluster",
]

_KB_REF = re.compile(r"\bKB[\s#:-]*(\d{3,6})\b", re.I)
_CONFIG_CHANGE = re.compile(
    r"\b(changed|modified|updated|configured|reconfigured|enabled|disabled|increased|decreased|set)\b",
    re.I,
)
_SENTENCE = re.compile(r"(?<=[.!?])\s+|\n+")


def extract_actions(case: Case) -> dict:
    """Summarize what was done on a case: keywords, tools, KB references, config changes, procedures."""
    support_texts = [
        strip_html(entry.content)
        for entry in case.conversation
        if entry.direction == "outbound" or not entry.is_customer
    ]
    resolution_notes = case.resolution.resolution_notes or ""
    corpus = "\n".join(
        [case.case_info.subject or "", strip_html(case.case_info.description), resolution_notes, *support_texts]
    )
    lowered = corpus.lower()

    keywords = [kw for kw in TECHNICAL_KEYWORDS if re.search(rf"\b{re.escape(kw)}\b", lowered)]
    tools = [name for name, pattern in TOOL_PATTERNS.items() if pattern.search(corpus)]

    kb_articles = [f"KB-{number}" for number in _KB_REF.findall(corpus)]
    if case.case_info.kb_article:
        kb_articles.append(case.case_info.kb_article)
    kb_articles = list(dict.fromkeys(kb_articles))

    config_changes = []
    for sentence in _SENTENCE.split("\n".join([resolution_notes, *support_texts])):
        sentence = sentence.strip()
        if sentence and _CONFIG_CHANGE.search(sentence):
            config_changes.append(sentence[:200])
    config_changes = list(dict.fromkeys(config_changes))[:10]

    return {
        "keywords": keywords,
        "toolsUsed": tools,
        "kbArticlesReferenced": kb_articles,
        "configurationChanges": config_changes,
        "proceduresFollowed": extract_actions_taken(resolution_notes)["actions"],
    }
