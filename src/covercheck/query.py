"""Query interpreter — normalises a question, expands it with related
medical-aid terms, and detects its intent and implied partition."""

import logging
import re

from covercheck.models import ExpandedQuery, Intent, Query

logger = logging.getLogger(__name__)

# Trigger word -> terms appended to the query when the trigger is present.
# No expansion term may itself contain a trigger word; expansion is a
# single pass over the original text.
EXPANSIONS: dict[str, tuple[str, ...]] = {
    "pregnant": ("maternity", "antenatal care", "childbirth"),
    "pregnancy": ("maternity", "antenatal care", "childbirth"),
    "baby": ("maternity", "childbirth", "newborn care"),
    "surgery": ("in-hospital procedure", "theatre", "admission"),
    "operation": ("in-hospital procedure", "theatre", "admission"),
    "chronic": ("CDL", "long-term medication", "disease management"),
    "diabetes": ("CDL", "long-term medication"),
    "emergency": ("casualty", "trauma", "ambulance"),
    "accident": ("casualty", "trauma"),
    "dentist": ("dental", "dentistry"),
    "glasses": ("optical", "optometry", "spectacles"),
    "gp": ("general practitioner", "consultation"),
    "medicine": ("medication", "prescription", "formulary"),
    "cost": ("contribution", "premium", "price"),
}

_TRIGGER_PATTERNS: dict[str, re.Pattern[str]] = {
    trigger: re.compile(rf"\b{re.escape(trigger)}\b") for trigger in EXPANSIONS
}

# Ordered: the first matching category wins.
INTENT_PATTERNS: list[tuple[Intent, re.Pattern[str]]] = [
    (
        Intent.PREGNANCY,
        re.compile(
            r"\b(pregnan\w*|maternity|bab(y|ies)|birth|childbirth|antenatal"
            r"|obstetric\w*|confinement)\b"
        ),
    ),
    (
        Intent.CHRONIC,
        re.compile(
            r"\b(chronic|cdl|diabetes|diabetic|asthma|hypertension"
            r"|long[- ]term (conditions?|medication))\b"
        ),
    ),
    (
        Intent.EMERGENCY,
        re.compile(r"\b(emergenc(y|ies)|casualty|ambulance|trauma|accidents?|urgent)\b"),
    ),
    (
        Intent.HOSPITAL,
        re.compile(
            r"\b(hospital\w*|surgery|surgical|operations?|procedures?"
            r"|admission|admitted|theatre)\b"
        ),
    ),
]

# Provider names and plan-family keywords -> corpus partition label.
PARTITION_KEYWORDS: dict[str, tuple[str, ...]] = {
    "Discovery Health": ("discovery", "keycare", "vitality", "classic saver", "essential smart"),
    "Bonitas Medical Fund": (
        "bonitas",
        "boncap",
        "bonessential",
        "bonclassic",
        "boncomprehensive",
        "boncomplete",
        "bonsave",
        "bonfit",
        "bonprime",
    ),
    "Momentum Health": ("momentum", "ingwe", "evolve", "extender", "summit", "incentive option"),
}

_PARTITION_PATTERNS: list[tuple[str, re.Pattern[str]]] = [
    (
        partition,
        re.compile(r"\b(" + "|".join(re.escape(k) for k in keywords) + r")\b"),
    )
    for partition, keywords in PARTITION_KEYWORDS.items()
]


def normalize(text: str) -> str:
    """Collapse runs of whitespace and trim the question."""
    return re.sub(r"\s+", " ", text or "").strip()


def _contains_term(lower_text: str, term: str) -> bool:
    return re.search(rf"(?<![\w-]){re.escape(term.lower())}(?![\w-])", lower_text) is not None


def expand_query(text: str) -> str:
    """Append related terms for every trigger word found in ``text``.

    Triggers are matched only against the text as given, never against
    the appended terms, and a term already present in the text is not
    appended again. Together with the table constraint that no expansion
    term contains a trigger word, ``expand_query(expand_query(t)) ==
    expand_query(t)``.
    """
    text = normalize(text)
    if not text:
        return ""

    lower = text.lower()
    additions: list[str] = []
    for trigger, pattern in _TRIGGER_PATTERNS.items():
        if not pattern.search(lower):
            continue
        for term in EXPANSIONS[trigger]:
            if term in additions or _contains_term(lower, term):
                continue
            additions.append(term)

    if not additions:
        return text
    return f"{text} {' '.join(additions)}"


def detect_intent(text: str) -> Intent:
    """Return the first intent category whose pattern matches the question."""
    lower = normalize(text).lower()
    if not lower:
        return Intent.GENERAL
    for intent, pattern in INTENT_PATTERNS:
        if pattern.search(lower):
            return intent
    return Intent.GENERAL


def infer_partition(text: str) -> str | None:
    """Infer a corpus partition from provider names or plan keywords.

    Returns None when no partition, or more than one, is mentioned, so
    that comparative questions search the whole corpus.
    """
    lower = normalize(text).lower()
    found = [partition for partition, pattern in _PARTITION_PATTERNS if pattern.search(lower)]
    if len(found) == 1:
        return found[0]
    return None


def interpret(query: Query, default_partition: str | None = None) -> ExpandedQuery:
    """Run the full interpretation step for one question.

    An explicit partition on the query always wins over inference;
    ``default_partition`` is used only when neither yields one.
    """
    text = normalize(query.text)
    partition = query.partition or infer_partition(text) or default_partition
    expanded = ExpandedQuery(
        query=query,
        expanded_text=expand_query(text),
        intent=detect_intent(text),
        partition=partition,
    )
    logger.debug(
        "Interpreted %r: intent=%s partition=%s",
        text[:80],
        expanded.intent.value,
        expanded.partition,
    )
    return expanded
