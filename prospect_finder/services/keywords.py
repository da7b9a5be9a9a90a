"""Keyword expansion and title matching for job searches.

Seeds are expanded through bilingual (EN/FR) synonym groups before they reach
the platform adapters, and every adapter matches job titles against the full
expanded list.
"""
from __future__ import annotations

from typing import Iterable

# Each group holds the EN and FR variants of one job title plus common contractions.
KEYWORD_GROUPS: list[tuple[str, ...]] = [
    ("web developer", "développeur web", "web dev"),
    ("front-end developer", "développeur front-end", "front-end dev", "frontend developer", "développeur frontend", "frontend dev"),
    ("back-end developer", "développeur back-end", "back-end dev", "backend developer", "développeur backend", "backend dev"),
    ("full-stack developer", "développeur full-stack", "full-stack dev", "fullstack developer", "développeur fullstack", "fullstack dev"),
    ("wordpress developer", "développeur wordpress", "wordpress dev"),
    ("react developer", "développeur react", "react dev"),
    ("junior developer", "développeur junior", "junior dev"),
    ("senior developer", "développeur senior", "senior dev"),
    ("software developer", "développeur logiciel", "software dev"),
    ("software engineer", "ingénieur logiciel", "ingénieur software"),
    ("mobile developer", "développeur mobile", "mobile dev"),
    ("php developer", "développeur php", "php dev"),
    ("java developer", "développeur java", "java dev"),
    ("python developer", "développeur python", "python dev"),
    ("javascript developer", "développeur javascript", "javascript dev", "js developer", "développeur js", "js dev"),
    ("typescript developer", "développeur typescript", "typescript dev", "ts developer", "développeur ts", "ts dev"),
    ("angular developer", "développeur angular", "angular dev"),
    ("vue developer", "développeur vue", "vue dev", "vue.js developer", "développeur vue.js", "vuejs dev"),
    ("node developer", "développeur node", "node dev", "node.js developer", "développeur node.js", "nodejs dev"),
    ("devops engineer", "ingénieur devops", "devops"),
    ("data engineer", "ingénieur data", "ingénieur données"),
    ("data analyst", "analyste données", "analyste data"),
    ("ui designer", "designer ui", "ui/ux designer", "designer ui/ux"),
    ("ux designer", "designer ux"),
    ("web designer", "designer web", "webdesigner"),
    ("project manager", "chef de projet", "gestionnaire de projet"),
    ("product manager", "chef de produit"),
    ("scrum master",),
    ("qa engineer", "ingénieur qa", "testeur logiciel", "quality assurance"),
    ("system administrator", "administrateur système", "sysadmin"),
    ("network engineer", "ingénieur réseau"),
    ("cloud engineer", "ingénieur cloud"),
    ("security engineer", "ingénieur sécurité", "cybersecurity engineer", "ingénieur cybersécurité"),
]

# Words shorter than this are too generic to count as a title match on their own
SIGNIFICANT_WORD_LENGTH = 4

_GROUP_INDEX: dict[str, tuple[str, ...]] = {
    variant.lower(): group for group in KEYWORD_GROUPS for variant in group
}


def expand_keywords(keywords: list[str]) -> list[str]:
    """Replace every seed that belongs to a synonym group with the whole group.

    Seeds outside any group are kept as they are. The result is deduplicated
    case-insensitively and keeps first-seen order.
    """
    expanded: dict[str, str] = {}
    for keyword in keywords:
        keyword = keyword.strip()
        if not keyword:
            continue
        group = _GROUP_INDEX.get(keyword.lower())
        for variant in group or (keyword,):
            expanded.setdefault(variant.lower(), variant)
    return list(expanded.values())

def significant_words(keyword: str) -> list[str]:
    return [w for w in keyword.lower().split() if len(w) >= SIGNIFICANT_WORD_LENGTH]

def match_keywords(text: str, keywords: Iterable[str]) -> list[str]:
    """Keywords found in *text* verbatim, or through one of their significant words."""
    lower_text = (text or "").lower()
    matched = []
    for keyword in keywords:
        if keyword.lower() in lower_text or any(w in lower_text for w in significant_words(keyword)):
            matched.append(keyword)
    return matched

def keywords_for_title(title: str, keywords: Iterable[str], seed: str) -> list[str]:
    """Title matches, falling back to the seed the result page was fetched with."""
    return match_keywords(title, keywords) or [seed]

