"""Subject category classification for exam and practice session names."""

from __future__ import annotations

from typing import Dict, List, Optional, Sequence, Tuple

DEFAULT_CATEGORY = "General"

# Order is significant: the first rule whose keyword appears in the name wins,
# so "Geography" must stay ahead of anything else containing "geo".
CATEGORY_RULES: Tuple[Tuple[Tuple[str, ...], str], ...] = (
    (("english", "grammar"), "English"),
    (("history",), "History"),
    (("economy", "economic"), "Economy"),
    (("geography", "geo"), "Geography"),
    (("polity", "political"), "Polity"),
    (("science",), "Science"),
    (("current affairs", "gk"), "Current Affairs"),
    (("aptitude", "math"), "Aptitude"),
    (("agriculture",), "Agriculture"),
)

KNOWN_CATEGORIES: Tuple[str, ...] = tuple(
    category for _, category in CATEGORY_RULES
) + (DEFAULT_CATEGORY,)

# Questions typed into the chat use a looser vocabulary than session names.
QUESTION_KEYWORDS: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("History", ("history", "historical")),
    ("English", ("english", "grammar", "language")),
    ("Economy", ("economy", "economic", "economics")),
    ("Geography", ("geography", "geo", "geographical")),
    ("Polity", ("polity", "political", "politics")),
    ("Science", ("science", "scientific")),
    ("Current Affairs", ("current affairs", "current-affairs", "gk", "general knowledge")),
    ("Aptitude", ("aptitude", "math", "mathematics")),
    ("Agriculture", ("agriculture", "agri", "farming")),
)

CATEGORY_SUGGESTIONS: Dict[str, List[str]] = {
    "English": [
        "Review grammar fundamentals daily for 15 minutes",
        "Practice reading comprehension passages regularly",
        "Build vocabulary with daily word lists",
        "Focus on sentence correction and error detection",
        "Study common idioms and phrases",
    ],
    "History": [
        "Create chronological timelines of major events",
        "Focus on key battles and their outcomes",
        "Study important historical personalities in detail",
        "Practice questions on historical dates and periods",
        "Review Maharashtra and Indian history thoroughly",
    ],
    "Economy": [
        "Understand basic economic concepts and terminologies",
        "Study current economic policies and trends",
        "Practice calculation problems from economics",
        "Learn about different economic models and theories",
        "Stay updated with economic current affairs",
    ],
    "Geography": [
        "Study physical geography features thoroughly",
        "Learn about climate patterns and weather",
        "Practice map reading and locations",
        "Focus on regional geography of India",
        "Understand geological processes",
    ],
    "Polity": [
        "Study constitutional provisions in detail",
        "Focus on fundamental rights and duties",
        "Understand parliamentary procedures",
        "Learn about governance structures",
        "Review important constitutional amendments",
    ],
    "Science": [
        "Practice basic scientific concepts regularly",
        "Focus on chemical reactions and equations",
        "Study biological processes in detail",
        "Work on physics calculation problems",
        "Understand scientific laws and principles",
    ],
    "Current Affairs": [
        "Stay updated with daily news and events",
        "Read newspapers and magazines regularly",
        "Focus on national and international affairs",
        "Study government schemes and policies",
        "Practice monthly current affairs quizzes",
    ],
    "Aptitude": [
        "Practice mathematical calculations daily",
        "Work on logical reasoning problems",
        "Focus on quantitative aptitude",
        "Practice data interpretation regularly",
        "Study shortcut methods for calculations",
    ],
    "Agriculture": [
        "Study agricultural processes and techniques",
        "Learn about crop cultivation methods",
        "Understand agricultural policies and schemes",
        "Focus on soil and crop management",
        "Review agricultural economics",
    ],
    DEFAULT_CATEGORY: [
        "Practice regularly across all subjects",
        "Focus on weak areas identified",
        "Review mistakes from previous tests",
        "Take mock tests to improve speed",
        "Maintain a balanced study schedule",
    ],
}


def _first_match(
    text: Optional[str], rules: Sequence[Tuple[Sequence[str], str]]
) -> Optional[str]:
    if not text:
        return None
    lowered = str(text).lower()
    for keywords, category in rules:
        if any(keyword in lowered for keyword in keywords):
            return category
    return None


def classify(text: Optional[str]) -> str:
    """Map a free-text session or exam name onto a canonical category.

    Matching is a case-insensitive substring test against ``CATEGORY_RULES``
    in table order. Names that match nothing fall into ``"General"``.
    """

    return _first_match(text, CATEGORY_RULES) or DEFAULT_CATEGORY


def detect_category_in_question(question: Optional[str]) -> Optional[str]:
    """Return the category a learner's question refers to, if any."""

    rules = [(keywords, category) for category, keywords in QUESTION_KEYWORDS]
    return _first_match(question, rules)


def suggestions_for(category: str) -> List[str]:
    return list(CATEGORY_SUGGESTIONS.get(category, CATEGORY_SUGGESTIONS[DEFAULT_CATEGORY]))


__all__ = [
    "CATEGORY_RULES",
    "CATEGORY_SUGGESTIONS",
    "DEFAULT_CATEGORY",
    "KNOWN_CATEGORIES",
    "classify",
    "detect_category_in_question",
    "suggestions_for",
]
