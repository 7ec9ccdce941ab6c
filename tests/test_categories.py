import pytest

from engines.categories import (
    CATEGORY_RULES,
    DEFAULT_CATEGORY,
    KNOWN_CATEGORIES,
    classify,
    detect_category_in_question,
    suggestions_for,
)


@pytest.mark.parametrize(
    "keyword,category",
    [(keyword, category) for keywords, category in CATEGORY_RULES for keyword in keywords],
)
def test_every_keyword_maps_in_any_case(keyword, category):
    assert classify(f"Mock {keyword} test") == category
    assert classify(f"Mock {keyword.upper()} test") == category
    assert classify(keyword.title()) == category


@pytest.mark.parametrize("name", ["Random Quiz", "Weekly Mock 3", "", None])
def test_unmatched_names_fall_back_to_general(name):
    assert classify(name) == DEFAULT_CATEGORY


def test_table_order_breaks_ties():
    # "political" (Polity) is checked before "science".
    assert classify("Political Science Mains") == "Polity"
    # "history" is checked before "economic".
    assert classify("Economic History Prelims") == "History"
    # "grammar" (English) beats "gk".
    assert classify("GK and Grammar Combo") == "English"
    # "geo" is a substring rule, so Geology lands in Geography.
    assert classify("Geology Basics") == "Geography"


def test_end_to_end_names():
    assert classify("History Prelims") == "History"
    assert classify("History Mains") == "History"
    assert classify("Economy Test") == "Economy"
    assert classify("Current Affairs - March") == "Current Affairs"
    assert classify("Maths Drill") == "Aptitude"


def test_known_categories_follow_table_then_general():
    assert KNOWN_CATEGORIES[0] == "English"
    assert KNOWN_CATEGORIES[-1] == DEFAULT_CATEGORY
    assert len(KNOWN_CATEGORIES) == len(CATEGORY_RULES) + 1


def test_detect_category_in_question_uses_looser_vocabulary():
    assert detect_category_in_question("How is my historical knowledge?") == "History"
    assert detect_category_in_question("Tips for general knowledge?") == "Current Affairs"
    assert detect_category_in_question("What about farming questions?") == "Agriculture"
    assert detect_category_in_question("Am I good at mathematics?") == "Aptitude"
    assert detect_category_in_question("What's the plan for today?") is None
    assert detect_category_in_question("") is None


def test_suggestions_fall_back_to_general_list():
    assert suggestions_for("History")[0] == "Create chronological timelines of major events"
    assert suggestions_for("Marathi") == suggestions_for(DEFAULT_CATEGORY)
    # Callers get a copy they can mutate freely.
    tips = suggestions_for("English")
    tips.clear()
    assert suggestions_for("English")
