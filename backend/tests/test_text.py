"""Tests for content helpers shared by post create and update."""
from app.utils.text import estimate_reading_time, extract_search_keywords, sanitize_content, sanitize_tags


def test_sanitize_content_collapses_whitespace():
    assert sanitize_content("  hello \n\n  world\t ") == "hello world"


def test_sanitize_tags_keeps_order_and_drops_empties():
    assert sanitize_tags([" Mental-Health ", "#fitness", "!!", "Diet2"]) == ["mentalhealth", "fitness", "diet2"]


def test_keywords_combine_tags_hashtags_and_words():
    keywords = extract_search_keywords("Try #Yoga today, yoga helps the BACK!", ["wellness"])

    assert keywords[:2] == ["wellness", "yoga"]
    assert "today" in keywords
    assert "helps" in keywords
    assert "back" in keywords
    # Short words and duplicates are left out
    assert "the" not in keywords
    assert keywords.count("yoga") == 1


def test_keywords_cap_content_words():
    content = " ".join(f"word{i:02d}" for i in range(30))

    assert len(extract_search_keywords(content, [])) == 10


def test_reading_time_rounds_up_with_a_floor():
    assert estimate_reading_time("short") == 1
    assert estimate_reading_time("word " * 200) == 1
    assert estimate_reading_time("word " * 201) == 2
