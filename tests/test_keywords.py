from prospect_finder.services.keywords import (
    KEYWORD_GROUPS,
    expand_keywords,
    keywords_for_title,
    match_keywords,
)


def test_expand_replaces_seed_with_its_whole_group():
    expanded = expand_keywords(["web developer"])
    assert expanded == ["web developer", "développeur web", "web dev"]


def test_expand_matches_groups_case_insensitively():
    expanded = expand_keywords(["Développeur Web"])
    assert "web developer" in expanded
    assert "web dev" in expanded


def test_expand_keeps_unknown_seed():
    assert expand_keywords(["growth hacker"]) == ["growth hacker"]


def test_expand_deduplicates_across_seeds():
    expanded = expand_keywords(["web developer", "web dev", "WEB DEVELOPER"])
    assert len(expanded) == len({k.lower() for k in expanded}) == 3


def test_expand_is_idempotent():
    once = expand_keywords(["react developer", "growth hacker", "devops"])
    twice = expand_keywords(once)
    assert set(twice) == set(once)


def test_expand_skips_blank_seeds():
    assert expand_keywords(["  ", "scrum master"]) == ["scrum master"]


def test_expand_is_idempotent_past_the_seed_limit():
    seeds = ["front-end developer", "back-end developer", "full-stack developer", "javascript developer"]
    once = expand_keywords(seeds)
    assert len(once) == 24
    assert expand_keywords(once) == once


def test_every_group_variant_expands_back_to_its_group():
    for group in KEYWORD_GROUPS:
        for variant in group:
            assert set(group) <= set(expand_keywords([variant]))


def test_match_keywords_verbatim():
    assert match_keywords("Senior Web Developer (m/f)", ["web developer"]) == ["web developer"]


def test_match_keywords_by_significant_word():
    # "developer" is long enough to count on its own
    assert match_keywords("Python Developer", ["web developer"]) == ["web developer"]


def test_match_keywords_ignores_short_words():
    assert match_keywords("Web Designer", ["web dev"]) == []


def test_keywords_for_title_falls_back_to_seed():
    assert keywords_for_title("Office Manager", ["react developer"], "react developer") == ["react developer"]
    matched = keywords_for_title("React Developer", ["react developer", "react dev", "vue dev"], "vue dev")
    assert matched == ["react developer", "react dev"]
