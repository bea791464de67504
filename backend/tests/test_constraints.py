import string

from services.constraints import (
    build_matcher,
    expand_combinations,
    matches,
    parse_constraints,
    prefix_matches,
)

THI = (("t",), ("h",), ("i",))


def test_matches_accepts_longer_words():
    assert matches("think", THI) is True
    assert matches("Thin", THI) is True


def test_matches_rejects_words_shorter_than_constraints():
    assert matches("go", THI) is False
    assert matches("th", THI) is False


def test_matches_checks_every_position():
    assert matches("that", THI) is False
    assert matches("then", (("t", "w"), ("h",), ("a", "e"))) is True


def test_parse_structured_sequence():
    assert parse_constraints([["t", "h"], "AE"]) == (("h", "t"), ("a", "e"))


def test_parse_json_array_string():
    assert parse_constraints('["th", ["a", "e"]]') == (("h", "t"), ("a", "e"))


def test_parse_delimited_string():
    expected = (("h", "t"), ("a", "e"))
    assert parse_constraints("th|ae") == expected
    assert parse_constraints("th ae") == expected
    assert parse_constraints(" th | ae ") == expected


def test_single_token_means_no_ambiguity():
    assert parse_constraints("think") == ()
    assert parse_constraints("") == ()
    assert parse_constraints(None) == ()
    assert parse_constraints(42) == ()


def test_parse_drops_groups_without_letters():
    assert parse_constraints(["th", "12", "a"]) == (("h", "t"), ("a",))


def test_parse_undecodable_json_string_is_ignored():
    assert parse_constraints("[" + "9" * 5000 + "]") == ()


def test_expand_combinations_small():
    assert expand_combinations((("a", "b"), ("c",)), max_count=10) == ["ac", "bc"]


def test_expand_combinations_is_capped_on_huge_products():
    alphabet = tuple(string.ascii_lowercase)
    # 26 ** 12 combinations would never finish if materialized
    result = expand_combinations((alphabet,) * 12, max_count=5)
    assert result == ["aaaaaaaaaaaa", "aaaaaaaaaaab", "aaaaaaaaaaac", "aaaaaaaaaaad", "aaaaaaaaaaae"]


def test_expand_combinations_edge_cases():
    assert expand_combinations((), max_count=10) == []
    assert expand_combinations((("a",),), max_count=0) == []


def test_prefix_matching_is_case_insensitive():
    assert prefix_matches("Then", "th") is True
    assert prefix_matches("then", "TH") is True
    assert prefix_matches("a", "th") is False
    assert prefix_matches("anything", "") is True


def test_build_matcher_prefers_constraints_over_prefix():
    matcher = build_matcher((("w",),), prefix="th")
    assert matcher("want") is True
    assert matcher("the") is False

    plain = build_matcher((), prefix="th")
    assert plain("the") is True
    assert plain("want") is False
