from services.text import last_token, normalize_alpha, tokenize


def test_normalize_alpha_keeps_only_lowercase_letters():
    assert normalize_alpha("Hello, World 42!") == "helloworld"
    assert normalize_alpha("") == ""
    assert normalize_alpha(None) == ""


def test_tokenize_extracts_letter_runs_in_order():
    assert tokenize("I'm  going HOME.") == ["i", "m", "going", "home"]


def test_tokenize_blank_input_is_empty():
    assert tokenize("   \n\t") == []
    assert tokenize(None) == []


def test_last_token():
    assert last_token("I want to ") == "to"
    assert last_token("...") == ""
