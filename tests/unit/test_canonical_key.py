import pytest

from conjure.domain.value_objects.canonical_key import canonicalize_key, encode_remote_key


def test_canonicalize_key_strips_quotes_and_lowercases() -> None:
    assert canonicalize_key('  "Rain."\n') == "rain"
    assert canonicalize_key("Bouncy   Ball") == "bouncy ball"


def test_canonicalize_key_rejects_empty_output() -> None:
    with pytest.raises(ValueError):
        canonicalize_key(' "". ')


def test_encode_remote_key_replaces_forbidden_characters() -> None:
    assert encode_remote_key("a.b$c#d[e]f/g") == "a_b_c_d_e_f_g"
    assert encode_remote_key("rain cloud") == "rain cloud"
