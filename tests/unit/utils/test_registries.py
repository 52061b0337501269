"""Unit tests for nnetgraph.utils.registries module."""

import pytest

from nnetgraph.utils.registries import CaseInsensitiveRegistry


@pytest.mark.unit
def test_lookup_ignores_case():
    reg = CaseInsensitiveRegistry()
    reg.register("<AffineTransform>", 1)
    assert reg["<affinetransform>"] == 1
    assert "<AFFINETRANSFORM>" in reg
    assert reg.get("<Affinetransform>") == 1
    assert reg.get_original_key("<affinetransform>") == "<AffineTransform>"


@pytest.mark.unit
def test_missing_key():
    reg = CaseInsensitiveRegistry()
    assert reg.get("<Nope>", "fallback") == "fallback"
    assert 42 not in reg
    with pytest.raises(KeyError):
        reg["<Nope>"]


@pytest.mark.unit
def test_duplicate_registration_is_rejected():
    reg = CaseInsensitiveRegistry({"<Sigmoid>": 1})
    with pytest.raises(KeyError, match="Duplicate registry key"):
        reg.register("<SIGMOID>", 2)
    with pytest.raises(KeyError, match="collides"):
        reg["<sigmoid>"] = 3


@pytest.mark.unit
def test_delete_uses_original_key():
    reg = CaseInsensitiveRegistry({"<Tanh>": 1})
    del reg["<tanh>"]
    assert "<Tanh>" not in reg
    reg["<TANH>"] = 2
    assert reg["<tanh>"] == 2


@pytest.mark.unit
def test_non_string_keys_are_rejected():
    reg = CaseInsensitiveRegistry()
    with pytest.raises(TypeError, match="must be strings"):
        reg[1] = "x"
