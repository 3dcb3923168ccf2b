"""Unit tests for the post-submission transform."""

import pytest

from formruntime.transform import unflatten


class TestUnflatten:
    """Test unflatten."""

    def test_nested_keys(self):
        """Should nest dotted keys."""
        assert unflatten({"a.b.c": 1, "a.d": 2, "e": 3}) == {"a": {"b": {"c": 1}, "d": 2}, "e": 3}

    def test_custom_separator(self):
        """Should split on the given separator."""
        assert unflatten({"a/b": 1}, separator="/") == {"a": {"b": 1}}

    def test_conflicting_keys(self):
        """Should reject keys that are both a value and a parent."""
        with pytest.raises(ValueError):
            unflatten({"a": 1, "a.b": 2})
        with pytest.raises(ValueError):
            unflatten({"a.b": 2, "a": 1})
