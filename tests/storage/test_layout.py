"""Tests for module file naming."""

import pytest

from hostkit.storage.layout import module_file_name


class TestModuleFileName:
    """Deterministic, collision-free file names."""

    @pytest.mark.parametrize("key", ["double", "my-unit", "unit_2", "ABC"])
    def test_safe_keys_map_directly(self, key: str) -> None:
        assert module_file_name(key) == f"{key}.module.py"

    def test_unsafe_key_is_slugified_with_digest(self) -> None:
        name = module_file_name("tools/fetch data")

        assert name.startswith("tools_fetch_data-")
        assert name.endswith(".module.py")
        assert ".." not in name and "/" not in name

    def test_distinct_unsafe_keys_never_collide(self) -> None:
        """Keys that slugify identically still get distinct files."""
        assert module_file_name("a/b") != module_file_name("a b")

    def test_is_deterministic(self) -> None:
        assert module_file_name("x.y") == module_file_name("x.y")
