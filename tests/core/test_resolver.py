"""
入口点解析测试
"""

import json

import pytest

from plugforge.core.errors import ManifestError
from plugforge.core.resolver import ImportResolver, RegistryResolver


class TestImportResolver:
    """测试 ImportResolver"""

    def test_file_entry(self, tmp_path):
        (tmp_path / "plugin.py").write_text("class Unit:\n    pass\n", encoding="utf-8")

        factory = ImportResolver().resolve("plugin.py:Unit", tmp_path)

        assert factory.__name__ == "Unit"

    def test_default_attribute(self, tmp_path):
        (tmp_path / "plugin.py").write_text(
            "def make(host, context):\n    return None\n\nplugin_entrypoint = make\n", encoding="utf-8"
        )

        factory = ImportResolver().resolve("plugin.py", tmp_path)

        assert factory.__name__ == "make"

    def test_module_entry(self, tmp_path):
        assert ImportResolver().resolve("json:loads", tmp_path) is json.loads

    def test_missing_file(self, tmp_path):
        with pytest.raises(ManifestError):
            ImportResolver().resolve("missing.py:Unit", tmp_path)

    def test_missing_module(self, tmp_path):
        with pytest.raises(ManifestError):
            ImportResolver().resolve("plugforge_no_such_module:Unit", tmp_path)

    def test_missing_attribute(self, tmp_path):
        (tmp_path / "plugin.py").write_text("VALUE = 1\n", encoding="utf-8")

        with pytest.raises(ManifestError):
            ImportResolver().resolve("plugin.py:Unit", tmp_path)

    def test_not_callable(self, tmp_path):
        (tmp_path / "plugin.py").write_text("VALUE = 1\n", encoding="utf-8")

        with pytest.raises(ManifestError):
            ImportResolver().resolve("plugin.py:VALUE", tmp_path)

    def test_import_error_in_file(self, tmp_path):
        (tmp_path / "plugin.py").write_text("raise ImportError('nope')\n", encoding="utf-8")

        with pytest.raises(ManifestError):
            ImportResolver().resolve("plugin.py:Unit", tmp_path)


class TestRegistryResolver:
    """测试 RegistryResolver"""

    def test_registered(self, tmp_path):
        resolver = RegistryResolver()
        resolver.register("unit", dict)

        assert resolver.resolve("unit", tmp_path) is dict

    def test_register_rejects_non_callable(self):
        with pytest.raises(TypeError):
            RegistryResolver().register("unit", 1)

    def test_unregistered_without_fallback(self, tmp_path):
        with pytest.raises(ManifestError):
            RegistryResolver().resolve("unit", tmp_path)

    def test_fallback(self, tmp_path):
        resolver = RegistryResolver(fallback=ImportResolver())

        assert resolver.resolve("json:dumps", tmp_path) is json.dumps
