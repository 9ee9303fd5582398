"""
覆盖解析测试

测试单元覆盖、文件覆盖、冲突警告和无效覆盖声明
"""

import pytest
from pydantic import ValidationError

from plugforge.core.descriptor import (
    ROOT_MODULE_TYPE,
    DescriptorFile,
    OverrideDeclaration,
    OverridesSchema,
    UnitDescriptor,
)
from plugforge.core.errors import ManifestError, UnknownUnitError
from plugforge.core.overrides import OverrideResolver, normalize_relative


def _unit(name, tmp_path=None, **overrides):
    path = tmp_path / name if tmp_path is not None else None
    kwargs = {"path": path} if path is not None else {}
    return UnitDescriptor(name=name, overrides=OverrideDeclaration(**overrides), **kwargs)


class TestUnitOverrides:
    """测试单元级覆盖"""

    def test_unit_override_registered(self):
        table = OverrideResolver().resolve([_unit("core"), _unit("ext", unit_target="core")])

        assert dict(table.unit_overrides) == {"core": "ext"}
        assert table.overrider_of("core") == "ext"
        assert table.target_of("ext") == "core"
        assert table.is_override_source("ext")
        assert not table.is_override_source("core")
        assert table.effective_unit("core") == "ext"
        assert table.effective_unit("other") == "other"
        assert table.collisions == ()

    def test_unit_override_with_entry(self):
        schema = OverridesSchema(unit={"core": "alt.py:AltUnit"})
        ext = UnitDescriptor(name="ext", overrides=OverrideDeclaration.from_schema(schema))

        table = OverrideResolver().resolve([_unit("core"), ext])

        assert table.overrider_of("core") == "ext"
        assert table.entry_overrides["ext"] == "alt.py:AltUnit"

    def test_collision_warns_and_last_wins(self, log_messages):
        units = [_unit("core"), _unit("first", unit_target="core"), _unit("second", unit_target="core")]

        table = OverrideResolver().resolve(units)

        assert table.overrider_of("core") == "second"
        assert len(table.collisions) == 1
        collision = table.collisions[0]
        assert (collision.winner, collision.loser) == ("second", "first")
        warnings = [m for m in log_messages if "OverrideCollisionWarning" in m]
        assert len(warnings) == 1
        assert "first" in warnings[0] and "second" in warnings[0]

    def test_collision_loser_is_not_a_source(self):
        units = [_unit("core"), _unit("first", unit_target="core"), _unit("second", unit_target="core")]

        table = OverrideResolver().resolve(units)

        assert not table.is_override_source("first")
        assert table.is_override_source("second")

    def test_unknown_target(self):
        with pytest.raises(UnknownUnitError) as exc_info:
            OverrideResolver().resolve([_unit("ext", unit_target="missing")])

        assert exc_info.value.name == "missing"

    def test_disabled_target_is_unknown(self):
        core = UnitDescriptor(name="core", enabled=False)

        with pytest.raises(UnknownUnitError):
            OverrideResolver().resolve([core, _unit("ext", unit_target="core")])

    def test_known_units_argument(self):
        table = OverrideResolver(known_units=["core", "ext"]).resolve([_unit("ext", unit_target="core")])

        assert table.overrider_of("core") == "ext"

    def test_self_override(self):
        with pytest.raises(ManifestError):
            OverrideResolver().resolve([_unit("core", unit_target="core")])

    def test_override_chain_rejected(self):
        units = [_unit("c"), _unit("b", unit_target="c"), _unit("a", unit_target="b")]

        with pytest.raises(ManifestError):
            OverrideResolver().resolve(units)


class TestFileOverrides:
    """测试文件级覆盖"""

    def test_module_file_override(self, tmp_path):
        ext = _unit("ext", tmp_path, modules={"routes": {"core": {"index.py": "overrides/index.py"}}})

        table = OverrideResolver().resolve([_unit("core", tmp_path), ext])

        expected = (tmp_path / "ext" / "overrides" / "index.py").resolve()
        assert table.resolve_file("routes", "core", "index.py") == expected
        assert table.resolve_file("routes", "core", "./index.py") == expected
        assert table.resolve_file("routes", "core", "about.py") is None
        assert table.resolve_file("models", "core", "index.py") is None

    def test_root_file_override(self, tmp_path):
        ext = _unit("ext", tmp_path, files={"core": {"templates/base.html": "tpl/base.html"}})

        table = OverrideResolver().resolve([_unit("core", tmp_path), ext])

        assert table.file_overrides[(ROOT_MODULE_TYPE, "core", "templates/base.html")] == (
            tmp_path / "ext" / "tpl" / "base.html"
        ).resolve()

    def test_file_collision_warns_naming_loser(self, tmp_path, log_messages):
        first = _unit("first", tmp_path, modules={"routes": {"core": {"index.py": "index.py"}}})
        second = _unit("second", tmp_path, modules={"routes": {"core": {"index.py": "index.py"}}})

        table = OverrideResolver().resolve([_unit("core", tmp_path), first, second])

        assert table.resolve_file("routes", "core", "index.py") == (tmp_path / "second" / "index.py").resolve()
        assert len(table.collisions) == 1
        assert str((tmp_path / "first" / "index.py").resolve()) == table.collisions[0].loser
        assert any("OverrideCollisionWarning" in m and "first" in m for m in log_messages)

    def test_file_override_of_unloaded_unit_is_kept(self, tmp_path):
        ext = _unit("ext", tmp_path, files={"other": {"a.txt": "a.txt"}})

        table = OverrideResolver().resolve([ext])

        assert table.resolve_file(ROOT_MODULE_TYPE, "other", "a.txt") is not None

    def test_table_is_read_only(self):
        table = OverrideResolver().resolve([_unit("core"), _unit("ext", unit_target="core")])

        with pytest.raises(TypeError):
            table.unit_overrides["core"] = "other"


class TestOverridesSchema:
    """测试描述文件中的覆盖声明校验"""

    def test_single_target_only(self):
        with pytest.raises(ValidationError):
            DescriptorFile.model_validate({"overrides": {"unit": {"a": "x.py", "b": "y.py"}}})

    def test_unknown_keys_rejected(self):
        with pytest.raises(ValidationError):
            DescriptorFile.model_validate({"overrides": {"plugin": "core"}})

    def test_file_entries(self):
        declaration = OverrideDeclaration.from_schema(
            OverridesSchema(
                unit="core",
                modules={"routes": {"core": {"a.py": "b.py"}}},
                files={"core": {"c.txt": "d.txt"}},
            )
        )

        assert declaration.unit_target == "core"
        assert declaration.unit_entry is None
        assert list(declaration.file_entries()) == [
            ("routes", "core", "a.py", "b.py"),
            (ROOT_MODULE_TYPE, "core", "c.txt", "d.txt"),
        ]

    def test_normalize_relative(self):
        assert normalize_relative("./a//b.py") == "a/b.py"
        assert normalize_relative("a\\b.py") == "a/b.py"
