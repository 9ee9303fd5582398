"""
清单加载与编辑

清单（extensions.toml 或 extensions.json）是 {单元名称: 条目} 的映射，条目为：
- true / false：启用 / 禁用
- 表 {enabled?, path?, local?}：未声明 enabled 时视为启用

ManifestLoader 读取清单和每个启用单元的描述文件，生成 UnitDescriptor；
ManifestEditor 对清单做幂等的读-改-写操作（添加、移除、启用、禁用）。
"""

import importlib.util
import json
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import tomlkit
from pydantic import ValidationError

from plugforge.core.descriptor import DescriptorFile, ManifestEntry, UnitDescriptor
from plugforge.core.errors import ManifestError
from plugforge.modules.config.toml_utils import (
    deep_merge,
    load_data_file,
    load_toml_with_comments,
    save_toml_with_comments,
)
from plugforge.modules.logging import get_logger

DESCRIPTOR_FILES = ("extension.toml", "extension.json")


class ManifestLoader:
    """
    清单加载器

    单元目录的定位规则：
    1. 条目声明了 path：相对于清单所在目录
    2. 条目声明了 local = true：本地扩展目录下的同名子目录
    3. 否则：同名的可导入 Python 包所在目录
    """

    def __init__(
        self,
        manifest_path: str | Path,
        local_path: Optional[str | Path] = None,
        settings: Optional[Mapping[str, Mapping[str, Any]]] = None,
    ):
        """
        Args:
            manifest_path: 清单文件路径
            local_path: 本地扩展单元目录，默认为清单目录下的 extensions/
            settings: 宿主配置中的 {单元名称: 配置}，覆盖描述文件中的默认配置
        """
        self.manifest_path = Path(manifest_path)
        self.local_path = Path(local_path) if local_path is not None else self.manifest_path.parent / "extensions"
        self.settings = dict(settings or {})
        self.logger = get_logger("ManifestLoader")

    def read_manifest(self) -> Dict[str, ManifestEntry]:
        """
        读取清单条目（保持清单中的顺序）

        Raises:
            ManifestError: 清单缺失、无法解析或条目无效
        """
        if not self.manifest_path.is_file():
            raise ManifestError(f"清单文件不存在: {self.manifest_path}")
        try:
            raw = load_data_file(self.manifest_path)
        except (OSError, ValueError) as e:
            raise ManifestError(f"清单文件无法解析 {self.manifest_path}: {e}") from e

        entries: Dict[str, ManifestEntry] = {}
        for name, value in raw.items():
            if not isinstance(value, (bool, dict)):
                raise ManifestError(f"清单条目 '{name}' 必须是布尔值或表, got {type(value).__name__}")
            try:
                entries[name] = ManifestEntry.parse(value)
            except ValidationError as e:
                raise ManifestError(f"清单条目 '{name}' 无效: {e}") from e
        return entries

    def locate_unit(self, name: str, entry: ManifestEntry) -> Path:
        """确定单元根目录"""
        if entry.path is not None:
            return (self.manifest_path.parent / entry.path).resolve()
        if entry.local:
            return (self.local_path / name).resolve()

        try:
            spec = importlib.util.find_spec(name)
        except (ImportError, ValueError) as e:
            raise ManifestError(f"无法定位扩展单元包 '{name}': {e}") from e
        if spec is None:
            raise ManifestError(f"扩展单元 '{name}' 既没有声明 path/local，也不是可导入的包")
        if spec.submodule_search_locations:
            return Path(list(spec.submodule_search_locations)[0]).resolve()
        if spec.origin:
            return Path(spec.origin).parent.resolve()
        raise ManifestError(f"无法确定扩展单元包 '{name}' 的目录")

    def load_descriptor(self, name: str, entry: ManifestEntry) -> UnitDescriptor:
        """
        读取单元描述文件并生成 UnitDescriptor

        Raises:
            ManifestError: 描述文件缺失、无法解析或校验失败
        """
        unit_path = self.locate_unit(name, entry)
        descriptor_path = next((unit_path / f for f in DESCRIPTOR_FILES if (unit_path / f).is_file()), None)
        if descriptor_path is None:
            raise ManifestError(f"扩展单元 '{name}' 的描述文件不存在于 {unit_path}")

        try:
            data = DescriptorFile.model_validate(load_data_file(descriptor_path))
        except (OSError, ValueError) as e:
            # pydantic 的 ValidationError 也是 ValueError
            raise ManifestError(f"扩展单元 '{name}' 的描述文件无效 {descriptor_path}: {e}") from e

        if data.name is not None and data.name != name:
            self.logger.warning(f"清单中的名称 ( {name} ) 与描述文件中的名称 ( {data.name} ) 不一致")

        config = deep_merge(data.config, self.settings.get(name, {}))
        self.logger.debug(f"扩展单元 '{name}' 合并后配置: {config}")
        return UnitDescriptor.from_file(name, unit_path, data, enabled=entry.enabled, config=config)

    def load(self) -> List[UnitDescriptor]:
        """
        读取清单和所有启用单元的描述

        Returns:
            List[UnitDescriptor]: 启用单元的描述，按清单顺序
        """
        entries = self.read_manifest()
        descriptors: List[UnitDescriptor] = []
        for name, entry in entries.items():
            if not entry.enabled:
                self.logger.info(f"扩展单元已禁用，跳过: {name}")
                continue
            descriptors.append(self.load_descriptor(name, entry))

        self.logger.info(f"清单加载完成: {len(descriptors)}/{len(entries)} 个扩展单元已启用")
        return descriptors


def _is_enabled(value: Any) -> bool:
    if isinstance(value, Mapping):
        return bool(value.get("enabled", True))
    return bool(value)


class ManifestEditor:
    """
    清单编辑器

    所有操作都是幂等的读-改-写，返回值表示文件是否被修改。
    TOML 清单通过 tomlkit 写回以保留注释。
    """

    def __init__(self, manifest_path: str | Path):
        self.manifest_path = Path(manifest_path)
        self.logger = get_logger("ManifestEditor")

    def _is_toml(self) -> bool:
        return self.manifest_path.suffix != ".json"

    def _read(self, create: bool = False):
        if not self.manifest_path.exists():
            if not create:
                raise ManifestError(f"清单文件不存在: {self.manifest_path}")
            return tomlkit.document() if self._is_toml() else {}
        try:
            if self._is_toml():
                return load_toml_with_comments(self.manifest_path)
            with open(self.manifest_path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            raise ManifestError(f"清单文件无法解析 {self.manifest_path}: {e}") from e
        if not isinstance(data, dict):
            raise ManifestError(f"清单文件 '{self.manifest_path}' 的根节点不是对象")
        return data

    def _write(self, data) -> None:
        self.manifest_path.parent.mkdir(parents=True, exist_ok=True)
        if self._is_toml():
            save_toml_with_comments(data, self.manifest_path)
        else:
            with open(self.manifest_path, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
                f.write("\n")

    def _not_added(self, name: str) -> None:
        self.logger.warning(f"扩展单元 {name} 不在清单中!")

    def entries(self) -> Dict[str, ManifestEntry]:
        """返回清单条目"""
        return ManifestLoader(self.manifest_path).read_manifest()

    def add(self, name: str, path: Optional[str] = None, local: bool = False) -> bool:
        """
        添加扩展单元（默认以 true 启用）

        Returns:
            bool: 是否添加；已在清单中时返回 False
        """
        data = self._read(create=True)
        if name in data:
            self.logger.info(f"扩展单元 {name} 已在清单中，未添加")
            return False

        if path is None and not local:
            data[name] = True
        else:
            entry: Dict[str, Any] = {}
            if path is not None:
                entry["path"] = path
            if local:
                entry["local"] = True
            data[name] = tomlkit.inline_table() if self._is_toml() else {}
            data[name].update(entry)

        self._write(data)
        self.logger.info(f"已添加扩展单元: {name}")
        return True

    def remove(self, name: str) -> bool:
        """移除扩展单元，不在清单中时返回 False"""
        data = self._read()
        if name not in data:
            self._not_added(name)
            return False

        del data[name]
        self._write(data)
        self.logger.info(f"已移除扩展单元: {name}")
        return True

    def enable(self, name: str) -> bool:
        """
        启用扩展单元

        表条目会删除 enabled 键（缺省即启用），使 disable 后再 enable 恢复原状。
        原本显式写出的 enabled = true 不会保留，解析结果不变。

        Returns:
            bool: 是否修改；已启用或不在清单中时返回 False
        """
        data = self._read()
        if name not in data:
            self._not_added(name)
            return False
        if _is_enabled(data[name]):
            self.logger.warning(f"扩展单元 {name} 已经启用!")
            return False

        if isinstance(data[name], Mapping):
            del data[name]["enabled"]
        else:
            data[name] = True

        self._write(data)
        self.logger.info(f"已启用扩展单元: {name}")
        return True

    def disable(self, name: str) -> bool:
        """
        禁用扩展单元

        Returns:
            bool: 是否修改；已禁用或不在清单中时返回 False
        """
        data = self._read()
        if name not in data:
            self._not_added(name)
            return False
        if not _is_enabled(data[name]):
            self.logger.warning(f"扩展单元 {name} 已经禁用!")
            return False

        if isinstance(data[name], Mapping):
            data[name]["enabled"] = False
        else:
            data[name] = False

        self._write(data)
        self.logger.info(f"已禁用扩展单元: {name}")
        return True


__all__ = ["DESCRIPTOR_FILES", "ManifestLoader", "ManifestEditor"]
