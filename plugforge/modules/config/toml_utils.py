"""TOML / JSON 文件处理工具模块

读取使用 tomllib，写回使用 tomlkit 以保留注释和格式。
"""

import copy
import json
import tomllib
from pathlib import Path
from typing import Any, Dict, Mapping

import tomlkit


def load_toml_with_comments(toml_path: str | Path) -> tomlkit.TOMLDocument:
    """加载TOML文件并保留注释和格式"""
    with open(toml_path, "r", encoding="utf-8") as f:
        return tomlkit.load(f)


def save_toml_with_comments(data: tomlkit.TOMLDocument, toml_path: str | Path) -> None:
    """保存TOML文件，保留注释和格式"""
    with open(toml_path, "w", encoding="utf-8") as f:
        f.write(tomlkit.dumps(data))


def load_data_file(path: str | Path) -> Dict[str, Any]:
    """
    按扩展名加载 .toml 或 .json 文件为普通字典

    Raises:
        OSError: 文件无法读取
        ValueError: 内容无法解析或根节点不是表
    """
    path = Path(path)
    if path.suffix == ".json":
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    else:
        with open(path, "rb") as f:
            data = tomllib.load(f)

    if not isinstance(data, dict):
        raise ValueError(f"文件 '{path}' 的根节点不是表/对象")
    return data


def deep_merge(base: Mapping[str, Any], override: Mapping[str, Any]) -> Dict[str, Any]:
    """递归合并两个字典，override 中的值优先"""
    result = copy.deepcopy(dict(base))
    for key, value in override.items():
        if isinstance(value, Mapping) and isinstance(result.get(key), Mapping):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = copy.deepcopy(value)
    return result


__all__ = ["load_toml_with_comments", "save_toml_with_comments", "load_data_file", "deep_merge"]
