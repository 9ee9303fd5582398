"""plugforge 命令行入口"""

import argparse
import asyncio
import sys
from typing import List, Optional

from plugforge.core.errors import PlugforgeError
from plugforge.core.host import ExtensionHost
from plugforge.core.manifest import ManifestEditor
from plugforge.modules.logging import configure_from_config, get_logger

logger = get_logger("CLI")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="plugforge", description="plugforge 扩展单元管理工具")
    parser.add_argument("-c", "--config-dir", default=".", help="配置目录（包含 config.toml），默认为当前目录")
    parser.add_argument("--mode", default=None, help="运行模式: dev 或 prod（默认读取 PLUGFORGE_ENV）")
    # 添加 --debug 参数，用于控制日志级别
    parser.add_argument("--debug", action="store_true", help="启用 DEBUG 级别日志输出")
    parser.add_argument(
        "--filter",
        nargs="+",
        metavar="MODULE_NAME",
        help="仅显示指定模块的 INFO/DEBUG 级别日志 (WARNING 及以上级别总是显示)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    add_parser = subparsers.add_parser("add", help="把扩展单元添加到清单")
    add_parser.add_argument("name")
    add_parser.add_argument("--path", default=None, help="单元目录，相对于清单所在目录")
    add_parser.add_argument("--local", action="store_true", help="单元位于本地扩展目录")

    for command, help_text in (
        ("remove", "从清单中移除扩展单元"),
        ("enable", "启用扩展单元"),
        ("disable", "禁用扩展单元"),
    ):
        sub = subparsers.add_parser(command, help=help_text)
        sub.add_argument("name")

    subparsers.add_parser("list", help="列出清单中的扩展单元")
    subparsers.add_parser("load", help="加载所有启用的扩展单元并输出加载顺序")
    return parser


def _configure_logging(host: ExtensionHost, args: argparse.Namespace) -> None:
    if not (args.debug or args.filter):
        return
    log_config = host.config_service.host_config.log.model_dump()
    if args.debug:
        log_config["console_level"] = "DEBUG"
    if args.filter:
        log_config["filter"] = list(args.filter)
    configure_from_config(log_config)


async def _load(host: ExtensionHost) -> None:
    try:
        await host.load_extensions()
        print(" -> ".join(host.load_order))
    finally:
        await host.stop()


def run(args: argparse.Namespace) -> int:
    host = ExtensionHost.from_config_dir(args.config_dir, args.mode)
    _configure_logging(host, args)

    if args.command == "add":
        changed = host.add_extension(args.name, path=args.path, local=args.local)
    elif args.command == "remove":
        changed = host.remove_extension(args.name)
    elif args.command == "enable":
        changed = host.enable_extension(args.name)
    elif args.command == "disable":
        changed = host.disable_extension(args.name)
    elif args.command == "list":
        for name, entry in ManifestEditor(host.manifest_path).entries().items():
            state = "enabled" if entry.enabled else "disabled"
            location = f" ({entry.path})" if entry.path else (" (local)" if entry.local else "")
            print(f"{name}: {state}{location}")
        return 0
    else:
        asyncio.run(_load(host))
        return 0

    if not changed:
        logger.info(f"清单未修改: {args.command} {args.name}")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        return run(args)
    except PlugforgeError as e:
        logger.error(str(e))
        return 1


if __name__ == "__main__":
    sys.exit(main())
