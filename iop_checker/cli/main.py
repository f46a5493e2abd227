#!/usr/bin/env python3
"""
IstioOperator 安装校验工具

子命令:
- verify: 状态检查 + Pod 就绪 + manifest 比对
- status: 检查 IstioOperator 状态 (--file 时离线解析)
- diff:   只做 manifest 比对
- kinds:  列出已注册的资源类型
"""

import argparse
import logging
import sys
from typing import Optional

from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from iop_checker.collectors.k8s_client import KubectlWrapper
from iop_checker.config import VerifierSettings
from iop_checker.manifest.differ import default_registry, reconcile
from iop_checker.status.aggregator import (
    aggregate,
    check_install_status,
    decode_install_status,
    decode_status_document,
    load_document,
)
from iop_checker.status.models import InstallStatus, InstallStatusReport
from iop_checker.utils.errors import DecodeError, UnhealthyError, VerifyError
from iop_checker.verifier import verify_installation


load_dotenv()

console = Console()


def print_header(title: str):
    """打印标题"""
    console.print()
    console.print(Panel(f"[bold cyan]{title}[/bold cyan]", expand=False))
    console.print()


def print_error(error: VerifyError):
    console.print(f"[red]❌ {escape(error.message)}[/red]")
    if isinstance(error, UnhealthyError):
        for item in error.errors:
            console.print(f"   • {escape(item)}")
    if error.details:
        for k, v in error.details.items():
            console.print(f"[dim]   {k}: {escape(str(v))}[/dim]")
    console.print()


def print_status_report(report: InstallStatusReport):
    """以表格形式打印根状态和组件状态"""
    table = Table(title="IstioOperator 状态")
    table.add_column("实体")
    table.add_column("状态")

    def _styled(status: InstallStatus) -> str:
        color = "green" if status == InstallStatus.HEALTHY else "red"
        return f"[{color}]{status.value}[/{color}]"

    table.add_row("[bold]IstioOperator[/bold]", _styled(report.status))
    for name, status in sorted(report.components.items()):
        table.add_row(escape(name), _styled(status))
    console.print(table)
    console.print()


def read_input(path: str) -> str:
    """读取文件内容, "-" 表示从标准输入读取

    Raises:
        DecodeError: 内容不是合法的 UTF-8 文本
    """
    try:
        if path == "-":
            return sys.stdin.read()
        with open(path, "r", encoding="utf-8") as f:
            return f.read()
    except UnicodeDecodeError as e:
        raise DecodeError(f"input is not valid UTF-8 text: {e}", source=path) from e


def _settings_from_args(args) -> VerifierSettings:
    return VerifierSettings.from_env().override(
        kube_context=args.context,
        namespace=args.namespace,
        iop_name=getattr(args, "iop_name", None),
        status_timeout=getattr(args, "status_timeout", None),
        status_delay=getattr(args, "status_delay", None),
        object_timeout=getattr(args, "object_timeout", None),
        object_delay=getattr(args, "object_delay", None),
    )


def _client(settings: VerifierSettings) -> KubectlWrapper:
    return KubectlWrapper(context=settings.kube_context, kubectl=settings.kubectl)


def cmd_verify(args) -> int:
    """执行完整校验"""
    print_header("🚀 IstioOperator 安装校验")
    settings = _settings_from_args(args)
    manifest = read_input(args.manifest)

    console.print(f"[dim]命名空间: {settings.namespace}, CR: {settings.iop_name}[/dim]")
    console.print()

    result = verify_installation(
        _client(settings),
        manifest,
        status_policy=settings.status_policy(),
        object_policy=settings.object_policy(),
        target=settings.status_target(),
        fail_fast=not args.collect_all,
    )

    print_status_report(result.status)
    console.print(f"[green]✅ Pod 就绪: {len(result.ready_pods)}[/green]")
    console.print(f"[green]✅ 已校验对象: {len(result.reconcile.verified)}[/green]")
    if result.reconcile.skipped:
        kinds = sorted({obj.kind for obj in result.reconcile.skipped})
        console.print(
            f"[yellow]⚠️  跳过 {len(result.reconcile.skipped)} 个未注册类型的对象: {', '.join(kinds)}[/yellow]"
        )
    print_header("✨ 校验完成")
    return 0


def cmd_status(args) -> int:
    """检查 IstioOperator 状态"""
    print_header("📊 IstioOperator 状态检查")

    if args.file:
        # 离线模式: 解析文件, 不访问集群
        document = load_document(read_input(args.file))
        if isinstance(document, dict) and ("kind" in document or "metadata" in document):
            report = decode_install_status(document)
            if report is None:
                console.print("[yellow]⚠️  CR 中尚未上报 status[/yellow]")
                return 1
        else:
            report = decode_status_document(document)

        print_status_report(report)
        errs = aggregate(report.status, report.components)
        if errs:
            print_error(errs.to_error())
            return 1
        console.print("[green]✅ 全部健康[/green]")
        return 0

    settings = _settings_from_args(args)
    report = check_install_status(
        _client(settings), settings.status_policy(), settings.status_target()
    )
    print_status_report(report)
    console.print("[green]✅ 全部健康[/green]")
    return 0


def cmd_diff(args) -> int:
    """比对生成的 manifest 与集群资源"""
    print_header("🔍 manifest 比对")
    settings = _settings_from_args(args)
    manifest = read_input(args.manifest)

    report = reconcile(
        manifest,
        _client(settings),
        settings.object_policy(),
        fail_fast=not args.collect_all,
    )
    console.print(f"[green]✅ 已校验对象: {len(report.verified)}[/green]")
    for obj in report.skipped:
        console.print(f"[dim]   跳过: {obj.key}[/dim]")
    return 0


def cmd_kinds(args) -> int:
    """列出已注册的资源类型"""
    for kind in default_registry().kinds():
        console.print(kind)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="iop-checker",
        description="IstioOperator 安装校验工具",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
示例:
  istioctl manifest generate | %(prog)s verify --manifest -
  %(prog)s status --file iop.yaml
  %(prog)s diff --manifest generated.yaml --collect-all
        """
    )
    parser.add_argument("--context", help="kubeconfig context")
    parser.add_argument("--namespace", help="IstioOperator CR 及控制面所在命名空间")
    parser.add_argument("-v", "--verbose", action="store_true", help="输出调试日志")

    subparsers = parser.add_subparsers(dest="command", required=True)

    verify = subparsers.add_parser("verify", help="完整校验")
    verify.add_argument("--manifest", required=True, help="生成的 manifest 文件 (- 表示标准输入)")
    verify.add_argument("--iop-name", help="IstioOperator CR 名称")
    verify.add_argument("--collect-all", action="store_true", help="收集全部缺失对象后再报告")
    _add_policy_args(verify, status=True, objects=True)
    verify.set_defaults(func=cmd_verify)

    status = subparsers.add_parser("status", help="检查 IstioOperator 状态")
    status.add_argument("--file", help="离线解析 CR 或状态文档 (- 表示标准输入)")
    status.add_argument("--iop-name", help="IstioOperator CR 名称")
    _add_policy_args(status, status=True, objects=False)
    status.set_defaults(func=cmd_status)

    diff = subparsers.add_parser("diff", help="比对 manifest 与集群资源")
    diff.add_argument("--manifest", required=True, help="生成的 manifest 文件 (- 表示标准输入)")
    diff.add_argument("--collect-all", action="store_true", help="收集全部缺失对象后再报告")
    _add_policy_args(diff, status=False, objects=True)
    diff.set_defaults(func=cmd_diff)

    kinds = subparsers.add_parser("kinds", help="列出已注册的资源类型")
    kinds.set_defaults(func=cmd_kinds)

    return parser


def _add_policy_args(parser: argparse.ArgumentParser, status: bool, objects: bool):
    if status:
        parser.add_argument("--status-timeout", type=float, help="状态轮询超时 (秒)")
        parser.add_argument("--status-delay", type=float, help="状态轮询间隔 (秒)")
    if objects:
        parser.add_argument("--object-timeout", type=float, help="单个对象轮询超时 (秒)")
        parser.add_argument("--object-delay", type=float, help="单个对象轮询间隔 (秒)")


def setup_logging(verbose: bool = False):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=verbose)],
    )


def main(argv: Optional[list] = None) -> int:
    """CLI 主入口"""
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.verbose)

    try:
        return args.func(args)
    except VerifyError as e:
        print_error(e)
        return 1
    except OSError as e:
        console.print(f"[red]❌ 读取输入失败: {escape(str(e))}[/red]")
        return 1
    except KeyboardInterrupt:
        console.print("\n[yellow]⚠️  用户中断[/yellow]")
        return 1


if __name__ == "__main__":
    sys.exit(main())
