"""
hostwatch 命令行入口模块。

提供 CLI 命令：disk（本地磁盘空间检查）、poll（主机 CPU 巡检并发送告警）
和 check（验证配置文件）。
"""
import asyncio
import json
import logging
import sys

import click

from hostwatch import __version__
from hostwatch.config import DEFAULT_CONFIG_PATH, MonitorConfig, load_config
from hostwatch.errors import ConfigError, HostwatchError

# disk 命令在剩余空间低于阈值时的退出码
EXIT_DISK_LOW = 2


def _load(config_path: str, required: bool = True) -> MonitorConfig:
    """加载配置，失败时输出错误并退出。"""
    try:
        return load_config(config_path)
    except FileNotFoundError as e:
        if not required:
            return MonitorConfig()
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    except ConfigError as e:
        click.echo(f"Error: {e.message}", err=True)
        sys.exit(e.exit_code)


@click.group(invoke_without_command=True)
@click.option("--config", "-c", default=DEFAULT_CONFIG_PATH, help="Config file path")
@click.option("--verbose", "-v", is_flag=True, help="Verbose output")
@click.version_option(version=__version__)
@click.pass_context
def cli(ctx, config, verbose):
    """hostwatch - 磁盘空间检查与主机 CPU 巡检告警。"""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config
    ctx.obj["verbose"] = verbose

    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    # paramiko 的调试日志过于冗长
    logging.getLogger("paramiko").setLevel(logging.WARNING)

    # 未指定子命令时，显示基本信息
    if ctx.invoked_subcommand is None:
        click.echo(f"hostwatch v{__version__}")
        click.echo(f"Config: {config}")
        click.echo("Use --help for available commands")


@cli.command()
@click.option("--path", "-p", default=None, help="Mount point to check (default from config or /)")
@click.option("--threshold", "-t", type=click.FloatRange(0, 100), default=None,
              help="Minimum free space percentage")
@click.pass_context
def disk(ctx, path, threshold):
    """检查本地磁盘剩余空间。"""
    from hostwatch.disk import check_disk, format_disk_status

    cfg = _load(ctx.obj["config_path"], required=False)
    path = path or cfg.disk.path
    threshold = cfg.disk.threshold if threshold is None else threshold

    try:
        status = check_disk(path, threshold)
    except HostwatchError as e:
        click.echo(f"Error: {e.message}", err=True)
        sys.exit(e.exit_code)

    click.echo(format_disk_status(status))
    if status.below_threshold:
        sys.exit(EXIT_DISK_LOW)


@cli.command()
@click.option("--dry-run", is_flag=True, help="Print the alert instead of emailing it")
@click.option("--json", "as_json", is_flag=True, help="Print host results as JSON")
@click.pass_context
def poll(ctx, dry_run, as_json):
    """巡检所有主机的 CPU 使用率，超阈值时发送告警邮件。"""
    from hostwatch.alerting import dispatch_alerts
    from hostwatch.fleet import poll_fleet

    logger = logging.getLogger("hostwatch")
    cfg = _load(ctx.obj["config_path"])
    if not cfg.hosts:
        click.echo("Error: No hosts configured. Set hosts in config.", err=True)
        sys.exit(1)

    logger.info(f"Starting hostwatch v{__version__}")
    logger.info(f"Hosts: {', '.join(cfg.hosts)}")
    logger.info(f"Threshold: {cfg.threshold:g}%")
    logger.info(f"Sampling: {cfg.sample_count} x {cfg.sample_interval}s")

    results = asyncio.run(poll_fleet(cfg))

    if as_json:
        click.echo(json.dumps([r.model_dump() for r in results], indent=2))
    else:
        for r in results:
            click.echo(r.summary())

    try:
        outcome = asyncio.run(dispatch_alerts(results, cfg.smtp, dry_run=dry_run))
    except HostwatchError as e:
        click.echo(f"Error: {e.message}", err=True)
        sys.exit(e.exit_code)

    if as_json:
        return
    if dry_run and outcome.body:
        click.echo(outcome.body)
    click.echo(outcome.message)


@cli.command()
@click.pass_context
def check(ctx):
    """验证配置文件是否正确。"""
    config_path = ctx.obj["config_path"]
    try:
        cfg = load_config(config_path)
        click.echo(f"✅ Config OK: {config_path}")
        click.echo(f"   Hosts: {len(cfg.hosts)}")
        click.echo(f"   CPU threshold: {cfg.threshold:g}%")
        click.echo(f"   Sampling: {cfg.sample_count} x {cfg.sample_interval}s "
                   f"(host timeout {cfg.effective_host_timeout}s)")
        click.echo(f"   SMTP: {cfg.smtp.server}:{cfg.smtp.port} -> {', '.join(cfg.smtp.recipients) or '(none)'}")
        click.echo(f"   Disk: {cfg.disk.path} (min free {cfg.disk.threshold:g}%)")
    except Exception as e:
        click.echo(f"❌ Config error: {e}", err=True)
        sys.exit(1)


def main():
    """CLI 入口函数。"""
    cli()


if __name__ == "__main__":
    main()
