#!filepath: flowexpect/cli.py
from typing import List, Optional

import pytest
import typer
from rich import print

from flowexpect import __version__
from flowexpect.config import AppConfig

app = typer.Typer(help="flowexpect test runner")


@app.command()
def version():
    print(f"v{__version__}")


@app.command()
def run(
    paths: Optional[List[str]] = typer.Argument(None, help="test files or directories"),
    detail_level: Optional[int] = typer.Option(None, "--detail-level", "-l", min=0, help="highest detail level to run"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="flowexpect YAML config"),
    timeout: Optional[float] = typer.Option(None, "--timeout", "-t", help="per-test flow timeout (s)"),
    pytest_args: Optional[List[str]] = typer.Option(None, "--pytest-arg", "-p", help="extra argument for pytest"),
):
    """
    运行测试（pytest + flowexpect plugin）
    """
    args = ["-p", "flowexpect.plugin"]
    if detail_level is not None:
        args += ["--detail-level", str(detail_level)]
    if config is not None:
        args += ["--flowexpect-config", config]
    if timeout is not None:
        args += ["--flow-timeout", str(timeout)]
    args += list(pytest_args or [])
    args += list(paths or [])

    shown = "all" if detail_level is None else detail_level
    print(f"[green]Running tests at detail level {shown}[/green]")
    code = pytest.main(args)
    raise typer.Exit(code=int(code))


@app.command("show-config")
def show_config(config: Optional[str] = typer.Option(None, "--config", "-c", help="flowexpect YAML config")):
    """
    打印合并后的配置（YAML + .env + 环境变量）
    """
    cfg = AppConfig.load(config)
    print(cfg.model_dump())


if __name__ == "__main__":
    app()

# python -m flowexpect.cli run tests --detail-level 1
