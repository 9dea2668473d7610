"""Invoke tasks for local development.

Routine workflows (syncing the environment, testing, linting, type checking,
and running a throwaway MongoDB) shell out to `uv` and `docker` so they behave
the same on every machine.
"""

from __future__ import annotations

import shlex
from collections.abc import Sequence

from invoke import Collection, Context, task

MONGO_CONTAINER = "opbot-mongo"
MONGO_IMAGE = "mongo:7"


def _run(ctx: Context, args: Sequence[str], *, warn: bool = False) -> None:
    """Run a command with consistent quoting and PTY defaults.

    Args:
        ctx: Invoke execution context.
        args: Executable followed by its arguments.
        warn: Continue instead of failing when the command exits non-zero.
    """
    ctx.run(shlex.join(args), echo=True, pty=True, warn=warn)


@task
def sync(ctx: Context, dev: bool = True) -> None:
    """Synchronize the project's virtual environment with uv.

    Args:
        ctx: Invoke execution context.
        dev: Include the development extra when True.
    """
    args = ["uv", "sync"]
    if dev:
        args.extend(["--extra", "dev"])
    _run(ctx, args)


@task(
    help={
        "k": "pytest -k expression for test selection.",
        "path": "Path or module to test (defaults to tests/).",
        "options": "Additional CLI flags forwarded verbatim to pytest.",
    }
)
def tests(ctx: Context, k: str = "", path: str = "tests", options: str = "") -> None:
    """Run the pytest suite via uv."""
    args = ["uv", "run", "pytest"]
    if k:
        args.extend(["-k", k])
    if options:
        args.extend(shlex.split(options))
    args.append(path)
    _run(ctx, args)


@task(help={"fix": "Apply auto-fixes where possible (ruff --fix)."})
def lint(ctx: Context, fix: bool = False) -> None:
    """Run Ruff format checks and lint rules via uv."""
    _run(ctx, ["uv", "run", "ruff", "format", "--check", "src", "tests"])
    args = ["uv", "run", "ruff", "check", "src", "tests"]
    if fix:
        args.append("--fix")
    _run(ctx, args)


@task
def mypy(ctx: Context) -> None:
    """Run MyPy over the package via uv."""
    _run(ctx, ["uv", "run", "mypy", "src"])


@task
def ci(ctx: Context) -> None:
    """Replicate the CI workflow locally."""
    ctx.invoke(lint)
    ctx.invoke(mypy)
    ctx.invoke(tests)


@task(help={"port": "Host port to publish MongoDB on."})
def mongo_up(ctx: Context, port: int = 27017) -> None:
    """Start a disposable MongoDB container for manual testing."""
    args = ["docker", "run", "-d", "--rm", "--name", MONGO_CONTAINER]
    args.extend(["-p", f"{port}:27017", MONGO_IMAGE])
    _run(ctx, args)


@task
def mongo_down(ctx: Context) -> None:
    """Stop the disposable MongoDB container."""
    _run(ctx, ["docker", "stop", MONGO_CONTAINER], warn=True)


namespace = Collection(sync, tests, lint, mypy, ci, mongo_up, mongo_down)
