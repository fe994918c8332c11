"""
CLI commands for one-off config patches.

Thin wrappers over ``src.core.services.patcher``. Each command is
idempotent: running it twice changes the file at most once.

Exit codes: 0 when the file is correct afterwards (changed or not),
2 when a replace finds no anchor, 1 on any other error.
"""

from __future__ import annotations

import json
import sys
from pathlib import Path

import click

from src.core.errors import ApplyError, PatchAnchorNotFound

EXIT_NO_ANCHOR = 2


def _report(path: Path, action: str, fn, *args, as_json: bool) -> None:
    """Run a patch function and print its outcome."""
    payload: dict = {"path": str(path), "action": action}
    code = 0
    try:
        payload["changed"] = fn(path, *args)
    except PatchAnchorNotFound as e:
        payload.update(changed=False, anchor_found=False, error=str(e))
        code = EXIT_NO_ANCHOR
    except ApplyError as e:
        payload.update(changed=False, error=str(e))
        code = 1

    if as_json:
        click.echo(json.dumps(payload, indent=2))
        sys.exit(code)

    if code == EXIT_NO_ANCHOR:
        click.secho(f"⊘ {path}: {payload['error']}", fg="yellow")
    elif code:
        click.secho(f"❌ {payload['error']}", fg="red")
    elif payload["changed"]:
        click.secho(f"✓ {path}: changed", fg="green")
    else:
        click.secho(f"⊘ {path}: already correct", fg="yellow")
    sys.exit(code)


@click.group()
def patch() -> None:
    """Patch config files in place — replace, append a block, ensure a line."""


@patch.command()
@click.argument("path", type=click.Path(dir_okay=False, path_type=Path))
@click.option("--pattern", required=True, help="Regex that matches exactly one line.")
@click.option("--line", required=True, help="Replacement line (without newline).")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
def replace(path: Path, pattern: str, line: str, as_json: bool) -> None:
    """Replace the single line matching PATTERN.

    Examples:

        system-setup patch replace ~/.zshrc --pattern '^ZSH_THEME=' --line 'ZSH_THEME="robbyrussell"'
    """
    from src.core.services.patcher import replace_line

    _report(path, "replace", replace_line, pattern, line, as_json=as_json)


@patch.command()
@click.argument("path", type=click.Path(dir_okay=False, path_type=Path))
@click.option("--marker", required=True, help="Comment line that identifies the block.")
@click.option("--content", default=None, help="Block body.")
@click.option(
    "--from-file",
    "from_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Read the block body from a file.",
)
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
def block(path: Path, marker: str, content: str | None, from_file: Path | None, as_json: bool) -> None:
    """Append a marked block unless MARKER is already present.

    Examples:

        system-setup patch block ~/.zshrc --marker '# my aliases' --content 'alias ll="ls -la"'
    """
    from src.core.services.patcher import append_block

    if (content is None) == (from_file is None):
        raise click.UsageError("Give exactly one of --content or --from-file.")
    if from_file is not None:
        content = from_file.read_text(encoding="utf-8")
    assert content is not None

    _report(path, "block", append_block, marker, content, as_json=as_json)


@patch.command()
@click.argument("path", type=click.Path(dir_okay=False, path_type=Path))
@click.option("--probe", required=True, help="Line whose presence means nothing to do.")
@click.option("--line", "lines", multiple=True, help="Line to append (repeatable; defaults to PROBE).")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
def ensure(path: Path, probe: str, lines: tuple[str, ...], as_json: bool) -> None:
    """Append lines unless PROBE is already a line of the file.

    The appended lines must include PROBE, so a second run finds it.
    """
    from src.core.services.patcher import ensure_line

    lines = lines or (probe,)
    if probe.strip() not in (entry.strip() for entry in lines):
        raise click.UsageError("One --line must equal --probe, or the lines are appended on every run.")

    _report(path, "ensure", ensure_line, probe, lines, as_json=as_json)
