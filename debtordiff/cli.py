from __future__ import annotations

import argparse
import copy
import logging
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, Optional

import yaml

from .errors import ConfigurationError, DebtorDiffError, WorkbookSaveError
from .mail import mailer_from_config
from .models import Config, RunSummary
from .process import build_context, execute_actions, reset_data, start_process
from .tables import DEFAULT_TITLES, RunContext, open_workbook

LOGGER = logging.getLogger(__name__)

DEFAULT_CONFIG: Config = {
    "sheets": dict(DEFAULT_TITLES),
    "status": {"registered": "REGISTERED", "new": "NEW"},
    "actions": {"labels": {}},
    "log": {"timezone": "America/Lima", "format": "%d/%m/%Y, %H:%M"},
    "mail": {"port": 587, "use_tls": True, "branding": {}},
}

COMMANDS: Dict[str, Callable[[RunContext], RunSummary]] = {
    "start-process": start_process,
    "execute-actions": execute_actions,
    "reset-data": reset_data,
}

SEVERITY_ICONS = {"info": "i", "success": "+", "warning": "!", "error": "x"}


def _merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    out = copy.deepcopy(base)
    for key, value in (override or {}).items():
        if isinstance(value, dict) and isinstance(out.get(key), dict):
            out[key] = _merge(out[key], value)
        else:
            out[key] = value
    return out


def load_config(path: Optional[str]) -> Config:
    if not path:
        return copy.deepcopy(DEFAULT_CONFIG)
    if not Path(path).exists():
        raise ConfigurationError(f"Config file not found: {path}")
    with open(path, "r", encoding="utf-8") as file:
        loaded = yaml.safe_load(file) or {}
    if not isinstance(loaded, dict):
        raise ConfigurationError(f"Config file {path} must hold a mapping")
    return _merge(DEFAULT_CONFIG, loaded)


def format_notice(severity: str, title: str, message: str) -> str:
    return f"[{SEVERITY_ICONS.get(severity, '?')}] {title}: {message}"


def run_command(command: str, config: Config, workbook_path: str, dry_run: bool = False) -> RunSummary:
    workbook = open_workbook(workbook_path)
    ctx = build_context(config, workbook, mailer_from_config(config, dry_run=dry_run))
    try:
        return COMMANDS[command](ctx)
    finally:
        # whatever was written before a failure stays written
        try:
            workbook.save(workbook_path)
        except OSError as exc:
            raise WorkbookSaveError(f"Could not save {workbook_path}: {exc}") from exc
        LOGGER.info("Saved %s", workbook_path)


def run(argv: Iterable[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Overdue loans reconciliation and actions")
    parser.add_argument("command", choices=sorted(COMMANDS))
    parser.add_argument("--workbook", required=True, help="Path to the .xlsx workbook")
    parser.add_argument("--config", help="YAML config; built-in defaults apply when omitted")
    parser.add_argument("--dry-run", action="store_true", help="Log notifications instead of sending them")
    parser.add_argument("--log-level", default="INFO")
    args = parser.parse_args(None if argv is None else list(argv))

    logging.basicConfig(level=getattr(logging, args.log_level.upper(), logging.INFO), format="%(levelname)s %(name)s: %(message)s")
    try:
        config = load_config(args.config)
        summary = run_command(args.command, config, args.workbook, dry_run=args.dry_run)
    except DebtorDiffError as exc:
        raise SystemExit(str(exc))

    for notice in summary.notices:
        print(format_notice(notice.severity, notice.title, notice.message))
    return 0 if summary.ok else 1


if __name__ == "__main__":
    raise SystemExit(run())
