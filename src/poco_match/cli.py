"""Typer CLI for order hashing, identifier derivation and offline match checks."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, NoReturn, Optional

import typer
import yaml
from rich.console import Console
from rich.panel import Panel

from .config import PocoSettings
from .errors import PocoValidationError
from .ethtypes import to_uint256
from .identifiers import compute_deal_id, compute_task_id
from .logging_utils import configure_logging
from .matching import ConsumedVolumes, check_match
from .orders import order_from_mapping
from .tags import coerce_tag, to_arg, to_hex, to_symbols

app = typer.Typer(help="Off-chain tooling for PoCo order matching")
console = Console(soft_wrap=True)

EXIT_INVALID = 1
EXIT_REJECTED = 2

TAG_FORMATS = ("int", "hex", "symbols", "arg")


def _read_document(path: Path) -> Dict[str, Any]:
    text = path.read_text()
    if path.suffix.lower() == ".json":
        data = json.loads(text)
    else:
        data = yaml.safe_load(text)
    if not isinstance(data, dict):
        _fail(f"{path} does not hold a mapping")
    return data


def _load_settings(config_path: Optional[Path]) -> PocoSettings:
    if config_path is None:
        return PocoSettings.from_env()
    return PocoSettings.load(config_path, env=True)


def _fail(message: str) -> NoReturn:
    console.print(Panel(message, title="invalid input", style="bold red"))
    raise typer.Exit(code=EXIT_INVALID)


@app.callback()
def _setup(
    log_level: str = typer.Option("WARNING", "--log-level", help="Logging level"),
    log_file: Optional[Path] = typer.Option(None, "--log-file", help="JSON-lines log file"),
) -> None:
    configure_logging(log_file, level=log_level)


@app.command()
def tag(
    value: str = typer.Argument(..., help="Tag as int, bytes32 hex, arg (tee-gpu) or comma separated symbols"),
    as_: str = typer.Option("hex", "--as", help="Output format: int, hex, symbols or arg"),
) -> None:
    """Convert a tag between its representations."""

    if as_ not in TAG_FORMATS:
        raise typer.BadParameter(f"--as must be one of {', '.join(TAG_FORMATS)}")
    try:
        raw: Any = int(value) if value.isdigit() else value
        if isinstance(raw, str) and "," in raw:
            raw = [item.strip() for item in raw.split(",") if item.strip()]
        parsed = coerce_tag(raw)
    except PocoValidationError as exc:
        _fail(str(exc))
    rendered = {"int": parsed, "hex": to_hex(parsed), "symbols": to_symbols(parsed), "arg": to_arg(parsed)}[as_]
    console.print_json(json.dumps(rendered))


@app.command("order-hash")
def order_hash(
    kind: str = typer.Argument(..., help="app, dataset, workerpool or request"),
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="Order document (JSON or YAML)"),
    salt: str = typer.Option(..., "--salt", help="bytes32 order salt"),
    config_path: Optional[Path] = typer.Option(None, "--config", help="Settings YAML"),
) -> None:
    """Print the EIP-712 hash of an order document."""

    settings = _load_settings(config_path)
    try:
        order = order_from_mapping(kind, _read_document(path))
        digest = order.hash(settings.domain(), salt)
    except (PocoValidationError, ValueError) as exc:
        _fail(str(exc))
    console.print_json(json.dumps({"type": order.PRIMARY_TYPE, "hash": digest, "order": order.to_dict()}))


@app.command("deal-id")
def deal_id(request_hash: str, index: str = typer.Argument("0")) -> None:
    """Derive the id of the deal created from a request order at consumed volume INDEX."""

    try:
        value = compute_deal_id(request_hash, to_uint256(index, "index"))
    except PocoValidationError as exc:
        _fail(str(exc))
    console.print(value)


@app.command("task-id")
def task_id(deal: str, index: str) -> None:
    """Derive a task id from a deal id and an absolute task index."""

    try:
        value = compute_task_id(deal, to_uint256(index, "index"))
    except PocoValidationError as exc:
        _fail(str(exc))
    console.print(value)


@app.command()
def check(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="Match document (JSON or YAML)"),
    stake_ratio: Optional[int] = typer.Option(None, "--stake-ratio", min=0, max=100),
    config_path: Optional[Path] = typer.Option(None, "--config", help="Settings YAML"),
) -> None:
    """Run the match validation engine on a document of orders, volumes and stakes.

    Exits with code 2 when the match is rejected.
    """

    document = _read_document(path)
    try:
        ratio = stake_ratio if stake_ratio is not None else _load_settings(config_path).workerpool_stake_ratio
        app_order = order_from_mapping("app", document["apporder"])
        workerpool_order = order_from_mapping("workerpool", document["workerpoolorder"])
        request_order = order_from_mapping("request", document["requestorder"])
        dataset_doc = document.get("datasetorder")
        dataset_order = order_from_mapping("dataset", dataset_doc) if dataset_doc else None
        consumed = ConsumedVolumes(
            **{role: to_uint256(value, role) for role, value in (document.get("consumed") or {}).items()}
        )
        requester_stake = to_uint256(document.get("requester_stake", 0), "requester_stake")
        workerpool_stake = to_uint256(document.get("workerpool_stake", 0), "workerpool_stake")
    except KeyError as exc:
        _fail(f"missing {exc.args[0]} in {path}")
    except (PocoValidationError, TypeError, ValueError, AttributeError) as exc:
        _fail(str(exc))

    outcome = check_match(
        app_order,
        dataset_order,  # type: ignore[arg-type]
        workerpool_order,  # type: ignore[arg-type]
        request_order,  # type: ignore[arg-type]
        consumed=consumed,
        requester_stake=requester_stake,
        workerpool_stake=workerpool_stake,
        stake_ratio=ratio,
    )
    if outcome.rejection is not None:
        console.print(Panel(outcome.rejection.message, title=outcome.rejection.kind.value, style="bold red"))
        raise typer.Exit(code=EXIT_REJECTED)
    result = outcome.require_success()
    console.print_json(
        json.dumps(
            {
                "volume": result.matched_volume,
                "requesterLock": str(result.requester_lock),
                "workerpoolLock": str(result.workerpool_lock),
            }
        )
    )


def main() -> None:
    app()


__all__ = ["app", "main"]
