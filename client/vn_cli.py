from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

import httpx
import typer

app = typer.Typer(help="VN Studio backend CLI")
session_app = typer.Typer(help="Play-session commands")
app.add_typer(session_app, name="session")

DEFAULT_BACKEND_URL = "http://127.0.0.1:8000"
STATE_PATH = Path(__file__).resolve().parent / ".state.json"
API_PREFIX = "/api/v1"
HISTORY_EXHAUSTED_CODES = frozenset({"NOTHING_TO_UNDO", "NOTHING_TO_REDO"})


def load_state(path: Path = STATE_PATH) -> dict[str, Any]:
    if not path.exists():
        return {}
    try:
        return json.loads(path.read_text())
    except (json.JSONDecodeError, OSError):
        return {}


def save_state(data: dict[str, Any], path: Path = STATE_PATH) -> None:
    path.write_text(json.dumps(data, ensure_ascii=False, indent=2))


def backend_url() -> str:
    return os.getenv("BACKEND_URL", DEFAULT_BACKEND_URL).rstrip("/")


def request(
    method: str,
    endpoint: str,
    *,
    json_body: dict[str, Any] | None = None,
    params: dict[str, Any] | None = None,
) -> httpx.Response:
    url = f"{backend_url()}{endpoint}"
    with httpx.Client(timeout=20.0) as client:
        return client.request(method, url, json=json_body, params=params)


def response_detail_code(resp: httpx.Response) -> str | None:
    try:
        payload = resp.json()
    except ValueError:
        return None
    detail = payload.get("detail") if isinstance(payload, dict) else None
    if isinstance(detail, dict):
        code = detail.get("code")
        if isinstance(code, str) and code.strip():
            return code.strip()
    return None


def is_history_exhausted_response(resp: httpx.Response) -> bool:
    return int(resp.status_code) == 409 and response_detail_code(resp) in HISTORY_EXHAUSTED_CODES


def read_source(path: Path) -> str:
    if not path.exists():
        raise typer.BadParameter(f"script file not found: {path}")
    return path.read_text(encoding="utf-8")


def format_interaction(interaction: dict[str, Any]) -> list[str]:
    kind = interaction.get("type")
    if kind == "dialogue":
        return [f"{interaction.get('speaker')}: {interaction.get('text')}"]
    if kind == "waiting_choice":
        lines = ["choices:"]
        for index, option in enumerate(interaction.get("options") or []):
            lines.append(f"  [{index}] {option}")
        return lines
    if kind == "load_background":
        return [
            f"background needed for scene '{interaction.get('scene_id')}': {interaction.get('prompt')}",
            "resume with: session resume <scene_id> --image-ref <url>",
        ]
    if kind == "finished":
        return [f"finished: {interaction.get('message')}"]
    if kind == "error":
        return [f"error: {interaction.get('message')}"]
    if kind == "loaded":
        return [f"loaded: {interaction.get('game')}"]
    return [json.dumps(interaction, ensure_ascii=False)]


def _resolve_session_id(session_id: str | None) -> str:
    if session_id:
        return session_id
    sid = load_state().get("session_id")
    if not sid:
        raise typer.BadParameter("No session_id provided and no saved session in client/.state.json")
    return str(sid)


def _handle_response(resp: httpx.Response, action: str) -> dict[str, Any] | None:
    if resp.status_code == 404:
        typer.echo(f"{action}: resource not found ({resp.status_code}).")
        typer.echo(resp.text)
        return None
    if is_history_exhausted_response(resp):
        typer.echo(f"{action}: {response_detail_code(resp)}")
        return None
    if resp.status_code >= 400:
        typer.echo(f"{action} failed ({resp.status_code}): {resp.text}")
        raise typer.Exit(code=1)
    try:
        return resp.json()
    except ValueError:
        typer.echo(resp.text)
        return None


def _print_step(body: dict[str, Any]) -> None:
    for cue in body.get("cues") or []:
        typer.echo(f"cue: {cue.get('name')} {cue.get('args')}")
    for line in format_interaction(body.get("interaction") or {}):
        typer.echo(line)
    typer.echo(f"state: {body.get('state')} undo={body.get('can_undo')} redo={body.get('can_redo')}")


def _print_diagnostics(label: str, items: list[dict[str, Any]]) -> None:
    for item in items:
        typer.echo(f"{label}: [{item.get('code')}] {item.get('path')}: {item.get('message')}")


@app.command()
def ping() -> None:
    resp = request("GET", "/health")
    body = _handle_response(resp, "ping")
    if body is not None:
        typer.echo(f"ok: {body}")


@app.command()
def validate(path: Path = typer.Argument(..., help="Script file")) -> None:
    resp = request("POST", f"{API_PREFIX}/scripts/validate", json_body={"source": read_source(path)})
    body = _handle_response(resp, "validate")
    if body is None:
        return
    typer.echo(f"valid: {body.get('valid')}")
    _print_diagnostics("error", body.get("errors") or [])
    _print_diagnostics("warning", body.get("warnings") or [])
    if not body.get("valid"):
        raise typer.Exit(code=1)


@app.command()
def analyze(path: Path = typer.Argument(..., help="Script file")) -> None:
    resp = request("POST", f"{API_PREFIX}/scripts/analyze", json_body={"source": read_source(path)})
    body = _handle_response(resp, "analyze")
    if body is None:
        return
    report = body.get("report") or {}
    typer.echo(f"scenes: {report.get('total_scenes')}")
    typer.echo(f"words: {report.get('total_words')}")
    typer.echo(f"choices: {report.get('total_choices')}")
    typer.echo(f"endings: {report.get('endings')}")
    typer.echo(f"complexity: {report.get('complexity_score')}")
    for link in report.get("broken_links") or []:
        typer.echo(f"broken link: {link.get('source')} -> {link.get('target')}")
    for cluster, scene_ids in (body.get("clusters") or {}).items():
        typer.echo(f"cluster {cluster}: {', '.join(scene_ids)}")


@app.command()
def graph(
    path: Path = typer.Argument(..., help="Script file"),
    output: Path | None = typer.Option(None, "--output", "-o", help="Write Mermaid code to this file"),
) -> None:
    resp = request("POST", f"{API_PREFIX}/scripts/graph", json_body={"source": read_source(path)})
    body = _handle_response(resp, "graph")
    if body is None:
        return
    code = str(body.get("code") or "")
    if output is None:
        typer.echo(code)
        return
    output.write_text(code, encoding="utf-8")
    typer.echo(f"wrote {output}")


@session_app.command("start")
def session_start(path: Path = typer.Argument(..., help="Script file")) -> None:
    resp = request("POST", f"{API_PREFIX}/sessions", json_body={"source": read_source(path)})
    body = _handle_response(resp, "session start")
    if body is None:
        return
    state = load_state()
    state["session_id"] = body.get("session_id")
    save_state(state)
    typer.echo(f"session_id: {body.get('session_id')}")
    typer.echo(f"game: {body.get('game')}")
    typer.echo(f"state: {body.get('state')}")


@session_app.command("get")
def session_get(session_id: str | None = typer.Argument(default=None)) -> None:
    sid = _resolve_session_id(session_id)
    resp = request("GET", f"{API_PREFIX}/sessions/{sid}")
    body = _handle_response(resp, "session get")
    if body is None:
        return
    typer.echo(f"session_id: {body.get('session_id')}")
    typer.echo(f"game: {body.get('game')}")
    typer.echo(f"state: {body.get('state')}")
    typer.echo(f"scene: {body.get('scene_id')}")
    typer.echo(f"flags: {body.get('flags')}")
    for line in format_interaction(body.get("interaction") or {}):
        typer.echo(line)


@session_app.command("resume")
def session_resume(
    scene_id: str = typer.Argument(..., help="Scene to enter once its background is ready"),
    image_ref: str | None = typer.Option(None, "--image-ref", help="Generated background image reference"),
    session_id: str | None = typer.Option(default=None, help="Override session id"),
) -> None:
    sid = _resolve_session_id(session_id)
    payload: dict[str, Any] = {"scene_id": scene_id}
    if image_ref:
        payload["image_ref"] = image_ref
    body = _handle_response(request("POST", f"{API_PREFIX}/sessions/{sid}/resume", json_body=payload), "resume")
    if body is not None:
        _print_step(body)


@app.command()
def advance(session_id: str | None = typer.Option(default=None, help="Override session id")) -> None:
    sid = _resolve_session_id(session_id)
    body = _handle_response(request("POST", f"{API_PREFIX}/sessions/{sid}/advance"), "advance")
    if body is not None:
        _print_step(body)


@app.command()
def choose(
    index: int = typer.Argument(..., help="Zero-based option index"),
    session_id: str | None = typer.Option(default=None, help="Override session id"),
) -> None:
    sid = _resolve_session_id(session_id)
    resp = request("POST", f"{API_PREFIX}/sessions/{sid}/choice", json_body={"index": index})
    body = _handle_response(resp, "choose")
    if body is not None:
        _print_step(body)


@app.command()
def undo(session_id: str | None = typer.Option(default=None, help="Override session id")) -> None:
    sid = _resolve_session_id(session_id)
    body = _handle_response(request("POST", f"{API_PREFIX}/sessions/{sid}/undo"), "undo")
    if body is not None:
        _print_step(body)


@app.command()
def redo(session_id: str | None = typer.Option(default=None, help="Override session id")) -> None:
    sid = _resolve_session_id(session_id)
    body = _handle_response(request("POST", f"{API_PREFIX}/sessions/{sid}/redo"), "redo")
    if body is not None:
        _print_step(body)


@app.command()
def end(session_id: str | None = typer.Option(default=None)) -> None:
    sid = _resolve_session_id(session_id)
    body = _handle_response(request("DELETE", f"{API_PREFIX}/sessions/{sid}"), "end")
    if body is None:
        return
    state = load_state()
    if state.get("session_id") == body.get("session_id"):
        state.pop("session_id", None)
        save_state(state)
    typer.echo(f"ended: {body.get('ended')}")


if __name__ == "__main__":
    app()
