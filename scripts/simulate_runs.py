#!/usr/bin/env python3
from __future__ import annotations

import argparse
import json
import os
import random
import sys
from collections import Counter
from pathlib import Path
from statistics import mean
from typing import Any
from urllib.parse import quote

import httpx

API_PREFIX = "/api/v1"
DEFAULT_IMAGE_BASE_URL = "https://image.pollinations.ai/prompt/"


def _request(
    client: httpx.Client,
    method: str,
    url: str,
    *,
    json_body: dict[str, Any] | None = None,
) -> dict[str, Any]:
    response = client.request(method, url, json=json_body)
    if response.status_code >= 400:
        raise RuntimeError(f"{method} {url} failed: {response.status_code} {response.text}")
    if not response.text:
        return {}
    return response.json()


def image_ref_for_prompt(prompt: str, *, base_url: str = DEFAULT_IMAGE_BASE_URL) -> str:
    return f"{base_url}{quote(prompt)}"


def _choose_index(options: list[str], *, policy: str, rng: random.Random) -> int:
    if not options:
        raise RuntimeError("choice has no options")
    if policy == "first":
        return 0
    if policy == "random":
        return rng.randrange(len(options))
    raise RuntimeError(f"unsupported policy: {policy}")


def run_once(
    client: httpx.Client,
    *,
    backend_url: str,
    source: str,
    policy: str,
    rng: random.Random,
    max_local_steps: int = 500,
    image_base_url: str = DEFAULT_IMAGE_BASE_URL,
) -> dict[str, Any]:
    session = _request(client, "POST", f"{backend_url}{API_PREFIX}/sessions", json_body={"source": source})
    session_id = str(session["session_id"])
    base = f"{backend_url}{API_PREFIX}/sessions/{session_id}"

    steps = 0
    dialogues = 0
    choices_made: list[int] = []
    suspensions = 0
    outcome = "timeout"
    message = None

    step = _request(client, "POST", f"{base}/advance")
    for _ in range(max_local_steps):
        steps += 1
        interaction = step.get("interaction") or {}
        kind = interaction.get("type")
        if kind == "finished":
            outcome = "finished"
            message = interaction.get("message")
            break
        if kind == "error":
            outcome = "error"
            message = interaction.get("message")
            break
        if kind == "dialogue":
            dialogues += 1
            step = _request(client, "POST", f"{base}/advance")
        elif kind == "waiting_choice":
            index = _choose_index(list(interaction.get("options") or []), policy=policy, rng=rng)
            choices_made.append(index)
            step = _request(client, "POST", f"{base}/choice", json_body={"index": index})
        elif kind == "load_background":
            suspensions += 1
            payload = {
                "scene_id": interaction.get("scene_id"),
                "image_ref": image_ref_for_prompt(str(interaction.get("prompt") or ""), base_url=image_base_url),
            }
            step = _request(client, "POST", f"{base}/resume", json_body=payload)
        else:
            raise RuntimeError(f"unexpected interaction: {interaction}")

    final_state = _request(client, "GET", base)
    _request(client, "DELETE", base)

    return {
        "session_id": session_id,
        "steps": steps,
        "dialogues": dialogues,
        "choices": choices_made,
        "suspensions": suspensions,
        "outcome": outcome,
        "message": message,
        "final_flags": dict(final_state.get("flags") or {}),
    }


def _rate(counter: Counter[str], key: str, total: int) -> float:
    if total <= 0:
        return 0.0
    return float(counter.get(key, 0)) / float(total)


def build_policy_metrics(policy: str, *, results: list[dict[str, Any]]) -> dict[str, Any]:
    outcomes = Counter(str(item.get("outcome") or "none") for item in results)
    step_values = [int(item.get("steps", 0)) for item in results]
    paths = Counter(",".join(str(index) for index in item.get("choices") or []) for item in results)
    flag_true_frequency: Counter[str] = Counter()
    for item in results:
        for flag_id, value in (item.get("final_flags") or {}).items():
            if value:
                flag_true_frequency[str(flag_id)] += 1

    return {
        "policy": policy,
        "runs": len(results),
        "outcome_distribution": dict(outcomes),
        "finish_rate": round(_rate(outcomes, "finished", len(results)), 4),
        "error_rate": round(_rate(outcomes, "error", len(results)), 4),
        "timeout_rate": round(_rate(outcomes, "timeout", len(results)), 4),
        "average_steps_to_end": round(mean(step_values), 2) if step_values else 0.0,
        "distinct_choice_paths": len(paths),
        "flag_true_frequency": dict(flag_true_frequency),
    }


def assert_finish_rate(*, metrics_by_policy: dict[str, dict[str, Any]], finish_rate_min: float) -> list[str]:
    errors: list[str] = []
    for policy, metrics in metrics_by_policy.items():
        finish_rate = float(metrics.get("finish_rate", 0.0))
        if finish_rate < finish_rate_min:
            errors.append(f"{policy}: finish_rate={finish_rate:.4f} below {finish_rate_min:.4f}")
    return errors


def main() -> None:
    parser = argparse.ArgumentParser(description="Random playthroughs of a VN script over the HTTP API.")
    parser.add_argument("script", type=Path)
    parser.add_argument("--runs", type=int, default=50)
    parser.add_argument("--policy", choices=["first", "random", "both"], default="both")
    parser.add_argument("--seed", type=int, default=42)
    parser.add_argument("--max-steps", type=int, default=500)
    parser.add_argument("--assert-finish-rate-min", type=float, default=None)
    parser.add_argument("--image-base-url", default=DEFAULT_IMAGE_BASE_URL)
    parser.add_argument("--backend-url", default=os.getenv("BACKEND_URL", "http://127.0.0.1:8000").rstrip("/"))
    args = parser.parse_args()

    source = args.script.read_text(encoding="utf-8")
    policies = ["first", "random"] if args.policy == "both" else [str(args.policy)]
    results_by_policy: dict[str, list[dict[str, Any]]] = {policy: [] for policy in policies}

    with httpx.Client(timeout=30.0) as client:
        for index, policy in enumerate(policies):
            rng = random.Random(int(args.seed) + (index * 1009))
            runs = 1 if policy == "first" else int(args.runs)
            for _ in range(runs):
                results_by_policy[policy].append(
                    run_once(
                        client,
                        backend_url=args.backend_url,
                        source=source,
                        policy=policy,
                        rng=rng,
                        max_local_steps=int(args.max_steps),
                        image_base_url=args.image_base_url,
                    )
                )

    metrics_by_policy = {
        policy: build_policy_metrics(policy, results=policy_results)
        for policy, policy_results in results_by_policy.items()
    }
    payload = {
        "script": str(args.script),
        "seed": args.seed,
        "requested_runs": int(args.runs),
        "policy": args.policy,
        "metrics": metrics_by_policy,
    }
    print(json.dumps(payload, ensure_ascii=False, indent=2))

    if args.assert_finish_rate_min is not None:
        assertion_errors = assert_finish_rate(
            metrics_by_policy=metrics_by_policy,
            finish_rate_min=float(args.assert_finish_rate_min),
        )
        if assertion_errors:
            for item in assertion_errors:
                print(f"ASSERTION_FAILED: {item}", file=sys.stderr)
            raise SystemExit(1)


if __name__ == "__main__":
    main()
