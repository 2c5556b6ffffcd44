from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import TypeVar

import streamlit as st

from ledgerdesk.adapters.confirm import StaticConfirm
from ledgerdesk.container import build_services

T = TypeVar("T")


def _init_state() -> None:
    st.session_state.setdefault("services", None)
    st.session_state.setdefault("services_access_token", None)
    st.session_state.setdefault("services_api_url", None)
    st.session_state.setdefault("access_token", None)
    st.session_state.setdefault("project_id", "")
    st.session_state.setdefault("partitions", [])
    st.session_state.setdefault("last_batch", None)


def _get_services(access_token: str, api_url: str) -> dict:
    if (
        st.session_state["services"] is None
        or st.session_state.get("services_access_token") != access_token
        or st.session_state.get("services_api_url") != api_url
    ):
        st.session_state["services"] = build_services(
            access_token, api_url, confirm=StaticConfirm(False)
        )
        st.session_state["services_access_token"] = access_token
        st.session_state["services_api_url"] = api_url
    return st.session_state["services"]


def _run_confirmed(services: dict, confirmed: bool, action: Callable[[], T]) -> T:
    """Run a guarded action with the answer of the checkbox rendered next to it."""

    services["confirm"].answer = confirmed
    return action()


def _save_uploads(uploads: list, target_dir: Path) -> list[Path]:
    target_dir.mkdir(parents=True, exist_ok=True)
    paths: list[Path] = []
    for upload in uploads:
        path = target_dir / Path(upload.name).name
        path.write_bytes(upload.getvalue())
        paths.append(path)
    return paths


def _describe_event(event: dict) -> str:
    stage = event.get("stage")
    name = event.get("file_name", "")
    position = f"{event.get('index', '?')}/{event.get('total', '?')}"
    if stage == "start":
        return f"Uploading {event.get('total')} file(s) ({event.get('mode')})"
    if stage == "probe_done":
        return f"{position} {name}: {len(event.get('columns') or [])} columns"
    if stage == "transfer_progress":
        return f"{position} {name}: transferring {event.get('percent')}%"
    if stage == "ingestion_progress":
        return f"{position} {name}: ingesting {event.get('percent')}%"
    if stage == "file_failed":
        return f"{position} {name}: failed at {event.get('step')}: {event.get('message')}"
    if stage == "complete":
        return f"Done: {event.get('uploaded')} uploaded, {event.get('failed')} failed"
    return f"{position} {name}: {stage}"


def _event_fraction(event: dict) -> float | None:
    total = event.get("total") or 0
    index = event.get("index")
    if event.get("stage") == "complete":
        return 1.0
    if not total or index is None:
        return None
    percent = event.get("percent")
    within = (percent or 0) / 100 if percent is not None else 0.0
    return min(1.0, ((index - 1) + within) / total)
