from __future__ import annotations

import sys
import tempfile
from pathlib import Path

import streamlit as st

_SRC_ROOT = Path(__file__).resolve().parents[2]
if str(_SRC_ROOT) not in sys.path:
    sys.path.insert(0, str(_SRC_ROOT))

from ledgerdesk.adapters.keyring_token_store import KeyringTokenStore
from ledgerdesk.adapters.rest_auth import login
from ledgerdesk.domain.errors import LedgerDeskError
from ledgerdesk.domain.table_columns import FILE_COLUMNS, SESSION_COLUMNS, render_rows
from ledgerdesk.settings import LEDGERDESK_API_TOKEN, LEDGERDESK_API_URL, configure_logging
from ledgerdesk.ui_streamlit.helpers import (
    _describe_event,
    _event_fraction,
    _get_services,
    _init_state,
    _run_confirmed,
    _save_uploads,
)


def _sign_in(api_url: str, token_store: KeyringTokenStore) -> str | None:
    cached = st.session_state.get("access_token") or token_store.get_token() or LEDGERDESK_API_TOKEN
    if cached:
        st.session_state["access_token"] = cached
        if st.sidebar.button("Sign out"):
            token_store.clear_token()
            st.session_state["access_token"] = None
            st.session_state["services"] = None
            return None
        return cached
    email = st.sidebar.text_input("Email")
    password = st.sidebar.text_input("Password", type="password")
    if st.sidebar.button("Sign in"):
        try:
            token = login(api_url, email, password)
        except LedgerDeskError as exc:
            st.sidebar.error(str(exc))
            return None
        st.session_state["access_token"] = token
        if not token_store.set_token(token):
            st.sidebar.warning(
                "Signed in for this session, but the OS keychain is unavailable. "
                "You'll need to sign in again next time."
            )
        return token
    return None


def _upload_section(services: dict, project_id: str) -> None:
    st.subheader("Upload")
    uploads = st.file_uploader(
        "Spreadsheets", type=["xlsx", "xls"], accept_multiple_files=True
    )
    if not st.button("Upload files", disabled=not uploads):
        return
    bar = st.progress(0.0)
    status = st.empty()

    def on_event(event: dict) -> None:
        fraction = _event_fraction(event)
        if fraction is not None:
            bar.progress(fraction)
        status.write(_describe_event(event))

    with tempfile.TemporaryDirectory() as tmp:
        paths = _save_uploads(uploads, Path(tmp))
        try:
            result = services["upload_service"].upload_batch(
                project_id, paths, progress_callback=on_event
            )
        except LedgerDeskError as exc:
            st.error(f"Upload failed: {exc}")
            return
    st.session_state["last_batch"] = result
    if result.ok:
        st.success(f"Uploaded {len(result.uploaded)} file(s).")
    for failure in result.failures:
        st.error(f"{failure.file_name} ({failure.stage}): {failure.message}")


def _files_section(services: dict, project_id: str) -> None:
    registry = services["registry"]
    files = registry.files()
    st.subheader("Files")
    if not files:
        st.info("No files uploaded yet.")
        return
    st.table(render_rows(FILE_COLUMNS, files))
    editable = [column for column in FILE_COLUMNS if column.editable]
    for file in files:
        with st.expander(file.file_name):
            picked = st.checkbox(
                "Selected", value=file.file_id in registry.selected_ids(), key=f"sel_{file.file_id}"
            )
            if picked:
                registry.select([file.file_id])
            else:
                registry.deselect([file.file_id])
            choices: dict[str, str | None] = {}
            for column in editable:
                options = [""] + column.choices(file)
                current = column.value(file) or ""
                choices[column.key] = st.selectbox(
                    column.header,
                    options,
                    index=options.index(current) if current in options else 0,
                    key=f"{column.key}_{file.file_id}",
                ) or None
            if st.button("Save columns", key=f"save_{file.file_id}"):
                try:
                    services["column_assignment_service"].assign_columns(
                        project_id,
                        file.file_id,
                        account_column_name=choices.get("account_column_name"),
                        amount_column_name=choices.get("amount_column_name"),
                    )
                    st.success("Columns saved.")
                except LedgerDeskError as exc:
                    st.error(str(exc))
            confirm_delete = st.checkbox(
                "Confirm deletion of this file", key=f"confirm_delete_{file.file_id}"
            )
            if st.button("Delete file", key=f"delete_{file.file_id}"):
                try:
                    _run_confirmed(
                        services,
                        confirm_delete,
                        lambda: services["column_assignment_service"].delete_file(
                            project_id, file.file_id
                        ),
                    )
                    st.success("File deleted.")
                except LedgerDeskError as exc:
                    st.error(str(exc))


def _partition_section(services: dict, project_id: str) -> None:
    st.subheader("Partitions")
    if st.button("Analyze selected files"):
        try:
            st.session_state["partitions"] = services["partition_analyzer"].analyze_selection(
                project_id
            )
        except LedgerDeskError as exc:
            st.error(str(exc))
    partitions = st.session_state.get("partitions") or []
    for index, partition in enumerate(partitions):
        cols = st.columns([1, 3, 2])
        partition.selected = cols[0].checkbox(
            "Create", value=partition.selected, key=f"part_sel_{index}"
        )
        partition.session_name = cols[1].text_input(
            f"{partition.account_name} - {partition.file_count} file(s), {partition.total_rows} rows",
            value=partition.session_name,
            key=f"part_name_{index}",
        )
        partition.worker_name = cols[2].text_input(
            "Worker", value=partition.worker_name, key=f"part_worker_{index}"
        )
    if partitions and st.button("Create sessions"):
        try:
            result = services["session_manager"].create(project_id, partitions)
        except LedgerDeskError as exc:
            st.error(str(exc))
            return
        if result.nothing_approved:
            st.info("No partitions were approved.")
        else:
            st.success(f"Created {len(result.created)} session(s).")
        for account in result.missing:
            st.warning(f"No session was created for {account}.")
        st.session_state["partitions"] = []


def _sessions_section(services: dict, project_id: str) -> None:
    manager = services["session_manager"]
    st.subheader("Sessions")
    sessions = manager.sessions()
    if not sessions:
        st.info("No sessions yet.")
        return
    st.table(render_rows(SESSION_COLUMNS, sessions))
    labels = {f"{session.session_name} [{session.state}]": session.session_id for session in sessions}
    chosen = st.multiselect("Sessions", list(labels))
    session_ids = [labels[label] for label in chosen]
    confirmed = st.checkbox("I understand this action cannot be undone")
    cols = st.columns(5)
    actions = {
        "Start": lambda: manager.start(project_id, session_ids),
        "Complete": lambda: manager.complete(project_id, session_ids),
        "Merge": lambda: manager.merge(project_id, session_ids),
        "Delete": lambda: manager.delete(project_id, session_ids),
        "Download": lambda: manager.download_url(project_id, session_ids[0] if session_ids else ""),
    }
    for col, (label, action) in zip(cols, actions.items()):
        if col.button(label):
            try:
                outcome = _run_confirmed(services, confirmed, action)
            except LedgerDeskError as exc:
                st.error(f"{label} failed: {exc}")
                continue
            if isinstance(outcome, str):
                st.markdown(f"[Download result]({outcome})")
            else:
                st.success(f"{label} done.")


def main() -> None:
    configure_logging()
    st.set_page_config(page_title="LedgerDesk", layout="wide")
    _init_state()
    st.title("LedgerDesk")

    api_url = st.sidebar.text_input("API URL", value=LEDGERDESK_API_URL)
    token = _sign_in(api_url, KeyringTokenStore())
    if not token:
        st.info("Sign in to continue.")
        return
    services = _get_services(token, api_url)

    project_id = st.text_input("Project ID", value=st.session_state.get("project_id", ""))
    if not project_id:
        return
    if project_id != st.session_state.get("project_id") or st.button("Reload"):
        st.session_state["project_id"] = project_id
        try:
            services["registry"].load(services["backend"].list_files(project_id))
            services["session_manager"].load(project_id)
        except LedgerDeskError as exc:
            st.error(f"Reload failed: {exc}")

    _upload_section(services, project_id)
    _files_section(services, project_id)
    _partition_section(services, project_id)
    _sessions_section(services, project_id)


if __name__ == "__main__":
    main()
