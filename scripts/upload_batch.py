from __future__ import annotations

import argparse
import os
from pathlib import Path

from dotenv import load_dotenv

from ledgerdesk.adapters.confirm import ConsoleConfirm
from ledgerdesk.adapters.keyring_token_store import KeyringTokenStore
from ledgerdesk.container import build_services
from ledgerdesk.domain.errors import LedgerDeskError
from ledgerdesk.domain.selection_rules import ACCEPTED_EXTENSIONS
from ledgerdesk.settings import LEDGERDESK_API_URL, configure_logging


def _load_env(repo_root: Path) -> None:
    load_dotenv(repo_root / ".env", override=False)


def _collect_paths(folder: Path) -> list[Path]:
    return sorted(
        path
        for path in folder.iterdir()
        if path.is_file() and path.suffix.lower() in ACCEPTED_EXTENSIONS
    )


def _print_event(event: dict) -> None:
    stage = event.get("stage")
    name = event.get("file_name", "")
    if stage == "start":
        print(f"[batch] {event.get('total')} file(s), mode={event.get('mode')}")
    elif stage == "probe_done":
        print(f"[probe] {name}: {len(event.get('columns') or [])} columns, {event.get('row_count')} rows")
    elif stage == "finalized":
        print(f"[done] {name} -> {event.get('file_id')}")
    elif stage == "ingestion_progress":
        print(f"[ingest] {name}: {event.get('percent')}%")
    elif stage == "file_failed":
        print(f"[fail] {name} at {event.get('step')}: {event.get('message')}")


def main() -> None:
    parser = argparse.ArgumentParser(description="Upload a folder of spreadsheets into a project.")
    parser.add_argument("--project", required=True, help="Target project id")
    parser.add_argument("--folder", required=True, help="Folder containing .xlsx/.xls files")
    parser.add_argument("--session", default=None, help="Optional session id hint")
    parser.add_argument("--api-url", default=None, help="Backend base URL")
    parser.add_argument(
        "--backend",
        choices=["rest", "memory"],
        default=None,
        help="Override BACKEND_MODE for this run",
    )
    args = parser.parse_args()

    repo_root = Path(__file__).resolve().parents[1]
    _load_env(repo_root)
    configure_logging()

    folder = Path(args.folder)
    if not folder.is_dir():
        raise SystemExit(f"Not a folder: {folder}")
    paths = _collect_paths(folder)
    if not paths:
        raise SystemExit(f"No {', '.join(ACCEPTED_EXTENSIONS)} files in {folder}")

    token = os.getenv("LEDGERDESK_API_TOKEN") or KeyringTokenStore().get_token() or ""
    services = build_services(
        token,
        args.api_url or LEDGERDESK_API_URL,
        confirm=ConsoleConfirm(),
        backend_mode=args.backend,
    )
    try:
        result = services["upload_service"].upload_batch(
            args.project, paths, session_id=args.session, progress_callback=_print_event
        )
    except LedgerDeskError as exc:
        raise SystemExit(f"Upload rejected: {exc}") from exc

    for file in result.uploaded:
        print(f"{file.file_name}\t{file.file_id}\t{file.row_count} rows\t{file.status.value}")
    for failure in result.failures:
        print(f"{failure.file_name}\tFAILED ({failure.stage})\t{failure.message}")
    print(f"Uploaded {len(result.uploaded)} file(s); {len(result.failures)} failed.")
    if not result.ok:
        raise SystemExit(1)


if __name__ == "__main__":
    main()
