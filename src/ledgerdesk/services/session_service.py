from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import replace

from ledgerdesk.domain.errors import (
    InvalidTransitionError,
    NotFoundError,
    OperationCancelledError,
)
from ledgerdesk.domain.lifecycle import (
    COMPLETED,
    DELETED,
    MERGED,
    SESSION_TRANSITIONS,
    STARTED,
    advance_session,
)
from ledgerdesk.domain.models import Partition, Session, SessionBatchResult
from ledgerdesk.domain.partitioning import approved_partitions
from ledgerdesk.domain.selection_rules import (
    require_at_least,
    require_complete_columns,
    require_exactly_one,
)
from ledgerdesk.ports.backend_port import UploadBackendPort
from ledgerdesk.ports.confirm_port import ConfirmPort
from ledgerdesk.services.file_registry import FileRegistry

logger = logging.getLogger(__name__)


class SessionLifecycleManager:
    """Creates sessions from approved partitions and moves them through their states.

    Every action validates its selection and the state transition locally
    before the backend is called; destructive actions also need the injected
    confirmation to return True.
    """

    def __init__(
        self,
        backend: UploadBackendPort,
        registry: FileRegistry,
        confirm: ConfirmPort,
    ) -> None:
        self._backend = backend
        self._registry = registry
        self._confirm = confirm
        self._sessions: dict[str, Session] = {}

    def load(self, project_id: str) -> list[Session]:
        sessions = self._backend.list_sessions(project_id)
        self._sessions = {session.session_id: session for session in sessions}
        for session in sessions:
            self._registry.link_session(session.file_ids, session.session_id)
        return list(sessions)

    def sessions(self) -> list[Session]:
        return list(self._sessions.values())

    def get(self, session_id: str) -> Session | None:
        return self._sessions.get(session_id)

    def create(self, project_id: str, partitions: Iterable[Partition]) -> SessionBatchResult:
        approved = approved_partitions(partitions)
        if not approved:
            return SessionBatchResult()
        members = (
            self._registry.get(file_id) for partition in approved for file_id in partition.file_ids
        )
        known = [file for file in members if file is not None]
        if known:
            require_complete_columns(known)
        created = self._backend.create_sessions(project_id, approved)
        covered: set[str] = set()
        for session in created:
            self._store(session)
            covered.update(session.file_ids)
        missing = [
            partition.account_name
            for partition in approved
            if not any(file_id in covered for file_id in partition.file_ids)
        ]
        if missing:
            logger.warning(
                "sessions not created project=%s accounts=%s", project_id, ", ".join(missing)
            )
        logger.info("sessions created project=%s count=%s", project_id, len(created))
        return SessionBatchResult(created=list(created), missing=missing)

    def update(
        self,
        project_id: str,
        session_id: str,
        session_name: str | None = None,
        worker_name: str | None = None,
    ) -> Session:
        session = self._require(session_id)
        changes: dict[str, str] = {}
        if session_name is not None and session_name != session.session_name:
            changes["session_name"] = session_name
        if worker_name is not None and worker_name != session.worker_name:
            changes["worker_name"] = worker_name
        if not changes:
            return session
        updated = self._backend.update_session(project_id, session_id, **changes)
        self._sessions[session_id] = updated
        return updated

    def merge(self, project_id: str, session_ids: Sequence[str]) -> Session:
        ids = require_at_least("merge", list(dict.fromkeys(session_ids)), 2)
        sessions = [self._require(session_id) for session_id in ids]
        # The first session receives the files, so it must still accept changes.
        if not SESSION_TRANSITIONS.get(sessions[0].state):
            raise InvalidTransitionError("session", sessions[0].state, "MERGE_INTO")
        for session in sessions[1:]:
            advance_session(session.state, MERGED)
        self._require_confirmation(
            f"Merge {len(ids)} sessions into {sessions[0].session_name}?", "Merge"
        )
        merged = self._backend.merge_sessions(project_id, ids)
        for session_id in ids[1:]:
            self._sessions.pop(session_id, None)
        self._store(merged)
        logger.info("sessions merged project=%s into=%s count=%s", project_id, ids[0], len(ids))
        return merged

    def delete(self, project_id: str, session_ids: Sequence[str]) -> None:
        ids = require_at_least("delete", list(dict.fromkeys(session_ids)), 1)
        sessions = [self._require(session_id) for session_id in ids]
        for session in sessions:
            advance_session(session.state, DELETED)
        self._require_confirmation(
            f"Delete {len(ids)} session(s)? Their files will become ungrouped.", "Delete"
        )
        self._backend.delete_sessions(project_id, ids)
        for session in sessions:
            self._registry.link_session(session.file_ids, None)
            self._sessions.pop(session.session_id, None)
        logger.info("sessions deleted project=%s ids=%s", project_id, ",".join(ids))

    def start(self, project_id: str, session_ids: Sequence[str]) -> Session:
        session_id = require_exactly_one("start", list(session_ids))
        session = self._require(session_id)
        advance_session(session.state, STARTED)
        started = _settled(session, self._backend.start_session(project_id, session_id), STARTED)
        self._store(started)
        logger.info("session started project=%s session_id=%s", project_id, session_id)
        return started

    def complete(self, project_id: str, session_ids: Sequence[str]) -> Session:
        session_id = require_exactly_one("complete", list(session_ids))
        session = self._require(session_id)
        advance_session(session.state, COMPLETED)
        self._require_confirmation(
            f"Complete {session.session_name}? This cannot be undone.", "Completion"
        )
        completed = _settled(
            session, self._backend.complete_session(project_id, session_id), COMPLETED
        )
        completed.is_completed = True
        self._store(completed)
        logger.info("session completed project=%s session_id=%s", project_id, session_id)
        return completed

    def add_files(
        self, project_id: str, session_ids: Sequence[str], file_ids: Sequence[str]
    ) -> Session:
        session_id = require_exactly_one("add files to", list(session_ids))
        unique_files = require_at_least("add to a session", list(dict.fromkeys(file_ids)), 1)
        session = self._require(session_id)
        if not SESSION_TRANSITIONS.get(session.state):
            raise InvalidTransitionError("session", session.state, "ADD_FILES")
        require_complete_columns([self._registry.require(file_id) for file_id in unique_files])
        updated = self._backend.add_files_to_session(project_id, session_id, unique_files)
        for other in self._sessions.values():
            if other.session_id != session_id:
                other.file_ids = [fid for fid in other.file_ids if fid not in unique_files]
                other.total_files = len(other.file_ids)
        self._store(updated)
        return updated

    def download_url(self, project_id: str, session_id: str) -> str:
        session = self._require(session_id)
        if not session.is_completed:
            raise InvalidTransitionError("session", session.state, "DOWNLOAD")
        return self._backend.get_download_url(project_id, session_id)

    def _require(self, session_id: str) -> Session:
        session = self._sessions.get(session_id)
        if session is None:
            raise NotFoundError(f"Session not found: {session_id}")
        return session

    def _store(self, session: Session) -> None:
        self._sessions[session.session_id] = session
        self._registry.link_session(session.file_ids, session.session_id)

    def _require_confirmation(self, message: str, action: str) -> None:
        if not self._confirm.confirm(message):
            raise OperationCancelledError(f"{action} was cancelled.")


def _settled(local: Session, returned: Session, state: str) -> Session:
    """Session after a transition; sparse backend replies keep the local fields."""

    if returned.session_name:
        returned.state = state
        return returned
    return replace(
        local,
        state=state,
        is_completed=returned.is_completed or local.is_completed,
        export_path=returned.export_path or local.export_path,
    )
