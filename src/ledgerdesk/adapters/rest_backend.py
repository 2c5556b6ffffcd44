from __future__ import annotations

import logging
from typing import Any

import requests

from ledgerdesk.domain.errors import AuthError, BackendError, NotFoundError
from ledgerdesk.domain.lifecycle import COMPLETED, session_state_from_flags
from ledgerdesk.domain.models import (
    FileStatus,
    FinalizeUpload,
    Partition,
    Session,
    UploadedFile,
    UploadSlot,
    UploadStatus,
)
from ledgerdesk.ports.backend_port import UploadBackendPort

logger = logging.getLogger(__name__)


class RestUploadBackend(UploadBackendPort):
    def __init__(self, base_url: str, access_token: str, timeout: float = 20) -> None:
        self._base_url = base_url.rstrip("/")
        self._access_token = access_token
        self._timeout = timeout

    def request_upload_slot(
        self, project_id: str, file_name: str, file_size: int, session_id: str | None = None
    ) -> UploadSlot:
        payload = self._post(
            f"{self._upload_url(project_id)}/presigned-url",
            {"fileName": file_name, "fileSize": file_size, "sessionId": session_id},
            context="request an upload slot",
        )
        return UploadSlot(
            write_url=payload.get("presignedUrl") or payload.get("writeUrl", ""),
            upload_id=payload.get("uploadId", ""),
            object_key=payload.get("s3Key") or payload.get("objectKey", ""),
            session_id=payload.get("sessionId"),
        )

    def finalize_upload(self, project_id: str, upload: FinalizeUpload) -> UploadedFile:
        payload = self._post(
            f"{self._upload_url(project_id)}/files",
            {
                "uploadId": upload.upload_id,
                "sessionId": upload.session_id,
                "fileName": upload.file_name,
                "fileSize": upload.file_size,
                "s3Key": upload.object_key,
            },
            context="finalize an upload",
        )
        uploaded = file_from_payload(payload)
        if uploaded.upload_id is None:
            uploaded.upload_id = upload.upload_id
        return uploaded

    def get_upload_status(self, project_id: str, upload_id: str) -> UploadStatus:
        payload = self._get(
            f"{self._upload_url(project_id)}/status/{upload_id}",
            context="read upload status",
        )
        return UploadStatus(
            status=_parse_status(payload.get("status")),
            progress=int(payload.get("progress") or 0),
            error=payload.get("error"),
        )

    def list_files(self, project_id: str) -> list[UploadedFile]:
        payload = self._get(f"{self._upload_url(project_id)}/files", context="list files")
        return [file_from_payload(item) for item in payload or []]

    def set_file_columns(
        self,
        project_id: str,
        file_id: str,
        account_column_name: str | None = None,
        amount_column_name: str | None = None,
    ) -> UploadedFile:
        body: dict[str, str] = {}
        if account_column_name is not None:
            body["accountColumnName"] = account_column_name
        if amount_column_name is not None:
            body["amountColumnName"] = amount_column_name
        response = requests.put(
            f"{self._upload_url(project_id)}/files/{file_id}/columns",
            headers=self._json_headers(),
            json=body,
            timeout=self._timeout,
        )
        self._raise_for_status(response, context="set file columns")
        return file_from_payload(response.json())

    def extract_account_values(self, project_id: str, file_id: str, column_name: str) -> list[str]:
        payload = self._post(
            f"{self._upload_url(project_id)}/files/{file_id}/extract-accounts",
            {"columnName": column_name},
            context="extract account values",
        )
        if isinstance(payload, dict):
            payload = payload.get("accountContents") or payload.get("accountNames") or []
        return [str(value) for value in payload]

    def calculate_total_amount(self, project_id: str, file_id: str, column_name: str) -> float:
        payload = self._post(
            f"{self._upload_url(project_id)}/files/{file_id}/calculate-amount",
            {"columnName": column_name},
            context="calculate total amount",
        )
        return float(payload.get("totalAmount") or 0)

    def delete_file(self, project_id: str, file_id: str) -> None:
        response = requests.delete(
            f"{self._upload_url(project_id)}/files/{file_id}",
            headers=self._auth_header(),
            timeout=self._timeout,
        )
        self._raise_for_status(response, context="delete file")

    def analyze_partitions(self, project_id: str, file_ids: list[str]) -> list[Partition]:
        payload = self._post(
            f"{self._upload_url(project_id)}/analyze-partitions",
            {"fileIds": file_ids},
            context="analyze partitions",
        )
        items = payload.get("partitions", []) if isinstance(payload, dict) else payload
        return [partition_from_payload(item) for item in items or []]

    def list_sessions(self, project_id: str) -> list[Session]:
        payload = self._get(f"{self._upload_url(project_id)}/sessions", context="list sessions")
        return [session_from_payload(item) for item in payload or []]

    def create_sessions(self, project_id: str, partitions: list[Partition]) -> list[Session]:
        payload = self._post(
            f"{self._upload_url(project_id)}/sessions/batch",
            {"partitions": [partition_to_payload(partition) for partition in partitions]},
            context="create sessions",
        )
        return [session_from_payload(item) for item in payload or []]

    def update_session(
        self,
        project_id: str,
        session_id: str,
        session_name: str | None = None,
        worker_name: str | None = None,
    ) -> Session:
        body: dict[str, str] = {}
        if session_name is not None:
            body["sessionName"] = session_name
        if worker_name is not None:
            body["workerName"] = worker_name
        response = requests.put(
            f"{self._upload_url(project_id)}/sessions/{session_id}",
            headers=self._json_headers(),
            json=body,
            timeout=self._timeout,
        )
        self._raise_for_status(response, context="update session")
        return session_from_payload(response.json())

    def merge_sessions(self, project_id: str, session_ids: list[str]) -> Session:
        payload = self._post(
            f"{self._upload_url(project_id)}/sessions/merge",
            {"sessionIds": session_ids},
            context="merge sessions",
        )
        return session_from_payload(payload)

    def delete_sessions(self, project_id: str, session_ids: list[str]) -> None:
        response = requests.delete(
            f"{self._upload_url(project_id)}/sessions/batch",
            headers=self._json_headers(),
            json={"sessionIds": session_ids},
            timeout=self._timeout,
        )
        self._raise_for_status(response, context="delete sessions")

    def add_files_to_session(self, project_id: str, session_id: str, file_ids: list[str]) -> Session:
        payload = self._post(
            f"{self._upload_url(project_id)}/sessions/{session_id}/files",
            {"fileIds": file_ids},
            context="add files to session",
        )
        return session_from_payload(payload)

    def start_session(self, project_id: str, session_id: str) -> Session:
        payload = self._post(
            f"{self._upload_url(project_id)}/sessions/{session_id}/start",
            None,
            context="start session",
        )
        return session_from_payload(payload or {"sessionId": session_id, "currentStep": "FILE_LOAD"})

    def complete_session(self, project_id: str, session_id: str) -> Session:
        payload = self._post(
            f"{self._upload_url(project_id)}/sessions/{session_id}/complete",
            None,
            context="complete session",
        )
        if not isinstance(payload, dict) or "sessionName" not in payload:
            # job summary, not a session body
            return Session(
                session_id=session_id,
                session_name="",
                file_ids=[],
                is_completed=True,
                state=COMPLETED,
            )
        return session_from_payload(payload)

    def get_download_url(self, project_id: str, session_id: str) -> str:
        payload = self._get(
            f"{self._upload_url(project_id)}/sessions/{session_id}/download",
            context="get download url",
        )
        return payload.get("downloadUrl", "")

    def _upload_url(self, project_id: str) -> str:
        return f"{self._base_url}/api/projects/{project_id}/upload"

    def _get(self, url: str, context: str) -> Any:
        response = requests.get(url, headers=self._auth_header(), timeout=self._timeout)
        self._raise_for_status(response, context=context)
        return response.json()

    def _post(self, url: str, body: dict | None, context: str) -> Any:
        logger.debug("POST %s", url)
        response = requests.post(
            url,
            headers=self._json_headers(),
            json=body,
            timeout=self._timeout,
        )
        self._raise_for_status(response, context=context)
        if not response.content:
            return {}
        return response.json()

    def _auth_header(self) -> dict[str, str]:
        if not self._access_token:
            return {}
        return {"Authorization": f"Bearer {self._access_token}"}

    def _json_headers(self) -> dict[str, str]:
        return {**self._auth_header(), "Content-Type": "application/json"}

    @staticmethod
    def _raise_for_status(response: requests.Response, context: str) -> None:
        if response.status_code in (401, 403):
            raise AuthError(f"Auth failed while attempting to {context}.", response.status_code)
        if response.status_code == 404:
            raise NotFoundError(
                f"Resource not found while attempting to {context}.", response.status_code
            )
        if response.status_code >= 400:
            logger.warning(
                "backend error status=%s context=%s body=%s",
                response.status_code,
                context,
                response.text[:200],
            )
            raise BackendError(
                f"Backend error {response.status_code} while attempting to {context}.",
                response.status_code,
            )


def _parse_status(value: Any) -> FileStatus:
    normalized = str(value or FileStatus.UPLOADED.value).strip().upper()
    for status in FileStatus:
        if status.value == normalized:
            return status
    raise BackendError(f"Unknown upload status: {value}")


def _optional_float(value: Any) -> float | None:
    if value is None:
        return None
    return float(value)


def file_from_payload(payload: dict) -> UploadedFile:
    contents = payload.get("accountContents")
    return UploadedFile(
        file_id=str(payload.get("fileId", "")),
        file_name=payload.get("fileName", ""),
        file_size=int(payload.get("fileSize") or 0),
        object_key=payload.get("s3Key") or payload.get("objectKey", ""),
        status=_parse_status(payload.get("status")),
        upload_id=payload.get("uploadId"),
        row_count=int(payload.get("rowCount") or 0),
        detected_columns=list(payload.get("detectedColumns") or []),
        account_column_name=payload.get("accountColumnName") or None,
        amount_column_name=payload.get("amountColumnName") or None,
        account_contents=[str(value) for value in contents] if contents is not None else None,
        total_amount=_optional_float(payload.get("totalAmount")),
        session_id=payload.get("sessionId"),
    )


def partition_from_payload(payload: dict) -> Partition:
    file_ids = [str(file_id) for file_id in payload.get("fileIds") or []]
    return Partition(
        account_name=payload.get("accountName", ""),
        file_ids=file_ids,
        file_count=int(payload.get("fileCount") or len(file_ids)),
        total_rows=int(payload.get("totalRows") or 0),
        total_amount=float(payload.get("totalAmount") or 0),
        session_name=payload.get("sessionName") or "",
        worker_name=payload.get("workerName") or "",
        selected=bool(payload.get("selected", True)),
    )


def partition_to_payload(partition: Partition) -> dict:
    return {
        "accountName": partition.account_name,
        "fileIds": list(partition.file_ids),
        "fileCount": partition.file_count,
        "totalRows": partition.total_rows,
        "totalAmount": partition.total_amount,
        "sessionName": partition.session_name,
        "workerName": partition.worker_name,
    }


def session_from_payload(payload: dict) -> Session:
    uploaded_files = payload.get("uploadedFiles")
    if payload.get("fileIds") is not None:
        file_ids = [str(file_id) for file_id in payload["fileIds"]]
    elif uploaded_files is not None:
        file_ids = [str(item.get("fileId", "")) for item in uploaded_files]
    else:
        file_ids = []
    is_completed = bool(payload.get("isCompleted"))
    return Session(
        session_id=str(payload.get("sessionId", "")),
        session_name=payload.get("sessionName") or "",
        worker_name=payload.get("workerName") or "",
        file_ids=file_ids,
        account_names=list(payload.get("accountNames") or []),
        total_files=int(payload.get("totalFiles") or len(file_ids)),
        total_row_count=int(payload.get("totalRowCount") or 0),
        total_amount=float(payload.get("totalAmount") or 0),
        is_completed=is_completed,
        export_path=payload.get("exportPath"),
        state=payload.get("state")
        or session_state_from_flags(is_completed, payload.get("currentStep")),
    )
