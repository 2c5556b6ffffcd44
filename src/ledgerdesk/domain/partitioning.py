from __future__ import annotations

from typing import Iterable, Mapping

from ledgerdesk.domain.models import Partition, Session, UploadedFile

NO_ACCOUNT = "(none)"


def default_session_name(account_name: str, file_count: int) -> str:
    noun = "file" if file_count == 1 else "files"
    return f"{account_name} ({file_count} {noun})"


def account_key(file: UploadedFile) -> str:
    """Grouping key for a file: its distinct account values, in extraction order."""

    values: list[str] = []
    for raw in file.account_contents or []:
        value = str(raw).strip()
        if value and value not in values:
            values.append(value)
    if not values:
        return NO_ACCOUNT
    return ", ".join(values)


def derive_partitions(files: Iterable[UploadedFile]) -> list[Partition]:
    """Group files by account value without splitting any file.

    Partitions come out in order of first appearance in ``files``.
    """

    grouped: dict[str, list[UploadedFile]] = {}
    for file in files:
        grouped.setdefault(account_key(file), []).append(file)

    partitions: list[Partition] = []
    for account_name, members in grouped.items():
        file_count = len(members)
        partitions.append(
            Partition(
                account_name=account_name,
                file_ids=[file.file_id for file in members],
                file_count=file_count,
                total_rows=sum(file.row_count or 0 for file in members),
                total_amount=sum(file.total_amount or 0.0 for file in members),
                session_name=default_session_name(account_name, file_count),
            )
        )
    return partitions


def approved_partitions(partitions: Iterable[Partition]) -> list[Partition]:
    return [partition for partition in partitions if partition.selected]


def session_from_partition(
    session_id: str, partition: Partition, files_by_id: Mapping[str, UploadedFile]
) -> Session:
    members = [files_by_id[file_id] for file_id in partition.file_ids if file_id in files_by_id]
    return Session(
        session_id=session_id,
        session_name=partition.session_name or default_session_name(
            partition.account_name, len(members)
        ),
        worker_name=partition.worker_name or "",
        file_ids=[file.file_id for file in members],
        account_names=[partition.account_name],
        total_files=len(members),
        total_row_count=sum(file.row_count or 0 for file in members),
        total_amount=sum(file.total_amount or 0.0 for file in members),
    )


def merge_into_first(
    sessions: list[Session], files_by_id: Mapping[str, UploadedFile]
) -> Session:
    """Fold every listed session into the first one and recompute aggregates."""

    target = sessions[0]
    file_ids: list[str] = []
    account_names: list[str] = []
    for session in sessions:
        for file_id in session.file_ids:
            if file_id not in file_ids:
                file_ids.append(file_id)
        for name in session.account_names:
            if name not in account_names:
                account_names.append(name)

    members = [files_by_id[file_id] for file_id in file_ids if file_id in files_by_id]
    target.file_ids = file_ids
    target.account_names = account_names
    target.total_files = len(file_ids)
    target.total_row_count = sum(file.row_count or 0 for file in members)
    target.total_amount = sum(file.total_amount or 0.0 for file in members)
    return target
