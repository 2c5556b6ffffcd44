from __future__ import annotations

from ledgerdesk.ports.confirm_port import ConfirmPort


class StaticConfirm(ConfirmPort):
    """Answers every prompt with ``answer``; the console flips it from a checkbox."""

    def __init__(self, answer: bool) -> None:
        self.answer = answer
        self.prompts: list[str] = []

    def confirm(self, message: str) -> bool:
        self.prompts.append(message)
        return self.answer


class ConsoleConfirm(ConfirmPort):
    def confirm(self, message: str) -> bool:
        reply = input(f"{message} [y/N] ")
        return reply.strip().lower() in {"y", "yes"}
