"""POLL_INBOX executor."""

from sqlmodel import select

from outreach.executors.base import ContextExecutor
from outreach.models.automation_task import AutomationTask, TaskType
from outreach.models.messaging import SendAccount
from outreach.models.notification import NotificationType
from outreach.models.settings import load_settings


class PollInboxExecutor(ContextExecutor):
    """Poll every active send account that has an inbox configured.

    A failure on one mailbox fails the task so the whole poll is retried;
    the poller is expected to be idempotent over already-seen replies.
    """

    task_type = TaskType.POLL_INBOX

    def execute(self, task: AutomationTask) -> None:
        with self.session() as session:
            if not load_settings(session).inbox_polling_enabled:
                return
            accounts = session.exec(
                select(SendAccount)
                .where(SendAccount.is_active == True)  # noqa: E712
                .where(SendAccount.imap_host != None)  # noqa: E711
            ).all()

        for account in accounts:
            new_replies = self.context.poller.poll(account)
            if new_replies <= 0:
                continue

            self._logger.info(
                f"{new_replies} new replies in {account.email}",
                extra={"send_account_id": str(account.id), "new_replies": new_replies},
            )
            noun = "reply" if new_replies == 1 else "replies"
            self.context.notifier.create(
                NotificationType.REPLY_RECEIVED,
                "New Reply Detected",
                f"{new_replies} new {noun} detected in {account.email}.",
                action_url="/inbox",
            )
