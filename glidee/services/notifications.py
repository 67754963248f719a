"""
Notification hook.

Push delivery is not implemented; events are logged so the call sites are
in place for a real channel.
"""

import logging

logger = logging.getLogger(__name__)


class Notifier:
    def notify(self, user_id: str | None, kind: str, message: str) -> None:
        if user_id is None:
            return
        logger.info("notify user=%s kind=%s: %s", user_id, kind, message)


notifier = Notifier()
