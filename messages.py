"""
Message history and per-viewer visibility.

Messages are written once to a single shared history. Who may see what is
decided when the history is read: a viewer sees what they sent, what was
addressed to them and everything sent to the broadcast token.
"""
import logging
import time
from datetime import datetime, timezone

from errors import Failure, Result
from schemas import BROADCAST, USER_MESSAGE_TYPES, Message

LOGGER = logging.getLogger(__name__)


def parse_limit(limit):
    """Turn a limit into a positive int, None when absent. Raises ValueError."""
    if limit is None or limit == "":
        return None
    if isinstance(limit, bool):
        raise ValueError("limit must be a number")
    if isinstance(limit, str):
        limit = limit.strip()
        # int() alone would also take "1_0", "+1" and non-ASCII digits
        if not (limit.isascii() and limit.isdigit()):
            raise ValueError("limit must be a number")
    value = int(limit)
    if isinstance(limit, float) and value != limit:
        raise ValueError("limit must be a whole number")
    if value <= 0:
        raise ValueError("limit must be positive")
    return value


def message_document(clock, sender, to, text, kind):
    created = datetime.fromtimestamp(clock(), tz=timezone.utc)
    message = Message(
        sender=sender,
        to=to,
        text=text,
        type=kind,
        time=created.astimezone().strftime("%H:%M:%S"),
        createdAt=created,
    )
    return message.model_dump(by_alias=True)


class SystemNotices:
    """Writes join/leave status lines. No presence check: the sender may already be gone."""

    def __init__(self, store, clock=time.time):
        self.messages = store.messages
        self.clock = clock

    def append(self, sender: str, text: str) -> None:
        self.messages.insert(message_document(self.clock, sender, BROADCAST, text, "status"))


class MessageStore:
    def __init__(self, store, presence, notices, clock=time.time):
        self.messages = store.messages
        self.presence = presence
        self.notices = notices
        self.clock = clock

    def send(self, sender: str, to: str, text: str, kind: str) -> Result:
        if not self.presence.is_present(sender):
            return Result.fail(Failure.UNAUTHENTICATED, "User doesn't exist on database or it's not logged")
        if not to or not text:
            return Result.fail(Failure.INVALID_ARGUMENT, "to and text are required")
        if kind not in USER_MESSAGE_TYPES:
            return Result.fail(Failure.INVALID_ARGUMENT, f"type must be one of {', '.join(USER_MESSAGE_TYPES)}")

        self.messages.insert(message_document(self.clock, sender, to, text, kind))
        LOGGER.debug("%s -> %s (%s)", sender, to, kind)
        return Result.success()

    def append_system_notice(self, sender: str, text: str) -> None:
        self.notices.append(sender, text)

    def visible_to(self, viewer: str, limit=None) -> Result:
        if not self.presence.is_present(viewer):
            return Result.fail(Failure.UNAUTHENTICATED, "User is not Online")
        try:
            limit = parse_limit(limit)
        except (TypeError, ValueError, OverflowError):
            return Result.fail(Failure.INVALID_ARGUMENT, "Limit parameter invalid")

        visible = self.messages.find_many(
            {"$or": [{"from": viewer}, {"to": viewer}, {"to": BROADCAST}]}
        )
        if limit is not None:
            visible = visible[-limit:]
        return Result.success(visible)
