"""
Who is in the room right now.

A participant exists exactly as long as its document does. Staleness is
never judged here; the reaper is the only one that removes participants.
"""
import logging
import time

from errors import Failure, Result, StorageError, UniqueViolation
from schemas import BROADCAST, JOIN_TEXT, Participant

LOGGER = logging.getLogger(__name__)


def now_ms(clock) -> int:
    return int(clock() * 1000)


class PresenceRegistry:
    def __init__(self, store, notices, clock=time.time):
        self.participants = store.participants
        self.notices = notices
        self.clock = clock

    def join(self, name: str) -> Result:
        if not name:
            return Result.fail(Failure.INVALID_ARGUMENT, "name is required")
        if name == BROADCAST:
            return Result.fail(Failure.INVALID_ARGUMENT, f"{BROADCAST!r} is a reserved name")

        participant = Participant(name=name, lastStatus=now_ms(self.clock))
        try:
            self.participants.insert(participant.model_dump())
        except UniqueViolation:
            return Result.fail(Failure.CONFLICT, "This user is already a participant")

        try:
            self.notices.append(name, JOIN_TEXT)
        except Exception:
            # no participant without its join notice
            LOGGER.error("join notice for %r failed, removing the participant again", name)
            try:
                self.participants.delete_one({"name": name})
            except StorageError:
                LOGGER.exception("could not roll back participant %r", name)
            raise

        LOGGER.info("%s joined", name)
        return Result.success()

    def list_active(self):
        return self.participants.find_many()

    def heartbeat(self, name: str) -> Result:
        if not name:
            return Result.fail(Failure.NOT_FOUND, "unknown participant")
        updated = self.participants.update_one(
            {"name": name}, {"$set": {"lastStatus": now_ms(self.clock)}}
        )
        if not updated:
            return Result.fail(Failure.NOT_FOUND, "unknown participant")
        return Result.success()

    def is_present(self, name: str) -> bool:
        if not name:
            return False
        return self.participants.find_one({"name": name}) is not None

    def evict(self, participant) -> bool:
        """Remove a participant unless it sent a heartbeat since it was read."""
        return self.participants.delete_one(
            {"name": participant["name"], "lastStatus": participant["lastStatus"]}
        )
