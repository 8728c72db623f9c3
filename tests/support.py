from database import MemoryStore
from messages import MessageStore, SystemNotices
from presence import PresenceRegistry


class FakeClock:
    """Callable clock returning epoch seconds that only moves when told to."""

    def __init__(self, start=1_700_000_000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


def build(clock=None, store=None):
    clock = clock or FakeClock()
    store = store or MemoryStore()
    notices = SystemNotices(store, clock=clock)
    registry = PresenceRegistry(store, notices, clock=clock)
    messages = MessageStore(store, registry, notices, clock=clock)
    return store, registry, messages, clock


def history(store):
    """Every stored message, in insertion order."""
    return store.messages.find_many()
