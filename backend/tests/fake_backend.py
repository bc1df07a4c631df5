"""Fake SessionBackend: records every open/commit/abort/end for transaction tests.

Invariants:
    - Writes go to a session-local buffer and reach `store` only on commit
    - Every call is recorded in `events` in order, tagged with the session number
    - Failure injection per step: fail_open, fail_commit, fail_end
"""


class FakeSession:
    """Opaque handle: numbered, with a pending-write buffer."""

    def __init__(self, number: int):
        self.number = number
        self.pending: dict = {}

    def write(self, key, value):
        self.pending[key] = value

    def __repr__(self):
        return f"FakeSession({self.number})"


class FakeBackend:

    def __init__(self, fail_open=None, fail_commit=None, fail_end=None):
        self.fail_open = fail_open
        self.fail_commit = fail_commit
        self.fail_end = fail_end
        self.store: dict = {}
        self.events: list[tuple[str, int]] = []
        self.sessions: list[FakeSession] = []

    async def open(self):
        if self.fail_open:
            raise self.fail_open
        session = FakeSession(len(self.sessions) + 1)
        self.sessions.append(session)
        self.events.append(("open", session.number))
        return session

    async def run_atomically(self, session, body):
        try:
            result = await body(session)
        except BaseException:
            self.events.append(("abort", session.number))
            raise
        if self.fail_commit:
            self.events.append(("abort", session.number))
            raise self.fail_commit
        self.store.update(session.pending)
        self.events.append(("commit", session.number))
        return result

    async def end(self, session):
        self.events.append(("end", session.number))
        if self.fail_end:
            raise self.fail_end

    def count(self, kind: str) -> int:
        return sum(1 for event, _ in self.events if event == kind)
