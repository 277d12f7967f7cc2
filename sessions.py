"""
Per-sender conversation sessions for the current day.

A session lives in memory only. When the calendar day changes the next
access replaces it with an empty one, so anything not saved to the ledger
before then is gone.
"""

import threading
from collections import defaultdict
from dataclasses import dataclass, field, replace
from datetime import date
from typing import Callable, Dict, List, MutableMapping, Optional, Union

from meals import MealEntry


@dataclass(frozen=True)
class Idle:
    """No meal is waiting for confirmation."""


@dataclass(frozen=True)
class AwaitingConfirmation:
    """A meal extracted from a photo that the sender has not confirmed yet."""

    pending: MealEntry


ConversationState = Union[Idle, AwaitingConfirmation]


@dataclass
class Session:
    owner: str
    day: date
    meals: List[MealEntry] = field(default_factory=list)
    state: ConversationState = field(default_factory=Idle)

    @property
    def pending(self) -> Optional[MealEntry]:
        if isinstance(self.state, AwaitingConfirmation):
            return self.state.pending
        return None

    def await_confirmation(self, entry: MealEntry):
        self.state = AwaitingConfirmation(entry)

    def confirm(self) -> MealEntry:
        """Moves the pending meal into the day's log."""
        entry = self.state.pending
        self.meals.append(entry)
        self.state = Idle()
        return entry


class SessionStore:
    """
    Maps a sender to today's session.

    :param sessions: backing mapping, a plain dict by default.
    :param today: clock returning the current local date.
    """

    def __init__(
        self,
        sessions: Optional[MutableMapping[str, Session]] = None,
        today: Callable[[], date] = date.today,
    ):
        self._sessions = sessions if sessions is not None else {}
        self._today = today
        self._guard = threading.Lock()
        self._sender_locks: Dict[str, threading.Lock] = defaultdict(threading.Lock)

    def get_or_create(self, sender: str) -> Session:
        today = self._today()
        with self._guard:
            session = self._sessions.get(sender)
            if session is None or session.day != today:
                session = Session(owner=sender, day=today)
                self._sessions[sender] = session
            return session

    def lock(self, sender: str) -> threading.Lock:
        """Lock serializing event handling for one sender."""
        with self._guard:
            return self._sender_locks[sender]

    def snapshot(self) -> List[Session]:
        with self._guard:
            return [
                replace(session, meals=list(session.meals))
                for session in self._sessions.values()
            ]

    def discard_stale(self, today: Optional[date] = None) -> int:
        """
        Drops sessions from days before today, with their idle locks.

        :return: number of sessions dropped.
        """
        today = today or self._today()
        with self._guard:
            stale = [sender for sender, session in self._sessions.items() if session.day < today]
            for sender in stale:
                del self._sessions[sender]
                lock = self._sender_locks.get(sender)
                if lock is not None and not lock.locked():
                    del self._sender_locks[sender]
            return len(stale)

    def __len__(self):
        return len(self._sessions)
