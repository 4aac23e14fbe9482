from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple

from printbot.negotiation import Step


@dataclass
class ConversationSession:
    step: Step
    job_id: str
    last_activity: float


class SessionStore:
    """Per-conversation cursor over a job's configuration dialog.

    Holds job ids only; callers drop a session whose job has disappeared.
    """

    def __init__(self, clock: Callable[[], float]):
        self._clock = clock
        self._sessions: Dict[str, ConversationSession] = {}

    def get(self, conversation_id: str) -> Optional[ConversationSession]:
        return self._sessions.get(conversation_id)

    def put(self, conversation_id: str, session: ConversationSession) -> None:
        self._sessions[conversation_id] = session

    def delete(self, conversation_id: str) -> Optional[ConversationSession]:
        return self._sessions.pop(conversation_id, None)

    def items(self) -> List[Tuple[str, ConversationSession]]:
        return list(self._sessions.items())

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, conversation_id: str) -> bool:
        return conversation_id in self._sessions

    def start(self, conversation_id: str, job_id: str, step: Step = Step.CONFIRM_PRINT) -> ConversationSession:
        session = ConversationSession(step=step, job_id=job_id, last_activity=self._clock())
        self._sessions[conversation_id] = session
        return session

    def advance(self, conversation_id: str, step: Step) -> ConversationSession:
        session = self._sessions[conversation_id]
        session.step = step
        session.last_activity = self._clock()
        return session

    def touch(self, conversation_id: str) -> None:
        session = self._sessions.get(conversation_id)
        if session is not None:
            session.last_activity = self._clock()

    def idle_longer_than(self, timeout: float) -> List[str]:
        now = self._clock()
        return [cid for cid, s in self._sessions.items() if now - s.last_activity > timeout]

    def clear(self) -> None:
        self._sessions.clear()
