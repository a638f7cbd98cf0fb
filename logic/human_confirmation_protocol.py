"""
HUMAN CONFIRMATION PROTOCOL
Asks the user to approve a flagged action (or a whole plan) before it runs.

RULES:
1. One request -> one unique confirmation id
2. A request resolves exactly once: approved, denied or timed out
3. Silence is a denial (timer fires after `timeout` seconds)
4. Resolution removes the entry; late or repeated responses are ignored

Message sent to the client:
    {"type": "confirmation_request",
     "confirmationId": "confirm_1700000000000_k3j9x2a1q",
     "action": {"type": "key_press", "description": "Press ctrl+alt+delete"},
     "timeout": 30000}

Philosophy:
"Human remains sovereign. System proposes, human decides."
"""
import asyncio
import inspect
import logging
import secrets
import string
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Optional

from common import constants
from common import messages

logger = logging.getLogger(__name__)

_ID_ALPHABET = string.ascii_lowercase + string.digits


class ConfirmationOutcome(Enum):
    APPROVED = "approved"
    DENIED = "denied"
    TIMED_OUT = "timed_out"


@dataclass
class PendingConfirmation:
    """One outstanding request. Exists only while unresolved."""
    confirmation_id: str
    action_type: str
    description: str
    future: asyncio.Future
    timer: Optional[asyncio.TimerHandle] = None
    created_at: float = field(default_factory=time.time)


def new_confirmation_id() -> str:
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(9))
    return f"confirm_{int(time.time() * 1000)}_{suffix}"


class HumanConfirmationProtocol:
    """
    Table of pending confirmations for one agent instance.

    Each entry owns a future resolved by the user's response or by a
    loop.call_later timer, whichever comes first.
    """

    def __init__(self, timeout: float = constants.CONFIRMATION_TIMEOUT_SECS):
        """
        Initialize confirmation protocol.

        Args:
            timeout: Seconds before an unanswered request counts as denied
        """
        self.timeout = timeout
        self.pending_confirmations: Dict[str, PendingConfirmation] = {}

    async def request(
        self,
        action_type: str,
        description: str,
        send_to_client: Callable[[Dict[str, Any]], Any],
    ) -> ConfirmationOutcome:
        """
        Send a confirmation request and wait for the answer.

        Args:
            action_type: Action kind (or "action_plan") shown to the user
            description: Human-readable description
            send_to_client: Sync or async callable taking the message dict

        Returns:
            ConfirmationOutcome
        """
        loop = asyncio.get_running_loop()
        confirmation_id = new_confirmation_id()
        pending = PendingConfirmation(
            confirmation_id=confirmation_id,
            action_type=action_type,
            description=description,
            future=loop.create_future(),
        )
        self.pending_confirmations[confirmation_id] = pending
        pending.timer = loop.call_later(self.timeout, self._expire, confirmation_id)

        message = messages.confirmation_request_message(
            confirmation_id, action_type, description, int(self.timeout * 1000)
        )
        try:
            sent = send_to_client(message)
            if inspect.isawaitable(sent):
                await sent
        except Exception:
            self.clear_confirmation(confirmation_id)
            raise

        logger.info(f"Confirmation requested: {confirmation_id} ({action_type}: {description})")
        try:
            return await pending.future
        finally:
            # Cancelled waiters must not leave a live entry behind
            self.clear_confirmation(confirmation_id)

    def process_confirmation(self, confirmation_id: str, approved: bool) -> bool:
        """
        Resolve a pending request with the user's answer.

        Args:
            confirmation_id: Id from the confirmation_request message
            approved: User's answer

        Returns:
            True if a pending request was resolved, False if the id is unknown
            (already resolved, expired or never issued)
        """
        pending = self.pending_confirmations.pop(confirmation_id, None)
        if pending is None:
            logger.debug(f"Ignoring response for unknown confirmation: {confirmation_id}")
            return False

        if pending.timer is not None:
            pending.timer.cancel()
        outcome = ConfirmationOutcome.APPROVED if approved else ConfirmationOutcome.DENIED
        if not pending.future.done():
            pending.future.set_result(outcome)

        if approved:
            logger.info(f"Confirmation approved: {confirmation_id}")
        else:
            logger.warning(f"[SECURITY] Confirmation denied: {confirmation_id} ({pending.description})")
        return True

    def _expire(self, confirmation_id: str) -> None:
        pending = self.pending_confirmations.pop(confirmation_id, None)
        if pending is None:
            return
        if not pending.future.done():
            pending.future.set_result(ConfirmationOutcome.TIMED_OUT)
        logger.warning(f"[SECURITY] Confirmation timed out: {confirmation_id} ({pending.description})")

    def clear_confirmation(self, confirmation_id: str) -> None:
        pending = self.pending_confirmations.pop(confirmation_id, None)
        if pending is None:
            return
        if pending.timer is not None:
            pending.timer.cancel()
        if not pending.future.done():
            pending.future.cancel()

    def clear_expired_confirmations(self) -> int:
        """
        Deny every entry older than the timeout whose timer has not fired.

        Returns:
            Number of entries removed
        """
        cutoff = time.time() - self.timeout
        expired = [cid for cid, p in self.pending_confirmations.items() if p.created_at <= cutoff]
        for confirmation_id in expired:
            pending = self.pending_confirmations[confirmation_id]
            if pending.timer is not None:
                pending.timer.cancel()
            self._expire(confirmation_id)
        if expired:
            logger.info(f"Cleared {len(expired)} expired confirmation(s)")
        return len(expired)

    def get_pending_count(self) -> int:
        """
        Get count of pending confirmations.

        Returns:
            Number of pending confirmations
        """
        return len(self.pending_confirmations)
