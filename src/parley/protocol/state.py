"""Protocol state machine for the MCP session lifecycle."""

import logging
from enum import Enum, auto
from typing import Callable

logger = logging.getLogger(__name__)


class ProtocolState(Enum):
    """
    Session lifecycle states.

    State transitions:
        UNINITIALIZED -> INITIALIZING -> INITIALIZED -> CLOSED

    CLOSED can be reached from every state, on transport closure or
    on an unrecoverable handshake failure.
    """

    UNINITIALIZED = auto()
    INITIALIZING = auto()
    INITIALIZED = auto()
    CLOSED = auto()

    def __str__(self) -> str:
        return self.name


class InvalidStateTransition(Exception):
    """Raised when an invalid state transition is attempted."""

    def __init__(self, from_state: ProtocolState, to_state: ProtocolState):
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(
            f"Invalid state transition: {from_state.name} -> {to_state.name}"
        )


# Type for state transition callbacks
StateTransitionCallback = Callable[[ProtocolState, ProtocolState], None]


class ProtocolStateMachine:
    """
    Manages the handshake lifecycle state of one session.

    Enforces valid state transitions and notifies listeners
    when transitions occur.
    """

    VALID_TRANSITIONS: dict[ProtocolState, list[ProtocolState]] = {
        ProtocolState.UNINITIALIZED: [
            ProtocolState.INITIALIZING,
            ProtocolState.CLOSED,
        ],
        ProtocolState.INITIALIZING: [
            ProtocolState.INITIALIZED,
            ProtocolState.CLOSED,  # Handshake failed or transport lost
        ],
        ProtocolState.INITIALIZED: [
            ProtocolState.CLOSED,
        ],
        ProtocolState.CLOSED: [],  # Terminal state
    }

    def __init__(self, initial_state: ProtocolState = ProtocolState.UNINITIALIZED):
        self._state = initial_state
        self._listeners: list[StateTransitionCallback] = []

    @property
    def state(self) -> ProtocolState:
        """Current protocol state."""
        return self._state

    @property
    def is_ready(self) -> bool:
        """Check if the handshake has completed."""
        return self._state == ProtocolState.INITIALIZED

    @property
    def is_closed(self) -> bool:
        """Check if the session is closed."""
        return self._state == ProtocolState.CLOSED

    def can_transition_to(self, new_state: ProtocolState) -> bool:
        """Check if transition to new_state is valid."""
        return new_state in self.VALID_TRANSITIONS.get(self._state, [])

    def transition(self, new_state: ProtocolState) -> None:
        """
        Transition to a new state.

        Args:
            new_state: The target state.

        Raises:
            InvalidStateTransition: If the transition is not valid.
        """
        if not self.can_transition_to(new_state):
            raise InvalidStateTransition(self._state, new_state)

        old_state = self._state
        self._state = new_state
        logger.debug(f"Protocol state: {old_state} -> {new_state}")

        for listener in self._listeners:
            try:
                listener(old_state, new_state)
            except Exception:
                logger.exception("State transition listener failed")

    def close(self) -> bool:
        """
        Move to CLOSED from whatever state the session is in.

        Returns:
            True if the state changed, False if already closed.
        """
        if self._state == ProtocolState.CLOSED:
            return False
        self.transition(ProtocolState.CLOSED)
        return True

    def on_transition(self, callback: StateTransitionCallback) -> None:
        """
        Register a callback for state transitions.

        Args:
            callback: Function called with (old_state, new_state) on transitions.
        """
        self._listeners.append(callback)

    def remove_listener(self, callback: StateTransitionCallback) -> None:
        """Remove a previously registered callback."""
        try:
            self._listeners.remove(callback)
        except ValueError:
            pass

    def __str__(self) -> str:
        return f"ProtocolStateMachine({self._state.name})"

    def __repr__(self) -> str:
        return f"ProtocolStateMachine(state={self._state!r})"
