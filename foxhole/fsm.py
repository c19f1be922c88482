from __future__ import annotations

from statemachine import State, StateMachine


class ConnectionFSM(StateMachine):
    """Protocol state of one live connection.

    unauthenticated -> authenticated -> closed; a connection can also close
    before it ever authenticates. The router consults the current state before
    dispatching; this machine only guards transitions.
    """

    unauthenticated = State("unauthenticated", value="unauthenticated", initial=True)
    authenticated = State("authenticated", value="authenticated")
    closed = State("closed", value="closed", final=True)

    authenticate = unauthenticated.to(authenticated)
    disconnect = unauthenticated.to(closed) | authenticated.to(closed)

    def __init__(self, connection_id: str):
        self.connection_id = connection_id
        super().__init__()

    @property
    def is_authenticated(self) -> bool:
        return self.current_state_value == self.authenticated.value

    @property
    def is_closed(self) -> bool:
        return self.current_state_value == self.closed.value
