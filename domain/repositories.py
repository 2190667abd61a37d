from __future__ import annotations

from typing import Protocol

from .models import AppState


class StateStorage(Protocol):
    """
    Abstraction over persistence of the whole ledger state.

    Implementations are responsible for:
    - Mapping between the stored representation and the `AppState` model.
    - Hiding any SQL / driver details from the application layer.

    The settlement and statistics functions never talk to storage; only
    the application services load and save through this port.
    """

    def load(self) -> AppState:
        """Return the stored state, or an empty `AppState` if nothing is stored."""

        ...

    def save(self, state: AppState) -> None:
        """Persist `state`, replacing whatever was stored before."""

        ...
