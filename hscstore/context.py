"""
hscstore Context - Per-Store Lifecycle Flags
============================================

Every store instance owns exactly one ``StoreContext``. Middleware and the
persistence layer receive it through ``StoreApi.context`` instead of sharing
module-level flags, so two stores never see each other's lifecycle.
"""

from dataclasses import dataclass


@dataclass
class StoreContext:
    """
    Mutable lifecycle flags of a single store.

    Attributes:
        is_mounted: Set once by the binding layer after its first attach cycle.
            Persistence commits are suppressed until then.
        is_hydrated: Set when rehydration finished (successfully or not).
            Rehydration never runs twice for the same store.
        is_time_traveling: Held while a history jump writes into the cell so
            the write is not recorded into its own history.
    """

    is_mounted: bool = False
    is_hydrated: bool = False
    is_time_traveling: bool = False

    def copy(self) -> "StoreContext":
        return StoreContext(
            is_mounted=self.is_mounted,
            is_hydrated=self.is_hydrated,
            is_time_traveling=self.is_time_traveling,
        )
