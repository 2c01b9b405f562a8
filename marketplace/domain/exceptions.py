class MarketplaceError(Exception):
    """Base class for marketplace domain exceptions."""

    pass


class InvalidStatusTransition(MarketplaceError):
    """Raised when a state machine is asked for a move its transition table forbids."""

    def __init__(self, entity: str, current: str, target: str):
        self.entity = entity
        self.current = current
        self.target = target
        super().__init__(f"{entity} cannot transition from '{current}' to '{target}'")
