class PlinkoError(Exception):
    """Base class for errors raised by the plinko engine."""

    status_code = 400

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message


class MissingEpochHashError(PlinkoError):
    """The hash chain has no entry for the requested index (chain not seeded)."""

    status_code = 503

    def __init__(self, game_name: str, index: int):
        super().__init__(f"no pregenerated hash for {game_name} at index {index}")
        self.game_name = game_name
        self.index = index


class InsufficientRandomnessError(PlinkoError):
    status_code = 500


class RoundStateError(PlinkoError):
    """A round cannot be used the way the caller asked (missing, closed, mismatched)."""


class PayoutTableError(PlinkoError):
    """Unsupported rows / risk level combination."""


class InvalidBetError(PlinkoError):
    pass
