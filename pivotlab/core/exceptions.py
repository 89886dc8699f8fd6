"""Exceptions raised by the statistics pipeline."""


class ConfigurationError(ValueError):
    """Invalid average set or statistics parameters (rejected before any row is touched)."""


class PivotStateError(RuntimeError):
    """A bar satisfied both the top and the bottom pivot conditions."""

    def __init__(self, index: int, value: float):
        self.index = index
        self.value = value
        super().__init__(f"Illegal state at bar {index} (value {value}): both top and bottom")


class MissingBarError(RuntimeError):
    """A candle or pattern refers to a bar time that is not in the store."""

    def __init__(self, time: int):
        self.time = time
        super().__init__(f"Bar time {time} not found")
