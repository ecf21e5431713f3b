from __future__ import annotations


class CribbageError(ValueError):
    """Base class for every input error raised by the scorer and selector."""


class InvalidInput(CribbageError):
    pass


class InvalidCard(InvalidInput):
    pass


class InvalidHandSize(CribbageError):
    def __init__(self, size: int):
        super().__init__(f"A hand must hold exactly 4 cards, got {size}")
        self.size = size


class InvalidDealSize(CribbageError):
    def __init__(self, size: int):
        super().__init__(f"A deal must hold 4 to 6 cards, got {size}")
        self.size = size
