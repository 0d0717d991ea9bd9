from __future__ import annotations


class MealgenError(Exception):
    """
    Base class for every error raised by mealgen.
    """


class InvalidConfiguration(MealgenError, ValueError):
    """
    A stage table / plan that cannot produce a well-formed run.

    Raised synchronously, before any timer is armed.
    """


class SessionNotFound(MealgenError, KeyError):
    """
    Unknown generation session id (service layer).
    """

    def __init__(self, generation_id: str) -> None:
        super().__init__(generation_id)
        self.generation_id = generation_id

    def __str__(self) -> str:
        return f"generation not found: {self.generation_id}"
