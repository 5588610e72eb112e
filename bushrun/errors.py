"""Exceptions raised by the parsing and codec functions.

Every error derives from :class:`RaceDataError`, which is itself a
``ValueError`` so existing ``except ValueError`` handlers keep working.
"""

from __future__ import annotations


class RaceDataError(ValueError):
    """Base class for malformed race, roster or history input."""


class InvalidFormat(RaceDataError):
    """Text does not match the expected layout."""


class InvalidValue(RaceDataError):
    """Text matches the layout but a field is out of range."""


class NegativeTime(RaceDataError):
    """A duration to be formatted is below zero."""


class InvalidMonth(RaceDataError):
    pass


class InvalidPoints(RaceDataError):
    pass


class InvalidTime(RaceDataError):
    pass


class EmptyInput(RaceDataError):
    pass


class MissingHeaders(RaceDataError):
    def __init__(self, missing):
        self.missing = list(missing)
        super().__init__(f"Missing required CSV headers: {', '.join(self.missing)}")


class InvalidMemberNumber(RaceDataError):
    pass


class DuplicateMemberNumber(RaceDataError):
    pass


class InvalidDistance(RaceDataError):
    pass


class InvalidHandicapFormat(RaceDataError):
    pass


__all__ = [
    "RaceDataError",
    "InvalidFormat",
    "InvalidValue",
    "NegativeTime",
    "InvalidMonth",
    "InvalidPoints",
    "InvalidTime",
    "EmptyInput",
    "MissingHeaders",
    "InvalidMemberNumber",
    "DuplicateMemberNumber",
    "InvalidDistance",
    "InvalidHandicapFormat",
]
