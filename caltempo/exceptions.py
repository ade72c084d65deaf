"""Exceptions raised while decoding calendar values and resolving timezones."""

from typing import Optional


class CalTempoError(Exception):
    """Base exception for caltempo errors.

    Every subclass carries a short ``kind`` tag so callers can group failures
    without matching on class names.
    """

    kind = "error"

    def __init__(self, message: str, text: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.text = text


class GrammarParseError(CalTempoError):
    """Exception raised when a value does not match any known grammar."""

    kind = "parse"


class DateParseError(CalTempoError):
    """Exception raised when a date value cannot be parsed."""

    kind = "date-parse"


class TimeParseError(CalTempoError):
    """Exception raised when a date-time value cannot be parsed."""

    kind = "time-parse"


class TimezoneError(TimeParseError):
    """Exception raised when a timezone cannot be resolved or built."""

    kind = "timezone"


class DurationParseError(CalTempoError):
    """Exception raised when a duration value cannot be parsed."""

    kind = "duration-parse"


class RecurRuleParseError(CalTempoError):
    """Exception raised when a recurrence rule is rejected."""

    kind = "recurrence-rule-parse"


class CalendarParseError(CalTempoError):
    """Exception raised when calendar content is invalid."""

    kind = "calendar-parse"


class EventParseError(CalTempoError):
    """Exception raised when an event component is invalid."""

    kind = "event-parse"


class MissingKeyError(EventParseError):
    """Exception raised when a required property is absent."""

    kind = "missing-key"
