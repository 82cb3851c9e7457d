"""exceptions raised by the rating engines"""


class ValidationError(ValueError):
    """
    Raised when a game or history is rejected before any rating is computed.
    Examples are an empty game, a non-positive elimination index or an unknown player id.
    """


class RatingRangeError(ArithmeticError):
    """Raised when an update produces a rating that is not a finite number"""
