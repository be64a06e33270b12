"""Custom exceptions for TeamBeat."""


class InvalidVoteDeltaError(ValueError):
    """Raised when a vote delta is anything other than +1 or -1."""

    def __init__(self, delta: int):
        self.delta = delta
        super().__init__(f"Vote delta must be 1 or -1, got {delta}")


class CardNotFoundError(LookupError):
    """Raised when a card operation requires an existing card."""

    def __init__(self, card_id: str):
        self.card_id = card_id
        super().__init__(f"Card not found: {card_id}")


class NotGroupLeadError(ValueError):
    """Raised when a group-level operation targets a card that does not lead a group."""

    def __init__(self, card_id: str):
        self.card_id = card_id
        super().__init__(f"Card {card_id} is not a group lead")


class PresetNotFoundError(LookupError):
    """Raised when applying an unknown health question preset."""

    def __init__(self, preset_id: str):
        self.preset_id = preset_id
        super().__init__(f"Preset not found: {preset_id}")


class InvalidRatingError(ValueError):
    """Raised when a health response rating is outside its question type's scale."""

    def __init__(self, question_type: str, rating: int):
        self.question_type = question_type
        self.rating = rating
        super().__init__(f"Rating {rating} is not valid for {question_type} questions")
