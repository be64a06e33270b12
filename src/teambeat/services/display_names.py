"""
Display names for blame-free boards.

On a blame-free board, authors appear under a generated "Adjective Animal"
name. The name is derived from the user's real name and the board id, so a
person keeps the same alias throughout one board and gets a different one on
the next.
"""

from typing import Optional

ADJECTIVES = (
    "Active", "Agile", "Alert", "Bold", "Brave", "Bright", "Busy", "Calm", "Clever", "Cool",
    "Creative", "Curious", "Daring", "Dynamic", "Eager", "Electric", "Energetic", "Epic",
    "Fast", "Fearless", "Fierce", "Focused", "Friendly", "Gentle", "Happy", "Hardy",
    "Helpful", "Honest", "Joyful", "Keen", "Kind", "Lively", "Lucky", "Mighty", "Noble",
    "Patient", "Peaceful", "Perky", "Playful", "Positive", "Powerful", "Quick", "Quiet",
    "Radiant", "Ready", "Reliable", "Sharp", "Smart", "Smooth", "Speedy", "Spirited",
    "Strong", "Swift", "Thoughtful", "Vibrant", "Wise", "Witty", "Zippy",
)  # fmt: skip

ANIMALS = (
    "Aardvark", "Alpaca", "Antelope", "Armadillo", "Badger", "Bat", "Bear", "Beaver", "Bison",
    "Bobcat", "Buffalo", "Camel", "Capybara", "Cheetah", "Chipmunk", "Cougar", "Coyote",
    "Deer", "Dolphin", "Dromedary", "Eagle", "Elephant", "Elk", "Falcon", "Ferret", "Fox",
    "Gazelle", "Giraffe", "Goat", "Groundhog", "Hamster", "Hawk", "Hedgehog", "Hippo",
    "Horse", "Jackal", "Jaguar", "Kangaroo", "Koala", "Lemur", "Leopard", "Lion", "Llama",
    "Lynx", "Meerkat", "Mongoose", "Moose", "Otter", "Owl", "Panda", "Panther", "Penguin",
    "Platypus", "Porcupine", "Raccoon", "Reindeer", "Rhino", "Seal", "Sheep", "Sloth",
    "Squirrel", "Tiger", "Turtle", "Walrus", "Weasel", "Whale", "Wolf", "Zebra",
)  # fmt: skip


def hash_string(value: str) -> int:
    """
    31-multiplier string hash over UTF-16 code units, wrapped to a signed
    32-bit integer and made non-negative.

    Matches the hash the web client uses, so aliases agree across both.
    """
    encoded = value.encode("utf-16-le")
    result = 0
    for i in range(0, len(encoded), 2):
        code_unit = encoded[i] | (encoded[i + 1] << 8)
        result = (result * 31 + code_unit) & 0xFFFFFFFF
    if result >= 0x80000000:
        result -= 0x100000000
    return abs(result)


def generate_animal_name(seed: str) -> str:
    hashed = hash_string(seed)
    adjective = ADJECTIVES[hashed % len(ADJECTIVES)]
    animal = ANIMALS[(hashed // len(ADJECTIVES)) % len(ANIMALS)]
    return f"{adjective} {animal}"


def get_user_display_name(
    user_name: Optional[str], board_id: str, blame_free_mode: bool
) -> Optional[str]:
    """
    Name to show for a user on a board.

    Args:
        user_name: The user's real name
        board_id: Board the name is shown on
        blame_free_mode: Whether the board hides real names

    Returns:
        The real name, or its animal alias on blame-free boards
    """
    if not blame_free_mode or user_name is None:
        return user_name
    return generate_animal_name(user_name + board_id)
