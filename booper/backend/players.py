"""Identity and display-name generation for newly connected players."""

from __future__ import annotations

import secrets
import uuid

from .models import Player


ADJECTIVES = ("Silly", "Brave", "Sneaky", "Bouncy", "Zippy", "Chill", "Witty", "Cosmic", "Sunny", "Spicy")
ANIMALS = ("Wombat", "Otter", "Panda", "Llama", "Gecko", "Dolphin", "Badger", "Kiwi", "Fox", "Capybara")


def generate_player_id() -> str:
    """Generate a unique opaque player identity."""
    return str(uuid.uuid4())


def random_name() -> str:
    """Pick an "<Adjective> <Animal>" display name."""
    return f"{secrets.choice(ADJECTIVES)} {secrets.choice(ANIMALS)}"


def new_player() -> Player:
    return Player(id=generate_player_id(), name=random_name())
