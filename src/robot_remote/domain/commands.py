from enum import Enum


class CommandToken(Enum):
    FORWARD = "F"
    BACKWARD = "B"
    LEFT = "L"
    RIGHT = "R"
    STOP = "S"
    SPEED_1 = "1"
    SPEED_2 = "2"
    SPEED_3 = "3"

    @property
    def payload(self) -> bytes:
        return self.value.encode("ascii")

    @property
    def is_speed(self) -> bool:
        return self in SPEED_TOKENS

    @classmethod
    def parse(cls, text: str) -> "CommandToken":
        cleaned = text.strip()
        if not cleaned:
            raise ValueError("Empty command token")
        for token in cls:
            if cleaned == token.value or cleaned.upper() == token.name:
                return token
        alias = TOKEN_ALIASES.get(cleaned.lower())
        if alias is not None:
            return alias
        raise ValueError(f"Unknown command token: {text!r}")


SPEED_TOKENS = frozenset({CommandToken.SPEED_1, CommandToken.SPEED_2, CommandToken.SPEED_3})

TOKEN_ALIASES: dict[str, CommandToken] = {
    "f": CommandToken.FORWARD,
    "b": CommandToken.BACKWARD,
    "l": CommandToken.LEFT,
    "r": CommandToken.RIGHT,
    "s": CommandToken.STOP,
    "up": CommandToken.FORWARD,
    "down": CommandToken.BACKWARD,
    "back": CommandToken.BACKWARD,
    "speed1": CommandToken.SPEED_1,
    "speed2": CommandToken.SPEED_2,
    "speed3": CommandToken.SPEED_3,
}
