"""
Interaction Custom IDs
Tagged encoding for the ids carried by buttons, select menus and modals
"""

from dataclasses import dataclass, field
from typing import Dict, Tuple

from distrack.config import find_category
from distrack.errors import InvalidInput

SEPARATOR = ':'

# (domain, action) -> number of params
KNOWN_IDS: Dict[Tuple[str, str], int] = {
    ('ticket', 'create'): 0,
    ('ticket', 'category'): 0,
    ('ticket', 'submit'): 1,
    ('ticket', 'close'): 0,
    ('ticket', 'reopen'): 0,
    ('ticket', 'delete'): 0,
}


@dataclass(frozen=True)
class CustomId:
    domain: str
    action: str
    params: Tuple[str, ...] = field(default_factory=tuple)

    def encode(self) -> str:
        return SEPARATOR.join((self.domain, self.action, *self.params))

    @property
    def category(self) -> str:
        if self.domain != 'ticket' or self.action != 'submit':
            raise InvalidInput(f"`{self.encode()}` does not carry a ticket category.")
        return self.params[0]

    @classmethod
    def parse(cls, raw: str) -> 'CustomId':
        parts = raw.split(SEPARATOR)
        if len(parts) < 2:
            raise InvalidInput(f"Unrecognised interaction `{raw}`.")

        domain, action, params = parts[0], parts[1], tuple(parts[2:])
        expected = KNOWN_IDS.get((domain, action))
        if expected is None:
            raise InvalidInput(f"Unrecognised interaction `{raw}`.")
        if len(params) != expected:
            raise InvalidInput(f"Malformed interaction `{raw}`.")

        if (domain, action) == ('ticket', 'submit') and find_category(params[0]) is None:
            raise InvalidInput(f"Unknown ticket category `{params[0]}`.")

        return cls(domain, action, params)


def ticket_custom_id(action: str, *params: str) -> str:
    custom_id = CustomId('ticket', action, tuple(params))
    return CustomId.parse(custom_id.encode()).encode()
