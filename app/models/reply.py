"""
Outbound reply model.

Transport-neutral prompt/result: text plus rows of buttons. The Telegram
layer turns it into a message with an inline keyboard.
"""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class Button:
    """Inline button bound to a callback payload."""

    text: str
    callback_data: str


@dataclass
class Reply:
    """Message to deliver to the user."""

    text: str
    buttons: list[list[Button]] = field(default_factory=list)
    parse_mode: str | None = "Markdown"

    def callback_data(self) -> list[str]:
        """All callback payloads in the reply, row by row."""
        return [button.callback_data for row in self.buttons for button in row]
