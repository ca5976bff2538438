MAX_TOOLTIP_LENGTH = 100


class ToolTip:
    """Comma separated test names, truncated with ``",..."`` past the budget."""

    def __init__(self, max_length: int = MAX_TOOLTIP_LENGTH) -> None:
        self.max_length = max_length
        self._text = ""
        self._open = True

    def add(self, name: str) -> None:
        if not self._open:
            return
        if len(self._text) + len(name) > self.max_length:
            self._open = False
            self._text += ",..."
            return
        if self._text:
            self._text += ", "
        self._text += name

    def __str__(self) -> str:
        return self._text
