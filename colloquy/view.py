"""
StringView: a cursor over raw message text.

Tokens are separated by whitespace; a token opening with a double quote runs
to the matching unescaped closing quote. The view remembers the previous
position so that the last read can be undone, and exposes checkpoints so a
failed conversion can put the cursor back where it was.
"""

_QUOTE = '"'


class StringView:
    """
    Cursor over a string.

    Attributes
    - buffer: the full text.
    - index: current position.
    - previous: position before the last read (for undo()).
    - is_rest_block: when True, get_quoted_word() returns the remaining text
      as a single token (last parameter of a text command).
    """
    __slots__ = ("buffer", "index", "previous", "is_rest_block")

    def __init__(self, buffer, /, *, is_rest_block=False):
        if not isinstance(buffer, str):
            raise TypeError("string-view 'buffer' must be a string")
        self.buffer = buffer
        self.index = 0
        self.previous = 0
        self.is_rest_block = is_rest_block

    def __repr__(self):
        return f"StringView({self.buffer!r}, index={self.index})"

    @property
    def eof(self):
        return self.index >= len(self.buffer)

    @property
    def remaining(self):
        return self.buffer[self.index:]

    def skip_ws(self):
        """
        Advance past whitespace. Return whether anything was skipped.
        """
        start = self.index
        while not self.eof and self.buffer[self.index].isspace():
            self.index += 1
        return self.index != start

    def get_word(self):
        """
        Read the next whitespace-delimited word (empty string at eof).
        """
        self.skip_ws()
        self.previous = self.index
        start = self.index
        while not self.eof and not self.buffer[self.index].isspace():
            self.index += 1
        return self.buffer[start:self.index]

    def get_quoted_word(self):
        """
        Read the next argument token.

        - rest block: everything up to the end, stripped.
        - "quoted text": the quoted content with \\" unescaped.
        - otherwise a plain word.
        An unterminated quote reads to the end of the buffer.
        """
        self.skip_ws()
        self.previous = self.index

        if self.is_rest_block:
            word = self.buffer[self.index:].strip()
            self.index = len(self.buffer)
            return word

        if self.eof or self.buffer[self.index] != _QUOTE:
            start = self.index
            while not self.eof and not self.buffer[self.index].isspace():
                self.index += 1
            return self.buffer[start:self.index]

        self.index += 1
        characters = []
        while not self.eof:
            character = self.buffer[self.index]
            self.index += 1
            if character == "\\" and not self.eof and self.buffer[self.index] == _QUOTE:
                characters.append(_QUOTE)
                self.index += 1
            elif character == _QUOTE:
                break
            else:
                characters.append(character)
        return "".join(characters)

    def undo(self):
        """
        Move back to where the last read started.
        """
        self.index = self.previous

    def checkpoint(self):
        return self.index, self.previous

    def restore(self, checkpoint, /):
        self.index, self.previous = checkpoint


__all__ = (
    "StringView",
)
