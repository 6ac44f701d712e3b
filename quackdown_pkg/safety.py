"""
HTML-safe value types for Quackdown.

EscapedText carries text that is known to be free of HTML metacharacters and
ValidatedTag carries a tag name that can be embedded in markup and file names
as-is. Neither can be built from an arbitrary string without going through
escaping or validation.
"""

from enum import Enum

from .errors import InvalidTag

_ESCAPES = {
    '&': '&amp;',
    '<': '&lt;',
    '>': '&gt;',
    '"': '&quot;',
    "'": '&#x27;',
}

# Only the constructors below may pass this to EscapedText.__init__.
_CONSTRUCT = object()


class EscapedText:
    """A string that has been escaped exactly once and is safe to embed in HTML."""

    __slots__ = ('_value',)

    def __init__(self, value, _token=None):
        if _token is not _CONSTRUCT:
            raise TypeError("Use EscapedText.escape() or EscapedText.trusted()")
        self._value = value

    @classmethod
    def escape(cls, raw):
        """Escape `& < > " '` in raw text. Everything else passes through."""
        if isinstance(raw, EscapedText):
            raise TypeError("Text is already escaped")
        return cls(''.join(_ESCAPES.get(ch, ch) for ch in str(raw)), _CONSTRUCT)

    @classmethod
    def trusted(cls, markup):
        """
        Wrap markup built by this program, never raw user input.

        Template fragments and renderer output go through here.
        """
        if not isinstance(markup, str):
            raise TypeError(f"Trusted markup must be str, got {type(markup).__name__}")
        return cls(markup, _CONSTRUCT)

    @classmethod
    def interpolate(cls, fragment, **values):
        """Fill a literal markup fragment with already escaped values."""
        for name, value in values.items():
            if isinstance(value, bool) or not isinstance(value, (EscapedText, int)):
                raise TypeError(f"Value for '{name}' must be EscapedText, got {type(value).__name__}")
        return cls(fragment.format(**{k: str(v) for k, v in values.items()}), _CONSTRUCT)

    @classmethod
    def empty(cls):
        return cls('', _CONSTRUCT)

    def join(self, parts):
        parts = list(parts)
        for part in parts:
            if not isinstance(part, EscapedText):
                raise TypeError("Only EscapedText values can be joined")
        return EscapedText(self._value.join(p._value for p in parts), _CONSTRUCT)

    def __add__(self, other):
        if not isinstance(other, EscapedText):
            return NotImplemented
        return EscapedText(self._value + other._value, _CONSTRUCT)

    def __html__(self):
        # Jinja2/markupsafe hook: the value is emitted without further escaping.
        return self._value

    def __str__(self):
        return self._value

    def __repr__(self):
        return f"EscapedText({self._value!r})"

    def __eq__(self, other):
        if isinstance(other, EscapedText):
            return self._value == other._value
        return NotImplemented

    def __hash__(self):
        return hash(('EscapedText', self._value))

    def __len__(self):
        return len(self._value)

    def __bool__(self):
        return bool(self._value)


def escape(raw):
    """Escape untrusted text for HTML."""
    return EscapedText.escape(raw)


class TagRejection(Enum):
    """Why a tag failed validation, in the order the checks run."""
    EMPTY = "tag is empty"
    FORBIDDEN_CHARS = "tag contains HTML special characters"
    TOO_LONG = "tag exceeds 50 characters"


class ValidatedTag:
    """
    A tag name that is non-empty, at most 50 characters and free of
    `< > & " ' /` once trimmed.

    Identity is the trimmed, case-sensitive form; `slug` is the lowercased
    form used for URLs and file names.
    """

    MAX_LENGTH = 50
    FORBIDDEN_CHARS = frozenset('<>&"\'/')

    __slots__ = ('_name',)

    def __init__(self, raw):
        trimmed = raw.strip()
        if not trimmed:
            raise InvalidTag(raw, TagRejection.EMPTY)
        if any(ch in self.FORBIDDEN_CHARS for ch in trimmed):
            raise InvalidTag(raw, TagRejection.FORBIDDEN_CHARS)
        if len(trimmed) > self.MAX_LENGTH:
            raise InvalidTag(raw, TagRejection.TOO_LONG)
        self._name = trimmed

    @property
    def name(self):
        return self._name

    @property
    def slug(self):
        return self._name.lower()

    def __html__(self):
        return self._name

    def __str__(self):
        return self._name

    def __repr__(self):
        return f"ValidatedTag({self._name!r})"

    def __eq__(self, other):
        if isinstance(other, ValidatedTag):
            return self._name == other._name
        return NotImplemented

    def __hash__(self):
        return hash(self._name)

    def __lt__(self, other):
        if not isinstance(other, ValidatedTag):
            return NotImplemented
        return self._name < other._name
