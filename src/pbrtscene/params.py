"""
Typed parameter values and ordered parameter maps.

Every directive that takes parameters carries them as a PropertyMap:
an ordered list of ``"<type> <name>"`` keys, each bound to a Property
holding a non-empty list of floats, ints, strings or bools.

The declared type decides the storage variant:

    string, texture, spectrum       -> STRINGS  (spectrum given as numbers -> FLOATS)
    bool                            -> BOOLS
    integer                         -> INTS
    float, point*, normal*, vector*,
    color, rgb, xyz, blackbody      -> FLOATS
    anything else                   -> FLOATS
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Iterator, List, Optional, Sequence, Tuple

from .tokens import Token, TokenType, BOOL_WORDS


class PropertyKind(Enum):
    """Storage variant of a Property."""
    FLOATS = "floats"
    INTS = "ints"
    STRINGS = "strings"
    BOOLS = "bools"


_ELEMENT_TYPES = {
    PropertyKind.FLOATS: float,
    PropertyKind.INTS: int,
    PropertyKind.STRINGS: str,
    PropertyKind.BOOLS: bool,
}

STRING_TYPES = frozenset({"string", "texture", "spectrum"})
FLOAT_TYPES = frozenset({
    "float", "point", "point2", "point3", "normal", "normal3",
    "vector", "vector2", "vector3", "color", "rgb", "xyz", "blackbody",
})


@dataclass(frozen=True)
class Property:
    """A typed, non-empty, homogeneous list of parameter values."""
    kind: PropertyKind
    values: Tuple[Any, ...]

    def __post_init__(self):
        if not self.values:
            raise ValueError(f"{self.kind.value} property must have at least one value")
        expected = _ELEMENT_TYPES[self.kind]
        for v in self.values:
            # bool is an int subclass; keep the variants apart
            if type(v) is not expected:
                raise ValueError(
                    f"{self.kind.value} property cannot hold {type(v).__name__} value {v!r}"
                )

    @classmethod
    def floats(cls, values: Sequence[float]) -> "Property":
        return cls(PropertyKind.FLOATS, tuple(float(v) for v in values))

    @classmethod
    def ints(cls, values: Sequence[int]) -> "Property":
        return cls(PropertyKind.INTS, tuple(int(v) for v in values))

    @classmethod
    def strings(cls, values: Sequence[str]) -> "Property":
        return cls(PropertyKind.STRINGS, tuple(values))

    @classmethod
    def bools(cls, values: Sequence[bool]) -> "Property":
        return cls(PropertyKind.BOOLS, tuple(values))

    def first(self) -> Any:
        return self.values[0]

    def __len__(self) -> int:
        return len(self.values)

    def __iter__(self) -> Iterator[Any]:
        return iter(self.values)

    def __getitem__(self, index):
        return self.values[index]


def split_key(key: str) -> Tuple[str, str]:
    """
    Split a parameter key into (type, name).

    A single word is a bare name with an empty type.

    Raises:
        ValueError: If the key has no words or more than two
    """
    words = key.split()
    if len(words) == 2:
        return words[0], words[1]
    if len(words) == 1:
        return "", words[0]
    raise ValueError(f"malformed parameter key {key!r}")


def make_key(param_type: str, name: str) -> str:
    if param_type:
        return f"{param_type} {name}"
    return name


class PropertyMap:
    """
    Insertion-ordered map of ``"<type> <name>"`` keys to Properties.

    Names are unique within a map; lookups accept either the full key or
    the bare name. Inserting an existing name replaces its entry in place.
    """

    def __init__(self, entries: Optional[Sequence[Tuple[str, Property]]] = None):
        self._entries: List[Tuple[str, str, Property]] = []
        for key, prop in entries or ():
            self.insert(key, prop)

    def _index(self, key: str) -> int:
        try:
            _, name = split_key(key)
        except ValueError:
            return -1
        for i, (_, entry_name, _) in enumerate(self._entries):
            if entry_name == name:
                return i
        return -1

    def insert(self, key: str, prop: Property) -> None:
        """Insert or replace the entry for ``key``."""
        if not isinstance(prop, Property):
            raise TypeError(f"expected Property, got {type(prop).__name__}")
        param_type, name = split_key(key)
        i = self._index(key)
        if i >= 0:
            self._entries[i] = (param_type, name, prop)
        else:
            self._entries.append((param_type, name, prop))

    def get(self, key: str) -> Optional[Property]:
        i = self._index(key)
        if i < 0:
            return None
        return self._entries[i][2]

    def type_of(self, key: str) -> Optional[str]:
        """Declared type of the entry for ``key``."""
        i = self._index(key)
        if i < 0:
            return None
        return self._entries[i][0]

    def remove(self, key: str) -> Optional[Property]:
        """Remove the entry for ``key``, returning its Property."""
        i = self._index(key)
        if i < 0:
            return None
        return self._entries.pop(i)[2]

    def rename(self, old: str, new_name: str) -> bool:
        """Rename an entry, keeping its type, value and position."""
        i = self._index(old)
        if i < 0:
            return False
        param_type, _, prop = self._entries[i]
        self._entries[i] = (param_type, new_name, prop)
        return True

    def keys(self) -> List[str]:
        return [make_key(t, n) for t, n, _ in self._entries]

    def names(self) -> List[str]:
        return [n for _, n, _ in self._entries]

    def entries(self) -> List[Tuple[str, str, Property]]:
        """All entries as (type, name, Property) triples, in order."""
        return list(self._entries)

    def _typed(self, key: str, kind: PropertyKind) -> list:
        prop = self.get(key)
        if prop is None or prop.kind != kind:
            return []
        return list(prop.values)

    def get_floats(self, key: str) -> List[float]:
        return self._typed(key, PropertyKind.FLOATS)

    def get_ints(self, key: str) -> List[int]:
        return self._typed(key, PropertyKind.INTS)

    def get_strings(self, key: str) -> List[str]:
        return self._typed(key, PropertyKind.STRINGS)

    def get_bools(self, key: str) -> List[bool]:
        return self._typed(key, PropertyKind.BOOLS)

    def find_one_float(self, key: str, default: Optional[float] = None) -> Optional[float]:
        values = self.get_floats(key)
        return values[0] if values else default

    def find_one_int(self, key: str, default: Optional[int] = None) -> Optional[int]:
        values = self.get_ints(key)
        return values[0] if values else default

    def find_one_string(self, key: str, default: Optional[str] = None) -> Optional[str]:
        values = self.get_strings(key)
        return values[0] if values else default

    def find_one_bool(self, key: str, default: Optional[bool] = None) -> Optional[bool]:
        values = self.get_bools(key)
        return values[0] if values else default

    def copy(self) -> "PropertyMap":
        other = PropertyMap()
        other._entries = list(self._entries)
        return other

    def to_dict(self) -> dict:
        """JSON-friendly ``{key: [values...]}`` mapping."""
        return {make_key(t, n): list(p.values) for t, n, p in self._entries}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return self._index(key) >= 0

    def __iter__(self) -> Iterator[str]:
        return iter(self.keys())

    def __eq__(self, other) -> bool:
        if not isinstance(other, PropertyMap):
            return NotImplemented
        return self._entries == other._entries

    def __repr__(self) -> str:
        inner = ", ".join(f"{make_key(t, n)!r}: {list(p.values)}" for t, n, p in self._entries)
        return f"PropertyMap({{{inner}}})"


# Callback used when a value token does not fit the declared type.
# Receives (token, expected description) and returns the substitute value,
# or raises to abort the parse.
MalformedHandler = Callable[[Token, str], Any]


def property_kind_for(param_type: str, values: Sequence[Token]) -> PropertyKind:
    """Storage variant for a declared type and its value tokens."""
    if param_type == "spectrum":
        if values and all(t.type == TokenType.NUMBER for t in values):
            return PropertyKind.FLOATS
        return PropertyKind.STRINGS
    if param_type in STRING_TYPES:
        return PropertyKind.STRINGS
    if param_type == "bool":
        return PropertyKind.BOOLS
    if param_type == "integer":
        return PropertyKind.INTS
    if param_type == "":
        first = values[0] if values else None
        if first is not None and first.type == TokenType.STRING:
            return PropertyKind.STRINGS
        if first is not None and first.type == TokenType.IDENTIFIER and first.value.lower() in BOOL_WORDS:
            return PropertyKind.BOOLS
    return PropertyKind.FLOATS


def _bool_value(token: Token) -> Optional[bool]:
    if token.type in (TokenType.STRING, TokenType.IDENTIFIER):
        return BOOL_WORDS.get(token.value.lower())
    return None


def build_property(param_type: str, values: Sequence[Token],
                   on_malformed: MalformedHandler) -> Property:
    """
    Coerce value tokens into a Property of the variant ``param_type`` maps to.

    Tokens that do not fit the variant are passed to ``on_malformed``,
    whose return value is stored in their place.
    """
    kind = property_kind_for(param_type, values)

    if kind == PropertyKind.STRINGS:
        return Property.strings([t.value if t.type == TokenType.STRING else t.lexeme for t in values])

    if kind == PropertyKind.BOOLS:
        out = []
        for t in values:
            b = _bool_value(t)
            out.append(b if b is not None else bool(on_malformed(t, "bool")))
        return Property.bools(out)

    if kind == PropertyKind.INTS:
        out = []
        for t in values:
            if t.type == TokenType.NUMBER and float(t.value).is_integer():
                out.append(int(t.value))
            else:
                out.append(int(on_malformed(t, "integer")))
        return Property.ints(out)

    out = []
    for t in values:
        if t.type == TokenType.NUMBER:
            out.append(t.value)
        else:
            out.append(float(on_malformed(t, "number")))
    return Property.floats(out)
