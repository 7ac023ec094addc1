"""Qualifier grammar: structured names for models, items and their members.

Text form (bit-exact)::

    ["/" model "/"] [itemType ":"] [item] ["." objectPath]

    /Sales                               -> model=Sales
    /Sales/CheckOrder                    -> model=Sales, item=CheckOrder
    /Sales/Process:CheckOrder.Entry.amt  -> model=Sales, itemType=Process,
                                            item=CheckOrder, objectPath=Entry.amt
    Type:Integer                         -> itemType=Type, item=Integer (relative)

A qualifier is *absolute* when its text starts with ``/``. The object path
is taken verbatim up to the end of the string.
"""

from __future__ import annotations

import dataclasses
import enum
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

from .errors import QualifierParseError

if TYPE_CHECKING:
    from .items import Item

PATH_DELIMITER = "/"
TYPE_DELIMITER = ":"
OBJECT_DELIMITER = "."
ALL_DELIMITERS = "/:.;"


class CompareFlags(enum.IntFlag):
    """Selects the fields that must agree in :meth:`Qualifier.matches`."""

    MODEL = 1 << 0
    ITEM = 1 << 1
    TYPE = 1 << 2
    SUBPATH = 1 << 3

    ITEM_FULL = ITEM | MODEL
    UNTYPED = ITEM_FULL | SUBPATH
    ALL = UNTYPED | TYPE


def _trim_null(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


@dataclass(frozen=True)
class Qualifier:
    """Immutable reference to a model, an item or an object inside an item."""

    model: Optional[str] = None
    item_type: Optional[str] = None
    item: Optional[str] = None
    object_path: Optional[str] = None

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def parse(cls, text: Optional[str]) -> "Qualifier":
        """Parse the textual form. An empty or ``None`` string yields an empty qualifier.

        Raises
        ------
        QualifierParseError
            If a path delimiter occurs after the one that closes the model segment.
        """
        if not text:
            return cls()

        model = item_type = item = object_path = None
        length = len(text)
        pos = 0

        if text[0] == PATH_DELIMITER:
            end = text.find(PATH_DELIMITER, 1)
            if end > 0:
                model = text[1:end]
                pos = end + 1
                if text.find(PATH_DELIMITER, pos) >= 0:
                    raise QualifierParseError(
                        f"Qualifier '{text}' contains more than two path delimiters."
                    )
            else:
                model = text[1:]
                pos = length

        # The type tag can only precede the item segment, never the object path.
        dot = text.find(OBJECT_DELIMITER, pos)
        type_end = text.find(TYPE_DELIMITER, pos, dot if dot >= 0 else length)
        if type_end >= 0:
            item_type = text[pos:type_end]
            pos = type_end + 1

        if dot >= 0:
            item = text[pos:dot]
            object_path = text[dot + 1:]
        elif pos < length:
            item = text[pos:]

        return cls(
            model=_trim_null(model),
            item_type=_trim_null(item_type),
            item=_trim_null(item),
            object_path=_trim_null(object_path),
        )

    @classmethod
    def for_model(cls, model_name: str) -> "Qualifier":
        """Qualifier of a model; tolerates surrounding ``/`` (``/Sales/`` -> ``Sales``)."""
        return cls(model=normalize_model_name(model_name))

    @classmethod
    def for_item(cls, item: "Item", object_path: Optional[str] = None) -> "Qualifier":
        model = item.model
        return cls(
            model=model.name if model is not None else None,
            item_type=item.item_type,
            item=item.name,
            object_path=object_path,
        )

    def replace(self, **changes: Optional[str]) -> "Qualifier":
        return dataclasses.replace(self, **changes)

    # ------------------------------------------------------------------
    # Text form
    # ------------------------------------------------------------------

    def format(self, typed: bool = False) -> str:
        """Render the qualifier; the type tag is only written when *typed* is set."""
        parts: list[str] = []

        if self.model is not None:
            parts.append(PATH_DELIMITER)
            parts.append(self.model)
            if self.item_type is not None or self.item is not None or self.object_path is not None:
                parts.append(PATH_DELIMITER)

        if typed and self.item_type is not None:
            parts.append(self.item_type)
            parts.append(TYPE_DELIMITER)

        if self.item is not None:
            parts.append(self.item)

        if self.object_path is not None:
            parts.append(OBJECT_DELIMITER)
            parts.append(self.object_path)

        return "".join(parts)

    def __str__(self) -> str:
        return self.format(typed=False)

    @property
    def typed(self) -> str:
        return self.format(typed=True)

    # ------------------------------------------------------------------
    # Comparison
    # ------------------------------------------------------------------

    @property
    def is_absolute(self) -> bool:
        return self.model is not None

    @property
    def is_empty(self) -> bool:
        return self.model is None and self.item_type is None and self.item is None and self.object_path is None

    @property
    def model_qualifier(self) -> "Qualifier":
        return Qualifier(model=self.model)

    def matches(self, other: object, flags: Optional[CompareFlags] = None) -> bool:
        """Field-wise comparison.

        Without *flags*, model, item and object path must agree and the
        item types must agree only if both sides carry one. With *flags*,
        exactly the selected fields must agree.
        """
        if not isinstance(other, Qualifier):
            return False

        if flags is None:
            if not self.matches(other, CompareFlags.UNTYPED):
                return False
            if self.item_type is not None and other.item_type is not None:
                return self.item_type == other.item_type
            return True

        if flags & CompareFlags.ITEM and self.item != other.item:
            return False
        if flags & CompareFlags.MODEL and self.model != other.model:
            return False
        if flags & CompareFlags.TYPE and self.item_type != other.item_type:
            return False
        if flags & CompareFlags.SUBPATH and self.object_path != other.object_path:
            return False
        return True


# ---------------------------------------------------------------------------
# Name helpers
# ---------------------------------------------------------------------------


def is_absolute(ref: Optional[str]) -> bool:
    """Return ``True`` if the reference text starts with the path delimiter."""
    return bool(ref) and ref[0] == PATH_DELIMITER


def normalize_model_name(name: Optional[str]) -> Optional[str]:
    """Strip one leading and one trailing path delimiter from a model name."""
    if name is None:
        return None
    if name.startswith(PATH_DELIMITER):
        name = name[1:]
    if name.endswith(PATH_DELIMITER):
        name = name[:-1]
    return name


def is_valid_identifier(ident: Optional[str]) -> bool:
    """Identifiers must not contain any of ``/ : . ;``."""
    if ident is None:
        return True
    return not any(c in ALL_DELIMITERS for c in ident)
