# ==============================================================================
# Element Descriptions - Click Target Identification
# ==============================================================================
"""
Lightweight description of a clicked page element and helpers to derive a
readable identifier from it.

The identifier is a best-effort selector path, not a guaranteed-unique one:
    #signup                         element with an id
    [name="email"]                  element with a name
    #pricing > div.card > button.btn.primary
"""

import re
from dataclasses import dataclass, field
from typing import Optional

MAX_CLICK_TEXT = 100

_WHITESPACE = re.compile(r"\s+")


@dataclass(frozen=True)
class ElementInfo:
    """
    A page element as reported by the signal host.

    Attributes:
        tag: Tag name (any case)
        id: Element id, if any
        name: Element name attribute, if any
        classes: CSS classes in document order
        parent: Enclosing element, None at the root
        text: Visible text content
    """

    tag: str
    id: Optional[str] = None
    name: Optional[str] = None
    classes: tuple[str, ...] = field(default_factory=tuple)
    parent: Optional["ElementInfo"] = None
    text: str = ""

    @classmethod
    def from_dict(cls, data: dict) -> "ElementInfo":
        """Build from a plain dict (replay files); ``parent`` may nest."""
        parent = data.get("parent")
        classes = data.get("classes") or ()
        if isinstance(classes, str):
            classes = classes.split()
        return cls(
            tag=data.get("tag", "div"),
            id=data.get("id") or None,
            name=data.get("name") or None,
            classes=tuple(classes),
            parent=cls.from_dict(parent) if isinstance(parent, dict) else None,
            text=data.get("text", ""),
        )

    @property
    def is_button(self) -> bool:
        return self.tag.lower() == "button" or "btn" in self.classes


def _selector(element: ElementInfo) -> str:
    return ".".join([element.tag.lower(), *element.classes])


def element_identifier(element: ElementInfo) -> str:
    """
    Derive a selector path for an element.

    Walks up from the element; stops at the first ancestor carrying an id or
    name, otherwise at the root.
    """
    parts = []
    node: Optional[ElementInfo] = element
    while node is not None:
        if node.id:
            parts.append(f"#{node.id}")
            break
        if node.name:
            parts.append(f'[name="{node.name}"]')
            break
        parts.append(_selector(node))
        node = node.parent
    return " > ".join(reversed(parts))


def truncate_text(text: str, limit: int = MAX_CLICK_TEXT) -> str:
    text = text.strip()
    return f"{text[:limit]}..." if len(text) > limit else text


def button_label(element: ElementInfo) -> str:
    """Human label of a button: its text, else its id, else its classes."""
    return element.text.strip() or element.id or " ".join(element.classes)


def button_key(label: str) -> str:
    """Per-session counter key for a button label, e.g. ``btn_get_started``."""
    return f"btn_{_WHITESPACE.sub('_', label.strip()).lower()}"
