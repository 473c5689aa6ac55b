from __future__ import annotations

"""Thin helpers over lxml element trees.

The tree builder and metadata collector only rely on the capabilities listed
in ``XmlElement``: a tag, attributes, ordered children and text. Namespaces
are ignored when matching element names, while attribute lookups keep their
prefix so ``w:val`` and ``val`` stay distinct.
"""

from typing import Iterable, Iterator, List, Mapping, Optional, Protocol, Union

from lxml import etree

from ..errors import MalformedXmlError

NAMESPACES = {
    "w": "http://schemas.openxmlformats.org/wordprocessingml/2006/main",
}


class XmlElement(Protocol):
    tag: object
    text: Optional[str]
    prefix: Optional[str]
    nsmap: Mapping[Optional[str], str]

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]: ...

    def __iter__(self) -> Iterator["XmlElement"]: ...

    def iter(self) -> Iterator["XmlElement"]: ...

    def itertext(self) -> Iterable[str]: ...


def _parser() -> etree.XMLParser:
    return etree.XMLParser(resolve_entities=False, no_network=True, remove_blank_text=False)


def parse_xml(data: Union[bytes, str], part: Optional[str] = None) -> XmlElement:
    """Parse raw XML and return its root element."""
    if isinstance(data, str):
        data = data.encode("utf-8")
    if not data or not data.strip():
        raise MalformedXmlError("empty XML document", part=part)
    try:
        return etree.fromstring(data, parser=_parser())
    except etree.XMLSyntaxError as e:
        raise MalformedXmlError(f"malformed XML: {e}", part=part) from e


def _is_element(node: XmlElement) -> bool:
    # Comments and processing instructions carry a callable tag in lxml.
    return isinstance(node.tag, str)


def local_name(el: XmlElement) -> str:
    tag = el.tag
    if not isinstance(tag, str):
        return ""
    return tag.rsplit("}", 1)[-1]


def qualified_name(el: XmlElement) -> str:
    """Element name as written in the source, e.g. ``w:sdt`` or ``Alias``."""
    name = local_name(el)
    return f"{el.prefix}:{name}" if el.prefix else name


def child_elements(el: XmlElement) -> List[XmlElement]:
    """Direct element children only; nested descendants are not visited."""
    return [c for c in el if _is_element(c)]


def iter_by_local_name(el: XmlElement, name: str, include_self: bool = False) -> Iterator[XmlElement]:
    """All descendants (document order) whose local name matches."""
    for node in el.iter():
        if node is el and not include_self:
            continue
        if _is_element(node) and local_name(node) == name:
            yield node


def find_first(el: Optional[XmlElement], name: str, include_self: bool = False) -> Optional[XmlElement]:
    if el is None:
        return None
    return next(iter_by_local_name(el, name, include_self=include_self), None)


def get_qualified_attribute(el: Optional[XmlElement], name: str) -> Optional[str]:
    """Read an attribute by its qualified name (``p2:id``) or bare name (``id``).

    The prefix is resolved through the namespaces in scope on the element; an
    unknown prefix means the attribute is absent.
    """

    if el is None:
        return None
    if ":" not in name:
        return el.get(name)

    prefix, local = name.split(":", 1)
    uri = (el.nsmap or {}).get(prefix) or NAMESPACES.get(prefix)
    if not uri:
        return None
    return el.get(f"{{{uri}}}{local}")


def text_content(el: Optional[XmlElement]) -> str:
    if el is None:
        return ""
    return "".join(el.itertext())
