"""Scoped XML document writer built on lxml."""

from __future__ import annotations

from contextlib import contextmanager
import logging
from typing import Iterator, Mapping

from lxml import etree

from bibexport.errors import DocumentWriteError

logger = logging.getLogger(__name__)

XML_NAMESPACE = "http://www.w3.org/XML/1998/namespace"


class DocumentWriter:
    """Emit one XML document element by element.

    Elements are opened with :meth:`element`, a context manager that always
    closes what it opened, so the tree stays balanced even when the body of
    a ``with`` block raises. Names may carry a prefix (``jats:p``,
    ``marc:record``); prefixes resolve against the namespaces declared on the
    root element. Unprefixed element names fall into the default namespace
    when one is declared; unprefixed attribute names never do.
    """

    def __init__(self, specification: str) -> None:
        self._specification = specification
        self._namespaces: dict[str | None, str] = {}
        self._root: etree._Element | None = None
        self._stack: list[etree._Element] = []

    @property
    def depth(self) -> int:
        """Number of currently open elements."""

        return len(self._stack)

    @contextmanager
    def root(
        self,
        name: str,
        attributes: Mapping[str, str] | None = None,
        namespaces: Mapping[str | None, str] | None = None,
    ) -> Iterator[None]:
        if self._root is not None:
            raise DocumentWriteError(self._specification, "Document already has a root element")

        self._namespaces = dict(namespaces or {})
        tag = self._element_name(name)
        try:
            node = etree.Element(tag, nsmap=self._namespaces)
        except (ValueError, TypeError) as exc:
            raise DocumentWriteError(self._specification, f"Invalid root element {name!r}: {exc}") from exc
        self._set_attributes(node, attributes)

        self._root = node
        self._stack.append(node)
        try:
            yield
        finally:
            self._stack.pop()

    @contextmanager
    def element(self, name: str, attributes: Mapping[str, str] | None = None) -> Iterator[None]:
        parent = self._current()
        tag = self._element_name(name)
        try:
            node = etree.SubElement(parent, tag)
        except (ValueError, TypeError) as exc:
            raise DocumentWriteError(self._specification, f"Invalid element {name!r}: {exc}") from exc
        self._set_attributes(node, attributes)

        self._stack.append(node)
        try:
            yield
        finally:
            self._stack.pop()

    def write_element(self, name: str, text: str = "", attributes: Mapping[str, str] | None = None) -> None:
        """Write a complete element holding only text."""

        with self.element(name, attributes):
            self.write_text(text)

    def write_text(self, content: str) -> None:
        """Append character data to the open element; escaping happens on output."""

        if not content:
            return
        node = self._current()
        try:
            if len(node):
                last = node[-1]
                last.tail = (last.tail or "") + content
            else:
                node.text = (node.text or "") + content
        except (ValueError, TypeError) as exc:
            raise DocumentWriteError(self._specification, f"Invalid text content: {exc}") from exc

    def write_markup(self, fragment: str, prefix: str) -> None:
        """Write an inline markup fragment as elements in the ``prefix`` namespace.

        A fragment that is a single ``p`` element contributes only its
        content. Fragments that do not parse as XML are written as plain text.
        """

        parser = etree.XMLParser(
            resolve_entities=False,
            no_network=True,
            load_dtd=False,
            huge_tree=False,
            remove_comments=True,
            remove_pis=True,
        )
        try:
            wrapper = etree.fromstring(f"<fragment>{fragment}</fragment>", parser=parser)
        except etree.XMLSyntaxError:
            logger.debug("Writing malformed inline markup as text")
            self.write_text(fragment)
            return

        source = wrapper
        if len(wrapper) == 1 and not (wrapper.text or "").strip():
            only = wrapper[0]
            if etree.QName(only).localname == "p" and not (only.tail or "").strip():
                source = only

        self.write_text(source.text or "")
        self._copy_markup(source, self._current(), prefix)

    def to_bytes(self) -> bytes:
        """Serialise the finished document as pretty-printed UTF-8."""

        if self._root is None:
            raise DocumentWriteError(self._specification, "Document has no root element")
        if self._stack:
            raise DocumentWriteError(self._specification, "Document still has open elements")
        return etree.tostring(self._root, pretty_print=True, xml_declaration=True, encoding="utf-8")

    def _copy_markup(self, source: etree._Element, target: etree._Element, prefix: str) -> None:
        for child in source:
            local_name = etree.QName(child).localname
            try:
                node = etree.SubElement(target, self._element_name(f"{prefix}:{local_name}"))
                for key, value in child.attrib.items():
                    node.set(key, value)
                node.text = child.text
            except (ValueError, TypeError) as exc:
                raise DocumentWriteError(self._specification, f"Invalid inline markup: {exc}") from exc
            self._copy_markup(child, node, prefix)
            node.tail = child.tail

    def _current(self) -> etree._Element:
        if not self._stack:
            raise DocumentWriteError(self._specification, "No open element to write into")
        return self._stack[-1]

    def _element_name(self, name: str) -> str:
        if ":" in name:
            return self._qualify(name)
        default = self._namespaces.get(None)
        return f"{{{default}}}{name}" if default else name

    def _attribute_name(self, name: str) -> str:
        return self._qualify(name) if ":" in name else name

    def _qualify(self, name: str) -> str:
        prefix, local_name = name.split(":", 1)
        if prefix == "xml":
            return f"{{{XML_NAMESPACE}}}{local_name}"
        uri = self._namespaces.get(prefix)
        if uri is None:
            raise DocumentWriteError(self._specification, f"Unknown namespace prefix {prefix!r} in {name!r}")
        return f"{{{uri}}}{local_name}"

    def _set_attributes(self, node: etree._Element, attributes: Mapping[str, str] | None) -> None:
        for key, value in (attributes or {}).items():
            try:
                node.set(self._attribute_name(key), str(value))
            except (ValueError, TypeError) as exc:
                raise DocumentWriteError(self._specification, f"Invalid attribute {key!r}: {exc}") from exc
