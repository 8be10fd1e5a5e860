"""WiX descriptor loading, querying, editing and writing.

Wraps an :mod:`xml.etree.ElementTree` document and exposes just the
elements the reconciliation pipeline works with:

* ``Directory`` trees declared directly under ``Wix/Fragment``;
* ``Component`` elements grouped under ``Wix/Fragment/ComponentGroup``;
* the ``File`` children of those components.

ElementTree has no parent pointers, so :class:`Descriptor` keeps a parent
map that is updated whenever it adds or removes elements.
"""

from __future__ import annotations

import logging
import os
import re
import shutil
import tempfile
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from pathlib import Path
from typing import IO, TYPE_CHECKING

from wxsync.errors import DescriptorError

if TYPE_CHECKING:
    from collections.abc import Iterator

logger = logging.getLogger(__name__)

WIX3_NAMESPACE = "http://schemas.microsoft.com/wix/2006/wi"
WIX4_NAMESPACE = "http://wixtoolset.org/schemas/v4/wxs"

# ElementTree reserves ``ns<N>`` for the prefixes it generates itself.
_GENERATED_PREFIX_RE = re.compile(r"^ns\d+$")


def _split_tag(tag: str) -> tuple[str, str]:
    """Split ``{namespace}local`` into ``(namespace, local)``."""
    if tag.startswith("{"):
        namespace, _, local = tag[1:].partition("}")
        return namespace, local
    return "", tag


@dataclass(frozen=True)
class ComponentTemplate:
    """Blueprint for synthesised components.

    Captured from the first component in document order before any pruning,
    so it outlives the removal of that component.
    """

    component_attrs: dict[str, str]
    file_attrs: dict[str, str]
    container: ET.Element = field(compare=False)


class Descriptor:
    """A parsed WiX document and the operations the pipeline needs on it."""

    def __init__(self, tree: ET.ElementTree, prefixes: dict[str, str] | None = None) -> None:
        root = tree.getroot()
        namespace, local = _split_tag(root.tag)
        if local != "Wix":
            raise DescriptorError(f"Root element is <{local}>, expected <Wix>")

        self.tree = tree
        self.root = root
        self.namespace = namespace
        self.prefixes: dict[str, str] = dict(prefixes or {})
        self._parents: dict[ET.Element, ET.Element] = {
            child: parent for parent in root.iter() for child in parent
        }
        self.template = self._find_template()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def qname(self, local: str) -> str:
        """Qualify *local* with the document's WiX namespace."""
        return f"{{{self.namespace}}}{local}" if self.namespace else local

    def fragments(self) -> list[ET.Element]:
        return self.root.findall(self.qname("Fragment"))

    def root_directories(self) -> list[ET.Element]:
        """``Directory`` elements directly under a ``Fragment``, in document order."""
        return [d for frag in self.fragments() for d in frag.findall(self.qname("Directory"))]

    def child_directories(self, element: ET.Element) -> list[ET.Element]:
        return element.findall(self.qname("Directory"))

    def components(self) -> list[ET.Element]:
        """``Component`` elements of every ``ComponentGroup``, in document order."""
        result: list[ET.Element] = []
        for frag in self.fragments():
            for group in frag.findall(self.qname("ComponentGroup")):
                result.extend(group.findall(self.qname("Component")))
        return result

    def files(self, component: ET.Element) -> list[ET.Element]:
        return component.findall(self.qname("File"))

    def iter_ids(self) -> Iterator[str]:
        """Every ``Id`` attribute in the document."""
        for el in self.root.iter():
            value = el.get("Id")
            if value:
                yield value

    # ------------------------------------------------------------------
    # Edits
    # ------------------------------------------------------------------

    def remove(self, element: ET.Element) -> None:
        """Detach *element* (and its subtree) from its parent."""
        parent = self._parents.pop(element, None)
        if parent is None:
            raise DescriptorError(f"Cannot remove <{_split_tag(element.tag)[1]}>: no parent")
        parent.remove(element)

    def append_directory(self, parent: ET.Element, dir_id: str, name: str) -> ET.Element:
        """Append a new ``Directory`` as the last child of *parent*."""
        element = ET.SubElement(parent, self.qname("Directory"), {"Id": dir_id, "Name": name})
        self._parents[element] = parent
        return element

    def new_component(
        self,
        *,
        component_id: str,
        directory_id: str,
        file_id: str,
        source: str,
    ) -> ET.Element:
        """Build a component for *source* from the template and append it.

        The new component carries the template's component and file
        attributes with ``Id``, ``Directory`` and ``Source`` replaced.
        """
        template = self.template
        component_attrs = dict(template.component_attrs)
        component_attrs["Id"] = component_id
        component_attrs["Directory"] = directory_id
        file_attrs = dict(template.file_attrs)
        file_attrs["Id"] = file_id
        file_attrs["Source"] = source

        component = ET.SubElement(template.container, self.qname("Component"), component_attrs)
        self._parents[component] = template.container
        file_el = ET.SubElement(component, self.qname("File"), file_attrs)
        self._parents[file_el] = component
        return component

    # ------------------------------------------------------------------
    # Output
    # ------------------------------------------------------------------

    def to_bytes(self, indent: str = "") -> bytes:
        """Serialise the document as UTF-8 with an XML declaration.

        The WiX namespace is written as the default namespace and other
        namespaces keep the prefixes declared in the input.
        """
        if self.namespace:
            ET.register_namespace("", self.namespace)
        for prefix, uri in self.prefixes.items():
            if prefix and uri != self.namespace and not _GENERATED_PREFIX_RE.match(prefix):
                ET.register_namespace(prefix, uri)
        if indent:
            ET.indent(self.tree, space=indent)
        body = ET.tostring(self.root, encoding="utf-8", xml_declaration=True)
        return body if body.endswith(b"\n") else body + b"\n"

    def write(self, path: Path, indent: str = "") -> None:
        """Write the document to *path*, replacing it only once fully written."""
        data = self.to_bytes(indent)
        target = Path(path)
        try:
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{target.name}.", suffix=".tmp", dir=target.parent
            )
        except OSError as exc:
            raise DescriptorError(f"Cannot write descriptor {target}: {exc}") from exc
        try:
            with os.fdopen(fd, "wb") as fh:
                fh.write(data)
            if target.exists():
                shutil.copymode(target, tmp_name)
            else:
                os.chmod(tmp_name, 0o644)
            os.replace(tmp_name, target)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        logger.debug("Wrote %d bytes to %s", len(data), target)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _find_template(self) -> ComponentTemplate:
        components = self.components()
        if not components:
            raise DescriptorError(
                "No <Component> found under Wix/Fragment/ComponentGroup to use as a template"
            )
        first = components[0]
        files = self.files(first)
        if not files:
            raise DescriptorError(
                f"Template component '{first.get('Id', '')}' has no <File> child"
            )
        return ComponentTemplate(
            component_attrs=dict(first.attrib),
            file_attrs=dict(files[0].attrib),
            container=self._parents[first],
        )


def _collect_prefixes(data: bytes) -> dict[str, str]:
    """Namespace prefix declarations in *data*, first declaration wins."""
    prefixes: dict[str, str] = {}
    parser = ET.XMLPullParser(events=("start-ns",))
    parser.feed(data)
    parser.close()
    for _event, (prefix, uri) in parser.read_events():
        prefixes.setdefault(prefix, uri)
    return prefixes


def parse_descriptor(data: bytes | str) -> Descriptor:
    """Parse descriptor text, keeping comments and processing instructions."""
    raw = data.encode("utf-8") if isinstance(data, str) else data
    parser = ET.XMLParser(target=ET.TreeBuilder(insert_comments=True, insert_pis=True))
    try:
        parser.feed(raw)
        root = parser.close()
        prefixes = _collect_prefixes(raw)
    except ET.ParseError as exc:
        raise DescriptorError(f"Malformed descriptor: {exc}") from exc
    return Descriptor(ET.ElementTree(root), prefixes)


def load_descriptor(source: Path | IO[bytes]) -> Descriptor:
    """Read and parse a descriptor from a path or a binary stream."""
    if isinstance(source, (str, Path)):
        path = Path(source)
        try:
            data = path.read_bytes()
        except OSError as exc:
            raise DescriptorError(f"Cannot read descriptor {path}: {exc}") from exc
        logger.debug("Read descriptor %s (%d bytes)", path, len(data))
    else:
        data = source.read()
    return parse_descriptor(data)
