"""XML element resource: text and attributes of one element addressed by an XPath.

Paths use the ElementPath subset of XPath that xml.etree understands, written
absolute from the root element:

    /configuration/appSettings/add[@key='mode']
    /ns:project/ns:version          (with namespaces {"ns": "..."})

Attributes form a set-valued mapping: without _purge, listed attributes are
added or updated and others are kept; with _purge, unlisted attributes are
removed. Missing parent elements are created on Set (predicates are ignored
while creating).
"""

from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from pathlib import Path

from ..diff import DiffResult, mapping_delta
from ..errors import FailureCategory, InvalidArgumentError, InvalidOperationError
from ..exit_codes import ExitCode, ExitCodeTable
from ..instance import Comparison, PurgeableInstance, ResourceField
from ..resource import Operation, Resource

logger = logging.getLogger(__name__)

XML_ELEMENT_EXIT_CODES = ExitCodeTable([
    ExitCode(0, "Success"),
    ExitCode(1, "Error", FailureCategory.GENERIC),
    ExitCode(2, "Invalid input", FailureCategory.MALFORMED_INPUT),
    ExitCode(3, "XML file not found", FailureCategory.INVALID_OPERATION),
    ExitCode(4, "Invalid argument", FailureCategory.INVALID_ARGUMENT),
    ExitCode(5, "Access denied", FailureCategory.PERMISSION_DENIED),
])


class XmlElementInstance(PurgeableInstance):
    """Schema for managing XML element content and attributes."""

    model_config = {"title": "XML Element"}

    path: str = ResourceField(key=True, description="The file path to the XML document.")
    x_path: str = ResourceField(
        key=True,
        pattern=r"^/",
        description="Absolute path to the element. Missing parents are created.",
    )
    value: str | None = ResourceField(None, description="The text content of the element.")
    attributes: dict[str, str] | None = ResourceField(
        None,
        comparison=Comparison.SET,
        description=(
            "Attributes of the element. Without _purge only the listed attributes "
            "are added or updated; with _purge unlisted attributes are removed."
        ),
    )
    namespaces: dict[str, str] | None = ResourceField(
        None,
        description="Namespace prefix mappings used to evaluate the path.",
    )


def _split(x_path: str) -> list[str]:
    steps = [step for step in x_path.split("/") if step]
    if not steps:
        raise InvalidArgumentError(f"Invalid XPath: {x_path}")
    return steps


def _qualify(step: str, namespaces: dict[str, str] | None) -> str:
    """Turn `prefix:name` into ElementTree's `{uri}name` form."""
    tag = step.split("[", 1)[0]
    if ":" not in tag:
        return tag
    prefix, local = tag.split(":", 1)
    uri = (namespaces or {}).get(prefix)
    if uri is None:
        raise InvalidArgumentError(f"Undeclared namespace prefix '{prefix}' in XPath")
    return f"{{{uri}}}{local}"


def _local_name(name: str) -> str:
    return name.rsplit("}", 1)[-1]


def find_element(
    root: ET.Element, x_path: str, namespaces: dict[str, str] | None
) -> ET.Element | None:
    """Find the first element matching an absolute path.

    The first step names the root element; predicates on it are not evaluated.
    """
    steps = _split(x_path)
    if _qualify(steps[0], namespaces) != root.tag:
        return None

    if len(steps) == 1:
        return root

    try:
        return root.find("./" + "/".join(steps[1:]), namespaces)
    except SyntaxError as e:
        raise InvalidArgumentError(f"Invalid XPath expression '{x_path}': {e}") from e


def find_or_create_element(
    root: ET.Element, x_path: str, namespaces: dict[str, str] | None
) -> ET.Element:
    element = find_element(root, x_path, namespaces)
    if element is not None:
        return element

    steps = _split(x_path)
    if _qualify(steps[0], namespaces) != root.tag:
        raise InvalidOperationError(f"XPath root does not match the document root: {x_path}")

    current = root
    for step in steps[1:]:
        tag = _qualify(step, namespaces)
        child = current.find(tag)
        if child is None:
            child = ET.SubElement(current, tag)
        current = child
    return current


class XmlElementResource(Resource[XmlElementInstance]):
    type_name = "Converge.Xml/Element"
    description = "Manage XML element content and attributes"
    tags = ("xml", "element", "attribute", "xpath")
    instance_model = XmlElementInstance
    capabilities = frozenset({Operation.GET, Operation.SET, Operation.TEST, Operation.DELETE})
    exit_codes = XML_ELEMENT_EXIT_CODES

    def _load(self, path: Path) -> ET.ElementTree:
        try:
            return ET.parse(path)
        except ET.ParseError as e:
            raise InvalidArgumentError(f"Invalid XML in {path}: {e}") from e

    def _save(self, tree: ET.ElementTree, path: Path) -> None:
        ET.indent(tree, space="  ")
        tree.write(path, encoding="utf-8", xml_declaration=True)

    def get(self, desired: XmlElementInstance) -> XmlElementInstance:
        path = Path(desired.path)
        if not path.is_file():
            return desired.absent()

        root = self._load(path).getroot()
        element = find_element(root, desired.x_path, desired.namespaces)
        if element is None:
            return desired.absent()

        attributes = {_local_name(k): v for k, v in element.attrib.items()}
        return XmlElementInstance(
            path=desired.path,
            x_path=desired.x_path,
            value=element.text or "",
            attributes=attributes or None,
            namespaces=desired.namespaces,
        )

    def set(
        self, desired: XmlElementInstance, actual: XmlElementInstance, diff: DiffResult
    ) -> None:
        path = Path(desired.path)
        if not path.is_file():
            raise InvalidOperationError(f"XML file not found: {path}")

        tree = self._load(path)
        element = find_or_create_element(tree.getroot(), desired.x_path, desired.namespaces)

        if desired.value is not None:
            element.text = desired.value

        to_set, to_remove = mapping_delta(
            desired.attributes, actual.attributes, purge=desired.purge
        )
        for name in to_remove:
            element.attrib.pop(name, None)
        for name, value in to_set.items():
            element.set(name, value)

        self._save(tree, path)
        logger.info(
            "Updated XML element",
            extra={"path": str(path), "x_path": desired.x_path, "removed": to_remove},
        )

    def delete(self, desired: XmlElementInstance) -> None:
        path = Path(desired.path)
        if not path.is_file():
            return

        tree = self._load(path)
        root = tree.getroot()
        element = find_element(root, desired.x_path, desired.namespaces)
        if element is None:
            return
        if element is root:
            raise InvalidOperationError("Cannot delete the document root element")

        parents = {child: parent for parent in root.iter() for child in parent}
        parents[element].remove(element)
        self._save(tree, path)
