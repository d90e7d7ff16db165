"""Rustdoc JSON parsing into normalized content units.

This module handles:
- Decoding and validating the doc-export root
- Depth-first traversal from the root module with an explicit stack
- Item kind classification and path construction
- Rendering each documented item as docs plus a signature block
"""

import json
import logging
from dataclasses import dataclass, field

from ..errors import ParseFailure
from ..models.domain import ContentUnit, ItemKind
from .signature_renderer import (
    render_constant,
    render_enum,
    render_function,
    render_impl_header,
    render_struct,
    render_trait,
    render_type_alias,
)

logger = logging.getLogger(__name__)

KIND_MAP = {
    "module": ItemKind.MODULE,
    "struct": ItemKind.TYPE,
    "enum": ItemKind.TYPE,
    "union": ItemKind.TYPE,
    "type_alias": ItemKind.TYPE,
    "typedef": ItemKind.TYPE,
    "primitive": ItemKind.TYPE,
    "assoc_type": ItemKind.TYPE,
    "function": ItemKind.FUNCTION,
    "method": ItemKind.FUNCTION,
    "trait": ItemKind.TRAIT,
    "trait_alias": ItemKind.TRAIT,
    "impl": ItemKind.IMPL,
    "macro": ItemKind.MACRO,
    "proc_macro": ItemKind.MACRO,
    "constant": ItemKind.CONSTANT,
    "static": ItemKind.CONSTANT,
    "assoc_const": ItemKind.CONSTANT,
}

# Kinds reached only through their parent's rendered signature
INLINE_KINDS = {"struct_field", "variant"}

# Kinds whose inner section must be an object
OBJECT_KINDS = {
    "module",
    "struct",
    "enum",
    "union",
    "trait",
    "impl",
    "use",
    "import",
    "function",
}


@dataclass
class ParseResult:
    """Units in depth-first order plus warnings for skipped malformed nodes."""

    units: list[ContentUnit] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    crate_name: str | None = None
    crate_version: str | None = None


@dataclass
class _Frame:
    item_id: str
    parent_path: str | None
    docs_required: bool = False


def classify_kind(kind_key: str) -> ItemKind:
    return KIND_MAP.get(kind_key, ItemKind.OTHER)


def decode_doc_export(raw) -> dict:
    """Decode raw rustdoc JSON and check the root structure.

    Raises:
        ParseFailure: If the input is not JSON, or lacks ``root``/``index``
            or the root item itself
    """
    if isinstance(raw, (bytes, bytearray)):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise ParseFailure(f"Doc export is not valid UTF-8: {e}") from e

    if isinstance(raw, str):
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ParseFailure(f"Doc export is not valid JSON: {e}") from e
    else:
        data = raw

    if not isinstance(data, dict):
        raise ParseFailure("Doc export root must be a JSON object")
    if "root" not in data:
        raise ParseFailure("Doc export is missing the 'root' item id")
    if not isinstance(data.get("index"), dict):
        raise ParseFailure("Doc export is missing the 'index' object")
    if str(data["root"]) not in data["index"]:
        raise ParseFailure(f"Root item {data['root']} not found in index")
    return data


def parse_doc_export(raw) -> ParseResult:
    """Parse a rustdoc JSON doc export into content units.

    Args:
        raw: JSON text, bytes or an already decoded dict

    Returns:
        ParseResult: Units in deterministic depth-first order and warnings
    """
    data = decode_doc_export(raw)
    index = data["index"]
    paths = data.get("paths") if isinstance(data.get("paths"), dict) else {}
    root_id = str(data["root"])

    result = ParseResult(crate_version=data.get("crate_version"))
    root_item = index[root_id]
    if isinstance(root_item, dict):
        result.crate_name = root_item.get("name")

    stack = [_Frame(root_id, None)]
    visited: set[str] = set()

    while stack:
        frame = stack.pop()
        if frame.item_id in visited:
            continue
        visited.add(frame.item_id)

        item = index.get(frame.item_id)
        if item is None:
            result.warnings.append(f"Unknown item reference {frame.item_id}")
            continue
        if not isinstance(item, dict):
            result.warnings.append(f"Item {frame.item_id} is not an object")
            continue
        if item.get("crate_id", 0) != 0:
            continue

        inner = item.get("inner")
        if not isinstance(inner, dict) or not inner:
            result.warnings.append(f"Item {frame.item_id} has no 'inner' section")
            continue

        kind_key = next(iter(inner))
        if kind_key in INLINE_KINDS:
            continue
        if kind_key in OBJECT_KINDS and not isinstance(inner[kind_key], dict):
            result.warnings.append(
                f"Item {frame.item_id} has a malformed '{kind_key}' section"
            )
            continue

        try:
            _visit(frame, item, inner, kind_key, paths, index, result, stack)
        except (AttributeError, KeyError, TypeError) as e:
            result.warnings.append(f"Skipped malformed item {frame.item_id}: {e}")

    logger.info(
        f"Parsed {len(result.units)} content units from "
        f"{result.crate_name or 'doc export'} ({len(result.warnings)} warnings)"
    )
    return result


def _visit(
    frame: _Frame,
    item: dict,
    inner: dict,
    kind_key: str,
    paths: dict,
    index: dict,
    result: ParseResult,
    stack: list[_Frame],
) -> None:
    body = inner[kind_key]

    if kind_key in ("use", "import"):
        target = body.get("id")
        if target is not None:
            stack.append(_Frame(str(target), frame.parent_path))
        return

    if kind_key == "impl":
        if body.get("is_synthetic", body.get("synthetic")) or body.get("blanket_impl"):
            return

    path = _item_path(frame, item, kind_key, paths)
    children = _children(body, kind_key)

    try:
        unit = _build_unit(item, kind_key, path, frame.parent_path, index)
    except (AttributeError, KeyError, TypeError) as e:
        result.warnings.append(f"Could not render item {frame.item_id}: {e}")
        unit = None

    if unit is not None and not (frame.docs_required and not item.get("docs")):
        result.units.append(unit)

    child_parent = frame.parent_path if kind_key == "impl" else path
    docs_required = kind_key == "impl" and bool(body.get("trait"))
    for child_id in reversed(children):
        stack.append(_Frame(str(child_id), child_parent, docs_required))


def _children(body, kind_key: str) -> list:
    if kind_key in ("module", "trait", "impl"):
        field_name = "items"
    elif kind_key in ("struct", "enum", "union"):
        field_name = "impls"
    else:
        return []

    ids = body.get(field_name)
    if ids is None and field_name not in body:
        return []
    if not isinstance(ids, list):
        raise TypeError(f"'{field_name}' of a {kind_key} must be a list")
    return ids


def _item_path(frame: _Frame, item: dict, kind_key: str, paths: dict) -> str:
    summary = paths.get(frame.item_id)
    if isinstance(summary, dict) and summary.get("path"):
        return "::".join(summary["path"])

    if kind_key == "impl":
        return frame.parent_path or ""

    name = item.get("name") or f"item_{frame.item_id}"
    if frame.parent_path:
        return f"{frame.parent_path}::{name}"
    return name


def _signature(item: dict, kind_key: str, index: dict) -> str | None:
    name = item.get("name") or "_"
    body = item["inner"][kind_key]

    if kind_key in ("function", "method"):
        return render_function(name, body or {})
    if kind_key == "struct":
        return render_struct(name, body or {}, index)
    if kind_key == "union":
        return render_struct(name, body or {}, index).replace("struct ", "union ", 1)
    if kind_key == "enum":
        return render_enum(name, body or {}, index)
    if kind_key == "trait":
        return render_trait(name, body or {}, index)
    if kind_key == "impl":
        return render_impl_header(body or {})
    if kind_key in ("type_alias", "typedef"):
        return render_type_alias(name, body or {})
    if kind_key in ("constant", "static", "assoc_const"):
        return render_constant(name, item["inner"])
    if kind_key == "assoc_type":
        return f"type {name};"
    if kind_key == "macro" and isinstance(body, str):
        return body.strip() or None
    if kind_key == "proc_macro":
        macro_kind = (body or {}).get("kind") if isinstance(body, dict) else None
        if macro_kind == "derive":
            return f"#[derive({name})]"
        if macro_kind == "attr":
            return f"#[{name}]"
        return f"{name}!()"
    return None


def _build_unit(
    item: dict, kind_key: str, path: str, parent_path: str | None, index: dict
) -> ContentUnit | None:
    docs = (item.get("docs") or "").strip()
    signature = _signature(item, kind_key, index)
    if not docs and not signature:
        return None

    if kind_key == "impl":
        title = signature.splitlines()[0]
    else:
        title = item.get("name") or path

    parts = []
    if docs:
        parts.append(docs)
    if signature:
        parts.append(f"```rust\n{signature}\n```")

    return ContentUnit(
        source_path=path,
        kind=classify_kind(kind_key),
        title=title,
        body="\n\n".join(parts),
        parent_path=parent_path,
    )
