"""Tests for rustdoc JSON parsing into content units."""

import json

import pytest

from docs_embed_mcp.errors import ParseFailure
from docs_embed_mcp.ingestion.rustdoc_parser import classify_kind, parse_doc_export
from docs_embed_mcp.models.domain import ItemKind


def test_sample_export_yields_three_units(sample_export):
    result = parse_doc_export(sample_export)

    assert [u.source_path for u in result.units] == [
        "demo::greet",
        "demo::Widget",
        "demo::MAX",
    ]
    assert [u.kind for u in result.units] == [
        ItemKind.FUNCTION,
        ItemKind.TYPE,
        ItemKind.CONSTANT,
    ]
    assert result.warnings == []
    assert result.crate_name == "demo"
    assert result.crate_version == "1.0.0"


def test_bodies_carry_docs_and_signatures(sample_export):
    units = {u.title: u for u in parse_doc_export(sample_export).units}

    assert units["greet"].body.startswith("Say hello to someone by name.")
    assert "fn greet(name: &str) -> String" in units["greet"].body
    assert "struct Widget {\n    size: usize,\n}" in units["Widget"].body
    assert "const MAX: usize = 64;" in units["MAX"].body
    assert units["greet"].parent_path == "demo"


def test_accepts_text_and_bytes(sample_export):
    raw = json.dumps(sample_export)
    assert len(parse_doc_export(raw).units) == 3
    assert len(parse_doc_export(raw.encode("utf-8")).units) == 3


def test_traversal_order_is_deterministic(sample_export):
    first = parse_doc_export(sample_export).units
    second = parse_doc_export(json.dumps(sample_export)).units
    assert first == second


@pytest.mark.parametrize(
    "raw",
    [
        "not json",
        "[1, 2, 3]",
        json.dumps({"index": {}}),
        json.dumps({"root": "0"}),
        json.dumps({"root": "0", "index": {"1": {}}}),
    ],
)
def test_malformed_root_raises_parse_failure(raw):
    with pytest.raises(ParseFailure):
        parse_doc_export(raw)


def test_unknown_references_and_malformed_nodes_become_warnings(sample_export):
    sample_export["index"]["0"]["inner"]["module"]["items"] += ["404", "5", "6"]
    sample_export["index"]["5"] = "not an object"
    sample_export["index"]["6"] = {"id": "6", "crate_id": 0, "name": "broken"}

    result = parse_doc_export(sample_export)

    assert len(result.units) == 3
    assert len(result.warnings) == 3
    assert any("404" in w for w in result.warnings)


@pytest.mark.parametrize(
    "inner",
    [
        {"module": {"items": None}},
        {"use": "oops"},
        {"impl": ["x"]},
    ],
)
def test_malformed_sections_are_skipped_with_warning(sample_export, inner):
    sample_export["index"]["9"] = {"id": "9", "crate_id": 0, "name": "bad", "inner": inner}
    sample_export["index"]["0"]["inner"]["module"]["items"].append("9")

    result = parse_doc_export(sample_export)

    assert [u.source_path for u in result.units] == [
        "demo::greet",
        "demo::Widget",
        "demo::MAX",
    ]
    assert len(result.warnings) == 1
    assert "9" in result.warnings[0]


def test_malformed_child_list_on_type_is_skipped(sample_export):
    sample_export["index"]["2"]["inner"]["struct"]["impls"] = "not a list"

    result = parse_doc_export(sample_export)

    assert "demo::Widget" not in [u.source_path for u in result.units]
    assert len(result.units) == 2
    assert len(result.warnings) == 1


def test_cycles_terminate(sample_export):
    # A module listing itself and its parent must not loop forever
    sample_export["index"]["0"]["inner"]["module"]["items"].append("0")
    sample_export["index"]["7"] = {
        "id": "7",
        "crate_id": 0,
        "name": "inner",
        "docs": "Inner module.",
        "inner": {"module": {"items": ["0", "7", "1"]}},
    }
    sample_export["index"]["0"]["inner"]["module"]["items"].append("7")

    result = parse_doc_export(sample_export)
    paths = [u.source_path for u in result.units]
    assert paths.count("demo::greet") == 1
    assert "demo::inner" in paths


def test_external_items_are_skipped(sample_export):
    sample_export["index"]["8"] = {
        "id": "8",
        "crate_id": 3,
        "name": "Foreign",
        "docs": "From another crate.",
        "inner": {"struct": {"kind": "unit", "impls": []}},
    }
    sample_export["index"]["0"]["inner"]["module"]["items"].append("8")

    paths = [u.source_path for u in parse_doc_export(sample_export).units]
    assert not any("Foreign" in p for p in paths)


def test_undocumented_module_is_skipped(sample_export):
    result = parse_doc_export(sample_export)
    assert all(u.kind != ItemKind.MODULE for u in result.units)


def test_impls_and_methods_are_traversed(sample_export):
    index = sample_export["index"]
    index["2"]["inner"]["struct"]["impls"] = ["10", "12", "14"]
    index["10"] = {
        "id": "10",
        "crate_id": 0,
        "name": None,
        "docs": None,
        "inner": {
            "impl": {
                "is_synthetic": False,
                "blanket_impl": None,
                "trait": None,
                "for": {"resolved_path": {"path": "Widget", "id": "2", "args": None}},
                "generics": {"params": [], "where_predicates": []},
                "items": ["11"],
            }
        },
    }
    index["11"] = {
        "id": "11",
        "crate_id": 0,
        "name": "new",
        "docs": "Create a widget.",
        "inner": {
            "function": {
                "sig": {
                    "inputs": [["size", {"primitive": "usize"}]],
                    "output": {"generic": "Self"},
                },
                "generics": {"params": [], "where_predicates": []},
                "header": {"is_const": True},
            }
        },
    }
    index["12"] = {
        "id": "12",
        "crate_id": 0,
        "name": None,
        "docs": None,
        "inner": {
            "impl": {
                "is_synthetic": False,
                "blanket_impl": None,
                "trait": {"path": "Clone", "id": "50", "args": None},
                "for": {"resolved_path": {"path": "Widget", "id": "2", "args": None}},
                "items": ["13"],
            }
        },
    }
    index["13"] = {
        "id": "13",
        "crate_id": 0,
        "name": "clone",
        "docs": None,
        "inner": {
            "function": {
                "sig": {
                    "inputs": [
                        [
                            "self",
                            {
                                "borrowed_ref": {
                                    "lifetime": None,
                                    "is_mutable": False,
                                    "type": {"generic": "Self"},
                                }
                            },
                        ]
                    ],
                    "output": {"generic": "Self"},
                },
            }
        },
    }
    index["14"] = {
        "id": "14",
        "crate_id": 0,
        "name": None,
        "docs": None,
        "inner": {"impl": {"is_synthetic": True, "trait": {"path": "Send"}, "items": []}},
    }

    units = parse_doc_export(sample_export).units
    by_path = [(u.source_path, u.kind, u.title) for u in units]

    assert ("demo::Widget::new", ItemKind.FUNCTION, "new") in by_path
    assert ("demo::Widget", ItemKind.IMPL, "impl Widget") in by_path
    assert ("demo::Widget", ItemKind.IMPL, "impl Clone for Widget") in by_path
    # Undocumented trait impl methods and synthetic impls are not emitted
    assert not any(title == "clone" for _, _, title in by_path)
    assert not any("Send" in title for _, _, title in by_path)

    new_unit = next(u for u in units if u.title == "new")
    assert "const fn new(size: usize) -> Self" in new_unit.body


def test_path_built_from_parent_when_paths_missing(sample_export):
    sample_export["paths"] = {}
    paths = [u.source_path for u in parse_doc_export(sample_export).units]
    assert paths == ["demo::greet", "demo::Widget", "demo::MAX"]


def test_reexports_are_followed(sample_export):
    index = sample_export["index"]
    index["0"]["inner"]["module"]["items"] = ["20"]
    index["20"] = {
        "id": "20",
        "crate_id": 0,
        "name": None,
        "inner": {"use": {"source": "hidden::greet", "name": "greet", "id": "1", "is_glob": False}},
    }
    paths = [u.source_path for u in parse_doc_export(sample_export).units]
    assert paths == ["demo::greet"]


@pytest.mark.parametrize(
    "kind,expected",
    [
        ("struct", ItemKind.TYPE),
        ("enum", ItemKind.TYPE),
        ("type_alias", ItemKind.TYPE),
        ("assoc_type", ItemKind.TYPE),
        ("function", ItemKind.FUNCTION),
        ("trait_alias", ItemKind.TRAIT),
        ("impl", ItemKind.IMPL),
        ("proc_macro", ItemKind.MACRO),
        ("static", ItemKind.CONSTANT),
        ("assoc_const", ItemKind.CONSTANT),
        ("module", ItemKind.MODULE),
        ("extern_crate", ItemKind.OTHER),
    ],
)
def test_classify_kind(kind, expected):
    assert classify_kind(kind) == expected
