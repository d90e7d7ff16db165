"""Signature rendering for rustdoc JSON items.

This module handles:
- Type rendering (paths, references, slices, tuples, trait objects)
- Generic parameter and where-clause rendering
- Function, struct, enum, trait and impl signature blocks
"""

import logging

logger = logging.getLogger(__name__)


def render_path(path: dict | None) -> str:
    """Render a rustdoc Path (name plus generic args) like ``Vec<T>``."""
    if not isinstance(path, dict):
        return "_"
    name = path.get("path") or path.get("name") or "_"
    args = render_generic_args(path.get("args"))
    return f"{name}{args}"


def render_generic_args(args: dict | None) -> str:
    if not isinstance(args, dict):
        return ""

    if "angle_bracketed" in args:
        bracketed = args["angle_bracketed"] or {}
        parts = []
        for arg in bracketed.get("args", []):
            if not isinstance(arg, dict):
                continue
            if "type" in arg:
                parts.append(render_type(arg["type"]))
            elif "lifetime" in arg:
                parts.append(str(arg["lifetime"]))
            elif "const" in arg:
                const = arg["const"]
                expr = const.get("expr") if isinstance(const, dict) else const
                parts.append(str(expr))
        for constraint in bracketed.get("constraints", bracketed.get("bindings", [])):
            if not isinstance(constraint, dict):
                continue
            binding = constraint.get("binding") or {}
            if isinstance(binding, dict) and "equality" in binding:
                value = binding["equality"]
                if isinstance(value, dict) and "type" in value:
                    value = render_type(value["type"])
                parts.append(f"{constraint.get('name', '_')} = {value}")
        return f"<{', '.join(parts)}>" if parts else ""

    if "parenthesized" in args:
        paren = args["parenthesized"] or {}
        inputs = ", ".join(render_type(t) for t in paren.get("inputs", []))
        output = paren.get("output")
        suffix = f" -> {render_type(output)}" if output else ""
        return f"({inputs}){suffix}"

    return ""


def render_bound(bound) -> str:
    """Render a generic bound, either a trait bound or a lifetime."""
    if isinstance(bound, str):
        return bound
    if not isinstance(bound, dict):
        return "_"
    if "trait_bound" in bound:
        trait_bound = bound["trait_bound"] or {}
        modifier = "?" if trait_bound.get("modifier") == "maybe" else ""
        return f"{modifier}{render_path(trait_bound.get('trait'))}"
    if "outlives" in bound:
        return str(bound["outlives"])
    if "trait" in bound:
        return render_path(bound["trait"])
    return "_"


def render_type(type_info) -> str:
    """Render a rustdoc Type object as Rust source text.

    Args:
        type_info: Type from rustdoc JSON (dict, string or None)

    Returns:
        str: Rendered type such as ``&mut [u8]`` or ``Option<String>``
    """
    if type_info is None:
        return "()"
    if isinstance(type_info, str):
        return type_info
    if not isinstance(type_info, dict):
        return "_"

    if "resolved_path" in type_info:
        return render_path(type_info["resolved_path"])
    if "primitive" in type_info:
        return type_info["primitive"]
    if "generic" in type_info:
        return type_info["generic"]
    if "borrowed_ref" in type_info:
        ref = type_info["borrowed_ref"] or {}
        lifetime = f"{ref['lifetime']} " if ref.get("lifetime") else ""
        mutable = "mut " if ref.get("is_mutable", ref.get("mutable")) else ""
        return f"&{lifetime}{mutable}{render_type(ref.get('type'))}"
    if "raw_pointer" in type_info:
        ptr = type_info["raw_pointer"] or {}
        mutable = "mut" if ptr.get("is_mutable", ptr.get("mutable")) else "const"
        return f"*{mutable} {render_type(ptr.get('type'))}"
    if "slice" in type_info:
        return f"[{render_type(type_info['slice'])}]"
    if "array" in type_info:
        array = type_info["array"] or {}
        return f"[{render_type(array.get('type'))}; {array.get('len', '_')}]"
    if "tuple" in type_info:
        members = [render_type(t) for t in type_info["tuple"] or []]
        if len(members) == 1:
            return f"({members[0]},)"
        return f"({', '.join(members)})"
    if "impl_trait" in type_info:
        bounds = [render_bound(b) for b in type_info["impl_trait"] or []]
        return f"impl {' + '.join(bounds)}"
    if "dyn_trait" in type_info:
        dyn = type_info["dyn_trait"] or {}
        traits = [render_path(t.get("trait")) for t in dyn.get("traits", [])]
        if dyn.get("lifetime"):
            traits.append(dyn["lifetime"])
        return f"dyn {' + '.join(traits)}"
    if "qualified_path" in type_info:
        qualified = type_info["qualified_path"] or {}
        self_type = render_type(qualified.get("self_type"))
        trait = qualified.get("trait")
        name = qualified.get("name", "_")
        if trait:
            return f"<{self_type} as {render_path(trait)}>::{name}"
        return f"{self_type}::{name}"
    if "function_pointer" in type_info:
        pointer = type_info["function_pointer"] or {}
        sig = pointer.get("sig") or pointer.get("decl") or {}
        return f"fn{render_params(sig, with_names=False)}"
    if "infer" in type_info:
        return "_"

    return "_"


def render_generics(generics: dict | None) -> tuple[str, str]:
    """Render generic parameters and where predicates.

    Returns:
        Tuple[str, str]: (``<T: Clone, 'a>``, ``where T: Send``), either may be empty
    """
    if not isinstance(generics, dict):
        return "", ""

    params = []
    for param in generics.get("params", []):
        if not isinstance(param, dict):
            continue
        name = param.get("name", "_")
        kind = param.get("kind") or {}
        if not isinstance(kind, dict):
            params.append(name)
            continue
        if "lifetime" in kind:
            outlives = (kind["lifetime"] or {}).get("outlives") or []
            params.append(f"{name}: {' + '.join(outlives)}" if outlives else name)
        elif "type" in kind:
            type_kind = kind["type"] or {}
            # Synthetic params come from `impl Trait` arguments
            if type_kind.get("is_synthetic", type_kind.get("synthetic")):
                continue
            bounds = [render_bound(b) for b in type_kind.get("bounds", [])]
            params.append(f"{name}: {' + '.join(bounds)}" if bounds else name)
        elif "const" in kind:
            const_type = render_type((kind["const"] or {}).get("type"))
            params.append(f"const {name}: {const_type}")
        else:
            params.append(name)

    predicates = []
    for predicate in generics.get("where_predicates", []):
        if not isinstance(predicate, dict):
            continue
        if "bound_predicate" in predicate:
            bound_pred = predicate["bound_predicate"] or {}
            bounds = [render_bound(b) for b in bound_pred.get("bounds", [])]
            if bounds:
                predicates.append(
                    f"{render_type(bound_pred.get('type'))}: {' + '.join(bounds)}"
                )
        elif "lifetime_predicate" in predicate or "region_predicate" in predicate:
            lifetime_pred = (
                predicate.get("lifetime_predicate")
                or predicate.get("region_predicate")
                or {}
            )
            outlives = lifetime_pred.get("outlives", lifetime_pred.get("bounds", []))
            outlives = [render_bound(b) for b in outlives]
            if outlives:
                predicates.append(
                    f"{lifetime_pred.get('lifetime', '_')}: {' + '.join(outlives)}"
                )
        elif "eq_predicate" in predicate:
            eq_pred = predicate["eq_predicate"] or {}
            rhs = eq_pred.get("rhs")
            if isinstance(rhs, dict) and "type" in rhs:
                rhs = rhs["type"]
            predicates.append(
                f"{render_type(eq_pred.get('lhs'))} = {render_type(rhs)}"
            )

    param_str = f"<{', '.join(params)}>" if params else ""
    where_str = f"where {', '.join(predicates)}" if predicates else ""
    return param_str, where_str


def render_params(sig: dict, with_names: bool = True) -> str:
    """Render ``(a: T, b: U) -> R`` from a function signature (``sig`` or ``decl``)."""
    params = []
    for param in sig.get("inputs", []):
        if isinstance(param, (list, tuple)) and len(param) == 2:
            name, type_info = param
            if name == "self":
                params.append(_render_self(type_info))
            elif with_names:
                params.append(f"{name}: {render_type(type_info)}")
            else:
                params.append(render_type(type_info))
        elif isinstance(param, dict):
            params.append(
                f"{param.get('name', '_')}: {render_type(param.get('type'))}"
            )

    rendered = f"({', '.join(params)})"
    output = sig.get("output")
    if output is not None and output != "unit" and output != {"tuple": []}:
        rendered += f" -> {render_type(output)}"
    return rendered


def _render_self(type_info) -> str:
    if isinstance(type_info, dict) and "borrowed_ref" in type_info:
        ref = type_info["borrowed_ref"] or {}
        inner = ref.get("type")
        if isinstance(inner, dict) and inner.get("generic") == "Self":
            lifetime = f"{ref['lifetime']} " if ref.get("lifetime") else ""
            mutable = "mut " if ref.get("is_mutable", ref.get("mutable")) else ""
            return f"&{lifetime}{mutable}self"
    if isinstance(type_info, dict) and type_info.get("generic") == "Self":
        return "self"
    return f"self: {render_type(type_info)}"


def render_function(name: str, function: dict) -> str:
    """Render a full ``fn`` signature line, including async/const/unsafe."""
    header = function.get("header") or {}
    qualifiers = []
    if header.get("is_const", header.get("const")):
        qualifiers.append("const")
    if header.get("is_async", header.get("async")):
        qualifiers.append("async")
    if header.get("is_unsafe", header.get("unsafe")):
        qualifiers.append("unsafe")

    sig = function.get("sig") or function.get("decl") or {}
    generics, where = render_generics(function.get("generics"))
    prefix = " ".join(qualifiers + ["fn"])
    rendered = f"{prefix} {name}{generics}{render_params(sig)}"
    if where:
        rendered += f"\n{where}"
    return rendered


def render_struct(name: str, struct: dict, index: dict) -> str:
    """Render a struct declaration with its public fields."""
    generics, where = render_generics(struct.get("generics"))
    head = f"struct {name}{generics}"
    kind = struct.get("kind")

    if kind == "unit" or kind is None:
        return f"{head};" if not where else f"{head}\n{where};"

    if isinstance(kind, dict) and "tuple" in kind:
        fields = []
        for field_id in kind["tuple"] or []:
            field = index.get(str(field_id)) if field_id is not None else None
            fields.append(_field_type(field) if field else "_")
        rendered = f"{head}({', '.join(fields)})"
        return f"{rendered}\n{where};" if where else f"{rendered};"

    field_ids = []
    if isinstance(kind, dict) and "plain" in kind:
        field_ids = (kind["plain"] or {}).get("fields", [])
    lines = [f"{head}" + (f"\n{where}" if where else "") + " {"]
    for field_id in field_ids:
        field = index.get(str(field_id))
        if not isinstance(field, dict):
            continue
        lines.append(f"    {field.get('name', '_')}: {_field_type(field)},")
    lines.append("}")
    return "\n".join(lines)


def _field_type(field) -> str:
    if not isinstance(field, dict):
        return "_"
    inner = field.get("inner") or {}
    if not isinstance(inner, dict):
        return "_"
    return render_type(inner.get("struct_field"))


def render_enum(name: str, enum: dict, index: dict) -> str:
    """Render an enum declaration listing its variants."""
    generics, where = render_generics(enum.get("generics"))
    lines = [f"enum {name}{generics}" + (f"\n{where}" if where else "") + " {"]
    for variant_id in enum.get("variants", []):
        variant = index.get(str(variant_id))
        if not isinstance(variant, dict):
            continue
        lines.append(f"    {_render_variant(variant, index)},")
    lines.append("}")
    return "\n".join(lines)


def _render_variant(variant: dict, index: dict) -> str:
    name = variant.get("name", "_")
    inner = variant.get("inner") or {}
    details = inner.get("variant") if isinstance(inner, dict) else None
    kind = details.get("kind") if isinstance(details, dict) else None

    if isinstance(kind, dict) and "tuple" in kind:
        types = [
            _field_type(index.get(str(f))) if f is not None else "_"
            for f in kind["tuple"] or []
        ]
        return f"{name}({', '.join(types)})"
    if isinstance(kind, dict) and "struct" in kind:
        fields = []
        for field_id in (kind["struct"] or {}).get("fields", []):
            field = index.get(str(field_id))
            if isinstance(field, dict):
                fields.append(f"{field.get('name', '_')}: {_field_type(field)}")
        return f"{name} {{ {', '.join(fields)} }}"
    return name


def render_trait(name: str, trait: dict, index: dict) -> str:
    """Render a trait header with supertrait bounds and its method signatures."""
    generics, where = render_generics(trait.get("generics"))
    bounds = [render_bound(b) for b in trait.get("bounds", [])]
    unsafe = "unsafe " if trait.get("is_unsafe") else ""
    head = f"{unsafe}trait {name}{generics}"
    if bounds:
        head += f": {' + '.join(bounds)}"
    if where:
        head += f"\n{where}"

    lines = [head + " {"]
    for item_id in trait.get("items", []):
        member = index.get(str(item_id))
        if not isinstance(member, dict):
            continue
        inner = member.get("inner") or {}
        if isinstance(inner, dict) and "function" in inner:
            lines.append(f"    {render_function(member.get('name', '_'), inner['function'])};")
        elif isinstance(inner, dict) and "assoc_type" in inner:
            lines.append(f"    type {member.get('name', '_')};")
        elif isinstance(inner, dict) and "assoc_const" in inner:
            const = inner["assoc_const"] or {}
            lines.append(
                f"    const {member.get('name', '_')}: {render_type(const.get('type'))};"
            )
    lines.append("}")
    return "\n".join(lines)


def render_impl_header(impl: dict) -> str:
    """Render ``impl<T> Trait for Type`` or ``impl Type``."""
    generics, where = render_generics(impl.get("generics"))
    negative = "!" if impl.get("is_negative", impl.get("negative")) else ""
    for_type = render_type(impl.get("for"))
    trait = impl.get("trait")
    if trait:
        header = f"impl{generics} {negative}{render_path(trait)} for {for_type}"
    else:
        header = f"impl{generics} {for_type}"
    if where:
        header += f"\n{where}"
    return header


def render_constant(name: str, inner: dict) -> str | None:
    """Render ``const``/``static`` items; returns None for unknown shapes."""
    if "constant" in inner:
        constant = inner["constant"] or {}
        type_info = constant.get("type")
        value = (constant.get("const") or {}).get("expr") or constant.get("expr")
        rendered = f"const {name}: {render_type(type_info)}"
        return f"{rendered} = {value};" if value else f"{rendered};"
    if "static" in inner:
        static = inner["static"] or {}
        mutable = "mut " if static.get("is_mutable", static.get("mutable")) else ""
        return f"static {mutable}{name}: {render_type(static.get('type'))};"
    if "assoc_const" in inner:
        const = inner["assoc_const"] or {}
        return f"const {name}: {render_type(const.get('type'))};"
    return None


def render_type_alias(name: str, alias: dict) -> str:
    generics, _ = render_generics(alias.get("generics"))
    return f"type {name}{generics} = {render_type(alias.get('type'))};"
