"""
model_debug.py
Debug dump utilities for resolved IDL specifications.
"""
import os
import json
import sys
from typing import Any, Dict, Optional

from idl_ast import Const, EnumValue, Member, Specification, Struct, Typedef, Union, Enum
from type_mapper import TypeMapper


def _json_value(value: Any) -> Any:
    if isinstance(value, EnumValue):
        return value.qualified_name
    return value


def dump_specification(spec: Specification, type_mapper: Optional[TypeMapper] = None) -> Dict[str, Any]:
    """
    Build a JSON-serialisable view of a resolved specification: every symbol with its kind and source
    location, plus the Rust type for declarations that have one.
    """
    if spec.symbols is None:
        raise ValueError("dump_specification requires a resolved specification")
    type_mapper = type_mapper or TypeMapper()
    declarations = []
    for qualified_name, decl in spec.symbols.items():
        entry = {
            'qualified_name': qualified_name,
            'kind': decl.kind,
            'file': decl.file,
            'line': decl.line,
            'column': decl.column,
        }
        if isinstance(decl, Member):
            entry['rust_type'] = type_mapper.map_type(decl.type_spec).render()
        elif isinstance(decl, (Struct, Union, Enum, Typedef, Const)):
            entry['rust_type'] = type_mapper.map_declaration(decl).render()
        if isinstance(decl, Const):
            entry['value'] = _json_value(decl.value)
        if isinstance(decl, EnumValue):
            entry['ordinal'] = decl.ordinal
        if isinstance(decl, Union):
            entry['cases'] = [
                {'member': case.member.name, 'labels': case.label_values, 'default': case.is_default}
                for case in decl.cases
            ]
        declarations.append(entry)
    return {
        'file': spec.file,
        'declarations': declarations,
        'emission_order': [decl.qualified_name for decl in spec.emission_order],
    }


def write_model_dump(spec: Specification, file_path: str, verbose: bool = False):
    """Write dump_specification(spec) to file_path as indented JSON."""
    directory = os.path.dirname(file_path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    with open(file_path, "w", encoding="utf-8") as f:
        json.dump(dump_specification(spec), f, indent=2)
    if verbose:
        print(f"[DEBUG] Model dumped to {file_path}", file=sys.stderr)
