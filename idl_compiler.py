"""
idl_compiler.py
Compilation facade: load -> parse -> build AST -> register symbols -> resolve -> evaluate constants
-> dependency sort -> generate Rust. Each stage completes before the next one starts, and the first
IdlError raised by any stage aborts the whole compilation.
"""
import sys
from typing import List, Optional

from ast_builder import build_specification
from generators.rust_generator import RustGenerator
from idl_ast import Specification
from idl_lark_parser import parse_idl
from idl_loader import IdlFileLoader, SourceText
from idl_transform_pipeline import run_idl_transform_pipeline
from idl_transforms.dependency_sort import DependencySortTransform
from idl_transforms.evaluate_constants_transform import EvaluateConstantsTransform
from idl_transforms.register_symbols_transform import RegisterSymbolsTransform
from idl_transforms.resolve_references_transform import ResolveReferencesTransform
from type_mapper import TypeMapper


class Configuration:
    """Every setting the compiler consumes."""

    def __init__(self, idl_file: Optional[str] = None, include_dirs: Optional[List[str]] = None, verbose: bool = False):
        self.idl_file = idl_file
        self.include_dirs = list(include_dirs) if include_dirs else ['.']
        self.verbose = verbose

    def __repr__(self):
        return f"Configuration(idl_file={self.idl_file!r}, include_dirs={self.include_dirs!r}, verbose={self.verbose})"


class CompilationResult:
    def __init__(self, spec: Specification, output: str):
        self.spec = spec
        self.output = output


class IdlCompiler:
    def __init__(self, config: Optional[Configuration] = None):
        self.config = config or Configuration()
        self.verbose = self.config.verbose

    def debug_print(self, message: str) -> None:
        if self.verbose:
            print(f"[DEBUG] {message}", file=sys.stderr)

    def resolve(self, source: SourceText) -> Specification:
        """Run every stage up to and including dependency ordering."""
        self.debug_print(f"Parsing {source.root_file}")
        tree = parse_idl(source.text, source.root_file, source.source_map)
        self.debug_print("Building AST")
        spec = build_specification(tree, source.root_file, source.source_map)
        self.debug_print(f"AST has {len(spec.definitions)} top-level definitions")
        transforms = [
            RegisterSymbolsTransform(verbose=self.verbose),
            ResolveReferencesTransform(verbose=self.verbose),
            EvaluateConstantsTransform(verbose=self.verbose),
            DependencySortTransform(verbose=self.verbose),
        ]
        return run_idl_transform_pipeline(spec, transforms)

    def compile_source(self, source: SourceText) -> CompilationResult:
        spec = self.resolve(source)
        generator = RustGenerator(TypeMapper(), verbose=self.verbose)
        output = generator.generate(spec)
        self.debug_print(f"Generated {len(output.splitlines())} lines of Rust")
        return CompilationResult(spec, output)

    def compile_idl_text(self, text: str, file_name: str = "<string>") -> CompilationResult:
        loader = IdlFileLoader(self.config.include_dirs, self.verbose)
        return self.compile_source(loader.load_text(text, file_name))

    def compile_idl_file(self, idl_file: Optional[str] = None) -> CompilationResult:
        idl_file = idl_file or self.config.idl_file
        if idl_file is None:
            raise ValueError("no IDL file given")
        loader = IdlFileLoader(self.config.include_dirs, self.verbose)
        return self.compile_source(loader.load(idl_file))
