"""
idl_errors.py
Error taxonomy for the IDL compiler. Every failure is an IdlError carrying a machine-distinguishable
kind plus the source location (file, line, column) it was detected at.
"""
from typing import List, Optional


class IdlError(Exception):
    kind = "IdlError"

    def __init__(self, message: str, file: Optional[str] = None, line: Optional[int] = None, column: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.file = file
        self.line = line
        self.column = column

    def format_diagnostic(self) -> str:
        """Render the error the way a compiler would: file:line:column: error[kind]: message"""
        where = self.file or "<unknown>"
        if self.line is not None:
            where += f":{self.line}"
            if self.column is not None:
                where += f":{self.column}"
        return f"{where}: error[{self.kind}]: {self.message}"

    def __str__(self):
        return self.format_diagnostic()


class IdlSyntaxError(IdlError):
    kind = "SyntaxError"

    def __init__(self, message: str, expected: Optional[List[str]] = None, found: Optional[str] = None, **location):
        super().__init__(message, **location)
        self.expected = sorted(expected or [])
        self.found = found


class IncludeNotFoundError(IdlError):
    kind = "IncludeNotFound"

    def __init__(self, path: str, **location):
        super().__init__(f"cannot find include file '{path}'", **location)
        self.path = path


class SourceEncodingError(IdlError):
    kind = "SourceEncoding"

    def __init__(self, reason: str, **location):
        super().__init__(f"file is not valid UTF-8: {reason}", **location)
        self.reason = reason


class MalformedTreeError(IdlError):
    kind = "MalformedTree"


class DuplicateDeclarationError(IdlError):
    kind = "DuplicateDeclaration"

    def __init__(self, scope: str, name: str, **location):
        where = f"scope '{scope}'" if scope else "the global scope"
        super().__init__(f"'{name}' is already declared in {where}", **location)
        self.scope = scope
        self.name = name


class UnresolvedReferenceError(IdlError):
    kind = "UnresolvedReference"

    def __init__(self, scope: str, path: str, **location):
        where = f"scope '{scope}'" if scope else "the global scope"
        super().__init__(f"cannot resolve '{path}' from {where}", **location)
        self.scope = scope
        self.path = path


class CyclicTypedefError(IdlError):
    kind = "CyclicTypedef"

    def __init__(self, chain: List[str], **location):
        super().__init__("typedef refers to itself: " + " -> ".join(chain), **location)
        self.chain = list(chain)


class CyclicTypeDependencyError(IdlError):
    kind = "CyclicTypeDependency"

    def __init__(self, chain: List[str], **location):
        super().__init__("cyclic type dependency: " + " -> ".join(chain), **location)
        self.chain = list(chain)


class UnsupportedError(IdlError):
    """Base for constructs whose target mapping is NA."""

    def __init__(self, construct: str, **location):
        super().__init__(f"{construct} is not supported", **location)
        self.construct = construct


class UnsupportedConstructError(UnsupportedError):
    kind = "UnsupportedConstruct"


class UnsupportedMappingError(UnsupportedError):
    kind = "UnsupportedMapping"


class UnsupportedSwitchTypeError(IdlError):
    kind = "UnsupportedSwitchType"

    def __init__(self, switch_type: str, **location):
        super().__init__(f"union switch type '{switch_type}' is not supported, use 'long'", **location)
        self.switch_type = switch_type


class DuplicateCaseLabelError(IdlError):
    kind = "DuplicateCaseLabel"

    def __init__(self, union: str, label: str, **location):
        super().__init__(f"case label '{label}' appears more than once in union '{union}'", **location)
        self.union = union
        self.label = label


class InvalidConstantError(IdlError):
    kind = "InvalidConstant"


class RenderError(IdlError):
    kind = "RenderError"
