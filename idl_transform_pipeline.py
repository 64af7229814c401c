"""
idl_transform_pipeline.py
Defines a pipeline for transforming a Specification using a sequence of IdlTransform objects.
"""
from typing import List, Protocol

from idl_ast import Specification


class IdlTransform(Protocol):
    def transform(self, spec: Specification) -> Specification:
        ...


def run_idl_transform_pipeline(
    spec: Specification,
    transforms: List[IdlTransform]
) -> Specification:
    """
    Applies a sequence of IdlTransform objects to a Specification.
    Each transform must run to completion before the next one starts.
    """
    for transform in transforms:
        spec = transform.transform(spec)
    return spec
