"""
Template renderer for generated Rust code.
Wraps a jinja2 environment over generators/templates; each declaration kind has one `<kind>.rs.j2` template.
"""
import os
from typing import Any, Dict

import jinja2

from idl_errors import RenderError
from type_mapper import rust_ident

TEMPLATE_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), 'templates')


class TemplateRenderer:
    def __init__(self, template_dir: str = TEMPLATE_DIR):
        self.env = jinja2.Environment(
            loader=jinja2.FileSystemLoader(template_dir),
            undefined=jinja2.StrictUndefined,
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=False,
            autoescape=False,
        )
        self.env.filters['rust_ident'] = rust_ident

    def render(self, kind: str, bindings: Dict[str, Any]) -> str:
        try:
            template = self.env.get_template(f"{kind}.rs.j2")
            return template.render(**bindings)
        except jinja2.TemplateError as e:
            raise RenderError(f"cannot render {kind} '{bindings.get('name', '')}': {e}") from e
