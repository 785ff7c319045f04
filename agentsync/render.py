"""
Template rendering for agentsync.

Thin wrapper around Jinja2. Templates get ``{{ VAR }}`` interpolation,
``{% if %}``/``{% for %}`` control flow and ``{% include "file" %}``,
where includes are looked up in the template's directory first and the
config directory second and may never leave those roots.
"""

from typing import Dict, Iterable, List

import jinja2

from .errors import TemplateError


class LenientIfUndefined(jinja2.StrictUndefined):
    """Strict undefined that still evaluates as false in ``{% if %}`` tests."""

    def __bool__(self) -> bool:
        return False


class TemplateRenderer:
    """Renders template text against a flat mapping of string variables."""

    def __init__(self, search_paths: Iterable[str]):
        """
        Initialize the renderer.

        Args:
            search_paths: Directories includes may be loaded from, in
                lookup order. Duplicates are dropped.
        """
        self.search_paths: List[str] = list(dict.fromkeys(search_paths))
        loader = jinja2.FileSystemLoader(self.search_paths)
        self._environments = {
            strict: jinja2.Environment(
                loader=loader,
                undefined=LenientIfUndefined if strict else jinja2.ChainableUndefined,
                keep_trailing_newline=True,
                autoescape=False,
            )
            for strict in (False, True)
        }

    def render(self, text: str, variables: Dict[str, str], strict: bool = False) -> str:
        """
        Render template text.

        Args:
            text: Template source
            variables: Variable name to value
            strict: Fail on references to undefined variables instead of
                rendering them as empty strings

        Returns:
            Rendered text
        """
        environment = self._environments[bool(strict)]
        try:
            return environment.from_string(text).render(variables)
        except jinja2.UndefinedError as e:
            raise TemplateError(f"Failed to render template: undefined variable ({e.message})") from e
        except jinja2.TemplateNotFound as e:
            raise TemplateError(
                f"Failed to render template: include {e.name!r} not found under "
                f"{', '.join(self.search_paths)}"
            ) from e
        except jinja2.TemplateSyntaxError as e:
            raise TemplateError(f"Failed to render template: {e.message} (line {e.lineno})") from e
        except jinja2.TemplateError as e:
            raise TemplateError(f"Failed to render template: {e}") from e
        except Exception as e:
            raise TemplateError(f"Failed to render template: {e}") from e
