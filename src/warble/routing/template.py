"""Path template compilation.

Supported segment syntax::

    /users          literal
    /users/:id      one path segment, bound to ``id``
    /orders/:id{[0-9]+}
                    one segment constrained by an inline pattern
    /files/*path    the rest of the path (slashes included), bound to ``path``

The wildcard must be the final segment and may appear once. A trailing
slash on the request path is always accepted.
"""

import re
from dataclasses import dataclass
from urllib.parse import quote, unquote

from warble.errors import RouteTemplateError

_PARAM_RE = re.compile(r"^:([^{}/]+)(?:\{(.+)\})?$")

DEFAULT_SEGMENT_PATTERN = r"[^/]+"
WILDCARD_PATTERN = r".*"
DEFAULT_WILDCARD_NAME = "wildcard"


@dataclass(frozen=True, slots=True)
class CompiledTemplate:
    """A route template compiled into an anchored regular expression.

    ``pattern`` has exactly one capturing group per entry of
    ``param_keys``, in the same order.
    """

    template: str
    pattern: re.Pattern[str]
    param_keys: tuple[str, ...]

    def match(self, path: str) -> dict[str, str] | None:
        """Match *path* and return decoded params, or ``None``."""
        m = self.pattern.match(path)
        if m is None:
            return None
        return {
            key: unquote(value or "")
            for key, value in zip(self.param_keys, m.groups(), strict=True)
        }


def _split(template: str) -> list[str]:
    return [part for part in template.split("/") if part]


def _param_pattern(template: str, part: str) -> tuple[str, str]:
    """Parse a ``:name`` or ``:name{pattern}`` segment."""
    m = _PARAM_RE.match(part)
    if m is None:
        raise RouteTemplateError(template, f"Invalid param segment {part!r}")
    name, inline = m.group(1), m.group(2)
    if inline is None:
        return name, DEFAULT_SEGMENT_PATTERN
    try:
        compiled = re.compile(inline)
    except re.error as exc:
        raise RouteTemplateError(
            template, f"Invalid pattern for param {name!r} ({exc})"
        ) from None
    if compiled.groups:
        # Inner groups would shift every later capture.
        raise RouteTemplateError(
            template,
            f"Pattern for param {name!r} must not contain capturing groups; use (?:...)",
        )
    return name, inline


def compile_template(template: str) -> CompiledTemplate:
    """Compile a route template into a ``CompiledTemplate``.

    Raises ``RouteTemplateError`` for more than one wildcard, a wildcard
    that is not the last segment, or a malformed parameter segment.
    """
    parts = _split(template)
    keys: list[str] = []
    regex_parts: list[str] = []

    if sum(part.startswith("*") for part in parts) > 1:
        raise RouteTemplateError(template, "Only one wildcard segment is allowed")

    for index, part in enumerate(parts):
        if part.startswith("*"):
            if index != len(parts) - 1:
                raise RouteTemplateError(template, "Wildcard segment must be last")
            keys.append(part[1:] or DEFAULT_WILDCARD_NAME)
            regex_parts.append(f"({WILDCARD_PATTERN})")
            continue

        if part.startswith(":"):
            name, pattern = _param_pattern(template, part)
            keys.append(name)
            regex_parts.append(f"({pattern})")
            continue

        regex_parts.append(re.escape(part))

    pattern = re.compile(f"^/{'/'.join(regex_parts)}/?$")
    return CompiledTemplate(template=template, pattern=pattern, param_keys=tuple(keys))


def build_path(template: str, params: dict[str, str]) -> str:
    """Substitute *params* into *template*, percent-encoding each value.

    The inverse of matching: ``compile_template(t).match(build_path(t, p))``
    returns ``p``. Wildcard values keep their slashes; every other
    character is encoded per segment.

    Raises ``ValueError`` when a parameter is missing.
    """
    out: list[str] = []
    for part in _split(template):
        if part.startswith("*"):
            name = part[1:] or DEFAULT_WILDCARD_NAME
            if name not in params:
                msg = f"Missing wildcard {name!r} for {template!r}"
                raise ValueError(msg)
            out.extend(quote(piece, safe="") for piece in params[name].split("/"))
        elif part.startswith(":"):
            name = part[1:].split("{", 1)[0]
            if name not in params:
                msg = f"Missing param {name!r} for {template!r}"
                raise ValueError(msg)
            out.append(quote(params[name], safe=""))
        else:
            out.append(part)
    return "/" + "/".join(out)
