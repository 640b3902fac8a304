"""Resource URI templates with one `{name}` placeholder per path segment.

    template = UriTemplate("users://{userId}/profile")
    template.match("users://42/profile")   # {"userId": "42"}
    template.match("posts://42/profile")   # None (literal mismatch)
    template.match("users://42")           # raises UnresolvedTemplate
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from ..errors import UnresolvedTemplate

_PLACEHOLDER = re.compile(r"^\{([A-Za-z_][A-Za-z0-9_]*)\}$")


def is_template(uri: str) -> bool:
    return "{" in uri


def _split(uri: str) -> tuple[str, list[str]]:
    scheme, sep, rest = uri.partition("://")
    if not sep:
        return "", uri.split("/")
    return scheme, rest.split("/")


@dataclass(frozen=True)
class UriTemplate:
    """A parsed URI template."""

    template: str
    scheme: str = field(init=False)
    segments: tuple[str, ...] = field(init=False)
    variables: tuple[str, ...] = field(init=False)

    def __post_init__(self) -> None:
        scheme, segments = _split(self.template)
        variables = []
        for segment in segments:
            if "{" in segment or "}" in segment:
                placeholder = _PLACEHOLDER.match(segment)
                if placeholder is None:
                    raise ValueError(
                        f"Invalid segment '{segment}' in '{self.template}': "
                        "a placeholder must fill the whole segment"
                    )
                variables.append(placeholder.group(1))
        if len(variables) != len(set(variables)):
            raise ValueError(f"Duplicate placeholder in '{self.template}'")

        object.__setattr__(self, "scheme", scheme)
        object.__setattr__(self, "segments", tuple(segments))
        object.__setattr__(self, "variables", tuple(variables))

    def match(self, uri: str) -> dict[str, str] | None:
        """Extract placeholder values from a concrete URI.

        Returns:
            Placeholder values by name, or None if the scheme or a literal
            segment differs

        Raises:
            UnresolvedTemplate: If the scheme matches but the number of
                segments differs
        """
        scheme, segments = _split(uri)
        if scheme != self.scheme:
            return None
        if len(segments) != len(self.segments):
            raise UnresolvedTemplate(uri, self.template)

        values: dict[str, str] = {}
        for pattern, segment in zip(self.segments, segments, strict=True):
            placeholder = _PLACEHOLDER.match(pattern)
            if placeholder is None:
                if pattern != segment:
                    return None
            elif not segment:
                return None
            else:
                values[placeholder.group(1)] = segment
        return values

    def expand(self, values: dict[str, str]) -> str:
        """Substitute placeholder values into the template."""
        missing = [name for name in self.variables if name not in values]
        if missing:
            raise KeyError(f"Missing values for {missing}")
        uri = self.template
        for name in self.variables:
            uri = uri.replace("{" + name + "}", str(values[name]))
        return uri
