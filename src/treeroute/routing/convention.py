"""Directory-name conventions — map a directory name to a route segment.

Two conventions are supported, chosen per deployment and never mixed
within one discovery run:

Suffix convention (:data:`SUFFIX`)::

    user-id       ->  :userId
    param-name-id ->  :paramNameId
    sort-param    ->  :sort
    plain         ->  plain

Prefix convention (:data:`PREFIX`)::

    =              ->  *
    =param-name    ->  :paramName
    plain          ->  plain
"""

import re
from dataclasses import dataclass
from typing import Protocol

# Wildcard segment produced by the prefix convention
WILDCARD = "*"

# Dash followed by one word character, camelCased into the upper-cased char
_KEBAB_RE = re.compile(r"-(\w)")


def camelize(name: str) -> str:
    """Convert a kebab-case name to camelCase (``param-name`` -> ``paramName``)."""
    return _KEBAB_RE.sub(lambda match: match.group(1).upper(), name)


class PathConvention(Protocol):
    """Protocol for directory naming conventions."""

    def segment(self, name: str) -> str: ...

    def is_dynamic(self, name: str) -> bool: ...


@dataclass(frozen=True, slots=True)
class SuffixConvention:
    """``name-id`` / ``name-param`` directories become parameters.

    ``-param`` is dropped from the parameter name; ``-id`` is kept so
    ``user-id`` reads as ``:userId``.
    """

    id_suffix: str = "-id"
    param_suffix: str = "-param"

    def is_dynamic(self, name: str) -> bool:
        return name.endswith(self.id_suffix) or name.endswith(self.param_suffix)

    def segment(self, name: str) -> str:
        if name.endswith(self.param_suffix):
            return ":" + camelize(name[: -len(self.param_suffix)])
        if name.endswith(self.id_suffix):
            return ":" + camelize(name)
        return name


@dataclass(frozen=True, slots=True)
class PrefixConvention:
    """``=name`` directories become parameters, a bare ``=`` the wildcard."""

    marker: str = "="

    def is_dynamic(self, name: str) -> bool:
        return name.startswith(self.marker)

    def segment(self, name: str) -> str:
        if name == self.marker:
            return WILDCARD
        if name.startswith(self.marker):
            return ":" + camelize(name[len(self.marker) :])
        return name


SUFFIX = SuffixConvention()
PREFIX = PrefixConvention()


def segment(name: str, convention: PathConvention = SUFFIX) -> str:
    """Map a directory name to its route segment under *convention*."""
    return convention.segment(name)
