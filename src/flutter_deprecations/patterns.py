"""Curated table of well-known Flutter deprecations.

Each entry pairs a deprecation record with a regular expression that detects
usage of the deprecated API in a code snippet. The table is an ordered,
immutable tuple so that iteration order is stable everywhere it is used.
"""

import re
from dataclasses import dataclass, field
from typing import Tuple

from .models import Deprecation

KNOWN_PATTERN_VERSION = "Multiple versions"


@dataclass(frozen=True)
class KnownPattern:
    """A hand-curated deprecation with its detection regex."""

    pattern: str
    api: str
    replacement: str
    description: str
    example: str = ""
    regex: re.Pattern = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        object.__setattr__(self, "regex", re.compile(self.pattern))

    def matches(self, code: str) -> bool:
        return self.regex.search(code) is not None

    def to_deprecation(self) -> Deprecation:
        return Deprecation(
            api=self.api,
            replacement=self.replacement,
            version=KNOWN_PATTERN_VERSION,
            description=self.description,
            example=self.example,
        )


KNOWN_PATTERNS: Tuple[KnownPattern, ...] = (
    KnownPattern(
        pattern=r"Color\.\w+\.withOpacity\(([^)]+)\)",
        api="Color.withOpacity",
        replacement="Color.withValues(alpha: $1)",
        description="withOpacity is deprecated, use withValues instead",
        example="Color.red.withOpacity(0.5) → Color.red.withValues(alpha: 0.5)",
    ),
    KnownPattern(
        pattern=r"RaisedButton",
        api="RaisedButton",
        replacement="ElevatedButton",
        description="RaisedButton is deprecated, use ElevatedButton instead",
        example="RaisedButton → ElevatedButton",
    ),
    KnownPattern(
        pattern=r"FlatButton",
        api="FlatButton",
        replacement="TextButton",
        description="FlatButton is deprecated, use TextButton instead",
        example="FlatButton → TextButton",
    ),
    KnownPattern(
        pattern=r"OutlineButton",
        api="OutlineButton",
        replacement="OutlinedButton",
        description="OutlineButton is deprecated, use OutlinedButton instead",
        example="OutlineButton → OutlinedButton",
    ),
    KnownPattern(
        pattern=r"Scaffold\.of\(context\)\.showSnackBar",
        api="Scaffold.of(context).showSnackBar",
        replacement="ScaffoldMessenger.of(context).showSnackBar",
        description="Direct showSnackBar on Scaffold is deprecated",
        example="Scaffold.of(context).showSnackBar → ScaffoldMessenger.of(context).showSnackBar",
    ),
    KnownPattern(
        pattern=r"FloatingActionButton\(child:",
        api="FloatingActionButton(child:",
        replacement="FloatingActionButton with specific constructors",
        description="Consider using FloatingActionButton.extended or other specific constructors",
    ),
)


def known_deprecations(patterns: Tuple[KnownPattern, ...] = KNOWN_PATTERNS):
    """Return the table as deprecation records stamped with the curated version tag."""
    return [pattern.to_deprecation() for pattern in patterns]
