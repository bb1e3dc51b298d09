"""Heuristic scanner for @Deprecated annotations in Dart source.

This is not a Dart parser. The scanner walks a document line by line, and for
every ``@Deprecated('...')`` marker it:

1. reads the quoted description (adjacent string literals are joined, the
   annotation may span several lines),
2. looks backward a bounded number of lines for the enclosing class, enum,
   mixin or extension to use as context,
3. looks forward a bounded number of lines for the declaration the marker is
   attached to, trying a fixed list of declaration shapes in priority order,
4. infers a replacement from the description, falling back to a lookup table
   and finally to generic guidance.

A marker whose declaration cannot be recognized inside the forward window is
dropped. Scanning never raises on odd input.
"""

import re
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional, Sequence, Tuple

import structlog

from .models import Deprecation

logger = structlog.get_logger(__name__)

CONTEXT_WINDOW = 50
FORWARD_WINDOW = 10

_IDENT = r"[A-Za-z_$][\w$]*"

MARKER_PATTERN = re.compile(r"@[Dd]eprecated\s*\(")
TYPE_DECL_PATTERN = re.compile(rf"\b(?:class|enum|mixin|extension(?:\s+type)?)\s+(?!class\b|on\b)({_IDENT})")
QUALIFIED_CTOR_PATTERN = re.compile(rf"\b([A-Z][\w$]*)\s*\.\s*({_IDENT})\s*\(")
GETTER_PATTERN = re.compile(rf"\bget\s+({_IDENT})")
SETTER_PATTERN = re.compile(rf"\bset\s+({_IDENT})\s*\(")
METHOD_PATTERN = re.compile(rf"({_IDENT})\s*(?:<[^()]*>)?\s*\(")
FIELD_PATTERN = re.compile(
    r"^(?P<mods>(?:(?:static|final|const|late|external|covariant|var)\s+)*)"
    rf"(?P<type>(?:{_IDENT}(?:\.{_IDENT})*(?:<.*>)?\??\s+)?"
    r"(?:Function\s*(?:<[^()]*>)?\s*\([^()]*\)\??\s+)?)"
    rf"(?P<name>{_IDENT})\s*[;,]?$"
)
LEADING_ANNOTATION_PATTERN = re.compile(rf"^(?:@{_IDENT}(?:\.{_IDENT})*(?:\([^()]*\))?\s*)+")
DECLARATION_HEAD_PATTERN = re.compile(r"=>|\{|(?<![=!<>])=(?![=>])")
VERSION_PATTERN = re.compile(r"deprecated\s+(?:after|in|since)\s+v?(\d+\.\d+[\w.+-]*)", re.IGNORECASE)

# Identifiers that look like calls but are control flow
CONTROL_KEYWORDS = frozenset({
    "if", "for", "while", "switch", "return", "throw", "catch", "assert", "super",
})

# Words that can never be the type of a field declaration
_NON_TYPE_WORDS = CONTROL_KEYWORDS | frozenset({
    "else", "case", "do", "await", "yield", "import", "export", "part", "library",
})

_REPLACEMENT_TARGET = rf"[`\[]?({_IDENT}(?:\.{_IDENT})*(?:\([^)]*\))?)"

REPLACEMENT_PATTERNS: Tuple[re.Pattern, ...] = (
    re.compile(rf"\buse\s+(?!the\b){_REPLACEMENT_TARGET}(?:[`\]])?(?:\s+instead)?", re.IGNORECASE),
    re.compile(rf"\breplaced\s+(?:by|with)\s+(?:the\s+)?{_REPLACEMENT_TARGET}", re.IGNORECASE),
    re.compile(
        rf"\buse\s+the\s+{_REPLACEMENT_TARGET}[`\]]?\s+"
        r"(?:method|property|getter|setter|constructor|class|widget|parameter)",
        re.IGNORECASE,
    ),
    re.compile(rf"\bprefer\s+(?:using\s+)?{_REPLACEMENT_TARGET}", re.IGNORECASE),
)

# Captures that are ordinary English rather than API names
_REPLACEMENT_STOPWORDS = frozenset({
    "a", "an", "and", "any", "it", "of", "or", "the", "this", "that", "these",
    "those", "in", "is", "to", "with", "instead",
})

# Ordered lookup: lower-cased API name substring -> replacement advice
KNOWN_REPLACEMENTS: Tuple[Tuple[str, str], ...] = (
    ("withopacity", "withValues(alpha: value)"),
    ("textscalefactor", "textScaler"),
    ("onbackground", "onSurface"),
    ("background", "surface"),
    ("accentcolor", "colorScheme.secondary"),
    ("primaryvariant", "primaryContainer"),
    ("secondaryvariant", "secondaryContainer"),
    ("willpopscope", "PopScope"),
    ("materialstate", "WidgetState"),
    ("showsnackbar", "ScaffoldMessenger.of(context).showSnackBar"),
    ("button", "Material 3 buttons (ElevatedButton, FilledButton, TextButton or OutlinedButton)"),
)

# Ordered lookup: description keyword -> generic guidance
DESCRIPTION_GUIDANCE: Tuple[Tuple[str, str], ...] = (
    ("will lead to bugs", "Remove usages of this API; relying on it will lead to bugs"),
    ("performance", "Switch to the more performant alternative described in the deprecation notice"),
    ("accessibility", "Switch to the accessibility-aware alternative described in the deprecation notice"),
    ("no longer needed", "Remove this usage; it is no longer needed"),
    ("no longer used", "Remove this usage; it is no longer used by the framework"),
    ("has no effect", "Remove this usage; it has no effect"),
    ("material 3", "Migrate to the Material 3 equivalent"),
)


@dataclass
class _Marker:
    description: str
    end_line: int
    end_column: int
    remainder: str


def _is_comment(line: str) -> bool:
    return line.startswith(("//", "/*", "*"))


def _strip_annotations(line: str) -> str:
    return LEADING_ANNOTATION_PATTERN.sub("", line).strip()


def _declaration_head(line: str) -> str:
    return DECLARATION_HEAD_PATTERN.split(line, maxsplit=1)[0].strip()


def infer_replacement(api: str, description: str) -> str:
    """Guess what should be used instead of a deprecated API."""
    for pattern in REPLACEMENT_PATTERNS:
        match = pattern.search(description)
        if not match:
            continue
        candidate = match.group(1).rstrip(".")
        if candidate and candidate.lower() not in _REPLACEMENT_STOPWORDS:
            return candidate

    api_lower = api.lower()
    for needle, replacement in KNOWN_REPLACEMENTS:
        if needle in api_lower:
            return replacement

    description_lower = description.lower()
    for keyword, guidance in DESCRIPTION_GUIDANCE:
        if keyword in description_lower:
            return guidance

    return ""


def extract_version(description: str) -> str:
    """Pull the "deprecated after vX.Y.Z" tag out of a description, if any."""
    match = VERSION_PATTERN.search(description)
    if not match:
        return ""
    return match.group(1).rstrip(".")


class AnnotationScanner:
    """Turns the lines of one Dart document into deprecation records."""

    def __init__(self, context_window: int = CONTEXT_WINDOW, forward_window: int = FORWARD_WINDOW):
        self.context_window = context_window
        self.forward_window = forward_window
        self._rules: Tuple[Tuple[str, Callable[[str], Optional[str]], bool], ...] = (
            ("type", self._match_type, False),
            ("constructor", self._match_qualified_constructor, False),
            ("getter", self._match_getter, True),
            ("setter", self._match_setter, True),
            ("method", self._match_method, True),
            ("field", self._match_field, True),
        )

    def scan(self, document: Iterable[str]) -> List[Deprecation]:
        """Scan a document and return every deprecation that could be resolved."""
        lines = [line.strip() for line in document]
        deprecations: List[Deprecation] = []

        index = 0
        column = 0
        while index < len(lines):
            found = MARKER_PATTERN.search(lines[index], column)
            if not found or _is_comment(lines[index]):
                index += 1
                column = 0
                continue

            marker = self._read_marker(lines, index, found.end())
            if marker is None:
                column = found.end()
                continue

            context = self._find_context(lines, index, lines[index][:found.start()])
            symbol = self._resolve_symbol(lines, marker, context)
            if symbol is not None:
                deprecations.append(Deprecation(
                    api=symbol,
                    replacement=infer_replacement(symbol, marker.description),
                    version=extract_version(marker.description),
                    description=marker.description,
                ))
            else:
                logger.debug("unresolved_marker", line=index + 1, description=marker.description[:80])

            # Several markers may share a line; resume right after this one
            index = marker.end_line
            column = marker.end_column

        return deprecations

    def _read_marker(self, lines: Sequence[str], index: int, offset: int) -> Optional[_Marker]:
        """Read the string literals inside the annotation's parentheses.

        Returns None when the annotation carries no string literal or does not
        close within the forward window.
        """
        parts: List[str] = []
        buffer: List[str] = []
        quote: Optional[str] = None
        depth = 1

        last = min(len(lines), index + self.forward_window + 1)
        for line_no in range(index, last):
            line = lines[line_no]
            pos = offset if line_no == index else 0
            while pos < len(line):
                char = line[pos]
                if quote is not None:
                    if char == "\\" and pos + 1 < len(line):
                        buffer.append(line[pos + 1])
                        pos += 2
                        continue
                    if line.startswith(quote, pos):
                        parts.append("".join(buffer))
                        buffer = []
                        pos += len(quote)
                        quote = None
                        continue
                    buffer.append(char)
                elif line.startswith(("'''", '"""'), pos):
                    quote = line[pos:pos + 3]
                    pos += 3
                    continue
                elif char in "'\"":
                    quote = char
                elif char == "(":
                    depth += 1
                elif char == ")":
                    depth -= 1
                    if depth == 0:
                        if not parts:
                            return None
                        return _Marker(
                            description="".join(parts).strip(),
                            end_line=line_no,
                            end_column=pos + 1,
                            remainder=line[pos + 1:].strip(),
                        )
                pos += 1
            if quote is not None and len(quote) == 3:
                buffer.append(" ")

        return None

    def _find_context(self, lines: Sequence[str], index: int, prefix: str) -> Optional[str]:
        """Find the nearest enclosing type declaration above the marker."""
        if prefix and not _is_comment(prefix):
            match = TYPE_DECL_PATTERN.search(prefix)
            if match:
                return match.group(1)

        first = max(0, index - self.context_window)
        for line_no in range(index - 1, first - 1, -1):
            line = lines[line_no]
            if not line or _is_comment(line):
                continue
            match = TYPE_DECL_PATTERN.search(line)
            if match:
                return match.group(1)
        return None

    def _resolve_symbol(self, lines: Sequence[str], marker: _Marker, context: Optional[str]) -> Optional[str]:
        """Find the declaration following the marker and name it."""
        remainder = marker.remainder
        next_marker = MARKER_PATTERN.search(remainder)
        if next_marker:
            remainder = remainder[:next_marker.start()].strip()
        candidates = [remainder] if remainder else []
        last = min(len(lines), marker.end_line + self.forward_window + 1)
        candidates.extend(lines[marker.end_line + 1:last])

        for raw in candidates:
            if not raw or _is_comment(raw) or MARKER_PATTERN.search(raw):
                continue
            line = _strip_annotations(raw)
            if not line:
                continue

            for _name, rule, qualify in self._rules:
                identifier = rule(line)
                if identifier is None:
                    continue
                if qualify and context and identifier != context:
                    return f"{context}.{identifier}"
                return identifier

        return None

    @staticmethod
    def _match_type(line: str) -> Optional[str]:
        match = TYPE_DECL_PATTERN.search(line)
        return match.group(1) if match else None

    @staticmethod
    def _match_qualified_constructor(line: str) -> Optional[str]:
        match = QUALIFIED_CTOR_PATTERN.search(_declaration_head(line))
        return f"{match.group(1)}.{match.group(2)}" if match else None

    @staticmethod
    def _match_getter(line: str) -> Optional[str]:
        match = GETTER_PATTERN.search(_declaration_head(line))
        return match.group(1) if match else None

    @staticmethod
    def _match_setter(line: str) -> Optional[str]:
        match = SETTER_PATTERN.search(_declaration_head(line))
        return match.group(1) if match else None

    @staticmethod
    def _match_method(line: str) -> Optional[str]:
        for match in METHOD_PATTERN.finditer(_declaration_head(line)):
            name = match.group(1)
            if name in CONTROL_KEYWORDS:
                return None
            # Part of a function type, not the declared name
            if name == "Function":
                continue
            return name
        return None

    @staticmethod
    def _match_field(line: str) -> Optional[str]:
        match = FIELD_PATTERN.match(_declaration_head(line))
        if not match:
            return None
        declared_type = (match.group("type") or "").strip()
        if not (match.group("mods") or declared_type):
            return None
        if declared_type in _NON_TYPE_WORDS or match.group("name") in _NON_TYPE_WORDS:
            return None
        return match.group("name")


def scan_document(lines: Iterable[str]) -> List[Deprecation]:
    """Scan a document with the default windows."""
    return AnnotationScanner().scan(lines)
