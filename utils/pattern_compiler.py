"""
Turns a raw query and match options into a compiled matcher.
Handles literal escaping, whole-word wrapping and invalid patterns.
"""

import logging
import re
from functools import lru_cache

from models.errors import InvalidPattern

logger = logging.getLogger(__name__)

# Pattern already carries its own anchors, boundaries or lookarounds
_BOUNDED_RE = re.compile(r'(^\\b|\\b$|\^|\$|\(\?<!|\(\?=|\(\?!|\(\?<=)')

# Patterns that match every line as a whole
_MATCH_ANYTHING = {'.', '.*', '.+', '^.*$', '^.+$', '^.*', '^.+'}


def looks_bounded(pattern):
    """Check whether a pattern is already anchored or word-bounded."""
    return bool(_BOUNDED_RE.search(pattern))


class Matcher:
    """Compiled, find-all matcher for one query and one set of options"""

    def __init__(self, query, options, regex):
        self.query = query
        self.options = options
        self.regex = regex

    @property
    def source(self):
        return self.regex.pattern

    @property
    def uses_regex_scan(self):
        """True when lines must be scanned with the regex instead of str.find."""
        return self.options.use_pattern or self.options.whole_word

    @property
    def spans_lines(self):
        return self.options.use_pattern and self.options.multiline

    @property
    def is_match_anything(self):
        return self.options.use_pattern and self.source in _MATCH_ANYTHING

    def finditer(self, text):
        return self.regex.finditer(text)

    def __repr__(self):
        return f"Matcher({self.source!r}, flags={self.regex.flags})"


def build_pattern_source(query, options):
    """Build the pattern source for a query without compiling it.

    Args:
        query: Raw user query
        options: MatchOptions

    Returns:
        str: Pattern source, escaped and wrapped as required
    """
    pattern = query or ''
    if not options.use_pattern:
        pattern = re.escape(pattern)

    # An escaped literal can never carry anchors of its own
    bounded = options.use_pattern and looks_bounded(pattern)
    if options.whole_word and not bounded:
        # Non-capturing group keeps the user's group numbering intact
        pattern = rf'\b(?:{pattern})\b' if options.use_pattern else rf'\b{pattern}\b'
    return pattern


@lru_cache(maxsize=64)
def compile_pattern(query, options):
    """Compile a query into a Matcher.

    Args:
        query: Raw user query
        options: Frozen MatchOptions

    Returns:
        Matcher

    Raises:
        InvalidPattern: If pattern mode is on and the query is not a valid pattern
    """
    source = build_pattern_source(query, options)
    flags = 0 if options.case_sensitive else re.IGNORECASE
    if options.use_pattern and options.multiline:
        flags |= re.MULTILINE

    try:
        regex = re.compile(source, flags)
    except re.error as e:
        logger.debug("Rejected pattern %r: %s", query, e)
        raise InvalidPattern(query, str(e)) from e
    return Matcher(query, options, regex)
