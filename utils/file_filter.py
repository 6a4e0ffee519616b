"""
Include/exclude filtering of document ids (VSCode-style "files to include").
"""

from fnmatch import fnmatchcase


def normalize_extension(ext):
    ext = ext.strip().lower()
    if ext and not ext.startswith('.'):
        ext = '.' + ext
    return ext


def _split_patterns(patterns):
    """Accept a list or a comma separated string of patterns."""
    if not patterns:
        return []
    if isinstance(patterns, str):
        patterns = patterns.split(',')
    return [p.strip() for p in patterns if p and p.strip()]


def matches_pattern(document_id, pattern):
    """Check one document id against one glob or folder pattern.

    'Notes/' matches everything under Notes, '*.md' matches by name anywhere,
    'Notes/*.md' matches against the full id.
    """
    if pattern.endswith('/'):
        return document_id.startswith(pattern) or f'/{pattern}' in f'/{document_id}'
    if '/' not in pattern:
        name = document_id.rsplit('/', 1)[-1]
        return fnmatchcase(name, pattern) or fnmatchcase(document_id, pattern)
    return fnmatchcase(document_id, pattern)


class FileFilter:
    """Decides which documents a search looks at"""

    def __init__(self, include_patterns=None, exclude_patterns=None, extensions=None):
        self.include_patterns = _split_patterns(include_patterns)
        self.exclude_patterns = _split_patterns(exclude_patterns)
        self.extensions = [normalize_extension(e) for e in _split_patterns(extensions)]

    @property
    def is_empty(self):
        return not (self.include_patterns or self.exclude_patterns or self.extensions)

    def accepts(self, document_id):
        if self.extensions and not document_id.lower().endswith(tuple(self.extensions)):
            return False
        if self.include_patterns and not any(
                matches_pattern(document_id, p) for p in self.include_patterns):
            return False
        return not any(matches_pattern(document_id, p) for p in self.exclude_patterns)

    def apply(self, document_ids):
        """Filter a list of document ids, keeping their order."""
        if self.is_empty:
            return list(document_ids)
        return [d for d in document_ids if self.accepts(d)]
