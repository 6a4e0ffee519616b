"""
Replacement template expansion.
Tokens: $& (whole match), $1..$99 (groups), $$ (literal $), $` and $' (line text
before/after the match). Only expanded for pattern searches.
"""

import re

_GROUP_REF_RE = re.compile(r'\$(\d+)')
_BARE_DOLLAR_RE = re.compile(r"\$(?![&'`$]|\d)")


def _group_reference(template, pos, group_count):
    """Parse a $N / $NN reference starting at template[pos] == '$'.

    Returns (group_number, length) or (None, 0) when there is no digit.
    Two digits are only taken when that group exists, so '$10' with one group
    reads as group 1 followed by a literal '0'.
    """
    first = template[pos + 1:pos + 2]
    if not first.isdigit():
        return None, 0
    second = template[pos + 2:pos + 3]
    if second.isdigit():
        two_digit = int(first + second)
        if 1 <= two_digit <= group_count:
            return two_digit, 3
    return int(first), 2


def expand_template(template, match, line, use_pattern):
    """Expand a replacement template against one match.

    Args:
        template: Replacement template
        match: re.Match for the occurrence being replaced
        line: Text the match was found in (a line or a whole document)
        use_pattern: Whether the originating search used pattern mode

    Returns:
        str: The text to insert
    """
    if not use_pattern:
        return template

    out = []
    group_count = match.re.groups
    i = 0
    n = len(template)
    while i < n:
        ch = template[i]
        if ch == '\\' and i + 1 < n and template[i + 1] in 'nt':
            out.append('\n' if template[i + 1] == 'n' else '\t')
            i += 2
            continue
        if ch != '$' or i + 1 >= n:
            out.append(ch)
            i += 1
            continue

        nxt = template[i + 1]
        if nxt == '$':
            out.append('$')
            i += 2
        elif nxt == '&':
            out.append(match.group(0))
            i += 2
        elif nxt == '`':
            # Bounded to the line the match starts on, even for whole-document scans
            out.append(line[:match.start()].rsplit('\n', 1)[-1])
            i += 2
        elif nxt == "'":
            out.append(line[match.end():].split('\n', 1)[0])
            i += 2
        else:
            number, length = _group_reference(template, i, group_count)
            if number is None:
                out.append('$')
                i += 1
            elif number == 0:
                # $0 is not a token
                out.append(template[i:i + 2])
                i += 2
            else:
                if number <= group_count:
                    out.append(match.group(number) or '')
                i += length
    return ''.join(out)


def validate_template(template, options):
    """Return warnings about a replacement template.

    Args:
        template: Replacement template
        options: MatchOptions of the search it will be applied to

    Returns:
        list[str]: Warning messages, empty when nothing looks wrong
    """
    warnings = []
    if not options.use_pattern:
        return warnings

    # Escaped dollars are not tokens
    unescaped = template.replace('$$', '')
    refs = [int(n) for n in _GROUP_REF_RE.findall(unescaped)]
    if refs and max(refs) > 9:
        warnings.append(
            f"High capture group reference (${max(refs)}) - ensure your pattern has enough groups"
        )
    if _BARE_DOLLAR_RE.search(unescaped):
        warnings.append("Unescaped $ characters found - use $$ for a literal dollar sign")
    return warnings
