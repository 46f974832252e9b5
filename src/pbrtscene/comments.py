"""
Comment stripping for scene-description text.

A comment runs from '#' to the end of the line. A '#' inside a string
literal is text, not a comment; string literals are copied verbatim.
"""


def strip_comments(text: str) -> str:
    """
    Remove every comment from ``text``.

    The newline ending a comment is kept so that line numbers of the
    remaining text are unchanged. Stripping is idempotent: stripping an
    already stripped text returns it unchanged.

    Example:
        >>> strip_comments('"aaa" #1234\\n aaa')
        '"aaa" \\n aaa'
    """
    out = []
    i = 0
    n = len(text)
    while i < n:
        ch = text[i]
        if ch == '"':
            # copy the literal through its closing quote, honouring \"
            j = i + 1
            while j < n and text[j] != '"':
                if text[j] == '\\' and j + 1 < n:
                    j += 1
                j += 1
            out.append(text[i:j + 1])
            i = j + 1
        elif ch == '#':
            j = text.find('\n', i)
            if j < 0:
                break
            i = j
        else:
            j = i
            while j < n and text[j] not in '"#':
                j += 1
            out.append(text[i:j])
            i = j
    return ''.join(out)
