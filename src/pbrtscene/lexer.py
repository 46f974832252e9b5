"""
Lexer for PBRT scene-description text.

Converts source text into a flat stream of tokens for the parser.
Supports:
- Comments (# to end of line)
- String literals ("...", with \\" for an embedded quote)
- Numbers (integers, decimals, scientific notation)
- Bare words (directive names, true/false, ActiveTransform keywords)
- List brackets [ ]

Number-like words that do not parse as a number are returned as
MALFORMED_NUMBER tokens rather than rejected, so that the parameter
parser can decide how to recover.
"""

from typing import List, Optional, Iterator
from .tokens import Token, TokenType, SourceLocation, SourceSpan
from .errors import error_unexpected_character, error_unterminated_string

# Characters that end a bare word or number
_DELIMITERS = ' \t\r\n\f\v[]"#'


class Lexer:
    """
    Tokenizer for scene-description text.

    Usage:
        lexer = Lexer(source_text, "scene.pbrt")
        tokens = lexer.tokenize()

    Or for streaming:
        for token in Lexer(source_text):
            process(token)
    """

    def __init__(self, source: str, filename: Optional[str] = None):
        self.source = source
        self.filename = filename
        self.pos = 0            # Current position in source
        self.line = 1           # Current line (1-indexed)
        self.column = 1         # Current column (1-indexed)
        self._lines: Optional[List[str]] = None  # Cached line list

    @property
    def lines(self) -> List[str]:
        """Lazy-load line list for error reporting."""
        if self._lines is None:
            self._lines = self.source.splitlines()
        return self._lines

    def get_source_line(self, line_num: int) -> Optional[str]:
        """Get a specific line of source (1-indexed)."""
        if 1 <= line_num <= len(self.lines):
            return self.lines[line_num - 1]
        return None

    def _location(self) -> SourceLocation:
        return SourceLocation(self.line, self.column, self.pos, self.filename)

    def _span(self, start: SourceLocation) -> SourceSpan:
        return SourceSpan(start, self._location())

    def _peek(self, offset: int = 0) -> str:
        idx = self.pos + offset
        if idx >= len(self.source):
            return '\0'
        return self.source[idx]

    def _advance(self) -> str:
        if self.pos >= len(self.source):
            return '\0'
        ch = self.source[self.pos]
        self.pos += 1
        if ch == '\n':
            self.line += 1
            self.column = 1
        else:
            self.column += 1
        return ch

    def _is_at_end(self) -> bool:
        return self.pos >= len(self.source)

    def _skip_whitespace_and_comments(self) -> None:
        while not self._is_at_end():
            ch = self._peek()
            if ch.isspace():
                self._advance()
            elif ch == '#':
                while self._peek() != '\n' and not self._is_at_end():
                    self._advance()
            else:
                break

    def _make_token(self, token_type: TokenType, value, start: SourceLocation,
                    lexeme: Optional[str] = None) -> Token:
        span = self._span(start)
        if lexeme is None:
            lexeme = self.source[start.offset:self.pos]
        return Token(token_type, value, lexeme, span)

    def _scan_string(self) -> Token:
        """Scan a string literal. Only \\" is treated as an escape."""
        start = self._location()
        self._advance()  # opening quote
        chars = []
        while not self._is_at_end() and self._peek() != '"':
            if self._peek() == '\\' and self._peek(1) == '"':
                self._advance()
            chars.append(self._advance())

        if self._is_at_end():
            raise error_unterminated_string(self._span(start), self.get_source_line(start.line))

        self._advance()  # closing quote
        return self._make_token(TokenType.STRING, ''.join(chars), start)

    def _scan_word(self) -> None:
        while not self._is_at_end() and self._peek() not in _DELIMITERS:
            self._advance()

    def _scan_number(self) -> Token:
        """Scan a number, or a malformed number-like word."""
        start = self._location()
        self._scan_word()
        lexeme = self.source[start.offset:self.pos]
        if '_' not in lexeme:
            try:
                value = float(lexeme)
            except ValueError:
                pass
            else:
                return self._make_token(TokenType.NUMBER, value, start, lexeme)
        return self._make_token(TokenType.MALFORMED_NUMBER, lexeme, start, lexeme)

    def _scan_identifier(self) -> Token:
        start = self._location()
        self._scan_word()
        lexeme = self.source[start.offset:self.pos]
        return self._make_token(TokenType.IDENTIFIER, lexeme, start, lexeme)

    def _scan_token(self) -> Token:
        self._skip_whitespace_and_comments()
        start = self._location()

        if self._is_at_end():
            return self._make_token(TokenType.EOF, None, start, "")

        ch = self._peek()
        if ch == '"':
            return self._scan_string()
        if ch == '[':
            self._advance()
            return self._make_token(TokenType.LBRACKET, ch, start)
        if ch == ']':
            self._advance()
            return self._make_token(TokenType.RBRACKET, ch, start)
        if ch.isdigit() or ch in '+-.':
            return self._scan_number()
        if ch.isalpha() or ch == '_':
            return self._scan_identifier()

        self._advance()
        raise error_unexpected_character(ch, self._span(start), self.get_source_line(start.line))

    def tokenize(self) -> List[Token]:
        """Tokenize the entire source, returning a list of tokens."""
        tokens = []
        while True:
            token = self._scan_token()
            tokens.append(token)
            if token.type == TokenType.EOF:
                break
        return tokens

    def __iter__(self) -> Iterator[Token]:
        while True:
            token = self._scan_token()
            yield token
            if token.type == TokenType.EOF:
                break


def tokenize(source: str, filename: Optional[str] = None) -> List[Token]:
    """
    Convenience function to tokenize scene text.

    Args:
        source: The scene text to tokenize
        filename: Optional filename for error messages

    Returns:
        List of tokens, ending with an EOF token

    Raises:
        LexerError: If tokenization fails
    """
    return Lexer(source, filename).tokenize()
