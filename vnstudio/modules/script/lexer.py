from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from enum import Enum


class TokenKind(str, Enum):
    GAME = "GAME"
    CHARACTER = "CHARACTER"
    FLAG = "FLAG"
    SCENE = "SCENE"
    BACKGROUND = "BACKGROUND"
    SHOW = "SHOW"
    AT = "AT"
    DIALOGUE = "DIALOGUE"
    CHOICE = "CHOICE"
    SET = "SET"
    K_TRUE = "K_TRUE"
    K_FALSE = "K_FALSE"
    K_LEFT = "K_LEFT"
    K_RIGHT = "K_RIGHT"
    K_CENTER = "K_CENTER"
    SPRITE = "SPRITE"
    MAIN = "MAIN"
    IF = "IF"
    ELSE = "ELSE"
    GOTO = "GOTO"
    PLAY_MUSIC = "PLAY_MUSIC"
    PLAY_SFX = "PLAY_SFX"
    STOP_MUSIC = "STOP_MUSIC"
    PLAY_AMBIENT = "PLAY_AMBIENT"
    SET_VOLUME = "SET_VOLUME"
    LBRACE = "LBRACE"
    RBRACE = "RBRACE"
    LPAREN = "LPAREN"
    RPAREN = "RPAREN"
    COLON = "COLON"
    SEMICOLON = "SEMICOLON"
    EQUALS = "EQUALS"
    COMMA = "COMMA"
    ARROW = "ARROW"
    IDENTIFIER = "IDENTIFIER"
    STRING = "STRING"
    NUMBER = "NUMBER"
    UNKNOWN = "UNKNOWN"
    END_OF_FILE = "END_OF_FILE"


KEYWORDS: dict[str, TokenKind] = {
    "game": TokenKind.GAME,
    "character": TokenKind.CHARACTER,
    "flag": TokenKind.FLAG,
    "scene": TokenKind.SCENE,
    "background": TokenKind.BACKGROUND,
    "show": TokenKind.SHOW,
    "at": TokenKind.AT,
    "dialogue": TokenKind.DIALOGUE,
    "choice": TokenKind.CHOICE,
    "set": TokenKind.SET,
    "true": TokenKind.K_TRUE,
    "false": TokenKind.K_FALSE,
    "left": TokenKind.K_LEFT,
    "right": TokenKind.K_RIGHT,
    "center": TokenKind.K_CENTER,
    "sprite": TokenKind.SPRITE,
    "main": TokenKind.MAIN,
    "if": TokenKind.IF,
    "else": TokenKind.ELSE,
    "goto": TokenKind.GOTO,
    "play_music": TokenKind.PLAY_MUSIC,
    "play_sfx": TokenKind.PLAY_SFX,
    "stop_music": TokenKind.STOP_MUSIC,
    "play_ambient": TokenKind.PLAY_AMBIENT,
    "set_volume": TokenKind.SET_VOLUME,
}

_PUNCTUATION: dict[str, TokenKind] = {
    "{": TokenKind.LBRACE,
    "}": TokenKind.RBRACE,
    "(": TokenKind.LPAREN,
    ")": TokenKind.RPAREN,
    ":": TokenKind.COLON,
    ";": TokenKind.SEMICOLON,
    "=": TokenKind.EQUALS,
    ",": TokenKind.COMMA,
}

COMMENT_MARKER = "#"


@dataclass(frozen=True, slots=True)
class Token:
    kind: TokenKind
    value: str
    line: int
    terminated: bool = True


def _is_ident_start(char: str) -> bool:
    return char == "_" or ("a" <= char <= "z") or ("A" <= char <= "Z")


def _is_ident_part(char: str) -> bool:
    return _is_ident_start(char) or _is_digit(char)


def _is_digit(char: str) -> bool:
    return "0" <= char <= "9"


class Lexer:
    """Pull-based tokenizer. Never raises; unknown characters become UNKNOWN tokens."""

    def __init__(self, source: str) -> None:
        self._source = source or ""
        self._pos = 0
        self.line = 1

    def __iter__(self) -> Iterator[Token]:
        while True:
            token = self.next_token()
            yield token
            if token.kind == TokenKind.END_OF_FILE:
                return

    def _at_end(self) -> bool:
        return self._pos >= len(self._source)

    def _peek(self, offset: int = 0) -> str:
        index = self._pos + offset
        if index >= len(self._source):
            return "\0"
        return self._source[index]

    def _skip_whitespace_and_comments(self) -> None:
        while not self._at_end():
            char = self._source[self._pos]
            if char.isspace():
                if char == "\n":
                    self.line += 1
                self._pos += 1
            elif char == COMMENT_MARKER:
                while not self._at_end() and self._source[self._pos] != "\n":
                    self._pos += 1
            else:
                return

    def next_token(self) -> Token:
        self._skip_whitespace_and_comments()
        if self._at_end():
            return Token(TokenKind.END_OF_FILE, "", self.line)

        char = self._source[self._pos]
        punctuation = _PUNCTUATION.get(char)
        if punctuation is not None:
            self._pos += 1
            return Token(punctuation, char, self.line)
        if char == '"':
            return self._read_string()
        if char == "-" and self._peek(1) == ">":
            self._pos += 2
            return Token(TokenKind.ARROW, "->", self.line)
        if _is_digit(char):
            return self._read_number()
        if _is_ident_start(char):
            return self._read_identifier()

        self._pos += 1
        return Token(TokenKind.UNKNOWN, char, self.line)

    def _read_string(self) -> Token:
        line = self.line
        self._pos += 1
        start = self._pos
        while not self._at_end() and self._source[self._pos] != '"':
            if self._source[self._pos] == "\n":
                self.line += 1
            self._pos += 1
        value = self._source[start:self._pos]
        terminated = not self._at_end()
        if terminated:
            self._pos += 1
        return Token(TokenKind.STRING, value, line, terminated=terminated)

    def _read_identifier(self) -> Token:
        start = self._pos
        while not self._at_end() and _is_ident_part(self._source[self._pos]):
            self._pos += 1
        value = self._source[start:self._pos]
        return Token(KEYWORDS.get(value, TokenKind.IDENTIFIER), value, self.line)

    def _read_number(self) -> Token:
        start = self._pos
        has_decimal = False
        while not self._at_end():
            char = self._source[self._pos]
            if _is_digit(char):
                self._pos += 1
            elif char == "." and not has_decimal:
                has_decimal = True
                self._pos += 1
            else:
                break
        return Token(TokenKind.NUMBER, self._source[start:self._pos], self.line)


def tokenize(source: str) -> list[Token]:
    return list(Lexer(source))
