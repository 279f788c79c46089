from vnstudio.modules.script.errors import ScriptParseError, ScriptValidationError
from vnstudio.modules.script.lexer import Lexer, Token, TokenKind, tokenize
from vnstudio.modules.script.parser import Parser, parse_script
from vnstudio.modules.script.validation import ValidationReport, ensure_valid, validate_program

__all__ = [
    "Lexer",
    "Parser",
    "ScriptParseError",
    "ScriptValidationError",
    "Token",
    "TokenKind",
    "ValidationReport",
    "ensure_valid",
    "parse_script",
    "tokenize",
    "validate_program",
]
