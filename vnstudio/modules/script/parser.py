from __future__ import annotations

from vnstudio.modules.script.ast import (
    BackgroundChange,
    CharacterDeclaration,
    Choice,
    ChoiceOption,
    Declaration,
    Dialogue,
    Event,
    FlagDeclaration,
    Goto,
    IfEvent,
    IfStatement,
    MainBlock,
    MainStatement,
    PlayAmbient,
    PlayMusic,
    PlaySfx,
    Program,
    Scene,
    SceneCall,
    SetFlag,
    SetVolume,
    ShowCharacter,
    StopMusic,
)
from vnstudio.modules.script.errors import ScriptParseError
from vnstudio.modules.script.lexer import Lexer, Token, TokenKind

POSITION_KINDS = frozenset({TokenKind.K_LEFT, TokenKind.K_RIGHT, TokenKind.K_CENTER})
EVENT_START_KINDS = frozenset(
    {
        TokenKind.SHOW,
        TokenKind.DIALOGUE,
        TokenKind.CHOICE,
        TokenKind.SET,
        TokenKind.IF,
        TokenKind.GOTO,
        TokenKind.PLAY_MUSIC,
        TokenKind.PLAY_SFX,
        TokenKind.STOP_MUSIC,
        TokenKind.PLAY_AMBIENT,
        TokenKind.SET_VOLUME,
        TokenKind.BACKGROUND,
    }
)


class Parser:
    """Recursive-descent parser with one token of lookahead and no error recovery."""

    def __init__(self, lexer: Lexer) -> None:
        self._lexer = lexer
        self._current: Token = lexer.next_token()
        self._event_parsers = {
            TokenKind.SHOW: self._parse_show_character,
            TokenKind.DIALOGUE: self._parse_dialogue,
            TokenKind.SET: self._parse_set_flag,
            TokenKind.GOTO: self._parse_goto,
            TokenKind.IF: self._parse_if_event,
            TokenKind.CHOICE: self._parse_choice,
            TokenKind.PLAY_MUSIC: self._parse_play_music,
            TokenKind.PLAY_SFX: self._parse_play_sfx,
            TokenKind.STOP_MUSIC: self._parse_stop_music,
            TokenKind.PLAY_AMBIENT: self._parse_play_ambient,
            TokenKind.SET_VOLUME: self._parse_set_volume,
            TokenKind.BACKGROUND: self._parse_background_event,
        }

    def _fail(self, expected: str) -> ScriptParseError:
        token = self._current
        return ScriptParseError(
            line=token.line,
            expected=expected,
            found=token.value,
            found_kind=token.kind.value,
        )

    def _check(self, kind: TokenKind) -> bool:
        return self._current.kind == kind

    def _consume(self, kind: TokenKind) -> Token:
        token = self._current
        if token.kind != kind:
            raise self._fail(kind.value)
        if token.kind == TokenKind.STRING and not token.terminated:
            raise self._fail("closing '\"' for string literal")
        self._current = self._lexer.next_token()
        return token

    def _consume_bool(self) -> bool:
        if self._check(TokenKind.K_TRUE):
            self._consume(TokenKind.K_TRUE)
            return True
        if self._check(TokenKind.K_FALSE):
            self._consume(TokenKind.K_FALSE)
            return False
        raise self._fail("K_TRUE or K_FALSE")

    def parse(self) -> Program:
        self._consume(TokenKind.GAME)
        name = self._consume(TokenKind.STRING).value
        self._consume(TokenKind.LBRACE)
        declarations = self._parse_declarations()
        scenes: list[Scene] = []
        while self._check(TokenKind.SCENE):
            scenes.append(self._parse_scene())
        main = self._parse_main() if self._check(TokenKind.MAIN) else None
        self._consume(TokenKind.RBRACE)
        self._consume(TokenKind.END_OF_FILE)
        return Program(name=name, declarations=tuple(declarations), scenes=tuple(scenes), main=main)

    def _parse_declarations(self) -> list[Declaration]:
        declarations: list[Declaration] = []
        while True:
            if self._check(TokenKind.CHARACTER):
                declarations.append(self._parse_character_declaration())
            elif self._check(TokenKind.FLAG):
                declarations.append(self._parse_flag_declaration())
            else:
                return declarations

    def _parse_character_declaration(self) -> CharacterDeclaration:
        self._consume(TokenKind.CHARACTER)
        character_id = self._consume(TokenKind.IDENTIFIER).value
        display_name = self._consume(TokenKind.STRING).value
        self._consume(TokenKind.LPAREN)
        self._consume(TokenKind.SPRITE)
        self._consume(TokenKind.COLON)
        sprite = self._consume(TokenKind.STRING).value
        self._consume(TokenKind.RPAREN)
        return CharacterDeclaration(id=character_id, display_name=display_name, sprite=sprite)

    def _parse_flag_declaration(self) -> FlagDeclaration:
        self._consume(TokenKind.FLAG)
        flag_id = self._consume(TokenKind.IDENTIFIER).value
        self._consume(TokenKind.COLON)
        return FlagDeclaration(id=flag_id, initial_value=self._consume_bool())

    def _parse_scene(self) -> Scene:
        self._consume(TokenKind.SCENE)
        scene_id = self._consume(TokenKind.IDENTIFIER).value
        self._consume(TokenKind.LBRACE)
        background = None
        if self._check(TokenKind.BACKGROUND):
            self._consume(TokenKind.BACKGROUND)
            background = self._consume(TokenKind.STRING).value
        events = self._parse_event_list()
        self._consume(TokenKind.RBRACE)
        return Scene(id=scene_id, background=background, events=events)

    def _parse_event_list(self) -> tuple[Event, ...]:
        events: list[Event] = []
        while self._current.kind in EVENT_START_KINDS:
            events.append(self._event_parsers[self._current.kind]())
        return tuple(events)

    def _parse_block(self) -> tuple[Event, ...]:
        self._consume(TokenKind.LBRACE)
        events = self._parse_event_list()
        self._consume(TokenKind.RBRACE)
        return events

    def _parse_show_character(self) -> ShowCharacter:
        self._consume(TokenKind.SHOW)
        character_id = self._consume(TokenKind.IDENTIFIER).value
        self._consume(TokenKind.AT)
        if self._current.kind not in POSITION_KINDS:
            raise self._fail("position (left, right, center)")
        position = self._consume(self._current.kind).value
        return ShowCharacter(character_id=character_id, position=position)

    def _parse_dialogue(self) -> Dialogue:
        self._consume(TokenKind.DIALOGUE)
        character_id = self._consume(TokenKind.IDENTIFIER).value
        text = self._consume(TokenKind.STRING).value
        return Dialogue(character_id=character_id, text=text)

    def _parse_set_flag(self) -> SetFlag:
        self._consume(TokenKind.SET)
        self._consume(TokenKind.FLAG)
        flag_id = self._consume(TokenKind.IDENTIFIER).value
        self._consume(TokenKind.EQUALS)
        return SetFlag(flag_id=flag_id, value=self._consume_bool())

    def _parse_goto(self) -> Goto:
        self._consume(TokenKind.GOTO)
        target = self._consume(TokenKind.IDENTIFIER).value
        self._consume(TokenKind.SEMICOLON)
        return Goto(target_scene_id=target)

    def _parse_condition(self) -> str:
        self._consume(TokenKind.IF)
        self._consume(TokenKind.LPAREN)
        flag_id = self._consume(TokenKind.IDENTIFIER).value
        self._consume(TokenKind.RPAREN)
        return flag_id

    def _parse_if_event(self) -> IfEvent:
        flag_id = self._parse_condition()
        true_events = self._parse_block()
        false_events: tuple[Event, ...] = ()
        if self._check(TokenKind.ELSE):
            self._consume(TokenKind.ELSE)
            false_events = self._parse_block()
        return IfEvent(flag_id=flag_id, true_events=true_events, false_events=false_events)

    def _parse_choice(self) -> Choice:
        self._consume(TokenKind.CHOICE)
        self._consume(TokenKind.LBRACE)
        options: list[ChoiceOption] = []
        while self._check(TokenKind.STRING):
            text = self._consume(TokenKind.STRING).value
            self._consume(TokenKind.ARROW)
            options.append(ChoiceOption(text=text, events=self._parse_block()))
        self._consume(TokenKind.RBRACE)
        return Choice(options=tuple(options))

    def _parse_options(self) -> dict[str, float]:
        options: dict[str, float] = {}
        if not self._check(TokenKind.LPAREN):
            return options
        self._consume(TokenKind.LPAREN)
        while not self._check(TokenKind.RPAREN):
            name = self._consume(TokenKind.IDENTIFIER).value
            self._consume(TokenKind.COLON)
            options[name] = float(self._consume(TokenKind.NUMBER).value)
            if self._check(TokenKind.COMMA):
                self._consume(TokenKind.COMMA)
        self._consume(TokenKind.RPAREN)
        return options

    def _parse_play_music(self) -> PlayMusic:
        self._consume(TokenKind.PLAY_MUSIC)
        track = self._consume(TokenKind.STRING).value
        return PlayMusic(track=track, options=self._parse_options())

    def _parse_play_sfx(self) -> PlaySfx:
        self._consume(TokenKind.PLAY_SFX)
        sound = self._consume(TokenKind.STRING).value
        return PlaySfx(sound=sound, options=self._parse_options())

    def _parse_stop_music(self) -> StopMusic:
        self._consume(TokenKind.STOP_MUSIC)
        return StopMusic(options=self._parse_options())

    def _parse_play_ambient(self) -> PlayAmbient:
        self._consume(TokenKind.PLAY_AMBIENT)
        sound = self._consume(TokenKind.STRING).value
        return PlayAmbient(sound=sound, options=self._parse_options())

    def _parse_set_volume(self) -> SetVolume:
        self._consume(TokenKind.SET_VOLUME)
        channel = self._consume(TokenKind.IDENTIFIER).value
        volume = float(self._consume(TokenKind.NUMBER).value)
        return SetVolume(channel=channel, volume=volume)

    def _parse_background_event(self) -> BackgroundChange:
        self._consume(TokenKind.BACKGROUND)
        image = self._consume(TokenKind.STRING).value
        return BackgroundChange(image=image, options=self._parse_options())

    def _parse_main(self) -> MainBlock:
        self._consume(TokenKind.MAIN)
        self._consume(TokenKind.LBRACE)
        statements = self._parse_main_statements()
        self._consume(TokenKind.RBRACE)
        return MainBlock(statements=statements)

    def _parse_main_statements(self) -> tuple[MainStatement, ...]:
        statements: list[MainStatement] = []
        while not self._check(TokenKind.RBRACE):
            statements.append(self._parse_main_statement())
        return tuple(statements)

    def _parse_main_statement(self) -> MainStatement:
        if self._check(TokenKind.IF):
            return self._parse_if_statement()
        if self._check(TokenKind.GOTO):
            return self._parse_goto()
        scene_id = self._consume(TokenKind.IDENTIFIER).value
        self._consume(TokenKind.SEMICOLON)
        return SceneCall(scene_id=scene_id)

    def _parse_if_statement(self) -> IfStatement:
        flag_id = self._parse_condition()
        self._consume(TokenKind.LBRACE)
        true_branch = self._parse_main_statements()
        self._consume(TokenKind.RBRACE)
        false_branch: tuple[MainStatement, ...] = ()
        if self._check(TokenKind.ELSE):
            self._consume(TokenKind.ELSE)
            self._consume(TokenKind.LBRACE)
            false_branch = self._parse_main_statements()
            self._consume(TokenKind.RBRACE)
        return IfStatement(flag_id=flag_id, true_branch=true_branch, false_branch=false_branch)


def parse_script(source: str) -> Program:
    return Parser(Lexer(source)).parse()
