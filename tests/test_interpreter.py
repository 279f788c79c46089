from __future__ import annotations

import pytest

from vnstudio.config import settings
from vnstudio.modules.runtime.interpreter import Interpreter, InterpreterState
from vnstudio.modules.runtime.presentation import CueRecorder
from vnstudio.modules.runtime.results import (
    DialogueResult,
    ErrorResult,
    FinishedResult,
    LoadBackgroundRequest,
    WaitingChoiceResult,
)
from vnstudio.modules.script import ScriptParseError, ScriptValidationError, parse_script
from tests.support.scripts import (
    DUPLICATES_SCRIPT,
    FULL_SCRIPT,
    GENERATED_BACKGROUND_SCRIPT,
    GOTO_CYCLE_SCRIPT,
    MET_SCRIPT,
    dialogue_scene_script,
)


def _cue_names(recorder: CueRecorder) -> list[str]:
    return [cue.name for cue in recorder.drain()]


def test_met_scenario_first_result_and_flag() -> None:
    interpreter = Interpreter()
    loaded = interpreter.load(MET_SCRIPT)
    assert loaded.game == "Met Test"
    assert interpreter.state == InterpreterState.READY

    result = interpreter.advance()
    assert result == DialogueResult(speaker="n", text="Hello.")
    assert interpreter.flags == {"met": True}
    assert interpreter.state == InterpreterState.RUNNING


def test_met_scenario_reload_does_not_leak_state() -> None:
    interpreter = Interpreter()
    interpreter.load(MET_SCRIPT)
    first = interpreter.advance()

    interpreter.load(MET_SCRIPT)
    assert interpreter.flags == {"met": False}
    assert not interpreter.can_undo
    assert interpreter.advance() == first


def test_advance_without_script_reports_error() -> None:
    result = Interpreter().advance()
    assert result == ErrorResult(message="No script loaded.")


def test_full_playthrough_with_presentation_cues() -> None:
    recorder = CueRecorder()
    interpreter = Interpreter(recorder)
    interpreter.load(FULL_SCRIPT)

    assert interpreter.advance() == DialogueResult(speaker="Mia", text="The fog is thick tonight.")
    cues = recorder.drain()
    assert [cue.name for cue in cues] == ["set_background", "play_music", "show_character"]
    assert cues[0].args == {"image": "dock.png"}
    assert cues[1].args == {"track": "waves.ogg", "options": {"volume": 0.5, "fade": 2.0}}
    assert cues[2].args == {"sprite": "mia.png", "position": "left"}

    waiting = interpreter.advance()
    assert waiting == WaitingChoiceResult(options=["Light the lantern", "Wait in the dark"])
    assert interpreter.state == InterpreterState.WAITING_CHOICE

    assert interpreter.make_choice(0) == DialogueResult(speaker="Mia", text="Better.")
    assert _cue_names(recorder) == ["play_sfx"]
    assert interpreter.flags == {"brave": False, "lantern": True}

    assert interpreter.advance() == DialogueResult(speaker="Old Sailor", text="I saw your light.")
    assert _cue_names(recorder) == ["show_character"]

    assert interpreter.advance() == DialogueResult(speaker="Old Sailor", text="Safe travels.")
    cues = recorder.drain()
    assert [cue.name for cue in cues] == ["play_ambient", "set_volume", "set_background", "stop_music"]
    assert cues[1].args == {"channel": "music", "level": 0.8}

    assert interpreter.advance() == FinishedResult(message="End of game.")
    assert interpreter.state == InterpreterState.FINISHED


def test_finished_is_idempotent() -> None:
    interpreter = Interpreter()
    interpreter.load(dialogue_scene_script(1))
    interpreter.advance()
    first = interpreter.advance()
    snapshot = interpreter.snapshot()
    assert first.type == "finished"
    for _ in range(3):
        assert interpreter.advance() == first
    assert interpreter.snapshot() == snapshot


def test_waiting_choice_is_idempotent() -> None:
    interpreter = Interpreter()
    interpreter.load(FULL_SCRIPT)
    interpreter.advance()
    waiting = interpreter.advance()
    snapshot = interpreter.snapshot()
    depth = interpreter.history.depth
    for _ in range(3):
        assert interpreter.advance() == waiting
    assert interpreter.snapshot() == snapshot
    assert interpreter.history.depth == depth


@pytest.mark.parametrize("count", [1, 2, 5])
def test_scene_of_n_dialogues_finishes_after_n_plus_one_advances(count: int) -> None:
    interpreter = Interpreter()
    interpreter.load(dialogue_scene_script(count))
    results = [interpreter.advance() for _ in range(count + 1)]
    assert [result.type for result in results] == ["dialogue"] * count + ["finished"]


def test_scene_of_instant_events_finishes_in_one_advance() -> None:
    interpreter = Interpreter()
    interpreter.load('game "g" { flag f: false scene s { set flag f = true play_sfx "a.wav" } main { s; } }')
    assert interpreter.advance() == FinishedResult(message="End of game.")
    assert interpreter.flags == {"f": True}


def test_invalid_choice_selection() -> None:
    interpreter = Interpreter()
    interpreter.load(FULL_SCRIPT)
    assert interpreter.make_choice(0) == ErrorResult(message="Invalid choice selection.")
    interpreter.advance()
    interpreter.advance()
    assert interpreter.make_choice(5) == ErrorResult(message="Invalid choice selection.")
    assert interpreter.make_choice(-1) == ErrorResult(message="Invalid choice selection.")
    assert interpreter.state == InterpreterState.WAITING_CHOICE


def test_main_if_statement_selects_branch_from_flag() -> None:
    source = """
    game "g" {
        character n "N" (sprite: "n.png")
        flag ok: true
        scene yes { dialogue n "yes" }
        scene no { dialogue n "no" }
        main { if (ok) { yes; } else { no; } }
    }
    """
    interpreter = Interpreter()
    interpreter.load(source)
    assert interpreter.advance() == DialogueResult(speaker="N", text="yes")
    assert interpreter.advance().type == "finished"


def test_goto_switches_scene() -> None:
    source = """
    game "g" {
        character n "N" (sprite: "n.png")
        scene a { goto b; dialogue n "skipped" }
        scene b { dialogue n "arrived" }
        main { a; }
    }
    """
    interpreter = Interpreter()
    interpreter.load(source)
    assert interpreter.advance() == DialogueResult(speaker="N", text="arrived")
    assert interpreter.scene_id == "b"
    assert interpreter.advance().type == "finished"


def test_goto_unknown_scene_is_runtime_error_when_references_relaxed() -> None:
    source = 'game "g" { scene a { goto nowhere; } main { a; } }'
    interpreter = Interpreter(strict_references=False)
    interpreter.load(source)
    assert interpreter.advance() == ErrorResult(message="Runtime Error: Scene 'nowhere' not found.")


def test_scene_call_unknown_scene_is_runtime_error_when_references_relaxed() -> None:
    interpreter = Interpreter(strict_references=False)
    interpreter.load('game "g" { main { missing; } }')
    assert interpreter.advance() == ErrorResult(message="Runtime Error: Scene 'missing' not found.")


def test_strict_references_reject_unknown_scene_at_load() -> None:
    with pytest.raises(ScriptValidationError) as excinfo:
        Interpreter().load('game "g" { main { missing; } }')
    assert [item["code"] for item in excinfo.value.errors] == ["UNKNOWN_SCENE"]


def test_failed_load_keeps_previous_program() -> None:
    interpreter = Interpreter()
    interpreter.load(MET_SCRIPT)
    interpreter.advance()
    snapshot = interpreter.snapshot()

    with pytest.raises(ScriptValidationError) as excinfo:
        interpreter.load(DUPLICATES_SCRIPT)
    assert len(excinfo.value.errors) == 3
    with pytest.raises(ScriptParseError):
        interpreter.load('game "broken" {')

    assert interpreter.program.name == "Met Test"
    assert interpreter.snapshot() == snapshot
    assert "n" not in interpreter.characters


def test_failed_first_load_stays_unloaded() -> None:
    interpreter = Interpreter()
    with pytest.raises(ScriptValidationError):
        interpreter.load(DUPLICATES_SCRIPT)
    assert interpreter.state == InterpreterState.UNLOADED
    assert interpreter.flags == {}
    assert dict(interpreter.characters) == {}


def test_missing_main_block_fails_load() -> None:
    with pytest.raises(ScriptValidationError) as excinfo:
        Interpreter().load('game "g" { scene s { } }')
    assert "Game requires a 'main' block." in str(excinfo.value)


def test_generated_background_suspends_until_resumed() -> None:
    recorder = CueRecorder()
    interpreter = Interpreter(recorder)
    interpreter.load(GENERATED_BACKGROUND_SCRIPT)
    assert interpreter.advance() == DialogueResult(speaker="Narrator", text="Close your eyes.")

    request = interpreter.advance()
    assert request == LoadBackgroundRequest(prompt="a misty forest at dawn", scene_id="dream")
    assert interpreter.state == InterpreterState.SUSPENDED
    assert interpreter.scene_id == "intro"
    assert interpreter.advance() == request
    recorder.drain()

    resumed = interpreter.resume_with_scene("dream", image_ref="https://img.example/forest.png")
    assert resumed == DialogueResult(speaker="Narrator", text="You wake somewhere else.")
    cues = recorder.drain()
    assert [cue.name for cue in cues] == ["set_background"]
    assert cues[0].args == {"image": "https://img.example/forest.png"}
    assert interpreter.scene_id == "dream"
    assert interpreter.advance().type == "finished"


def test_resume_with_unknown_scene_keeps_suspension() -> None:
    interpreter = Interpreter()
    interpreter.load(GENERATED_BACKGROUND_SCRIPT)
    interpreter.advance()
    interpreter.advance()
    assert interpreter.resume_with_scene("nope") == ErrorResult(message="Runtime Error: Scene 'nope' not found.")
    assert interpreter.state == InterpreterState.SUSPENDED


def test_custom_generate_prefix() -> None:
    source = """
    game "g" {
        scene s { background "ai:: city at night" }
        main { s; }
    }
    """
    interpreter = Interpreter(background_generate_prefix="ai::")
    interpreter.load(source)
    assert interpreter.advance() == LoadBackgroundRequest(prompt="city at night", scene_id="s")


def test_two_interpreters_share_one_program_without_interference() -> None:
    source = """
    game "shared" {
        character n "N" (sprite: "n.png")
        flag picked: false
        scene s {
            choice {
                "A" -> { set flag picked = true dialogue n "took A" }
                "B" -> { dialogue n "took B" }
            }
            dialogue n "after"
        }
        main { s; }
    }
    """
    program = parse_script(source)
    events_before = program.scenes[0].events

    first, second = Interpreter(), Interpreter()
    first.load_program(program)
    second.load_program(program)
    assert first.program is second.program
    first.advance()
    second.advance()

    assert first.make_choice(0) == DialogueResult(speaker="N", text="took A")
    assert second.make_choice(1) == DialogueResult(speaker="N", text="took B")
    assert first.advance() == DialogueResult(speaker="N", text="after")
    assert second.advance() == DialogueResult(speaker="N", text="after")
    assert first.flags == {"picked": True}
    assert second.flags == {"picked": False}
    assert first.program.scenes[0].events == events_before
    assert len(first.program.scenes[0].events) == 2


def test_branch_taken_twice_after_undo_does_not_duplicate_events() -> None:
    interpreter = Interpreter()
    interpreter.load(FULL_SCRIPT)
    interpreter.advance()
    interpreter.advance()
    interpreter.make_choice(1)
    interpreter.undo()
    assert interpreter.make_choice(1) == DialogueResult(speaker="Mia", text="I can manage.")
    assert interpreter.advance() == DialogueResult(speaker="Old Sailor", text="Who goes there?")
    assert len(interpreter.program.scenes[0].events) == 4


def test_goto_cycle_without_dialogue_is_abandoned_with_error() -> None:
    interpreter = Interpreter(max_instant_steps=50)
    interpreter.load(GOTO_CYCLE_SCRIPT)
    before = interpreter.snapshot()

    result = interpreter.advance()
    assert result == ErrorResult(message="Runtime Error: no dialogue or choice reached within 50 steps.")
    assert interpreter.snapshot() == before
    assert interpreter.flags == {"spun": False}
    assert interpreter.state == InterpreterState.READY
    assert not interpreter.can_undo


def test_self_goto_uses_configured_step_limit() -> None:
    settings.max_instant_steps = 20
    interpreter = Interpreter()
    interpreter.load('game "g" { scene a { goto a; } main { a; } }')
    assert interpreter.advance() == ErrorResult(
        message="Runtime Error: no dialogue or choice reached within 20 steps."
    )


def test_choice_into_goto_cycle_keeps_choice_pending() -> None:
    source = """
    game "g" {
        character n "N" (sprite: "n.png")
        scene s {
            choice {
                "Spin" -> { goto spin; }
                "Talk" -> { dialogue n "hi" }
            }
        }
        scene spin { goto s2; }
        scene s2 { goto spin; }
        main { s; }
    }
    """
    interpreter = Interpreter(max_instant_steps=30)
    interpreter.load(source)
    waiting = interpreter.advance()
    assert waiting.type == "waiting_choice"

    assert interpreter.make_choice(0).type == "error"
    assert interpreter.state == InterpreterState.WAITING_CHOICE
    assert interpreter.current_interaction() == waiting
    assert interpreter.make_choice(1) == DialogueResult(speaker="N", text="hi")
