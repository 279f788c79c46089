from __future__ import annotations

MET_SCRIPT = """
game "Met Test" {
    flag met: false
    scene a {
        if (met) {
            dialogue n "Again."
        } else {
            set flag met = true
            dialogue n "Hello."
        }
    }
    main { a; }
}
"""

GHOST_SCRIPT = """
game "Ghost" {
    character n "Narrator" (sprite: "n.png")
    scene hall {
        dialogue n "Two doors."
        choice {
            "Left" -> { goto ghost; }
            "Right" -> { goto yard; }
        }
    }
    scene yard {
        dialogue n "Fresh air."
    }
    main { hall; }
}
"""

FULL_SCRIPT = """
# A small story exercising every event kind
game "Harbor Lights" {
    character mia "Mia" (sprite: "mia.png")
    character old "Old Sailor" (sprite: "sailor.png")
    flag brave: false
    flag lantern: false

    scene ch1_dock {
        background "dock.png"
        play_music "waves.ogg" (volume: 0.5, fade: 2)
        show mia at left
        dialogue mia "The fog is thick tonight."
        choice {
            "Light the lantern" -> {
                set flag lantern = true
                play_sfx "match.wav"
                dialogue mia "Better."
            }
            "Wait in the dark" -> {
                set flag brave = true
                dialogue mia "I can manage."
            }
        }
    }

    scene ch1_pier {
        show old at right
        if (lantern) {
            dialogue old "I saw your light."
        } else {
            dialogue old "Who goes there?"
        }
        play_ambient "gulls.ogg" (volume: 0.3)
        set_volume music 0.8
        background "pier.png" (fade: 1.5)
        stop_music (fade: 3)
        dialogue old "Safe travels."
    }

    main {
        ch1_dock;
        if (brave) {
            ch1_pier;
        } else {
            ch1_pier;
        }
    }
}
"""

GENERATED_BACKGROUND_SCRIPT = """
game "Dream" {
    character n "Narrator" (sprite: "n.png")
    scene intro {
        dialogue n "Close your eyes."
    }
    scene dream {
        background "generate: a misty forest at dawn"
        dialogue n "You wake somewhere else."
    }
    main { intro; dream; }
}
"""

DUPLICATES_SCRIPT = """
game "Dupes" {
    character n "Narrator" (sprite: "n.png")
    character n "Narrator Again" (sprite: "n2.png")
    flag f: false
    flag f: true
    scene a { dialogue n "x" }
    scene a { dialogue n "y" }
    main { a; }
}
"""


def dialogue_scene_script(count: int) -> str:
    lines = "\n".join(f'        dialogue n "line {index}"' for index in range(count))
    return f"""
game "Lines" {{
    character n "Narrator" (sprite: "n.png")
    scene only {{
{lines}
    }}
    main {{ only; }}
}}
"""

FOREST_SCRIPT = """
game "Forest" {
    character n "Narrator" (sprite: "n.png")
    scene a {
        dialogue n "x"
    }
    scene b {
        background "generate: a forest"
        dialogue n "y"
        dialogue n "z"
    }
    main { a; b; }
}
"""

GOTO_CYCLE_SCRIPT = """
game "Loop" {
    flag spun: false
    scene a { set flag spun = true goto b; }
    scene b { goto a; }
    main { a; }
}
"""
