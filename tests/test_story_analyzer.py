from vnstudio.modules.analysis.analyzer import BrokenLink, SceneKind, StoryAnalyzer, complexity_score
from vnstudio.modules.script import parse_script
from tests.support.scripts import FULL_SCRIPT, GHOST_SCRIPT


def test_ghost_goto_is_exactly_one_broken_link() -> None:
    report = StoryAnalyzer(parse_script(GHOST_SCRIPT)).analyze()
    assert report.broken_links == [BrokenLink(source="hall", target="ghost")]
    assert report.total_scenes == 2
    assert report.total_words == 4
    assert report.total_choices == 1
    assert report.endings == 1
    assert report.complexity_score == 4


def test_scene_with_broken_link_is_flagged() -> None:
    metas = {meta.scene_id: meta for meta in StoryAnalyzer(parse_script(GHOST_SCRIPT)).scene_meta()}
    assert metas["hall"].has_issues is True
    assert metas["hall"].kind == SceneKind.DECISION
    assert metas["hall"].out_links == ["ghost", "yard"]
    assert metas["yard"].has_issues is False
    assert metas["yard"].kind == SceneKind.ENDING


def test_every_broken_occurrence_is_reported() -> None:
    source = """
    game "g" {
        flag f: false
        scene a {
            if (f) { goto lost; } else { goto lost; }
        }
        main { a; }
    }
    """
    report = StoryAnalyzer(parse_script(source)).analyze()
    assert report.broken_links == [BrokenLink("a", "lost"), BrokenLink("a", "lost")]


def test_full_script_metrics_and_clusters() -> None:
    analyzer = StoryAnalyzer(parse_script(FULL_SCRIPT))
    report = analyzer.analyze()
    assert report.total_scenes == 2
    assert report.total_words == 18
    assert report.total_choices == 1
    assert report.endings == 2
    assert report.broken_links == []
    assert report.complexity_score == 4
    assert analyzer.clusters() == {"ch1": ["ch1_dock", "ch1_pier"]}


def test_normal_scene_kind_when_linking_without_choices() -> None:
    source = 'game "g" { scene a { goto b; } scene b { } main { a; } }'
    metas = StoryAnalyzer(parse_script(source)).scene_meta()
    assert [(meta.scene_id, meta.kind) for meta in metas] == [("a", SceneKind.NORMAL), ("b", SceneKind.ENDING)]


def test_clusters_use_prefix_before_first_separator() -> None:
    source = 'game "g" { scene intro { } scene act1_a_b { } scene act1_c { } scene act2_x { } main { intro; } }'
    assert StoryAnalyzer(parse_script(source)).clusters() == {
        "global": ["intro"],
        "act1": ["act1_a_b", "act1_c"],
        "act2": ["act2_x"],
    }


def test_custom_cluster_separator_and_default() -> None:
    source = 'game "g" { scene a_b { } main { a_b; } }'
    analyzer = StoryAnalyzer(parse_script(source), cluster_separator="-", default_cluster="misc")
    assert analyzer.clusters() == {"misc": ["a_b"]}


def test_word_count_splits_on_whitespace_runs() -> None:
    source = 'game "g" { scene a { dialogue n "  one   two\tthree  " } main { a; } }'
    assert StoryAnalyzer(parse_script(source)).analyze().total_words == 3


def test_complexity_score_is_deterministic_with_half_up_rounding() -> None:
    assert complexity_score(0, 0, 0) == 0
    assert complexity_score(49, 0, 0) == 0
    assert complexity_score(50, 0, 0) == 1
    assert complexity_score(250, 0, 1) == 4
    assert complexity_score(120, 3, 4) == 11
    assert complexity_score(120, 3, 4) == complexity_score(120, 3, 4)


def test_repeated_analysis_is_stable() -> None:
    analyzer = StoryAnalyzer(parse_script(GHOST_SCRIPT))
    first = analyzer.analyze()
    second = analyzer.analyze()
    assert first == second
    assert first is not second
