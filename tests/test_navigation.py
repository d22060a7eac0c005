"""
Tests for snowman/navigation.py

Covers navigation, the checkpoint push/replace rule, save/restore and
browser back/forward handling.
"""

import pytest

from snowman.display import RecordingDisplay
from snowman.errors import PassageNotFound, PersistenceError, TemplateExpansionError
from snowman.events import EventBus
from snowman.history import MemoryHistory
from snowman.links import find_passage_links
from snowman.navigation import NavigationEngine, should_push_history
from snowman.persistence import JsonFileStore, MemoryStore, save_key

STORY = [
    (1, "Start", [], "You wake up. [[Go->Room]]"),
    (2, "Room", [], "A room. [[Vault]]"),
    (3, "Vault", ["checkpoint"], "The vault. [[Hall]]"),
    (4, "Hall", [], "A hall. [[Cellar]]"),
    (5, "Cellar", [], "A cellar."),
]


@pytest.fixture
def engine(make_story):
    story = make_story(STORY)
    return NavigationEngine(story, display=RecordingDisplay(), history=MemoryHistory(), store=MemoryStore())


def click(engine, index=0):
    """Follow the index-th passage link of the displayed passage."""
    link = find_passage_links(engine.display.passage)[index]
    return engine.follow_link(link.target)


class TestShouldPushHistory:
    """The push/replace decision."""

    def test_plain_passage_not_at_checkpoint_replaces(self):
        assert should_push_history(("forest",), False) is False

    def test_checkpoint_passage_pushes(self):
        assert should_push_history(("checkpoint",), False) is True

    def test_at_checkpoint_pushes(self):
        assert should_push_history((), True) is True


class TestGoToPassage:
    """Tests for go_to_passage() and link following."""

    def test_clicking_a_link_navigates(self, engine):
        engine.go_to_passage(1)
        click(engine)

        assert engine.story.history == [1, 2]
        assert engine.display.passage.startswith("A room.")

    def test_by_name(self, engine):
        engine.go_to_passage("Hall")
        assert engine.story.history == [4]

    def test_unknown_passage_leaves_history_alone(self, engine):
        engine.play()
        with pytest.raises(PassageNotFound):
            engine.go_to_passage('NoSuchName')
        assert engine.story.history == [1]

    def test_without_adding_to_history(self, engine):
        engine.go_to_passage(1)
        engine.go_to_passage(2, add_to_history=False)
        assert engine.story.history == [1]
        assert engine.display.passage.startswith("A room.")

    def test_returns_rendered_content(self, engine):
        assert engine.go_to_passage("Cellar") == "A cellar."

    def test_template_error_propagates(self, make_story):
        story = make_story([(1, "Start", [], "{{ missing() }}")])
        engine = NavigationEngine(story)
        with pytest.raises(TemplateExpansionError):
            engine.go_to_passage(1)

    def test_header_and_footer_are_rerendered(self, make_story):
        story = make_story(STORY + [
            (10, "HEADER", [], "Visits: {{ story.history | length }}"),
            (11, "FOOTER", [], "At {{ story.current_passage.name }}"),
        ])
        display = RecordingDisplay()
        engine = NavigationEngine(story, display=display)

        engine.go_to_passage(1)
        engine.go_to_passage(2)

        assert display.regions['header'] == "Visits: 2"
        assert display.regions['footer'] == "At Room"
        assert [region for region, _ in display.updates] == ['passage', 'header', 'footer'] * 2


class TestCheckpoints:
    """Checkpoint state and the browser history rule."""

    def test_play_starts_at_checkpoint(self, engine):
        engine.play()
        assert engine.story.history == [1]
        assert engine.navigation.at_checkpoint is True
        assert len(engine.history.entries) == 2

    def test_checkpoint_passage_sets_name_and_title(self, engine):
        engine.go_to_passage("Vault")
        assert engine.story.current_checkpoint == "Vault"
        assert engine.display.title == "Test Story: Vault"
        assert engine.navigation.at_checkpoint is False

    def test_one_frame_from_checkpoint_through_next_passages(self, engine):
        engine.play()
        click(engine)
        before = len(engine.history.entries)

        engine.go_to_passage("Vault")
        engine.go_to_passage("Hall")
        engine.go_to_passage("Cellar")

        assert len(engine.history.entries) == before + 1
        assert engine.history.current['history'] == [1, 2, 3, 4, 5]

    def test_steps_without_checkpoint_replace(self, engine):
        engine.go_to_passage("Start")
        engine.navigation.at_checkpoint = False
        entries = len(engine.history.entries)

        engine.go_to_passage("Room")
        engine.go_to_passage("Hall")

        assert len(engine.history.entries) == entries

    def test_explicit_checkpoint_pushes_next_step(self, engine):
        engine.go_to_passage("Room")
        engine.checkpoint("Chapter 1")
        entries = len(engine.history.entries)

        engine.go_to_passage("Hall")

        assert len(engine.history.entries) == entries + 1
        assert engine.history.current['checkpointName'] == "Chapter 1"

    def test_checkpoint_is_idempotent(self, engine):
        engine.checkpoint("Gate")
        engine.checkpoint("Gate")
        assert engine.story.current_checkpoint == "Gate"
        assert engine.navigation.at_checkpoint is True

    def test_history_payload_shape(self, engine):
        engine.play()
        engine.story.state['lamp'] = True
        engine.go_to_passage("Vault")

        assert engine.history.current == {
            'state': {'lamp': True},
            'history': [1, 3],
            'checkpointName': "Vault",
        }


class TestShowPassage:
    """Inline rendering."""

    def test_does_not_navigate(self, engine):
        engine.play()
        content = engine.show_passage("Cellar")

        assert content == "A cellar."
        assert engine.story.history == [1]
        assert engine.display.passage.startswith("You wake up.")

    def test_unknown_passage(self, engine):
        with pytest.raises(PassageNotFound):
            engine.show_passage("Nowhere")

    def test_follow_link_with_show(self, engine):
        engine.play()
        assert engine.follow_link("Cellar", show=True) == "A cellar."
        assert engine.story.history == [1]


class TestSaveRestore:
    """Save, restore and reset."""

    def test_round_trip(self, engine):
        engine.play()
        engine.go_to_passage("Vault")
        engine.go_to_passage("Hall")
        engine.story.state['gold'] = 7
        engine.save()

        saved = (list(engine.story.history), dict(engine.story.state), engine.story.current_checkpoint)
        assert engine.restore() is True

        assert (engine.story.history, engine.story.state, engine.story.current_checkpoint) == saved
        assert engine.display.passage.startswith("A hall.")

    def test_record_written_under_story_key(self, engine):
        engine.play()
        engine.save()
        assert save_key("Test Story") in engine.saves.store

    def test_play_resumes_saved_game(self, make_story):
        store = MemoryStore()
        first = NavigationEngine(make_story(STORY), store=store)
        first.play()
        first.go_to_passage("Vault")
        first.story.state['torch'] = 'lit'
        first.save()

        second = NavigationEngine(make_story(STORY), store=store)
        second.play()

        assert second.story.history == [1, 3]
        assert second.story.state == {'torch': 'lit'}
        assert second.story.current_checkpoint == "Vault"
        assert second.display.passage.startswith("The vault.")

    def test_restore_without_save(self, engine):
        failures = []
        engine.events.subscribe('restore:failed', lambda event, **data: failures.append(data['error']))
        engine.play()
        engine.story.state['x'] = 1

        assert engine.restore() is False
        assert engine.story.history == [1]
        assert engine.story.state == {'x': 1}
        assert len(failures) == 1

    def test_restore_malformed_record(self, engine):
        engine.play()
        engine.saves.store.set(engine.saves.key, '{"state": {}, "history": []}')
        assert engine.restore() is False
        assert engine.story.history == [1]

    def test_restore_unknown_passage_rolls_back(self, engine):
        engine.play()
        engine.checkpoint("Here")
        engine.saves.store.set(engine.saves.key, '{"state": {"a": 1}, "history": [1, 99], "currentCheckpoint": "X"}')

        assert engine.restore() is False
        assert engine.story.history == [1]
        assert engine.story.state == {}
        assert engine.story.current_checkpoint == "Here"
        assert engine.navigation.at_checkpoint is True

    def test_play_falls_back_to_start_on_bad_save(self, make_story):
        store = MemoryStore()
        store.set(save_key("Test Story"), "garbage")
        engine = NavigationEngine(make_story(STORY), store=store)

        engine.play()

        assert engine.story.history == [1]
        assert engine.navigation.at_checkpoint is True

    def test_play_reports_unreadable_store(self, make_story):
        class BrokenStore(MemoryStore):
            def get(self, key):
                raise PersistenceError("disk on fire")

        engine = NavigationEngine(make_story(STORY), store=BrokenStore())
        failures = []
        engine.events.subscribe('restore:failed', lambda event, **data: failures.append(data['error']))

        engine.play()

        assert engine.story.history == [1]
        assert engine.display.passage.startswith("You wake up.")
        assert len(failures) == 1

    def test_nameless_story_saves_to_file_store(self, make_story, tmp_path):
        story = make_story(STORY, name="???")
        engine = NavigationEngine(story, store=JsonFileStore(tmp_path))
        engine.play()
        engine.go_to_passage("Vault")
        engine.save()

        again = NavigationEngine(make_story(STORY, name="???"), store=JsonFileStore(tmp_path))
        again.play()

        assert again.story.history == [1, 3]

    def test_reset_deletes_save_only(self, engine):
        engine.play()
        engine.save()
        engine.reset()

        assert not engine.saves.exists()
        assert engine.story.history == [1]
        assert engine.restore() is False

    def test_save_failure_propagates(self, make_story):
        engine = NavigationEngine(make_story(STORY), store=MemoryStore(quota=5))
        engine.play()
        with pytest.raises(PersistenceError):
            engine.save()


class TestBrowserHistory:
    """Back/forward handling."""

    def test_back_returns_to_previous_frame(self, engine):
        engine.play()
        click(engine)                      # Room (pushed: first step after play)
        engine.go_to_passage("Vault")      # pushed: checkpoint
        engine.go_to_passage("Hall")       # replaces the Vault frame

        assert engine.history.back() is True

        assert engine.story.history == [1, 2]
        assert engine.display.passage.startswith("A room.")

    def test_back_then_forward(self, engine):
        engine.play()
        click(engine)
        engine.story.state['key'] = True
        engine.go_to_passage("Vault")
        engine.go_to_passage("Hall")

        engine.history.back()
        engine.history.forward()

        assert engine.story.history == [1, 2, 3, 4]
        assert engine.story.state == {'key': True}
        assert engine.story.current_checkpoint == "Vault"
        assert engine.display.passage.startswith("A hall.")

    def test_pop_does_not_rewrite_history(self, engine):
        engine.play()
        click(engine)
        engine.go_to_passage("Vault")
        entries = list(engine.history.entries)

        engine.history.back()

        assert engine.history.entries == entries

    def test_pop_to_page_load_entry_with_history_is_ignored(self, engine):
        engine.play()
        engine.history.back()

        assert engine.story.history == [1]

    def test_pop_to_unknown_passage_keeps_current_state(self, engine):
        engine.play()
        engine.go_to_passage(2)
        engine.story.state['lamp'] = True

        engine.handle_pop({'state': {'z': 1}, 'history': [1, 99], 'checkpointName': 'X'})

        assert engine.story.history == [1, 2]
        assert engine.story.state == {'lamp': True}
        assert engine.story.current_checkpoint == ''
        assert engine.display.passage.startswith("A room.")

    def test_pop_with_broken_template_rolls_back(self, make_story):
        story = make_story(STORY + [(6, "Trap", [], "{{ missing() }}")])
        engine = NavigationEngine(story, history=MemoryHistory())
        engine.play()
        engine.go_to_passage("Vault")

        with pytest.raises(TemplateExpansionError):
            engine.handle_pop({'state': {'z': 1}, 'history': [1, 6], 'checkpointName': ''})

        assert engine.story.history == [1, 3]
        assert engine.story.state == {}
        assert engine.story.current_checkpoint == "Vault"

    def test_pop_without_payload_and_empty_history_starts_over(self, engine):
        engine.story.state['junk'] = 1

        engine.handle_pop(None)

        assert engine.story.history == [1]
        assert engine.story.state == {}
        assert engine.story.current_checkpoint == ''
        assert engine.display.passage.startswith("You wake up.")


class TestEvents:
    """Lifecycle notifications."""

    def test_navigation_events_in_order(self, engine):
        seen = []
        engine.events.subscribe('*', lambda event, **data: seen.append(event))

        engine.go_to_passage("Vault")

        assert seen == [
            'go_to_passage:before',
            'checkpoint:before',
            'checkpoint:after',
            'go_to_passage:after',
        ]

    def test_failing_listener_does_not_break_navigation(self, make_story):
        events = EventBus()

        def broken(event, **data):
            raise RuntimeError("observer bug")

        events.subscribe('go_to_passage:after', broken)
        engine = NavigationEngine(make_story(STORY), events=events)

        engine.go_to_passage(1)

        assert engine.story.history == [1]

    def test_save_and_reset_events(self, engine):
        seen = []
        engine.events.subscribe('*', lambda event, **data: seen.append(event))
        engine.play()
        seen.clear()

        engine.save()
        engine.reset()

        assert seen == ['save:before', 'save:after', 'reset:before', 'reset:after']

    def test_play_applies_config(self, make_story):
        story = make_story(STORY + [(9, "CONFIG", [], 'darkTheme = true\nstylesheets = ["https://x.example/a.css"]')])
        display = RecordingDisplay()
        NavigationEngine(story, display=display).play()

        assert display.dark_theme is True
        assert display.stylesheets == ["https://x.example/a.css"]
