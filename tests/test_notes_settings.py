import unittest

from application.accounts import register
from application.notes import (
    create_player_note,
    delete_player_note,
    get_settings,
    list_player_notes,
    save_settings,
)
from domain.errors import NotFound, ValidationError
from fakes import InMemoryLedgerStore


class PlayerNoteTests(unittest.TestCase):
    def setUp(self) -> None:
        self.store = InMemoryLedgerStore()
        self.alice = register(self.store, "alice", "alice@example.com", "secret1").id
        self.bob = register(self.store, "bob", "bob@example.com", "secret2").id

    def test_create_and_list_newest_first(self):
        first = create_player_note(self.store, self.alice, "Villain1", "aggro", "3-bets light")
        second = create_player_note(self.store, self.alice, "Villain2", "nit", "folds to c-bets")

        notes = list_player_notes(self.store, self.alice)

        self.assertEqual([n.id for n in notes], [second.id, first.id])
        self.assertEqual(notes[1].player_name, "Villain1")
        self.assertEqual(notes[1].note_text, "3-bets light")

    def test_all_fields_are_required(self):
        with self.assertRaises(ValidationError) as ctx:
            create_player_note(self.store, self.alice, "Villain", "", "   ")
        self.assertEqual(ctx.exception.fields, ["category", "noteText"])
        self.assertEqual(list_player_notes(self.store, self.alice), [])

    def test_notes_are_scoped_to_owner(self):
        create_player_note(self.store, self.alice, "Villain", "fish", "calls too much")
        self.assertEqual(list_player_notes(self.store, self.bob), [])

    def test_delete_requires_ownership(self):
        note = create_player_note(self.store, self.alice, "Villain", "fish", "calls too much")

        with self.assertRaises(NotFound):
            delete_player_note(self.store, self.bob, note.id)
        self.assertEqual(len(list_player_notes(self.store, self.alice)), 1)

        delete_player_note(self.store, self.alice, note.id)
        self.assertEqual(list_player_notes(self.store, self.alice), [])

        with self.assertRaises(NotFound):
            delete_player_note(self.store, self.alice, note.id)


class SettingsTests(unittest.TestCase):
    def setUp(self) -> None:
        self.store = InMemoryLedgerStore()
        self.alice = register(self.store, "alice", "alice@example.com", "secret1").id

    def test_registration_creates_blank_settings(self):
        settings = get_settings(self.store, self.alice)
        self.assertEqual(settings.weekly_goals, "")
        self.assertEqual(settings.session_notes, "")

    def test_save_overwrites_and_normalizes_blanks(self):
        save_settings(self.store, self.alice, weekly_goals="20 hours", session_notes="tilt check")
        saved = save_settings(self.store, self.alice, weekly_goals=None, session_notes="review hands")

        self.assertEqual(saved.weekly_goals, "")
        self.assertEqual(get_settings(self.store, self.alice).session_notes, "review hands")
        self.assertEqual(len(self.store.find_all("user_settings", {"user_id": self.alice})), 1)

    def test_save_creates_row_when_missing(self):
        self.store.delete("user_settings", {"user_id": self.alice})

        save_settings(self.store, self.alice, weekly_goals="grind")

        self.assertEqual(get_settings(self.store, self.alice).weekly_goals, "grind")


if __name__ == "__main__":
    unittest.main()
