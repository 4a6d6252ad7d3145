"""Tests for gameprogress.catalog — module registry, unlock order, and decks."""

import pytest

from gameprogress.catalog import DECKS, MODULE_MAP, ModuleConfig, get_deck, resolve_module
from gameprogress.engine.board import BoardEngine


class TestResolveModule:
    """Module lookup."""

    def test_known_module(self) -> None:
        module = resolve_module("bingo-gmp")
        assert isinstance(module, ModuleConfig)
        assert module.kind == "bingo"
        assert module.free_cell_index == 24
        assert module.line_reward == 10

    def test_unknown_module(self) -> None:
        with pytest.raises(KeyError):
            resolve_module("chess")

    def test_keys_match_ids(self) -> None:
        for key, module in MODULE_MAP.items():
            assert key == module.module_id


class TestDecks:
    """Every bingo module has a deck that fits its board."""

    @pytest.mark.parametrize(
        "module", [m for m in MODULE_MAP.values() if m.kind == "bingo"], ids=lambda m: m.module_id
    )
    def test_deck_fits_board(self, module) -> None:
        deck = get_deck(module.module_id)
        assert len(deck) == module.board_side ** 2
        engine = BoardEngine(side=module.board_side, line_reward=module.line_reward)
        session = engine.initialize(deck, free_cell_index=module.free_cell_index)
        assert len(session.cells) == len(deck)

    def test_definitions_unique(self) -> None:
        for deck in DECKS.values():
            definitions = [item.definition for item in deck]
            assert len(definitions) == len(set(definitions))

    def test_free_space_last(self) -> None:
        assert get_deck("bingo-gmp")[24].term == "Free Space"

    def test_get_deck_returns_copy(self) -> None:
        deck = get_deck("bingo-gmp")
        deck.pop()
        assert len(get_deck("bingo-gmp")) == 25

    def test_no_deck(self) -> None:
        with pytest.raises(KeyError):
            get_deck("case-quiz")


class TestUnlockSequence:
    """Prerequisites form a chain in catalog order."""

    def test_first_module_has_no_prerequisite(self) -> None:
        assert next(iter(MODULE_MAP.values())).unlock_after is None

    def test_prerequisites_come_earlier(self) -> None:
        order = list(MODULE_MAP)
        for position, module in enumerate(MODULE_MAP.values()):
            if module.unlock_after is not None:
                assert module.unlock_after in order[:position], module.module_id

    def test_sort_waits_for_bingo(self) -> None:
        assert resolve_module("gmp-sort").unlock_after == "bingo-gmp"
        assert resolve_module("case-quiz").unlock_after == "gmp-sort"
