"""Board engine — cell selection, line detection, and scoring for bingo boards.

Owns the rules of an N×N term/definition board: one cell per content item,
an optional pre-selected free cell, a current prompt (a definition) the
player must match, and 2N+2 winning lines (rows, columns, both diagonals).
Each line scores once per game. The game completes only when every line
has been completed.

Pure and synchronous: mutates the GameSession it is given and nothing
else. Persistence is the sync coordinator's job; the engine only produces
snapshots and rebuilds sessions from them.

Tier 2 service module: imports from schemas and errors (Tier 1).

Usage:
    engine = BoardEngine(side=5, line_reward=10)
    session = engine.initialize(get_deck("bingo-gmp"), free_cell_index=24)
    result = engine.select_cell(session, 7)
    if result.accepted and result.lines_newly_completed:
        ...
"""

import logging
import random
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any
from uuid import uuid4

from gameprogress.errors import ValidationError
from gameprogress.schemas import Cell, ContentItem, GameSession

logger = logging.getLogger(__name__)

# Rejection reasons reported by select_cell.
REASON_COMPLETE = "complete"
REASON_OUT_OF_RANGE = "out_of_range"
REASON_ALREADY_SELECTED = "already_selected"
REASON_MISMATCH = "mismatch"


@dataclass
class SelectionResult:
    """Outcome of one select_cell call.

    Attributes:
        accepted: Whether the cell was marked selected.
        lines_newly_completed: Patterns completed by this selection, each
            reported exactly once per game.
        reason: Why the selection was rejected, None when accepted.
    """

    accepted: bool
    lines_newly_completed: list[list[int]] = field(default_factory=list)
    reason: str | None = None


def normalize_text(text: str) -> str:
    """Trims and collapses internal whitespace runs to one space."""
    return " ".join(text.split())


def build_line_patterns(side: int) -> list[tuple[int, ...]]:
    """Rows, then columns, then the main and anti diagonals."""
    rows = [tuple(r * side + c for c in range(side)) for r in range(side)]
    cols = [tuple(r * side + c for r in range(side)) for c in range(side)]
    main_diag = tuple(i * side + i for i in range(side))
    anti_diag = tuple(i * side + (side - 1 - i) for i in range(side))
    return rows + cols + [main_diag, anti_diag]


def snapshot(session: GameSession) -> dict[str, Any]:
    """Serializes a session into the progress snapshot stored with attempts.

    The shape is opaque to the reconciler; restore() is its only reader.
    """
    side = _side_of(len(session.cells))
    selected = [cell.index for cell in session.cells if cell.selected]
    board_state = [
        [1 if session.cells[r * side + c].selected else 0 for c in range(side)]
        for r in range(side)
    ]
    return {
        "session_id": session.session_id,
        "cells_selected": selected,
        "completed_lines": [list(line) for line in session.completed_lines],
        "board_state": board_state,
        "current_prompt": session.current_prompt,
        "score": session.score,
        "elapsed_seconds": session.elapsed_seconds,
        "is_complete": session.is_complete,
    }


def _side_of(cell_count: int) -> int:
    side = int(cell_count ** 0.5)
    while side * side < cell_count:
        side += 1
    return side


class BoardEngine:
    """Rules engine for one board geometry.

    Stateless apart from configuration and the random source, so a single
    instance can serve every session with the same geometry.
    """

    def __init__(
        self,
        side: int = 5,
        line_reward: int = 10,
        rng: random.Random | None = None,
    ) -> None:
        """Initialises the engine.

        Args:
            side: Board edge length; the board has side*side cells.
            line_reward: Points added per newly completed line.
            rng: Random source for prompt selection. Pass a seeded
                instance for reproducible games.
        """
        if side < 2:
            raise ValueError(f"Board side must be at least 2, got {side}")
        self.side = side
        self.line_reward = line_reward
        self._rng = rng or random.Random()
        self._patterns = build_line_patterns(side)
        self._pattern_sets = {frozenset(p): p for p in self._patterns}

    @property
    def line_patterns(self) -> list[tuple[int, ...]]:
        """All winning patterns for this geometry (2*side + 2 of them)."""
        return list(self._patterns)

    @property
    def cell_count(self) -> int:
        return self.side * self.side

    # -- Lifecycle ---------------------------------------------------------

    def initialize(
        self,
        content_items: Sequence[ContentItem],
        free_cell_index: int | None = None,
        session_id: str | None = None,
        player_id: str | None = None,
        module_id: str | None = None,
    ) -> GameSession:
        """Builds a fresh board with one cell per content item.

        Args:
            content_items: Exactly side*side items, in cell order.
            free_cell_index: Optional cell to pre-select.
            session_id: Identifier for the new session. Generated if omitted.
            player_id: Owning player, if known.
            module_id: Module the board belongs to, if known.

        Returns:
            A new GameSession with score 0 and a prompt drawn from the
            unselected cells.

        Raises:
            ValidationError: Wrong item count or free cell out of range.
        """
        if len(content_items) != self.cell_count:
            raise ValidationError(
                f"Board needs exactly {self.cell_count} content items, "
                f"got {len(content_items)}"
            )
        if free_cell_index is not None and not 0 <= free_cell_index < self.cell_count:
            raise ValidationError(
                f"Free cell index {free_cell_index} is outside the board "
                f"(0..{self.cell_count - 1})"
            )

        cells = [
            Cell(index=i, payload=item, selected=(i == free_cell_index))
            for i, item in enumerate(content_items)
        ]
        session = GameSession(
            session_id=session_id or str(uuid4()),
            player_id=player_id,
            module_id=module_id,
            cells=cells,
        )
        session.current_prompt = self._draw_prompt(session)
        return session

    def restore(
        self,
        content_items: Sequence[ContentItem],
        saved: Mapping[str, Any],
        free_cell_index: int | None = None,
        session_id: str | None = None,
        player_id: str | None = None,
        module_id: str | None = None,
    ) -> GameSession:
        """Rebuilds a session from a snapshot produced by snapshot().

        Selected cells, completed lines, score, and elapsed time come from
        the snapshot. The saved prompt is kept only while it still belongs
        to an unselected cell; otherwise a new one is drawn.

        Args:
            content_items: The same deck the snapshot was taken from.
            saved: The stored progress snapshot.
            free_cell_index: Cell to keep selected regardless of the snapshot.
            session_id: Identifier for the restored session. Falls back to
                the snapshot's session_id, then to a new one.
            player_id: Owning player, if known.
            module_id: Module the board belongs to, if known.

        Returns:
            The restored GameSession.

        Raises:
            ValidationError: The snapshot is malformed or inconsistent
                with this board.
        """
        if not isinstance(saved, Mapping):
            raise ValidationError("Progress snapshot must be a mapping")

        selected = _int_list(saved.get("cells_selected", []), "cells_selected")
        for index in selected:
            if not 0 <= index < self.cell_count:
                raise ValidationError(f"Snapshot selects cell {index}, outside the board")

        raw_lines = saved.get("completed_lines", [])
        if not isinstance(raw_lines, list):
            raise ValidationError("Snapshot completed_lines must be a list")
        completed: list[list[int]] = []
        seen: set[frozenset[int]] = set()
        for raw_line in raw_lines:
            line = frozenset(_int_list(raw_line, "completed_lines"))
            pattern = self._pattern_sets.get(line)
            if pattern is None:
                raise ValidationError(f"Snapshot line {raw_line!r} is not a board pattern")
            if not line.issubset(selected):
                raise ValidationError(f"Snapshot line {raw_line!r} has unselected cells")
            if line not in seen:
                seen.add(line)
                completed.append(list(pattern))

        score = _non_negative_int(saved.get("score", 0), "score")
        elapsed = _non_negative_int(saved.get("elapsed_seconds", 0), "elapsed_seconds")
        prompt = saved.get("current_prompt")
        if prompt is not None and not isinstance(prompt, str):
            raise ValidationError("Snapshot current_prompt must be a string or null")

        saved_id = saved.get("session_id")
        session = self.initialize(
            content_items,
            free_cell_index=free_cell_index,
            session_id=session_id or (saved_id if isinstance(saved_id, str) else None),
            player_id=player_id,
            module_id=module_id,
        )
        for index in selected:
            session.cells[index].selected = True
        session.completed_lines = completed
        session.score = score
        session.elapsed_seconds = elapsed
        session.is_complete = len(completed) >= len(self._patterns)

        if prompt is not None and self._prompt_is_open(session, prompt):
            session.current_prompt = prompt
        else:
            session.current_prompt = self._draw_prompt(session)
        return session

    # -- Gameplay ----------------------------------------------------------

    def select_cell(self, session: GameSession, cell_index: int) -> SelectionResult:
        """Attempts to mark a cell as the answer to the current prompt.

        Rejections are returned, not raised: a finished game, an index
        off the board, an already selected cell, or a definition that
        doesn't match the prompt all leave the session untouched.

        Args:
            session: The session to mutate.
            cell_index: The cell the player picked.

        Returns:
            A SelectionResult describing what happened.
        """
        if session.is_complete:
            return SelectionResult(accepted=False, reason=REASON_COMPLETE)
        if not 0 <= cell_index < len(session.cells):
            return SelectionResult(accepted=False, reason=REASON_OUT_OF_RANGE)

        cell = session.cells[cell_index]
        if cell.selected:
            return SelectionResult(accepted=False, reason=REASON_ALREADY_SELECTED)
        if session.current_prompt is None or (
            normalize_text(cell.payload.definition) != normalize_text(session.current_prompt)
        ):
            return SelectionResult(accepted=False, reason=REASON_MISMATCH)

        cell.selected = True
        session.current_prompt = self._draw_prompt(session)

        new_lines = self._collect_new_lines(session)
        session.score += self.line_reward * len(new_lines)
        if len(session.completed_lines) >= len(self._patterns):
            session.is_complete = True
            logger.info(
                "Board %s complete: score=%d elapsed=%ds",
                session.session_id, session.score, session.elapsed_seconds,
            )
        return SelectionResult(accepted=True, lines_newly_completed=new_lines)

    def tick(self, session: GameSession, seconds: int = 1) -> None:
        """Advances the session timer. No-op once the game is complete."""
        if seconds < 0:
            raise ValidationError(f"Cannot move the timer backwards ({seconds}s)")
        if not session.is_complete:
            session.elapsed_seconds += seconds

    def snapshot(self, session: GameSession) -> dict[str, Any]:
        return snapshot(session)

    def is_in_completed_line(self, session: GameSession, cell_index: int) -> bool:
        return any(cell_index in line for line in session.completed_lines)

    # -- Internals ---------------------------------------------------------

    def _collect_new_lines(self, session: GameSession) -> list[list[int]]:
        done = {frozenset(line) for line in session.completed_lines}
        new_lines: list[list[int]] = []
        for pattern in self._patterns:
            if frozenset(pattern) in done:
                continue
            if all(session.cells[i].selected for i in pattern):
                line = list(pattern)
                session.completed_lines.append(line)
                new_lines.append(line)
        return new_lines

    def _draw_prompt(self, session: GameSession) -> str | None:
        open_cells = [cell for cell in session.cells if not cell.selected]
        if not open_cells:
            return None
        return self._rng.choice(open_cells).payload.definition

    @staticmethod
    def _prompt_is_open(session: GameSession, prompt: str) -> bool:
        wanted = normalize_text(prompt)
        return any(
            not cell.selected and normalize_text(cell.payload.definition) == wanted
            for cell in session.cells
        )


def _int_list(value: Any, name: str) -> list[int]:
    if not isinstance(value, list) or not all(
        isinstance(v, int) and not isinstance(v, bool) for v in value
    ):
        raise ValidationError(f"Snapshot {name} must be a list of integers")
    return value


def _non_negative_int(value: Any, name: str) -> int:
    if not isinstance(value, int) or isinstance(value, bool) or value < 0:
        raise ValidationError(f"Snapshot {name} must be a non-negative integer")
    return value
