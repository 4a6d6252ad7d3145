"""Module catalog — single source of truth for playable modules.

Every module id the API accepts resolves through this module. Board
geometry, the free cell, and the per-line reward live here so the board
engine stays content-agnostic and the rest of the codebase never hardcodes
a module id.

Modules unlock in sequence: a module with unlock_after set stays locked
until the player has completed that module. MODULE_MAP order is display
order, and a prerequisite always comes earlier in it.

To add a module: add a ModuleConfig to MODULE_MAP (with unlock_after
naming an earlier module, if it should wait for one) and, for bingo
modules, a deck of exactly board_side**2 items to DECKS.
"""

from dataclasses import dataclass

from gameprogress.schemas import ContentItem

# ---------------------------------------------------------------------------
# ModuleConfig
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ModuleConfig:
    """Configuration for one playable module.

    Tier 1 leaf — imports only schemas. Consumed by config (default module
    validation), the bingo API (board setup), and the progress API
    (module id validation).
    """

    module_id: str
    title: str
    kind: str                  # "bingo", "sort", or "quiz"
    board_side: int = 5
    free_cell_index: int | None = 24
    line_reward: int = 10
    unlock_after: str | None = None   # prerequisite module id


MODULE_MAP: dict[str, ModuleConfig] = {
    "bingo-gmp": ModuleConfig(
        module_id="bingo-gmp", title="GMP Term Bingo", kind="bingo",
    ),
    "gmp-sort": ModuleConfig(
        module_id="gmp-sort", title="GMP Sorting", kind="sort",
        free_cell_index=None, unlock_after="bingo-gmp",
    ),
    "case-quiz": ModuleConfig(
        module_id="case-quiz", title="Deviation Case Quiz", kind="quiz",
        free_cell_index=None, unlock_after="gmp-sort",
    ),
}


def resolve_module(module_id: str) -> ModuleConfig:
    """Resolves a module id to its ModuleConfig.

    Args:
        module_id: Catalog key, e.g. "bingo-gmp".

    Returns:
        The ModuleConfig for the module.

    Raises:
        KeyError: If the module id is not in MODULE_MAP.
    """
    return MODULE_MAP[module_id]


# ---------------------------------------------------------------------------
# Bingo decks
# ---------------------------------------------------------------------------
# Order matters: index 24 is the free cell on a 5x5 board.

_GMP_TERMS: list[tuple[str, str]] = [
    ("GMP", "Regulations ensuring products are consistently produced and controlled to quality standards."),
    ("SOP", "A document providing detailed instructions to carry out specific tasks consistently."),
    ("CAPA", "A system used to correct and prevent issues in quality processes."),
    ("Audit", "A formal examination of processes and records to ensure compliance with standards."),
    ("Facility", "The physical premises where manufacturing or testing occurs."),
    ("Cleanroom", "A controlled environment with low levels of contaminants for sterile manufacturing."),
    ("OOS", "Abbreviation for results that fall outside specified acceptance criteria."),
    ("Validation", "Documented evidence that a system or process consistently produces expected results."),
    ("CDSCO", "India's national regulatory body for pharmaceuticals and medical devices."),
    ("Hygiene", "Practices and conditions that help maintain health and prevent contamination."),
    ("Contamination", "The unintended presence of harmful substances in products or environments."),
    ("QA", "A department responsible for ensuring processes meet quality standards."),
    ("Batch Record", "A document detailing the history of the production and testing of a batch."),
    ("WHO", "An international public health organization setting global quality and safety standards."),
    ("RCA", "A method used to identify the root cause of problems or failures."),
    ("Equipment", "Machines or tools used in the manufacturing process."),
    ("Documentation", "Written records that support every step of the manufacturing process."),
    ("Gowning", "The procedure of wearing sterile protective clothing in clean areas."),
    ("QA Head", "The person responsible for overseeing the Quality Assurance department."),
    ("Inspection", "An official review by regulators to ensure compliance with GMP."),
    ("Training", "Teaching employees to understand and follow GMP procedures."),
    ("Logs", "Records of events or processes maintained for traceability."),
    ("Process", "A series of actions or steps taken to manufacture a product."),
    ("Raw Material", "The basic substance used in the production of goods."),
    ("Free Space", "A pre-filled space to aid Bingo progression."),
]

DECKS: dict[str, tuple[ContentItem, ...]] = {
    "bingo-gmp": tuple(ContentItem(term=t, definition=d) for t, d in _GMP_TERMS),
}


def get_deck(module_id: str) -> list[ContentItem]:
    """Returns the board content for a bingo module, in cell order.

    Raises:
        KeyError: If the module has no deck.
    """
    return list(DECKS[module_id])
