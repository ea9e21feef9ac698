"""
Budget categories derived from the construction steps, and the mapping of
an AI quote/plan analysis onto them.
"""

from __future__ import annotations

import dataclasses
import unicodedata
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Mapping, Optional, Sequence

from planning.catalog import CONSTRUCTION_STEPS

CATEGORY_COLORS = (
    "#3B82F6",
    "#F97316",
    "#22C55E",
    "#EAB308",
    "#EC4899",
    "#06B6D4",
    "#8B5CF6",
    "#EF4444",
    "#14B8A6",
    "#A855F7",
    "#F59E0B",
    "#10B981",
    "#0EA5E9",
    "#DB2777",
    "#64748B",
    "#78716C",
    "#0891B2",
)

_BUDGET_PHASES = ("gros-oeuvre", "second-oeuvre", "finitions")

# Rough-in and finish phases share one budget line.
MERGED_CATEGORIES = {
    "plomberie-roughin": "Plomberie",
    "plomberie-finition": "Plomberie",
    "electricite-roughin": "Électricité",
    "electricite-finition": "Électricité",
}

EXCAVATION_SHARE_OF_FOUNDATION = 0.15


@dataclass
class BudgetItem:
    name: str
    cost: float = 0
    quantity: str = ""
    unit: str = ""


@dataclass
class BudgetCategory:
    name: str
    budget: float = 0
    spent: float = 0
    color: str = CATEGORY_COLORS[0]
    description: str = ""
    items: list[BudgetItem] = field(default_factory=list)

    def as_dict(self) -> dict:
        return dataclasses.asdict(self)


@dataclass
class MappedBudget:
    categories: list[BudgetCategory]
    contingency: float
    taxes: float
    sub_total: float


# Normalized analysis category -> [(step category title, weight)].
ANALYSIS_TO_CATEGORY: dict[str, list[tuple[str, float]]] = {
    "excavation": [("Excavation", 1)],
    "fondation": [
        ("Fondation", 0.7),
        ("Plomberie sous dalle", 0.1),
        ("Coulée de dalle du sous-sol", 0.2),
    ],
    "structure": [("Structure et charpente", 0.85), ("Murs de division", 0.15)],
    "structure et charpente": [("Structure et charpente", 1)],
    "toiture": [("Toiture", 1)],
    "fenetres et portes": [("Fenêtres et portes extérieures", 1)],
    "fenetres et portes exterieures": [("Fenêtres et portes extérieures", 1)],
    "isolation": [("Isolation et pare-vapeur", 1)],
    "isolation et pare-air": [("Isolation et pare-vapeur", 1)],
    "isolation et pare air": [("Isolation et pare-vapeur", 1)],
    "isolation et pare-vapeur": [("Isolation et pare-vapeur", 1)],
    "electricite": [("Électricité", 1)],
    "plomberie": [("Plomberie", 1)],
    "plomberie sous dalle": [("Plomberie sous dalle", 1)],
    "coulee de dalle du sous-sol": [("Coulée de dalle du sous-sol", 1)],
    "murs de division": [("Murs de division", 1)],
    "chauffage/cvac": [("Chauffage et ventilation", 1)],
    "chauffage et cvac": [("Chauffage et ventilation", 1)],
    "chauffage": [("Chauffage et ventilation", 1)],
    "chauffage et ventilation": [("Chauffage et ventilation", 1)],
    "chauffage et ventilation (hvac)": [("Chauffage et ventilation", 1)],
    "hvac": [("Chauffage et ventilation", 1)],
    "revetement exterieur": [("Revêtement extérieur", 1)],
    "gypse": [("Gypse et peinture", 1)],
    "gypse et peinture": [("Gypse et peinture", 1)],
    "peinture": [("Gypse et peinture", 1)],
    "revetements de sol": [("Revêtements de sol", 1)],
    "revetement de sol": [("Revêtements de sol", 1)],
    "plancher": [("Revêtements de sol", 1)],
    "planchers": [("Revêtements de sol", 1)],
    "travaux ebenisterie": [("Travaux ébénisterie", 1)],
    "ebenisterie": [("Travaux ébénisterie", 1)],
    "finitions interieures": [("Finitions intérieures", 1)],
    "finition interieure": [
        ("Gypse et peinture", 0.4),
        ("Revêtements de sol", 0.25),
        ("Travaux ébénisterie", 0.2),
        ("Finitions intérieures", 0.15),
    ],
    "cuisine": [("Travaux ébénisterie", 1)],
    "salle de bain": [("Travaux ébénisterie", 1)],
    "salles de bain": [("Travaux ébénisterie", 1)],
}


def normalize_key(value: Any) -> str:
    """Lowercase, strip accents and collapse whitespace."""
    text = unicodedata.normalize("NFD", str(value or "").strip().lower())
    text = "".join(ch for ch in text if not unicodedata.combining(ch))
    return " ".join(text.split())


def _round_half_up(value: float) -> int:
    return int(value + 0.5) if value >= 0 else -int(-value + 0.5)


def as_number(value: Any) -> float:
    try:
        return float(value or 0)
    except (TypeError, ValueError):
        return 0.0


def default_categories() -> list[BudgetCategory]:
    """One empty category per physical work step, in execution order."""
    categories: list[BudgetCategory] = []
    merged: dict[str, BudgetCategory] = {}
    for step in CONSTRUCTION_STEPS:
        if step.phase not in _BUDGET_PHASES or step.id == "inspections-finales":
            continue
        merged_name = MERGED_CATEGORIES.get(step.id)
        if merged_name and merged_name in merged:
            category = merged[merged_name]
            category.description = f"{category.description} {step.description}"
            continue
        category = BudgetCategory(
            name=merged_name or step.title,
            color=CATEGORY_COLORS[len(categories) % len(CATEGORY_COLORS)],
            description=step.description,
        )
        if merged_name:
            merged[merged_name] = category
        categories.append(category)
    return categories


def _items(raw: Optional[Iterable[Mapping[str, Any]]]) -> list[BudgetItem]:
    return [
        BudgetItem(
            name=str(item.get("name", "")),
            cost=as_number(item.get("cost")),
            quantity=str(item.get("quantity", "") or ""),
            unit=str(item.get("unit", "") or ""),
        )
        for item in raw or []
    ]


# Keyword rules used to move items the analysis filed under the wrong step.
# Names are compared after normalize_key.
_DRAIN_WORDS = ("drain", "remblai", "puisard")
_ROOF_STRUCTURE_WORDS = ("contreplaque", "osb", "pontage", "plywood", "decking", "7/16", "5/8")
_EXTERIOR_FINISH_WORDS = ("fascia", "soffite", "soffit", "gouttiere", "descente")
_HOUSEWRAP_WORDS = ("tyvek", "papier construction", "pare-air", "pare air", "housewrap")
_STRUCTURAL_WORDS = (
    "solive", "ferme", "contreplaque", "osb", "charpente mur", "murs exterieurs",
    "mur exterieur", "perimetre", "prefabrique", "toiture", "pontage", "plancher",
    "5/8", "2x6", "2x10", "2x12", "tyvek", "papier construction", "autres elements",
)
_NOT_PLUMBING_WORDS = (
    "beton", "dalle", "coffrage", "finition", "25 mpa", "4 pouces", '4"', "4 po",
    "semelle", "fondation", "footing", "solage", "8' hauteur", "8 pieds",
    "perimetre", "impermeabilisation", "solive", "ferme", "contreplaque", "osb",
    "charpente", "murs exterieurs", "pontage", "plancher", "5/8", "2x6",
    "autres elements",
)
_FOUNDATION_NOT_SLAB_WORDS = (
    "semelle", "mur de fondation", "murs de fondation", "murs fondation",
    "fondation beton", "footing", "solage", "8' hauteur", "8 pieds", "hauteur 8",
    "ml fondation", "perimetre", "coffrage et finition", "coffrage mur",
    "impermeabilisation", "beton coule", "25 mpa avec air", "autres elements",
)

Route = tuple[Callable[[str], bool], Optional[str]]


def _any_of(words: Sequence[str]) -> Callable[[str], bool]:
    return lambda name: any(word in name for word in words)


def _is_slab(name: str) -> bool:
    has_dalle = "dalle" in name or "plancher beton" in name
    has_4in = any(word in name for word in ("4 pouces", '4"', "4 po"))
    has_basement = "sous-sol" in name or "sous sol" in name
    has_25mpa = "25 mpa" in name or "beton 25" in name
    # 25 MPa alone is also used for foundation walls.
    return (
        has_dalle
        or has_4in
        or "coffrage et finition" in name
        or (has_25mpa and has_basement)
    )


def _is_partition(name: str) -> bool:
    return "cloison" in name or (
        "interieur" in name and any(w in name for w in ("mur", "partition", "2x4"))
    )


def _move_items(
    by_name: Mapping[str, BudgetCategory],
    source_name: str,
    routes: Sequence[Route],
    require_targets: bool = True,
) -> None:
    """
    Move the items of `source_name` matching a route to that route's target.
    A route without target (or with a missing target when `require_targets`
    is False) drops the item.
    """
    source = by_name.get(source_name)
    if source is None or not source.items:
        return
    if require_targets and any(
        target is not None and target not in by_name for _, target in routes
    ):
        return

    kept = []
    for item in source.items:
        key = normalize_key(item.name)
        for matches, target in routes:
            if matches(key):
                if target is not None and target in by_name:
                    by_name[target].items.append(item)
                break
        else:
            kept.append(item)
    source.items = kept


def reroute_items(categories: list[BudgetCategory]) -> list[BudgetCategory]:
    """
    Move misfiled items between categories, in place. Drains and backfill go
    to excavation, slab work to the basement slab, roof sheathing to the
    structure and fascia/soffits to the exterior siding. Budgets are left
    unchanged; only the item lists move.
    """
    by_name = {c.name: c for c in categories}
    structure = "Structure et charpente"

    _move_items(
        by_name,
        "Fondation",
        [(_any_of(_DRAIN_WORDS), "Excavation"), (_is_slab, "Coulée de dalle du sous-sol")],
    )
    _move_items(
        by_name,
        "Toiture",
        [
            (_any_of(_ROOF_STRUCTURE_WORDS), structure),
            (_any_of(_EXTERIOR_FINISH_WORDS), "Revêtement extérieur"),
        ],
    )
    _move_items(by_name, structure, [(_is_partition, "Murs de division")])
    _move_items(by_name, "Revêtement extérieur", [(_any_of(_HOUSEWRAP_WORDS), structure)])
    _move_items(by_name, "Isolation et pare-vapeur", [(_any_of(_HOUSEWRAP_WORDS), structure)])
    _move_items(
        by_name,
        "Murs de division",
        [(_any_of(_STRUCTURAL_WORDS), structure)],
        require_targets=False,
    )
    _move_items(by_name, "Plomberie sous dalle", [(_any_of(_NOT_PLUMBING_WORDS), None)])
    _move_items(
        by_name,
        "Coulée de dalle du sous-sol",
        [(_any_of(_FOUNDATION_NOT_SLAB_WORDS), "Fondation")],
        require_targets=False,
    )
    return categories


def map_analysis_to_categories(
    analysis: Iterable[Mapping[str, Any]],
    defaults: Optional[list[BudgetCategory]] = None,
) -> MappedBudget:
    """
    Spread an analysis' categories over the step categories.

    Each analysis row is `{"name", "budget", "description", "items"}`. Taxes
    and contingency rows are summed apart. Rows without a rule are matched to
    a step category by normalized name, or dropped.
    """
    analysis = list(analysis)
    categories = [
        BudgetCategory(name=c.name, color=c.color, description=c.description)
        for c in (defaults if defaults is not None else default_categories())
    ]
    by_name = {c.name: c for c in categories}
    by_key = {normalize_key(c.name): c for c in categories}

    contingency = 0.0
    taxes = 0.0
    has_excavation = any("excav" in normalize_key(row.get("name")) for row in analysis)

    for row in analysis:
        key = normalize_key(row.get("name"))
        budget = as_number(row.get("budget"))
        items = _items(row.get("items"))

        if "tax" in key:
            taxes += budget
            continue
        if "contingence" in key or "budget imprevu" in key:
            contingency += budget
            continue

        rule = ANALYSIS_TO_CATEGORY.get(key)
        if not rule:
            match = by_key.get(key) or by_name.get(str(row.get("name")))
            if match is not None:
                match.budget += budget
                match.items.extend(items)
            continue

        if key == "fondation" and not has_excavation:
            rule = [("Excavation", EXCAVATION_SHARE_OF_FOUNDATION)] + [
                (target, weight * (1 - EXCAVATION_SHARE_OF_FOUNDATION))
                for target, weight in rule
            ]
        if budget <= 0:
            continue

        weight_sum = sum(weight for _, weight in rule) or 1
        for target_name, weight in rule:
            target = by_name.get(target_name)
            if target is None:
                continue
            ratio = weight / weight_sum
            target.budget += budget * ratio
            if ratio > 0:
                target.items.extend(
                    dataclasses.replace(item, cost=_round_half_up(item.cost * ratio))
                    for item in items
                )

    reroute_items(categories)
    return MappedBudget(
        categories=categories,
        contingency=contingency,
        taxes=taxes,
        sub_total=sum(c.budget for c in categories),
    )
