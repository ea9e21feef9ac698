"""
Static catalog of construction steps, trades and default timings.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional, TypeVar

UNKNOWN_STEP_ORDER = 999
DEFAULT_STEP_DURATION = 5
DEFAULT_SUPPLIER_LEAD_DAYS = 21
DEFAULT_FABRICATION_LEAD_DAYS = 0
DEFAULT_TRADE = "autre"
DEFAULT_TRADE_COLOR = "#6B7280"


@dataclass(frozen=True)
class ConstructionStep:
    id: str
    title: str
    phase: str
    description: str


@dataclass(frozen=True)
class TradeType:
    id: str
    name: str
    color: str


@dataclass(frozen=True)
class MinimumDelay:
    after_step: str
    days: int
    reason: str


@dataclass(frozen=True)
class MeasurementRule:
    after_step: str
    notes: str


CONSTRUCTION_STEPS: tuple[ConstructionStep, ...] = (
    ConstructionStep(
        "planification",
        "Planification du projet",
        "pre-construction",
        "Définissez vos besoins, votre budget et vos objectifs avant de commencer.",
    ),
    ConstructionStep(
        "plans-permis",
        "Plans et permis",
        "pre-construction",
        "Faites préparer vos plans et obtenez tous les permis nécessaires.",
    ),
    ConstructionStep(
        "soumissions",
        "Soumissions",
        "pre-construction",
        "Obtenez et comparez les soumissions des différents corps de métier.",
    ),
    ConstructionStep(
        "financement",
        "Financement",
        "pre-construction",
        "Obtenez votre financement et préparez votre montage financier.",
    ),
    ConstructionStep(
        "excavation",
        "Excavation",
        "gros-oeuvre",
        "Préparation du terrain et creusage pour les fondations.",
    ),
    ConstructionStep(
        "fondation",
        "Fondation",
        "gros-oeuvre",
        "Construction des fondations et imperméabilisation.",
    ),
    ConstructionStep(
        "structure",
        "Structure et charpente",
        "gros-oeuvre",
        "Érection de la structure en bois ou acier de la maison.",
    ),
    ConstructionStep(
        "toiture",
        "Toiture",
        "gros-oeuvre",
        "Installation de la membrane et du revêtement de toiture.",
    ),
    ConstructionStep(
        "fenetres-portes",
        "Fenêtres et portes extérieures",
        "gros-oeuvre",
        "Installation de la fenestration et des portes pour fermer l'enveloppe.",
    ),
    ConstructionStep(
        "isolation",
        "Isolation et pare-vapeur",
        "second-oeuvre",
        "Installation de l'isolation thermique et du pare-vapeur.",
    ),
    ConstructionStep(
        "plomberie-sous-dalle",
        "Plomberie sous dalle",
        "second-oeuvre",
        "Installation de la plomberie sous la dalle de béton avant le coulage.",
    ),
    ConstructionStep(
        "dalle-sous-sol",
        "Coulée de dalle du sous-sol",
        "second-oeuvre",
        "Coulage de la dalle de béton du sous-sol après la plomberie brute.",
    ),
    ConstructionStep(
        "murs-division",
        "Murs de division",
        "second-oeuvre",
        "Construction des murs de division intérieurs non porteurs.",
    ),
    ConstructionStep(
        "plomberie-roughin",
        "Plomberie - Rough-in",
        "second-oeuvre",
        "Installation de la plomberie brute avant la fermeture des murs.",
    ),
    ConstructionStep(
        "electricite-roughin",
        "Électricité - Rough-in",
        "second-oeuvre",
        "Installation du filage électrique brut avant la fermeture des murs.",
    ),
    ConstructionStep(
        "hvac",
        "Chauffage et ventilation",
        "second-oeuvre",
        "Installation des systèmes de chauffage, climatisation et ventilation.",
    ),
    ConstructionStep(
        "exterieur",
        "Revêtement extérieur",
        "second-oeuvre",
        "Finition de l'enveloppe extérieure de la maison.",
    ),
    ConstructionStep(
        "gypse",
        "Gypse et peinture",
        "finitions",
        "Finition des murs et plafonds intérieurs.",
    ),
    ConstructionStep(
        "revetements-sol",
        "Revêtements de sol",
        "finitions",
        "Installation des planchers dans toutes les pièces.",
    ),
    ConstructionStep(
        "cuisine-sdb",
        "Travaux ébénisterie",
        "finitions",
        "Installation des armoires, comptoirs et appareils sanitaires.",
    ),
    ConstructionStep(
        "finitions-int",
        "Finitions intérieures",
        "finitions",
        "Derniers détails pour compléter l'intérieur.",
    ),
    ConstructionStep(
        "electricite-finition",
        "Électricité - Finition",
        "finitions",
        "Installation finale des appareils électriques.",
    ),
    ConstructionStep(
        "plomberie-finition",
        "Plomberie - Finition",
        "finitions",
        "Installation finale des appareils sanitaires.",
    ),
    ConstructionStep(
        "inspections-finales",
        "Inspections finales",
        "finitions",
        "Dernières vérifications et obtention du certificat d'occupation.",
    ),
)

_STEP_INDEX = {step.id: index for index, step in enumerate(CONSTRUCTION_STEPS)}

# Scheduled from today, before the construction start date.
PREPARATION_STEP_IDS = frozenset(
    {"planification", "plans-permis", "soumissions", "financement"}
)

# Project stage chosen at project creation -> first step left to schedule.
STAGE_TO_STEP = {
    "planification": "planification",
    "permis": "plans-permis",
    "fondation": "excavation",
    "structure": "structure",
    "finition": "gypse",
}

TRADE_TYPES: tuple[TradeType, ...] = (
    TradeType("excavation", "Excavation", "#8B4513"),
    TradeType("fondation", "Fondation/Béton", "#6B7280"),
    TradeType("beton", "Béton", "#9CA3AF"),
    TradeType("charpente", "Charpentier", "#D97706"),
    TradeType("toiture", "Couvreur", "#374151"),
    TradeType("fenetre", "Fenêtres/Portes", "#0891B2"),
    TradeType("electricite", "Électricien", "#FBBF24"),
    TradeType("plomberie", "Plombier", "#3B82F6"),
    TradeType("hvac", "Chauffage/Ventilation", "#EF4444"),
    TradeType("isolation", "Isolation", "#EC4899"),
    TradeType("gypse", "Plâtrier/Gypse", "#475569"),
    TradeType("peinture", "Peintre", "#A855F7"),
    TradeType("plancher", "Plancher", "#78350F"),
    TradeType("ceramique", "Céramiste", "#14B8A6"),
    TradeType("armoires", "Ébéniste/Armoires", "#A16207"),
    TradeType("comptoirs", "Comptoirs", "#4338CA"),
    TradeType("finitions", "Finition intérieure", "#059669"),
    TradeType("exterieur", "Revêtement extérieur", "#0284C7"),
    TradeType("amenagement", "Aménagement paysager", "#16A34A"),
    TradeType("inspecteur", "Inspecteur", "#DC2626"),
    TradeType("arpenteur", "Arpenteur", "#7C3AED"),
    TradeType("entrepreneur-general", "Entrepreneur général", "#1E3A5F"),
    TradeType("autre", "Autre", DEFAULT_TRADE_COLOR),
)

_TRADES_BY_ID = {trade.id: trade for trade in TRADE_TYPES}

STEP_TRADES = {
    "planification": "autre",
    "plans-permis": "autre",
    "soumissions": "autre",
    "financement": "autre",
    "excavation": "excavation",
    "fondation": "fondation",
    "structure": "charpente",
    "toiture": "toiture",
    "fenetres-portes": "fenetre",
    "isolation": "isolation",
    "plomberie-sous-dalle": "plomberie",
    "dalle-sous-sol": "beton",
    "murs-division": "charpente",
    "plomberie-roughin": "plomberie",
    "electricite-roughin": "electricite",
    "hvac": "hvac",
    "exterieur": "exterieur",
    "gypse": "gypse",
    "revetements-sol": "plancher",
    "cuisine-sdb": "armoires",
    "finitions-int": "finitions",
    "electricite-finition": "electricite",
    "plomberie-finition": "plomberie",
    "inspections-finales": "inspecteur",
}

INTERIOR_TRADES = frozenset(
    {"gypse", "peinture", "plancher", "ceramique", "armoires", "comptoirs", "finitions"}
)
EXTERIOR_TRADES = frozenset({"exterieur", "amenagement"})
# Administrative trades never block the site.
CONFLICT_IGNORED_TRADES = frozenset({"autre", "inspecteur"})

# Working days.
DEFAULT_DURATIONS = {
    "planification": 5,
    "plans-permis": 40,
    "soumissions": 15,
    "financement": 15,
    "excavation": 5,
    "fondation": 5,
    "structure": 8,
    "toiture": 2,
    "fenetres-portes": 2,
    "isolation": 8,
    "plomberie-sous-dalle": 1,
    "dalle-sous-sol": 2,
    "murs-division": 3,
    "plomberie-roughin": 4,
    "electricite-roughin": 4,
    "hvac": 7,
    "exterieur": 18,
    "gypse": 15,
    "revetements-sol": 7,
    "cuisine-sdb": 10,
    "finitions-int": 8,
    "electricite-finition": 3,
    "plomberie-finition": 3,
    "inspections-finales": 2,
}

SUPPLIER_LEAD_DAYS = {
    "fenetres-portes": 42,
    "cuisine-sdb": 35,
    "revetements-sol": 14,
}

FABRICATION_LEAD_DAYS = {
    "cuisine-sdb": 21,
    "fenetres-portes": 28,
}

# Calendar days that must elapse after another step ends.
MINIMUM_DELAYS = {
    "structure": MinimumDelay(
        after_step="fondation",
        days=21,
        reason="Cure du béton des fondations (minimum 3 semaines)",
    ),
    "exterieur": MinimumDelay(
        after_step="electricite-roughin",
        days=0,
        reason="Travaux extérieurs après le filage électrique",
    ),
}

MEASUREMENTS = {
    "cuisine-sdb": MeasurementRule(
        after_step="gypse", notes="Mesures après gypse, avant peinture"
    ),
    "revetements-sol": MeasurementRule(
        after_step="gypse", notes="Mesures après tirage de joints"
    ),
}

T = TypeVar("T")


def get_step(step_id: str) -> Optional[ConstructionStep]:
    index = _STEP_INDEX.get(step_id)
    return CONSTRUCTION_STEPS[index] if index is not None else None


def step_execution_order(step_id: str) -> int:
    """Position of a step in the catalog; unknown steps sort last."""
    return _STEP_INDEX.get(step_id, UNKNOWN_STEP_ORDER)


def sort_by_execution_order(items: Iterable[T]) -> list[T]:
    return sorted(items, key=lambda item: step_execution_order(item.step_id))


def steps_from_stage(current_stage: Optional[str]) -> list[ConstructionStep]:
    """Steps still to schedule for a project at `current_stage`."""
    first_step = STAGE_TO_STEP.get(current_stage) if current_stage else "planification"
    if first_step is None or first_step not in _STEP_INDEX:
        return list(CONSTRUCTION_STEPS)
    return list(CONSTRUCTION_STEPS[_STEP_INDEX[first_step] :])


def step_trade(step_id: str) -> str:
    return STEP_TRADES.get(step_id, DEFAULT_TRADE)


def trade_color(trade_id: str) -> str:
    trade = _TRADES_BY_ID.get(trade_id)
    return trade.color if trade else DEFAULT_TRADE_COLOR


def trade_name(trade_id: str) -> str:
    trade = _TRADES_BY_ID.get(trade_id)
    return trade.name if trade else "Autre"


def can_work_in_parallel(trade_a: str, trade_b: str) -> bool:
    """Exterior cladding and landscaping can share days with interior finishing."""
    return (trade_a in EXTERIOR_TRADES and trade_b in INTERIOR_TRADES) or (
        trade_b in EXTERIOR_TRADES and trade_a in INTERIOR_TRADES
    )
