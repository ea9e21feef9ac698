"""
Turn a model's plan estimate into budget analysis rows.

The model answers with French keys: `extraction.categories[].nom`,
`sous_total_categorie`, `totaux`, `elements_manquants`... The rows built here
have the `{"name", "budget", "description", "items"}` shape read by
`planning.budget.map_analysis_to_categories`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping

from planning.budget import as_number

CONTINGENCY_CATEGORY = "Budget imprévu (5%)"
TAXES_CATEGORY = "Taxes"
DEFAULT_PROJECT_TYPE = "CONSTRUCTION_NEUVE"

SITE_WARNINGS = (
    "PRÉPARATION DU SITE: Vérifier les coûts d'excavation, nivellement, et accès chantier",
    "PERMIS ET INSPECTIONS: Frais de permis de construction et inspections municipales à prévoir",
    "SERVICES PUBLICS: Confirmer les raccordements (eau, égout, électricité, gaz) et frais associés",
)

ATTACHED_WARNINGS = (
    "JUMELAGE STRUCTUREL: Travaux de connexion à la structure existante "
    "(linteaux, ancrages, renfort fondation)",
    "RACCORDEMENT ÉLECTRIQUE: Extension du panneau existant et mise aux normes possiblement requise",
    "RACCORDEMENT PLOMBERIE: Connexion aux systèmes existants (eau, drainage, chauffage)",
    "IMPERMÉABILISATION: Joint d'étanchéité entre nouvelle et ancienne construction critique",
    "HARMONISATION: Travaux de finition pour raccorder les matériaux extérieurs existants",
    "COUPE-FEU: Vérifier les exigences de séparation coupe-feu entre garage et habitation",
)

_ATTACHED_MARKERS = ("AGRANDISSEMENT", "GARAGE", "JUMELÉ", "JUMELE", "ANNEXE")


@dataclass
class PlanEstimate:
    project_type: str
    summary: str
    estimated_total: float
    rows: list[dict] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)


def _item_row(item: Mapping[str, Any]) -> dict:
    description = item.get("description") or item.get("name") or ""
    return {
        "name": f"{description} ({item.get('source') or 'N/A'})",
        "cost": as_number(item.get("total") or item.get("cost")),
        "quantity": str(item.get("quantite") or item.get("quantity") or ""),
        "unit": item.get("unite") or item.get("unit") or "",
    }


def _category_row(category: Mapping[str, Any]) -> dict:
    items = category.get("items") or []
    hours = category.get("heures_main_oeuvre") or 0
    return {
        "name": category.get("nom") or category.get("name") or "",
        "budget": as_number(category.get("sous_total_categorie") or category.get("budget")),
        "description": f"{len(items)} items - Main-d'œuvre: {hours}h",
        "items": [_item_row(item) for item in items],
    }


def _total_rows(totals: Mapping[str, Any]) -> list[dict]:
    rows = []
    contingency = as_number(totals.get("contingence_5_pourcent"))
    if contingency:
        rows.append(
            {
                "name": CONTINGENCY_CATEGORY,
                "budget": contingency,
                "description": "Budget imprévu",
                "items": [
                    {
                        "name": "Budget imprévu 5%",
                        "cost": contingency,
                        "quantity": "1",
                        "unit": "forfait",
                    }
                ],
            }
        )
    gst = as_number(totals.get("tps_5_pourcent"))
    qst = as_number(totals.get("tvq_9_975_pourcent"))
    if gst or qst:
        rows.append(
            {
                "name": TAXES_CATEGORY,
                "budget": gst + qst,
                "description": "TPS 5% + TVQ 9.975%",
                "items": [
                    {"name": "TPS (5%)", "cost": gst, "quantity": "1", "unit": "taxe"},
                    {"name": "TVQ (9.975%)", "cost": qst, "quantity": "1", "unit": "taxe"},
                ],
            }
        )
    return rows


def is_attached_project(project_type: str) -> bool:
    upper = (project_type or "").upper()
    return any(marker in upper for marker in _ATTACHED_MARKERS)


def estimate_from_extraction(data: Mapping[str, Any]) -> PlanEstimate:
    """
    Build analysis rows, warnings and totals from the model's JSON answer.

    An answer whose categories already carry a `budget` is taken as rows as
    they are.
    """
    categories = data.get("categories")
    if isinstance(categories, list) and categories and "budget" in categories[0]:
        return PlanEstimate(
            project_type=data.get("projectType") or DEFAULT_PROJECT_TYPE,
            summary=data.get("projectSummary") or "",
            estimated_total=as_number(data.get("estimatedTotal")),
            rows=list(categories),
            warnings=list(data.get("warnings") or []),
            recommendations=list(data.get("recommendations") or []),
        )

    extraction = data.get("extraction") or data
    totals = data.get("totaux") or {}
    validation = data.get("validation") or {}

    rows = [_category_row(c) for c in extraction.get("categories") or []]
    rows.extend(_total_rows(totals))

    project_type = extraction.get("type_projet") or DEFAULT_PROJECT_TYPE
    warnings = [
        *(f"Élément manquant: {e}" for e in extraction.get("elements_manquants") or []),
        *(f"Ambiguïté: {e}" for e in extraction.get("ambiguites") or []),
        *(f"Incohérence: {e}" for e in extraction.get("incoherences") or []),
        *(validation.get("alertes") or []),
        *SITE_WARNINGS,
    ]
    if is_attached_project(project_type):
        warnings.extend(ATTACHED_WARNINGS)

    summary = data.get("resume_projet") or (
        f"Projet de {extraction.get('superficie_nouvelle_pi2') or 0} pi² - "
        f"{extraction.get('nombre_etages') or 1} étage(s)"
    )
    return PlanEstimate(
        project_type=project_type,
        summary=summary,
        estimated_total=as_number(
            totals.get("total_ttc") or totals.get("sous_total_avant_taxes")
        ),
        rows=rows,
        warnings=warnings,
        recommendations=list(data.get("recommandations") or []),
    )
