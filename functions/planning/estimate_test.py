import unittest

from planning.budget import map_analysis_to_categories
from planning.estimate import (
    ATTACHED_WARNINGS,
    SITE_WARNINGS,
    estimate_from_extraction,
    is_attached_project,
)

EXTRACTION = {
    "extraction": {
        "type_projet": "CONSTRUCTION_NEUVE",
        "superficie_nouvelle_pi2": 1600,
        "nombre_etages": 2,
        "categories": [
            {
                "nom": "Toiture",
                "sous_total_categorie": 18000,
                "heures_main_oeuvre": 60,
                "items": [
                    {
                        "description": "Bardeaux d'asphalte",
                        "quantite": 24,
                        "unite": "carré",
                        "total": 9000,
                        "source": "Page 3",
                    },
                    {"description": "Fermes de toit", "total": 9000},
                ],
            },
            {"nom": "Électricité", "sous_total_categorie": 15000, "items": []},
        ],
        "elements_manquants": ["Devis de plomberie"],
        "ambiguites": ["Hauteur du sous-sol"],
        "incoherences": [],
    },
    "totaux": {
        "contingence_5_pourcent": 1650,
        "tps_5_pourcent": 1732.5,
        "tvq_9_975_pourcent": 3456.34,
        "total_ttc": 39838.84,
    },
    "validation": {"alertes": ["Ratio main-d'œuvre élevé"]},
    "recommandations": ["Obtenir trois soumissions"],
}


class EstimateFromExtractionTest(unittest.TestCase):

    def test_categories_become_rows(self):
        estimate = estimate_from_extraction(EXTRACTION)

        toiture = estimate.rows[0]
        self.assertEqual(toiture["name"], "Toiture")
        self.assertEqual(toiture["budget"], 18000)
        self.assertEqual(toiture["description"], "2 items - Main-d'œuvre: 60h")
        self.assertEqual(
            toiture["items"][0],
            {"name": "Bardeaux d'asphalte (Page 3)", "cost": 9000, "quantity": "24", "unit": "carré"},
        )
        self.assertEqual(toiture["items"][1]["name"], "Fermes de toit (N/A)")
        self.assertEqual(
            [row["name"] for row in estimate.rows],
            ["Toiture", "Électricité", "Budget imprévu (5%)", "Taxes"],
        )
        self.assertAlmostEqual(estimate.rows[3]["budget"], 5188.84)

    def test_summary_totals_and_warnings(self):
        estimate = estimate_from_extraction(EXTRACTION)

        self.assertEqual(estimate.summary, "Projet de 1600 pi² - 2 étage(s)")
        self.assertEqual(estimate.estimated_total, 39838.84)
        self.assertEqual(estimate.recommendations, ["Obtenir trois soumissions"])
        self.assertEqual(
            estimate.warnings,
            [
                "Élément manquant: Devis de plomberie",
                "Ambiguïté: Hauteur du sous-sol",
                "Ratio main-d'œuvre élevé",
                *SITE_WARNINGS,
            ],
        )

    def test_garage_adds_attachment_warnings(self):
        estimate = estimate_from_extraction(
            {"type_projet": "Garage détaché", "categories": []}
        )

        self.assertEqual(estimate.warnings[-len(ATTACHED_WARNINGS):], list(ATTACHED_WARNINGS))
        self.assertEqual(estimate.rows, [])
        self.assertEqual(estimate.estimated_total, 0)

    def test_rows_with_budget_are_kept(self):
        rows = [{"name": "Toiture", "budget": 9000, "items": []}]

        estimate = estimate_from_extraction(
            {"categories": rows, "projectSummary": "Chalet", "estimatedTotal": 9000}
        )

        self.assertEqual(estimate.rows, rows)
        self.assertEqual(estimate.summary, "Chalet")
        self.assertEqual(estimate.project_type, "CONSTRUCTION_NEUVE")

    def test_rows_feed_the_budget_mapping(self):
        mapped = map_analysis_to_categories(estimate_from_extraction(EXTRACTION).rows)

        by_name = {c.name: c for c in mapped.categories}
        self.assertEqual(by_name["Toiture"].budget, 18000)
        self.assertEqual(by_name["Électricité"].budget, 15000)
        self.assertEqual(mapped.contingency, 1650)
        self.assertAlmostEqual(mapped.taxes, 5188.84)
        self.assertEqual(mapped.sub_total, 33000)


class AttachedProjectTest(unittest.TestCase):

    def test_markers(self):
        self.assertTrue(is_attached_project("agrandissement arrière"))
        self.assertTrue(is_attached_project("Maison jumelée"))
        self.assertFalse(is_attached_project("CONSTRUCTION_NEUVE"))
        self.assertFalse(is_attached_project(None))


if __name__ == "__main__":
    unittest.main()
