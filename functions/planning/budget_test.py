import unittest

from planning import budget


class DefaultCategoriesTest(unittest.TestCase):

    def test_one_category_per_physical_step(self):
        names = [c.name for c in budget.default_categories()]

        self.assertEqual(len(names), 17)
        self.assertEqual(names[0], "Excavation")
        self.assertEqual(names[-1], "Finitions intérieures")
        self.assertEqual(names.count("Plomberie"), 1)
        self.assertEqual(names.count("Électricité"), 1)
        self.assertNotIn("Inspections finales", names)
        self.assertNotIn("Planification du projet", names)

    def test_colors_cycle(self):
        categories = budget.default_categories()

        self.assertEqual(categories[0].color, budget.CATEGORY_COLORS[0])
        self.assertEqual(categories[1].color, budget.CATEGORY_COLORS[1])
        self.assertTrue(all(c.budget == 0 for c in categories))


class NormalizeKeyTest(unittest.TestCase):

    def test_strips_accents_and_spaces(self):
        self.assertEqual(budget.normalize_key("  Fenêtres   et PORTES "), "fenetres et portes")
        self.assertEqual(budget.normalize_key(None), "")


class MapAnalysisTest(unittest.TestCase):

    def _by_name(self, mapped):
        return {c.name: c for c in mapped.categories}

    def test_taxes_and_contingency_are_separate(self):
        mapped = budget.map_analysis_to_categories(
            [
                {"name": "Taxes (TPS/TVQ)", "budget": 1500},
                {"name": "Contingence 5%", "budget": 500},
                {"name": "Budget imprévu", "budget": 250},
                {"name": "Toiture", "budget": 8000},
            ]
        )

        self.assertEqual(mapped.taxes, 1500)
        self.assertEqual(mapped.contingency, 750)
        self.assertEqual(mapped.sub_total, 8000)
        self.assertEqual(self._by_name(mapped)["Toiture"].budget, 8000)

    def test_foundation_spills_into_excavation(self):
        mapped = budget.map_analysis_to_categories(
            [
                {
                    "name": "Fondation",
                    "budget": 10000,
                    "items": [{"name": "Béton", "cost": 1000, "quantity": "30", "unit": "m3"}],
                }
            ]
        )
        categories = self._by_name(mapped)

        self.assertAlmostEqual(categories["Excavation"].budget, 1500)
        self.assertAlmostEqual(categories["Fondation"].budget, 5950)
        self.assertAlmostEqual(categories["Plomberie sous dalle"].budget, 850)
        self.assertAlmostEqual(categories["Coulée de dalle du sous-sol"].budget, 1700)
        self.assertEqual(categories["Excavation"].items[0].cost, 150)
        self.assertEqual(categories["Fondation"].items[0].cost, 595)
        self.assertEqual(categories["Fondation"].items[0].unit, "m3")
        self.assertAlmostEqual(mapped.sub_total, 10000)

    def test_explicit_excavation_keeps_foundation_weights(self):
        mapped = budget.map_analysis_to_categories(
            [
                {"name": "Excavation", "budget": 3000},
                {"name": "Fondation", "budget": 10000},
            ]
        )
        categories = self._by_name(mapped)

        self.assertAlmostEqual(categories["Excavation"].budget, 3000)
        self.assertAlmostEqual(categories["Fondation"].budget, 7000)

    def test_accent_insensitive_rules(self):
        mapped = budget.map_analysis_to_categories(
            [{"name": "ÉLECTRICITÉ", "budget": 2000}, {"name": "Chauffage/CVAC", "budget": 900}]
        )
        categories = self._by_name(mapped)

        self.assertEqual(categories["Électricité"].budget, 2000)
        self.assertEqual(categories["Chauffage et ventilation"].budget, 900)

    def test_foundation_items_are_rerouted(self):
        mapped = budget.map_analysis_to_categories(
            [
                {"name": "Excavation", "budget": 3000},
                {
                    "name": "Fondation",
                    "budget": 10000,
                    "items": [
                        {"name": "Drain français et remblai", "cost": 1000},
                        {"name": "Dalle de béton sous-sol", "cost": 2000},
                        {"name": "Coffrage murs", "cost": 3000},
                    ],
                },
            ]
        )
        categories = self._by_name(mapped)

        fondation = [item.name for item in categories["Fondation"].items]
        self.assertEqual(
            [(item.name, item.cost) for item in categories["Excavation"].items],
            [("Drain français et remblai", 700)],
        )
        self.assertNotIn("Drain français et remblai", fondation)
        self.assertNotIn("Dalle de béton sous-sol", fondation)
        self.assertIn("Coffrage murs", fondation)
        self.assertIn(
            ("Dalle de béton sous-sol", 1400),
            [(item.name, item.cost) for item in categories["Coulée de dalle du sous-sol"].items],
        )
        self.assertNotIn(
            "Dalle de béton sous-sol",
            [item.name for item in categories["Plomberie sous dalle"].items],
        )
        # Budgets do not follow the items.
        self.assertAlmostEqual(categories["Excavation"].budget, 3000)
        self.assertAlmostEqual(categories["Fondation"].budget, 7000)

    def test_unknown_category_dropped(self):
        mapped = budget.map_analysis_to_categories([{"name": "Piscine", "budget": 40000}])

        self.assertEqual(mapped.sub_total, 0)

    def test_fallback_matches_by_name(self):
        defaults = [budget.BudgetCategory(name="Garage détaché")]

        mapped = budget.map_analysis_to_categories(
            [{"name": "GARAGE DETACHE", "budget": 12000, "items": [{"name": "Dalle", "cost": 4000}]}],
            defaults=defaults,
        )

        self.assertEqual(mapped.categories[0].budget, 12000)
        self.assertEqual(mapped.categories[0].items[0].name, "Dalle")


class RerouteItemsTest(unittest.TestCase):

    def _categories(self, **items):
        return [
            budget.BudgetCategory(
                name=name,
                items=[budget.BudgetItem(name=item) for item in items.get(key, [])],
            )
            for key, name in (
                ("toiture", "Toiture"),
                ("structure", "Structure et charpente"),
                ("exterieur", "Revêtement extérieur"),
                ("murs", "Murs de division"),
            )
        ]

    def _names(self, categories):
        return {c.name: [item.name for item in c.items] for c in categories}

    def test_roof_sheathing_and_fascia_leave_roof(self):
        categories = self._categories(
            toiture=["Contreplaqué 5/8 pontage", "Fascia et soffites", "Bardeaux d'asphalte"],
            exterieur=["Tyvek pare-air", "Canexel"],
        )

        names = self._names(budget.reroute_items(categories))

        self.assertEqual(names["Toiture"], ["Bardeaux d'asphalte"])
        self.assertEqual(
            names["Structure et charpente"], ["Contreplaqué 5/8 pontage", "Tyvek pare-air"]
        )
        self.assertEqual(names["Revêtement extérieur"], ["Canexel", "Fascia et soffites"])

    def test_partitions_and_structural_items_swap(self):
        categories = self._categories(
            structure=["Cloisons intérieures 2x4", "Fermes de toit"],
            murs=["Solives de plancher", "Portes intérieures"],
        )

        names = self._names(budget.reroute_items(categories))

        self.assertEqual(
            names["Structure et charpente"], ["Fermes de toit", "Solives de plancher"]
        )
        self.assertEqual(
            names["Murs de division"], ["Portes intérieures", "Cloisons intérieures 2x4"]
        )

    def test_missing_target_leaves_items(self):
        categories = [
            budget.BudgetCategory(
                name="Toiture", items=[budget.BudgetItem(name="OSB 7/16")]
            )
        ]

        names = self._names(budget.reroute_items(categories))

        self.assertEqual(names["Toiture"], ["OSB 7/16"])


if __name__ == "__main__":
    unittest.main()
