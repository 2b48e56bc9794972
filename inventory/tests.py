"""
Test suite for raw materials and recipes.
Run with: python manage.py test inventory.tests
"""

from django.test import TestCase, Client, SimpleTestCase
from django.http import QueryDict
from django.urls import reverse
from unittest.mock import patch, MagicMock
from backend_api import ApiResponse, BackendError
from inventory.forms import parse_ingredient_rows


def ingredient_post(**lists):
    post = QueryDict(mutable=True)
    for key, values in lists.items():
        post.setlist(key, values)
    return post


class IngredientRowsTestCase(SimpleTestCase):
    """Test parsing of the parallel ingredient row lists."""

    def test_blank_rows_dropped(self):
        post = ingredient_post(
            rawMaterial=['m1', '', 'm2'],
            quantity=['0.5', '', '2'],
            unit=['kg', '', ' pcs '],
            notes=['diced', '', ''],
        )
        ingredients, error = parse_ingredient_rows(post)
        self.assertIsNone(error)
        self.assertEqual(ingredients, [
            {'rawMaterial': 'm1', 'quantity': 0.5, 'unit': 'kg', 'notes': 'diced'},
            {'rawMaterial': 'm2', 'quantity': 2.0, 'unit': 'pcs', 'notes': ''},
        ])

    def test_no_ingredients(self):
        ingredients, error = parse_ingredient_rows(ingredient_post(rawMaterial=['', '']))
        self.assertIsNone(ingredients)
        self.assertEqual(error, "Add at least one ingredient.")

    def test_non_numeric_quantity(self):
        post = ingredient_post(rawMaterial=['m1'], quantity=['lots'], unit=['kg'])
        _, error = parse_ingredient_rows(post)
        self.assertEqual(error, "Each ingredient needs a numeric quantity.")

    def test_zero_quantity(self):
        post = ingredient_post(rawMaterial=['m1'], quantity=['0'], unit=['kg'])
        _, error = parse_ingredient_rows(post)
        self.assertEqual(error, "Ingredient quantities must be greater than zero.")

    def test_missing_unit(self):
        post = ingredient_post(rawMaterial=['m1'], quantity=['1'], unit=[' '])
        _, error = parse_ingredient_rows(post)
        self.assertEqual(error, "Each ingredient needs a unit.")


class InventoryViewsTestCase(TestCase):

    def setUp(self):
        self.client = Client()
        session = self.client.session
        session['user_id'] = 'e1'
        session['username'] = 'Ravi'
        session['role'] = 'employee'
        session.save()

    def test_customer_denied(self):
        session = self.client.session
        session['role'] = 'user'
        session.save()

        response = self.client.get(reverse('inventory:raw_materials'))

        self.assertRedirects(response, reverse('dashboard'), fetch_redirect_response=False)

    @patch('inventory.views.get_backend_client')
    def test_raw_material_list_filters(self, mock_backend):
        """Employees see raw materials filtered by the query string."""
        client = MagicMock()
        client.get.return_value = ApiResponse(200, {'rawMaterials': [
            {'_id': 'm1', 'name': 'Onion', 'unit': 'kg', 'currentStock': 3, 'minimumStock': 5, 'costPerUnit': 40},
        ]})
        mock_backend.return_value = client

        response = self.client.get(reverse('inventory:raw_materials'), {'category': 'vegetables'})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(len(response.context['materials']), 1)
        path, params = client.get.call_args[0]
        self.assertEqual(path, '/raw-materials')
        self.assertEqual(params['category'], 'vegetables')

    @patch('inventory.views.get_backend_client')
    def test_raw_material_list_backend_down(self, mock_backend):
        client = MagicMock()
        client.get.side_effect = BackendError("connection refused")
        mock_backend.return_value = client

        response = self.client.get(reverse('inventory:raw_materials'))

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.context['materials'], [])
        messages = [str(m) for m in response.context['messages']]
        self.assertIn("Failed to load raw materials", messages)

    @patch('inventory.views.get_backend_client')
    def test_create_raw_material(self, mock_backend):
        client = MagicMock()
        client.post.return_value = ApiResponse(201, {'rawMaterial': {'_id': 'm9'}})
        mock_backend.return_value = client

        response = self.client.post(reverse('inventory:raw_material_create'), {
            'name': 'Toor Dal',
            'category': 'grains',
            'unit': 'kg',
            'cost_per_unit': '120.50',
            'minimum_stock': '2',
            'current_stock': '10',
            'is_active': 'on',
        })

        self.assertRedirects(response, reverse('inventory:raw_materials'), fetch_redirect_response=False)
        path, payload = client.post.call_args[0]
        self.assertEqual(path, '/raw-materials')
        self.assertEqual(payload['costPerUnit'], 120.5)
        self.assertEqual(payload['currentStock'], 10.0)
        self.assertTrue(payload['isActive'])

    @patch('inventory.views.get_backend_client')
    def test_create_recipe(self, mock_backend):
        """Header fields and ingredient rows go out in a single POST."""
        client = MagicMock()
        client.post.return_value = ApiResponse(201, {'recipe': {'_id': 'r1'}})
        mock_backend.return_value = client

        response = self.client.post(reverse('inventory:recipe_create'), {
            'name': 'Sambar',
            'category': 'main-course',
            'serves': '4',
            'prep_time_min': '15',
            'cook_time_min': '30',
            'difficulty': 'easy',
            'rawMaterial': ['m1', ''],
            'quantity': ['0.25', ''],
            'unit': ['kg', ''],
            'notes': ['', ''],
        })

        self.assertRedirects(response, reverse('inventory:recipes'), fetch_redirect_response=False)
        path, payload = client.post.call_args[0]
        self.assertEqual(path, '/recipes')
        self.assertEqual(payload['totalTimeMin'], 45)
        self.assertEqual(payload['ingredients'], [
            {'rawMaterial': 'm1', 'quantity': 0.25, 'unit': 'kg', 'notes': ''},
        ])

    @patch('inventory.views.get_backend_client')
    def test_create_recipe_without_ingredients(self, mock_backend):
        client = MagicMock()
        client.get.return_value = ApiResponse(200, {'rawMaterials': []})
        mock_backend.return_value = client

        response = self.client.post(reverse('inventory:recipe_create'), {
            'name': 'Sambar',
            'category': 'main-course',
            'serves': '4',
            'difficulty': 'easy',
        })

        self.assertEqual(response.status_code, 200)
        client.post.assert_not_called()
        messages = [str(m) for m in response.context['messages']]
        self.assertIn("Add at least one ingredient.", messages)

    @patch('inventory.views.get_backend_client')
    def test_recipe_cost_defaults_to_serves(self, mock_backend):
        client = MagicMock()
        client.get.side_effect = [
            ApiResponse(200, {'recipe': {'_id': 'r1', 'name': 'Sambar', 'serves': 4}}),
            ApiResponse(200, {
                'totalCost': 80, 'costPerServing': 20, 'totalCostForServings': 80,
                'ingredientCosts': [],
            }),
        ]
        mock_backend.return_value = client

        response = self.client.get(reverse('inventory:recipe_cost', args=['r1']))

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.context['servings'], 4)
        client.get.assert_called_with('/recipes/r1/cost', {'servings': 4})

    @patch('inventory.views.get_backend_client')
    def test_recipe_cost_scaled(self, mock_backend):
        client = MagicMock()
        client.get.side_effect = [
            ApiResponse(200, {'recipe': {'_id': 'r1', 'name': 'Sambar', 'serves': 4}}),
            ApiResponse(200, {
                'totalCost': 80, 'costPerServing': 20, 'totalCostForServings': 200,
                'ingredientCosts': [
                    {'ingredient': {'rawMaterial': {'name': 'Toor Dal', 'unit': 'kg', 'costPerUnit': 120},
                                    'quantity': 0.25, 'unit': 'kg'}, 'cost': 30},
                ],
            }),
        ]
        mock_backend.return_value = client

        response = self.client.get(reverse('inventory:recipe_cost', args=['r1']), {'servings': '10'})

        self.assertEqual(response.context['servings'], 10)
        self.assertEqual(response.context['cost']['totalCostForServings'], 200)
        client.get.assert_called_with('/recipes/r1/cost', {'servings': 10})
