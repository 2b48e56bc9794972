"""
Test suite for catalogue products and categories.
Run with: python manage.py test products.tests
"""

from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import TestCase, Client, SimpleTestCase
from django.urls import reverse
from unittest.mock import patch, MagicMock
from backend_api import ApiResponse, BackendError
from products.forms import ProductForm, category_id


CATEGORIES = [
    {'_id': 'c1', 'name': 'Pickles', 'isActive': True},
    {'_id': 'c2', 'name': 'Spice Mixes', 'isActive': True},
]

PRODUCTS = [
    {'_id': 'p1', 'name': 'Mango Pickle', 'price': 250, 'stock': 40, 'category': {'_id': 'c1', 'name': 'Pickles'}},
    {'_id': 'p2', 'name': 'Andhra Spice Mix', 'price': 120, 'stock': 4, 'lowStockThreshold': 5, 'category': 'c2'},
    {'_id': 'p3', 'name': 'Gongura Pickle', 'price': 280, 'stock': 0, 'category': 'c1'},
]


def routed(responses):
    def handler(path, params=None):
        result = responses.get(path, ApiResponse(404, {'message': 'Not found'}))
        if isinstance(result, Exception):
            raise result
        return result
    return handler


def product_post(**overrides):
    data = {
        'name': 'Lemon Pickle',
        'description': 'Sun-cured lemons in sesame oil',
        'category': 'c1',
        'price': '199.50',
        'stock': '25',
    }
    data.update(overrides)
    return data


class ProductFormTestCase(SimpleTestCase):

    def test_category_choices_from_backend(self):
        form = ProductForm(categories=CATEGORIES)
        self.assertEqual(form.fields['category'].choices, [
            ('', 'Select category'), ('c1', 'Pickles'), ('c2', 'Spice Mixes'),
        ])

    def test_unknown_category_rejected(self):
        form = ProductForm(product_post(category='c9'), categories=CATEGORIES)
        self.assertFalse(form.is_valid())
        self.assertIn('category', form.errors)

    def test_payload_keeps_existing_image(self):
        form = ProductForm(product_post(image_url='http://cdn.test/old.png'), categories=CATEGORIES)
        self.assertTrue(form.is_valid())
        payload = form.to_payload()
        self.assertEqual(payload['price'], 199.5)
        self.assertEqual(payload['stock'], 25)
        self.assertEqual(payload['imageUrl'], 'http://cdn.test/old.png')
        self.assertEqual(form.to_payload('http://cdn.test/new.png')['imageUrl'], 'http://cdn.test/new.png')

    def test_non_image_upload_rejected(self):
        upload = SimpleUploadedFile('notes.txt', b'hello', content_type='text/plain')
        form = ProductForm(product_post(), {'image': upload}, categories=CATEGORIES)
        self.assertFalse(form.is_valid())
        self.assertIn('image', form.errors)

    def test_category_id(self):
        self.assertEqual(category_id({'_id': 'c1', 'name': 'Pickles'}), 'c1')
        self.assertEqual(category_id('c2'), 'c2')
        self.assertIsNone(category_id(None))


class ProductViewsTestCase(TestCase):

    def setUp(self):
        self.client = Client()
        session = self.client.session
        session['user_id'] = 'u1'
        session['username'] = 'Asha Rao'
        session['role'] = 'admin'
        session.save()

    def test_employee_denied(self):
        session = self.client.session
        session['role'] = 'employee'
        session.save()

        response = self.client.get(reverse('products:list'))

        self.assertRedirects(response, reverse('dashboard'), fetch_redirect_response=False)

    @patch('products.views.get_backend_client')
    def test_product_list(self, mock_backend):
        """Products get a category name and a stock badge."""
        client = MagicMock()
        client.get.side_effect = routed({
            '/products': ApiResponse(200, PRODUCTS),
            '/categories': ApiResponse(200, CATEGORIES),
        })
        mock_backend.return_value = client

        response = self.client.get(reverse('products:list'))

        self.assertEqual(response.status_code, 200)
        products = {p['_id']: p for p in response.context['products']}
        self.assertEqual(products['p1']['category_name'], 'Pickles')
        self.assertEqual(products['p2']['category_name'], 'Spice Mixes')
        self.assertEqual(products['p1']['stock_status'], 'good')
        self.assertEqual(products['p2']['stock_status'], 'low')
        self.assertEqual(products['p3']['stock_status'], 'out')

    @patch('products.views.get_backend_client')
    def test_product_list_filters(self, mock_backend):
        client = MagicMock()
        client.get.side_effect = routed({
            '/products': ApiResponse(200, {'products': PRODUCTS}),
            '/categories': ApiResponse(200, CATEGORIES),
        })
        mock_backend.return_value = client

        response = self.client.get(reverse('products:list'), {'category': 'c1', 'search': 'gongura'})

        self.assertEqual([p['_id'] for p in response.context['products']], ['p3'])

    @patch('products.views.get_backend_client')
    def test_product_list_backend_down(self, mock_backend):
        client = MagicMock()
        client.get.side_effect = BackendError("connection refused")
        mock_backend.return_value = client

        response = self.client.get(reverse('products:list'))

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.context['products'], [])
        messages = [str(m) for m in response.context['messages']]
        self.assertIn("Failed to fetch products", messages)

    @patch('products.views.get_backend_client')
    def test_create_product(self, mock_backend):
        client = MagicMock()
        client.get.side_effect = routed({'/categories': ApiResponse(200, CATEGORIES)})
        client.post.return_value = ApiResponse(201, {'_id': 'p9'})
        mock_backend.return_value = client

        response = self.client.post(reverse('products:create'), product_post())

        self.assertRedirects(response, reverse('products:list'), fetch_redirect_response=False)
        path, payload = client.post.call_args[0]
        self.assertEqual(path, '/products')
        self.assertEqual(payload['category'], 'c1')
        self.assertEqual(payload['imageUrl'], '')
        client.upload.assert_not_called()

    @patch('products.views.get_backend_client')
    def test_create_product_uploads_image_first(self, mock_backend):
        """A chosen image goes to /upload/image and its URL is saved on the product."""
        client = MagicMock()
        client.get.side_effect = routed({'/categories': ApiResponse(200, CATEGORIES)})
        client.upload.return_value = ApiResponse(200, {'imageUrl': 'http://cdn.test/lemon.png'})
        client.post.return_value = ApiResponse(201, {'_id': 'p9'})
        mock_backend.return_value = client

        image = SimpleUploadedFile('lemon.png', b'\x89PNG\r\n', content_type='image/png')
        response = self.client.post(reverse('products:create'), product_post(image=image))

        self.assertRedirects(response, reverse('products:list'), fetch_redirect_response=False)
        path, files = client.upload.call_args[0]
        self.assertEqual(path, '/upload/image')
        self.assertEqual(files['image'][0], 'lemon.png')
        self.assertEqual(files['image'][2], 'image/png')
        self.assertEqual(client.post.call_args[0][1]['imageUrl'], 'http://cdn.test/lemon.png')

    @patch('products.views.get_backend_client')
    def test_failed_upload_keeps_form(self, mock_backend):
        client = MagicMock()
        client.get.side_effect = routed({'/categories': ApiResponse(200, CATEGORIES)})
        client.upload.return_value = ApiResponse(413, {'message': 'File too large'})
        mock_backend.return_value = client

        image = SimpleUploadedFile('lemon.png', b'\x89PNG\r\n', content_type='image/png')
        response = self.client.post(reverse('products:create'), product_post(image=image))

        self.assertEqual(response.status_code, 200)
        client.post.assert_not_called()
        messages = [str(m) for m in response.context['messages']]
        self.assertIn("File too large", messages)

    @patch('products.views.get_backend_client')
    def test_edit_product_prefills_and_saves(self, mock_backend):
        client = MagicMock()
        client.get.side_effect = routed({
            '/products/p1': ApiResponse(200, PRODUCTS[0]),
            '/categories': ApiResponse(200, CATEGORIES),
        })
        client.put.return_value = ApiResponse(200, {})
        mock_backend.return_value = client

        response = self.client.get(reverse('products:edit', args=['p1']))
        self.assertEqual(response.context['form'].initial['category'], 'c1')

        response = self.client.post(reverse('products:edit', args=['p1']), product_post(
            name='Mango Pickle', price='260', image_url='http://cdn.test/mango.png'))

        self.assertRedirects(response, reverse('products:list'), fetch_redirect_response=False)
        path, payload = client.put.call_args[0]
        self.assertEqual(path, '/products/p1')
        self.assertEqual(payload['price'], 260.0)
        self.assertEqual(payload['imageUrl'], 'http://cdn.test/mango.png')

    @patch('products.views.get_backend_client')
    def test_edit_missing_product(self, mock_backend):
        client = MagicMock()
        client.get.side_effect = routed({'/categories': ApiResponse(200, CATEGORIES)})
        mock_backend.return_value = client

        response = self.client.get(reverse('products:edit', args=['nope']))

        self.assertRedirects(response, reverse('products:list'), fetch_redirect_response=False)

    @patch('products.views.get_backend_client')
    def test_update_stock(self, mock_backend):
        client = MagicMock()
        client.get.side_effect = routed({'/products/p2': ApiResponse(200, {'product': PRODUCTS[1]})})
        client.put.return_value = ApiResponse(200, {})
        mock_backend.return_value = client

        response = self.client.get(reverse('products:stock', args=['p2']))
        self.assertEqual(response.context['form'].initial, {'stock': 4, 'low_stock_threshold': 5})

        response = self.client.post(reverse('products:stock', args=['p2']), {
            'stock': '30',
            'low_stock_threshold': '8',
        })

        self.assertRedirects(response, reverse('products:list'), fetch_redirect_response=False)
        client.put.assert_called_with('/products/p2', {'stock': 30, 'lowStockThreshold': 8})

    @patch('products.views.get_backend_client')
    def test_negative_stock_rejected(self, mock_backend):
        client = MagicMock()
        client.get.side_effect = routed({'/products/p2': ApiResponse(200, PRODUCTS[1])})
        mock_backend.return_value = client

        response = self.client.post(reverse('products:stock', args=['p2']), {
            'stock': '-1',
            'low_stock_threshold': '8',
        })

        self.assertEqual(response.status_code, 200)
        client.put.assert_not_called()

    @patch('products.views.get_backend_client')
    def test_delete_product_post_only(self, mock_backend):
        client = MagicMock()
        client.delete.return_value = ApiResponse(200, {})
        mock_backend.return_value = client

        response = self.client.get(reverse('products:delete', args=['p1']))
        self.assertEqual(response.status_code, 405)

        response = self.client.post(reverse('products:delete', args=['p1']))
        self.assertRedirects(response, reverse('products:list'), fetch_redirect_response=False)
        client.delete.assert_called_once_with('/products/p1')


class CategoryViewsTestCase(TestCase):

    def setUp(self):
        self.client = Client()
        session = self.client.session
        session['user_id'] = 'u1'
        session['role'] = 'admin'
        session.save()

    @patch('products.views.get_backend_client')
    def test_category_list(self, mock_backend):
        client = MagicMock()
        client.get.return_value = ApiResponse(200, CATEGORIES)
        mock_backend.return_value = client

        response = self.client.get(reverse('products:categories'))

        self.assertEqual(len(response.context['categories']), 2)
        client.get.assert_called_with('/categories', None)

    @patch('products.views.get_backend_client')
    def test_create_category(self, mock_backend):
        client = MagicMock()
        client.post.return_value = ApiResponse(201, {'_id': 'c3'})
        mock_backend.return_value = client

        response = self.client.post(reverse('products:category_create'), {
            'name': ' Sweets ',
            'description': 'Festival sweets',
            'is_active': 'on',
        })

        self.assertRedirects(response, reverse('products:categories'), fetch_redirect_response=False)
        client.post.assert_called_with('/categories', {
            'name': 'Sweets',
            'description': 'Festival sweets',
            'isActive': True,
        })

    @patch('products.views.get_backend_client')
    def test_edit_category(self, mock_backend):
        client = MagicMock()
        client.get.return_value = ApiResponse(200, {'_id': 'c1', 'name': 'Pickles', 'isActive': False})
        client.put.return_value = ApiResponse(200, {})
        mock_backend.return_value = client

        response = self.client.get(reverse('products:category_edit', args=['c1']))
        self.assertFalse(response.context['form'].initial['is_active'])

        response = self.client.post(reverse('products:category_edit', args=['c1']), {'name': 'Pickles'})

        self.assertRedirects(response, reverse('products:categories'), fetch_redirect_response=False)
        client.put.assert_called_with('/categories/c1', {'name': 'Pickles', 'description': '', 'isActive': False})

    @patch('products.views.get_backend_client')
    def test_delete_category_error_message(self, mock_backend):
        client = MagicMock()
        client.delete.return_value = ApiResponse(400, {'message': 'Category has products'})
        mock_backend.return_value = client

        response = self.client.post(reverse('products:category_delete', args=['c1']))

        self.assertRedirects(response, reverse('products:categories'), fetch_redirect_response=False)
        messages = [str(m) for m in response.wsgi_request._messages]
        self.assertIn("Category has products", messages)
