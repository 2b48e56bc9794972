from django.shortcuts import render, redirect
from django.contrib import messages
from django.views.decorators.http import require_POST
import logging
from login.decorators import require_admin
from backend_api import BackendError, fetch_all, get_backend_client, payload_dict, payload_list
from services.query_state import parse_query_state
from .forms import CategoryForm, ProductForm, StockForm, category_id

logger = logging.getLogger(__name__)

PRODUCT_DEFAULTS = {'search': '', 'category': ''}
DEFAULT_LOW_STOCK_THRESHOLD = 10


def _get_or_none(request, path, params=None):
    try:
        return get_backend_client(request).get(path, params)
    except BackendError as e:
        logger.error(f"Error loading {path}: {e}", exc_info=True)
        return None


def _unwrap(response, key):
    body = payload_dict(response)
    return body.get(key) or body


def _upload_image(request, upload):
    """
    Send an uploaded file to ``/upload/image``.

    Returns (image_url, error).
    """
    try:
        response = get_backend_client(request).upload(
            '/upload/image',
            {'image': (upload.name, upload.read(), upload.content_type)},
        )
    except BackendError as e:
        logger.error(f"Error uploading image {upload.name}: {e}", exc_info=True)
        return None, "Failed to upload image"

    if not response.ok:
        return None, response.error_message("Failed to upload image")
    image_url = payload_dict(response).get('imageUrl')
    if not image_url:
        return None, "Failed to upload image"
    logger.info(f"Image {upload.name} uploaded to {image_url}")
    return image_url, None


def _stock_status(product):
    threshold = product.get('lowStockThreshold')
    if threshold is None:
        threshold = DEFAULT_LOW_STOCK_THRESHOLD
    stock = product.get('stock') or 0
    if stock <= 0:
        return 'out'
    if stock <= threshold:
        return 'low'
    return 'good'


@require_admin
def product_list(request):
    """Catalogue products, filtered by name and category from the URL."""
    state = parse_query_state(request.GET, PRODUCT_DEFAULTS)
    client = get_backend_client(request)
    results = fetch_all({
        'products': lambda: client.get('/products'),
        'categories': lambda: client.get('/categories'),
    })
    if results['products'] is None or not results['products'].ok:
        messages.error(request, "Failed to fetch products")

    categories = payload_list(results['categories'], 'categories')
    names = {c.get('_id'): c.get('name') for c in categories}

    products = payload_list(results['products'], 'products')
    if state['search']:
        needle = state['search'].lower()
        products = [p for p in products if needle in (p.get('name') or '').lower()]
    if state['category']:
        products = [p for p in products if category_id(p.get('category')) == state['category']]

    for product in products:
        category = product.get('category')
        if isinstance(category, dict):
            product['category_name'] = category.get('name') or 'Unknown'
        else:
            product['category_name'] = names.get(category, 'Unknown')
        product['stock_status'] = _stock_status(product)

    return render(request, 'products/product_list.html', {
        'products': products,
        'categories': categories,
        'state': state,
    })


def _load_categories(request):
    response = _get_or_none(request, '/categories')
    if response is None or not response.ok:
        messages.error(request, "Failed to fetch categories")
    return payload_list(response, 'categories')


def _save_product(request, form, method, path, success, failure):
    """Upload a new image if one was chosen, then write the product."""
    image_url = None
    upload = form.cleaned_data.get('image')
    if upload:
        image_url, error = _upload_image(request, upload)
        if error:
            messages.error(request, error)
            return False

    client = get_backend_client(request)
    try:
        response = getattr(client, method)(path, form.to_payload(image_url))
    except BackendError as e:
        logger.error(f"Error saving product via {path}: {e}", exc_info=True)
        messages.error(request, failure)
        return False

    if not response.ok:
        messages.error(request, response.error_message(failure))
        return False
    logger.info(f"Product '{form.cleaned_data['name']}' saved via {method.upper()} {path}")
    messages.success(request, success)
    return True


@require_admin
def product_create(request):
    categories = _load_categories(request)

    if request.method == 'POST':
        form = ProductForm(request.POST, request.FILES, categories=categories)
        if form.is_valid():
            if _save_product(request, form, 'post', '/products',
                             "Product added successfully", "Failed to add product"):
                return redirect('products:list')
        else:
            messages.error(request, "Please correct the errors below.")
    else:
        form = ProductForm(categories=categories)

    return render(request, 'products/product_form.html', {'form': form})


@require_admin
def product_edit(request, product_id):
    client = get_backend_client(request)
    results = fetch_all({
        'product': lambda: client.get(f'/products/{product_id}'),
        'categories': lambda: client.get('/categories'),
    })
    if results['product'] is None or not results['product'].ok:
        messages.error(request, "Failed to fetch product")
        return redirect('products:list')

    product = _unwrap(results['product'], 'product')
    categories = payload_list(results['categories'], 'categories')

    if request.method == 'POST':
        form = ProductForm(request.POST, request.FILES, categories=categories)
        if form.is_valid():
            if _save_product(request, form, 'put', f'/products/{product_id}',
                             "Product updated successfully", "Failed to update product"):
                return redirect('products:list')
        else:
            messages.error(request, "Please correct the errors below.")
    else:
        form = ProductForm(initial=ProductForm.initial_from(product), categories=categories)

    return render(request, 'products/product_form.html', {
        'form': form,
        'product': product,
        'product_id': product_id,
    })


@require_admin
def product_stock(request, product_id):
    """Set a product's stock level and its low-stock threshold."""
    response = _get_or_none(request, f'/products/{product_id}')
    if response is None or not response.ok:
        messages.error(request, "Failed to fetch product")
        return redirect('products:list')
    product = _unwrap(response, 'product')

    if request.method == 'POST':
        form = StockForm(request.POST)
        if form.is_valid():
            try:
                update = get_backend_client(request).put(f'/products/{product_id}', form.to_payload())
            except BackendError as e:
                logger.error(f"Error updating stock for product {product_id}: {e}", exc_info=True)
                update = None
                messages.error(request, "Failed to update stock")

            if update is not None and update.ok:
                logger.info(f"Stock for product {product_id} set to {form.cleaned_data['stock']}")
                messages.success(request, "Stock updated successfully")
                return redirect('products:list')
            if update is not None:
                messages.error(request, update.error_message("Failed to update stock"))
        else:
            messages.error(request, "Please correct the errors below.")
    else:
        threshold = product.get('lowStockThreshold')
        form = StockForm(initial={
            'stock': product.get('stock') or 0,
            'low_stock_threshold': DEFAULT_LOW_STOCK_THRESHOLD if threshold is None else threshold,
        })

    return render(request, 'products/product_stock.html', {
        'form': form,
        'product': product,
        'product_id': product_id,
    })


@require_admin
@require_POST
def product_delete(request, product_id):
    try:
        response = get_backend_client(request).delete(f'/products/{product_id}')
    except BackendError as e:
        logger.error(f"Error deleting product {product_id}: {e}", exc_info=True)
        messages.error(request, "Failed to delete product")
        return redirect('products:list')

    if response.ok:
        logger.info(f"Product {product_id} deleted")
        messages.success(request, "Product deleted successfully")
    else:
        messages.error(request, response.error_message("Failed to delete product"))
    return redirect('products:list')


# Catalogue categories

@require_admin
def category_list(request):
    return render(request, 'products/category_list.html', {
        'categories': _load_categories(request),
    })


@require_admin
def category_create(request):
    if request.method == 'POST':
        form = CategoryForm(request.POST)
        if form.is_valid():
            try:
                response = get_backend_client(request).post('/categories', form.to_payload())
            except BackendError as e:
                logger.error(f"Error creating category: {e}", exc_info=True)
                messages.error(request, "Failed to create category")
                return render(request, 'products/category_form.html', {'form': form})

            if response.ok:
                logger.info(f"Category '{form.cleaned_data['name']}' created")
                messages.success(request, "Category created successfully")
                return redirect('products:categories')
            messages.error(request, response.error_message("Failed to create category"))
        else:
            messages.error(request, "Please correct the errors below.")
    else:
        form = CategoryForm()

    return render(request, 'products/category_form.html', {'form': form})


@require_admin
def category_edit(request, category_id):
    if request.method == 'POST':
        form = CategoryForm(request.POST)
        if form.is_valid():
            try:
                response = get_backend_client(request).put(f'/categories/{category_id}', form.to_payload())
            except BackendError as e:
                logger.error(f"Error updating category {category_id}: {e}", exc_info=True)
                messages.error(request, "Failed to update category")
                return render(request, 'products/category_form.html', {'form': form, 'category_id': category_id})

            if response.ok:
                logger.info(f"Category {category_id} updated")
                messages.success(request, "Category updated successfully")
                return redirect('products:categories')
            messages.error(request, response.error_message("Failed to update category"))
        else:
            messages.error(request, "Please correct the errors below.")
        return render(request, 'products/category_form.html', {'form': form, 'category_id': category_id})

    response = _get_or_none(request, f'/categories/{category_id}')
    if response is None or not response.ok:
        messages.error(request, "Failed to fetch category")
        return redirect('products:categories')

    form = CategoryForm(initial=CategoryForm.initial_from(_unwrap(response, 'category')))
    return render(request, 'products/category_form.html', {'form': form, 'category_id': category_id})


@require_admin
@require_POST
def category_delete(request, category_id):
    try:
        response = get_backend_client(request).delete(f'/categories/{category_id}')
    except BackendError as e:
        logger.error(f"Error deleting category {category_id}: {e}", exc_info=True)
        messages.error(request, "Failed to delete category")
        return redirect('products:categories')

    if response.ok:
        logger.info(f"Category {category_id} deleted")
        messages.success(request, "Category deleted successfully")
    else:
        messages.error(request, response.error_message("Failed to delete category"))
    return redirect('products:categories')
