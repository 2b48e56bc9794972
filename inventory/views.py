from django.shortcuts import render, redirect
from django.contrib import messages
from django.views.decorators.http import require_POST
import logging
from login.decorators import require_staff
from backend_api import BackendError, fetch_all, get_backend_client, payload_dict, payload_list
from services.query_state import parse_query_state
from .forms import (
    RAW_MATERIAL_CATEGORIES,
    RECIPE_CATEGORIES,
    RawMaterialForm,
    RecipeForm,
    parse_ingredient_rows,
)

logger = logging.getLogger(__name__)

RAW_MATERIAL_DEFAULTS = {'search': '', 'category': '', 'isActive': ''}
RECIPE_DEFAULTS = {'search': '', 'category': ''}


def _get_or_none(request, path, params=None):
    try:
        return get_backend_client(request).get(path, params)
    except BackendError as e:
        logger.error(f"Error loading {path}: {e}", exc_info=True)
        return None


@require_staff
def raw_material_list(request):
    """Raw materials with search / category / active filters from the URL."""
    state = parse_query_state(request.GET, RAW_MATERIAL_DEFAULTS)
    response = _get_or_none(request, '/raw-materials', state)
    if response is None or not response.ok:
        messages.error(request, "Failed to load raw materials")

    return render(request, 'inventory/raw_materials.html', {
        'materials': payload_list(response, 'rawMaterials'),
        'categories': RAW_MATERIAL_CATEGORIES,
        'state': state,
    })


@require_staff
def low_stock(request):
    response = _get_or_none(request, '/raw-materials/low-stock')
    if response is None or not response.ok:
        messages.error(request, "Failed to fetch low stock items")

    return render(request, 'inventory/low_stock.html', {
        'materials': payload_list(response, 'rawMaterials'),
    })


@require_staff
def raw_material_create(request):
    if request.method == 'POST':
        form = RawMaterialForm(request.POST)
        if form.is_valid():
            try:
                response = get_backend_client(request).post('/raw-materials', form.to_payload())
            except BackendError as e:
                logger.error(f"Error creating raw material: {e}", exc_info=True)
                messages.error(request, "Failed to create raw material")
                return render(request, 'inventory/raw_material_form.html', {'form': form})

            if response.ok:
                logger.info(f"Raw material '{form.cleaned_data['name']}' created")
                messages.success(request, "Raw material created successfully")
                return redirect('inventory:raw_materials')
            messages.error(request, response.error_message("Failed to create raw material"))
        else:
            messages.error(request, "Please correct the errors below.")
    else:
        form = RawMaterialForm()

    return render(request, 'inventory/raw_material_form.html', {'form': form})


@require_staff
def raw_material_edit(request, material_id):
    client = get_backend_client(request)

    if request.method == 'POST':
        form = RawMaterialForm(request.POST)
        if form.is_valid():
            try:
                response = client.put(f'/raw-materials/{material_id}', form.to_payload())
            except BackendError as e:
                logger.error(f"Error updating raw material {material_id}: {e}", exc_info=True)
                messages.error(request, "Failed to update raw material")
                return render(request, 'inventory/raw_material_form.html', {'form': form, 'material_id': material_id})

            if response.ok:
                logger.info(f"Raw material {material_id} updated")
                messages.success(request, "Raw material updated successfully")
                return redirect('inventory:raw_materials')
            messages.error(request, response.error_message("Failed to update raw material"))
        else:
            messages.error(request, "Please correct the errors below.")
        return render(request, 'inventory/raw_material_form.html', {'form': form, 'material_id': material_id})

    response = _get_or_none(request, f'/raw-materials/{material_id}')
    if response is None or not response.ok:
        messages.error(request, "Failed to load raw material")
        return redirect('inventory:raw_materials')

    material = payload_dict(response).get('rawMaterial') or payload_dict(response)
    form = RawMaterialForm(initial=RawMaterialForm.initial_from(material))
    return render(request, 'inventory/raw_material_form.html', {'form': form, 'material_id': material_id})


@require_staff
@require_POST
def raw_material_delete(request, material_id):
    try:
        response = get_backend_client(request).delete(f'/raw-materials/{material_id}')
    except BackendError as e:
        logger.error(f"Error deleting raw material {material_id}: {e}", exc_info=True)
        messages.error(request, "Failed to delete raw material")
        return redirect('inventory:raw_materials')

    if response.ok:
        logger.info(f"Raw material {material_id} deleted")
        messages.success(request, "Raw material deleted successfully")
    else:
        messages.error(request, response.error_message("Failed to delete raw material"))
    return redirect('inventory:raw_materials')


@require_staff
def recipe_list(request):
    state = parse_query_state(request.GET, RECIPE_DEFAULTS)
    response = _get_or_none(request, '/recipes', state)
    if response is None or not response.ok:
        messages.error(request, "Failed to load recipes")

    return render(request, 'inventory/recipes.html', {
        'recipes': payload_list(response, 'recipes'),
        'categories': RECIPE_CATEGORIES,
        'state': state,
    })


@require_staff
def recipe_create(request):
    """
    GET: recipe form with the raw material picker.
    POST: header fields via RecipeForm plus ingredient rows; at least one
    ingredient with a raw material is required.
    """
    client = get_backend_client(request)

    if request.method == 'POST':
        form = RecipeForm(request.POST)
        ingredients, ingredient_error = parse_ingredient_rows(request.POST)
        if form.is_valid() and not ingredient_error:
            try:
                response = client.post('/recipes', form.to_payload(ingredients))
            except BackendError as e:
                logger.error(f"Error creating recipe: {e}", exc_info=True)
                response = None
                messages.error(request, "Failed to create recipe")

            if response is not None and response.ok:
                logger.info(f"Recipe '{form.cleaned_data['name']}' created with {len(ingredients)} ingredient(s)")
                messages.success(request, "Recipe created successfully")
                return redirect('inventory:recipes')
            if response is not None:
                messages.error(request, response.error_message("Failed to create recipe"))
        else:
            if ingredient_error:
                messages.error(request, ingredient_error)
            if not form.is_valid():
                messages.error(request, "Please correct the errors below.")
    else:
        form = RecipeForm()

    results = fetch_all({'materials': lambda: client.get('/raw-materials', {'isActive': 'true'})})
    return render(request, 'inventory/recipe_form.html', {
        'form': form,
        'materials': payload_list(results['materials'], 'rawMaterials'),
        'ingredient_rows': range(5),
    })


@require_staff
def recipe_cost(request, recipe_id):
    """Cost breakdown of a recipe scaled to ``?servings=N`` (defaults to its serves)."""
    response = _get_or_none(request, f'/recipes/{recipe_id}')
    if response is None or not response.ok:
        messages.error(request, "Failed to load recipe")
        return redirect('inventory:recipes')

    recipe = payload_dict(response).get('recipe') or {}
    default_servings = recipe.get('serves') or 1
    try:
        servings = int(request.GET.get('servings') or default_servings)
    except (TypeError, ValueError):
        servings = default_servings
    if servings < 1:
        messages.error(request, "Servings must be at least 1.")
        servings = default_servings

    cost_response = _get_or_none(request, f'/recipes/{recipe_id}/cost', {'servings': servings})
    cost = None
    if cost_response is None or not cost_response.ok:
        messages.error(request, "Failed to calculate recipe cost")
    else:
        cost = payload_dict(cost_response)

    return render(request, 'inventory/recipe_cost.html', {
        'recipe': recipe,
        'recipe_id': recipe_id,
        'servings': servings,
        'cost': cost,
    })
