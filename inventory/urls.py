# inventory/urls.py

from django.urls import path
from . import views

app_name = 'inventory'

urlpatterns = [
    path('raw-materials/', views.raw_material_list, name='raw_materials'),
    path('raw-materials/low-stock/', views.low_stock, name='low_stock'),
    path('raw-materials/add/', views.raw_material_create, name='raw_material_create'),
    path('raw-materials/<str:material_id>/edit/', views.raw_material_edit, name='raw_material_edit'),
    path('raw-materials/<str:material_id>/delete/', views.raw_material_delete, name='raw_material_delete'),
    path('recipes/', views.recipe_list, name='recipes'),
    path('recipes/add/', views.recipe_create, name='recipe_create'),
    path('recipes/<str:recipe_id>/cost/', views.recipe_cost, name='recipe_cost'),
]
