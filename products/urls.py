# products/urls.py

from django.urls import path
from . import views

app_name = 'products'

urlpatterns = [
    path('products/', views.product_list, name='list'),
    path('products/add/', views.product_create, name='create'),
    path('products/<str:product_id>/edit/', views.product_edit, name='edit'),
    path('products/<str:product_id>/stock/', views.product_stock, name='stock'),
    path('products/<str:product_id>/delete/', views.product_delete, name='delete'),
    path('categories/', views.category_list, name='categories'),
    path('categories/add/', views.category_create, name='category_create'),
    path('categories/<str:category_id>/edit/', views.category_edit, name='category_edit'),
    path('categories/<str:category_id>/delete/', views.category_delete, name='category_delete'),
]
