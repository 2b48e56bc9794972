# expenses/urls.py

from django.urls import path
from . import views

app_name = 'expenses'

urlpatterns = [
    path('', views.expenses_overview, name='overview'),
    path('list/', views.expense_list, name='list'),
    path('create/', views.create_expense, name='create'),
    path('<str:expense_id>/edit/', views.edit_expense, name='edit'),
    path('<str:expense_id>/delete/', views.delete_expense, name='delete'),
    path('categories/', views.expense_categories, name='categories'),
]
