# tasks/urls.py

from django.urls import path
from . import views

app_name = 'tasks'

urlpatterns = [
    path('', views.tasks_overview, name='overview'),
    path('list/', views.task_list, name='list'),
    path('create/', views.create_task, name='create'),
    path('generate/', views.generate_tasks, name='generate'),
    path('scheduler/', views.scheduler, name='scheduler'),
    path('templates/', views.template_list, name='templates'),
    path('templates/create/', views.template_form, name='template_create'),
    path('templates/<str:template_id>/edit/', views.template_form, name='template_edit'),
    path('templates/<str:template_id>/delete/', views.delete_template, name='template_delete'),
    path('templates/<str:template_id>/duplicate/', views.duplicate_template, name='template_duplicate'),
    path('<str:task_id>/', views.task_detail, name='detail'),
    path('<str:task_id>/edit/', views.edit_task, name='edit'),
    path('<str:task_id>/delete/', views.delete_task, name='delete'),
]
