# login/urls.py

from django.urls import path
from . import views

app_name = 'login'

urlpatterns = [
    path('', views.login_view, name='login_page'),
    path('register/', views.register, name='register_page'),
    path('exit/', views.logout_and_redirect, name='logout'),
    path('profile/', views.profile, name='profile'),
]
