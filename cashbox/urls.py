# cashbox/urls.py

from django.urls import path
from . import views

app_name = 'cashbox'

urlpatterns = [
    path('', views.cashbox_overview, name='overview'),
    path('sessions/', views.session_list, name='sessions'),
    path('sessions/open/', views.open_session, name='open_session'),
    path('sessions/<str:session_id>/', views.session_detail, name='session_detail'),
    path('sessions/<str:session_id>/close/', views.close_session, name='close_session'),
    path('sessions/<str:session_id>/delete/', views.delete_session, name='delete_session'),
    path('daily/', views.daily_sessions, name='daily_sessions'),
    path('settings/', views.session_type_settings, name='settings'),
]
