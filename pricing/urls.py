# pricing/urls.py

from django.urls import path
from . import views

app_name = 'pricing'

urlpatterns = [
    path('coupons/', views.coupon_list, name='coupons'),
    path('coupons/create/', views.coupon_create, name='coupon_create'),
    path('coupons/<str:coupon_id>/edit/', views.coupon_edit, name='coupon_edit'),
    path('coupons/<str:coupon_id>/toggle/', views.coupon_toggle, name='coupon_toggle'),
    path('coupons/<str:coupon_id>/delete/', views.coupon_delete, name='coupon_delete'),
    path('discounts/', views.discount_list, name='discounts'),
    path('discounts/create/', views.discount_create, name='discount_create'),
    path('discounts/<str:discount_id>/edit/', views.discount_edit, name='discount_edit'),
    path('discounts/<str:discount_id>/toggle/', views.discount_toggle, name='discount_toggle'),
    path('discounts/<str:discount_id>/delete/', views.discount_delete, name='discount_delete'),
    path('settings/', views.pricing_settings, name='settings'),
]
