"""
URL configuration for the potlam operations console.

Admin pages live under /admin/ (this console does not mount django.contrib.admin).
"""
from django.urls import include, path

urlpatterns = [
    path('login/', include('login.urls')),
    path('admin/cashbox/', include('cashbox.urls')),
    path('admin/expenses/', include('expenses.urls')),
    path('admin/pricing/', include('pricing.urls')),
    path('admin/inventory/', include('inventory.urls')),
    path('admin/tasks/', include('tasks.urls')),
    path('admin/', include('products.urls')),
    path('', include('shop.urls')),
    path('', include('dashboard.urls')),
]
