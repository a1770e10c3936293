from django.urls import path

from . import views

app_name = "feed_inventory"

urlpatterns = [
    path('',                        views.stock_levels,     name='stock_levels'),
    path('types/new/',              views.feed_type_form,   name='feed_type_create'),
    path('types/<int:pk>/edit/',    views.feed_type_form,   name='feed_type_update'),
    path('types/<int:pk>/adjust/',  views.adjust_stock,     name='adjust_stock'),
    path('suppliers/',              views.supplier_list,    name='supplier_list'),
    path('suppliers/new/',          views.supplier_form,    name='supplier_create'),
    path('suppliers/<int:pk>/edit/', views.supplier_form,   name='supplier_update'),
    path('purchases/',              views.purchase_list,    name='purchase_list'),
    path('purchases/<int:pk>/delete/', views.purchase_delete, name='purchase_delete'),
]
