from django.urls import path
from . import views

urlpatterns = [
    path('orders/', views.OrderListCreateView.as_view(), name='order_list'),
    path('orders/<int:order_id>/', views.OrderDetailView.as_view(), name='get_order'),
    path('orders/<int:order_id>/status/', views.OrderStatusView.as_view(), name='update_order_status'),
    path('public/orders/', views.PublicOrderCreateView.as_view(), name='create_public_order'),
    path('public/orders/<int:order_id>/', views.PublicOrderDetailView.as_view(), name='get_public_order'),
    path('tables/', views.TableListView.as_view(), name='table_list'),
    path('tables/<int:table_id>/status/', views.TableStatusView.as_view(), name='update_table_status'),
]
