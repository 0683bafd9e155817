from django.urls import path
from . import views

urlpatterns = [
    path('ingredients/', views.IngredientListCreateView.as_view(), name='ingredient_list'),
    path('ingredients/<int:ingredient_id>/', views.IngredientDetailView.as_view(), name='get_ingredient'),
    path('stock/', views.StockTransactionView.as_view(), name='stock_transactions'),
]
