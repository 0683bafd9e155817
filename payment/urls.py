from django.urls import path
from . import views

urlpatterns = [
    path('', views.SettlePaymentView.as_view(), name='settle_payment'),
]
