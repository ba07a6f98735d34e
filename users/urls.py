# users/urls.py
from django.urls import path

from . import views

urlpatterns = [
    path("encryption/", views.EncryptionProfileView.as_view(), name="encryption-profile"),
    path("encryption/stable-key/", views.StableKeyView.as_view(), name="encryption-stable-key"),
    path("encryption/reset/", views.ResetEncryptionView.as_view(), name="encryption-reset"),
]
