# notevault/urls.py
from django.contrib import admin
from django.urls import path, include
from .healthcheck import healthcheck

# SimpleJWT views
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

urlpatterns = [
    path('admin/', admin.site.urls),

    # auth/token endpoints
    path('api/auth/token/', TokenObtainPairView.as_view(), name='token_obtain_pair'),
    path('api/auth/token/refresh/', TokenRefreshView.as_view(), name='token_refresh'),

    # Register
    path('api/auth/', include('users.urls_auth')),

    # Encryption profile
    path('api/users/', include('users.urls')),

    # Notes
    path('api/notes/', include('notes.urls')),

    # Healthcheck endpoint
    path('healthz/', healthcheck, name='healthcheck'),
]
