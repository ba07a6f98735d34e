# users/views.py
from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework import status, permissions

from .serializers import (
    InitializeEncryptionSerializer,
    RegisterSerializer,
    StableKeySerializer,
    UserPublicSerializer,
)
from .services.profile_service import EncryptionProfileService


class RegisterView(APIView):
    permission_classes = [permissions.AllowAny]

    def post(self, request):
        serializer = RegisterSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user = serializer.save()

        return Response(
            {
                "id": user.id,
                "username": user.username,
                "email": user.email,
                "status": "registered",
            },
            status=status.HTTP_201_CREATED,
        )


def _user_payload(user):
    return {"user": UserPublicSerializer(user).data}


# ==========================================
# ENCRYPTION PROFILE
# ==========================================

class EncryptionProfileView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request):
        EncryptionProfileService.get_or_create(request.user)
        return Response(_user_payload(request.user))

    def patch(self, request):
        """
        One-time initialization of salt and suite metadata.

        Body: {"encryption": {"salt", "algorithm", "version", "enabled", "created"}}
        (a flat body is accepted too).
        """
        data = request.data.get("encryption", request.data)
        if not isinstance(data, dict) or not data.get("salt"):
            return Response(
                {"error": "Encryption salt is required"},
                status=status.HTTP_400_BAD_REQUEST,
            )

        serializer = InitializeEncryptionSerializer(data=data)
        serializer.is_valid(raise_exception=True)

        _, initialized = EncryptionProfileService.initialize(
            request.user,
            **serializer.validated_data,
        )

        if not initialized:
            return Response(
                {"error": "Encryption already initialized"},
                status=status.HTTP_400_BAD_REQUEST,
            )

        return Response(_user_payload(request.user))


# ==========================================
# STABLE KEY
# ==========================================

class StableKeyView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request):
        serializer = StableKeySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        _, created = EncryptionProfileService.provision_stable_key(
            request.user,
            serializer.validated_data.get("encryptionKey") or None,
        )

        payload = _user_payload(request.user)
        if not created:
            payload["message"] = "Stable key already exists"

        return Response(payload, status=status.HTTP_200_OK)


# ==========================================
# RESET (destructive)
# ==========================================

class ResetEncryptionView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request):
        if request.data.get("confirm") is not True:
            return Response(
                {
                    "error": "Reset makes existing encrypted notes unreadable. "
                             "Send {\"confirm\": true} to proceed."
                },
                status=status.HTTP_400_BAD_REQUEST,
            )

        EncryptionProfileService.reset(request.user)
        return Response(_user_payload(request.user))
