from django.contrib.auth import get_user_model
from django.contrib.auth.password_validation import validate_password
from rest_framework import serializers

from csfle.fields import SUPPORTED_VERSIONS
from .models import UserEncryptionProfile

User = get_user_model()


def _validate_hex(value, field, min_len, max_len):
    value = value.strip().lower()
    try:
        bytes.fromhex(value)
    except ValueError:
        raise serializers.ValidationError(f"Invalid hex for {field}")

    if len(value) < min_len:
        raise serializers.ValidationError(f"{field} too short")
    if len(value) > max_len:
        raise serializers.ValidationError(f"{field} too long")

    return value


# =============================
# REGISTER
# =============================

class RegisterSerializer(serializers.ModelSerializer):
    """
    Sign-up by email. The username defaults to the email so the token
    endpoint can be called with either.
    """

    email = serializers.EmailField()
    username = serializers.CharField(required=False, allow_blank=True, max_length=150)
    password = serializers.CharField(write_only=True, min_length=8)

    class Meta:
        model = User
        fields = ("id", "username", "email", "password")

    def validate_email(self, email):
        email = email.strip().lower()
        if not email:
            raise serializers.ValidationError("Email is required")
        if User.objects.filter(email__iexact=email).exists():
            raise serializers.ValidationError("Email already registered")
        return email

    def validate(self, attrs):
        username = (attrs.get("username") or attrs["email"]).strip()
        if User.objects.filter(username__iexact=username).exists():
            raise serializers.ValidationError({"username": "Username already taken"})
        attrs["username"] = username

        validate_password(attrs["password"], user=User(username=username, email=attrs["email"]))
        return attrs

    def create(self, validated_data):
        # the encryption profile is created by the post_save signal
        return User.objects.create_user(**validated_data)


# =============================
# ENCRYPTION PROFILE
# =============================

class EncryptionProfileSerializer(serializers.ModelSerializer):

    encryptionKey = serializers.CharField(source="stable_key")

    class Meta:
        model = UserEncryptionProfile
        fields = (
            "salt",
            "encryptionKey",
            "algorithm",
            "version",
            "enabled",
            "created",
        )


class UserPublicSerializer(serializers.ModelSerializer):

    encryption = serializers.SerializerMethodField()

    class Meta:
        model = User
        fields = ("id", "username", "email", "encryption")

    def get_encryption(self, obj):
        profile, _ = UserEncryptionProfile.objects.get_or_create(user=obj)
        return EncryptionProfileSerializer(profile).data


# =============================
# INITIALIZE / STABLE KEY
# =============================

class InitializeEncryptionSerializer(serializers.Serializer):
    salt = serializers.CharField()
    algorithm = serializers.CharField(required=False)
    version = serializers.CharField(required=False)
    enabled = serializers.BooleanField(required=False, default=True)
    created = serializers.DateTimeField(required=False, allow_null=True)

    def validate_salt(self, value):
        return _validate_hex(value, "salt", 16, 128)

    def validate(self, attrs):
        algorithm = attrs.get("algorithm")
        version = attrs.get("version")

        if algorithm is not None and algorithm not in SUPPORTED_VERSIONS:
            raise serializers.ValidationError(
                {"algorithm": f"Unsupported encryption algorithm: {algorithm}"}
            )
        if version is not None:
            supported = SUPPORTED_VERSIONS.get(algorithm) if algorithm else set().union(*SUPPORTED_VERSIONS.values())
            if version not in supported:
                raise serializers.ValidationError(
                    {"version": f"Unsupported encryption version: {version}"}
                )
        return attrs


class StableKeySerializer(serializers.Serializer):
    encryptionKey = serializers.CharField(required=False, allow_blank=True)

    def validate_encryptionKey(self, value):
        if not value:
            return ""
        return _validate_hex(value, "encryptionKey", 32, 128)
