from rest_framework import serializers
from django.contrib.auth import get_user_model
from django.contrib.auth.password_validation import validate_password

from users.models import RoleEmail

User = get_user_model()


# ---------------- REGISTER ----------------
class RegisterSerializer(serializers.ModelSerializer):
    """
    Role is NOT client-controlled: it is resolved from RoleEmail.
    """

    password = serializers.CharField(
        write_only=True,
        validators=[validate_password],
        style={"input_type": "password"},
    )

    class Meta:
        model = User
        fields = [
            "email",
            "password",
            "name",
            "image_url",
        ]

    def create(self, validated_data):
        return User.objects.create_user(
            email=validated_data["email"],
            password=validated_data["password"],
            name=validated_data.get("name", ""),
            image_url=validated_data.get("image_url", ""),
        )


# ---------------- LOGIN (INPUT ONLY) ----------------
class LoginSerializer(serializers.Serializer):
    """
    Input validation only.
    Authentication is handled in the view.
    """
    email = serializers.EmailField()
    password = serializers.CharField(
        write_only=True,
        style={"input_type": "password"},
    )


class LoginResponseSerializer(serializers.Serializer):
    message = serializers.CharField()
    user_id = serializers.UUIDField()
    email = serializers.EmailField()
    role = serializers.CharField()
    access = serializers.CharField()
    refresh = serializers.CharField()


# ---------------- USER OUTPUT ----------------
class UserSerializer(serializers.ModelSerializer):
    """
    Safe user representation for frontend consumption.
    """
    class Meta:
        model = User
        fields = [
            "id",
            "email",
            "name",
            "image_url",
            "role",
        ]


# ---------------- ROLE MANAGER ----------------
class RoleEmailSerializer(serializers.ModelSerializer):
    class Meta:
        model = RoleEmail
        fields = ["id", "email", "role", "created_at"]
        read_only_fields = ["id", "created_at"]
        # Uniqueness is reported as 409 by the view, not as a field error.
        extra_kwargs = {"email": {"validators": []}}


class RoleEmailDeleteSerializer(serializers.Serializer):
    email = serializers.EmailField()
