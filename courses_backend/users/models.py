# users/models.py

import uuid

from django.contrib.auth.models import (
    AbstractBaseUser,
    BaseUserManager,
    PermissionsMixin,
)
from django.db import models

ROLE_USER = "user"
ROLE_MODERATOR = "moderator"
ROLE_ADMIN = "admin"

ROLE_CHOICES = [
    (ROLE_USER, "User"),
    (ROLE_MODERATOR, "Moderator"),
    (ROLE_ADMIN, "Admin"),
]

STAFF_ROLES = {ROLE_ADMIN, ROLE_MODERATOR}


# ---------------- ROLE ALLOW-LIST ----------------
class RoleEmail(models.Model):
    """
    Email -> role allow-list.

    Users signing up with an email listed here get that role instead of
    the default `user` role. Managed by admins through /api/role-manager/.
    """

    ASSIGNABLE_ROLES = [
        (ROLE_ADMIN, "Admin"),
        (ROLE_MODERATOR, "Moderator"),
    ]

    email = models.EmailField(unique=True)
    role = models.CharField(max_length=20, choices=ASSIGNABLE_ROLES)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]

    def save(self, *args, **kwargs):
        self.email = (self.email or "").strip().lower()
        super().save(*args, **kwargs)

    def __str__(self):
        return f"{self.email} -> {self.role}"


def resolve_role_for_email(email: str) -> str:
    entry = RoleEmail.objects.filter(email__iexact=(email or "").strip()).first()
    return entry.role if entry else ROLE_USER


# ---------------- USER MANAGER ----------------
class UserManager(BaseUserManager):
    use_in_migrations = True

    def create_user(self, email=None, password=None, **extra_fields):
        """
        Canonical auth identity is email.

        Rules:
        - If role is not supplied it is resolved from RoleEmail (default: user).
        - is_staff follows the role unless explicitly supplied.
        - Social sign-ins create users without a usable password.
        """
        if not email:
            raise ValueError("An email address is required")

        email = self.normalize_email(email).strip()

        role = extra_fields.pop("role", None) or resolve_role_for_email(email)
        extra_fields.setdefault("is_active", True)
        extra_fields.setdefault("is_staff", role in STAFF_ROLES)

        user = self.model(email=email, role=role, **extra_fields)

        if password:
            user.set_password(password)
        else:
            user.set_unusable_password()

        user.save(using=self._db)
        return user

    def create_superuser(self, email, password=None, **extra_fields):
        if not password:
            raise ValueError("Superuser must have a password")

        extra_fields.setdefault("role", ROLE_ADMIN)
        extra_fields.setdefault("is_staff", True)
        extra_fields.setdefault("is_superuser", True)
        extra_fields.setdefault("is_active", True)

        if extra_fields.get("is_staff") is not True:
            raise ValueError("Superuser must have is_staff=True")

        if extra_fields.get("is_superuser") is not True:
            raise ValueError("Superuser must have is_superuser=True")

        return self.create_user(email=email, password=password, **extra_fields)


# ---------------- USER MODEL ----------------
class User(AbstractBaseUser, PermissionsMixin):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    email = models.EmailField(unique=True)

    name = models.CharField(max_length=150, blank=True)
    image_url = models.URLField(blank=True, default="")

    role = models.CharField(
        max_length=20,
        choices=ROLE_CHOICES,
        default=ROLE_USER,
    )

    is_active = models.BooleanField(default=True)
    is_staff = models.BooleanField(default=False)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = UserManager()

    USERNAME_FIELD = "email"
    REQUIRED_FIELDS = []

    class Meta:
        ordering = ["-created_at"]

    def apply_role(self, role: str):
        self.role = role
        self.is_staff = role in STAFF_ROLES or self.is_superuser
        self.save(update_fields=["role", "is_staff", "updated_at"])

    def __str__(self):
        return f"{self.email} ({self.role})"
