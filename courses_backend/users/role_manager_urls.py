# users/role_manager_urls.py

from django.urls import path

from .views import RoleEmailView

app_name = "role_manager"

urlpatterns = [
    path("", RoleEmailView.as_view(), name="role-emails"),
]
