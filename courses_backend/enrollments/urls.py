# enrollments/urls.py

from django.urls import path

from enrollments.views import EnrollmentListView, HasAccessView

app_name = "enrollments"

urlpatterns = [
    path("enrollments/", EnrollmentListView.as_view(), name="enrollments"),
    path("has-access/", HasAccessView.as_view(), name="has-access"),
]
