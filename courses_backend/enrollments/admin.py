from django.contrib import admin

from enrollments.models import Enrollment


@admin.register(Enrollment)
class EnrollmentAdmin(admin.ModelAdmin):
    list_display = ("user", "course", "journey", "start_date", "end_date", "source_payment")
    list_filter = ("end_date",)
    search_fields = ("user__email", "course__title", "journey__title")
    raw_id_fields = ("user", "course", "journey", "source_payment")
