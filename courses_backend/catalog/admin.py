# catalog/admin.py

from django.contrib import admin

from catalog.models import Course, CourseModule, Journey, JourneyCourse, Lesson


class CourseModuleInline(admin.TabularInline):
    model = CourseModule
    extra = 0


class JourneyCourseInline(admin.TabularInline):
    model = JourneyCourse
    extra = 0
    autocomplete_fields = ("course",)


@admin.register(Course)
class CourseAdmin(admin.ModelAdmin):
    list_display = ("title", "level", "price", "discount_enabled", "public", "created_at")
    list_filter = ("public", "level", "discount_enabled")
    search_fields = ("title",)
    inlines = [CourseModuleInline]


@admin.register(Lesson)
class LessonAdmin(admin.ModelAdmin):
    list_display = ("title", "module", "order", "duration_minutes")
    search_fields = ("title",)


@admin.register(Journey)
class JourneyAdmin(admin.ModelAdmin):
    list_display = ("title", "price", "access_duration_months", "public", "created_at")
    list_filter = ("public",)
    search_fields = ("title",)
    inlines = [JourneyCourseInline]
