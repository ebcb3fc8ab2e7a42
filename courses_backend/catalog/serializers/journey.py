# catalog/serializers/journey.py

from rest_framework import serializers

from catalog.models import Journey, JourneyCourse
from catalog.serializers.course import CourseSummarySerializer


class JourneyCourseSerializer(serializers.ModelSerializer):
    course = CourseSummarySerializer(read_only=True)

    class Meta:
        model = JourneyCourse
        fields = ["id", "order", "course"]


class JourneySerializer(serializers.ModelSerializer):
    courses = serializers.SerializerMethodField()
    effective_price = serializers.DecimalField(
        max_digits=10, decimal_places=2, read_only=True
    )

    class Meta:
        model = Journey
        fields = [
            "id",
            "title",
            "description",
            "image_url",
            "price",
            "effective_price",
            "access_duration_months",
            "public",
            "courses",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["id", "created_at", "updated_at"]

    def get_courses(self, obj):
        links = obj.journey_courses.select_related("course").order_by("order", "created_at")
        return JourneyCourseSerializer(links, many=True).data

    def validate_price(self, value):
        if value is not None and value < 0:
            raise serializers.ValidationError("Price cannot be negative")
        return value


class JourneyCourseAddSerializer(serializers.Serializer):
    course_id = serializers.UUIDField(required=False)
    order = serializers.IntegerField(required=False, min_value=0)
