# catalog/serializers/course.py

from rest_framework import serializers

from catalog.models import Course, CourseModule, Lesson


class LessonSerializer(serializers.ModelSerializer):
    class Meta:
        model = Lesson
        fields = ["id", "title", "order", "duration_minutes"]


class CourseModuleSerializer(serializers.ModelSerializer):
    lessons = LessonSerializer(many=True, read_only=True)

    class Meta:
        model = CourseModule
        fields = ["id", "title", "order", "lessons"]


class CourseSerializer(serializers.ModelSerializer):
    effective_price = serializers.DecimalField(
        max_digits=10, decimal_places=2, read_only=True
    )

    class Meta:
        model = Course
        fields = [
            "id",
            "title",
            "description",
            "image_url",
            "price",
            "discount_price",
            "discount_enabled",
            "effective_price",
            "level",
            "public",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["id", "created_at", "updated_at"]

    def validate(self, attrs):
        # Updates must always resend the descriptive fields.
        if self.instance is not None:
            missing = [
                f for f in ("title", "description")
                if not str(self.initial_data.get(f) or "").strip()
            ]
            if missing:
                raise serializers.ValidationError("Title and description are required")

        price = attrs.get("price")
        if price is not None and price < 0:
            raise serializers.ValidationError({"price": "Price cannot be negative"})

        discount = attrs.get("discount_price")
        if discount is not None and discount < 0:
            raise serializers.ValidationError({"discount_price": "Discount price cannot be negative"})

        return attrs


class CourseDetailSerializer(CourseSerializer):
    modules = CourseModuleSerializer(many=True, read_only=True)

    class Meta(CourseSerializer.Meta):
        fields = CourseSerializer.Meta.fields + ["modules"]


class CourseSummarySerializer(serializers.ModelSerializer):
    class Meta:
        model = Course
        fields = ["id", "title", "description", "image_url"]
