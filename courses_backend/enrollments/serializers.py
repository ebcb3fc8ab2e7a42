from rest_framework import serializers

from catalog.serializers import CourseDetailSerializer, JourneySerializer


class EnrolledCourseSerializer(CourseDetailSerializer):
    access_end_date = serializers.SerializerMethodField()

    class Meta(CourseDetailSerializer.Meta):
        fields = CourseDetailSerializer.Meta.fields + ["access_end_date"]

    def get_access_end_date(self, obj):
        end_dates = self.context.get("end_dates", {})
        value = end_dates.get(obj.pk)
        return value.isoformat() if value else None


class EnrolledJourneySerializer(JourneySerializer):
    access_end_date = serializers.SerializerMethodField()

    class Meta(JourneySerializer.Meta):
        fields = JourneySerializer.Meta.fields + ["access_end_date"]

    def get_access_end_date(self, obj):
        end_dates = self.context.get("end_dates", {})
        value = end_dates.get(obj.pk)
        return value.isoformat() if value else None


class EnrollmentsResponseSerializer(serializers.Serializer):
    courses = EnrolledCourseSerializer(many=True)
    journeys = EnrolledJourneySerializer(many=True)


class HasAccessResponseSerializer(serializers.Serializer):
    hasAccess = serializers.BooleanField()
