from rest_framework import serializers


class TriageBoardQuerySerializer(serializers.Serializer):
    facility = serializers.CharField(max_length=64, required=False)
    status = serializers.CharField(max_length=200, required=False)
    triageLevel = serializers.CharField(max_length=16, required=False)
    clinicianId = serializers.IntegerField(min_value=1, required=False)
    includeClosed = serializers.BooleanField(required=False, default=False)


class ClinicianQueueQuerySerializer(serializers.Serializer):
    date = serializers.DateField(required=False)
    limit = serializers.IntegerField(min_value=1, max_value=200, required=False)


class ClinicianSlotsQuerySerializer(serializers.Serializer):
    date = serializers.DateField()


class BedBoardQuerySerializer(serializers.Serializer):
    ward = serializers.CharField(max_length=16, required=False)


class OccupancyQuerySerializer(serializers.Serializer):
    start = serializers.DateTimeField()
    end = serializers.DateTimeField()
    ward = serializers.CharField(max_length=16, required=False)

    def validate(self, attrs):
        if attrs['end'] <= attrs['start']:
            raise serializers.ValidationError('end must be after start')
        return attrs
