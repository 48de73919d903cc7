import bleach
from rest_framework import serializers


class ClinicSearchQuerySerializer(serializers.Serializer):
    page = serializers.IntegerField(required=False, min_value=1, default=1)
    limit = serializers.IntegerField(required=False, min_value=1, max_value=200, default=20)
    empNo = serializers.CharField(required=False, allow_blank=True, default='')
    date = serializers.DateField(required=False, allow_null=True, default=None)
    visitStatus = serializers.CharField(required=False, allow_blank=True, default='')

    def validate_empNo(self, v):
        return bleach.clean((v or '').strip(), strip=True).upper()


class FormValuesSerializer(serializers.Serializer):
    """``{"values": {...}}`` for one form; field rules live in the form state."""
    values = serializers.DictField()
    patientId = serializers.CharField(required=False, allow_blank=True, default='')


class MultiFormSaveSerializer(serializers.Serializer):
    clinic = serializers.DictField(required=False)
    hospital = serializers.DictField(required=False)
    isolation = serializers.DictField(required=False)

    def validate(self, attrs):
        if not attrs:
            raise serializers.ValidationError('Nothing to save.')
        return attrs


class DerivedPreviewSerializer(serializers.Serializer):
    dateOfAdmission = serializers.CharField(required=False, allow_blank=True, default='')
    dateOfDischarge = serializers.CharField(required=False, allow_blank=True, default='')
    q1 = serializers.FloatField(required=False, allow_null=True, default=None)
    q2 = serializers.FloatField(required=False, allow_null=True, default=None)
    q3 = serializers.FloatField(required=False, allow_null=True, default=None)
    q4 = serializers.FloatField(required=False, allow_null=True, default=None)
    q5 = serializers.FloatField(required=False, allow_null=True, default=None)
    q6 = serializers.FloatField(required=False, allow_null=True, default=None)
    overallRating = serializers.FloatField(required=False, allow_null=True, default=None)
