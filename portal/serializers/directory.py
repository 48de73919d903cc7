from rest_framework import serializers

from portal.serializers.lookup import clean_text


class DirectoryQuerySerializer(serializers.Serializer):
    q = serializers.CharField(required=False, allow_blank=True, default='')
    page = serializers.IntegerField(required=False, min_value=1, default=1)
    limit = serializers.IntegerField(required=False, min_value=1, max_value=200, default=20)

    def validate_q(self, v):
        return clean_text(v)


class PatientSearchQuerySerializer(serializers.Serializer):
    q = serializers.CharField(required=False, allow_blank=True, default='')

    def validate_q(self, v):
        return clean_text(v)


class PatientEditSerializer(serializers.Serializer):
    PatientName = serializers.CharField(allow_blank=True)
    emiratesId = serializers.CharField(required=False, allow_blank=True, default='')
    insuranceId = serializers.CharField(required=False, allow_blank=True, default='')
    trLocation = serializers.CharField(required=False, allow_blank=True, default='')
    mobileNumber = serializers.CharField(required=False, allow_blank=True, default='')

    def validate(self, attrs):
        return {k: clean_text(v) for k, v in attrs.items()}


class StaffSerializer(serializers.Serializer):
    """Shape only; required-field rules are applied by ``staff_payload``."""
    empId = serializers.CharField(required=False, allow_blank=True, default='')
    name = serializers.CharField(required=False, allow_blank=True, default='')
    email = serializers.EmailField(required=False, allow_blank=True, default='')
    password = serializers.CharField(required=False, allow_blank=True, default='', trim_whitespace=False)
    role = serializers.CharField(required=False, allow_blank=True, default='staff')
    locationId = serializers.CharField(required=False, allow_blank=True, default='')
    managerLocation = serializers.ListField(child=serializers.CharField(), required=False, default=list)

    def validate_name(self, v):
        return clean_text(v)

    def validate_empId(self, v):
        return clean_text(v)
