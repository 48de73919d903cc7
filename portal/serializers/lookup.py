import bleach
from rest_framework import serializers

from portal.constants import DROPDOWN_CATEGORIES, SEARCH_CATEGORIES


def clean_text(v):
    return bleach.clean((v or '').strip(), strip=True)


class SuggestionQuerySerializer(serializers.Serializer):
    category = serializers.CharField()
    q = serializers.CharField(required=False, allow_blank=True, default='')

    def validate_category(self, v):
        v = (v or '').strip()
        if v not in SEARCH_CATEGORIES and v not in DROPDOWN_CATEGORIES:
            raise serializers.ValidationError('Unknown category.')
        return v

    def validate_q(self, v):
        return clean_text(v)


class OptionsQuerySerializer(serializers.Serializer):
    categories = serializers.CharField(required=False, allow_blank=True, default='')
    form = serializers.ChoiceField(choices=['clinic', 'hospital', 'isolation'], required=False)

    def validate_categories(self, v):
        return [c.strip() for c in (v or '').split(',') if c.strip()]


class SnapSerializer(serializers.Serializer):
    value = serializers.CharField(allow_blank=True)
    items = serializers.ListField(child=serializers.CharField(), allow_empty=True)
    strict = serializers.BooleanField(default=True)


class ProviderQuerySerializer(serializers.Serializer):
    sentTo = serializers.CharField(allow_blank=True)
    current = serializers.CharField(required=False, allow_blank=True, default='')

    def validate_current(self, v):
        return clean_text(v)
