from rest_framework import serializers


class SurveySubmitSerializer(serializers.Serializer):
    values = serializers.DictField()

    def validate_values(self, v):
        for name in ('q1', 'q2', 'q3', 'q4', 'q5', 'q6'):
            answer = v.get(name)
            if answer not in (None, '') and not _in_range(answer, 1, 5):
                raise serializers.ValidationError(f'{name} must be between 1 and 5.')
        rating = v.get('overallRating')
        if rating not in (None, '') and not _in_range(rating, 1, 10):
            raise serializers.ValidationError('overallRating must be between 1 and 10.')
        return v


def _in_range(value, low, high):
    try:
        number = float(value)
    except (TypeError, ValueError):
        return False
    return low <= number <= high
