from rest_framework.decorators import api_view

from portal.serializers.records import DerivedPreviewSerializer
from portal.services.derived import days_hospitalized, happiness_score

from .common import ok


@api_view(['POST'])
def derived_preview(request):
    """Days hospitalised and happiness score for whatever inputs are given."""
    s = DerivedPreviewSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    return ok({
        'daysHospitalized': days_hospitalized(vd['dateOfAdmission'], vd['dateOfDischarge']),
        'happinessScore': happiness_score(vd['q1'], vd['q2'], vd['q3'], vd['q4'], vd['q5'], vd['q6'],
                                          vd['overallRating']),
    })
