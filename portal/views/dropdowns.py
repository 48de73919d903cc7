"""
Dropdown option lists, served from the one-hour cache.
"""
from __future__ import annotations

from rest_framework.decorators import api_view

from portal import constants
from portal.serializers.lookup import OptionsQuerySerializer, ProviderQuerySerializer
from portal.services.dropdowns import DropdownService, display_options

from .common import dropdown, ok

FORM_BUNDLES = {
    'clinic': constants.CLINIC_FORM_DROPDOWNS,
    'hospital': constants.HOSPITAL_FORM_DROPDOWNS,
    'isolation': constants.ISOLATION_FORM_DROPDOWNS,
}


@api_view(['GET'])
def categories(request):
    return ok(DropdownService(dropdown(request)).categories())


@api_view(['GET'])
def options(request, category):
    """``?current=`` keeps a saved value selectable when the list no longer has it."""
    option_set = DropdownService(dropdown(request)).option_set(category)
    data = option_set.to_dict()
    data['options'] = display_options(option_set.options, request.query_params.get('current'))
    return ok(data)


@api_view(['GET'])
def options_many(request):
    """``?form=clinic`` or ``?categories=A,B``."""
    q = OptionsQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    wanted = list(q.validated_data.get('categories') or [])
    form = q.validated_data.get('form')
    if form:
        wanted.extend(c for c in FORM_BUNDLES[form] if c not in wanted)
    return ok(DropdownService(dropdown(request)).options_many(wanted))


@api_view(['GET'])
def providers(request):
    """Provider names for the clinic form's "sent to" choice."""
    q = ProviderQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    category = constants.provider_category_for(q.validated_data['sentTo'])
    if category is None:
        return ok({'category': None, 'options': []})
    names = DropdownService(dropdown(request)).options(category)
    return ok({'category': category, 'options': display_options(names, q.validated_data['current'])})
