"""Clinic portal application.

This package contains the services, serializers, views, route
registrations and realtime consumers that back the clinic, hospital and
isolation forms.  Records are persisted by the upstream CRUD API.
"""
