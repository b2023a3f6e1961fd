"""
Inbound event endpoint.

Every state change in the system arrives here as
``{"type": <EventType>, "payload": {...}}``.  The caller's role is checked
against the event type before anything is validated; the facade does the
rest and its read-model is returned as the response body.
"""
from __future__ import annotations

from drf_yasg.utils import swagger_auto_schema
from rest_framework.decorators import api_view, permission_classes
from rest_framework.exceptions import PermissionDenied
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from ..permissions import may_submit
from ..serializers.events import EventEnvelopeSerializer
from ..services.facade import Orchestrator


@swagger_auto_schema(method='post', request_body=EventEnvelopeSerializer)
@api_view(['POST'])
@permission_classes([IsAuthenticated])
def submit_event(request):
    envelope = EventEnvelopeSerializer(data=request.data)
    envelope.is_valid(raise_exception=True)
    event_type = envelope.validated_data['type']
    if event_type in Orchestrator.EVENTS and not may_submit(request.user, event_type):
        raise PermissionDenied(f'role {getattr(request.user, "role", None)!r} may not submit {event_type}')
    result = Orchestrator(request.user).dispatch(event_type, envelope.validated_data['payload'])
    return Response({'ok': True, 'type': event_type, 'data': result})


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def event_types(request):
    """List the event types the caller may submit."""
    allowed = [name for name in Orchestrator.EVENTS if may_submit(request.user, name)]
    return Response({'types': allowed})
