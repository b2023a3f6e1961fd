"""
Read-only board endpoints.

Boards are recomputed from committed state on every request; nothing
here takes a row lock.  The clinician queue is public because it drives
waiting-room displays; the triage and bed boards are staff only and the
per-bed audit trail is for administrators.
"""
from __future__ import annotations

from drf_yasg.utils import swagger_auto_schema
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response

from ..permissions import IsAdminRole, IsStaffRole
from ..serializers.queries import (
    BedBoardQuerySerializer,
    ClinicianQueueQuerySerializer,
    ClinicianSlotsQuerySerializer,
    OccupancyQuerySerializer,
    TriageBoardQuerySerializer,
)
from ..services import triage
from ..services.facade import Orchestrator


def _query(serializer_class, request) -> dict:
    s = serializer_class(data=request.query_params)
    s.is_valid(raise_exception=True)
    return s.validated_data


@swagger_auto_schema(method='get', query_serializer=TriageBoardQuerySerializer)
@api_view(['GET'])
@permission_classes([IsAuthenticated, IsStaffRole])
def triage_board(request):
    q = _query(TriageBoardQuerySerializer, request)
    statuses = [s for s in q.get('status', '').split(',') if s] or None
    board = Orchestrator.get_triage_board(
        q.get('facility'),
        statuses=statuses,
        triage_level=q.get('triageLevel'),
        clinician_id=q.get('clinicianId'),
        include_closed=q['includeClosed'],
    )
    return Response(board)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsStaffRole])
def triage_entry(request, entry_id: int):
    return Response(triage.entry_detail(entry_id))


@swagger_auto_schema(method='get', query_serializer=ClinicianQueueQuerySerializer)
@api_view(['GET'])
@permission_classes([AllowAny])
def clinician_queue(request, clinician_id: int):
    q = _query(ClinicianQueueQuerySerializer, request)
    return Response(Orchestrator.get_clinician_queue(clinician_id, q.get('date'), q.get('limit')))


@swagger_auto_schema(method='get', query_serializer=ClinicianSlotsQuerySerializer)
@api_view(['GET'])
@permission_classes([IsAuthenticated])
def clinician_slots(request, clinician_id: int):
    q = _query(ClinicianSlotsQuerySerializer, request)
    return Response(Orchestrator.get_clinician_slots(clinician_id, q['date']))


@swagger_auto_schema(method='get', query_serializer=BedBoardQuerySerializer)
@api_view(['GET'])
@permission_classes([IsAuthenticated, IsStaffRole])
def bed_board(request):
    q = _query(BedBoardQuerySerializer, request)
    return Response(Orchestrator.get_bed_board(q.get('ward')))


@swagger_auto_schema(method='get', query_serializer=OccupancyQuerySerializer)
@api_view(['GET'])
@permission_classes([IsAuthenticated, IsStaffRole])
def bed_occupancy(request):
    q = _query(OccupancyQuerySerializer, request)
    return Response(Orchestrator.get_bed_occupancy(q['start'], q['end'], q.get('ward')))


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminRole])
def bed_history(request, bed_id: int):
    return Response(Orchestrator.get_bed_history(bed_id))
