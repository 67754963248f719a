"""Driver incident reports."""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from glidee.config import settings
from glidee.domain.access import CallerContext, authorize
from glidee.domain.enums import IncidentSeverity
from glidee.infrastructure.aggregates import IncidentDetail
from glidee.infrastructure.models import IncidentModel
from glidee.infrastructure.repositories import IncidentRepository, TripRepository
from glidee.services.trips import load_driver_trip

logger = logging.getLogger(__name__)


@authorize()
async def report_incident(
    session: AsyncSession,
    caller: CallerContext,
    trip_id: str,
    description: str,
    severity: IncidentSeverity,
    location: Optional[str] = None,
    lat: Optional[float] = None,
    lng: Optional[float] = None,
) -> IncidentModel:
    trip = await load_driver_trip(TripRepository(session), caller, trip_id)
    incident = await IncidentRepository(session).create(
        IncidentModel(
            trip_id=trip_id,
            reported_by_id=caller.user_id,
            description=description,
            severity=severity,
            location=location,
            # Fall back to where the bus last reported itself
            lat=lat if lat is not None else trip.current_lat,
            lng=lng if lng is not None else trip.current_lng,
        )
    )
    log = logger.warning if severity in (IncidentSeverity.HIGH, IncidentSeverity.CRITICAL) else logger.info
    log("Incident %s (%s) reported on trip %s", incident.id, severity.value, trip_id)
    return incident


@authorize()
async def driver_incidents(session: AsyncSession, caller: CallerContext) -> list[IncidentDetail]:
    return await IncidentRepository(session).list_for_reporter(
        caller.user_id, settings.driver_incident_limit
    )
