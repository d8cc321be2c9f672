import datetime
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable, List, Optional, Tuple

from mcp.server.fastmcp import FastMCP

from servers.weather_sync.domain.models import CleanupReport, SyncReport
from servers.weather_sync.domain.repository.interfaces import (
    LocationRegistry,
    ObservationStore,
)
from servers.weather_sync.domain.service.retention import RetentionManager
from servers.weather_sync.domain.service.synchronization import WeatherSyncService
from servers.weather_sync.infrastructure.application import (
    MCPApplicationService,
    errors_as_text,
)
from servers.weather_sync.infrastructure.config import WeatherApiConfig
from servers.weather_sync.infrastructure.scheduler import PeriodicJob, SyncScheduler

logger = logging.getLogger(__name__)

SYNC_ALL_JOB = "sync_all_locations"
CLEANUP_JOB = "cleanup_old_data"


def build_scheduler(
    sync_service: WeatherSyncService,
    retention_manager: RetentionManager,
    config: WeatherApiConfig,
) -> SyncScheduler:
    """Create the scheduler for the periodic batch sync and cleanup"""
    return SyncScheduler(
        [
            PeriodicJob(
                SYNC_ALL_JOB, config.sync_interval_seconds, sync_service.sync_all
            ),
            PeriodicJob(
                CLEANUP_JOB,
                config.cleanup_interval_seconds,
                retention_manager.cleanup_old_data,
            ),
        ]
    )


def scheduler_lifespan(scheduler: SyncScheduler):
    """FastMCP lifespan that runs the scheduler while the server is up"""

    @asynccontextmanager
    async def lifespan(server: FastMCP) -> AsyncIterator[None]:
        scheduler.start()
        try:
            yield
        finally:
            await scheduler.stop()

    return lifespan


class WeatherSyncMCPService(MCPApplicationService):
    """MCP Application Service for weather sync operations.

    Exposes location tracking, weather sync, history and retention through
    the Model Context Protocol. Domain errors are rendered as text at this
    boundary.

    Available Tools:
        - add_location / list_locations / remove_location
        - sync_location: Sync one location now
        - sync_all_locations: Sync every location
        - get_current_weather: Latest stored observation
        - get_weather_history: Stored observations, newest first
        - get_forecast: Provider forecast passthrough
        - cleanup_old_data: Apply the 30-day retention

    Available Resources:
        - history://observations/{location_id}: Full observation history

    Available Prompts:
        - weather_trend_analysis: Structured trend analysis template

    When a scheduler is given, the batch sync and cleanup tools go through
    its jobs so a manual run never overlaps a scheduled one.
    """

    def __init__(
        self,
        mcp: FastMCP,
        sync_service: WeatherSyncService,
        retention_manager: RetentionManager,
        location_registry: LocationRegistry,
        observation_store: ObservationStore,
        scheduler: Optional[SyncScheduler] = None,
    ):
        self.sync_service = sync_service
        self.retention_manager = retention_manager
        self.location_registry = location_registry
        self.observation_store = observation_store
        self.scheduler = scheduler
        super().__init__(mcp)

    @property
    def tools(self) -> List[Tuple[str, str, Callable]]:
        """Register tools for the MCP server"""
        return [
            ("add_location", "Register a location to track", self.add_location),
            ("list_locations", "List tracked locations", self.list_locations),
            (
                "remove_location",
                "Stop tracking a location and delete its stored weather",
                self.remove_location,
            ),
            (
                "sync_location",
                "Fetch and store current weather for one location",
                self.sync_location,
            ),
            (
                "sync_all_locations",
                "Fetch and store current weather for every location",
                self.sync_all_locations,
            ),
            (
                "get_current_weather",
                "Get the latest stored weather for a location",
                self.get_current_weather,
            ),
            (
                "get_weather_history",
                "Get stored weather observations for a location, newest first",
                self.get_weather_history,
            ),
            (
                "get_forecast",
                "Get the 5-day forecast for a location",
                self.get_forecast,
            ),
            (
                "cleanup_old_data",
                "Delete stored weather older than 30 days",
                self.cleanup_old_data,
            ),
        ]

    @property
    def resources(self) -> List[Tuple[str, str, str, Callable]]:
        """Register resources for the MCP server"""
        return [
            (
                "history://observations/{location_id}",
                "Get stored weather observations for a location",
                "Get every stored weather observation for a tracked location, newest first. Use get_current_weather for the latest reading only.",
                self.get_observation_history,
            ),
        ]

    @property
    def prompts(self) -> List[Tuple[str, str, Callable]]:
        """Register prompts for the MCP server"""
        return [
            (
                "weather_trend_analysis",
                "Analyze stored weather trends for a location",
                self.weather_trend_analysis_prompt,
            ),
        ]

    def weather_trend_analysis_prompt(self, location_id: str) -> str:
        """
        A prompt template for analyzing stored weather for a location.

        Args:
            location_id: The tracked location to analyze
        """
        return f"""
        You are a weather analysis expert reviewing recorded observations.

        Read the stored observations for location {location_id}
        (resource history://observations/{location_id}) and its forecast.
        Include information about:
        - How temperature, humidity and pressure changed over the period
        - Notable shifts in conditions or wind
        - Whether the forecast continues or breaks the recent trend
        - Gaps in the record that suggest failed syncs

        Present your analysis in a clear, structured format that's easy to understand.
        """

    @errors_as_text
    async def add_location(
        self,
        name: str,
        latitude: float,
        longitude: float,
        country_code: Optional[str] = None,
    ) -> str:
        """Register a location for weather tracking.

        Args:
            name: Display name (e.g., "Berlin")
            latitude: Decimal degrees latitude [-90, 90]
            longitude: Decimal degrees longitude [-180, 180]
            country_code: Optional two-letter country code
        """
        location = await self.location_registry.add_location(
            name, latitude, longitude, country_code
        )
        return f"Added location {location.to_display_string()}"

    async def list_locations(self) -> str:
        """List tracked locations with their last sync time."""
        locations = await self.location_registry.list_locations()
        if not locations:
            return "No locations are being tracked"
        return "\n".join(location.to_display_string() for location in locations)

    @errors_as_text
    async def remove_location(self, location_id: str) -> str:
        """Stop tracking a location and delete its observations.

        Args:
            location_id: Location identifier from list_locations
        """
        if not await self.location_registry.remove_location(location_id):
            return f"Error: Location not found with id: {location_id}"
        deleted = await self.observation_store.delete_all_for(location_id)
        return f"Removed location {location_id} and {deleted} observation(s)"

    @errors_as_text
    async def sync_location(self, location_id: str) -> str:
        """MCP tool: Sync current weather for one location.

        Fetches current conditions from the provider, stores them as a new
        observation and stamps the location's last sync time.

        Args:
            location_id: Location identifier from list_locations

        Returns:
            The stored observation, or an error message if the location is
            unknown or the provider call failed
        """
        observation = await self.sync_service.sync_one(location_id)
        return observation.to_display_string()

    async def sync_all_locations(self) -> str:
        """MCP tool: Sync current weather for every tracked location.

        Failures for individual locations are listed in the summary and do
        not stop the batch.
        """
        if self.scheduler is not None:
            job = self.scheduler.get_job(SYNC_ALL_JOB)
            if job is not None:
                if not await job.run():
                    return "A weather sync is already running"
                report: Optional[SyncReport] = job.last_result
                if report is None:
                    return "Weather sync failed; see server logs"
                return report.to_display_string()

        report = await self.sync_service.sync_all()
        return report.to_display_string()

    @errors_as_text
    async def get_current_weather(self, location_id: str) -> str:
        """Get the latest stored observation for a location.

        Does not contact the provider; use sync_location to refresh.

        Args:
            location_id: Location identifier from list_locations
        """
        observation = await self.sync_service.get_current_weather(location_id)
        return observation.to_display_string()

    @errors_as_text
    async def get_weather_history(
        self,
        location_id: str,
        since_hours: Optional[float] = None,
        limit: int = 20,
    ) -> str:
        """Get stored observations for a location, newest first.

        Args:
            location_id: Location identifier from list_locations
            since_hours: Only include observations recorded within this many hours
            limit: Maximum observations to show
        """
        if since_hours is not None:
            cutoff = datetime.datetime.now() - datetime.timedelta(hours=since_hours)
            observations = await self.sync_service.get_weather_history_since(
                location_id, cutoff
            )
        else:
            observations = await self.sync_service.get_weather_history(location_id)

        if not observations:
            return f"No weather history found for location {location_id}"

        shown = observations[:limit] if limit > 0 else observations
        result = f"Showing {len(shown)} of {len(observations)} observation(s)\n\n"
        return result + "\n---\n".join(
            observation.to_display_string() for observation in shown
        )

    @errors_as_text
    async def get_forecast(self, location_id: str) -> str:
        """Get the provider forecast for a location. Nothing is stored.

        Args:
            location_id: Location identifier from list_locations
        """
        forecast = await self.sync_service.get_forecast(location_id)
        return forecast.to_display_string()

    async def cleanup_old_data(self) -> str:
        """MCP tool: Delete stored observations older than 30 days."""
        if self.scheduler is not None:
            job = self.scheduler.get_job(CLEANUP_JOB)
            if job is not None:
                if not await job.run():
                    return "A cleanup is already running"
                report: Optional[CleanupReport] = job.last_result
                if report is None:
                    return "Cleanup failed; see server logs"
                return report.to_display_string()

        report = await self.retention_manager.cleanup_old_data()
        return report.to_display_string()

    async def get_observation_history(self, location_id: str) -> str:
        """MCP resource handler for stored observation history.

        URI Template: history://observations/{location_id}

        Args:
            location_id: Location identifier

        Returns:
            Formatted observations or "no data" message
        """
        observations = await self.sync_service.get_weather_history(location_id)

        if not observations:
            return f"No weather history found for location {location_id}"

        return "\n\n===\n\n".join(
            observation.to_display_string() for observation in observations
        )
