import logging
import pathlib

from mcp.server.fastmcp import FastMCP

from servers.weather_sync.application.mcp_server import (
    WeatherSyncMCPService,
    build_scheduler,
    scheduler_lifespan,
)
from servers.weather_sync.domain.repository.repositories import (
    JsonFileLocationRegistry,
    JsonFileObservationStore,
)
from servers.weather_sync.domain.service.retention import RetentionManager
from servers.weather_sync.domain.service.services import OpenWeatherMapService
from servers.weather_sync.domain.service.synchronization import WeatherSyncService
from servers.weather_sync.infrastructure.adaptors import make_request
from servers.weather_sync.infrastructure.config import load_config

__FILE_PATH__ = pathlib.Path(__file__).resolve()

# logging.basicConfig(level=logging.DEBUG)
logging.basicConfig(level=logging.INFO)

config = load_config(env_file=__FILE_PATH__.parent.parent / "env" / "weather.env")

# Create domain layer components
location_registry = JsonFileLocationRegistry(str(config.locations_file))
observation_store = JsonFileObservationStore(str(config.observations_file))
weather_provider = OpenWeatherMapService(config, make_request)
sync_service = WeatherSyncService(
    weather_provider,
    location_registry,
    observation_store,
    max_concurrency=config.sync_concurrency,
)
retention_manager = RetentionManager(location_registry, observation_store)

scheduler = build_scheduler(sync_service, retention_manager, config)
lifespan = scheduler_lifespan(scheduler) if config.scheduler_enabled else None

# Create and configure application service
weather_mcp = WeatherSyncMCPService(
    mcp=FastMCP("weather_sync", lifespan=lifespan),
    sync_service=sync_service,
    retention_manager=retention_manager,
    location_registry=location_registry,
    observation_store=observation_store,
    scheduler=scheduler,
)

logging.getLogger(__name__).info("Starting Weather Sync MCP Service with %r", config)
weather_mcp.run()
