"""Dependency-injector wiring for ReelRelay.

Three sub-containers: infrastructure (pooled HTTP client, Graph API
client, process runner, scratch space), configs (sections of
config/publishing.yaml) and services (fetcher, transcoder, uploader,
janitor, orchestrator). Stateless pieces are singletons; the
orchestrator and janitor are factories so each task gets its own.

Example:
    orchestrator = get_container().services.upload_orchestrator()

    # Tests swap in fakes per provider
    with container.infrastructure.facebook_graph.override(fake_graph):
        ...
"""

from dependency_injector import containers, providers

from app.core.config import Config, get_config
from app.core.config_loader import get_publishing_config


class InfrastructureContainer(containers.DeclarativeContainer):
    """Infrastructure layer dependencies (HTTP, Graph API, processes, scratch)."""

    global_config = providers.Dependency(instance_of=Config)

    # ============================================
    # HTTP Client
    # ============================================

    http_client = providers.Singleton(
        "app.infrastructure.http_client.HTTPClient",
    )

    # ============================================
    # Facebook Graph API
    # ============================================

    facebook_graph = providers.Singleton(
        "app.infrastructure.facebook_graph.FacebookGraphAPI",
        http_client=http_client,
        graph_version=global_config.provided.facebook_graph_version,
        app_id=global_config.provided.facebook_app_id,
        app_secret=global_config.provided.facebook_app_secret,
    )

    # ============================================
    # External processes and scratch storage
    # ============================================

    process_runner = providers.Singleton(
        "app.infrastructure.process_runner.AsyncProcessRunner",
    )

    scratch_space = providers.Singleton(
        "app.services.scratch.ScratchSpace",
        root=global_config.provided.scratch_dir,
    )


class ConfigContainer(containers.DeclarativeContainer):
    """Configuration models container.

    All models come from config/publishing.yaml, loaded once.
    """

    publishing_config = providers.Singleton(get_publishing_config)

    fetch_config = providers.Singleton(
        lambda config: config.fetch,
        config=publishing_config,
    )

    transcode_config = providers.Singleton(
        lambda config: config.transcode,
        config=publishing_config,
    )

    facebook_upload_config = providers.Singleton(
        lambda config: config.facebook,
        config=publishing_config,
    )

    janitor_config = providers.Singleton(
        lambda config: config.janitor,
        config=publishing_config,
    )

    disk_monitor_config = providers.Singleton(
        lambda config: config.disk,
        config=publishing_config,
    )


class ServiceContainer(containers.DeclarativeContainer):
    """Service layer dependencies."""

    global_config = providers.Dependency(instance_of=Config)
    infrastructure = providers.DependenciesContainer()
    configs = providers.DependenciesContainer()

    # ============================================
    # Fetch / Transcode / Upload
    # ============================================

    fetch_strategies = providers.Singleton(
        "app.services.fetcher.build_strategy_table",
        http_client=infrastructure.http_client,
        scratch=infrastructure.scratch_space,
        config=configs.fetch_config,
    )

    video_validator = providers.Singleton(
        "app.services.validator.VideoValidator",
    )

    source_fetcher = providers.Singleton(
        "app.services.fetcher.SourceFetcher",
        strategies=fetch_strategies,
        validator=video_validator,
    )

    transcoder = providers.Singleton(
        "app.services.transcoder.Transcoder",
        scratch=infrastructure.scratch_space,
        runner=infrastructure.process_runner,
        config=configs.transcode_config,
        ffmpeg_path=global_config.provided.ffmpeg_path,
    )

    facebook_uploader = providers.Singleton(
        "app.services.uploader.FacebookUploader",
        graph=infrastructure.facebook_graph,
        config=configs.facebook_upload_config,
    )

    token_manager = providers.Singleton(
        "app.services.uploader.TokenManager",
        graph=infrastructure.facebook_graph,
    )

    # ============================================
    # Housekeeping
    # ============================================

    disk_monitor = providers.Singleton(
        "app.services.janitor.DiskMonitor",
        path=global_config.provided.scratch_dir,
        config=configs.disk_monitor_config,
    )

    disk_janitor = providers.Factory(
        "app.services.janitor.DiskJanitor",
        scratch_dir=global_config.provided.scratch_dir,
        config=configs.janitor_config,
        monitor=disk_monitor,
    )

    # ============================================
    # Orchestration
    # ============================================

    # Factory: each orchestrator owns its own progress channel
    upload_orchestrator = providers.Factory(
        "app.services.uploader.UploadOrchestrator",
        fetcher=source_fetcher,
        transcoder=transcoder,
        uploader=facebook_uploader,
        token_manager=token_manager,
        disk_monitor=disk_monitor,
        config=configs.publishing_config,
    )


class ApplicationContainer(containers.DeclarativeContainer):
    """Entry point used by Celery tasks."""

    # Shares get_config()'s cached instance
    config = providers.Singleton(get_config)

    infrastructure = providers.Container(
        InfrastructureContainer,
        global_config=config,
    )

    configs = providers.Container(
        ConfigContainer,
    )

    services = providers.Container(
        ServiceContainer,
        global_config=config,
        infrastructure=infrastructure,
        configs=configs,
    )

    # ============================================
    # Shortcuts
    # ============================================

    upload_orchestrator = providers.Factory(
        lambda svc: svc,
        svc=services.upload_orchestrator,
    )

    disk_janitor = providers.Factory(
        lambda svc: svc,
        svc=services.disk_janitor,
    )


def create_container() -> ApplicationContainer:
    """Create a new application container."""
    return ApplicationContainer()


# Global container instance
container = create_container()


def get_container() -> ApplicationContainer:
    """Get the global container."""
    return container


__all__ = [
    "ApplicationContainer",
    "ConfigContainer",
    "InfrastructureContainer",
    "ServiceContainer",
    "container",
    "create_container",
    "get_config",
    "get_container",
]
