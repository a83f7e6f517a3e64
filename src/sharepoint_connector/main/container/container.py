from dependency_injector import containers, providers

from sharepoint_connector.integration.infrastructure.auth_service.auth_service import (
    AuthService,
)
from sharepoint_connector.integration.infrastructure.auth_service.graph_auth_service import (
    GraphAuthService,
)
from sharepoint_connector.integration.infrastructure.auth_service.zitadel_auth_service import (
    ZitadelAuthService,
)
from sharepoint_connector.integration.infrastructure.clients.sharepoint_api_client import (
    SharePointApiClient,
)
from sharepoint_connector.integration.infrastructure.clients.unique_api_client import (
    UniqueApiClient,
)
from sharepoint_connector.jobs.ingestion_queue import IngestionQueue
from sharepoint_connector.main.config import Settings
from sharepoint_connector.metrics.metrics_service import MetricsService
from sharepoint_connector.pipeline.pipeline_service import PipelineService
from sharepoint_connector.pipeline.steps.content_fetching_step import ContentFetchingStep
from sharepoint_connector.pipeline.steps.content_registration_step import (
    ContentRegistrationStep,
)
from sharepoint_connector.pipeline.steps.ingestion_finalization_step import (
    IngestionFinalizationStep,
)
from sharepoint_connector.pipeline.steps.storage_upload_step import StorageUploadStep
from sharepoint_connector.pipeline.steps.token_validation_step import TokenValidationStep
from sharepoint_connector.scanner.sharepoint_scanner import SharepointScanner
from sharepoint_connector.scheduler.scan_scheduler import ScanScheduler
from sharepoint_connector.worker.dead_letter import DeadLetterQueue
from sharepoint_connector.worker.ingestion_worker import IngestionWorker
from sharepoint_connector.worker.lock.distributed_lock import DistributedLock


class Container(containers.DeclarativeContainer):
    settings = providers.Dependency(instance_of=Settings)

    # Connections are opened by the process entry point and passed in
    redis_client = providers.Dependency()
    arq_redis = providers.Dependency()
    aiohttp_session = providers.Dependency()
    http_client = providers.Dependency()

    metrics = providers.Singleton(MetricsService)

    # Auth
    graph_auth_service = providers.Singleton(
        GraphAuthService,
        tenant_id=settings.provided.graph_tenant_id,
        client_id=settings.provided.graph_client_id,
        client_secret=settings.provided.graph_client_secret,
        expiration_buffer_seconds=settings.provided.graph_token_expiration_buffer_seconds,
    )
    zitadel_auth_service = providers.Singleton(
        ZitadelAuthService,
        token_url=settings.provided.zitadel_oauth_token_url,
        project_id=settings.provided.zitadel_project_id,
        client_id=settings.provided.zitadel_client_id,
        client_secret=settings.provided.zitadel_client_secret,
        expiration_buffer_seconds=settings.provided.unique_token_expiration_buffer_seconds,
    )
    auth_service = providers.Singleton(
        AuthService,
        graph_auth=graph_auth_service,
        zitadel_auth=zitadel_auth_service,
    )

    # Clients
    sharepoint_client = providers.Singleton(
        SharePointApiClient,
        session=aiohttp_session,
        auth_service=auth_service,
        base_url=settings.provided.graph_api_base_url,
        sync_column_name=settings.provided.sharepoint_sync_column_name,
        max_file_size_bytes=settings.provided.max_file_size_bytes,
    )
    unique_client = providers.Singleton(
        UniqueApiClient,
        http_client=http_client,
        graphql_url=settings.provided.unique_ingestion_graphql_url,
        ingestion_url=settings.provided.unique_ingestion_url,
        file_diff_base_path=settings.provided.unique_file_diff_base_path,
        file_diff_partial_key=settings.provided.unique_file_diff_partial_key,
        min_request_interval_seconds=settings.provided.unique_api_min_request_interval_seconds,
    )

    # Pipeline
    token_validation_step = providers.Factory(
        TokenValidationStep,
        auth_service=auth_service,
        metrics=metrics,
    )
    content_fetching_step = providers.Factory(
        ContentFetchingStep,
        sharepoint_client=sharepoint_client,
        allowed_mime_types=settings.provided.allowed_mime_type_list,
        metrics=metrics,
    )
    content_registration_step = providers.Factory(
        ContentRegistrationStep,
        unique_client=unique_client,
        scope_id=settings.provided.unique_scope_id,
        key_prefix=settings.provided.content_key_prefix,
        metrics=metrics,
    )
    storage_upload_step = providers.Factory(
        StorageUploadStep,
        unique_client=unique_client,
        metrics=metrics,
    )
    ingestion_finalization_step = providers.Factory(
        IngestionFinalizationStep,
        auth_service=auth_service,
        unique_client=unique_client,
        scope_id=settings.provided.unique_scope_id,
        metrics=metrics,
    )
    pipeline_service = providers.Singleton(
        PipelineService,
        token_validation_step=token_validation_step,
        content_fetching_step=content_fetching_step,
        content_registration_step=content_registration_step,
        storage_upload_step=storage_upload_step,
        ingestion_finalization_step=ingestion_finalization_step,
        metrics=metrics,
        step_timeout_seconds=settings.provided.step_timeout_seconds,
    )

    # Queue and worker
    ingestion_queue = providers.Singleton(
        IngestionQueue,
        settings=settings,
        metrics=metrics,
        redis=arq_redis,
    )
    dead_letter_queue = providers.Singleton(
        DeadLetterQueue,
        redis_client=redis_client,
        key=providers.Callable(lambda name: f"{name}:dead-letter", settings.provided.queue_name),
        max_entries=settings.provided.dead_letter_max_entries,
    )
    ingestion_worker = providers.Singleton(
        IngestionWorker,
        pipeline_service=pipeline_service,
        metrics=metrics,
        dead_letter=dead_letter_queue,
        max_tries=settings.provided.max_retries,
        retry_backoff_seconds=settings.provided.retry_backoff_seconds,
    )

    # Scanning
    distributed_lock = providers.Singleton(DistributedLock, redis_client=redis_client)
    scanner = providers.Singleton(
        SharepointScanner,
        site_ids=settings.provided.sharepoint_site_ids,
        auth_service=auth_service,
        sharepoint_client=sharepoint_client,
        unique_client=unique_client,
        ingestion_queue=ingestion_queue,
        metrics=metrics,
        scope_id=settings.provided.unique_scope_id,
    )
    scan_scheduler = providers.Singleton(
        ScanScheduler,
        scanner=scanner,
        lock=distributed_lock,
        metrics=metrics,
        interval_seconds=settings.provided.scan_interval_seconds,
        lock_key=settings.provided.scan_lock_key,
        lock_ttl_seconds=settings.provided.effective_scan_lock_ttl_seconds,
    )
