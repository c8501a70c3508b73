"""Service container and FastAPI dependency providers.

Everything a request needs hangs off ``app.state.services``. The lifespan
builds it from the environment; tests build it with fakes and pass it to
``create_app``.
"""

from dataclasses import dataclass

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncEngine

from src.agent.chat_agent import AgentService, GenerativeService
from src.config import AgentConfig, AppConfig, get_agent_config, get_app_config
from src.db.database import create_engine, create_session_factory
from src.db.repository import MetadataRepository
from src.services.chat import ChatOrchestrator
from src.services.upload import UploadPipeline
from src.store.adapter import DocumentStore, OpenAIDocumentStore
from src.store.holder import StoreHolder


@dataclass
class AppServices:
    config: AppConfig
    engine: AsyncEngine
    repository: MetadataRepository
    store: StoreHolder
    agent: GenerativeService
    upload: UploadPipeline
    chat: ChatOrchestrator


def build_services(
    config: AppConfig | None = None,
    agent_config: AgentConfig | None = None,
    adapter: DocumentStore | None = None,
    agent: GenerativeService | None = None,
) -> AppServices:
    """Wire the repository, store holder, agent and workflows together.

    Args:
        config: Application configuration. Loads from environment if omitted.
        agent_config: Credentials for the default adapter and agent.
        adapter: Document store adapter; OpenAI vector stores by default.
        agent: Generative service; the Agno agent by default.

    Returns:
        AppServices ready for ``create_app``. The store is not initialized yet.
    """
    config = config or get_app_config()
    if adapter is None or agent is None:
        agent_config = agent_config or get_agent_config()
    adapter = adapter or OpenAIDocumentStore(agent_config)
    agent = agent or AgentService(agent_config)

    engine = create_engine(config.database_url)
    repository = MetadataRepository(create_session_factory(engine))
    store = StoreHolder(adapter, config.store_display_name, config.store_id)

    return AppServices(
        config=config,
        engine=engine,
        repository=repository,
        store=store,
        agent=agent,
        upload=UploadPipeline(repository, store, config),
        chat=ChatOrchestrator(repository, agent, store),
    )


def get_services(request: Request) -> AppServices:
    return request.app.state.services


def get_repository(services: AppServices = Depends(get_services)) -> MetadataRepository:
    return services.repository


def get_store(services: AppServices = Depends(get_services)) -> StoreHolder:
    return services.store


def get_upload_pipeline(services: AppServices = Depends(get_services)) -> UploadPipeline:
    return services.upload


def get_chat_orchestrator(services: AppServices = Depends(get_services)) -> ChatOrchestrator:
    return services.chat
