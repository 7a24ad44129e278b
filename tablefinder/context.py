from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from .chat.assistant import ChatAssistant
from .llm.config import DEFAULT_LLM_CONFIG, LLMConfig
from .notifier.notifier import ChangeNotifier
from .places.google_client import GooglePlacesProvider
from .places.provider import PlaceProvider
from .search.cache import RemoteSearchCache
from .search.categories import DEFAULT_CATEGORIES, SearchCategory
from .search.config import DEFAULT_SEARCH_CACHE_CONFIG, SearchCacheConfig
from .search.discovery import DiscoveryService
from .search.reconciler import ResultReconciler
from .store.base import EntityStore
from .store.config import DEFAULT_STORE_CONFIG, StoreConfig
from .store.sql_store import SqlEntityStore


@dataclass
class AppContext:
    """Everything the boundary needs, built once at startup and passed around."""

    store: EntityStore
    notifier: ChangeNotifier
    provider: PlaceProvider
    reconciler: ResultReconciler
    search_cache: RemoteSearchCache
    discovery: DiscoveryService
    assistant: ChatAssistant

    def close(self) -> None:
        self.store.close()


def create_context(
    store_config: StoreConfig = DEFAULT_STORE_CONFIG,
    provider: PlaceProvider | None = None,
    search_config: SearchCacheConfig = DEFAULT_SEARCH_CACHE_CONFIG,
    llm_config: LLMConfig = DEFAULT_LLM_CONFIG,
    categories: Iterable[SearchCategory] = DEFAULT_CATEGORIES,
) -> AppContext:
    notifier = ChangeNotifier()
    store = SqlEntityStore(notifier, store_config)
    notifier.bind_source(store)

    provider = provider or GooglePlacesProvider()
    reconciler = ResultReconciler(store)

    return AppContext(
        store=store,
        notifier=notifier,
        provider=provider,
        reconciler=reconciler,
        search_cache=RemoteSearchCache(
            store, notifier, provider, reconciler, config=search_config, categories=categories,
        ),
        discovery=DiscoveryService(store, provider, reconciler, config=search_config),
        assistant=ChatAssistant(store, config=llm_config),
    )
