"""Process-wide store state.

``_GLOBAL_STORE`` holds the shared ``KeyValueStore`` once
``storage.factory.initialize_store`` or ``get_global_store`` has run.
``_STORE_INIT_LOCK`` is created lazily inside the running event loop and
guards first initialization against concurrent requests.
"""

_GLOBAL_STORE = None

_STORE_INIT_LOCK = None
