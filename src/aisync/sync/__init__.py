"""Fan-out sync of AI tool configuration files.

Public API for copying a set of source files (rules, MCP settings) into
the configuration directories of several AI coding tools.

Architecture
------------
Each source is written to every enabled target through a
**dispatcher** that picks a handler by target type.  The handler
resolves the destination from the target's ordered mapping table and
applies the mapping's transform rules.  Incremental passes only write
sources whose content fingerprint changed since they were last written.

Modules:

- ``engine``     -- ``SyncEngine``: validation, full/incremental passes,
  aggregation.
- ``dispatcher`` -- ``TargetDispatcher``: handler table and the per-pair
  read/transform/write sequence.
- ``handlers``   -- ``TargetHandler`` protocol, ``UniversalHandler``,
  ``ToolHandler``.
- ``transforms`` -- mapping lookup and transform rules.
- ``tracker``    -- ``FileChangeTracker``: in-memory fingerprint store.
- ``watcher``    -- polling watch loop.
- ``models``     -- ``Fingerprint``, ``SyncResult``, ``TargetValidation``,
  ``EngineState``: core data contracts.
- ``reporter``   -- Human-readable and JSON result formatting.

Public exports
--------------
``SyncEngine``, ``TargetDispatcher``, ``create_dispatcher``,
``FileChangeTracker``, ``UniversalHandler``, ``ToolHandler``,
``TargetHandler``, ``Fingerprint``, ``SyncResult``, ``TargetValidation``,
``EngineState``, ``SyncMode``, ``watch``, ``format_sync_result``,
``result_to_json``.

Usage example
-------------
::

    from aisync.config_loader import load_config
    from aisync.sync import SyncEngine, format_sync_result

    engine = SyncEngine(load_config("aisync.config.yml"))

    # First pass writes everything; later passes only changed sources
    result = engine.run("incremental")
    print(format_sync_result(result, verbose=True))
"""

from .dispatcher import TargetDispatcher, create_dispatcher
from .engine import SyncEngine
from .handlers import TargetHandler, ToolHandler, UniversalHandler
from .models import (
    EngineState,
    Fingerprint,
    SyncMode,
    SyncResult,
    TargetValidation,
)
from .reporter import format_sync_result, result_to_json
from .tracker import FileChangeTracker
from .watcher import watch

__all__ = [
    "EngineState",
    "FileChangeTracker",
    "Fingerprint",
    "SyncEngine",
    "SyncMode",
    "SyncResult",
    "TargetDispatcher",
    "TargetHandler",
    "TargetValidation",
    "ToolHandler",
    "UniversalHandler",
    "create_dispatcher",
    "format_sync_result",
    "result_to_json",
    "watch",
]
