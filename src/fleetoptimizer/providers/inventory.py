import json
import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import List, Optional, Union

import yaml

from ..core.base import BaseInventoryProvider, DisruptionEvent, NodePoolState, Workload
from ..core.exceptions import InventoryUnavailableError, ValidationError
from ..core.validation import InventorySnapshot, load_snapshot


class SnapshotInventory(BaseInventoryProvider):
    """Inventory read from a YAML or JSON snapshot file"""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self._snapshot: Optional[InventorySnapshot] = None
        self.logger = logging.getLogger(self.__class__.__name__)

    def load(self) -> InventorySnapshot:
        if self._snapshot is not None:
            return self._snapshot

        if not self.path.exists():
            raise InventoryUnavailableError(f"Snapshot file {self.path} not found")

        try:
            with open(self.path, 'r') as f:
                if self.path.suffix in ('.yaml', '.yml'):
                    data = yaml.safe_load(f)
                else:
                    data = json.load(f)
        except (OSError, ValueError, yaml.YAMLError) as e:
            raise InventoryUnavailableError(f"Cannot read snapshot {self.path}: {e}") from e

        try:
            self._snapshot = load_snapshot(data)
        except ValidationError as e:
            raise InventoryUnavailableError(str(e)) from e

        self.logger.info(
            f"Loaded {len(self._snapshot.node_pools)} node pools and "
            f"{len(self._snapshot.disruptions)} disruptions from {self.path}"
        )
        return self._snapshot

    def list_node_pools(self, ctx=None) -> List[NodePoolState]:
        if ctx is not None:
            ctx.check()
        return self.load().node_pool_states()

    def list_disruptions(self, window_hours: int = 168, ctx=None) -> List[DisruptionEvent]:
        if ctx is not None:
            ctx.check()
        events = self.load().disruption_events()
        cutoff = datetime.now(timezone.utc) - timedelta(hours=window_hours)
        return [e for e in events if _within_window(e, cutoff)]

    def list_workloads(self) -> List[Workload]:
        return self.load().workload_list()


def _within_window(event: DisruptionEvent, cutoff: datetime) -> bool:
    """Events without timestamps are assumed to be recent"""
    seen = event.last_seen or event.first_seen
    if seen is None:
        return True
    if seen.tzinfo is None:
        seen = seen.replace(tzinfo=timezone.utc)
    return seen >= cutoff
