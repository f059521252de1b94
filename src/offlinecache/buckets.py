"""
Bucket Registry

Knows every bucket the engine recognizes, its kind, and which page id
maps to which manual bucket. Kind decides eligibility for deletion at
activation and for the eviction sweep.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional

from offlinecache.core.config.models import BucketConfig


class BucketKind(Enum):
    """Lifecycle category of a bucket."""
    PERSISTENT_APP = "persistent-app"       # styles, scripts, fonts, static files
    PERSISTENT_ASSET = "persistent-asset"   # images
    MANUAL_PAGE = "manual-page"             # populated on caller request per page
    EPHEMERAL_RUNTIME = "ephemeral-runtime" # everything else, evictable

    @property
    def evictable(self) -> bool:
        return self in (BucketKind.MANUAL_PAGE, BucketKind.EPHEMERAL_RUNTIME)


@dataclass(frozen=True)
class BucketSpec:
    """A recognized bucket."""
    name: str
    kind: BucketKind
    page_id: Optional[str] = None


class BucketRegistry:
    """Recognized bucket names for the current configuration."""

    def __init__(self, config: Optional[BucketConfig] = None):
        self.config = config or BucketConfig()
        self.app = self.config.full_name(self.config.app)
        self.assets = self.config.full_name(self.config.assets)
        self.runtime = self.config.full_name(self.config.runtime)

        self._specs: Dict[str, BucketSpec] = {
            self.app: BucketSpec(self.app, BucketKind.PERSISTENT_APP),
            self.assets: BucketSpec(self.assets, BucketKind.PERSISTENT_ASSET),
            self.runtime: BucketSpec(self.runtime, BucketKind.EPHEMERAL_RUNTIME),
        }
        self._pages: Dict[str, str] = {}
        for page_id, suffix in self.config.pages.items():
            name = self.config.full_name(suffix)
            self._pages[page_id] = name
            self._specs[name] = BucketSpec(name, BucketKind.MANUAL_PAGE, page_id=page_id)

    def spec_for(self, name: str) -> Optional[BucketSpec]:
        return self._specs.get(name)

    def kind_of(self, name: str) -> Optional[BucketKind]:
        spec = self._specs.get(name)
        return spec.kind if spec else None

    def page_bucket(self, page_id: str) -> Optional[str]:
        """Manual bucket name for a page id, or None if the page is unknown."""
        if not isinstance(page_id, str):
            return None
        return self._pages.get(page_id)

    @property
    def page_ids(self) -> List[str]:
        return list(self._pages)

    def recognized_names(self) -> List[str]:
        return list(self._specs)

    def is_recognized(self, name: str) -> bool:
        return name in self._specs

    def persistent_names(self) -> List[str]:
        return [s.name for s in self._specs.values() if not s.kind.evictable]

    def eviction_candidates(self) -> List[str]:
        """Ephemeral and manual-page buckets, checked by the eviction sweep."""
        return [s.name for s in self._specs.values() if s.kind.evictable]
