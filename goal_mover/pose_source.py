"""Frame-to-frame transform lookup.

The controllers only depend on the ``PoseSource`` interface. ``TransformTree``
is the in-memory implementation used by the robot link and the simulator: it
stores one parent → child transform per frame and composes them on lookup.
Lookups never wait for data; a missing or stale link fails immediately.
"""

import threading
import time
from abc import ABC, abstractmethod
from typing import Callable, Dict, List, Optional, Tuple

from .errors import TransformUnavailable
from .geometry import RigidTransform


class PoseSource(ABC):
    """Capability to look up rigid transforms between named frames."""

    @abstractmethod
    def lookup(
        self, source_frame: str, target_frame: str, time: Optional[float] = None
    ) -> RigidTransform:
        """Return the transform mapping ``source_frame`` coordinates into ``target_frame``.

        The result is also the pose of ``source_frame``'s origin in ``target_frame``.

        Args:
            source_frame: Frame the data is expressed in.
            target_frame: Frame to express it in.
            time: Requested time; None means latest available.

        Raises:
            TransformUnavailable: If no transform can be produced.
        """

    def can_transform(self, source_frame: str, target_frame: str) -> bool:
        try:
            self.lookup(source_frame, target_frame)
        except TransformUnavailable:
            return False
        return True


class TransformTree(PoseSource):
    """Thread-safe tree of timestamped parent → child transforms.

    Each frame has at most one parent. A frame whose link is older than
    ``max_age`` seconds is treated as unavailable, which models a localization
    source that stopped publishing. Static links never expire.

    Attributes:
        max_age: Maximum link age in seconds, or None for no limit.
    """

    def __init__(
        self, max_age: Optional[float] = None, clock: Callable[[], float] = time.monotonic
    ) -> None:
        self.max_age = max_age
        self._clock = clock
        self._lock = threading.Lock()
        # child -> (parent, pose of child in parent, stamp or None if static)
        self._links: Dict[str, Tuple[str, RigidTransform, Optional[float]]] = {}

    def set_transform(
        self,
        parent: str,
        child: str,
        transform: RigidTransform,
        stamp: Optional[float] = None,
        static: bool = False,
    ) -> None:
        """Insert or replace the link from ``parent`` to ``child``.

        Args:
            parent: Parent frame name.
            child: Child frame name.
            transform: Pose of ``child`` in ``parent``.
            stamp: Time of the measurement; defaults to now.
            static: If True the link is exempt from ``max_age``.

        Raises:
            ValueError: If the link would make ``child`` its own ancestor.
        """
        if parent == child:
            raise ValueError(f"Frame {child} cannot be its own parent")
        with self._lock:
            ancestor: Optional[str] = parent
            while ancestor is not None:
                if ancestor == child:
                    raise ValueError(f"Link {parent} -> {child} would create a cycle")
                link = self._links.get(ancestor)
                ancestor = link[0] if link is not None else None
            if static:
                stamp = None
            elif stamp is None:
                stamp = self._clock()
            self._links[child] = (parent, transform, stamp)

    def remove(self, child: str) -> None:
        """Drop the link to ``child`` (no-op if absent)."""
        with self._lock:
            self._links.pop(child, None)

    def frames(self) -> List[str]:
        with self._lock:
            names = set(self._links)
            names.update(parent for parent, _, _ in self._links.values())
        return sorted(names)

    def _chain_to_root(self, frame: str, now: float) -> Tuple[str, RigidTransform]:
        # Pose of `frame` in its root frame, plus the root's name
        pose = RigidTransform.identity()
        current = frame
        while current in self._links:
            parent, link, stamp = self._links[current]
            if self.max_age is not None and stamp is not None and now - stamp > self.max_age:
                raise TransformUnavailable(
                    f"Transform {parent} -> {current} is stale ({now - stamp:.2f}s old)"
                )
            pose = link * pose
            current = parent
        return current, pose

    def lookup(
        self, source_frame: str, target_frame: str, time: Optional[float] = None
    ) -> RigidTransform:
        now = self._clock() if time is None else time
        with self._lock:
            known = set(self._links)
            known.update(parent for parent, _, _ in self._links.values())
            for frame in (source_frame, target_frame):
                if frame not in known:
                    raise TransformUnavailable(f"Frame {frame!r} does not exist")
            source_root, source_in_root = self._chain_to_root(source_frame, now)
            target_root, target_in_root = self._chain_to_root(target_frame, now)

        if source_root != target_root:
            raise TransformUnavailable(
                f"Frames {source_frame!r} and {target_frame!r} are not connected"
            )
        return target_in_root.inverse() * source_in_root
