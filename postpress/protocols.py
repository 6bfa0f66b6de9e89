"""Protocol definitions for Postpress.

The development server depends on these interfaces rather than on the
build module, so any object with a matching ``rebuild`` method can drive
it (the CLI uses build.SiteBuilder; tests use small fakes).
"""

from __future__ import annotations

from abc import abstractmethod
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class Rebuilder(Protocol):
    """Protocol for anything that can rebuild the site on demand."""

    @abstractmethod
    def rebuild(self) -> Any:
        """Run one full build.

        Raises:
            BuildError: If the build fails.
        """
        ...
