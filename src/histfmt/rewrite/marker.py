"""Run markers and the tags written into transient commit messages."""

from __future__ import annotations

import hashlib

from histfmt.core.errors import MarkerCollisionError
from histfmt.core.log import logger
from histfmt.git.repo import Git

RUN_COUNTER_KEY = "histfmt.lastrun"


def tag_format(marker: str) -> str:
    return f"{marker} @^ formatting"


def tag_revert(marker: str) -> str:
    return f"{marker} @v reverting"


def derive_marker(
    serial: int,
    common_root: str,
    branch_tip: str,
    command: str,
    targets: list[str],
) -> str:
    """Marker for run number serial over the given range and formatter.

    >>> derive_marker(1, "a" * 40, "b" * 40, "black", [])[:10]
    'histfmt-1-'
    """
    digest = hashlib.sha256(
        "\0".join([common_root, branch_tip, command, *targets]).encode()
    ).hexdigest()[:12]
    return f"histfmt-{serial}-{digest}"


class MarkerTagger:
    """Issues one marker per run.

    The serial number comes from a counter in the repository's local
    config, so two runs in the same repository never share a marker
    even over an identical range.
    """

    def __init__(self, git: Git):
        self.git = git

    def next_serial(self) -> int:
        current = self.git.config_get(RUN_COUNTER_KEY)
        try:
            serial = int(current) + 1 if current else 1
        except ValueError:
            logger.warn(
                f"Ignoring malformed {RUN_COUNTER_KEY}", value=current
            )
            serial = 1
        self.git.config_set(RUN_COUNTER_KEY, str(serial))
        return serial

    def generate(
        self,
        common_root: str,
        branch_tip: str,
        command: str,
        targets: list[str],
    ) -> str:
        """Create the marker for a new run.

        Raises:
            MarkerCollisionError: If any commit or reflog entry already
                carries the marker
        """
        marker = derive_marker(
            self.next_serial(), common_root, branch_tip, command, targets
        )
        self.ensure_unused(marker)
        logger.info(f"Run marker {marker}")
        return marker

    def ensure_unused(self, marker: str) -> None:
        hits = self.git.grep_history(marker)
        if hits:
            raise MarkerCollisionError(marker, hits[0])
