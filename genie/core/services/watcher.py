"""
Template watcher — mtime polling for ``genie --watch``.

Every poll re-discovers the templates and compares their mtimes with the
previous snapshot. New or modified templates are handed to a regenerate
callback. Deleted templates just drop out of the snapshot.

A poll is one stat() per template.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable
from pathlib import Path

logger = logging.getLogger(__name__)

POLL_INTERVAL_S = 1.0

Snapshot = dict[Path, int]


def snapshot(templates: Iterable[Path]) -> Snapshot:
    """mtime (ns) of every template that still exists."""
    result: Snapshot = {}
    for path in templates:
        try:
            result[path] = path.stat().st_mtime_ns
        except OSError:
            continue  # deleted between discovery and stat
    return result


def poll_changes(previous: Snapshot, templates: Iterable[Path]) -> tuple[Snapshot, list[Path]]:
    """Compare a fresh snapshot with ``previous``.

    Returns:
        (current snapshot, sorted list of new or modified templates)
    """
    current = snapshot(templates)
    changed = sorted(path for path, mtime in current.items() if previous.get(path) != mtime)
    return current, changed


def watch(
    discover: Callable[[], list[Path]],
    regenerate: Callable[[list[Path]], None],
    *,
    interval: float = POLL_INTERVAL_S,
    stop: threading.Event | None = None,
) -> None:
    """Poll until ``stop`` is set (or the process is interrupted).

    Args:
        discover: Returns the current template list.
        regenerate: Called with the changed templates of one poll cycle.
        interval: Seconds between polls.
        stop: Event that ends the loop; a fresh one when omitted.
    """
    stop = stop or threading.Event()
    previous = snapshot(discover())
    logger.info("Watching %d template(s) for changes (poll every %.1fs)", len(previous), interval)

    while not stop.wait(interval):
        try:
            previous, changed = poll_changes(previous, discover())
        except Exception as e:
            logger.warning("Watch cycle skipped: %s", e)
            continue

        if not changed:
            continue

        logger.info("%d template(s) changed", len(changed))
        try:
            regenerate(changed)
        except Exception:
            logger.exception("Regeneration failed; still watching")
