"""hdc argument vectors, local device or remote hdc server."""

from __future__ import annotations

from collections.abc import Sequence


def build_hdc_command(
    hdc_path: str,
    device_id: str,
    args: Sequence[str],
    *,
    hdc_server: str | None = None,
) -> list[str]:
    """Build the full hdc argument vector.

    A configured server address routes through ``-s host:port``; otherwise
    the device is selected with ``-t <id>`` (an empty id means the default
    device).
    """
    target = ["-s", hdc_server] if hdc_server else ["-t", device_id]
    return [hdc_path, *target, *args]
