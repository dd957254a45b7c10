"""Checkpoint management for resumable event shipping.

This module provides simple, file-based checkpointing to track the last
successfully processed line of an event input file. This allows a shipping run
to be stopped and resumed without re-sending events.

The `store_checkpoint` function uses an atomic write pattern (write to a
temporary file then rename) to prevent checkpoint corruption if the process is
interrupted.
"""
from __future__ import annotations

import os
from typing import Optional


def load_checkpoint(path: str) -> Optional[int]:
    """Load the last processed line number from a checkpoint file.

    Args:
        path: The path to the checkpoint file.

    Returns:
        The line number if the file is valid, otherwise None.
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = f.read().strip()
        if not raw:
            return None
        return int(raw)
    except FileNotFoundError:
        return None
    except ValueError:
        return None


def store_checkpoint(path: str, line_number: int) -> None:
    """Atomically store a line number to the checkpoint file.

    Args:
        path: The path to the checkpoint file.
        line_number: The last successfully processed (1-based) input line.
    """
    tmp_path = f"{path}.tmp"
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    with open(tmp_path, "w", encoding="utf-8") as f:
        f.write(str(line_number))
    os.replace(tmp_path, path)


__all__ = ["load_checkpoint", "store_checkpoint"]
