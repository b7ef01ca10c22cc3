from __future__ import annotations

import logging
from typing import Optional

import av
import av.logging


def setup_logging(level: str = "INFO", log_file: Optional[str] = None, ffmpeg_level: str = "ERROR") -> None:
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_file is not None:
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
        handlers=handlers,
    )
    # libav prints through its own callback; keep it to real problems
    av.logging.set_level(getattr(av.logging, ffmpeg_level.upper(), av.logging.ERROR))
