from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Sequence, Union

from .core.builder import build_restql
from .core.cancel import CancelToken
from .core.config import Settings, load_settings
from .core.dev import run_restql


def build(
    plugins: Sequence[str],
    version: str = "",
    output: Union[Path, str] = "./",
    *,
    cancel: Optional[CancelToken] = None,
    settings: Optional[Settings] = None,
    logger: Optional[logging.Logger] = None,
) -> Path:
    return build_restql(
        plugins,
        version,
        output,
        cancel=cancel,
        settings=settings or load_settings(),
        logger=logger,
    )


def run(
    version: str = "",
    config: Union[Path, str, None] = None,
    plugin: Union[Path, str] = ".",
    race: bool = False,
    *,
    cancel: Optional[CancelToken] = None,
    settings: Optional[Settings] = None,
    logger: Optional[logging.Logger] = None,
) -> None:
    run_restql(
        version,
        config,
        plugin,
        race,
        cancel=cancel,
        settings=settings or load_settings(),
        logger=logger,
    )
