# Copyright 2026 Zsolt Kulcsar and Contributors. Licensed under the EUPL-1.2 or later
"""Inference engine implementations."""

from bughunter.config import Config
from bughunter.engines.local import LocalEngine
from bughunter.engines.remote import RemoteEngine
from bughunter.inference import InferenceEngine

__all__ = ["LocalEngine", "RemoteEngine", "build_engine"]


def build_engine(config: Config) -> InferenceEngine:
    """Select the inference backend once for the given configuration."""
    if config.inference_mode == "local":
        return LocalEngine(
            script_path=config.script_path,
            python_executable=config.python_executable,
            gpu=config.gpu,
            timeout=config.inference_timeout,
        )
    return RemoteEngine(
        base_url=config.inference_url,
        gpu=config.gpu,
        timeout=config.inference_timeout,
    )
