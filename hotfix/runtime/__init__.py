"""Container runtime adapters."""

from .compose import ComposeRuntime, ContainerRuntime

__all__ = ["ComposeRuntime", "ContainerRuntime"]
