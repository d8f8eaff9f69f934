"""Storybook publisher: build, publish and index Storybooks per commit.

Finds every Storybook package in a repository, builds each one, uploads the
static output to an object store under ``commits/<sha>/``, posts a GitHub
commit status linking to it, and regenerates a root ``index.html`` listing
recent commits.
"""

__version__ = "0.3.0"
__description__ = "Build, publish and index Storybooks for every commit"

from storybook_publisher.config import ConfigError, PublisherConfig, load_config
from storybook_publisher.core.pipeline import PublishPipeline

__all__ = [
    "ConfigError",
    "PublishPipeline",
    "PublisherConfig",
    "load_config",
    "__version__",
]
