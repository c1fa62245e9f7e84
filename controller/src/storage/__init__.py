from controller.src.storage.artifact_store import (
    ArtifactStore,
    InMemoryArtifactStore,
    S3ArtifactStore,
)

__all__ = [
    "ArtifactStore",
    "InMemoryArtifactStore",
    "S3ArtifactStore",
]
