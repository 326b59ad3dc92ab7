"""
Image publisher - registry login, image build and tag/push.

publish() always runs authenticate -> build -> push, in that order. A push
failure is not retried and tags that were already pushed are left in place.
"""

import logging
import os
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from docker.errors import APIError, BuildError as DockerBuildError

from controller.src.models.context import Credentials
from controller.src.models.step import Artifact
from controller.src.errors import AuthError, BuildError, PublishError
from controller.src.services.runtimes import RuntimePreset

logger = logging.getLogger(__name__)

GENERATED_DOCKERFILE = "Dockerfile.dockhand"

@dataclass
class PublishResult:
    image_id: str
    tags: List[str]
    digests: Dict[str, str] = field(default_factory=dict)
    log: str = ""

    @property
    def digest(self) -> str:
        # Every tag points at the same image, so any digest will do
        return next(iter(self.digests.values()), "")

def compute_tags(image: str, sha: str) -> List[str]:
    """
    Tags for one publish: the immutable commit tag first, then the moving
    'latest' tag, so a failed push never moves 'latest' to an image that
    has no commit tag.
    """
    image = image.lower()
    tags = []
    if sha:
        tags.append(f"{image}:{sha}")
    tags.append(f"{image}:latest")
    return tags

def split_tag(tag: str) -> Tuple[str, str]:
    """'host:5000/owner/repo:v1' -> ('host:5000/owner/repo', 'v1')"""
    repository, sep, name = tag.rpartition(":")
    if not sep or "/" in name:
        return tag, "latest"
    return repository, name

def render_dockerfile(preset: RuntimePreset, artifact_path: str, version: str, port: Optional[int] = None) -> str:
    """
    Multi-stage recipe: stage the prebuilt artifact, then copy it into the
    runtime base image.
    """
    staged = f"/artifact/{os.path.basename(artifact_path.rstrip('/'))}"
    lines = [
        "FROM busybox:stable AS artifact",
        f"COPY {artifact_path} {staged}",
        "",
        f"FROM {preset.runtime_image.format(version=version)}",
        f"COPY --from=artifact {staged} {preset.artifact_dest}",
        f"EXPOSE {port or preset.port}",
    ]
    if preset.entrypoint:
        args = ", ".join(f'"{arg}"' for arg in preset.entrypoint)
        lines.append(f"ENTRYPOINT [{args}]")
    return "\n".join(lines) + "\n"

def write_dockerfile(
    context_dir: str,
    preset: RuntimePreset,
    artifact: Artifact,
    version: str,
    port: Optional[int] = None,
) -> str:
    """Write a generated Dockerfile into the build context and return its name."""
    artifact_path = os.path.relpath(artifact.path, context_dir)
    if artifact_path.startswith(".."):
        raise BuildError(f"Artifact {artifact.path} is outside the build context {context_dir}")

    with open(os.path.join(context_dir, GENERATED_DOCKERFILE), "w") as f:
        f.write(render_dockerfile(preset, artifact_path, version, port))

    return GENERATED_DOCKERFILE

def _build_log(chunks) -> str:
    lines = []
    for chunk in chunks or []:
        if isinstance(chunk, dict):
            text = chunk.get("stream") or chunk.get("error") or ""
            if text:
                lines.append(text.rstrip("\n"))
    return "\n".join(lines)

class ImagePublisher:
    """Publishes images for one run using that run's Docker client."""

    def __init__(self, client, credentials: Credentials):
        self.client = client
        self.credentials = credentials
        self.authenticated = False
        self.registry: Optional[str] = None
        self.pushed_tags: List[str] = []

    def authenticate(
        self,
        registry: Optional[str] = None,
        username: Optional[str] = None,
        password: Optional[str] = None,
    ):
        """Log in to the registry; raises AuthError on rejection."""
        registry = registry or self.credentials.registry
        username = username or self.credentials.username
        password = password or self.credentials.token

        if not password:
            raise AuthError(f"No token configured for registry {registry}")

        try:
            self.client.login(username=username, password=password, registry=registry)
        except APIError as e:
            raise AuthError(f"Registry {registry} rejected credentials: {e.explanation or e}")

        self.authenticated = True
        self.registry = registry
        logger.info(f"Authenticated to {registry} as {username}")

    def build_image(self, context_dir: str, tags: List[str], dockerfile: Optional[str] = None):
        """Build the image and apply every tag. Returns (image, build log)."""
        if not tags:
            raise BuildError("No image tags given")

        logger.info(f"Building image {tags[0]} from {context_dir}")

        try:
            image, chunks = self.client.images.build(
                path=context_dir,
                dockerfile=dockerfile,
                tag=tags[0],
                rm=True,
            )
        except DockerBuildError as e:
            raise BuildError(f"Image build failed: {e.msg}", output=_build_log(e.build_log))
        except APIError as e:
            raise BuildError(f"Image build failed: {e.explanation or e}")

        for tag in tags[1:]:
            repository, name = split_tag(tag)
            image.tag(repository, tag=name)

        return image, _build_log(chunks)

    def push(self, tags: List[str]) -> Dict[str, str]:
        """Push each tag in order. Returns tag -> digest."""
        digests = {}

        for tag in tags:
            repository, name = split_tag(tag)
            logger.info(f"Pushing {tag}")

            try:
                for line in self.client.images.push(repository, tag=name, stream=True, decode=True):
                    if "error" in line:
                        detail = line.get("errorDetail", {}).get("message", line["error"])
                        raise PublishError(f"Push of {tag} failed: {detail}")
                    aux = line.get("aux") or {}
                    if aux.get("Digest"):
                        digests[tag] = aux["Digest"]
            except APIError as e:
                raise PublishError(f"Push of {tag} failed: {e.explanation or e}")

            self.pushed_tags.append(tag)

        return digests

    def publish(self, context_dir: str, tags: List[str], dockerfile: Optional[str] = None) -> PublishResult:
        if not self.authenticated:
            self.authenticate()

        image, log = self.build_image(context_dir, tags, dockerfile=dockerfile)
        digests = self.push(tags)

        return PublishResult(image_id=image.id, tags=list(tags), digests=digests, log=log)
