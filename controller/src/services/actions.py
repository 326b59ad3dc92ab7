"""
Built-in reusable actions.

An action is any callable taking (inputs, context) and returning an
ActionResult. Actions report failure by raising a StepError subclass; the
executor never needs to know what an action does internally.
"""

import logging
import os
import re
from dataclasses import dataclass, field
from typing import Dict, List, Protocol

from controller.src.runners.client import client_for
from controller.src.models.context import RunContext
from controller.src.services.builder import build_artifact
from controller.src.services.checkout import clone_repository
from controller.src.errors import StepError
from controller.src.services.publisher import (
    ImagePublisher,
    compute_tags,
    write_dockerfile,
)
from controller.src.services.runtimes import RUNTIMES, get_runtime, version_satisfies
from controller.src.runners.local import run_command

logger = logging.getLogger(__name__)

@dataclass
class ActionResult:
    outputs: Dict[str, str] = field(default_factory=dict)
    output: str = ""

class Action(Protocol):
    def __call__(self, inputs: Dict[str, str], context: RunContext) -> ActionResult:
        ...

def workspace_path(context: RunContext, relative: str) -> str:
    path = os.path.normpath(os.path.join(context.workspace, relative or "."))
    workspace = os.path.normpath(context.workspace)
    if path != workspace and not path.startswith(workspace + os.sep):
        raise StepError(f"Path '{relative}' escapes the workspace")
    return path

def _split_list(value: str) -> List[str]:
    return [item.strip() for item in re.split(r"[,\n]", value or "") if item.strip()]

def publisher_for(context: RunContext) -> ImagePublisher:
    if context.publisher is None:
        context.publisher = ImagePublisher(client_for(context), context.credentials)
    return context.publisher

def checkout(inputs: Dict[str, str], context: RunContext) -> ActionResult:
    repository = inputs.get("repository") or context.event.repository
    path = workspace_path(context, inputs.get("path", "."))

    if not repository:
        # Local run: the workspace already holds the source tree
        if not os.path.isdir(path):
            raise StepError(f"No repository to check out and {path} does not exist")
        return ActionResult(outputs={"workspace": path}, output=f"Using existing source tree at {path}")

    ref = inputs.get("ref") or context.event.sha or context.event.ref
    clone_repository(repository, ref, path)

    return ActionResult(outputs={"workspace": path}, output=f"Checked out {ref or 'HEAD'} into {path}")

_VERSION = re.compile(r"(\d+(?:\.\d+)*)")

def setup_runtime(inputs: Dict[str, str], context: RunContext) -> ActionResult:
    preset = get_runtime(inputs.get("runtime"))
    wanted = inputs.get("version", "")

    result = run_command(preset.version_command, cwd=context.workspace, timeout=context.step_timeout)
    if result.exit_code != 0:
        raise StepError(
            f"{preset.name} is not available on this runner",
            exit_code=result.exit_code,
            output=result.output,
        )

    match = _VERSION.search(result.output)
    found = match.group(1) if match else ""

    if wanted and not version_satisfies(found, wanted):
        raise StepError(
            f"{preset.name} {found or 'unknown'} does not satisfy requested version {wanted}",
            output=result.output,
        )

    return ActionResult(outputs={"runtime-version": found}, output=result.output)

def build(inputs: Dict[str, str], context: RunContext) -> ActionResult:
    runtime = inputs.get("runtime")
    preset = RUNTIMES.get(runtime) if runtime else None

    command = inputs.get("command") or (preset.build_command if preset else "")
    pattern = inputs.get("artifact") or (preset.artifact if preset else "")
    if not command or not pattern:
        raise StepError("build-artifact needs 'command' and 'artifact' (or a known 'runtime')")

    if context.artifact is not None:
        logger.warning(f"Run {context.run_id} replaces artifact {context.artifact.path}")

    artifact, output = build_artifact(
        workspace_path(context, inputs.get("working-directory", ".")),
        command,
        pattern,
        tag=context.event.sha,
        env=context.process_env(),
        timeout=context.step_timeout,
    )
    context.artifact = artifact

    return ActionResult(outputs={"artifact-path": artifact.path}, output=output)

def registry_login(inputs: Dict[str, str], context: RunContext) -> ActionResult:
    registry = inputs.get("registry") or context.credentials.registry
    publisher_for(context).authenticate(
        registry=registry,
        username=inputs.get("username"),
        password=inputs.get("password"),
    )
    return ActionResult(outputs={"registry": registry}, output=f"Login to {registry} succeeded")

def image_metadata(inputs: Dict[str, str], context: RunContext) -> ActionResult:
    image = inputs.get("image")
    if not image:
        raise StepError("image-metadata needs 'image' (registry-host/owner/repo)")

    sha = inputs.get("sha", context.event.sha)
    tags = compute_tags(image, sha)

    return ActionResult(
        outputs={
            "image": image.lower(),
            "tags": ",".join(tags),
            "version": sha or "latest",
        },
        output="\n".join(tags),
    )

def build_push(inputs: Dict[str, str], context: RunContext) -> ActionResult:
    context_dir = workspace_path(context, inputs.get("context", "."))
    tags = _split_list(inputs.get("tags") or context.env.get("tags", ""))
    if not tags:
        raise StepError("build-push needs at least one tag")

    dockerfile = inputs.get("dockerfile")
    if not dockerfile and not os.path.exists(os.path.join(context_dir, "Dockerfile")):
        if context.artifact is None:
            raise StepError("No Dockerfile in build context and no artifact to package")
        preset = get_runtime(inputs.get("runtime"))
        port = inputs.get("port")
        dockerfile = write_dockerfile(
            context_dir,
            preset,
            context.artifact,
            version=inputs.get("runtime-version") or preset.default_version,
            port=int(port) if port else None,
        )

    publisher = publisher_for(context)

    if inputs.get("push", "true").lower() == "false":
        image, log = publisher.build_image(context_dir, tags, dockerfile=dockerfile)
        return ActionResult(outputs={"image-id": image.id, "digest": ""}, output=log)

    result = publisher.publish(context_dir, tags, dockerfile=dockerfile)
    pushed = "\n".join(f"Pushed {tag}" for tag in result.tags)

    return ActionResult(
        outputs={"image-id": result.image_id, "digest": result.digest},
        output=f"{result.log}\n{pushed}".strip(),
    )

ACTIONS: Dict[str, Action] = {
    "checkout": checkout,
    "setup-runtime": setup_runtime,
    "build-artifact": build,
    "registry-login": registry_login,
    "image-metadata": image_metadata,
    "build-push": build_push,
}
