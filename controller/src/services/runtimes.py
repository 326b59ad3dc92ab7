"""
Language runtime presets.

A preset ties together what a pipeline needs to know about a language:
how to check the toolchain, the default build command and artifact, and
the runtime image the artifact is packaged into.
"""

from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from controller.src.errors import StepError

@dataclass(frozen=True)
class RuntimePreset:
    name: str
    version_command: str
    default_version: str
    build_command: str
    artifact: str
    runtime_image: str  # formatted with {version}
    artifact_dest: str
    port: int
    entrypoint: Tuple[str, ...] = ()

RUNTIMES: Dict[str, RuntimePreset] = {
    "java": RuntimePreset(
        name="java",
        version_command="java -version 2>&1",
        default_version="17",
        build_command="mvn -B package --file pom.xml",
        artifact="target/*.jar",
        runtime_image="eclipse-temurin:{version}-jre-alpine",
        artifact_dest="/app/app.jar",
        port=8080,
        entrypoint=("java", "-jar", "/app/app.jar"),
    ),
    "node": RuntimePreset(
        name="node",
        version_command="node --version",
        default_version="18",
        build_command="npm ci && npm run build",
        artifact="build",
        runtime_image="nginx:alpine",
        artifact_dest="/usr/share/nginx/html",
        port=80,
    ),
}

def get_runtime(name: Optional[str]) -> RuntimePreset:
    if not name:
        raise StepError("No runtime given")
    try:
        return RUNTIMES[name]
    except KeyError:
        raise StepError(f"Unsupported runtime '{name}' (expected one of: {', '.join(sorted(RUNTIMES))})")

def version_satisfies(found: str, wanted: str) -> bool:
    """'17.0.2' satisfies '17' and '17.0' but not '1' or '18'."""
    return found == wanted or found.startswith(wanted + ".")
