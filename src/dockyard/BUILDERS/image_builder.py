"""
Builds local images from a Dockerfile.
"""
import hashlib
import logging
import os
from typing import Dict, Optional, Tuple, Union

from ..errors import MalformedDescriptor
from ..MODELS.container_image import ContainerImage, ImageSource
from ..PARSERS.dockerfile_parser import DockerfileParser
from ..REGISTRY.image_store import ImageRegistry, ImageStore, normalize

logger = logging.getLogger(__name__)


class ImageBuilder:
    """
    Analyzes a Dockerfile and records the resulting image in the local store.
    Only the image metadata is modelled; RUN steps are recorded, not executed.
    """
    def __init__(self, store: ImageStore, registry: ImageRegistry):
        """
        :param store: Store the built image is added to.
        :param registry: Registry used to pull the base image when it is missing.
        """
        self.store = store
        self.registry = registry
        self.parser = DockerfileParser()

    def build(self, context_dir: str, tag: str, dockerfile: str = "Dockerfile") -> ContainerImage:
        """
        Parses ``<context_dir>/<dockerfile>`` and stores an image tagged ``tag``.

        :param context_dir: The build context directory.
        :param tag: Reference to give the new image.
        :return: The stored image.
        :raises MalformedDescriptor: If the Dockerfile is missing, empty or lacks FROM.
        :raises ImageNotFound: If the base image cannot be resolved.
        """
        normalize(tag)
        path = os.path.join(context_dir, dockerfile)
        content = self._read(path)
        instructions = self.parser.parse_from_string(content)
        if not instructions:
            raise MalformedDescriptor(f"{path} contains no instructions", identifier=path)
        if instructions[0].instruction not in ("FROM", "ARG"):
            raise MalformedDescriptor(f"{path}: the first instruction must be FROM", identifier=path)

        base = None
        image = None
        stages: Dict[str, ContainerImage] = {}
        cmd_set = False
        run_steps = 0

        for inst in instructions:
            cmd = inst.instruction
            args = inst.arguments
            if image is None and cmd not in ("FROM", "ARG"):
                raise MalformedDescriptor(f"{path} line {inst.line}: {cmd} before FROM", identifier=cmd)

            if cmd == "FROM":
                # the last stage wins in a multi-stage build
                base_ref, alias = self._from_args(path, inst.line, args[0])
                image, base = self._stage(base_ref, tag, stages)
                if alias:
                    stages[alias.lower()] = image
                cmd_set = False
            elif cmd == "WORKDIR":
                image.working_directory = args[0]
            elif cmd == "ENV":
                for arg in args:
                    k, _, v = arg.partition("=")
                    image.env_vars[k] = v
            elif cmd == "LABEL":
                for arg in args:
                    k, _, v = arg.partition("=")
                    image.labels[k] = v
            elif cmd == "EXPOSE":
                image.exposed_ports.extend(self._port(path, inst.line, a) for a in args)
            elif cmd == "CMD":
                image.cmd = args
                cmd_set = True
            elif cmd == "ENTRYPOINT":
                image.entrypoint = args
                # only a CMD inherited from the base image is reset
                if not cmd_set:
                    image.cmd = []
            elif cmd == "RUN":
                run_steps += 1

        if base is None:
            raise MalformedDescriptor(f"{path}: no FROM instruction", identifier=path)

        image.id = "sha256:" + hashlib.sha256(f"{tag}\n{content}".encode("utf-8")).hexdigest()
        logger.info("Built %s from %s (%d instructions, %d RUN steps)", tag, path, len(instructions), run_steps)
        return self.store.add(image)

    def _from_args(self, path: str, line: int, value: str) -> Tuple[str, Optional[str]]:
        tokens = [t for t in value.split() if not t.startswith("--")]
        if len(tokens) == 1:
            return tokens[0], None
        if len(tokens) == 3 and tokens[1].upper() == "AS":
            return tokens[0], tokens[2]
        raise MalformedDescriptor(f"{path} line {line}: invalid FROM '{value}'", identifier=value)

    def _stage(self, base_ref: str, tag: str,
               stages: Dict[str, ContainerImage]) -> Tuple[ContainerImage, Union[str, ContainerImage]]:
        """
        Starts a build stage and returns its image together with the resolved base.
        An earlier stage alias takes precedence over a registry image of the same name.
        """
        earlier = stages.get(base_ref.lower())
        if earlier is not None:
            return earlier.model_copy(deep=True), earlier
        image = ContainerImage(reference=tag, id="", source=ImageSource.BUILT, base_image=base_ref)
        if base_ref == "scratch":
            return image, base_ref
        base = self.store.ensure(base_ref, self.registry)
        image.cmd = list(base.cmd)
        image.entrypoint = list(base.entrypoint)
        image.env_vars = dict(base.env_vars)
        image.working_directory = base.working_directory
        return image, base

    def _read(self, path: str) -> str:
        try:
            with open(path, "r") as f:
                return f.read()
        except OSError as exc:
            raise MalformedDescriptor(f"cannot read {path}: {exc.strerror}", identifier=path) from exc

    def _port(self, path: str, line: int, value: str) -> int:
        port = value.split("/", 1)[0]
        if not port.isdigit():
            raise MalformedDescriptor(f"{path} line {line}: invalid EXPOSE port '{value}'", identifier=value)
        return int(port)
