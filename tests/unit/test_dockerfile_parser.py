import pytest
from dockyard.errors import ImageNotFound, MalformedDescriptor
from dockyard.BUILDERS.image_builder import ImageBuilder
from dockyard.MODELS.container_image import ImageSource
from dockyard.PARSERS.dockerfile_parser import DockerfileParser
from dockyard.REGISTRY.image_store import ImageStore, StaticRegistry

DOCKERFILE = """
# syntax=docker/dockerfile:1
FROM python:3.12-slim
WORKDIR /app
COPY . .
RUN pip install -r requirements.txt \\
    && echo "done"
ENV PORT=8080 MODE="prod"
ENV LEGACY old style
EXPOSE 8080/tcp 9090
CMD ["python", "app.py"]
"""


def test_parse_from_string():
    instructions = DockerfileParser().parse_from_string(DOCKERFILE)

    inst_names = [i.instruction for i in instructions]
    assert inst_names == ["FROM", "WORKDIR", "COPY", "RUN", "ENV", "ENV", "EXPOSE", "CMD"]

    cmd_inst = instructions[-1]
    assert cmd_inst.arguments == ["python", "app.py"]
    assert cmd_inst.line == 11

    run_inst = instructions[3]
    assert run_inst.arguments[0].startswith("pip install -r requirements.txt")
    assert '&& echo "done"' in run_inst.arguments[0]
    assert run_inst.line == 6

    assert instructions[4].arguments == ["PORT=8080", "MODE=prod"]
    assert instructions[5].arguments == ["LEGACY=old style"]


def test_shell_form_cmd():
    instructions = DockerfileParser().parse_from_string("FROM alpine\nCMD echo hello\n")
    assert instructions[1].arguments == ["/bin/sh", "-c", "echo hello"]


def test_instruction_without_arguments():
    with pytest.raises(MalformedDescriptor):
        DockerfileParser().parse_from_string("FROM\n")


class TestImageBuilder:
    """Tests for building images from a context directory."""

    def test_build(self, tmp_path):
        (tmp_path / "Dockerfile").write_text(DOCKERFILE)
        store = ImageStore()

        image = ImageBuilder(store, StaticRegistry()).build(str(tmp_path), "myapp:1.0")

        assert image.source == ImageSource.BUILT
        assert image.base_image == "python:3.12-slim"
        assert image.working_directory == "/app"
        assert image.env_vars == {"PORT": "8080", "MODE": "prod", "LEGACY": "old style"}
        assert image.exposed_ports == [8080, 9090]
        assert image.cmd == ["python", "app.py"]
        assert store.get("myapp:1.0") is image
        # the base image was pulled on demand
        assert store.get("python:3.12-slim") is not None

    def test_missing_dockerfile(self, tmp_path):
        with pytest.raises(MalformedDescriptor):
            ImageBuilder(ImageStore(), StaticRegistry()).build(str(tmp_path), "myapp")

    def test_must_start_with_from(self, tmp_path):
        (tmp_path / "Dockerfile").write_text("RUN echo hi\n")
        with pytest.raises(MalformedDescriptor):
            ImageBuilder(ImageStore(), StaticRegistry()).build(str(tmp_path), "myapp")

    def test_unknown_base_image(self, tmp_path):
        (tmp_path / "Dockerfile").write_text("FROM private/base:1\n")
        builder = ImageBuilder(ImageStore(), StaticRegistry(catalog=["alpine"]))
        with pytest.raises(ImageNotFound):
            builder.build(str(tmp_path), "myapp")

    def test_cmd_before_entrypoint_is_kept(self, tmp_path):
        (tmp_path / "Dockerfile").write_text(
            'FROM alpine\nCMD ["--port", "80"]\nENTRYPOINT ["server"]\n')
        image = ImageBuilder(ImageStore(), StaticRegistry()).build(str(tmp_path), "server")
        assert image.entrypoint == ["server"]
        assert image.cmd == ["--port", "80"]

    def test_entrypoint_resets_inherited_cmd(self, tmp_path):
        store = ImageStore()
        registry = StaticRegistry()
        (tmp_path / "Dockerfile").write_text('FROM alpine\nCMD ["sh"]\n')
        ImageBuilder(store, registry).build(str(tmp_path), "base:1")

        (tmp_path / "Dockerfile").write_text('FROM base:1\nENTRYPOINT ["server"]\n')
        image = ImageBuilder(store, registry).build(str(tmp_path), "app:1")
        assert image.cmd == []

    def test_multi_stage_alias(self, tmp_path):
        (tmp_path / "Dockerfile").write_text(
            "FROM --platform=linux/amd64 golang:1.22 AS builder\n"
            "WORKDIR /src\n"
            "ENV CGO_ENABLED=0\n"
            "FROM builder\n"
            'CMD ["./app"]\n')
        store = ImageStore()
        # the alias must not be looked up in the registry
        image = ImageBuilder(store, StaticRegistry(catalog=["golang:1.22"])).build(str(tmp_path), "app")

        assert image.base_image == "golang:1.22"
        assert image.working_directory == "/src"
        assert image.env_vars["CGO_ENABLED"] == "0"
        assert image.cmd == ["./app"]
        assert store.get("builder") is None

    def test_invalid_from(self, tmp_path):
        (tmp_path / "Dockerfile").write_text("FROM alpine builder\n")
        with pytest.raises(MalformedDescriptor):
            ImageBuilder(ImageStore(), StaticRegistry()).build(str(tmp_path), "app")
