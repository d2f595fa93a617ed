# Copyright 2024 Michael Maillet, Damien Davison, Sacha Davison
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Image reference parsing.
Normalizes references like 'nginx' or 'localhost:5000/team/api:v2' so that
different spellings of the same image compare equal.
"""

import re
from dataclasses import dataclass
from typing import Optional

COMPONENT = re.compile(r"^[a-z0-9]+(?:(?:[._]|__|-+)[a-z0-9]+)*$")
TAG = re.compile(r"^[\w][\w.-]{0,127}$")
DIGEST = re.compile(r"^[a-z0-9]+(?:[.+_-][a-z0-9]+)*:[a-fA-F0-9]{32,}$")


@dataclass(frozen=True)
class ImageReference:
    """
    Parsed image reference.

    Examples:
        - nginx -> docker.io/library/nginx:latest
        - myuser/myimage:v1 -> docker.io/myuser/myimage:v1
        - localhost:5000/myimage -> localhost:5000/myimage:latest
    """

    registry: str
    repository: str
    tag: Optional[str] = None
    digest: Optional[str] = None

    DEFAULT_REGISTRY = "docker.io"
    DEFAULT_TAG = "latest"

    @classmethod
    def parse(cls, reference: str) -> "ImageReference":
        """
        Parse an image reference string.

        Args:
            reference: Image reference string (e.g., 'nginx:latest').

        Returns:
            Parsed ImageReference object.

        Raises:
            ValueError: If the reference is empty or malformed.
        """
        if not reference or reference != reference.strip():
            raise ValueError(f"invalid reference format: {reference!r}")

        name, _, digest = reference.partition("@")
        if digest and not DIGEST.match(digest):
            raise ValueError(f"invalid digest in {reference!r}")

        # A colon after the last slash separates the tag; before it, a registry port
        tag = None
        slash = name.rfind("/")
        colon = name.rfind(":")
        if colon > slash:
            name, tag = name[:colon], name[colon + 1:]
            if not TAG.match(tag):
                raise ValueError(f"invalid tag in {reference!r}")

        parts = name.split("/")
        first = parts[0]
        if len(parts) > 1 and ("." in first or ":" in first or first == "localhost"):
            registry, path = first, parts[1:]
        else:
            registry, path = cls.DEFAULT_REGISTRY, parts
        if registry == cls.DEFAULT_REGISTRY and len(path) == 1:
            path = ["library"] + path

        if not all(COMPONENT.match(p) for p in path):
            raise ValueError(f"invalid repository name in {reference!r}")

        if not tag and not digest:
            tag = cls.DEFAULT_TAG
        return cls(registry=registry, repository="/".join(path), tag=tag, digest=digest or None)

    @property
    def full_name(self) -> str:
        """Full image name with registry."""
        name = f"{self.registry}/{self.repository}"
        if self.digest:
            return f"{name}@{self.digest}"
        return f"{name}:{self.tag}"

    @property
    def short_name(self) -> str:
        """Image name as users usually write it (default registry and library/ dropped)."""
        if self.registry != self.DEFAULT_REGISTRY:
            return self.full_name
        repo = self.repository
        if repo.startswith("library/"):
            repo = repo[len("library/"):]
        if self.digest:
            return f"{repo}@{self.digest}"
        return f"{repo}:{self.tag}"

    def __str__(self) -> str:
        return self.short_name
