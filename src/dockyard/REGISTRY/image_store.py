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
Local image store and the image registry collaborator.
"""

import hashlib
import logging
from typing import Dict, Iterable, List, Optional, Protocol, runtime_checkable

from ..errors import ImageNotFound
from ..MODELS.container_image import ContainerImage, ImageSource
from .image_reference import ImageReference

logger = logging.getLogger(__name__)


def normalize(reference: str) -> str:
    """
    Canonical key for an image reference.

    Raises:
        ImageNotFound: If the reference is malformed.
    """
    try:
        return ImageReference.parse(reference).full_name
    except ValueError as exc:
        raise ImageNotFound(reference, reason=str(exc)) from exc


@runtime_checkable
class ImageRegistry(Protocol):
    """Remote source of images."""

    def pull(self, reference: str) -> ContainerImage:
        """Fetches an image, raising ImageNotFound when the registry has no such image."""
        ...


class StaticRegistry:
    """
    Registry stand-in that serves images from a fixed catalog.

    Without a catalog every well-formed reference resolves, which mirrors a
    public registry where most names exist.
    """

    def __init__(self, catalog: Optional[Iterable[str]] = None):
        """
        Args:
            catalog: References this registry knows about. None means any reference.
        """
        self.catalog = None if catalog is None else {normalize(r) for r in catalog}

    def pull(self, reference: str) -> ContainerImage:
        try:
            ref = ImageReference.parse(reference)
        except ValueError as exc:
            raise ImageNotFound(reference, reason=str(exc)) from exc
        if self.catalog is not None and ref.full_name not in self.catalog:
            raise ImageNotFound(reference, reason="repository does not exist or may require login")
        digest = hashlib.sha256(ref.full_name.encode("utf-8")).hexdigest()
        return ContainerImage(reference=ref.short_name, id=f"sha256:{digest}", source=ImageSource.PULLED)


class ImageStore:
    """
    Local images, keyed by normalized reference.
    """

    def __init__(self, images: Optional[Iterable[ContainerImage]] = None):
        self._images: Dict[str, ContainerImage] = {}
        for image in images or []:
            self.add(image)

    def __len__(self) -> int:
        return len(self._images)

    def add(self, image: ContainerImage) -> ContainerImage:
        """Stores an image, replacing any image with the same reference."""
        self._images[normalize(image.reference)] = image
        return image

    def get(self, reference: str) -> Optional[ContainerImage]:
        """
        Looks an image up by reference or by (prefix of) its id.
        """
        image = self._by_id(reference)
        if image is not None:
            return image
        return self._images.get(normalize(reference))

    def list(self) -> List[ContainerImage]:
        return list(self._images.values())

    def pull(self, reference: str, registry: ImageRegistry) -> ContainerImage:
        """Pulls an image from the registry into the store."""
        key = normalize(reference)
        logger.info("Pulling %s", key)
        image = registry.pull(reference)
        self._images[key] = image
        return image

    def ensure(self, reference: str, registry: ImageRegistry) -> ContainerImage:
        """Returns the local image, pulling it first when it is missing."""
        return self.get(reference) or self.pull(reference, registry)

    def remove(self, reference: str) -> ContainerImage:
        """
        Raises:
            ImageNotFound: If no local image matches.
        """
        image = self.get(reference)
        if image is None:
            raise ImageNotFound(reference, reason="no such image")
        del self._images[normalize(image.reference)]
        return image

    def _by_id(self, ref: str) -> Optional[ContainerImage]:
        bare = ref.split(":", 1)[1] if ref.startswith("sha256:") else ref
        if len(bare) < 4 or any(c not in "0123456789abcdef" for c in bare):
            return None
        matches = [i for i in self._images.values() if i.id.split(":", 1)[-1].startswith(bare)]
        if len(matches) > 1:
            raise ImageNotFound(ref, reason="ambiguous image id")
        return matches[0] if matches else None
