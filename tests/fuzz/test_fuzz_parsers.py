import random
import string
from dockyard.errors import DockyardError
from dockyard.PARSERS.descriptor_parser import DescriptorParser
from dockyard.PARSERS.dockerfile_parser import DockerfileParser
from dockyard.REGISTRY.image_reference import ImageReference

RNG = random.Random(1337)


def random_string(length):
    return ''.join(RNG.choice(string.printable) for _ in range(length))


def test_fuzz_dockerfile_parser():
    # junk must fail with a Dockerfile error, never IndexError or AttributeError
    parser = DockerfileParser()
    for _ in range(200):
        content = random_string(RNG.randint(0, 500))
        try:
            parser.parse_from_string(content)
        except DockyardError:
            pass


def test_fuzz_descriptor_parser():
    parser = DescriptorParser(context={})
    for _ in range(200):
        content = random_string(RNG.randint(0, 500))
        try:
            parser.parse_from_string(content)
        except DockyardError:
            pass


def test_fuzz_image_reference():
    alphabet = string.ascii_letters + string.digits + ":/@._-"
    for _ in range(500):
        reference = ''.join(RNG.choice(alphabet) for _ in range(RNG.randint(0, 40)))
        try:
            ref = ImageReference.parse(reference)
        except ValueError:
            continue
        assert ImageReference.parse(ref.full_name) == ref
