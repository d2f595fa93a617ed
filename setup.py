from setuptools import setup, find_namespace_packages

setup(
    name="dockyard",
    version="0.1.0",
    description="Compose-like deployment descriptor interpreter with a Docker-style CLI",
    packages=find_namespace_packages(where="src"),
    package_dir={"": "src"},
    python_requires=">=3.9",
    install_requires=[
        "pydantic>=2.0",
        "pyyaml>=6.0",
        "click>=8.0",
        "python-dotenv>=1.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "dockyard=dockyard.CLI.main:main",
        ],
    },
)
