# torchrings setuptools configuration
from setuptools import find_packages, setup

setup(
    name="torchrings",
    version="0.1.0",
    description="Ring geometry and quadrature weights for spherical harmonic transforms in PyTorch",
    package_dir={"": "src"},
    packages=find_packages(where="src"),
    python_requires=">=3.9",
    install_requires=[
        "torch",
        "numpy",
        "psutil",
    ],
    extras_require={
        "test": ["pytest"],
    },
)
