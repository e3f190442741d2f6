"""
pytest configuration and fixtures for the SBE codec generator tests.

Provides reusable fixtures for:
- Generating a codec package from an IR and importing it
- The car example IR fixture
- Hypothesis property-based testing configuration
"""

import importlib
import itertools
import sys
from pathlib import Path

import pytest

# Add project paths
sys.path.insert(0, str(Path(__file__).parent.parent / "tools"))
sys.path.insert(0, str(Path(__file__).parent))

from generate_sbe_codec import DirectoryOutputManager, SbeGenerator
from sbe_ir_loader import load_ir

FIXTURES = Path(__file__).parent / "fixtures"

# Configure Hypothesis profiles
from hypothesis import settings, Verbosity, Phase

# Default profile: balanced speed and coverage
settings.register_profile(
    "default",
    max_examples=100,
    deadline=None,  # Generated modules are imported lazily on first call
)

# CI profile: more thorough testing
settings.register_profile(
    "ci",
    max_examples=500,
    deadline=None,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
)

# Dev profile: fast iteration
settings.register_profile(
    "dev",
    max_examples=10,
    deadline=None,
)

# Debug profile: verbose output
settings.register_profile(
    "debug",
    max_examples=10,
    verbosity=Verbosity.verbose,
    deadline=None,
)

# Load profile from environment
import os
settings.load_profile(os.environ.get("HYPOTHESIS_PROFILE", "default"))


@pytest.fixture(scope="session")
def codegen(tmp_path_factory):
    """
    Generate an Ir into a uniquely named package and import it.

    Usage:
        def test_car(codegen):
            pkg = codegen(load_ir(FIXTURES / 'car.yaml'))
            car = pkg.Car()
    """
    root = tmp_path_factory.mktemp("generated")
    sys.path.insert(0, str(root))
    counter = itertools.count()
    packages = []

    def build(ir):
        ir.namespaces = (f"{ir.package_name}_{next(counter)}",)
        SbeGenerator(ir, DirectoryOutputManager(root, ir.package_name)).generate()
        importlib.invalidate_caches()
        packages.append(ir.package_name)
        return importlib.import_module(ir.package_name)

    yield build

    sys.path.remove(str(root))
    for name in list(sys.modules):
        if name.split(".")[0] in packages:
            del sys.modules[name]


@pytest.fixture(scope="session")
def car_ir_path():
    return FIXTURES / "car.yaml"


@pytest.fixture(scope="session")
def car(codegen, car_ir_path):
    """The generated package for the car example schema."""
    return codegen(load_ir(car_ir_path))


# Markers for test categorization
def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests that generate and import codec packages"
    )
