"""Pytest configuration for raycaster tests.

This module provides shared fixtures for all test modules, including
Taichi initialization which must happen once per session.
"""

import pytest
import taichi as ti


@pytest.fixture(scope="session", autouse=True)
def init_taichi_session():
    """Initialize Taichi once for the entire test session.

    Using session scope prevents multiple ti.init() calls which can cause
    segmentation faults due to Taichi runtime conflicts.
    """
    ti.init(arch=ti.cpu, random_seed=42, fast_math=False)
    yield


@pytest.fixture(autouse=True)
def clear_all_scene_data():
    """Clear scene, material and environment data before and after each test.

    This ensures tests are isolated from each other.
    """
    # Import here so the fields are created after ti.init()
    from raycaster.materials.surface import clear_materials
    from raycaster.scene.environment import reset_environment
    from raycaster.scene.intersection import clear_scene

    def _clear_all():
        clear_scene()
        clear_materials()
        reset_environment()

    _clear_all()

    yield

    _clear_all()
