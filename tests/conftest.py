"""Shared fixtures: a small world with one box straight ahead of a firefly."""

import numpy as np
import pytest

from fireflies.control.agent import Agent
from fireflies.params import Parameters
from fireflies.perception.belief_memory import BeliefMemory
from fireflies.perception.pipeline import CognitionPipeline
from fireflies.perception.world_state import (
    Obstacle,
    ObstacleType,
    Rect,
    WorldBounds,
    WorldSnapshot,
)
from fireflies.strategies.segmentation import ObjectFeatures

BOX = Rect(120, 180, 40, 40)


def make_world(*rects, bounds=(400, 400), draggable=()):
    obstacles = tuple(
        Obstacle(
            id=f"box{i}" if len(rects) > 1 else "box",
            rect=rect,
            type=ObstacleType.DRAGGABLE if i in draggable else ObstacleType.FIXED,
        )
        for i, rect in enumerate(rects)
    )
    return WorldSnapshot(bounds=WorldBounds(*bounds), obstacles=obstacles)


def make_features(cx, cy, width=16.0, height=16.0, id="det"):
    return ObjectFeatures(
        id=id,
        centroid=(cx, cy),
        bounds=Rect(cx - width / 2, cy - height / 2, width, height),
        cell_count=4,
        aspect_ratio=width / max(height, 1.0),
        cells=(),
    )


@pytest.fixture
def params():
    return Parameters()


@pytest.fixture
def world():
    """400x400 world, 40x40 box centred at (140, 200)."""
    return make_world(BOX)


@pytest.fixture
def empty_world():
    return make_world()


@pytest.fixture
def pipeline(params):
    return CognitionPipeline(params)


@pytest.fixture
def agent():
    """Firefly at (60, 200) facing +x, the box 60 units ahead."""
    return Agent(
        id="ff-0",
        x=60.0,
        y=200.0,
        heading=0.0,
        rng=np.random.default_rng(0),
        memory=BeliefMemory(agent_id="ff-0"),
    )
