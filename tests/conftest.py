"""Shared fixtures for the image description service tests."""
from typing import List

import numpy as np
import pytest
from fastapi.testclient import TestClient

from src.backend import main
from src.backend.models import ClassifierHandle, get_classifier_handle
from src.backend.schemas import Prediction

CATEGORIES = ["red", "green", "blue", "background"]


class FakeClassifier:
    """Deterministic stand-in ranking categories by mean channel intensity."""

    def __init__(self):
        self.shapes = []

    def classify(self, pixels: np.ndarray, top_k: int = 3) -> List[Prediction]:
        self.shapes.append(pixels.shape)
        means = pixels.reshape(-1, pixels.shape[-1]).mean(axis=0)
        scores = np.append(means, 1.0)
        probabilities = scores / scores.sum()
        order = np.argsort(-probabilities, kind="stable")[:top_k]
        return [
            Prediction(className=CATEGORIES[i], probability=float(probabilities[i]))
            for i in order
        ]


@pytest.fixture
def upload_dir(tmp_path, monkeypatch):
    """Stage uploads under a per-test directory."""
    directory = tmp_path / "uploads"
    monkeypatch.setattr(main, "UPLOAD_DIR", directory)
    return directory


@pytest.fixture
def fake_classifier() -> FakeClassifier:
    return FakeClassifier()


@pytest.fixture
def handle(fake_classifier) -> ClassifierHandle:
    return ClassifierHandle(loader=lambda: fake_classifier)


@pytest.fixture
def client(upload_dir, handle):
    main.app.dependency_overrides[get_classifier_handle] = lambda: handle
    with TestClient(main.app) as test_client:
        yield test_client
    main.app.dependency_overrides.clear()
