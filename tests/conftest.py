"""Shared fixtures: a small in-memory catalog, settings, and a scripted generator."""

from pathlib import Path
from typing import Callable, List, Optional, Union

import pytest

from phonepixie.catalog_store import CatalogStore
from phonepixie.config import BASE_DIR, Settings
from phonepixie.models import CatalogEntry


def make_phone(brand: str, model: str, price: float, rating: float, **overrides) -> CatalogEntry:
    record = {
        "brand_name": brand,
        "model": model,
        "price": price,
        "rating": rating,
        "has_5g": True,
        "has_nfc": False,
        "has_ir_blaster": False,
        "num_cores": 8,
        "processor_brand": "snapdragon",
        "battery_capacity": 5000,
        "fast_charging_available": True,
        "fast_charging": 33,
        "ram_capacity": 8,
        "internal_memory": 128,
        "extended_memory_available": False,
        "extended_upto": None,
        "screen_size": 6.6,
        "refresh_rate": 120,
        "resolution_width": 1080,
        "resolution_height": 2400,
        "num_rear_cameras": 3,
        "num_front_cameras": 1,
        "primary_camera_rear": 50,
        "primary_camera_front": 16,
        "os": "android",
    }
    record.update(overrides)
    return CatalogEntry.model_validate(record)


SAMPLE_PHONES = [
    make_phone("samsung", "Samsung Galaxy M35 5G", 19999, 84, battery_capacity=6000, ram_capacity=6, has_nfc=True),
    make_phone("samsung", "Samsung Galaxy S21 FE 5G", 34999, 86, battery_capacity=4500, primary_camera_rear=12),
    make_phone("samsung", "Samsung Galaxy M14 4G", 8999, 70, has_5g=False, refresh_rate=90, ram_capacity=4),
    make_phone("google", "Google Pixel 8a", 52999, 87, battery_capacity=4492, num_rear_cameras=2, primary_camera_rear=64),
    make_phone("oneplus", "OnePlus 12R", 39999, 88, battery_capacity=5500, has_ir_blaster=True, has_nfc=True),
    make_phone("oneplus", "OnePlus 11R 5G", 39999, 86, has_ir_blaster=True),
    make_phone(
        "apple",
        "Apple iPhone 13",
        52999,
        86,
        battery_capacity=3240,
        refresh_rate=60,
        ram_capacity=4,
        primary_camera_rear=12,
        num_rear_cameras=2,
        os="ios",
    ),
    make_phone("xiaomi", "Xiaomi Redmi Note 13 Pro 5G", 23999, 85, primary_camera_rear=200, has_ir_blaster=True),
    make_phone("poco", "POCO X6 Pro 5G", 22999, 85, ram_capacity=8, internal_memory=256, has_ir_blaster=True),
    make_phone(
        "nokia",
        "Nokia G42 5G",
        12599,
        72,
        refresh_rate=90,
        ram_capacity=6,
        extended_memory_available=True,
        extended_upto=1024,
    ),
]


class ScriptedGenerator:
    """Fake TextGenerator: replays scripted replies (or raises) and records prompts."""

    def __init__(
        self,
        replies: Optional[List[Union[str, Callable[[str], str]]]] = None,
        error: Optional[Exception] = None,
    ) -> None:
        self.replies = list(replies or [])
        self.error = error
        self.calls: List[str] = []

    def generate(self, prompt: str, system_instruction: Optional[str] = None) -> str:
        self.calls.append(prompt)
        if self.error is not None:
            raise self.error
        if not self.replies:
            return ""
        reply = self.replies.pop(0)
        return reply(prompt) if callable(reply) else reply


@pytest.fixture
def phones() -> List[CatalogEntry]:
    return list(SAMPLE_PHONES)


@pytest.fixture
def catalog(phones) -> CatalogStore:
    return CatalogStore(phones)


@pytest.fixture
def prompts_dir() -> Path:
    return BASE_DIR / "prompts"


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        gemini_api_key="",
        gemini_model="gemini-2.5-flash",
        catalog_path=tmp_path / "phones.json",
        prompts_dir=BASE_DIR / "prompts",
        generation_timeout_sec=5,
        candidate_cap=3,
        compare_cap=3,
        additional_cap=2,
        rate_limit=20,
        rate_limit_window_sec=60,
        rate_limit_ttl_sec=600,
        log_level="INFO",
    )


@pytest.fixture
def scripted_generator():
    return ScriptedGenerator
